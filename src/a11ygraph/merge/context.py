# src/a11ygraph/merge/context.py
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..behavior.nodes import ActionBase, EventHandler, TabIndexChange
from ..dom.core import SemanticFacet
from ..style.model import StyleRule

CLICK_EVENTS = ("click",)
# Only these count as a keyboard equivalent of a click; keyup fires too late for activation.
KEYBOARD_ACTIVATION_EVENTS = ("keydown", "keypress")
POINTER_EVENTS = {"click", "dblclick", "mousedown", "mouseup", "pointerdown", "pointerup", "touchstart", "touchend"}

INTERACTIVE_ROLES = {
    "button", "checkbox", "combobox", "gridcell", "link", "listbox", "menu", "menubar", "menuitem",
    "menuitemcheckbox", "menuitemradio", "option", "radio", "scrollbar", "searchbox", "slider",
    "spinbutton", "switch", "tab", "textbox", "treeitem",
}


class RuleMatch(BaseModel):
    """A style rule attached to an element. 'conditional' marks :hover / :focus only matches."""
    model_config = ConfigDict(frozen=True)

    rule: int
    conditional: bool = False


class ElementContext(BaseModel):
    """
    Per-element aggregation produced by a merge.

    All references are positions in the graph arenas: 'element' into the
    element arena, handler and action ids into the action arena, 'rule' into
    the rule arena. Contexts are rebuilt on every merge and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    element: int
    handlers_by_event: Dict[str, Tuple[int, ...]] = Field(default_factory=dict)
    actions: Tuple[int, ...] = ()  # attached non-handler actions (focus, aria, dom, tabindex)
    rules: Tuple[RuleMatch, ...] = ()  # cascade order, winner first
    declarations: Dict[str, str] = Field(default_factory=dict)  # effective unconditional values
    role: Optional[str] = None
    focusable: bool = False
    interactive: bool = False
    has_click_handler: bool = False
    has_keyboard_handler: bool = False
    hidden_by_style: bool = False

    @property
    def events(self) -> List[str]:
        return list(self.handlers_by_event)

    def handler_ids(self, *events: str) -> List[int]:
        return [i for event in events for i in self.handlers_by_event.get(event, ())]


def group_handlers(handlers: Iterable[Tuple[int, EventHandler]]) -> Dict[str, Tuple[int, ...]]:
    """Groups handler positions by event name; keys are sorted so the result is deterministic."""
    grouped: Dict[str, List[int]] = {}
    for position, handler in handlers:
        grouped.setdefault(handler.event, []).append(position)
    return {event: tuple(grouped[event]) for event in sorted(grouped)}


def cascade_order(matches: Iterable[Tuple[int, bool]], rules: Sequence[StyleRule]) -> Tuple[RuleMatch, ...]:
    """
    Orders matched rules by specificity descending, then source order descending.
    Source order is only unique within one stylesheet; remaining ties go to the
    rule loaded last (higher arena position).
    """
    ordered = sorted(matches, key=lambda m: rules[m[0]].cascade_key + (m[0],), reverse=True)
    return tuple(RuleMatch(rule=r, conditional=c) for r, c in ordered)


def _strip_important(value: str) -> str:
    return value.replace("!important", "").strip()


def effective_declarations(
        matches: Sequence[RuleMatch], rules: Sequence[StyleRule], inline: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """
    Winning declared value per property. Inline declarations outrank every rule;
    state-conditional rules never contribute since they do not hold at rest.
    """
    winners: Dict[str, str] = {}
    for match in matches:
        if match.conditional:
            continue
        for prop, value in rules[match.rule].properties.items():
            winners.setdefault(prop, _strip_important(value))
    for prop, value in (inline or {}).items():
        winners[prop] = _strip_important(value)
    return {prop: winners[prop] for prop in sorted(winners)}


def is_hidden_by_style(declarations: Dict[str, str]) -> bool:
    display = declarations.get("display", "").lower()
    visibility = declarations.get("visibility", "").lower()
    return display == "none" or visibility in ("hidden", "collapse")


def effective_tabindex(semantics: SemanticFacet, attached: Sequence[ActionBase]) -> Optional[int]:
    """The last scripted tabindex value wins over the markup attribute."""
    scripted = [a.value for a in attached if isinstance(a, TabIndexChange)]
    return scripted[-1] if scripted else semantics.tabindex


def is_focusable(semantics: SemanticFacet, attached: Sequence[ActionBase]) -> bool:
    """
    In the sequential focus order: natively focusable or tabindex >= 0.
    A negative tabindex takes even native controls out of the tab order.
    """
    if semantics.disabled:
        return False
    tabindex = effective_tabindex(semantics, attached)
    if tabindex is not None:
        return tabindex >= 0
    return semantics.naturally_focusable


def is_interactive(semantics: SemanticFacet, events: Iterable[str]) -> bool:
    if semantics.native_control or semantics.role in INTERACTIVE_ROLES:
        return True
    return any(event in POINTER_EVENTS or event in KEYBOARD_ACTIVATION_EVENTS for event in events)


def build_context(
        element: int,
        semantics: SemanticFacet,
        attached: Sequence[Tuple[int, ActionBase]],
        matches: Sequence[Tuple[int, bool]],
        rules: Sequence[StyleRule],
        inline_style: Optional[Dict[str, str]] = None,
) -> ElementContext:
    """Pure aggregation of everything the merge attached to one element."""
    handlers = [(i, a) for i, a in attached if isinstance(a, EventHandler)]
    others = tuple(i for i, a in attached if not isinstance(a, EventHandler))
    by_event = group_handlers(handlers)
    ordered_rules = cascade_order(matches, rules)
    declarations = effective_declarations(ordered_rules, rules, inline_style)

    return ElementContext(
        element=element,
        handlers_by_event=by_event,
        actions=others,
        rules=ordered_rules,
        declarations=declarations,
        role=semantics.role,
        focusable=is_focusable(semantics, [a for _, a in attached]),
        interactive=is_interactive(semantics, by_event),
        has_click_handler=any(e in by_event for e in CLICK_EVENTS),
        has_keyboard_handler=any(e in by_event for e in KEYBOARD_ACTIVATION_EVENTS),
        hidden_by_style=is_hidden_by_style(declarations),
    )
