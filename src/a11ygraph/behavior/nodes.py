# src/a11ygraph/behavior/nodes.py
"""
ActionLanguage: the dialect-neutral behaviour IR.

Extractors for each UI dialect (vanilla DOM scripts, React, Vue, Svelte, Angular)
emit these nodes. Element references are always selector strings; they are only
resolved against markup by the merger, so behaviour can be modelled before any
markup exists.
"""
from typing import Annotated, Iterator, Literal, Optional, Tuple, Union

from pydantic import Field, field_validator

from ..dom.core import ModelNode

KEYBOARD_EVENTS = ("keydown", "keypress", "keyup")

KNOWN_EVENTS = {
    "click", "dblclick", "mousedown", "mouseup", "mouseover", "mouseout", "mouseenter", "mouseleave",
    "keydown", "keypress", "keyup", "focus", "blur", "focusin", "focusout", "input", "change",
    "submit", "touchstart", "touchend", "pointerdown", "pointerup", "contextmenu", "scroll",
}


def normalize_event_name(name: str) -> str:
    """Maps framework spellings such as 'onClick' or 'on:click' to the DOM event name."""
    event = name.strip().lower()
    for prefix in ("on:", "on"):
        if event.startswith(prefix) and event[len(prefix):] in KNOWN_EVENTS:
            return event[len(prefix):]
    return event


class ActionBase(ModelNode):
    """Common shape: every action node can nest further actions (handler bodies, branches)."""
    children: Tuple["ActionNode", ...] = ()

    @property
    def target(self) -> Optional[str]:
        return None


class EventHandler(ActionBase):
    kind: Literal["event-handler"] = "event-handler"
    event: str
    selector: str
    summary: str = ""  # condensed handler body, scanned for key names
    synchronous: bool = True

    @field_validator("event")
    @classmethod
    def normalize_event(cls, v: str) -> str:
        return normalize_event_name(v)

    @property
    def target(self) -> Optional[str]:
        return self.selector

    @property
    def is_keyboard(self) -> bool:
        return self.event in KEYBOARD_EVENTS


class FocusChange(ActionBase):
    kind: Literal["focus-change"] = "focus-change"
    selector: str
    timing: Literal["immediate", "delayed", "on-event"] = "immediate"
    restore_previous: bool = False

    @property
    def target(self) -> Optional[str]:
        return self.selector


class AriaStateChange(ActionBase):
    kind: Literal["aria-state-change"] = "aria-state-change"
    selector: str
    attribute: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    update_count: int = 1

    @property
    def target(self) -> Optional[str]:
        return self.selector


class DomManipulation(ActionBase):
    kind: Literal["dom-manipulation"] = "dom-manipulation"
    operation: Literal["add", "remove", "setAttribute"]
    selector: str
    attribute: Optional[str] = None
    value: Optional[str] = None
    affects_focus: bool = False

    @property
    def target(self) -> Optional[str]:
        return self.selector


class TabIndexChange(ActionBase):
    kind: Literal["tabindex-change"] = "tabindex-change"
    selector: str
    value: int

    @property
    def target(self) -> Optional[str]:
        return self.selector


class Block(ActionBase):
    """Control-structure container (function body, conditional branch, loop)."""
    kind: Literal["block"] = "block"
    block_kind: Literal["function", "conditional", "loop"] = "function"
    label: str = ""


ActionNode = Annotated[
    Union[EventHandler, FocusChange, AriaStateChange, DomManipulation, TabIndexChange, Block],
    Field(discriminator="kind"),
]

for _model in (ActionBase, EventHandler, FocusChange, AriaStateChange, DomManipulation, TabIndexChange, Block):
    _model.model_rebuild()


def walk(nodes, ancestors: Tuple[ActionBase, ...] = ()) -> Iterator[Tuple[ActionBase, Tuple[ActionBase, ...]]]:
    """
    Depth-first, pre-order traversal.
    Yields (node, ancestors) so callers keep the control-structure context.
    """
    for node in nodes:
        yield node, ancestors
        if node.children:
            yield from walk(node.children, ancestors + (node,))
