# src/a11ygraph/analyzers/rules/widget_patterns.py
"""
Composite widget validation against the WAI-ARIA Authoring Practices.

Runs in four phases:
  1. collect elements by role (explicit or implicit) across all fragments
  2. check required sub-roles, states, keyboard keys and focus handling per detected pattern
  3. check the pattern's id references through the relationship graph
  4. emit one finding per missing sub-feature

States and roles count when markup declares them or script sets them.
Key detection scans handler summaries for key names. It is a text heuristic,
not control-flow analysis, and misses keys handled through indirection.
"""
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict

from ..core import Analyzer, AnalyzerContext, issue_codes
from ...behavior.nodes import KEYBOARD_EVENTS, AriaStateChange, DomManipulation, FocusChange
from ...merge.merger import DocumentGraph
from ...merge.relationships import ATTRIBUTE_FOR_RELATION, RelationshipGraph
from ...model import CATEGORY_WIDGET, Finding, FixDescriptor

logger = logging.getLogger(__name__)

SUB_FEATURE_ORDER = (
    "missing-role", "missing-state", "missing-keyboard", "missing-focus-management", "unresolved-reference",
)


class PatternReference(BaseModel):
    """An id reference the pattern needs: `owner` (a role, or any element) -> `target` role."""
    model_config = ConfigDict(frozen=True)

    relation: str
    owner: Optional[str] = None
    target: Optional[str] = None

    @property
    def attribute(self) -> str:
        return ATTRIBUTE_FOR_RELATION[self.relation]


class WidgetPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    triggers: Tuple[str, ...]
    roles: Tuple[str, ...] = ()
    states: Tuple[str, ...] = ()
    keys: Tuple[str, ...] = ()
    references: Tuple[PatternReference, ...] = ()
    focus_management: bool = False  # focus must move into the widget or return to its trigger


def _ref(relation: str, owner: Optional[str] = None, target: Optional[str] = None) -> PatternReference:
    return PatternReference(relation=relation, owner=owner, target=target)


PATTERNS: Dict[str, WidgetPattern] = {p.name: p for p in (
    WidgetPattern(name="alertdialog", title="Alert Dialog", triggers=("alertdialog",),
                  roles=("alertdialog",), keys=("Tab", "Escape"),
                  focus_management=True,
                  references=(_ref("labelledBy", "alertdialog"), _ref("describedBy", "alertdialog"))),
    WidgetPattern(name="checkbox", title="Checkbox", triggers=("checkbox",),
                  roles=("checkbox",), states=("aria-checked",), keys=("Space",)),
    WidgetPattern(name="combobox", title="Combobox", triggers=("combobox",),
                  roles=("combobox", "listbox"), states=("aria-expanded",),
                  keys=("ArrowDown", "ArrowUp", "Enter", "Escape"),
                  references=(_ref("controls", "combobox", "listbox"),)),
    WidgetPattern(name="dialog", title="Dialog (Modal)", triggers=("dialog",),
                  roles=("dialog",), keys=("Tab", "Escape"),
                  focus_management=True,
                  references=(_ref("labelledBy", "dialog"),)),
    WidgetPattern(name="grid", title="Grid", triggers=("grid",),
                  roles=("grid", "row", "gridcell"),
                  keys=("ArrowRight", "ArrowLeft", "ArrowDown", "ArrowUp")),
    WidgetPattern(name="listbox", title="Listbox", triggers=("listbox",),
                  roles=("listbox", "option"), states=("aria-selected",), keys=("ArrowDown", "ArrowUp")),
    WidgetPattern(name="menu", title="Menu", triggers=("menu", "menubar"),
                  roles=("menuitem",), keys=("ArrowDown", "ArrowUp", "Enter", "Escape")),
    WidgetPattern(name="radiogroup", title="Radio Group", triggers=("radiogroup",),
                  roles=("radiogroup", "radio"), states=("aria-checked",),
                  keys=("ArrowDown", "ArrowUp", "ArrowRight", "ArrowLeft")),
    WidgetPattern(name="slider", title="Slider", triggers=("slider",),
                  roles=("slider",), states=("aria-valuenow", "aria-valuemin", "aria-valuemax"),
                  keys=("ArrowRight", "ArrowLeft", "ArrowUp", "ArrowDown")),
    WidgetPattern(name="spinbutton", title="Spinbutton", triggers=("spinbutton",),
                  roles=("spinbutton",), states=("aria-valuenow", "aria-valuemin", "aria-valuemax"),
                  keys=("ArrowUp", "ArrowDown")),
    WidgetPattern(name="switch", title="Switch", triggers=("switch",),
                  roles=("switch",), states=("aria-checked",), keys=("Space",)),
    WidgetPattern(name="tabs", title="Tabs", triggers=("tablist", "tab"),
                  roles=("tablist", "tab", "tabpanel"), states=("aria-selected",),
                  keys=("ArrowRight", "ArrowLeft"),
                  references=(_ref("controls", "tab", "tabpanel"),)),
    WidgetPattern(name="toolbar", title="Toolbar", triggers=("toolbar",),
                  roles=("toolbar",), keys=("ArrowRight", "ArrowLeft")),
    WidgetPattern(name="tooltip", title="Tooltip", triggers=("tooltip",),
                  roles=("tooltip",), keys=("Escape",),
                  references=(_ref("describedBy", None, "tooltip"),)),
    WidgetPattern(name="treeview", title="Tree View", triggers=("tree",),
                  roles=("tree", "treeitem"), states=("aria-expanded",),
                  keys=("ArrowDown", "ArrowUp", "ArrowRight", "ArrowLeft", "Enter")),
)}

# Spellings found in handler code for each canonical key name
KEY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "Enter": ("Enter",),
    "Space": ("Space", "Spacebar", "' '", '" "', "` `"),
    "Escape": ("Escape", "Esc"),
    "Tab": ("Tab",),
    "ArrowUp": ("ArrowUp", "Up"),
    "ArrowDown": ("ArrowDown", "Down"),
    "ArrowLeft": ("ArrowLeft", "Left"),
    "ArrowRight": ("ArrowRight", "Right"),
    "Home": ("Home",),
    "End": ("End",),
    "PageUp": ("PageUp",),
    "PageDown": ("PageDown",),
}
KEY_CODES = {
    9: "Tab", 13: "Enter", 27: "Escape", 32: "Space", 33: "PageUp", 34: "PageDown",
    35: "End", 36: "Home", 37: "ArrowLeft", 38: "ArrowUp", 39: "ArrowRight", 40: "ArrowDown",
}
_KEY_CODE_RE = re.compile(r"(?:keyCode|which|charCode)\s*(?:===?|==)\s*(\d+)|case\s+(\d+)\s*:")
_ALIAS_RES = {
    key: [re.compile(re.escape(a)) if not a[0].isalpha() else re.compile(rf"(?<![A-Za-z]){re.escape(a)}(?![A-Za-z])")
          for a in aliases]
    for key, aliases in KEY_ALIASES.items()
}


def scripted_attributes(graph: DocumentGraph, position: int) -> Dict[str, List[Optional[str]]]:
    """Attributes script sets on an element, with the values it assigns."""
    found: Dict[str, List[Optional[str]]] = {}
    for action in graph.attached_actions(position):
        if isinstance(action, AriaStateChange):
            found.setdefault(action.attribute.strip().lower(), []).append(action.new_value)
        elif isinstance(action, DomManipulation) and action.operation == "setAttribute" and action.attribute:
            found.setdefault(action.attribute.strip().lower(), []).append(action.value)
    return found


def detect_keys(summary: str) -> Set[str]:
    """Canonical key names mentioned in a handler summary."""
    found = {key for key, patterns in _ALIAS_RES.items() if any(p.search(summary) for p in patterns)}
    for match in _KEY_CODE_RE.finditer(summary):
        code = int(match.group(1) or match.group(2))
        if code in KEY_CODES:
            found.add(KEY_CODES[code])
    return found


@issue_codes("incomplete-widget-pattern")
class WidgetPatternAnalyzer(Analyzer):
    name = "widget-pattern"
    description = "Composite widgets missing roles, states, keyboard support, focus handling or references"
    category = CATEGORY_WIDGET
    wcag = ("4.1.2",)
    severity = "error"

    def __init__(self, patterns: Optional[Dict[str, WidgetPattern]] = None):
        self.patterns = patterns or PATTERNS

    def analyze(self, context: AnalyzerContext) -> List[Finding]:
        graph = context.view()
        relationships = context.relationships()

        # Phase 1
        by_role = self.collect_roles(graph)
        findings: List[Finding] = []

        for name in sorted(self.patterns):
            pattern = self.patterns[name]
            anchors = self.detect(graph, pattern, by_role)
            if not anchors:
                continue
            members = sorted({p for role in pattern.roles + pattern.triggers for p in by_role.get(role, [])})
            anchor = anchors[0]

            # Phase 2
            missing_roles = [r for r in pattern.roles if not by_role.get(r)]
            present = self.present_attributes(graph, members)
            missing_states = [s for s in pattern.states if s not in present]
            missing_keys = []
            missing_focus = False
            if not context.degraded:
                handled = self.handled_keys(graph, members)
                missing_keys = [k for k in pattern.keys if k not in handled]
                missing_focus = pattern.focus_management and not self.manages_focus(graph, anchors)

            # Phase 3
            broken_refs = [ref for ref in pattern.references
                           if not self.reference_satisfied(relationships, ref, by_role)]

            # Phase 4
            for role in missing_roles:
                findings.append(self._finding(context, graph, pattern, anchor, "missing-role",
                                              f"{pattern.title} pattern has no element with role '{role}'",
                                              FixDescriptor(action="add-element",
                                                            description=f"Add an element with role=\"{role}\"",
                                                            data={"role": role})))
            for state in missing_states:
                findings.append(self._finding(context, graph, pattern, anchor, "missing-state",
                                              f"{pattern.title} pattern never sets '{state}'",
                                              FixDescriptor(action="add-attribute",
                                                            description=f"Set {state} on the {pattern.title} elements",
                                                            data={"attribute": state})))
            if missing_keys:
                keys = ", ".join(missing_keys)
                findings.append(self._finding(context, graph, pattern, anchor, "missing-keyboard",
                                              f"{pattern.title} pattern does not handle required key(s): {keys}",
                                              FixDescriptor(action="add-event-handler",
                                                            description=f"Handle {keys} in a keydown handler",
                                                            data={"event": "keydown", "keys": missing_keys}),
                                              severity="warning", wcag=("2.1.1",)))
            if missing_focus:
                findings.append(self._finding(context, graph, pattern, anchor, "missing-focus-management",
                                              f"{pattern.title} pattern never moves focus into the widget "
                                              f"or back to its trigger",
                                              FixDescriptor(action="add-focus-change",
                                                            description="Focus the first focusable element on open "
                                                                        "and restore focus on close",
                                                            data={"restore_previous": True}),
                                              severity="warning", wcag=("2.4.3",)))
            for ref in broken_refs:
                target = f" to a '{ref.target}' element" if ref.target else ""
                owner = f"a '{ref.owner}' element" if ref.owner else "an element"
                findings.append(self._finding(context, graph, pattern, anchor, "unresolved-reference",
                                              f"{pattern.title} pattern needs {owner} with {ref.attribute} "
                                              f"resolving{target}",
                                              FixDescriptor(action="add-attribute",
                                                            description=f"Point {ref.attribute} at an existing id",
                                                            data={"attribute": ref.attribute,
                                                                  "target_role": ref.target}),
                                              wcag=("1.3.1", "4.1.2")))
        return findings

    @staticmethod
    def collect_roles(graph: DocumentGraph) -> Dict[str, List[int]]:
        """Elements per role, counting roles assigned by script as well as declared ones."""
        by_role: Dict[str, List[int]] = {}
        for position, ctx in enumerate(graph.contexts):
            roles = {ctx.role} if ctx.role else set()
            scripted = scripted_attributes(graph, position).get("role", [])
            roles.update(v.split()[0].lower() for v in scripted if v and v.strip())
            for role in sorted(roles):
                by_role.setdefault(role, []).append(position)
        return by_role

    @staticmethod
    def present_attributes(graph: DocumentGraph, members: List[int]) -> Set[str]:
        present: Set[str] = set()
        for position in members:
            present.update(graph.element(position).attrs)
            present.update(scripted_attributes(graph, position))
        return present

    @staticmethod
    def manages_focus(graph: DocumentGraph, anchors: List[int]) -> bool:
        """Focus is moved onto or inside the widget, or restored to where it came from."""
        if any(isinstance(a, FocusChange) and a.restore_previous for a in graph.actions):
            return True
        scope = set(anchors)
        for position in anchors:
            scope.update(graph.descendants(position))
        return any(isinstance(a, FocusChange) for p in sorted(scope) for a in graph.attached_actions(p))

    @staticmethod
    def detect(graph: DocumentGraph, pattern: WidgetPattern, by_role: Dict[str, List[int]]) -> List[int]:
        """Elements that establish the pattern; native controls already behave correctly."""
        anchors = set()
        for role in pattern.triggers:
            for position in by_role.get(role, []):
                if not graph.element(position).semantics.native_control:
                    anchors.add(position)
        return sorted(anchors)

    @staticmethod
    def handled_keys(graph: DocumentGraph, members: List[int]) -> Set[str]:
        """Keys handled on pattern elements, on their ancestors (delegation) or on the document."""
        scope = set(members)
        for position in members:
            scope.update(graph.ancestors(position))
        handlers = [h for p in sorted(scope) for h in graph.handlers(p, *KEYBOARD_EVENTS)]
        handlers.extend(h for h in graph.global_handlers() if h.is_keyboard)
        keys: Set[str] = set()
        for handler in handlers:
            keys.update(detect_keys(handler.summary))
        return keys

    @staticmethod
    def reference_satisfied(
            relationships: RelationshipGraph, ref: PatternReference, by_role: Dict[str, List[int]]
    ) -> bool:
        owners = set(by_role.get(ref.owner, ())) if ref.owner is not None else None
        targets = set(by_role.get(ref.target, ())) if ref.target is not None else None
        for edge in relationships.by_relation(ref.relation):
            if owners is not None and edge.source not in owners:
                continue
            if targets is not None and edge.target not in targets:
                continue
            return True
        return False

    def _finding(self, context, graph, pattern, anchor, sub_feature, message, fix, severity=None, wcag=None):
        el = graph.element(anchor)
        return self.create_finding(
            context,
            "incomplete-widget-pattern",
            message,
            locations=[el.location],
            element=graph.ref(anchor),
            severity=severity,
            wcag=wcag,
            sub_feature=sub_feature,
            pattern=pattern.name,
            fix=fix.model_copy(update={"location": el.location}),
        )


ANALYZER = WidgetPatternAnalyzer()
