# src/a11ygraph/analyzers/rules/mouse_only_click.py
import logging
from typing import Dict, List

from ..core import Analyzer, AnalyzerContext, issue_codes
from ...behavior.nodes import EventHandler
from ...dom.selectors import exact_key
from ...merge.context import KEYBOARD_ACTIVATION_EVENTS
from ...model import CATEGORY_KEYBOARD, Finding, FixDescriptor

logger = logging.getLogger(__name__)

# Bare tag selectors that can only match natively operable controls
NATIVE_CONTROL_TAGS = {"button", "select", "textarea", "summary"}


def _keyboard_fix(target: str, location) -> FixDescriptor:
    return FixDescriptor(
        action="add-event-handler",
        description="Handle Enter and Space in a keydown handler that triggers the same action as the click",
        target=target,
        location=location,
        data={"event": "keydown", "keys": ["Enter", " "]},
    )


@issue_codes("mouse-only-click")
class MouseOnlyClickAnalyzer(Analyzer):
    """Click handlers on elements that cannot be operated with the keyboard."""
    name = "mouse-only-click"
    description = "Element reacts to click but has no keydown/keypress handler"
    category = CATEGORY_KEYBOARD
    wcag = ("2.1.1",)
    severity = "warning"

    def analyze(self, context: AnalyzerContext) -> List[Finding]:
        if context.degraded:
            return self._analyze_behavior(context)

        graph = context.view()
        findings = []
        for position, ctx in enumerate(graph.contexts):
            if not ctx.has_click_handler or ctx.has_keyboard_handler:
                continue
            el = graph.element(position)
            if el.semantics.native_control:
                continue
            clicks = graph.handlers(position, "click")
            extra_roles = "" if ctx.role else " and an interactive role such as button"
            findings.append(self.create_finding(
                context,
                "mouse-only-click",
                f"{el.describe()} has a click handler but no keyboard handler{extra_roles}",
                locations=[el.location] + [h.location for h in clicks],
                element=graph.ref(position),
                fix=_keyboard_fix(clicks[0].selector, el.location),
            ))
        return findings

    def _analyze_behavior(self, context: AnalyzerContext) -> List[Finding]:
        """Without markup, handlers sharing a selector stand in for one element."""
        by_selector: Dict[str, List[EventHandler]] = {}
        for behavior in context.own_sources.behavior:
            for handler in behavior.event_handlers():
                by_selector.setdefault(handler.selector.strip(), []).append(handler)

        findings = []
        for selector, handlers in by_selector.items():
            events = {h.event for h in handlers}
            if "click" not in events or events.intersection(KEYBOARD_ACTIVATION_EVENTS):
                continue
            if exact_key(selector) in NATIVE_CONTROL_TAGS:
                continue
            clicks = [h for h in handlers if h.event == "click"]
            findings.append(self.create_finding(
                context,
                "mouse-only-click",
                f"Click handler on '{selector}' has no keyboard equivalent",
                locations=[h.location for h in clicks],
                fix=_keyboard_fix(selector, clicks[0].location),
            ))
        return findings


ANALYZER = MouseOnlyClickAnalyzer()
