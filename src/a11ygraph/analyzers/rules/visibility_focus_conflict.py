# src/a11ygraph/analyzers/rules/visibility_focus_conflict.py
from typing import List, Optional

from ..core import Analyzer, AnalyzerContext, issue_codes
from ...merge.merger import DocumentGraph
from ...model import CATEGORY_FOCUS, Finding, FixDescriptor


def aria_hidden_by(graph: DocumentGraph, position: int) -> Optional[int]:
    """The element itself or the nearest ancestor carrying aria-hidden="true"."""
    for candidate in [position] + graph.ancestors(position):
        if graph.element(candidate).attrs.get("aria-hidden", "").strip().lower() == "true":
            return candidate
    return None


@issue_codes("visibility-focus-conflict", "aria-hidden-focusable", "interactive-element-hidden")
class VisibilityFocusConflictAnalyzer(Analyzer):
    """
    Elements keyboard or assistive technology users can reach but not perceive:
    focusable elements hidden by style or by aria-hidden, and interactive
    elements removed from the accessibility tree.
    """
    name = "visibility-focus-conflict"
    description = "Element can receive focus or input while hidden"
    category = CATEGORY_FOCUS
    wcag = ("2.4.3", "4.1.2")
    severity = "warning"

    def analyze(self, context: AnalyzerContext) -> List[Finding]:
        graph = context.view()
        findings = []
        for position, ctx in enumerate(graph.contexts):
            el = graph.element(position)
            if ctx.focusable and ctx.hidden_by_style:
                findings.append(self._hidden_by_style(context, graph, position))

            hider = aria_hidden_by(graph, position)
            if hider is None:
                continue
            locations = [el.location]
            where = ""
            if hider != position:
                locations.append(graph.element(hider).location)
                where = f" inside {graph.element(hider).describe()}"

            if ctx.focusable:
                findings.append(self.create_finding(
                    context,
                    "aria-hidden-focusable",
                    f"{el.describe()} is focusable but aria-hidden=\"true\"{where}",
                    locations=locations,
                    element=graph.ref(position),
                    severity="error",
                    wcag=("4.1.2",),
                    fix=FixDescriptor(
                        action="add-attribute",
                        description="Remove the element from the tab order or drop aria-hidden",
                        location=el.location,
                        data={"attribute": "tabindex", "value": "-1"},
                    ),
                ))
            elif ctx.interactive:
                locations.extend(h.location for h in graph.handlers(position))
                findings.append(self.create_finding(
                    context,
                    "interactive-element-hidden",
                    f"Interactive {el.describe()} is aria-hidden=\"true\"{where}",
                    locations=locations,
                    element=graph.ref(position),
                    severity="error",
                    wcag=("4.1.2",),
                    fix=FixDescriptor(
                        action="remove-attribute",
                        description="Expose the control to assistive technology",
                        location=graph.element(hider).location,
                        data={"attribute": "aria-hidden"},
                    ),
                ))
        return findings

    def _hidden_by_style(self, context: AnalyzerContext, graph: DocumentGraph, position: int) -> Finding:
        el = graph.element(position)
        hiding = [graph.rules[m.rule] for m in graph.context(position).rules
                  if not m.conditional and ({"display", "visibility"} & set(graph.rules[m.rule].properties))]
        return self.create_finding(
            context,
            "visibility-focus-conflict",
            f"{el.describe()} is focusable but hidden by style",
            locations=[el.location] + [r.location for r in hiding[:1]],
            element=graph.ref(position),
            fix=FixDescriptor(
                action="add-attribute",
                description="Remove the element from the tab order while it is hidden",
                location=el.location,
                data={"attribute": "tabindex", "value": "-1"},
            ),
        )


ANALYZER = VisibilityFocusConflictAnalyzer()
