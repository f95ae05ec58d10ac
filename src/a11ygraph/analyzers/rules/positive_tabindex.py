# src/a11ygraph/analyzers/rules/positive_tabindex.py
from typing import List

from ..core import Analyzer, AnalyzerContext, issue_codes
from ...behavior.nodes import TabIndexChange
from ...model import CATEGORY_FOCUS, Finding


@issue_codes("positive-tabindex")
class PositiveTabindexAnalyzer(Analyzer):
    name = "positive-tabindex"
    description = "tabindex greater than 0 overrides the natural focus order"
    category = CATEGORY_FOCUS
    wcag = ("2.4.3",)
    severity = "warning"

    def analyze(self, context: AnalyzerContext) -> List[Finding]:
        graph = context.view()
        findings = []
        for position, el in enumerate(graph.elements):
            tabindex = el.semantics.tabindex
            scripted = [a for a in graph.attached_actions(position) if isinstance(a, TabIndexChange) and a.value > 0]
            if tabindex is not None and tabindex > 0:
                findings.append(self.create_finding(
                    context,
                    "positive-tabindex",
                    f"{el.describe()} declares tabindex=\"{tabindex}\"",
                    locations=[el.location],
                    element=graph.ref(position),
                ))
            for change in scripted:
                findings.append(self.create_finding(
                    context,
                    "positive-tabindex",
                    f"Script sets tabindex={change.value} on {el.describe()}",
                    locations=[change.location, el.location],
                    element=graph.ref(position),
                ))
        return findings


ANALYZER = PositiveTabindexAnalyzer()
