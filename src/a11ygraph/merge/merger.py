# src/a11ygraph/merge/merger.py
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..behavior.nodes import ActionBase, EventHandler, walk
from ..dom.core import DOMElement, DOMFragment
from ..dom.index import SelectorIndex
from ..dom.models import MarkupDocument
from ..dom.selectors import parse_selector
from ..errors import MalformedSelectorError
from ..model import CATEGORY_STRUCTURAL, ElementRef, Finding, SourceLocation
from ..sources import DocumentModel
from ..style.model import StyleRule, parse_declarations
from .context import ElementContext, build_context

logger = logging.getLogger(__name__)

# Targets bound to the document scope rather than to an element
GLOBAL_TARGETS = {"document", "window", "document.body", "body"}


def structural_finding(
        issue_type: str, message: str, location: SourceLocation,
        element: Optional[ElementRef] = None, severity: str = "warning", wcag: Sequence[str] = (),
) -> Finding:
    return Finding(
        issue_type=issue_type,
        category=CATEGORY_STRUCTURAL,
        severity=severity,
        wcag=list(wcag),
        message=message,
        element=element,
        locations=[location],
    )


class DocumentGraph:
    """
    The merged, read-only view analyzers query.

    Owns three flat arenas (elements, actions, rules) plus one ElementContext
    per element. Cross references are arena positions only.
    """

    def __init__(
            self,
            model: DocumentModel,
            index: SelectorIndex,
            actions: Tuple[ActionBase, ...],
            rules: Tuple[StyleRule, ...],
            contexts: Tuple[ElementContext, ...],
            rule_matches: Tuple[Tuple[int, ...], ...],
            global_actions: Tuple[int, ...],
            findings: Tuple[Finding, ...],
            resolved: int,
            unresolved: int,
            degraded: bool = False,
    ):
        self.model = model
        self.index = index
        self.actions = actions
        self.rules = rules
        self.contexts = contexts
        self.rule_matches = rule_matches
        self.global_actions = global_actions
        self.findings = findings
        self.resolved = resolved
        self.unresolved = unresolved
        self.degraded = degraded

    @property
    def elements(self) -> Tuple[DOMElement, ...]:
        return self.index.elements

    @property
    def fragment_count(self) -> int:
        return len(self.index.fragments)

    def element(self, position: int) -> DOMElement:
        return self.index.elements[position]

    def context(self, position: int) -> ElementContext:
        return self.contexts[position]

    def position_of(self, element: DOMElement) -> int:
        return self.index.position(element)

    def ref(self, position: int) -> ElementRef:
        el = self.elements[position]
        return ElementRef(fragment_id=el.fragment_id, node_id=el.node_id, tag=el.tag)

    def handlers(self, position: int, *events: str) -> List[EventHandler]:
        ctx = self.contexts[position]
        ids = ctx.handler_ids(*events) if events else [i for ids in ctx.handlers_by_event.values() for i in ids]
        return [self.actions[i] for i in ids]

    def attached_actions(self, position: int) -> List[ActionBase]:
        return [self.actions[i] for i in self.contexts[position].actions]

    def global_handlers(self) -> List[EventHandler]:
        return [self.actions[i] for i in self.global_actions if isinstance(self.actions[i], EventHandler)]

    def ancestors(self, position: int) -> List[int]:
        """Arena positions of the element's ancestors, nearest first."""
        result = []
        parent = self.index.parent(self.elements[position])
        while parent is not None:
            result.append(self.index.position(parent))
            parent = self.index.parent(parent)
        return result

    def descendants(self, position: int) -> List[int]:
        el = self.elements[position]
        fragment = self.index.fragments[el.fragment_id]
        result = []
        stack = list(reversed(fragment.children_of(el)))
        while stack:
            child = stack.pop()
            result.append(self.index.position(child))
            stack.extend(reversed(fragment.children_of(child)))
        return result

    def select(self, selector: str) -> List[int]:
        """Raises MalformedSelectorError for unsupported syntax."""
        return self.index.select(selector)

    def serialize_contexts(self) -> List[Dict]:
        return [ctx.model_dump(mode="json") for ctx in self.contexts]


class CrossReferenceMerger:
    """
    Resolves behaviour targets and style selectors of a DocumentModel
    against its markup and derives one ElementContext per element.
    """

    def __init__(self, model: DocumentModel):
        self.model = model

    def merge(self) -> DocumentGraph:
        index = SelectorIndex(self.model.fragments)
        actions = tuple(node for behavior in self.model.behavior for node, _ in walk(behavior.nodes))
        rules = tuple(rule for sheet in self.model.styles for rule in sheet.rules)
        findings: List[Finding] = []

        attached: List[Dict[int, None]] = [dict() for _ in index.elements]
        global_actions: List[int] = []
        resolved = unresolved = 0

        for position, action in enumerate(actions):
            target = action.target
            if target is None:
                continue
            selector = target.strip()
            if selector.lower() in GLOBAL_TARGETS:
                global_actions.append(position)
                resolved += 1
                continue
            try:
                matched = index.select(selector)
            except MalformedSelectorError as e:
                unresolved += 1
                findings.append(structural_finding(
                    "malformed-selector",
                    f"Selector '{selector}' of {action.kind} cannot be parsed: {e.reason}",
                    action.location,
                ))
                continue
            if not matched:
                unresolved += 1
                findings.append(structural_finding(
                    "orphaned-handler",
                    f"{self._describe(action)} targets '{selector}', which matches no element",
                    action.location,
                ))
                continue
            resolved += 1
            if len(matched) > 1:
                logger.debug("Broadcasting %s to %d elements matching '%s'", action.node_id, len(matched), selector)
            for element_pos in matched:
                # Keyed by action position so repeated attachment is a no-op
                attached[element_pos].setdefault(position)

        rule_hits: List[List[Tuple[int, bool]]] = [[] for _ in index.elements]
        rule_matches: List[Tuple[int, ...]] = []
        for rule_pos, rule in enumerate(rules):
            if rule.selector_error is not None:
                rule_matches.append(())
                findings.append(structural_finding(
                    "malformed-selector",
                    f"Style rule selector '{rule.selector}' cannot be parsed: {rule.selector_error}",
                    rule.location,
                ))
                continue
            parsed = parse_selector(rule.selector.strip())
            hits = []
            for element_pos, el in enumerate(index.elements):
                condition = index.match_condition(parsed, el)
                if condition is not None:
                    rule_hits[element_pos].append((rule_pos, condition))
                    hits.append(element_pos)
            rule_matches.append(tuple(hits))

        contexts = []
        for element_pos, el in enumerate(index.elements):
            inline = parse_declarations(el.attrs.get("style")) if "style" in el.attrs else None
            contexts.append(build_context(
                element_pos,
                el.semantics,
                [(i, actions[i]) for i in sorted(attached[element_pos])],
                rule_hits[element_pos],
                rules,
                inline,
            ))

        logger.info("Merged %d elements, %d actions, %d rules (%d resolved, %d unresolved references)",
                    len(index.elements), len(actions), len(rules), resolved, unresolved)
        return DocumentGraph(
            model=self.model,
            index=index,
            actions=actions,
            rules=rules,
            contexts=tuple(contexts),
            rule_matches=tuple(rule_matches),
            global_actions=tuple(global_actions),
            findings=tuple(findings),
            resolved=resolved,
            unresolved=unresolved,
        )

    @staticmethod
    def _describe(action: ActionBase) -> str:
        if isinstance(action, EventHandler):
            return f"'{action.event}' handler"
        return action.kind.replace("-", " ").capitalize()


def degraded_graph(fragments: Sequence[DOMFragment] = ()) -> DocumentGraph:
    """
    View of one file's own fragments with no handlers and no rules attached.
    Used when no merged graph is available for the file under analysis.
    """
    markup = ()
    if fragments:
        markup = (MarkupDocument(source_file=fragments[0].source_file, fragments=tuple(fragments)),)
    graph = CrossReferenceMerger(DocumentModel(scope="single-file", markup=markup)).merge()
    graph.degraded = True
    return graph
