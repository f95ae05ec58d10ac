# src/a11ygraph/merge/relationships.py
import logging
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..model import Finding
from .merger import DocumentGraph, structural_finding

logger = logging.getLogger(__name__)

# attribute -> relation name, in the order they are resolved
RELATION_ATTRIBUTES: Dict[str, str] = {
    "aria-labelledby": "labelledBy",
    "aria-describedby": "describedBy",
    "aria-controls": "controls",
    "aria-owns": "owns",
    "aria-activedescendant": "activeDescendant",
    "aria-errormessage": "errorMessage",
    "aria-details": "details",
    "aria-flowto": "flowTo",
}
ATTRIBUTE_FOR_RELATION = {v: k for k, v in RELATION_ATTRIBUTES.items()}


class Edge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: int
    relation: str
    target: int


class Unresolved(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: int
    relation: str
    missing_id: str


class RelationshipGraph(BaseModel):
    """Directed id-reference graph over element arena positions."""
    model_config = ConfigDict(frozen=True)

    edges: Tuple[Edge, ...] = ()
    unresolved: Tuple[Unresolved, ...] = ()
    findings: Tuple[Finding, ...] = ()

    @property
    def resolved_count(self) -> int:
        return len(self.edges)

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)

    def edges_from(self, source: int, relation: Optional[str] = None) -> List[Edge]:
        return [e for e in self.edges if e.source == source and (relation is None or e.relation == relation)]

    def edges_to(self, target: int, relation: Optional[str] = None) -> List[Edge]:
        return [e for e in self.edges if e.target == target and (relation is None or e.relation == relation)]

    def by_relation(self, relation: str) -> List[Edge]:
        return [e for e in self.edges if e.relation == relation]

    def unresolved_from(self, source: int) -> List[Unresolved]:
        return [u for u in self.unresolved if u.source == source]


class RelationshipResolver:
    """
    Resolves id-list relation attributes against one id map built from all fragments.
    Relationships may cross fragment boundaries.
    """

    def __init__(self, graph: DocumentGraph):
        self.graph = graph

    def build_id_map(self) -> Tuple[Dict[str, int], List[Finding]]:
        """First element in arena order owns a duplicated id."""
        id_map: Dict[str, int] = {}
        findings = []
        for position, el in enumerate(self.graph.elements):
            element_id = el.element_id
            if element_id is None:
                continue
            if element_id in id_map:
                first = self.graph.elements[id_map[element_id]]
                findings.append(structural_finding(
                    "duplicate-id",
                    f"id '{element_id}' on {el.describe()} is already used at {first.location}",
                    el.location,
                    element=self.graph.ref(position),
                    wcag=["4.1.1"],
                ))
                continue
            id_map[element_id] = position
        return id_map, findings

    def resolve(self) -> RelationshipGraph:
        id_map, findings = self.build_id_map()
        edges, unresolved = [], []

        for position, el in enumerate(self.graph.elements):
            for attribute, relation in RELATION_ATTRIBUTES.items():
                if attribute not in el.attrs:
                    continue
                for ref_id in el.attrs[attribute].split():
                    target = id_map.get(ref_id)
                    if target is not None:
                        edges.append(Edge(source=position, relation=relation, target=target))
                        continue
                    unresolved.append(Unresolved(source=position, relation=relation, missing_id=ref_id))
                    findings.append(structural_finding(
                        "broken-aria-reference",
                        f"{attribute}=\"{ref_id}\" on {el.describe()} references an id that does not exist",
                        el.location,
                        element=self.graph.ref(position),
                        severity="error",
                        wcag=["1.3.1", "4.1.2"],
                    ))

        logger.debug("Resolved %d relationship edges, %d dangling ids", len(edges), len(unresolved))
        return RelationshipGraph(edges=tuple(edges), unresolved=tuple(unresolved), findings=tuple(findings))


def label_text(graph: DocumentGraph, relationships: RelationshipGraph, position: int) -> str:
    """
    Text an element receives through aria-labelledby: the referenced elements'
    own and descendant text, joined in reference order.
    """
    parts = []
    for edge in relationships.edges_from(position, "labelledBy"):
        target = graph.element(edge.target)
        texts = [target.text] + [graph.element(d).text for d in graph.descendants(edge.target)]
        text = " ".join(t for t in texts if t)
        if text:
            parts.append(text)
    return " ".join(parts)
