# src/a11ygraph/analyzers/core.py
import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ..merge.completeness import CompletenessScore, degrade
from ..merge.merger import DocumentGraph, degraded_graph
from ..merge.relationships import RelationshipGraph, RelationshipResolver
from ..model import Confidence, ElementRef, Finding, Severity, SourceLocation
from ..sources import AnalysisScope, DocumentModel

logger = logging.getLogger(__name__)


def issue_codes(*codes: str):
    """
    Class decorator declaring which issue codes an analyzer can emit.
    The registry aggregates them for configuration and filtering.
    """
    def decorator(cls):
        cls.codes = tuple(codes)
        return cls
    return decorator


class AnalyzerContext:
    """
    What an analyzer gets to read.

    With a merged graph the analyzer sees everything; without one it falls back
    to a single-fragment view built from the file's own sources and must report
    lowered confidence.
    """

    def __init__(
            self,
            completeness: CompletenessScore,
            graph: Optional[DocumentGraph] = None,
            relationships: Optional[RelationshipGraph] = None,
            scope: AnalysisScope = "full-workspace",
            own_sources: Optional[DocumentModel] = None,
            degraded_factor: float = 0.5,
    ):
        self.completeness = completeness
        self.graph = graph
        self.scope = scope
        self.own_sources = own_sources or (graph.model if graph is not None else DocumentModel(scope=scope))
        self.degraded_factor = degraded_factor
        self._relationships = relationships
        self._fallback: Optional[DocumentGraph] = None
        self._lock = threading.Lock()

    @property
    def degraded(self) -> bool:
        return self.graph is None

    @property
    def confidence(self) -> Confidence:
        if self.degraded:
            return degrade(self.completeness, self.degraded_factor)
        return self.completeness.confidence()

    def view(self) -> DocumentGraph:
        """The merged graph, or the degraded view over the analyzed file's fragments."""
        if self.graph is not None:
            return self.graph
        with self._lock:
            if self._fallback is None:
                own = next((doc for doc in self.own_sources.markup if doc.fragments), None)
                self._fallback = degraded_graph(own.fragments if own is not None else ())
            return self._fallback

    def relationships(self) -> RelationshipGraph:
        if self._relationships is not None:
            return self._relationships
        view = self.view()
        with self._lock:
            if self._relationships is None:
                self._relationships = RelationshipResolver(view).resolve()
            return self._relationships


class Analyzer(ABC):
    """
    Base class for rule modules.

    Subclasses set the class attributes and implement analyze(). They must only
    read from the context; the same instance may run concurrently with others.
    """
    name: str = ""
    description: str = ""
    category: str = ""
    wcag: Tuple[str, ...] = ()
    severity: Severity = "warning"
    codes: Tuple[str, ...] = ()

    @abstractmethod
    def analyze(self, context: AnalyzerContext) -> List[Finding]:
        raise NotImplementedError

    def create_finding(
            self,
            context: AnalyzerContext,
            issue_type: str,
            message: str,
            locations: Sequence[SourceLocation],
            element: Optional[ElementRef] = None,
            severity: Optional[Severity] = None,
            wcag: Optional[Sequence[str]] = None,
            **extra,
    ) -> Finding:
        """Builds a finding with this analyzer's defaults. Degraded findings carry their lowered confidence."""
        return Finding(
            issue_type=issue_type,
            category=extra.pop("category", self.category),
            severity=severity or self.severity,
            wcag=list(self.wcag if wcag is None else wcag),
            message=message,
            element=element,
            locations=list(locations),
            confidence=context.confidence if context.degraded else None,
            analyzer=self.name,
            **extra,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
