# src/a11ygraph/engine.py
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .analyzers.core import AnalyzerContext
from .analyzers.registry import AnalyzerRegistry
from .analyzers.runner import AnalyzerRunner, sort_findings, stamp_confidence
from .behavior.model import ActionLanguageModel
from .dom.models import MarkupDocument
from .merge.completeness import CompletenessScore, CompletenessScorer, CompletenessSettings
from .merge.merger import CrossReferenceMerger
from .merge.relationships import RelationshipResolver
from .model import Diagnostic, Finding
from .sources import AnalysisScope, DocumentModel, SourceFailure
from .style.model import Stylesheet

logger = logging.getLogger(__name__)

Source = Union[MarkupDocument, ActionLanguageModel, Stylesheet, SourceFailure]


class SessionSettings(BaseModel):
    """Plain values a session runs with; read once from the ConfigManager."""
    model_config = ConfigDict(frozen=True)

    parallel: bool = True
    workers: int = Field(4, ge=1)
    degraded_confidence_factor: float = Field(0.5, ge=0.0, le=1.0)
    disabled_analyzers: Tuple[str, ...] = ()
    completeness: CompletenessSettings = Field(default_factory=CompletenessSettings)

    @classmethod
    def from_config(cls, config: Any) -> "SessionSettings":
        analysis = config.get_nested("analysis", {}) or {}
        return cls(
            parallel=analysis.get("parallel", True),
            workers=analysis.get("workers", 4),
            degraded_confidence_factor=analysis.get("degraded_confidence_factor", 0.5),
            disabled_analyzers=tuple(analysis.get("disabled_analyzers", ()) or ()),
            completeness=CompletenessSettings.from_config(config),
        )


class SessionResult(BaseModel):
    """What a session hands to reporting: always present, possibly empty."""
    model_config = ConfigDict(frozen=True)

    scope: AnalysisScope
    findings: Tuple[Finding, ...] = ()
    completeness: CompletenessScore
    diagnostics: Tuple[Diagnostic, ...] = ()
    degraded: bool = False

    def by_issue_type(self, issue_type: str) -> List[Finding]:
        return [f for f in self.findings if f.issue_type == issue_type]

    def by_analyzer(self, name: str) -> List[Finding]:
        return [f for f in self.findings if f.analyzer == name]


def scope_sources(sources: Sequence[Source], scope: AnalysisScope, focus: Iterable[str] = ()) -> List[Source]:
    """
    Picks the sources that take part in an analysis.

    single-file uses the first focus file only, fragment-set every focus file,
    full-workspace everything.
    """
    focus = list(focus)
    if scope == "full-workspace":
        return list(sources)
    if not focus:
        raise ValueError(f"Scope '{scope}' needs at least one focus file")
    wanted = set(focus[:1]) if scope == "single-file" else set(focus)
    return [s for s in sources if s.source_file in wanted]


class AnalysisSession:
    """
    One synchronous pass over an immutable snapshot:
    validate, index, merge, resolve, score, analyze.
    """

    def __init__(
            self,
            registry: Optional[AnalyzerRegistry] = None,
            settings: Optional[SessionSettings] = None,
            scope: AnalysisScope = "full-workspace",
            progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        self.settings = settings or SessionSettings()
        self.registry = registry if registry is not None else AnalyzerRegistry().discover(
            disabled=self.settings.disabled_analyzers)
        self.scope = scope
        self.progress_callback = progress_callback

    def run(self, sources: Iterable[Source]) -> SessionResult:
        model, diagnostics = DocumentModel.assemble(sources, scope=self.scope)
        return self.analyze(model, diagnostics)

    def analyze(self, model: DocumentModel, diagnostics: Sequence[Diagnostic] = ()) -> SessionResult:
        diagnostics = list(diagnostics)
        scorer = CompletenessScorer(self.settings.completeness)
        structural: List[Finding] = []
        context = None

        if model.scope != "single-file" and model.fragment_count > 0:
            try:
                graph = CrossReferenceMerger(model).merge()
                relationships = RelationshipResolver(graph).resolve()
                completeness = scorer.score(
                    graph.fragment_count,
                    graph.resolved + relationships.resolved_count,
                    graph.unresolved + relationships.unresolved_count,
                )
                context = AnalyzerContext(
                    completeness, graph=graph, relationships=relationships, scope=model.scope,
                    degraded_factor=self.settings.degraded_confidence_factor,
                )
                structural = list(graph.findings) + list(relationships.findings)
            except Exception as e:
                logger.error("Merge failed, falling back to single-fragment analysis: %s", e, exc_info=True)
                diagnostics.append(Diagnostic(kind="merge-failure", subject=model.scope, message=str(e)))

        if context is None:
            completeness = scorer.score(model.fragment_count, 0, 0)
            context = AnalyzerContext(
                completeness, scope=model.scope, own_sources=model,
                degraded_factor=self.settings.degraded_confidence_factor,
            )

        runner = AnalyzerRunner(
            self.registry,
            parallel=self.settings.parallel,
            workers=self.settings.workers,
            progress_callback=self.progress_callback,
        )
        findings, failures = runner.run(context)
        diagnostics.extend(failures)

        pooled = sort_findings(stamp_confidence(structural, context.confidence) + findings)
        logger.info("Session finished: %d finding(s), confidence %.2f (%s), %d diagnostic(s)",
                    len(pooled), context.confidence.score, context.confidence.band, len(diagnostics))
        return SessionResult(
            scope=model.scope,
            findings=tuple(pooled),
            completeness=context.completeness,
            diagnostics=tuple(diagnostics),
            degraded=context.degraded,
        )


def run_analysis(
        sources: Sequence[Source],
        scope: AnalysisScope = "full-workspace",
        focus: Iterable[str] = (),
        config: Any = None,
) -> SessionResult:
    """One-shot analysis with settings taken from the ConfigManager (or any object with get_nested)."""
    if config is None:
        from .managers.config_manager import config_manager as config
    settings = SessionSettings.from_config(config)
    return AnalysisSession(settings=settings, scope=scope).run(scope_sources(list(sources), scope, focus))
