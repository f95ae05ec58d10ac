# src/a11ygraph/controllers/analysis_controller.py
import logging
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from a11ygraph.analyzers.registry import AnalyzerRegistry
from a11ygraph.engine import AnalysisSession, SessionResult, SessionSettings, Source, scope_sources
from a11ygraph.errors import AnalysisCancelled
from a11ygraph.sources import AnalysisScope, DocumentModel

logger = logging.getLogger(__name__)


class AnalysisController:
    """
    Keeps the current set of Source Models and runs analyses over snapshots of it.

    Every change bumps a generation counter. A run that notices a newer
    generation throws its work away and starts again from a fresh snapshot,
    so callers never see results built from a mix of old and new sources.
    """

    def __init__(
            self,
            settings: Optional[SessionSettings] = None,
            registry: Optional[AnalyzerRegistry] = None,
            scope: AnalysisScope = "full-workspace",
            focus: Iterable[str] = (),
            show_progress: bool = False,
            max_restarts: int = 5,
    ):
        self.settings = settings or SessionSettings()
        self.registry = registry if registry is not None else AnalyzerRegistry().discover(
            disabled=self.settings.disabled_analyzers)
        self.scope: AnalysisScope = scope
        self.focus: List[str] = list(focus)
        self.show_progress = show_progress
        self.max_restarts = max_restarts

        self._sources: Dict[str, Source] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def update(self, *sources: Source) -> int:
        """Adds or replaces sources (keyed by file). Returns the new generation."""
        with self._lock:
            for source in sources:
                self._sources[source.source_file] = source
            self._generation += 1
            logger.debug("Sources updated (%d file(s)), generation %d", len(sources), self._generation)
            return self._generation

    def remove(self, source_file: str) -> bool:
        with self._lock:
            if self._sources.pop(source_file, None) is None:
                return False
            self._generation += 1
            return True

    def set_scope(self, scope: AnalysisScope, focus: Sequence[str] = ()) -> None:
        with self._lock:
            self.scope = scope
            self.focus = list(focus)
            self._generation += 1

    def snapshot(self) -> Tuple[int, List[Source]]:
        with self._lock:
            return self._generation, list(self._sources.values())

    def run(self) -> SessionResult:
        """
        Analyzes the current sources.

        Raises:
            AnalysisCancelled: when the sources changed on every attempt.
        """
        for _ in range(self.max_restarts + 1):
            generation, sources = self.snapshot()
            try:
                return self._run_generation(generation, sources)
            except AnalysisCancelled:
                logger.info("Sources changed during analysis (generation %d), restarting", generation)
        raise AnalysisCancelled(f"Sources kept changing; gave up after {self.max_restarts + 1} attempts")

    def _check(self, generation: int) -> None:
        if self.generation != generation:
            raise AnalysisCancelled(f"Generation {generation} superseded by {self.generation}")

    def _run_generation(self, generation: int, sources: List[Source]) -> SessionResult:
        selected = scope_sources(sources, self.scope, self.focus)
        model, diagnostics = DocumentModel.assemble(selected, scope=self.scope)
        self._check(generation)

        with tqdm(total=len(self.registry), desc="Analyzing", unit="rule", disable=not self.show_progress) as bar:
            def on_progress(done: int, total: int) -> None:
                bar.update(1)
                self._check(generation)

            session = AnalysisSession(
                registry=self.registry, settings=self.settings, scope=self.scope, progress_callback=on_progress,
            )
            result = session.analyze(model, diagnostics)

        self._check(generation)
        return result
