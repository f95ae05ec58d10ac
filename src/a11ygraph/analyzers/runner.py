# src/a11ygraph/analyzers/runner.py
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple

from ..model import Confidence, Diagnostic, Finding
from .core import Analyzer, AnalyzerContext
from .registry import AnalyzerRegistry

logger = logging.getLogger(__name__)

Outcome = Tuple[List[Finding], Optional[Diagnostic]]


def _run_one(analyzer: Analyzer, context: AnalyzerContext) -> Outcome:
    """Runs a single analyzer; a crash is contained and turned into a diagnostic."""
    try:
        findings = list(analyzer.analyze(context) or [])
        logger.debug("Analyzer '%s' produced %d finding(s)", analyzer.name, len(findings))
        return findings, None
    except Exception as e:
        logger.error("Analyzer '%s' failed: %s", analyzer.name, e, exc_info=True)
        return [], Diagnostic(kind="analyzer-failure", subject=analyzer.name, message=f"{type(e).__name__}: {e}")


def stamp_confidence(findings: Iterable[Finding], confidence: Confidence) -> List[Finding]:
    """Attaches the session confidence to findings that do not carry their own."""
    return [f if f.confidence is not None else f.model_copy(update={"confidence": confidence}) for f in findings]


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Stable sort on (file, line, column, issue_type); input order breaks remaining ties."""
    return sorted(findings, key=lambda f: f.sort_key())


class AnalyzerRunner:
    """
    Executes every analyzer of a registry against one context.

    Analyzers only read, so they may run on a thread pool. Results are
    collected in registry order and sorted afterwards; completion order
    never shows in the output.
    """

    def __init__(
            self,
            registry: AnalyzerRegistry,
            parallel: bool = True,
            workers: int = 4,
            progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        self.registry = registry
        self.parallel = parallel
        self.workers = max(1, int(workers))
        self.progress_callback = progress_callback

    def run(self, context: AnalyzerContext) -> Tuple[List[Finding], List[Diagnostic]]:
        analyzers = list(self.registry)
        total = len(analyzers)
        findings: List[Finding] = []
        diagnostics: List[Diagnostic] = []

        if self.parallel and total > 1:
            with ThreadPoolExecutor(max_workers=min(self.workers, total)) as executor:
                outcomes = executor.map(lambda a: _run_one(a, context), analyzers)
                self._collect(outcomes, total, findings, diagnostics)
        else:
            self._collect((_run_one(a, context) for a in analyzers), total, findings, diagnostics)

        return sort_findings(stamp_confidence(findings, context.confidence)), diagnostics

    def _collect(self, outcomes: Iterable[Outcome], total: int, findings: List[Finding], diagnostics: List[Diagnostic]):
        for i, (result, diagnostic) in enumerate(outcomes):
            if self.progress_callback:
                self.progress_callback(i + 1, total)
            findings.extend(result)
            if diagnostic is not None:
                diagnostics.append(diagnostic)
