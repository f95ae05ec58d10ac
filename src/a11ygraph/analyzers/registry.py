# src/a11ygraph/analyzers/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, Iterable, Iterator, List, Optional

from .core import Analyzer

logger = logging.getLogger(__name__)

RULES_PACKAGE = "a11ygraph.analyzers.rules"


class AnalyzerRegistry:
    """
    Ordered set of analyzers for one session.

    Built-in rule modules are found in 'a11ygraph.analyzers.rules': every module
    exposing an `ANALYZER` instance is registered. Registries are plain values;
    two sessions never share one unless the caller passes it to both.
    """

    def __init__(self, analyzers: Iterable[Analyzer] = ()):
        self._analyzers: Dict[str, Analyzer] = {}
        for analyzer in analyzers:
            self.register(analyzer)

    def register(self, analyzer: Analyzer) -> None:
        if not isinstance(analyzer, Analyzer):
            raise TypeError(f"Expected an Analyzer, got {type(analyzer).__name__}")
        if not analyzer.name:
            raise ValueError(f"{type(analyzer).__name__} has no name")
        if analyzer.name in self._analyzers:
            raise ValueError(f"Analyzer '{analyzer.name}' is already registered")
        self._analyzers[analyzer.name] = analyzer

    def unregister(self, name: str) -> bool:
        return self._analyzers.pop(name, None) is not None

    def get(self, name: str) -> Optional[Analyzer]:
        return self._analyzers.get(name)

    def names(self) -> List[str]:
        return list(self._analyzers)

    def __iter__(self) -> Iterator[Analyzer]:
        return iter(list(self._analyzers.values()))

    def __len__(self) -> int:
        return len(self._analyzers)

    def __contains__(self, name: str) -> bool:
        return name in self._analyzers

    def discover(self, package: str = RULES_PACKAGE, disabled: Iterable[str] = ()) -> "AnalyzerRegistry":
        """
        Imports every module of `package` and registers its `ANALYZER`.
        Modules are visited in name order so registration order is stable.
        """
        skip = set(disabled)
        rules_pkg = importlib.import_module(package)

        for _, name, _ in sorted(pkgutil.iter_modules(rules_pkg.__path__), key=lambda m: m[1]):
            full_name = f"{package}.{name}"
            try:
                module = importlib.import_module(full_name)
            except Exception as e:
                logger.error("Error loading analyzer module %s: %s", full_name, e, exc_info=True)
                continue
            analyzer = getattr(module, "ANALYZER", None)
            if not isinstance(analyzer, Analyzer):
                continue
            if analyzer.name in skip:
                logger.info("Analyzer '%s' disabled by configuration", analyzer.name)
                continue
            if analyzer.name not in self._analyzers:
                self.register(analyzer)
                logger.debug("Analyzer loaded: %s", analyzer.name)
        return self

    def get_all_possible_codes(self) -> List[str]:
        """Every issue code the registered analyzers can emit, sorted."""
        codes = set()
        for analyzer in self._analyzers.values():
            codes.update(analyzer.codes)
        return sorted(codes)
