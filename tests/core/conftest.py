# tests/core/conftest.py
import pytest

from a11ygraph.analyzers.registry import AnalyzerRegistry
from a11ygraph.behavior.model import ActionLanguageModel
from a11ygraph.behavior.nodes import AriaStateChange, EventHandler, FocusChange, TabIndexChange
from a11ygraph.dom.builder import MarkupBuilder
from a11ygraph.engine import SessionSettings
from a11ygraph.model import SourceLocation
from a11ygraph.style.model import Stylesheet, StyleRule


class SourceFactory:
    """Kleine helpers om Source Models op te bouwen zonder externe parsers."""

    def __init__(self):
        self.builder = MarkupBuilder()
        self._order = 0

    @staticmethod
    def loc(file: str, line: int = 1, column: int = 0) -> SourceLocation:
        return SourceLocation(file=file, line=line, column=column)

    def markup(self, file: str, html: str):
        return self.builder.parse_doc(file, html)

    def handler(self, node_id, event, selector, summary="", file="app.js", line=1):
        return EventHandler(node_id=node_id, event=event, selector=selector, summary=summary,
                            location=self.loc(file, line))

    def tabindex(self, node_id, selector, value, file="app.js", line=1):
        return TabIndexChange(node_id=node_id, selector=selector, value=value, location=self.loc(file, line))

    def aria(self, node_id, selector, attribute, value, file="app.js", line=1):
        return AriaStateChange(node_id=node_id, selector=selector, attribute=attribute, new_value=value,
                               location=self.loc(file, line))

    def focus(self, node_id, selector, restore_previous=False, file="app.js", line=1):
        return FocusChange(node_id=node_id, selector=selector, restore_previous=restore_previous,
                           location=self.loc(file, line))

    def behavior(self, file, *nodes):
        return ActionLanguageModel(source_file=file, nodes=tuple(nodes))

    def rule(self, node_id, selector, properties, file="app.css", line=1, order=None):
        if order is None:
            self._order += 1
            order = self._order
        return StyleRule(node_id=node_id, selector=selector, properties=properties, source_order=order,
                         location=self.loc(file, line))

    def sheet(self, file, *rules):
        return Stylesheet(source_file=file, rules=tuple(rules))


@pytest.fixture
def factory():
    """Een verse factory per test (source order begint opnieuw bij 1)."""
    return SourceFactory()


@pytest.fixture
def sequential_settings():
    """Sessie-instellingen zonder thread pool, zodat tests voorspelbaar blijven."""
    return SessionSettings(parallel=False)


@pytest.fixture
def full_registry():
    """Een registry met alle ingebouwde analyzers."""
    return AnalyzerRegistry().discover()
