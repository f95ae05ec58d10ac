# tests/core/test_merger.py
import pytest

from a11ygraph.behavior.nodes import AriaStateChange, Block
from a11ygraph.merge.merger import CrossReferenceMerger, degraded_graph
from a11ygraph.model import CATEGORY_STRUCTURAL
from a11ygraph.sources import DocumentModel


def merge(*sources):
    model, diagnostics = DocumentModel.assemble(sources)
    assert diagnostics == []
    return CrossReferenceMerger(model).merge()


def test_handler_attaches_to_matching_element(factory):
    graph = merge(
        factory.markup("p.html", '<div><span id="go">Go</span></div>'),
        factory.behavior("app.js", factory.handler("h1", "onClick", "#go")),
    )
    position = graph.select("#go")[0]
    ctx = graph.context(position)

    assert ctx.handlers_by_event == {"click": (0,)}
    assert ctx.has_click_handler and not ctx.has_keyboard_handler
    assert ctx.interactive
    assert graph.resolved == 1 and graph.unresolved == 0
    assert graph.findings == ()


def test_orphaned_handler_is_a_finding_not_an_error(factory):
    """Een selector zonder match levert een structurele finding op en de merge gaat door."""
    graph = merge(
        factory.markup("p.html", "<div>x</div>"),
        factory.behavior("app.js",
                         factory.handler("h1", "click", "#missing", line=4),
                         factory.handler("h2", "click", "div", line=9)),
    )

    assert [f.issue_type for f in graph.findings] == ["orphaned-handler"]
    finding = graph.findings[0]
    assert finding.category == CATEGORY_STRUCTURAL
    assert finding.location.line == 4
    assert "#missing" in finding.message
    assert graph.resolved == 1 and graph.unresolved == 1
    assert graph.context(0).has_click_handler


def test_malformed_selector_counts_as_unresolved(factory):
    graph = merge(
        factory.markup("p.html", "<div>x</div>"),
        factory.behavior("app.js", factory.handler("h1", "click", "div::after")),
        factory.sheet("app.css", factory.rule("r1", "div:nth-child(2)", {"color": "red"})),
    )

    assert [f.issue_type for f in graph.findings] == ["malformed-selector", "malformed-selector"]
    assert graph.unresolved == 1
    assert graph.rule_matches == ((),)


def test_broadcast_to_all_matches(factory):
    graph = merge(
        factory.markup("p.html", '<ul><li class="item">1</li><li class="item">2</li></ul>'),
        factory.behavior("app.js", factory.handler("h1", "click", ".item")),
    )
    items = graph.select(".item")

    assert len(items) == 2
    assert all(graph.context(i).handler_ids("click") == [0] for i in items)
    assert graph.resolved == 1


def test_document_targets_are_global_actions(factory):
    graph = merge(
        factory.markup("p.html", "<div>x</div>"),
        factory.behavior("app.js", factory.handler("h1", "keydown", "document", summary="if (e.key === 'Escape')")),
    )

    assert graph.global_actions == (0,)
    assert [h.node_id for h in graph.global_handlers()] == ["h1"]
    assert graph.resolved == 1 and graph.findings == ()


def test_nested_actions_are_flattened(factory):
    nested = Block(node_id="fn", location=factory.loc("app.js"), children=(
        factory.handler("h1", "click", "#x"),
        AriaStateChange(node_id="a1", selector="#x", attribute="aria-expanded", new_value="true",
                        location=factory.loc("app.js", 3)),
    ))
    graph = merge(factory.markup("p.html", '<div id="x">x</div>'), factory.behavior("app.js", nested))

    assert [a.node_id for a in graph.actions] == ["fn", "h1", "a1"]
    assert graph.context(0).handlers_by_event == {"click": (1,)}
    assert graph.context(0).actions == (2,)
    # De block zelf heeft geen target en telt niet mee
    assert graph.resolved == 2


def test_rule_cascade_order(factory):
    """Hogere specificiteit eerst; bij gelijke specificiteit wint de latere source order."""
    graph = merge(
        factory.markup("p.html", '<div id="card" class="card">x</div>'),
        factory.sheet("app.css",
                      factory.rule("r1", ".card", {"color": "red"}),
                      factory.rule("r2", "#card", {"color": "blue"}),
                      factory.rule("r3", "div", {"color": "green"}),
                      factory.rule("r4", ".card", {"color": "black"})),
    )

    assert [m.rule for m in graph.context(0).rules] == [1, 3, 0, 2]
    assert graph.context(0).declarations["color"] == "blue"
    assert graph.rule_matches == ((0,), (0,), (0,), (0,))


def test_cascade_tie_between_stylesheets(factory):
    """Gelijke specificiteit en source order in twee sheets: de later geladen regel wint."""
    graph = merge(
        factory.markup("p.html", '<div class="card">x</div>'),
        factory.sheet("a.css", factory.rule("r1", ".card", {"color": "red"}, file="a.css", order=1)),
        factory.sheet("b.css", factory.rule("r2", ".card", {"color": "blue"}, file="b.css", order=1)),
    )

    assert [m.rule for m in graph.context(0).rules] == [1, 0]
    assert graph.context(0).declarations["color"] == "blue"


def test_hidden_by_style_ignores_state_rules(factory):
    graph = merge(
        factory.markup("p.html", '<div><p class="hidden">a</p><p class="hidden" style="display: block">b</p></div>'),
        factory.sheet("app.css",
                      factory.rule("r1", ".hidden", {"display": "none"}),
                      factory.rule("r2", ".hidden:hover", {"display": "block"})),
    )
    first, second = graph.select("p")

    assert graph.context(first).hidden_by_style
    assert graph.context(first).rules[0].conditional
    # Inline style wint van elke regel
    assert not graph.context(second).hidden_by_style


def test_focusable_means_in_tab_order(factory):
    """tabindex >= 0 (attribuut of script) maakt focusable; -1 haalt een element uit de tabvolgorde."""
    graph = merge(
        factory.markup("p.html", (
            '<div><span id="a">a</span><span id="b" tabindex="-1">b</span><span>c</span>'
            '<button id="d" tabindex="-1">d</button><span id="e" tabindex="0">e</span><button>f</button></div>'
        )),
        factory.behavior("app.js",
                         factory.tabindex("t1", "#a", 0),
                         factory.tabindex("t2", "#e", 0),
                         factory.tabindex("t3", "#e", -1)),
    )
    focusable = {graph.element(p).attrs.get("id", graph.element(p).tag): graph.context(p).focusable
                 for p in range(len(graph.elements))}

    assert focusable == {"div": False, "a": True, "b": False, "span": False, "d": False, "e": False, "button": True}


def test_merge_is_idempotent(factory):
    """Twee keer mergen geeft byte-identieke contexts, zonder dubbele koppelingen."""
    model, _ = DocumentModel.assemble([
        factory.markup("p.html", '<div id="x" class="a b">x</div>'),
        factory.behavior("app.js", factory.handler("h1", "click", "#x"), factory.handler("h2", "click", ".a")),
        factory.sheet("app.css", factory.rule("r1", ".a", {"display": "none"})),
    ])
    first = CrossReferenceMerger(model).merge()
    second = CrossReferenceMerger(model).merge()

    assert first.serialize_contexts() == second.serialize_contexts()
    handlers = first.context(0).handler_ids("click")
    assert handlers == [0, 1]
    assert len(set(handlers)) == len(handlers)


def test_degraded_graph_has_no_handlers_or_rules(factory):
    """Alle fragmenten van het bestand doen mee, maar zonder handlers of regels."""
    doc = factory.markup("p.html", '<div role="button">x</div><nav><a href="/">y</a></nav>')
    graph = degraded_graph(doc.fragments)

    assert graph.degraded
    assert graph.actions == () and graph.rules == ()
    assert graph.context(0).role == "button"
    assert graph.context(0).handlers_by_event == {}
    assert graph.fragment_count == 2
    assert graph.select("a") == [2]


@pytest.mark.parametrize("event, expected", [("keydown", True), ("keypress", True), ("keyup", False)])
def test_keyboard_handler_events(factory, event, expected):
    graph = merge(
        factory.markup("p.html", '<div id="x">x</div>'),
        factory.behavior("app.js", factory.handler("h1", event, "#x")),
    )
    assert graph.context(0).has_keyboard_handler is expected
