# tests/core/test_analyzers.py
import pytest

from a11ygraph.analyzers.core import Analyzer, AnalyzerContext
from a11ygraph.analyzers.registry import AnalyzerRegistry
from a11ygraph.analyzers.rules.mouse_only_click import MouseOnlyClickAnalyzer
from a11ygraph.analyzers.rules.positive_tabindex import PositiveTabindexAnalyzer
from a11ygraph.analyzers.rules.visibility_focus_conflict import VisibilityFocusConflictAnalyzer
from a11ygraph.analyzers.rules.widget_patterns import SUB_FEATURE_ORDER, WidgetPatternAnalyzer, detect_keys
from a11ygraph.engine import AnalysisSession


def run(analyzer, settings, *sources):
    session = AnalysisSession(registry=AnalyzerRegistry([analyzer]), settings=settings)
    return session.run(sources)


# --- mouse-only-click ---

def test_click_without_keyboard_handler(factory, sequential_settings):
    """Eén element met alleen een click handler levert precies één finding op."""
    result = run(
        MouseOnlyClickAnalyzer(), sequential_settings,
        factory.markup("card.html", '<div class="card" id="card">Open</div>'),
        factory.behavior("card.js", factory.handler("h1", "click", "#card", line=7)),
    )

    findings = result.by_issue_type("mouse-only-click")
    assert len(findings) == 1
    finding = findings[0]
    assert finding.severity == "warning"
    assert finding.wcag == ["2.1.1"]
    assert [(loc.file, loc.line) for loc in finding.locations] == [("card.html", 1), ("card.js", 7)]
    assert finding.element.node_id == "card.html#0/0"
    assert finding.fix.action == "add-event-handler"
    assert finding.confidence.band == "HIGH"


@pytest.mark.parametrize("markup, extra_event", [
    ('<button id="t">Go</button>', None),
    ('<a id="t" href="/x">Go</a>', None),
    ('<div id="t">Go</div>', "keydown"),
    ('<div id="t">Go</div>', "keypress"),
])
def test_no_finding_for_keyboard_operable_elements(factory, sequential_settings, markup, extra_event):
    nodes = [factory.handler("h1", "click", "#t")]
    if extra_event:
        nodes.append(factory.handler("h2", extra_event, "#t"))
    result = run(MouseOnlyClickAnalyzer(), sequential_settings,
                 factory.markup("p.html", markup), factory.behavior("p.js", *nodes))

    assert result.by_issue_type("mouse-only-click") == []


def test_keyup_is_not_a_keyboard_equivalent(factory, sequential_settings):
    result = run(
        MouseOnlyClickAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div id="t">Go</div>'),
        factory.behavior("p.js", factory.handler("h1", "click", "#t"), factory.handler("h2", "keyup", "#t")),
    )
    assert len(result.by_issue_type("mouse-only-click")) == 1


def test_degraded_mode_groups_handlers_by_selector(factory, sequential_settings):
    """Zonder markup werkt de analyzer op het behaviour model alleen, met verlaagde confidence."""
    result = run(
        MouseOnlyClickAnalyzer(), sequential_settings,
        factory.behavior("menu.js",
                         factory.handler("h1", "click", ".toggle", line=2),
                         factory.handler("h2", "click", ".toggle", line=5),
                         factory.handler("h3", "click", ".ok", line=8),
                         factory.handler("h4", "keydown", ".ok", line=9),
                         factory.handler("h5", "click", "button", line=12)),
    )

    assert result.degraded
    findings = result.by_issue_type("mouse-only-click")
    assert len(findings) == 1
    assert [loc.line for loc in findings[0].locations] == [2, 5]
    assert findings[0].element is None
    assert findings[0].confidence.score == pytest.approx(result.completeness.score * 0.5)


# --- widget-pattern ---

CHECKBOX = '<div role="checkbox" aria-checked="false" tabindex="0" id="cb">Accept</div>'


def test_widget_missing_only_keyboard(factory, sequential_settings):
    """Een structureel compleet patroon zonder toetsenbord levert één 'missing-keyboard' finding op."""
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("cb.html", CHECKBOX),
        factory.behavior("cb.js", factory.handler("h1", "click", "#cb", summary="toggle()")),
    )

    findings = result.by_issue_type("incomplete-widget-pattern")
    assert len(findings) == 1
    assert findings[0].sub_feature == "missing-keyboard"
    assert findings[0].pattern == "checkbox"
    assert findings[0].severity == "warning"
    assert "Space" in findings[0].message


@pytest.mark.parametrize("summary", [
    "if (e.key === ' ') toggle()",
    "if (event.code === 'Space') toggle()",
    "switch (e.keyCode) { case 32: toggle() }",
    "if (e.which == 32) toggle()",
])
def test_widget_keyboard_detected_from_summary(factory, sequential_settings, summary):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("cb.html", CHECKBOX),
        factory.behavior("cb.js", factory.handler("h1", "keydown", "#cb", summary=summary)),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


def test_widget_keys_on_ancestor_or_document(factory, sequential_settings):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("tabs.html", (
            '<div id="root"><div role="tablist">'
            '<button role="tab" aria-selected="true" aria-controls="p1">One</button></div>'
            '<div role="tabpanel" id="p1">1</div></div>'
        )),
        factory.behavior("tabs.js",
                         factory.handler("h1", "keydown", "#root", summary="ArrowLeft"),
                         factory.handler("h2", "keydown", "document", summary="ArrowRight")),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


def test_widget_sub_features_are_separate_and_ordered(factory, sequential_settings):
    """Elk ontbrekend onderdeel is een eigen finding, in vaste volgorde."""
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("tabs.html", '<div role="tablist"><span role="tab" aria-controls="nowhere">One</span></div>'),
    )

    findings = result.by_issue_type("incomplete-widget-pattern")
    assert [f.sub_feature for f in findings] == [
        "missing-role", "missing-state", "missing-keyboard", "unresolved-reference",
    ]
    assert [f.sub_feature for f in findings] == sorted((f.sub_feature for f in findings), key=SUB_FEATURE_ORDER.index)
    assert "tabpanel" in findings[0].message
    assert findings[-1].wcag == ["1.3.1", "4.1.2"]
    assert {f.pattern for f in findings} == {"tabs"}


def test_native_controls_do_not_trigger_patterns(factory, sequential_settings):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("f.html", '<form><input type="checkbox"><select><option>a</option></select></form>'),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


def test_pattern_findings_sorted_by_location(factory, sequential_settings):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("w.html", '<div><span role="switch" id="s">s</span><span role="checkbox" id="c">c</span></div>'),
    )
    findings = result.by_issue_type("incomplete-widget-pattern")
    # Verschillende kolommen: de locatie bepaalt de volgorde
    assert [f.pattern for f in findings] == ["switch", "switch", "checkbox", "checkbox"]


def test_widget_state_set_by_script(factory, sequential_settings):
    """Een state die het script zet telt net zo goed als een attribuut in de markup."""
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("cb.html", '<div role="checkbox" tabindex="0" id="cb">Accept</div>'),
        factory.behavior("cb.js",
                         factory.aria("a1", "#cb", "aria-checked", "true", file="cb.js"),
                         factory.handler("h1", "keydown", "#cb", summary="if (e.key === ' ') toggle()", file="cb.js")),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


def test_widget_role_set_by_script(factory, sequential_settings):
    """Een role die pas door het script gezet wordt hoort ook bij het patroon."""
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("tabs.html", (
            '<div><div role="tablist">'
            '<span role="tab" aria-selected="true" aria-controls="p1">One</span></div>'
            '<div id="p1">1</div></div>'
        )),
        factory.behavior("tabs.js",
                         factory.aria("a1", "#p1", "role", "tabpanel", file="tabs.js"),
                         factory.handler("h1", "keydown", "document", summary="ArrowLeft ArrowRight", file="tabs.js")),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


DIALOG = ('<div><button id="open">Open</button>'
          '<div role="dialog" aria-labelledby="t"><h2 id="t">Title</h2><button id="ok">OK</button></div></div>')


def test_dialog_without_focus_management(factory, sequential_settings):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("d.html", DIALOG),
        factory.behavior("d.js", factory.handler("h1", "keydown", "document", summary="Escape Tab", file="d.js")),
    )

    findings = result.by_issue_type("incomplete-widget-pattern")
    assert [f.sub_feature for f in findings] == ["missing-focus-management"]
    assert findings[0].pattern == "dialog"
    assert findings[0].wcag == ["2.4.3"]
    assert findings[0].fix.action == "add-focus-change"
    assert SUB_FEATURE_ORDER.index("missing-keyboard") < SUB_FEATURE_ORDER.index("missing-focus-management")


@pytest.mark.parametrize("selector, restore", [
    ("#ok", False),
    ("#open", True),
])
def test_dialog_focus_moved_inside_or_restored(factory, sequential_settings, selector, restore):
    """Focus naar een element in de dialog, of terug naar de trigger, is genoeg."""
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("d.html", DIALOG),
        factory.behavior("d.js",
                         factory.handler("h1", "keydown", "document", summary="Escape Tab", file="d.js"),
                         factory.focus("f1", selector, restore_previous=restore, file="d.js")),
    )
    assert result.by_issue_type("incomplete-widget-pattern") == []


def test_focus_outside_dialog_does_not_count(factory, sequential_settings):
    result = run(
        WidgetPatternAnalyzer(), sequential_settings,
        factory.markup("d.html", DIALOG),
        factory.behavior("d.js",
                         factory.handler("h1", "keydown", "document", summary="Escape Tab", file="d.js"),
                         factory.focus("f1", "#open", file="d.js")),
    )
    assert [f.sub_feature for f in result.by_issue_type("incomplete-widget-pattern")] == ["missing-focus-management"]


@pytest.mark.parametrize("summary, keys", [
    ("e.key === 'Escape'", {"Escape"}),
    ("e.key === 'Esc'", {"Escape"}),
    ("case 'ArrowUp': case 'Down':", {"ArrowUp", "ArrowDown"}),
    ("onMouseEnter()", set()),
    ("e.keyCode === 13", {"Enter"}),
    ("tabIndex = 0", set()),
])
def test_detect_keys(summary, keys):
    assert detect_keys(summary) == keys


# --- focus rules ---

def test_hidden_focusable_element(factory, sequential_settings):
    result = run(
        VisibilityFocusConflictAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div><button class="ghost">x</button><button>y</button></div>'),
        factory.sheet("p.css", factory.rule("r1", ".ghost", {"visibility": "hidden"}, file="p.css", line=3)),
    )

    findings = result.by_issue_type("visibility-focus-conflict")
    assert len(findings) == 1
    assert findings[0].locations[1].file == "p.css"


@pytest.mark.parametrize("tabindex, expected", [("0", 1), ("-1", 0)])
def test_hidden_element_out_of_tab_order(factory, sequential_settings, tabindex, expected):
    """Een verborgen element met tabindex=-1 zit niet in de tabvolgorde en is geen conflict."""
    result = run(
        VisibilityFocusConflictAnalyzer(), sequential_settings,
        factory.markup("p.html", f'<span id="x" tabindex="{tabindex}">x</span>'),
        factory.sheet("p.css", factory.rule("r1", "#x", {"display": "none"}, file="p.css")),
    )
    assert len(result.by_issue_type("visibility-focus-conflict")) == expected


def test_aria_hidden_focusable(factory, sequential_settings):
    result = run(
        VisibilityFocusConflictAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div><button aria-hidden="true">Go</button><span aria-hidden="true">*</span></div>'),
    )

    findings = result.by_issue_type("aria-hidden-focusable")
    assert len(findings) == 1
    assert findings[0].severity == "error"
    assert findings[0].wcag == ["4.1.2"]
    assert findings[0].fix.data == {"attribute": "tabindex", "value": "-1"}
    assert result.by_issue_type("interactive-element-hidden") == []


def test_aria_hidden_ancestor(factory, sequential_settings):
    """Een link binnen een aria-hidden container is net zo goed verborgen."""
    result = run(
        VisibilityFocusConflictAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div aria-hidden="true">\n<a href="/">x</a></div>'),
    )

    findings = result.by_issue_type("aria-hidden-focusable")
    assert len(findings) == 1
    assert [loc.line for loc in findings[0].locations] == [2, 1]
    assert "inside" in findings[0].message


def test_interactive_element_hidden(factory, sequential_settings):
    """Niet focusbaar maar wel bedienbaar: het element verdwijnt uit de accessibility tree."""
    result = run(
        VisibilityFocusConflictAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div><div id="x" aria-hidden="true">x</div>'
                                 '<button tabindex="-1" aria-hidden="true">y</button></div>'),
        factory.behavior("p.js", factory.handler("h1", "click", "#x", file="p.js", line=5)),
    )

    findings = result.by_issue_type("interactive-element-hidden")
    assert len(findings) == 2
    assert [(loc.file, loc.line) for loc in findings[0].locations] == [("p.html", 1), ("p.js", 5)]
    assert findings[0].fix.action == "remove-attribute"
    assert result.by_issue_type("aria-hidden-focusable") == []


def test_positive_tabindex(factory, sequential_settings):
    result = run(
        PositiveTabindexAnalyzer(), sequential_settings,
        factory.markup("p.html", '<div><span tabindex="3">a</span><span id="b">b</span><i tabindex="0">c</i></div>'),
        factory.behavior("p.js", factory.tabindex("t1", "#b", 2, file="p.js", line=4)),
    )

    findings = result.by_issue_type("positive-tabindex")
    assert len(findings) == 2
    assert {f.location.file for f in findings} == {"p.html", "p.js"}


# --- registry ---

def test_registry_discovers_builtin_rules(full_registry):
    assert full_registry.names() == [
        "mouse-only-click", "positive-tabindex", "visibility-focus-conflict", "widget-pattern",
    ]
    assert "incomplete-widget-pattern" in full_registry.get_all_possible_codes()


def test_registry_discover_respects_disabled():
    registry = AnalyzerRegistry().discover(disabled=["widget-pattern"])
    assert "widget-pattern" not in registry
    assert len(registry) == 3


def test_registry_rejects_duplicates_and_non_analyzers():
    registry = AnalyzerRegistry([MouseOnlyClickAnalyzer()])
    with pytest.raises(ValueError):
        registry.register(MouseOnlyClickAnalyzer())
    with pytest.raises(TypeError):
        registry.register(object())
    assert registry.unregister("mouse-only-click")
    assert not registry.unregister("mouse-only-click")


def test_registries_are_independent():
    first = AnalyzerRegistry().discover()
    second = AnalyzerRegistry().discover()
    first.unregister("mouse-only-click")
    assert "mouse-only-click" in second


class _ReadOnlyViewer(Analyzer):
    name = "read-only-viewer"

    def analyze(self, context: AnalyzerContext):
        assert context.view() is context.graph
        return []


def test_context_view_is_the_merged_graph(factory, sequential_settings):
    result = run(_ReadOnlyViewer(), sequential_settings, factory.markup("p.html", "<p>x</p>"))
    assert result.diagnostics == ()
