"""Tests for content-model repair."""

from unittest.mock import patch

import pytest

from htree.shared import DiagnosticSeverity, RepairConfig
from htree.tokenization import HTMLScanner
from htree.tree import (
    ContentModelRepairer,
    ElementState,
    RepairContext,
    TagPairer,
    repair_document,
)


def preliminary(text):
    return TagPairer().pair(HTMLScanner().tokenize(text))


def shape(document):
    """Nested (name, children) tuples; void elements have None children."""
    def fold(element, children):
        if children is None:
            return (element.name, None)
        return (element.name, [c if isinstance(c, tuple) else c.raw for c in children])

    return [c if isinstance(c, tuple) else c.raw for c in document.fold_element(fold).children]


SAMPLES = [
    "<p>a<p>b",
    "<ul><li>a<li>b</ul>",
    "<br>x",
    "a</z>b",
    "<table><tr><td>a<td>b</table>",
    "<img src=a>caption</img>",
    "<html><head><title>t</title><body><p>x<li>y",
    "<a href=1><b>x<a href=2>y",
    "<select><option>1<option>2</select>",
    "<dl><dt>a<dd>b<dt>c</dl>",
]


class TestImplicitClose:
    """Test implicit closing driven by the content model."""

    @pytest.mark.parametrize("text,expected", [
        ("<p>a<p>b", [("p", ["a"]), ("p", ["b"])]),
        ("<ul><li>a<li>b</ul>", [("ul", [("li", ["a"]), ("li", ["b"])])]),
        ("<br>x", [("br", None), "x"]),
        ("a</z>b", ["a", "</z>", "b"]),
        (
            "<table><tr><td>a<td>b</table>",
            [("table", [("tr", [("td", ["a"]), ("td", ["b"])])])],
        ),
        ("<dl><dt>a<dd>b<dt>c</dl>", [("dl", [("dt", ["a"]), ("dd", ["b"]), ("dt", ["c"])])]),
        ("<head><title>t</title><p>x", [("head", [("title", ["t"])]), ("p", ["x"])]),
        ("<img src=a>caption</img>", [("img", None), "caption", "</img>"]),
        ("<div><li>x</div>", [("div", [("li", ["x"])])]),
    ])
    def test_repaired_structure(self, text, expected):
        """Test repaired trees of typical tag soup."""
        assert shape(repair_document(preliminary(text))) == expected

    def test_exclusions(self):
        """Test that excluded tags close elements, also through descendants."""
        document = repair_document(preliminary("<a href=1><b>x<a href=2>y"))
        assert shape(document) == [("a", [("b", ["x"])]), ("a", ["y"])]

    def test_authored_end_tag_resets_exclusions(self):
        """Test that children of an authored element use the top-level model."""
        document = repair_document(preliminary("<a href=1><b>x<a href=2>y</a></a>"))
        assert shape(document) == [("a", [("b", ["x", ("a", ["y"])])])]

    def test_inclusions(self):
        """Test that inclusions of an ancestor are allowed in descendants."""
        included = repair_document(preliminary("<body><p>a<ins>b</ins>"))
        assert shape(included) == [("body", [("p", ["a", ("ins", ["b"])])])]

        not_included = repair_document(preliminary("<p>a<ins>b</ins>"))
        assert shape(not_included) == [("p", ["a"]), ("ins", ["b"])]

        authored = repair_document(preliminary("<body><p>a<ins>b</ins></body>"))
        assert shape(authored) == [("body", [("p", ["a"]), ("ins", ["b"])])]

    def test_unregistered_tags(self):
        """Test that unknown tags close a paragraph and inherit its parent's model."""
        document = repair_document(preliminary("<p>a<foo>b<div>c"))
        assert shape(document) == [("p", ["a"]), ("foo", ["b", ("div", ["c"])])]

    def test_top_level_html_trusted(self):
        """Test that a top-level html without end tag keeps its content."""
        document = repair_document(preliminary("<html><li>x"))
        assert shape(document) == [("html", [("li", ["x"])])]

    def test_top_level_html_untrusted(self):
        """Test that distrusting the top-level html applies implicit closing."""
        config = RepairConfig(trust_top_level_html=False)
        document = repair_document(preliminary("<html><li>x"), config)
        assert shape(document) == [("html", []), ("li", ["x"])]

    def test_repair_disabled(self):
        """Test that repair can be turned off."""
        document = preliminary("<p>a<p>b")
        repairer = ContentModelRepairer(RepairConfig(enable_content_model_repair=False))
        assert repairer.repair(document) is document


class TestRepairProperties:
    """Test invariants of repaired trees."""

    @pytest.mark.parametrize("text", SAMPLES)
    def test_lossless(self, text):
        """Test that repair keeps every character of the input."""
        assert repair_document(preliminary(text)).raw_string() == text

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        """Test that repairing a repaired tree changes nothing."""
        once = repair_document(preliminary(text))
        twice = repair_document(once)
        assert twice.to_dict() == once.to_dict()

    @pytest.mark.parametrize("text", SAMPLES)
    def test_void_elements_are_empty(self, text):
        """Test that void elements have no children and no end tag."""
        for element in repair_document(preliminary(text)).traverse_element(
            "br", "img", "hr", "meta", "link", "input"
        ):
            assert element.is_void
            assert element.children == ()
            assert element.end_tag is None


class TestRepairDiagnostics:
    """Test repair statistics and diagnostics."""

    def test_implicit_close_recorded(self):
        """Test the diagnostic of an implicit close."""
        repairer = ContentModelRepairer()
        repairer.repair(preliminary("<p>a<p>b"))
        assert repairer.statistics["implicit_closes"] == 1
        diagnostic = repairer.diagnostics[0]
        assert diagnostic.severity is DiagnosticSeverity.INFO
        assert diagnostic.details == {"element": "p", "closed_by": "p"}

    def test_void_conversion_recorded(self):
        """Test that moved content of an empty element is reported."""
        repairer = ContentModelRepairer()
        repairer.repair(preliminary("<br>x"))
        assert repairer.statistics["void_conversions"] == 1
        assert repairer.diagnostics[0].details == {"element": "br", "moved_nodes": 1}

    def test_void_conversion_without_content(self):
        """Test that an empty element with nothing to move is not reported."""
        repairer = ContentModelRepairer()
        repairer.repair(preliminary("<br>"))
        assert repairer.statistics["void_conversions"] == 1
        assert repairer.diagnostics == []

    def test_diagnostics_disabled(self):
        """Test that diagnostics collection can be turned off."""
        repairer = ContentModelRepairer(collect_diagnostics=False)
        repairer.repair(preliminary("<p>a<p>b"))
        assert repairer.statistics["implicit_closes"] == 1
        assert repairer.diagnostics == []


class TestRepairContext:
    """Test content-model contexts."""

    def test_root_context(self):
        """Test the context of top-level nodes."""
        context = RepairContext.root()
        assert "html" in context.containable_tags
        assert "p" in context.containable_tags

    def test_derive_accumulates_exceptions(self):
        """Test that exceptions accumulate down the tree."""
        context = RepairContext.root().derive("body").derive("a").derive("b")
        assert "ins" in context.containable_tags
        assert "a" not in context.containable_tags
        assert "i" in context.containable_tags

    def test_derive_unregistered(self):
        """Test that unknown elements keep the parent context."""
        context = RepairContext.root().derive("p")
        assert context.derive("blink") is context

    def test_states(self):
        """Test the element state names."""
        assert [state.name for state in ElementState] == [
            "OPEN", "VOID", "EXPLICIT", "IMPLICIT_CLOSE", "CLOSED",
        ]

    def test_state_transitions(self):
        """Test the state each element frame passes through."""
        repairer = ContentModelRepairer()
        entered, closed = [], []
        enter, close_frame = repairer._enter, repairer._close_frame

        def record_enter(stack):
            entered.append(stack[-1].state)
            enter(stack)

        def record_close(stack):
            frame = stack[-1]
            if frame.element is not None:
                closed.append((frame.element.name, frame.state))
            result = close_frame(stack)
            assert frame.state is ElementState.CLOSED
            return result

        with patch.object(repairer, "_enter", side_effect=record_enter), \
                patch.object(repairer, "_close_frame", side_effect=record_close):
            repairer.repair(preliminary("<div><p>a<br>b</p><p>c</div>"))

        assert entered == [ElementState.OPEN] * 4
        assert closed == [
            ("br", ElementState.VOID),
            ("p", ElementState.EXPLICIT),
            ("p", ElementState.IMPLICIT_CLOSE),
            ("div", ElementState.EXPLICIT),
        ]
