"""Tests for stack-based tag pairing."""

from htree.shared import DiagnosticSeverity
from htree.tokenization import HTMLScanner
from htree.tree import BogusEndTag, Element, TagPairer, Text


def pair(text, **kwargs):
    pairer = TagPairer(**kwargs)
    return pairer, pairer.pair(HTMLScanner().tokenize(text))


class TestTagPairer:
    """Test bracket matching without content-model knowledge."""

    def test_matched_tags(self):
        """Test a well-formed element."""
        _pairer, document = pair("<P>a</p>")
        element = document.children[0]
        assert isinstance(element, Element)
        assert element.end_tag.raw == "</p>"
        assert element.children == (Text("a", "a"),)

    def test_innermost_match(self):
        """Test that an end tag closes the innermost element of its name."""
        _pairer, document = pair("<div><div>a</div>b</div>")
        outer = document.children[0]
        assert [type(child) for child in outer.children] == [Element, Text]
        assert outer.children[0].text() == "a"

    def test_end_tag_closes_inner_elements(self):
        """Test that unclosed inner elements are closed without end tags."""
        pairer, document = pair("<b><i>x</b>y")
        bold = document.children[0]
        italic = bold.children[0]
        assert bold.end_tag is not None
        assert italic.end_tag is None
        assert document.children[1] == Text("y", "y")
        assert pairer.statistics["unclosed_elements"] == 1
        assert pairer.statistics["elements"] == 2

    def test_no_content_model(self):
        """Test that pairing alone nests unclosed paragraphs."""
        _pairer, document = pair("<p>a<p>b")
        outer = document.children[0]
        assert len(document.children) == 1
        assert outer.children[1].name == "p"

    def test_bogus_end_tag(self):
        """Test that an unmatched end tag becomes a leaf in place."""
        pairer, document = pair("a</z>b")
        assert [type(child) for child in document.children] == [Text, BogusEndTag, Text]
        assert document.children[1].name == "z"
        assert pairer.statistics["bogus_end_tags"] == 1

        diagnostic = pairer.diagnostics[0]
        assert diagnostic.severity is DiagnosticSeverity.WARNING
        assert diagnostic.component == "pairer"
        assert diagnostic.position == {"line": 1, "column": 2, "offset": 1}

    def test_bogus_end_tag_inside_element(self):
        """Test that a stray end tag leaves the open element alone."""
        _pairer, document = pair("<b>x</i>y</b>")
        bold = document.children[0]
        assert bold.end_tag is not None
        assert [type(child) for child in bold.children] == [Text, BogusEndTag, Text]

    def test_diagnostics_disabled(self):
        """Test that diagnostics collection can be turned off."""
        pairer, _document = pair("</z>", collect_diagnostics=False)
        assert pairer.diagnostics == []
        assert pairer.statistics["bogus_end_tags"] == 1

    def test_void_tag(self):
        """Test self-closed tags."""
        _pairer, document = pair("<br/>x")
        element = document.children[0]
        assert element.is_void
        assert element.children == ()

    def test_verbatim_text(self):
        """Test that raw-text bodies keep literal ampersands."""
        _pairer, document = pair("<script>a && b</script>")
        body = document.children[0].children[0]
        assert body.rcdata_value == "a &amp;&amp; b"
        assert body.text() == "a && b"

    def test_lossless(self):
        """Test that the preliminary tree reproduces the input."""
        text = "<!DOCTYPE x><a><b>1</a>2</c><?pi?><!--c--><![CDATA[&]]>"
        _pairer, document = pair(text)
        assert document.raw_string() == text

    def test_state_reset(self):
        """Test that statistics describe the latest call only."""
        pairer = TagPairer()
        tokens = HTMLScanner().tokenize("</z>")
        pairer.pair(tokens)
        pairer.pair(tokens)
        assert pairer.statistics["bogus_end_tags"] == 1
        assert len(pairer.diagnostics) == 1
