"""Tests for the immutable tree and its query API."""

import dataclasses
from collections import deque

import pytest

from htree.tokenization import EndTag, StartTag
from htree.tree import (
    BogusEndTag,
    Comment,
    Document,
    Element,
    HTreeBuilder,
    ProcessingInstruction,
    Text,
)

PAGE = (
    '<html><head><title> T </title></head>'
    '<body><p class="x">a &amp b</p><p>c<br>d</p><!-- note --></body></html>'
)


def build(text):
    return HTreeBuilder().build(text).document


class TestTreeAccess:
    """Test basic tree access."""

    def setup_method(self):
        """Parse the sample page."""
        self.document = build(PAGE)

    def test_raw_string(self):
        """Test that the tree reproduces the input."""
        assert self.document.raw_string() == PAGE

    def test_root(self):
        """Test root element lookup."""
        root = self.document.root()
        assert root.name == "html"
        assert root.root() is root
        assert Text.from_pcdata("x").root() is None

    def test_text_and_rcdata(self):
        """Test text extraction."""
        assert self.document.rcdata() == " T a &amp; bcd"
        assert self.document.text() == " T a & bcd"
        assert self.document.title() == "T"

    def test_html_text(self):
        """Test rcdata with markup characters escaped."""
        document = build("<![CDATA[a<b]]>")
        assert document.text() == "a<b"
        assert document.html_text() == "a&lt;b"

    def test_traverse_element(self):
        """Test element iteration in document order."""
        names = [element.name for element in self.document.traverse_element("p", "BR")]
        assert names == ["p", "p", "br"]
        assert len(list(self.document.traverse_element())) == 7

    def test_find_element(self):
        """Test first element lookup."""
        assert self.document.find_element("p").get_attribute("class") == "x"
        assert self.document.find_element("table") is None

    def test_traverse_with_path(self):
        """Test paths of all nodes."""
        paths = [path for _node, path in self.document.traverse_with_path()]
        assert paths == [
            "/",
            "/html",
            "/html/head",
            "/html/head/title",
            "/html/head/title/text()",
            "/html/body",
            "/html/body/p[1]",
            "/html/body/p[1]/text()",
            "/html/body/p[2]",
            "/html/body/p[2]/text()[1]",
            "/html/body/p[2]/br",
            "/html/body/p[2]/text()[2]",
            "/html/body/comment()",
        ]

    def test_children_with_paths(self):
        """Test paths of direct children with a prefix."""
        paragraph = list(self.document.traverse_element("p"))[1]
        assert [path for _child, path in paragraph.children_with_paths("/x")] == [
            "/x/text()[1]", "/x/br", "/x/text()[2]",
        ]

    def test_element_traverse_with_path(self):
        """Test that an element starts its paths with its own step."""
        paths = [path for _node, path in self.document.find_element("head").traverse_with_path()]
        assert paths == ["/head", "/head/title", "/head/title/text()"]

    def test_element_attributes(self):
        """Test attribute access on elements."""
        element = self.document.find_element("p")
        assert element.attribute_texts() == [("class", "x")]
        assert element.fetch_attribute("class") == "x"
        assert element.has_attribute("class")
        assert element.attributes()[0].rcdata == "x"


class TestDocumentMetadata:
    """Test title and author lookups."""

    def test_author_from_meta(self):
        """Test the author meta element."""
        document = build('<meta name="Author" content=" Ann ">')
        assert document.author() == "Ann"

    def test_author_from_link(self):
        """Test the rev=made link element."""
        document = build('<meta name="author"><link rev=made title="Bob">')
        assert document.author() == "Bob"

    def test_no_author_or_title(self):
        """Test documents without metadata."""
        document = build("<p>text")
        assert document.author() is None
        assert document.title() is None


class TestFilter:
    """Test tree filtering."""

    def setup_method(self):
        """Parse the sample page."""
        self.document = build(PAGE)

    def test_filter(self):
        """Test removal of non-element nodes."""
        filtered = self.document.filter(lambda node: not isinstance(node, Comment))
        assert "<!--" not in filtered.raw_string()
        # Original tree is untouched
        assert self.document.raw_string() == PAGE

    def test_filter_element(self):
        """Test that element filters keep other nodes."""
        filtered = self.document.filter_element(lambda element: element.name != "p")
        assert filtered.raw_string() == (
            "<html><head><title> T </title></head><body><!-- note --></body></html>"
        )

    def test_filter_with_path(self):
        """Test filtering by path."""
        filtered = self.document.filter_with_path(lambda _node, path: path != "/html/head")
        assert filtered.find_element("head") is None
        assert filtered.find_element("body") is not None

    def test_filter_element_with_path(self):
        """Test filtering elements by path."""
        filtered = self.document.filter_element_with_path(
            lambda _element, path: not path.endswith("p[2]")
        )
        assert [e.name for e in filtered.traverse_element("p")] == ["p"]

    def test_filter_skips_removed_subtrees(self):
        """Test that the predicate is not applied inside removed elements."""
        visited = []

        def predicate(node, path):
            visited.append(path)
            return path != "/html/body"

        self.document.filter_with_path(predicate)
        assert "/html/body/p[1]" not in visited
        assert not [p for p in visited if p.startswith("/html/body/")]

    def test_filter_leaf(self):
        """Test that filtering a leaf returns the leaf."""
        text = Text.from_pcdata("x")
        assert text.filter(lambda node: False) is text


class TestFold:
    """Test bottom-up folding."""

    def setup_method(self):
        """Parse the sample page."""
        self.document = build(PAGE)

    def test_fold_structure(self):
        """Test folding into nested tuples; void elements receive None."""
        def fold(element, children):
            if children is None:
                return (element.name, None)
            return (element.name, [child for child in children if isinstance(child, tuple)])

        assert self.document.root().fold_element(fold) == (
            "html", [
                ("head", [("title", [])]),
                ("body", [("p", []), ("p", [("br", None)])]),
            ],
        )

    def test_fold_drops_none(self):
        """Test that None results are left out."""
        def fold(element, children):
            if element.name == "p":
                return None
            return [element.name] + [child for child in children or [] if isinstance(child, list)]

        assert self.document.root().fold_element(fold) == ["html", ["head", ["title"]], ["body"]]

    def test_fold_document(self):
        """Test that folding a document yields a document."""
        folded = self.document.fold_element(lambda element, children: element.name)
        assert isinstance(folded, Document)
        assert folded.children == ("html",)

    def test_to_dict(self):
        """Test dictionary conversion."""
        data = build("<p>c<br>d").to_dict()
        assert data == {
            "type": "document",
            "children": [{
                "type": "element",
                "name": "p",
                "start_tag": "<p>",
                "end_tag": None,
                "void": False,
                "children": [
                    {"type": "text()", "raw": "c", "rcdata": "c"},
                    {
                        "type": "element", "name": "br", "start_tag": "<br>",
                        "end_tag": None, "void": True, "children": [],
                    },
                    {"type": "text()", "raw": "d", "rcdata": "d"},
                ],
            }],
        }


class TestNodeKinds:
    """Test the individual node kinds."""

    def test_void_element_validation(self):
        """Test that void elements cannot have content."""
        with pytest.raises(ValueError):
            Element(StartTag("<br>"), children=(Text.from_pcdata("x"),), void=True)
        with pytest.raises(ValueError):
            Element(StartTag("<br>"), end_tag=EndTag("</br>"), void=True)

    def test_nodes_are_frozen(self):
        """Test immutability."""
        element = Element(StartTag("<p>"))
        with pytest.raises(dataclasses.FrozenInstanceError):
            element.void = True

    def test_container_identity(self):
        """Test that containers compare by identity; use to_dict for structure."""
        first, second = build("<p>a"), build("<p>a")
        assert first != second
        assert first.to_dict() == second.to_dict()

    def test_text_constructors(self):
        """Test text created from the different sources."""
        assert Text.from_pcdata("a & b").rcdata_value == "a &amp; b"
        assert Text.from_raw_text("a && b").rcdata_value == "a &amp;&amp; b"
        cdata = Text.from_cdata_section("<![CDATA[a&b]]>")
        assert cdata.raw == "<![CDATA[a&b]]>"
        assert cdata.text() == "a&b"

    def test_leaf_properties(self):
        """Test comment, processing instruction and bogus end tag accessors."""
        assert Comment("<!-- x -->").content == " x "
        assert ProcessingInstruction("<?xml-stylesheet href='a'?>").target == "xml-stylesheet"
        assert ProcessingInstruction("<?php?>").target == "php"
        bogus = BogusEndTag(EndTag("</Z>"))
        assert bogus.name == "z"
        assert bogus.raw == "</Z>"
        assert bogus.node_test == "bogus-etag()"

    def test_repr(self):
        """Test container representations."""
        document = build("<p>a</p>")
        assert repr(document) == "Document(children=1)"
        assert repr(document.root()) == "Element('<p>', children=1, end_tag='</p>', void=False)"


class TestDeepNesting:
    """Test that deep trees do not exhaust the call stack."""

    DEPTH = 20000

    def test_deep_tree(self):
        """Test every traversal on a deeply nested document."""
        text = "<div>" * self.DEPTH + "x" + "</div>" * self.DEPTH
        document = build(text)
        assert document.raw_string() == text
        assert sum(1 for _ in document.traverse_element("div")) == self.DEPTH
        assert document.text() == "x"
        assert document.to_dict()["children"][0]["name"] == "div"
        last = deque(document.traverse_with_path(), maxlen=1)
        assert last[0][1].endswith("/div/text()")
        assert document.filter(lambda node: True).raw_string() == text

    def test_deep_unclosed_tree(self):
        """Test a deeply nested document without end tags."""
        text = "<b>" * self.DEPTH
        document = build(text)
        assert document.raw_string() == text
