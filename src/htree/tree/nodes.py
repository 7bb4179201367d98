"""Immutable document tree nodes and the tree query API.

Every node keeps the exact source text it was built from, so
``document.raw_string()`` reproduces the parsed input.  Nodes are frozen
dataclasses whose children are tuples; the filter and fold operations build
new trees instead of mutating existing ones.

Traversals use an explicit stack rather than recursion so that arbitrarily
deep trees can be walked.
"""

from collections import Counter
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

from htree.character import decode_rcdata, encode_rcdata, escape_markup, fix_character_reference
from htree.tokenization.tag import Attribute, AttributeNotFoundError, EndTag, StartTag

CDATA_SECTION_START = "<![CDATA["
CDATA_SECTION_END = "]]>"

Predicate = Callable[["Node"], bool]
PathPredicate = Callable[["Node", str], bool]
FoldFunction = Callable[["Element", Optional[List[Any]]], Any]

_END = object()


class Node:
    """Operations shared by every node kind."""

    # Leaves have no children; containers override this with a field
    children = ()

    @property
    def node_test(self) -> str:
        """Step name of this node in a path expression."""
        raise NotImplementedError

    @property
    def is_container(self) -> bool:
        return False

    def raw_string(self) -> str:
        """Source text of the whole subtree."""
        return "".join(_subtree_pieces(self))

    def rcdata(self) -> str:
        """Concatenated rcdata of all text in the subtree."""
        return "".join(node.rcdata_value for node in self.traverse() if isinstance(node, Text))

    def text(self) -> str:
        """Concatenated text of the subtree with references decoded."""
        return decode_rcdata(self.rcdata())

    def html_text(self) -> str:
        """rcdata of the subtree with ``<`` and ``>`` escaped."""
        return escape_markup(self.rcdata())

    def traverse(self) -> Iterator["Node"]:
        """Iterate over this node and its descendants in document order."""
        stack: List[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def traverse_element(self, *names: str) -> Iterator["Element"]:
        """Iterate over elements in document order, optionally only ``names``."""
        wanted = {name.lower() for name in names}
        for node in self.traverse():
            if isinstance(node, Element) and (not wanted or node.name in wanted):
                yield node

    def find_element(self, *names: str) -> Optional["Element"]:
        """Get the first element in document order, optionally only ``names``."""
        return next(self.traverse_element(*names), None)

    def root(self) -> Optional["Element"]:
        return None

    def children_with_paths(self, prefix: str = "") -> Iterator[Tuple["Node", str]]:
        """Iterate over children paired with their path.

        A step is ``node_test`` followed by the 1-based position among the
        siblings with the same ``node_test``; the position is omitted when the
        step is unique among its siblings.
        """
        counts = Counter(child.node_test for child in self.children)
        seen: Counter = Counter()
        for child in self.children:
            step = child.node_test
            seen[step] += 1
            if counts[step] > 1:
                step = f"{step}[{seen[step]}]"
            yield child, f"{prefix}/{step}"

    def traverse_with_path(self, path: Optional[str] = None) -> Iterator[Tuple["Node", str]]:
        """Iterate over the subtree in document order paired with paths."""
        stack: List[Tuple[Node, str]] = [(self, self._own_path(path))]
        while stack:
            node, node_path = stack.pop()
            yield node, node_path
            prefix = "" if isinstance(node, Document) else node_path
            stack.extend(reversed(list(node.children_with_paths(prefix))))

    def to_dict(self) -> Dict[str, Any]:
        return _leaf_to_dict(self)

    def _own_path(self, path: Optional[str]) -> str:
        return path if path is not None else f"/{self.node_test}"

    def filter(self, predicate: Predicate) -> "Node":
        """Build a tree keeping only the nodes accepted by ``predicate``.

        The predicate is applied to descendants only; rejected elements are
        dropped together with their subtree.
        """
        return self._filter_tree(lambda node, _path: predicate(node), None)

    def filter_element(self, predicate: Predicate) -> "Node":
        """Like :meth:`filter`, but non-element nodes are always kept."""
        return self.filter(lambda node: not isinstance(node, Element) or predicate(node))

    def filter_with_path(self, predicate: PathPredicate, path: Optional[str] = None) -> "Node":
        """Like :meth:`filter`, with the predicate also receiving the node path."""
        return self._filter_tree(predicate, self._own_path(path))

    def filter_element_with_path(
        self, predicate: PathPredicate, path: Optional[str] = None
    ) -> "Node":
        """Like :meth:`filter_with_path`, but non-element nodes are always kept."""
        return self.filter_with_path(
            lambda node, node_path: not isinstance(node, Element) or predicate(node, node_path),
            path,
        )

    def _filter_tree(self, predicate: PathPredicate, path: Optional[str]) -> "Node":
        if not self.is_container:
            return self

        def entries(node: Node, node_path: Optional[str]) -> Iterator[Tuple[Node, Any]]:
            if node_path is None:
                return ((child, None) for child in node.children)
            prefix = "" if isinstance(node, Document) else node_path
            return node.children_with_paths(prefix)

        stack: List[Tuple[Node, Iterator[Tuple[Node, Any]], List[Node]]] = [
            (self, entries(self, path), [])
        ]
        while True:
            node, remaining, kept = stack[-1]
            entry = next(remaining, None)
            if entry is None:
                stack.pop()
                rebuilt = node._with_children(kept)
                if not stack:
                    return rebuilt
                stack[-1][2].append(rebuilt)
                continue
            child, child_path = entry
            if not predicate(child, child_path):
                continue
            if child.is_container:
                stack.append((child, entries(child, child_path), []))
            else:
                kept.append(child)

    def _with_children(self, children: Iterable["Node"]) -> "Node":
        return self

    def fold_element(self, function: FoldFunction) -> Any:
        """Rewrite the tree bottom-up.

        ``function(element, children)`` is called for every element after its
        children have been folded; ``children`` is the list of folded child
        results, or ``None`` for void elements.  Non-element nodes fold to
        themselves and ``None`` results are dropped.
        """
        return self


class Container(Node):
    """Node kinds holding a tuple of children."""

    @property
    def is_container(self) -> bool:
        return True

    def fold_element(self, function: FoldFunction) -> Any:
        stack: List[Tuple[Node, Iterator[Node], List[Any]]] = [(self, iter(self.children), [])]
        while True:
            node, remaining, folded = stack[-1]
            child = next(remaining, _END)
            if child is _END:
                stack.pop()
                result = node._fold_finish(function, folded)
                if not stack:
                    return result
                if result is not None:
                    stack[-1][2].append(result)
            elif child.is_container:
                stack.append((child, iter(child.children), []))
            else:
                result = child.fold_element(function)
                if result is not None:
                    folded.append(result)

    def _fold_finish(self, function: FoldFunction, folded: List[Any]) -> Any:
        raise NotImplementedError


@dataclass(frozen=True, eq=False)
class Document(Container):
    """Root of a parsed document."""

    children: Tuple[Node, ...] = ()

    @property
    def node_test(self) -> str:
        return "/"

    @property
    def raw(self) -> str:
        return ""

    def _own_path(self, path: Optional[str]) -> str:
        return "/"

    def _with_children(self, children: Iterable[Node]) -> "Document":
        return Document(tuple(children))

    def _fold_finish(self, function: FoldFunction, folded: List[Any]) -> "Document":
        return Document(tuple(folded))

    def root(self) -> Optional["Element"]:
        """Get the first top-level element."""
        for child in self.children:
            if isinstance(child, Element):
                return child
        return None

    def title(self) -> Optional[str]:
        """Get the stripped text of the first ``title`` element."""
        element = self.find_element("title")
        return element.text().strip() if element is not None else None

    def author(self) -> Optional[str]:
        """Get the document author.

        Looks for ``<meta name="author" content="...">`` first, then for
        ``<link rev="made" title="...">``.
        """
        for tag_name, key, value, field_name in (
            ("meta", "name", "author", "content"),
            ("link", "rev", "made", "title"),
        ):
            for element in self.traverse_element(tag_name):
                try:
                    if element.fetch_attribute(key).lower() != value:
                        continue
                    author = element.fetch_attribute(field_name).strip()
                except AttributeNotFoundError:
                    continue
                if author:
                    return author
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the tree to nested dictionaries."""
        return {
            "type": "document",
            "children": [
                child.to_dict() for child in self.children
            ],
        }

    def __repr__(self) -> str:
        return f"Document(children={len(self.children)})"


@dataclass(frozen=True, eq=False)
class Element(Container):
    """Element with its start tag, children and optional end tag.

    ``void`` marks elements that can have no content: either written as
    ``<name/>`` or declared empty by the HTML content model.  A void element
    has no children and no end tag.
    """

    start_tag: StartTag
    children: Tuple[Node, ...] = ()
    end_tag: Optional[EndTag] = None
    void: bool = False

    def __post_init__(self) -> None:
        """Validate element structure."""
        if self.void and (self.children or self.end_tag is not None):
            raise ValueError("Void element cannot have children or an end tag")

    @property
    def name(self) -> str:
        """Lowercase element name."""
        return self.start_tag.name

    @property
    def node_test(self) -> str:
        return self.name

    @property
    def raw(self) -> str:
        return self.start_tag.raw

    @property
    def is_void(self) -> bool:
        return self.void

    def root(self) -> Optional["Element"]:
        return self

    def attributes(self) -> Tuple[Attribute, ...]:
        return self.start_tag.attributes

    def attribute_texts(self) -> List[Tuple[Optional[str], str]]:
        return self.start_tag.attribute_texts()

    def fetch_attribute(self, name: str) -> str:
        """Get the decoded value of attribute ``name``.

        Raises:
            AttributeNotFoundError: If the start tag has no such attribute
        """
        return self.start_tag.fetch_attribute(name)

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.start_tag.get_attribute(name, default)

    def has_attribute(self, name: str) -> bool:
        return self.start_tag.has_attribute(name)

    def _with_children(self, children: Iterable[Node]) -> "Element":
        return Element(self.start_tag, tuple(children), self.end_tag, self.void)

    def _fold_finish(self, function: FoldFunction, folded: List[Any]) -> Any:
        return function(self, None if self.void else folded)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the subtree to nested dictionaries."""
        return self.fold_element(_element_to_dict_fold)

    def __repr__(self) -> str:
        return (
            f"Element({self.start_tag.raw!r}, children={len(self.children)}, "
            f"end_tag={self.end_tag.raw if self.end_tag else None!r}, void={self.void})"
        )


@dataclass(frozen=True)
class Text(Node):
    """Character data.

    ``raw`` is the source text and ``rcdata_value`` its reference-normalized
    form, which differs from ``raw`` for verbatim content and CDATA sections.
    """

    raw: str
    rcdata_value: str

    @classmethod
    def from_pcdata(cls, raw: str) -> "Text":
        """Text whose references are parsed."""
        return cls(raw, fix_character_reference(raw))

    @classmethod
    def from_raw_text(cls, raw: str) -> "Text":
        """Verbatim body of a raw-text element: ``&`` is literal."""
        return cls(raw, encode_rcdata(raw))

    @classmethod
    def from_cdata_section(cls, raw: str) -> "Text":
        """``<![CDATA[...]]>`` section: delimiters stripped, ``&`` literal."""
        content = raw
        if content.startswith(CDATA_SECTION_START):
            content = content[len(CDATA_SECTION_START):]
        if content.endswith(CDATA_SECTION_END):
            content = content[:-len(CDATA_SECTION_END)]
        return cls(raw, encode_rcdata(content))

    @property
    def node_test(self) -> str:
        return "text()"

    def rcdata(self) -> str:
        return self.rcdata_value


@dataclass(frozen=True)
class Comment(Node):
    raw: str

    @property
    def node_test(self) -> str:
        return "comment()"

    @property
    def content(self) -> str:
        """Comment body without the ``<!--`` and ``-->`` delimiters."""
        return self.raw[4:-3]


@dataclass(frozen=True)
class ProcessingInstruction(Node):
    raw: str

    @property
    def node_test(self) -> str:
        return "processing-instruction()"

    @property
    def target(self) -> str:
        """Target name, e.g. ``xml`` for an XML declaration."""
        body = self.raw[2:].lstrip()
        end = 0
        while end < len(body) and not body[end].isspace() and body[end] not in "?>":
            end += 1
        return body[:end]


@dataclass(frozen=True)
class DocType(Node):
    raw: str

    @property
    def node_test(self) -> str:
        return "doctype()"


@dataclass(frozen=True)
class BogusEndTag(Node):
    """End tag that closes no open element, kept in place as a leaf."""

    end_tag: EndTag

    @property
    def node_test(self) -> str:
        return "bogus-etag()"

    @property
    def raw(self) -> str:
        return self.end_tag.raw

    @property
    def name(self) -> str:
        return self.end_tag.name


Leaf = Union[Text, Comment, ProcessingInstruction, DocType, BogusEndTag]


def _subtree_pieces(node: Node) -> Iterator[str]:
    # Strings and nodes share the stack; strings are emitted as they surface
    stack: List[Union[Node, str]] = [node]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            yield item
        elif isinstance(item, Element):
            yield item.start_tag.raw
            if item.end_tag is not None:
                stack.append(item.end_tag.raw)
            stack.extend(reversed(item.children))
        elif isinstance(item, Document):
            stack.extend(reversed(item.children))
        else:
            yield item.raw


def _leaf_to_dict(node: Node) -> Dict[str, Any]:
    result: Dict[str, Any] = {"type": node.node_test, "raw": node.raw}
    if isinstance(node, Text):
        result["rcdata"] = node.rcdata_value
    return result


def _element_to_dict_fold(element: Element, children: Optional[List[Any]]) -> Dict[str, Any]:
    return {
        "type": "element",
        "name": element.name,
        "start_tag": element.start_tag.raw,
        "end_tag": element.end_tag.raw if element.end_tag else None,
        "void": element.void,
        "children": [
            child if isinstance(child, dict) else _leaf_to_dict(child)
            for child in children or ()
        ],
    }
