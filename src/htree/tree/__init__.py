"""Tree layer for htree.

Key Components:
    HTreeBuilder: Runs scanning, pairing and repair, returning a ParseResult
    TagPairer: Stack-based start/end tag matching
    ContentModelRepairer: Implicit closing driven by the HTML content model
    Document, Element, Text, ...: Immutable nodes with the tree query API
"""

from .builder import HTreeBuilder, ParseResult
from .nodes import (
    BogusEndTag,
    Comment,
    DocType,
    Document,
    Element,
    Node,
    ProcessingInstruction,
    Text,
)
from .pairer import TagPairer
from .repair import ContentModelRepairer, ElementState, RepairContext, repair_document

__all__ = [
    "BogusEndTag",
    "Comment",
    "ContentModelRepairer",
    "DocType",
    "Document",
    "Element",
    "ElementState",
    "HTreeBuilder",
    "Node",
    "ParseResult",
    "ProcessingInstruction",
    "RepairContext",
    "TagPairer",
    "Text",
    "repair_document",
]
