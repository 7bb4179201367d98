"""Tokenization layer for htree.

Key Components:
    HTMLScanner: Lossless tag-soup scanner
    Token, TokenType, TokenPosition: Scanner output
    Tag, StartTag, EndTag, Attribute: Tag text model with total attribute extraction
"""

from .scanner import HTMLScanner, is_xml_content_type
from .tag import (
    Attribute,
    AttributeNotFoundError,
    EndTag,
    StartTag,
    Tag,
    extract_attributes,
)
from .tokens import (
    MARKUP_TOKEN_TYPES,
    Token,
    TokenizationInvariantError,
    TokenPosition,
    TokenType,
)

__all__ = [
    "MARKUP_TOKEN_TYPES",
    "Attribute",
    "AttributeNotFoundError",
    "EndTag",
    "HTMLScanner",
    "StartTag",
    "Tag",
    "Token",
    "TokenPosition",
    "TokenType",
    "TokenizationInvariantError",
    "extract_attributes",
    "is_xml_content_type",
]
