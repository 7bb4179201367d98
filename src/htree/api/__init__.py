"""Public API layer for htree.

Key Components:
    parse, parse_string, parse_file: Never-fail parsing functions
    HTreeParser: Reusable parser bound to a ParserConfig
    examine_page: Title, author, links and fingerprint of a fetched page
    get_adapter: Conversion to ElementTree, lxml and BeautifulSoup trees
"""

from .adapters import (
    AdapterMetadata,
    BeautifulSoupAdapter,
    ConversionResult,
    ElementTreeAdapter,
    IntegrationAdapter,
    LxmlAdapter,
    get_adapter,
    list_available_adapters,
)
from .extract import (
    IgnoreRules,
    PageInfo,
    content_fingerprint,
    examine_page,
    extract_feed_link,
    extract_last_modified,
    extract_links,
    ignore_tree,
    is_markup_content,
    path_pattern,
)
from .parser import HTreeParser, parse, parse_file, parse_string

__all__ = [
    "AdapterMetadata",
    "BeautifulSoupAdapter",
    "ConversionResult",
    "ElementTreeAdapter",
    "HTreeParser",
    "IgnoreRules",
    "IntegrationAdapter",
    "LxmlAdapter",
    "PageInfo",
    "content_fingerprint",
    "examine_page",
    "extract_feed_link",
    "extract_last_modified",
    "extract_links",
    "get_adapter",
    "ignore_tree",
    "is_markup_content",
    "list_available_adapters",
    "parse",
    "parse_file",
    "parse_string",
    "path_pattern",
]
