"""HTree: a tag-soup HTML/XML parser.

Parses any text into a lossless, immutable tree: unmatched end tags become
bogus nodes, unclosed elements are closed where the HTML content model says
they end, and the raw string of the tree always reproduces the input.

Progressive API Disclosure:
- Level 1: Simple functions - parse(), parse_string(), parse_file()
- Level 2: Configured parser - HTreeParser class
- Level 3: Pipeline components - HTMLScanner, TagPairer, ContentModelRepairer
"""

__version__ = "0.1.0"
__author__ = "HTree Team"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2: Advanced configuration
from .api import HTreeParser, examine_page, parse, parse_file, parse_string

# Configuration classes for advanced usage
from .shared.config import ParserConfig

# Level 3: pipeline components
from .tokenization import HTMLScanner
from .tree import (
    ContentModelRepairer,
    Document,
    Element,
    ParseResult,
    TagPairer,
    Text,
)

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple parsing functions
    "parse",
    "parse_string",
    "parse_file",
    "examine_page",

    # Level 2: Advanced parser class
    "HTreeParser",
    "ParserConfig",

    # Level 3: Pipeline components
    "HTMLScanner",
    "TagPairer",
    "ContentModelRepairer",

    # Result objects and data structures
    "ParseResult",
    "Document",
    "Element",
    "Text",
]
