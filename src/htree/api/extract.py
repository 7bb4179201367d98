"""Page examination helpers for change monitoring.

These functions pull the facts a web-change monitor records about a fetched
page out of its parsed tree: title, author, ``Last-Modified`` meta data, the
channel link of RSS/RDF feeds, the links of the page, and a fingerprint of
the text content that ignores configured parts of the page.
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple
from urllib.parse import urljoin

from htree.shared import ExtractionConfig, ParserConfig, get_logger
from htree.tree import Document, Element, Node

from .parser import parse_string

MARKUP_CONTENT_TYPE = re.compile(
    r"\A(?:text/html|text/xml|application/(?:[A-Za-z0-9.-]+\+)?xml)\Z", re.IGNORECASE
)
XML_DECLARATION_PREFIX = "<?xml"
FEED_ROOT_ELEMENTS = frozenset(["rss", "rdf:rdf"])
_STEP = re.compile(r"[^/]+")
_INDEXED_STEP = re.compile(r"\A(.*)\[(\d+)\]\Z")
_DESCENDANT_SEPARATOR = re.compile(r"//+")

logger = get_logger(__name__, component="extract")


def is_markup_content(content_type: Optional[str], text: str) -> bool:
    """Check if a fetched page should be parsed as HTML or XML.

    >>> is_markup_content("text/html; charset=EUC-JP", "")
    True
    >>> is_markup_content("text/plain", "<?xml version='1.0'?><a/>")
    True
    >>> is_markup_content("image/png", "")
    False
    """
    media_type = (content_type or "").split(";", 1)[0].strip()
    if MARKUP_CONTENT_TYPE.match(media_type):
        return True
    return text.startswith(XML_DECLARATION_PREFIX)


def _step_pattern(step: str) -> str:
    match = _INDEXED_STEP.match(step)
    if match is None:
        return re.escape(step) + r"(?:\[\d+\])?"
    if int(match.group(2)) == 1:
        # A unique child has no index in its path
        return re.escape(match.group(1)) + r"(?:\[1\])?"
    return re.escape(step)


def path_pattern(paths: Iterable[str]) -> Optional[Pattern[str]]:
    """Compile ignore paths into one regular expression over node paths.

    - a step without an index matches that step at any index
    - a step with index ``[1]`` also matches the step without an index
    - ``//`` matches any number of intermediate steps

    Returns:
        Compiled pattern, or ``None`` when ``paths`` is empty

    >>> bool(path_pattern(["/html/body//div"]).match("/html/body/div[2]/div[3]"))
    True
    """
    alternatives = []
    for path in paths:
        translated = _STEP.sub(lambda m: _step_pattern(m.group(0)), path)
        alternatives.append(_DESCENDANT_SEPARATOR.sub(lambda _m: "/(?:[^/]+/)*", translated))
    if not alternatives:
        return None
    return re.compile(r"\A(?:" + "|".join(alternatives) + r")\Z")


@dataclass(frozen=True)
class IgnoreRules:
    """Parts of a page that do not count as content."""

    paths: Tuple[str, ...] = ()
    classes: Tuple[str, ...] = ()
    ids: Tuple[str, ...] = ()
    elements: Tuple[str, ...] = ("script", "style")
    _pattern: Optional[Pattern[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Normalize sequences and compile the path pattern."""
        for name in ("paths", "classes", "ids", "elements"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, "_pattern", path_pattern(self.paths))

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "IgnoreRules":
        return cls(
            paths=config.ignore_paths,
            classes=config.ignore_classes,
            ids=config.ignore_ids,
            elements=config.ignored_elements,
        )

    def ignores(self, node: Node, path: str) -> bool:
        """Check if ``node`` at ``path`` is excluded from the content."""
        if self._pattern is not None and self._pattern.match(path):
            return True
        if not isinstance(node, Element):
            return False
        if node.name in self.elements:
            return True
        if self.classes:
            classes = (node.get_attribute("class") or "").split()
            if any(name in self.classes for name in classes):
                return True
        return bool(self.ids) and node.get_attribute("id") in self.ids

    def signature(self) -> List[str]:
        """Describe the active rules, for storing next to a fingerprint."""
        result: List[str] = []
        if self.paths:
            result.extend(["IgnorePath", *self.paths])
        if self.classes:
            result.extend(["IgnoreClass", *self.classes])
        if self.ids:
            result.extend(["IgnoreID", *self.ids])
        return result


def ignore_tree(document: Document, rules: Optional[IgnoreRules] = None) -> Document:
    """Remove ignored elements and paths from ``document``."""
    rules = rules or IgnoreRules()
    return document.filter_with_path(lambda node, path: not rules.ignores(node, path))


def content_fingerprint(document: Node, algorithm: str = "sha1") -> str:
    """Hex digest of the text content of ``document``.

    Markup changes that leave the text alone do not change the fingerprint.
    """
    digest = hashlib.new(algorithm)
    digest.update(document.rcdata().encode("utf-8"))
    return digest.hexdigest()


def extract_links(document: Document, base_uri: Optional[str] = None) -> List[str]:
    """Absolute ``href`` targets of the ``a`` elements, in document order.

    A ``<base href>`` element changes the base URI for the links after it.
    Duplicates are reported once.
    """
    links: List[str] = []
    seen = set()
    base = base_uri or ""
    for element in document.traverse_element("base", "a"):
        href = element.get_attribute("href")
        if href is None:
            continue
        href = href.strip()
        if element.name == "base":
            base = urljoin(base, href)
            continue
        uri = urljoin(base, href)
        if uri not in seen:
            seen.add(uri)
            links.append(uri)
    return links


def extract_last_modified(document: Document) -> Optional[datetime]:
    """Date of the first parseable ``<meta http-equiv="Last-Modified">``."""
    for element in document.traverse_element("meta"):
        if (element.get_attribute("http-equiv") or "").lower() != "last-modified":
            continue
        content = element.get_attribute("content")
        if not content:
            continue
        try:
            return parsedate_to_datetime(content.strip())
        except (TypeError, ValueError):
            logger.debug("Unparseable Last-Modified meta", extra={"value": content})
    return None


def extract_feed_link(document: Document) -> Optional[str]:
    """Channel link of an RSS or RDF feed."""
    root = document.root()
    if root is None or root.name not in FEED_ROOT_ELEMENTS:
        return None
    link = root.find_element("link")
    if link is None:
        return None
    uri = link.text().strip()
    return uri if uri.startswith(("http://", "https://")) else None


@dataclass
class PageInfo:
    """Facts extracted from one page."""

    title: Optional[str] = None
    author: Optional[str] = None
    last_modified: Optional[datetime] = None
    link_uri: Optional[str] = None
    fingerprint: Optional[str] = None
    ignore_signature: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "link_uri": self.link_uri,
            "fingerprint": self.fingerprint,
            "ignore_signature": list(self.ignore_signature),
        }


def examine_page(
    text: str,
    content_type: Optional[str] = None,
    rules: Optional[IgnoreRules] = None,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
    document: Optional[Document] = None,
) -> Optional[PageInfo]:
    """Parse a fetched page and extract its monitoring facts.

    Args:
        text: Decoded page content
        content_type: MIME type reported for the page
        rules: Ignore rules for the fingerprint, defaults to the rules of
            ``config.extraction``
        config: Parser configuration, defaults to ``ParserConfig()``
        correlation_id: Optional correlation ID for request tracking
        document: Tree of ``text`` when the caller has parsed it already

    Returns:
        PageInfo, or ``None`` when the content is not HTML or XML
    """
    page_logger = get_logger(__name__, correlation_id, "extract")
    if not is_markup_content(content_type, text):
        page_logger.debug("Not a markup page", extra={"content_type": content_type})
        return None

    config = config or ParserConfig()
    rules = rules or IgnoreRules.from_config(config.extraction)
    if document is None:
        document = parse_string(text, content_type, config, correlation_id).document

    info = PageInfo(
        title=document.title(),
        author=document.author(),
        last_modified=extract_last_modified(document),
        link_uri=extract_feed_link(document),
        fingerprint=content_fingerprint(
            ignore_tree(document, rules), config.extraction.fingerprint_algorithm
        ),
        ignore_signature=rules.signature(),
    )
    page_logger.info(
        "Page examined",
        extra={"has_title": info.title is not None, "fingerprint": info.fingerprint},
    )
    return info
