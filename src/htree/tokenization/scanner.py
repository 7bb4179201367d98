"""Scanner turning markup text into an ordered token sequence.

The scanner is a position loop over the input.  Character data is copied up to
the next ``<``; at each ``<`` a handful of anchored patterns decide which kind
of markup starts there, in this order of precedence:

    DOCTYPE > processing instruction > comment > CDATA section
    > end tag > start tag > void tag > literal text

A ``<`` that starts no markup is ordinary text.  Text between two markup tokens
is always emitted as a single token, so the concatenated raw text of the token
sequence is exactly the input.

Start and void tags that the strict pattern rejects go through the lenient
attribute decomposition in :mod:`htree.tokenization.tag`.  Terminator searches
are memoized per scan, so scanning takes linear time even on input full of
unterminated markup.
"""

import re
from collections import Counter
from typing import Dict, Iterator, List, Optional, Pattern, Tuple

from htree.content_model import is_raw_text_element
from htree.shared.config import ScannerConfig
from htree.shared.logging import get_logger

from .tag import (
    END_TAG,
    NAME_PATTERN,
    STRICT_START_TAG,
    STRICT_VOID_TAG,
    Tag,
    lenient_attributes,
)
from .tokens import Token, TokenizationInvariantError, TokenPosition, TokenType

DOCTYPE_PREFIX = "<!doctype"
COMMENT_PREFIX = "<!--"
COMMENT_SUFFIX = "-->"
CDATA_PREFIX = "<![CDATA["
CDATA_SUFFIX = "]]>"
PI_PREFIX = "<?"

_XML_DECL_VALUE = r"(?:\"[^\"]*\"|'[^']*')"
XML_DECLARATION = re.compile(
    rf"<\?xml\s+version\s*=\s*{_XML_DECL_VALUE}"
    rf"(?:\s+encoding\s*=\s*{_XML_DECL_VALUE})?"
    rf"(?:\s+standalone\s*=\s*{_XML_DECL_VALUE})?\s*\?>",
    re.ASCII,
)
XML_CONTENT_TYPE = re.compile(
    r"\A(?:text/xml|application/(?:[A-Za-z0-9.-]+\+)?xml)\Z", re.IGNORECASE
)


def is_xml_content_type(content_type: Optional[str]) -> bool:
    """Check if a MIME content type names an XML document.

    Parameters after ``;`` are ignored.

    >>> is_xml_content_type("application/xhtml+xml; charset=utf-8")
    True
    >>> is_xml_content_type("text/html")
    False
    """
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip()
    return XML_CONTENT_TYPE.match(media_type) is not None


class _PositionTracker:
    """Incremental offset to line/column conversion."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.offset = 0
        self.line = 1
        self.column = 1

    def at(self, offset: int) -> TokenPosition:
        if offset < self.offset:
            raise TokenizationInvariantError(
                f"position moved backwards [bug]: {offset} < {self.offset}"
            )
        newlines = self.text.count("\n", self.offset, offset)
        if newlines:
            self.line += newlines
            self.column = offset - self.text.rfind("\n", self.offset, offset)
        else:
            self.column += offset - self.offset
        self.offset = offset
        return TokenPosition(self.line, self.column, offset)


class _TerminatorCache:
    """Memoized forward search for markup terminators within one scan.

    Each terminator remembers where it was last searched from and what was
    found.  A later search starting at or after that point reuses the answer
    while the found occurrence still lies ahead, so an input full of
    unterminated ``<!--`` or ``<?`` is searched once rather than once per
    opener.
    """

    def __init__(self, text: str, limit: int) -> None:
        self.text = text
        self.limit = limit
        self._found: Dict[str, Tuple[int, int]] = {}

    def find(self, terminator: str, start: int) -> int:
        cached = self._found.get(terminator)
        if cached is not None:
            searched_from, index = cached
            if searched_from <= start and (index < 0 or start <= index):
                return index
        index = self.text.find(terminator, start, self.limit)
        self._found[terminator] = (start, index)
        return index


class HTMLScanner:
    """Tag-soup scanner producing lossless token sequences.

    A scanner instance can be reused; :attr:`is_xml` and :attr:`statistics`
    describe the most recent scan.
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            config: Scanner configuration, defaults to ``ScannerConfig()``
            correlation_id: Optional correlation ID for tracking requests
        """
        self.config = config or ScannerConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, "scanner")
        self.is_xml = False
        self.statistics: Counter = Counter()
        self._raw_text_end_patterns: Dict[str, Pattern[str]] = {}

    def tokenize(self, text: str, content_type: Optional[str] = None) -> List[Token]:
        """Scan ``text`` completely and return the token list."""
        return list(self.scan(text, content_type))

    def scan(self, text: str, content_type: Optional[str] = None) -> Iterator[Token]:
        """Lazily scan ``text`` into tokens.

        Args:
            text: Decoded input document
            content_type: Optional MIME type hint; an XML type disables
                raw-text handling of ``script`` and ``style``

        Yields:
            Tokens in input order, covering every character exactly once
        """
        self.is_xml = self.config.assume_xml or is_xml_content_type(content_type)
        self.statistics = Counter()
        limit = len(text)
        if self.config.max_markup_scan_chars is not None:
            limit = min(limit, self.config.max_markup_scan_chars)

        self.logger.debug(
            "Starting scan",
            extra={"char_count": len(text), "scan_limit": limit, "is_xml": self.is_xml},
        )

        positions = _PositionTracker(text)
        terminators = _TerminatorCache(text, limit)
        text_start = 0  # Start of the pending text run
        pos = 0
        while pos < limit:
            lt = text.find("<", pos, limit)
            if lt < 0:
                break
            token_type, end = self._match_markup(text, lt, limit, terminators)
            if token_type is None:
                pos = lt + 1
                continue

            if text_start < lt:
                yield self._token(TokenType.TEXT, text, text_start, lt, positions)
            yield self._token(token_type, text, lt, end, positions)
            pos = text_start = end

            if token_type is TokenType.PROCESSING_INSTRUCTION:
                self._check_xml_declaration(text[lt:end])
            elif token_type is TokenType.START_TAG and self._enters_raw_text(text[lt:end]):
                for token in self._scan_raw_text(text, end, Tag(text[lt:end]).name, positions):
                    yield token
                    pos = text_start = token.end_offset

        if limit < len(text) and text_start < limit:
            self.logger.debug(
                "Markup recognition bound reached",
                extra={"offset": limit, "remaining_chars": len(text) - limit},
            )
        if text_start < len(text):
            yield self._token(TokenType.TEXT, text, text_start, len(text), positions)

        self.logger.debug(
            "Scan complete",
            extra={"token_counts": {t.name: n for t, n in self.statistics.items()}},
        )

    def _token(
        self,
        token_type: TokenType,
        text: str,
        start: int,
        end: int,
        positions: _PositionTracker,
        verbatim: bool = False,
    ) -> Token:
        self.statistics[token_type] += 1
        return Token(token_type, text[start:end], positions.at(start), verbatim)

    def _match_markup(
        self, text: str, pos: int, limit: int, terminators: _TerminatorCache
    ) -> Tuple[Optional[TokenType], int]:
        """Classify the markup starting at ``text[pos] == "<"``.

        Returns:
            Token type and end offset, or ``(None, pos)`` when the ``<`` is text
        """
        if text.startswith("<!", pos, limit):
            if text[pos:pos + len(DOCTYPE_PREFIX)].lower() == DOCTYPE_PREFIX:
                return self._until(
                    TokenType.DOCTYPE, terminators, pos, ">", len(DOCTYPE_PREFIX)
                )
            if text.startswith(COMMENT_PREFIX, pos, limit):
                return self._until(
                    TokenType.COMMENT, terminators, pos, COMMENT_SUFFIX, len(COMMENT_PREFIX)
                )
            if text.startswith(CDATA_PREFIX, pos, limit):
                return self._until(
                    TokenType.CDATA_SECTION, terminators, pos, CDATA_SUFFIX, len(CDATA_PREFIX)
                )
            return None, pos
        if text.startswith(PI_PREFIX, pos, limit):
            return self._until(
                TokenType.PROCESSING_INSTRUCTION, terminators, pos, ">", len(PI_PREFIX)
            )
        if text.startswith("</", pos, limit):
            match = END_TAG.match(text, pos, limit)
            return (TokenType.END_TAG, match.end()) if match else (None, pos)
        match = STRICT_START_TAG.match(text, pos, limit)
        if match is not None:
            return TokenType.START_TAG, match.end()
        name = NAME_PATTERN.match(text, pos + 1, limit)
        if name is None:
            return None, pos
        close = terminators.find(">", name.end())
        if close < 0:
            return None, pos
        if lenient_attributes(text, name.end(), close) is not None:
            return TokenType.START_TAG, close + 1
        match = STRICT_VOID_TAG.match(text, pos, limit)
        if match is not None:
            return TokenType.VOID_TAG, match.end()
        slash = close - 1
        if text[slash] == "/" and slash >= name.end():
            if lenient_attributes(text, name.end(), slash) is not None:
                return TokenType.VOID_TAG, close + 1
        return None, pos

    @staticmethod
    def _until(
        token_type: TokenType,
        terminators: _TerminatorCache,
        pos: int,
        terminator: str,
        skip: int,
    ) -> Tuple[Optional[TokenType], int]:
        end = terminators.find(terminator, pos + skip)
        if end < 0:
            return None, pos
        return token_type, end + len(terminator)

    def _check_xml_declaration(self, raw: str) -> None:
        if self.is_xml or not self.config.detect_xml_declaration:
            return
        if XML_DECLARATION.fullmatch(raw):
            self.is_xml = True
            self.logger.debug("XML declaration found, raw-text mode disabled")

    def _enters_raw_text(self, raw: str) -> bool:
        if self.is_xml or not self.config.raw_text_elements_enabled:
            return False
        return is_raw_text_element(Tag(raw).name)

    def _raw_text_end(self, name: str) -> Pattern[str]:
        pattern = self._raw_text_end_patterns.get(name)
        if pattern is None:
            pattern = re.compile(rf"</{re.escape(name)}\s*>", re.IGNORECASE | re.ASCII)
            self._raw_text_end_patterns[name] = pattern
        return pattern

    def _scan_raw_text(
        self, text: str, start: int, name: str, positions: _PositionTracker
    ) -> Iterator[Token]:
        """Copy the body of raw-text element ``name`` verbatim."""
        match = self._raw_text_end(name).search(text, start)
        body_end = match.start() if match else len(text)
        self.logger.debug(
            "Raw-text element body",
            extra={"element": name, "offset": start, "terminated": match is not None},
        )
        if start < body_end:
            yield self._token(TokenType.TEXT, text, start, body_end, positions, verbatim=True)
        if match is not None:
            yield self._token(TokenType.END_TAG, text, match.start(), match.end(), positions)
