"""Tag and attribute model.

A tag keeps its source text untouched; the lowercase name and the attribute
list are derived from it on first use.  Attribute extraction is total: the tag
text is decomposed with the strict grammar (quoted values, whitespace
separated) when that grammar matches the whole tag, and with the lenient
grammar otherwise.  The lenient grammar tolerates unquoted values containing
arbitrary characters, attributes glued to a preceding quoted value, bare
tokens, and a final attribute whose quote is never closed.
"""

import re
import string
from dataclasses import dataclass
from functools import cached_property
from typing import Iterator, List, Optional, Tuple

from htree.character import decode_rcdata, fix_character_reference

from .tokens import TokenizationInvariantError

NAME = r"[A-Za-z_:][-A-Za-z0-9._:]*"

# Strict grammar: whitespace separated, quoted or name-token values
_STRICT_ATTR = rf"{NAME}(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[-A-Za-z0-9._:]+))?"
_STRICT_ATTR_C = (
    rf"({NAME})(?:\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([-A-Za-z0-9._:]+)))?"
)

NAME_PATTERN = re.compile(NAME)

STRICT_START_TAG = re.compile(rf"<{NAME}(?:\s+{_STRICT_ATTR})*\s*>", re.ASCII)
STRICT_VOID_TAG = re.compile(rf"<{NAME}(?:\s+{_STRICT_ATTR})*\s*/>", re.ASCII)
END_TAG = re.compile(rf"</({NAME})\s*>", re.ASCII)

_STRICT_TAG_C = re.compile(rf"<({NAME})((?:\s+{_STRICT_ATTR})*)\s*/?>", re.ASCII)
_STRICT_ATTR_PATTERN = re.compile(_STRICT_ATTR_C, re.ASCII)

# Lenient grammar character classes; the same whitespace as ASCII ``\s``
_SPACE = " \t\n\r\f\v"
_QUOTES = "\"'"
_NAME_START = frozenset(string.ascii_letters + "_:")
_NAME_CHARS = _NAME_START | frozenset(string.digits + "-.")
_BARE_STOP = _SPACE + _QUOTES + "="
_LAST_BARE_STOP = _SPACE + "="


class AttributeNotFoundError(KeyError):
    """Raised by attribute lookups when no attribute has the requested name."""


@dataclass(frozen=True)
class Attribute:
    """One attribute of a start tag.

    ``name`` is the lowercased attribute name, or ``None`` for a bare token
    such as ``selected`` whose text is then carried in ``rcdata``.
    """

    name: Optional[str]
    rcdata: str

    @property
    def text(self) -> str:
        """Decoded attribute value."""
        return decode_rcdata(self.rcdata)


def _attribute(name: Optional[str], value: str) -> Attribute:
    return Attribute(name.lower() if name is not None else None, fix_character_reference(value))


def _strict_attributes(body: str) -> Iterator[Attribute]:
    for match in _STRICT_ATTR_PATTERN.finditer(body):
        name, *values = match.groups()
        value = next((v for v in values if v is not None), None)
        # A name without value is a bare token
        yield _attribute(name, value) if value is not None else _attribute(None, name)


def _skip_space(text: str, pos: int, end: int) -> int:
    while pos < end and text[pos] in _SPACE:
        pos += 1
    return pos


def _skip_name(text: str, pos: int, end: int) -> int:
    while pos < end and text[pos] in _NAME_CHARS:
        pos += 1
    return pos


def _run_until(text: str, pos: int, end: int, stop: str) -> int:
    while pos < end and text[pos] not in stop:
        pos += 1
    return pos


def lenient_attributes(text: str, start: int, end: int) -> Optional[List[Attribute]]:
    """Decompose ``text[start:end]`` with the lenient attribute grammar.

    The span is the part of a tag after its name and before the closing
    ``>`` (or ``/>``).  Attributes are separated by whitespace, or follow a
    closing quote directly.  An attribute is ``name=value`` with a quoted or
    unquoted value, or a bare token.  Stray and unterminated quotes are only
    accepted in the final attribute, which may also have an empty value.

    A quoted value followed by text the grammar rejects is reread as the final
    unquoted value running up to the trailing whitespace, when nothing but
    that whitespace follows it.  The decomposition makes a single forward
    pass, so it takes linear time on any input.

    Returns:
        Attributes in source order, or ``None`` if the span is no attribute
        list (this includes spans containing ``<`` or ``>``)
    """
    if text.find("<", start, end) >= 0 or text.find(">", start, end) >= 0:
        return None

    tail = end
    while tail > start and text[tail - 1] in _SPACE:
        tail -= 1
    inner_space = tail - 1
    while inner_space >= start and text[inner_space] not in _SPACE:
        inner_space -= 1

    attributes: List[Attribute] = []
    # (attribute count, final attribute) used when the rest fails to decompose
    fallback: Optional[Tuple[int, Attribute]] = None

    def reject() -> Optional[List[Attribute]]:
        if fallback is None:
            return None
        count, final = fallback
        return attributes[:count] + [final]

    pos = start
    after_quote = False
    while True:
        next_pos = _skip_space(text, pos, end)
        if next_pos == end:
            return attributes
        if next_pos == pos and not after_quote:
            return reject()
        pos = next_pos
        after_quote = False

        char = text[pos]
        if char in _QUOTES or char in "=/":
            return reject()
        if char in _NAME_START:
            name_end = _skip_name(text, pos, end)
            equals = _skip_space(text, name_end, end)
            if equals < end and text[equals] == "=":
                name = text[pos:name_end]
                value_start = _skip_space(text, equals + 1, end)
                if value_start < end and text[value_start] in _QUOTES:
                    close = text.find(text[value_start], value_start + 1, end)
                    if close < 0:
                        # Unterminated quote: the value runs up to the bracket
                        attributes.append(_attribute(name, text[value_start + 1:end]))
                        return attributes
                    if value_start > inner_space:
                        fallback = (len(attributes), _attribute(name, text[value_start:tail]))
                    attributes.append(_attribute(name, text[value_start + 1:close]))
                    pos = close + 1
                    after_quote = True
                    continue
                value_end = _run_until(text, value_start, end, _SPACE)
                value = text[value_start:value_end]
                if value and not any(quote in value for quote in _QUOTES):
                    attributes.append(_attribute(name, value))
                    pos = value_end
                    continue
                if _skip_space(text, value_end, end) != end:
                    return reject()
                attributes.append(_attribute(name, value))
                return attributes

        token_end = _run_until(text, pos, end, _BARE_STOP)
        if token_end < end and text[token_end] in _QUOTES:
            # Only the final bare token may contain quotes
            token_end = _run_until(text, token_end, end, _LAST_BARE_STOP)
            if _skip_space(text, token_end, end) != end:
                return reject()
            attributes.append(_attribute(None, text[pos:token_end]))
            return attributes
        if token_end < end and text[token_end] == "=":
            return reject()
        attributes.append(_attribute(None, text[pos:token_end]))
        pos = token_end


def extract_attributes(tag_text: str) -> Tuple[Tuple[Attribute, ...], str]:
    """Decompose start or void tag text into attributes.

    Args:
        tag_text: Complete tag text including the angle brackets

    Returns:
        Tuple of the attributes in source order and the name of the grammar
        that matched (``"strict"`` or ``"lenient"``)

    Raises:
        TokenizationInvariantError: If neither grammar matches, which means the
            scanner produced a tag token its own grammars do not accept
    """
    match = _STRICT_TAG_C.fullmatch(tag_text)
    if match is not None:
        return tuple(_strict_attributes(match.group(2))), "strict"
    name = NAME_PATTERN.match(tag_text, 1)
    if tag_text.startswith("<") and tag_text.endswith(">") and name is not None:
        close = len(tag_text) - 1
        attributes = lenient_attributes(tag_text, name.end(), close)
        if attributes is None and tag_text.endswith("/>") and close - 1 >= name.end():
            attributes = lenient_attributes(tag_text, name.end(), close - 1)
        if attributes is not None:
            return tuple(attributes), "lenient"
    raise TokenizationInvariantError(f"unrecognized start tag format [bug]: {tag_text!r}")


@dataclass(frozen=True)
class Tag:
    """Raw tag text with a lazily computed lowercase name."""

    raw: str

    @cached_property
    def name(self) -> str:
        """Lowercase tag name: the first name-grammar match in the text."""
        match = NAME_PATTERN.search(self.raw)
        return match.group(0).lower() if match else ""

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class StartTag(Tag):
    """Start tag, or the single tag of a self-closed void element."""

    @cached_property
    def _extracted(self) -> Tuple[Tuple[Attribute, ...], str]:
        return extract_attributes(self.raw)

    @property
    def attributes(self) -> Tuple[Attribute, ...]:
        """Attributes in source order, values in rcdata form."""
        return self._extracted[0]

    @property
    def attribute_grammar(self) -> str:
        """Which grammar decomposed this tag: ``"strict"`` or ``"lenient"``."""
        return self._extracted[1]

    def attribute_texts(self) -> List[Tuple[Optional[str], str]]:
        """Attribute names paired with decoded values."""
        return [(attr.name, attr.text) for attr in self.attributes]

    def fetch_attribute(self, name: str) -> str:
        """Get the decoded value of the first attribute called ``name``.

        Raises:
            AttributeNotFoundError: If the tag has no such attribute
        """
        name = name.lower()
        for attr in self.attributes:
            if attr.name == name:
                return attr.text
        raise AttributeNotFoundError(name)

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the decoded value of attribute ``name`` or ``default``."""
        try:
            return self.fetch_attribute(name)
        except AttributeNotFoundError:
            return default

    def has_attribute(self, name: str) -> bool:
        """Check if the tag carries attribute ``name``."""
        name = name.lower()
        return any(attr.name == name for attr in self.attributes)


@dataclass(frozen=True)
class EndTag(Tag):
    """End tag text such as ``</P >``."""
