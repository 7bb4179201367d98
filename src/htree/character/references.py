"""Character-reference normalization and rcdata decoding.

Text and attribute values are kept in *rcdata* form: the source text with every
``&`` sequence repaired into a well-formed reference.  Repair is deliberately
conservative so that rcdata can be decoded into literal text with
:func:`decode_rcdata` or written back out as markup unchanged.
"""

import re
from html.entities import name2codepoint
from types import MappingProxyType
from typing import Mapping

# HTML 4.01 character entity names plus the XML 1.0 ``apos``
NAMED_CHARACTERS: Mapping[str, int] = MappingProxyType({**name2codepoint, "apos": 39})

MAX_CODE_POINT = 0x10FFFF
SURROGATE_RANGE = range(0xD800, 0xE000)
REPLACEMENT_TEXT = "?"

_REFERENCE_CANDIDATE = re.compile(
    r"&(?:(?:#[0-9]+|#x[0-9a-fA-F]+|([A-Za-z][A-Za-z0-9]*));?)?"
)
_WELL_FORMED_REFERENCE = re.compile(
    r"&(?:#([0-9]+)|#x([0-9a-fA-F]+)|([A-Za-z][A-Za-z0-9]*));"
)
_MARKUP_CHARACTERS = re.compile(r"[<>]")
_MARKUP_ESCAPES = {"<": "&lt;", ">": "&gt;"}


def is_named_character(name: str) -> bool:
    """Check whether ``name`` is a recognized character entity name."""
    return name in NAMED_CHARACTERS


def _fix_reference(match: "re.Match[str]") -> str:
    reference = match.group(0)
    name = match.group(1)
    if reference.endswith(";"):
        return reference
    if reference.startswith("&#"):
        return reference + ";"
    if reference == "&":
        return "&amp;"
    if is_named_character(name):
        return f"&{name};"
    return f"&amp;{name}"


def fix_character_reference(text: str) -> str:
    """Repair every ``&`` sequence in ``text`` into a well-formed reference.

    - ``&...;`` references pass through unchanged
    - numeric references missing their ``;`` get one appended
    - a bare ``&`` becomes ``&amp;``
    - a known entity name missing its ``;`` is re-terminated, while an unknown
      name only has its ``&`` escaped

    The function is idempotent.

    Args:
        text: Raw text or attribute value

    Returns:
        The rcdata form of ``text``

    Examples:
        >>> fix_character_reference("&amp")
        '&amp;'
        >>> fix_character_reference("&nonsense")
        '&amp;nonsense'
    """
    if "&" not in text:
        return text
    return _REFERENCE_CANDIDATE.sub(_fix_reference, text)


def _decode_reference(match: "re.Match[str]") -> str:
    decimal, hexadecimal, name = match.groups()
    if decimal is not None:
        code_point = int(decimal)
    elif hexadecimal is not None:
        code_point = int(hexadecimal, 16)
    else:
        code_point = NAMED_CHARACTERS.get(name, -1)
    if code_point < 0 or code_point > MAX_CODE_POINT or code_point in SURROGATE_RANGE:
        return REPLACEMENT_TEXT
    return chr(code_point)


def decode_rcdata(rcdata: str) -> str:
    """Decode the references of an rcdata string into literal characters.

    References naming unknown entities or invalid code points decode to ``?``.
    """
    if "&" not in rcdata:
        return rcdata
    return _WELL_FORMED_REFERENCE.sub(_decode_reference, rcdata)


def encode_rcdata(text: str) -> str:
    """Escape literal text so that it is valid rcdata."""
    return text.replace("&", "&amp;")


def escape_markup(rcdata: str) -> str:
    """Escape ``<`` and ``>`` so rcdata can be embedded in HTML output."""
    return _MARKUP_CHARACTERS.sub(lambda m: _MARKUP_ESCAPES[m.group(0)], rcdata)
