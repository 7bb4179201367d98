"""Static HTML content-model table.

The table maps a lowercase element name to the element names it may contain,
its inclusion and exclusion exceptions, and its content kind.  It is derived
from the HTML 4.01 Transitional DTD: the allowed-children set of every element
is expanded through the elements whose start *and* end tags are omissible
(``html``, ``head``, ``body``, ``tbody``), so that ``<table><tr>`` is accepted
without an explicit ``<tbody>``.

The mapping is built once at import time and exposed read-only.
"""

from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple


class ContentKind(Enum):
    """How the body of an element is treated."""

    NORMAL = auto()    # Markup children
    VOID = auto()      # No content, end tag forbidden
    RAW_TEXT = auto()  # Body scanned verbatim up to the end tag


@dataclass(frozen=True)
class ContentModelEntry:
    """Content model of one element."""

    allowed_children: FrozenSet[str] = frozenset()
    inclusions: FrozenSet[str] = frozenset()
    exclusions: FrozenSet[str] = frozenset()
    content_kind: ContentKind = ContentKind.NORMAL

    @property
    def is_void(self) -> bool:
        return self.content_kind is ContentKind.VOID

    @property
    def is_raw_text(self) -> bool:
        return self.content_kind is ContentKind.RAW_TEXT


VOID_ELEMENTS = frozenset([
    "area", "base", "basefont", "br", "col", "frame", "hr", "img", "input",
    "isindex", "link", "meta", "param",
    "wbr",  # Netscape extension
])
RAW_TEXT_ELEMENTS = frozenset(["script", "style"])
OMISSIBLE_ELEMENTS = ("tbody", "body", "head", "html")

_HEAD_MISC = ["script", "style", "meta", "link", "object"]
_HEADING = ["h1", "h2", "h3", "h4", "h5", "h6"]
_LIST = ["ul", "ol", "dir", "menu"]
_PREFORMATTED = ["pre"]
_FONTSTYLE = ["tt", "i", "b", "u", "s", "strike", "big", "small"]
_PHRASE = ["em", "strong", "dfn", "code", "samp", "kbd", "var", "cite", "abbr", "acronym"]
_SPECIAL = ["a", "img", "applet", "object", "font", "basefont", "br", "script",
            "map", "q", "sub", "sup", "span", "bdo", "iframe"]
_FORMCTRL = ["input", "select", "textarea", "label", "button"]
_INLINE = _FONTSTYLE + _PHRASE + _SPECIAL + _FORMCTRL
_BLOCK = _HEADING + _LIST + _PREFORMATTED + [
    "p", "dl", "div", "center", "noscript", "noframes", "blockquote", "form",
    "isindex", "hr", "table", "fieldset", "address",
]
_FLOW = _BLOCK + _INLINE

# name: (children, exclusions, inclusions)
_ELEMENT_DECLARATIONS: Dict[str, Tuple[Iterable[str], ...]] = {
    "tt": (_INLINE,), "i": (_INLINE,), "b": (_INLINE,), "u": (_INLINE,),
    "s": (_INLINE,), "strike": (_INLINE,), "big": (_INLINE,), "small": (_INLINE,),
    "em": (_INLINE,), "strong": (_INLINE,), "dfn": (_INLINE,), "code": (_INLINE,),
    "samp": (_INLINE,), "kbd": (_INLINE,), "var": (_INLINE,), "cite": (_INLINE,),
    "abbr": (_INLINE,), "acronym": (_INLINE,), "sub": (_INLINE,), "sup": (_INLINE,),
    "span": (_INLINE,), "bdo": (_INLINE,), "font": (_INLINE,),
    "body": (_FLOW + ["script"], (), ["ins", "del"]),
    "address": (_INLINE + ["p"],),
    "div": (_FLOW,),
    "center": (_FLOW,),
    "a": (_INLINE, ["a"]),
    "map": (_BLOCK + ["area"],),
    "object": (_FLOW + ["param"],),
    "applet": (_FLOW + ["param"],),
    "p": (_INLINE,),
    "h1": (_INLINE,), "h2": (_INLINE,), "h3": (_INLINE,),
    "h4": (_INLINE,), "h5": (_INLINE,), "h6": (_INLINE,),
    "pre": (_INLINE, ["img", "object", "applet", "big", "small", "sub", "sup",
                      "font", "basefont"]),
    "q": (_INLINE,),
    "blockquote": (_FLOW,),
    "ins": (_FLOW,),
    "del": (_FLOW,),
    "dl": (["dt", "dd"],),
    "dt": (_INLINE,),
    "dd": (_FLOW,),
    "ol": (["li"],),
    "ul": (["li"],),
    "dir": (["li"], _BLOCK),
    "menu": (["li"], _BLOCK),
    "li": (_FLOW,),
    "form": (_FLOW, ["form"]),
    "label": (_INLINE, ["label"]),
    "select": (["optgroup", "option"],),
    "optgroup": (["option"],),
    "option": ((),),
    "textarea": ((),),
    "fieldset": (_FLOW + ["legend"],),
    "legend": (_INLINE,),
    "button": (_FLOW, _FORMCTRL + ["a", "form", "isindex", "fieldset", "iframe"]),
    "table": (["caption", "col", "colgroup", "thead", "tfoot", "tbody"],),
    "caption": (_INLINE,),
    "thead": (["tr"],),
    "tfoot": (["tr"],),
    "tbody": (["tr"],),
    "colgroup": (["col"],),
    "tr": (["th", "td"],),
    "th": (_FLOW,),
    "td": (_FLOW,),
    "frameset": (["frameset", "frame", "noframes"],),
    "iframe": (_FLOW,),
    "noframes": (_FLOW + ["body"],),
    "head": (["title", "isindex", "base"], (), _HEAD_MISC),
    "title": ((), _HEAD_MISC),
    "style": ((),),
    "script": ((),),
    "noscript": (_FLOW,),
    "html": (["head", "body", "frameset"],),
}


def _expand_omissible(children: FrozenSet[str],
                      declared: Mapping[str, FrozenSet[str]]) -> FrozenSet[str]:
    # Transitive closure through elements that may appear without any tags
    result = set(children)
    queue = [name for name in children if name in OMISSIBLE_ELEMENTS]
    seen = set(queue)
    while queue:
        for name in declared[queue.pop()]:
            result.add(name)
            if name in OMISSIBLE_ELEMENTS and name not in seen:
                seen.add(name)
                queue.append(name)
    return frozenset(result)


def _build_table() -> Mapping[str, ContentModelEntry]:
    declared = {name: frozenset(decl[0]) for name, decl in _ELEMENT_DECLARATIONS.items()}
    table: Dict[str, ContentModelEntry] = {}
    for name, decl in _ELEMENT_DECLARATIONS.items():
        exclusions = frozenset(decl[1]) if len(decl) > 1 else frozenset()
        inclusions = frozenset(decl[2]) if len(decl) > 2 else frozenset()
        if name in RAW_TEXT_ELEMENTS:
            kind = ContentKind.RAW_TEXT
        else:
            kind = ContentKind.NORMAL
        table[name] = ContentModelEntry(
            allowed_children=_expand_omissible(declared[name], declared),
            inclusions=inclusions,
            exclusions=exclusions,
            content_kind=kind,
        )
    for name in VOID_ELEMENTS:
        table[name] = ContentModelEntry(content_kind=ContentKind.VOID)
    return MappingProxyType(table)


CONTENT_MODEL: Mapping[str, ContentModelEntry] = _build_table()

# Tags allowed at the top level of a document
ROOT_ALLOWED_TAGS: FrozenSet[str] = frozenset(["html"]) | CONTENT_MODEL["html"].allowed_children


def lookup(name: str) -> Optional[ContentModelEntry]:
    """Get the content model of element ``name`` (case-insensitive)."""
    return CONTENT_MODEL.get(name.lower())


def content_kind(name: str) -> ContentKind:
    """Get the content kind of ``name``; unregistered elements are NORMAL."""
    entry = lookup(name)
    return entry.content_kind if entry is not None else ContentKind.NORMAL


def is_void_element(name: str) -> bool:
    return content_kind(name) is ContentKind.VOID


def is_raw_text_element(name: str) -> bool:
    return content_kind(name) is ContentKind.RAW_TEXT
