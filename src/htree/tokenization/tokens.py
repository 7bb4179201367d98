"""Token types produced by the htree scanner.

Tokens are ephemeral: the scanner yields them, the pairer consumes them.  Each
token carries the exact source substring it covers, so concatenating the raw
text of all tokens reproduces the scanned input.
"""

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token kinds recognized by the scanner."""

    DOCTYPE = auto()                 # <!DOCTYPE ...>
    PROCESSING_INSTRUCTION = auto()  # <? ... >
    COMMENT = auto()                 # <!-- ... -->
    CDATA_SECTION = auto()           # <![CDATA[ ... ]]>
    START_TAG = auto()               # <name ...>
    END_TAG = auto()                 # </name>
    VOID_TAG = auto()                # <name .../>
    TEXT = auto()                    # Everything else, coalesced


MARKUP_TOKEN_TYPES = frozenset(TokenType) - {TokenType.TEXT}


class TokenizationInvariantError(RuntimeError):
    """Raised when the scanner's token-kind coverage has a defect.

    Never triggered by input text; it signals a recognized token that no
    branch of the scanner or tag model knows how to handle.
    """


@dataclass(frozen=True)
class TokenPosition:
    """Position of a token's first character in the input."""

    line: int
    column: int
    offset: int

    def __post_init__(self) -> None:
        """Validate position values."""
        if self.line < 1:
            raise ValueError("Line number must be >= 1")
        if self.column < 1:
            raise ValueError("Column number must be >= 1")
        if self.offset < 0:
            raise ValueError("Offset must be >= 0")

    def to_dict(self) -> dict:
        return {"line": self.line, "column": self.column, "offset": self.offset}


@dataclass(frozen=True)
class Token:
    """A single token with the source text it covers.

    ``verbatim`` is set on Text tokens holding the body of a raw-text element
    (``script``, ``style``), whose ``&`` characters are literal.
    """

    type: TokenType
    raw: str
    position: TokenPosition
    verbatim: bool = False

    def __post_init__(self) -> None:
        """Validate token values."""
        if not self.raw:
            raise ValueError("Token text cannot be empty")
        if self.verbatim and self.type is not TokenType.TEXT:
            raise ValueError("Only text tokens can be verbatim")

    @property
    def is_markup(self) -> bool:
        """Check if this token is markup rather than character data."""
        return self.type in MARKUP_TOKEN_TYPES

    @property
    def end_offset(self) -> int:
        """Offset just past the last character of this token."""
        return self.position.offset + len(self.raw)
