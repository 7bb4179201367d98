"""Character-level processing for htree.

Key Components:
    fix_character_reference: Repairs ambiguous ``&`` sequences into references
    decode_rcdata: Decodes rcdata into literal text
    encode_rcdata: Escapes literal text into rcdata
    NAMED_CHARACTERS: Immutable entity-name to code-point table
"""

from .references import (
    NAMED_CHARACTERS,
    decode_rcdata,
    encode_rcdata,
    escape_markup,
    fix_character_reference,
    is_named_character,
)

__all__ = [
    "NAMED_CHARACTERS",
    "decode_rcdata",
    "encode_rcdata",
    "escape_markup",
    "fix_character_reference",
    "is_named_character",
]
