"""Tests for character-reference normalization."""

import pytest

from htree.character import (
    NAMED_CHARACTERS,
    decode_rcdata,
    encode_rcdata,
    escape_markup,
    fix_character_reference,
    is_named_character,
)


class TestFixCharacterReference:
    """Test repair of ampersand sequences."""

    @pytest.mark.parametrize("text,expected", [
        ("&amp", "&amp;"),
        ("&nonsense", "&amp;nonsense"),
        ("&", "&amp;"),
        ("a & b", "a &amp; b"),
        ("&amp;", "&amp;"),
        ("&nonsense;", "&nonsense;"),
        ("&#65", "&#65;"),
        ("&#x41", "&#x41;"),
        ("&#X41", "&amp;#X41"),
        ("&#", "&amp;#"),
        ("AT&T", "AT&amp;T"),
        ("&copy 2024", "&copy; 2024"),
        ("?a=1&b=2", "?a=1&amp;b=2"),
        ("no references", "no references"),
    ])
    def test_golden_table(self, text, expected):
        """Test repair results for typical inputs."""
        assert fix_character_reference(text) == expected

    @pytest.mark.parametrize("text", [
        "&amp", "&nonsense", "&&&", "&#12&#x1F&lt", "x &copy y & z;", "&;",
    ])
    def test_idempotent(self, text):
        """Test that repairing twice changes nothing more."""
        once = fix_character_reference(text)
        assert fix_character_reference(once) == once

    def test_text_without_ampersand_is_returned(self):
        """Test the fast path."""
        text = "plain <b>text</b>"
        assert fix_character_reference(text) is text


class TestDecodeRcdata:
    """Test decoding of rcdata into literal text."""

    @pytest.mark.parametrize("rcdata,expected", [
        ("&amp;", "&"),
        ("&lt;b&gt;", "<b>"),
        ("&#65;&#x42;", "AB"),
        ("&apos;", "'"),
        ("&copy;", "©"),
        ("&nonsense;", "?"),
        ("&#xD800;", "?"),
        ("&#1114112;", "?"),
        ("no references", "no references"),
    ])
    def test_decode(self, rcdata, expected):
        """Test decoded values."""
        assert decode_rcdata(rcdata) == expected

    def test_encode_then_decode(self):
        """Test that encoded literal text decodes to itself."""
        text = "Fish & Chips &amp; more"
        assert decode_rcdata(encode_rcdata(text)) == text


class TestHelpers:
    """Test the remaining helpers."""

    def test_named_characters(self):
        """Test the entity table."""
        assert NAMED_CHARACTERS["amp"] == 38
        assert is_named_character("nbsp")
        assert is_named_character("apos")
        assert not is_named_character("nonsense")

    def test_named_characters_read_only(self):
        """Test that the entity table cannot be modified."""
        with pytest.raises(TypeError):
            NAMED_CHARACTERS["new"] = 1

    def test_escape_markup(self):
        """Test escaping of angle brackets."""
        assert escape_markup("a<b>&amp;") == "a&lt;b&gt;&amp;"
