"""Stack-based pairing of start and end tags.

The pairer turns the flat token sequence into a preliminary tree by bracket
matching alone: an end tag closes the innermost open element with the same
name, implicitly closing everything opened after it.  No content-model
knowledge is applied here; :mod:`htree.tree.repair` does that afterwards.
"""

from collections import Counter
from typing import Iterable, List, Optional

from htree.shared import DiagnosticEntry, DiagnosticSeverity, get_logger
from htree.tokenization import EndTag, StartTag, Token, TokenizationInvariantError, TokenType

from .nodes import (
    BogusEndTag,
    Comment,
    DocType,
    Document,
    Element,
    Node,
    ProcessingInstruction,
    Text,
)


class _OpenElement:
    """Element whose end tag has not been seen yet."""

    __slots__ = ("start_tag", "children")

    def __init__(self, start_tag: Optional[StartTag]) -> None:
        self.start_tag = start_tag
        self.children: List[Node] = []

    def close(self, end_tag: Optional[EndTag] = None) -> Element:
        if self.start_tag is None:
            raise TokenizationInvariantError("document frame closed as element [bug]")
        return Element(self.start_tag, tuple(self.children), end_tag)


class TagPairer:
    """Builds the preliminary tree from a token sequence.

    :attr:`statistics` and :attr:`diagnostics` describe the most recent call
    to :meth:`pair`.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        collect_diagnostics: bool = True,
    ) -> None:
        self.correlation_id = correlation_id
        self.collect_diagnostics = collect_diagnostics
        self.logger = get_logger(__name__, correlation_id, "pairer")
        self.statistics: Counter = Counter()
        self.diagnostics: List[DiagnosticEntry] = []

    def pair(self, tokens: Iterable[Token]) -> Document:
        """Pair tags and wrap everything in a document.

        Args:
            tokens: Scanner output in input order

        Returns:
            Preliminary document; unmatched end tags become
            :class:`BogusEndTag` leaves and unclosed elements have no end tag
        """
        self.statistics = Counter()
        self.diagnostics = []
        # stack[0] is the document itself
        stack: List[_OpenElement] = [_OpenElement(None)]

        for token in tokens:
            token_type = token.type
            if token_type is TokenType.START_TAG:
                stack.append(_OpenElement(StartTag(token.raw)))
            elif token_type is TokenType.END_TAG:
                self._close(stack, token)
            elif token_type is TokenType.VOID_TAG:
                stack[-1].children.append(Element(StartTag(token.raw), void=True))
                self.statistics["elements"] += 1
            else:
                stack[-1].children.append(self._leaf(token))

        while len(stack) > 1:
            self._reduce(stack)

        self.logger.debug(
            "Pairing complete",
            extra={"statistics": dict(self.statistics)},
        )
        return Document(tuple(stack[0].children))

    def _close(self, stack: List[_OpenElement], token: Token) -> None:
        end_tag = EndTag(token.raw)
        name = end_tag.name
        for depth in range(len(stack) - 1, 0, -1):
            if stack[depth].start_tag.name == name:
                break
        else:
            stack[-1].children.append(BogusEndTag(end_tag))
            self.statistics["bogus_end_tags"] += 1
            self.logger.debug("Unmatched end tag", extra={"tag": end_tag.raw})
            if self.collect_diagnostics:
                self.diagnostics.append(DiagnosticEntry(
                    severity=DiagnosticSeverity.WARNING,
                    message=f"End tag {end_tag.raw!r} matches no open element",
                    component="pairer",
                    position=token.position.to_dict(),
                    correlation_id=self.correlation_id,
                ))
            return

        while len(stack) > depth + 1:
            self._reduce(stack)
        element = stack.pop().close(end_tag)
        stack[-1].children.append(element)
        self.statistics["elements"] += 1

    def _reduce(self, stack: List[_OpenElement]) -> None:
        # Close the innermost element without an end tag
        element = stack.pop().close()
        stack[-1].children.append(element)
        self.statistics["elements"] += 1
        self.statistics["unclosed_elements"] += 1

    @staticmethod
    def _leaf(token: Token) -> Node:
        token_type = token.type
        if token_type is TokenType.TEXT:
            if token.verbatim:
                return Text.from_raw_text(token.raw)
            return Text.from_pcdata(token.raw)
        if token_type is TokenType.CDATA_SECTION:
            return Text.from_cdata_section(token.raw)
        if token_type is TokenType.COMMENT:
            return Comment(token.raw)
        if token_type is TokenType.PROCESSING_INSTRUCTION:
            return ProcessingInstruction(token.raw)
        if token_type is TokenType.DOCTYPE:
            return DocType(token.raw)
        raise TokenizationInvariantError(f"unhandled token type [bug]: {token_type}")
