"""Content-model repair of the preliminary tree.

The pairer only matches brackets, so ``<p>a<p>b`` comes out of it as a ``p``
nested inside another ``p``.  The repairer walks that tree top-down and, for
every element whose end tag was omitted, keeps only the leading children the
HTML content model allows inside it.  The first disallowed element closes the
element implicitly; it and everything after it move up one level, where they
are considered again as siblings.

Elements with an authored end tag are trusted: their children are repaired in
place, against the top-level content model, but never moved out.  Elements
declared empty (``br``, ``img``, ...) lose all children, which also move up
one level.

The walk keeps its own frame stack so that nesting depth is bounded only by
memory.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import cached_property
from typing import Deque, FrozenSet, List, Optional

from htree.content_model import ROOT_ALLOWED_TAGS, ContentKind, lookup
from htree.shared import DiagnosticEntry, DiagnosticSeverity, RepairConfig, get_logger

from .nodes import BogusEndTag, Document, Element, Node

_EMPTY: FrozenSet[str] = frozenset()


class ElementState(Enum):
    """Repair states of an element.

    An element is OPEN until its content model has been looked up, then VOID,
    EXPLICIT (authored end tag, children repaired in place) or IMPLICIT_CLOSE
    (children consumed while allowed), and finally CLOSED.
    """

    OPEN = auto()
    VOID = auto()
    EXPLICIT = auto()
    IMPLICIT_CLOSE = auto()
    CLOSED = auto()


@dataclass(frozen=True)
class RepairContext:
    """Tag sets in effect while repairing a list of children."""

    possible_tags: FrozenSet[str]
    excluded_tags: FrozenSet[str] = _EMPTY
    included_tags: FrozenSet[str] = _EMPTY

    @classmethod
    def root(cls) -> "RepairContext":
        return cls(ROOT_ALLOWED_TAGS)

    def derive(self, name: str) -> "RepairContext":
        """Context for the children of element ``name``.

        Elements missing from the content model inherit the allowed set of
        their parent; exceptions accumulate down the tree.
        """
        entry = lookup(name)
        if entry is None:
            return self
        return RepairContext(
            entry.allowed_children,
            self.excluded_tags | entry.exclusions,
            self.included_tags | entry.inclusions,
        )

    @cached_property
    def containable_tags(self) -> FrozenSet[str]:
        return (self.possible_tags | self.included_tags) - self.excluded_tags


@dataclass
class _Frame:
    """An element (or the document) whose children are being repaired."""

    element: Optional[Element]
    state: ElementState
    context: RepairContext
    pending: Deque[Node]
    fixed: List[Node] = field(default_factory=list)


class ContentModelRepairer:
    """Applies implicit closing and void-element rules to a document.

    :attr:`statistics` and :attr:`diagnostics` describe the most recent call
    to :meth:`repair`.
    """

    def __init__(
        self,
        config: Optional[RepairConfig] = None,
        correlation_id: Optional[str] = None,
        collect_diagnostics: bool = True,
    ) -> None:
        self.config = config or RepairConfig()
        self.correlation_id = correlation_id
        self.collect_diagnostics = collect_diagnostics
        self.logger = get_logger(__name__, correlation_id, "repairer")
        self.statistics: Counter = Counter()
        self.diagnostics: List[DiagnosticEntry] = []

    def repair(self, document: Document) -> Document:
        """Return the repaired copy of ``document``.

        Repairing an already repaired document returns an equivalent tree.
        """
        self.statistics = Counter()
        self.diagnostics = []
        if not self.config.enable_content_model_repair:
            self.logger.debug("Content-model repair disabled")
            return document

        stack: List[_Frame] = [
            _Frame(None, ElementState.EXPLICIT, RepairContext.root(), deque(document.children))
        ]
        while True:
            frame = stack[-1]
            if not frame.pending:
                repaired = self._close_frame(stack)
                if repaired is not None:
                    return repaired
                continue

            node = frame.pending.popleft()
            if not isinstance(node, Element):
                frame.fixed.append(node)
                continue
            if (
                frame.state is ElementState.IMPLICIT_CLOSE
                and node.name not in frame.context.containable_tags
            ):
                # Halt: this node and the rest move up a level
                frame.pending.appendleft(node)
                self._record_implicit_close(frame, node)
                repaired = self._close_frame(stack)
                if repaired is not None:
                    return repaired
                continue

            self._open(node, stack)

    def _open(self, element: Element, stack: List[_Frame]) -> None:
        parent = stack[-1]
        if element.void:
            parent.fixed.append(element)
            return
        stack.append(
            _Frame(element, ElementState.OPEN, parent.context, deque(element.children))
        )
        self._enter(stack)

    def _enter(self, stack: List[_Frame]) -> None:
        """Move the OPEN frame on top of the stack to its repair state."""
        frame = stack[-1]
        element = frame.element
        entry = lookup(element.name)
        if entry is not None and entry.content_kind is ContentKind.VOID:
            frame.state = ElementState.VOID
            self._close_frame(stack)
            return

        top_level_html = (
            len(stack) == 2
            and element.name == "html"
            and element.end_tag is None
            and self.config.trust_top_level_html
        )
        if element.end_tag is not None:
            # Authored elements restart from the top-level content model
            frame.state = ElementState.EXPLICIT
            frame.context = RepairContext.root()
        elif top_level_html:
            frame.state = ElementState.EXPLICIT
            frame.context = frame.context.derive(element.name)
        else:
            frame.state = ElementState.IMPLICIT_CLOSE
            frame.context = frame.context.derive(element.name)

    def _close_frame(self, stack: List[_Frame]) -> Optional[Document]:
        frame = stack.pop()
        if frame.element is None:
            self.logger.debug("Repair complete", extra={"statistics": dict(self.statistics)})
            return Document(tuple(frame.fixed))

        element = frame.element
        parent = stack[-1]
        if frame.state is ElementState.VOID:
            leftovers: List[Node] = list(frame.pending)
            if element.end_tag is not None:
                leftovers.append(BogusEndTag(element.end_tag))
            parent.fixed.append(Element(element.start_tag, void=True))
            parent.pending.extendleft(reversed(leftovers))
            self._record_void_conversion(element, leftovers)
        else:
            parent.fixed.append(Element(element.start_tag, tuple(frame.fixed), element.end_tag))
            if frame.state is ElementState.IMPLICIT_CLOSE:
                # Disallowed remainder is reconsidered as siblings
                parent.pending.extendleft(reversed(frame.pending))
        frame.state = ElementState.CLOSED
        return None

    def _record_implicit_close(self, frame: _Frame, closer: Element) -> None:
        self.statistics["implicit_closes"] += 1
        if not self.collect_diagnostics or frame.element is None:
            return
        self.diagnostics.append(DiagnosticEntry(
            severity=DiagnosticSeverity.INFO,
            message=(
                f"Element {frame.element.name!r} implicitly closed before "
                f"{closer.start_tag.raw!r}"
            ),
            component="repairer",
            details={"element": frame.element.name, "closed_by": closer.name},
            correlation_id=self.correlation_id,
        ))

    def _record_void_conversion(self, element: Element, leftovers: List[Node]) -> None:
        self.statistics["void_conversions"] += 1
        if not leftovers or not self.collect_diagnostics:
            return
        self.diagnostics.append(DiagnosticEntry(
            severity=DiagnosticSeverity.INFO,
            message=f"Content of empty element {element.name!r} moved to its parent",
            component="repairer",
            details={"element": element.name, "moved_nodes": len(leftovers)},
            correlation_id=self.correlation_id,
        ))


def repair_document(document: Document, config: Optional[RepairConfig] = None) -> Document:
    """Repair ``document`` with a throwaway :class:`ContentModelRepairer`."""
    return ContentModelRepairer(config).repair(document)
