"""Tree building pipeline.

:class:`HTreeBuilder` runs the three stages of a parse (scanning, tag pairing
and content-model repair) and gathers their diagnostics and counters into a
:class:`ParseResult`.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from htree.shared import (
    DiagnosticEntry,
    DiagnosticSeverity,
    ParserConfig,
    PerformanceMetrics,
    get_logger,
)
from htree.tokenization import HTMLScanner, Token, is_xml_content_type

from .nodes import Document, Element
from .pairer import TagPairer
from .repair import ContentModelRepairer


@dataclass
class ParseResult:
    """Result of one parse.

    The document is always present: even a failed parse carries a tree whose
    :meth:`raw_string` is the input text.
    """

    document: Document = field(default_factory=Document)
    success: bool = True
    is_xml: bool = False

    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    # Scanner output, only kept when GlobalConfig.keep_tokens is set
    tokens: Optional[List[Token]] = None
    correlation_id: Optional[str] = None

    def raw_string(self) -> str:
        """Reconstruct the parsed input from the tree."""
        return self.document.raw_string()

    @property
    def title(self) -> Optional[str]:
        return self.document.title()

    @property
    def author(self) -> Optional[str]:
        return self.document.author()

    @property
    def element_count(self) -> int:
        """Get total number of elements in the document."""
        return sum(1 for _ in self.document.traverse_element())

    @property
    def processing_time_ms(self) -> float:
        return self.performance.processing_time_ms

    def add_diagnostic(
        self,
        severity: DiagnosticSeverity,
        message: str,
        component: str,
        position: Optional[Dict[str, int]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add diagnostic entry to result."""
        self.diagnostics.append(DiagnosticEntry(
            severity=severity,
            message=message,
            component=component,
            position=position,
            details=details,
            correlation_id=self.correlation_id,
        ))

    def get_diagnostics_by_severity(
        self,
        severity: DiagnosticSeverity
    ) -> List[DiagnosticEntry]:
        """Get diagnostics of specific severity level."""
        return [diag for diag in self.diagnostics if diag.severity == severity]

    def has_errors(self) -> bool:
        """Check if result contains any error diagnostics."""
        return any(
            diag.severity in (DiagnosticSeverity.ERROR, DiagnosticSeverity.CRITICAL)
            for diag in self.diagnostics
        )

    def summary(self) -> Dict[str, Any]:
        """Get a JSON-friendly overview of the parse."""
        return {
            "success": self.success,
            "is_xml": self.is_xml,
            "title": self.title,
            "author": self.author,
            "element_count": self.element_count,
            "diagnostic_count": len(self.diagnostics),
            "has_errors": self.has_errors(),
            "performance": self.performance.to_dict(),
            "correlation_id": self.correlation_id,
        }


class HTreeBuilder:
    """Runs scanner, pairer and repairer over one input text.

    Errors are not caught here; :mod:`htree.api.parser` turns them into a
    failed :class:`ParseResult`.
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Initialize the builder.

        Args:
            config: Parser configuration, defaults to ``ParserConfig()``
            correlation_id: Optional correlation ID for tracking requests
        """
        self.config = config or ParserConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, "builder")
        collect = self.config.global_.collect_diagnostics
        self.scanner = HTMLScanner(self.config.scanner, correlation_id)
        self.pairer = TagPairer(correlation_id, collect_diagnostics=collect)
        self.repairer = ContentModelRepairer(
            self.config.repair, correlation_id, collect_diagnostics=collect
        )

    def build(self, text: str, content_type: Optional[str] = None) -> ParseResult:
        """Parse ``text`` into a repaired document.

        Args:
            text: Decoded document text
            content_type: Optional MIME type hint, e.g. ``application/xml``

        Returns:
            ParseResult with the final tree, diagnostics and metrics
        """
        start_time = time.time()
        tokens = self.scanner.tokenize(text, content_type)
        # A declaration alone only affects raw-text scanning
        repair = not (
            self.config.scanner.assume_xml or is_xml_content_type(content_type)
        )

        document = self.pairer.pair(tokens)
        if repair:
            document = self.repairer.repair(document)
        else:
            self.logger.debug("XML content type, content-model repair skipped")

        performance = PerformanceMetrics(
            processing_time_ms=(time.time() - start_time) * 1000,
            characters_processed=len(text),
            tokens_generated=len(tokens),
            elements_built=sum(1 for node in document.traverse() if isinstance(node, Element)),
            bogus_end_tags=self.pairer.statistics["bogus_end_tags"],
            implicit_closes=self.repairer.statistics["implicit_closes"] if repair else 0,
            void_conversions=self.repairer.statistics["void_conversions"] if repair else 0,
        )
        diagnostics = list(self.pairer.diagnostics)
        if repair:
            diagnostics.extend(self.repairer.diagnostics)

        self.logger.debug(
            "Tree built",
            extra={
                "tokens": performance.tokens_generated,
                "elements": performance.elements_built,
                "repairs": performance.repair_operations,
            },
        )
        return ParseResult(
            document=document,
            success=True,
            is_xml=self.scanner.is_xml,
            diagnostics=diagnostics,
            performance=performance,
            tokens=tokens if self.config.global_.keep_tokens else None,
            correlation_id=self.correlation_id,
        )
