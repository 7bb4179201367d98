"""Integration adapters for ElementTree-compatible libraries and BeautifulSoup.

An adapter converts the final htree document into another library's element
tree (``to_target``) and parses such a tree back into a ``ParseResult``
(``from_target``).  Conversion never raises: failures are reported through
``ConversionResult.success`` and its diagnostics.

Tag-soup trees carry things that have no ElementTree equivalent: bogus end
tags and doctypes are dropped, attribute and tag names that are not XML names
are skipped or sanitized, and characters XML cannot represent are removed.
"""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Type

from htree.shared import DiagnosticEntry, DiagnosticSeverity, get_logger
from htree.tree import Comment, Element, Node, ParseResult, ProcessingInstruction, Text

XML_MEDIA_TYPE = "application/xml"
HTML_MEDIA_TYPE = "text/html"
WRAPPER_TAG = "document"
_XML_NAME = re.compile(r"\A[A-Za-z_][-A-Za-z0-9._]*\Z")
_INVALID_XML_CHARS = re.compile("[^\t\n\r\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


class AdapterType(Enum):
    """Types of integration adapters."""

    XML_LIBRARY = auto()  # ElementTree-compatible libraries


@dataclass
class AdapterMetadata:
    """Metadata about an integration adapter."""

    name: str
    version: str
    adapter_type: AdapterType
    target_library: str
    description: str


@dataclass
class ConversionResult:
    """Result of a conversion operation."""

    success: bool
    converted_data: Any
    original_data: Any
    conversion_time_ms: float
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)


def xml_name(name: str) -> Optional[str]:
    """Map a tag or attribute name to a plain XML name, or None if impossible.

    >>> xml_name("rdf:RDF")
    'rdf_RDF'
    >>> xml_name('"broken') is None
    True
    """
    # Namespace prefixes are not resolved, so the colon is kept out of the name
    candidate = name.replace(":", "_")
    return candidate if _XML_NAME.match(candidate) else None


def xml_text(text: str) -> str:
    """Remove characters that cannot appear in an XML document."""
    return _INVALID_XML_CHARS.sub("", text)


class IntegrationAdapter(ABC):
    """Base class for adapters to ElementTree-style libraries.

    Subclasses provide the element factory module through :meth:`_factory`;
    the conversion itself is shared.
    """

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        """Initialize the integration adapter.

        Args:
            correlation_id: Optional correlation ID for request tracking
        """
        self.correlation_id = correlation_id
        self._logger = get_logger(__name__, correlation_id, self.__class__.__name__)

    @property
    @abstractmethod
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the target library can be imported."""

    @abstractmethod
    def _factory(self) -> Any:
        """Return the module providing Element, Comment and tostring."""

    def to_target(self, parse_result: ParseResult) -> ConversionResult:
        """Convert the document of ``parse_result`` into a target element.

        A document with a single top-level element converts to that element;
        otherwise the top-level nodes are wrapped in a ``<document>`` element.
        """
        start_time = time.time()
        try:
            factory = self._factory()
            warnings: List[str] = []
            top_level = parse_result.document.children
            elements = [node for node in top_level if isinstance(node, Element)]
            if len(elements) == 1:
                root = elements[0].fold_element(self._folder(factory, warnings))
                wrapped = False
            else:
                root = factory.Element(WRAPPER_TAG)
                self._attach(factory, root, [self._convert_top(factory, node, warnings)
                                             for node in top_level], warnings)
                wrapped = True

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=True,
                converted_data=root,
                original_data=parse_result,
                conversion_time_ms=processing_time,
                warnings=warnings,
                metadata={
                    "element_count": sum(1 for _ in root.iter()),
                    "wrapped": wrapped,
                },
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            self._logger.exception("Conversion to target failed")
            return self._create_error_result(
                f"Failed to convert to {self.metadata.target_library}: {e}",
                parse_result,
                processing_time,
            )

    def from_target(self, target_data: Any) -> ConversionResult:
        """Serialize a target element and parse it back as XML."""
        start_time = time.time()
        try:
            from htree.api.parser import parse_string

            if not hasattr(target_data, "tag"):
                return self._create_error_result(
                    "Target data is not a valid element",
                    target_data,
                    (time.time() - start_time) * 1000,
                )
            xml_string = self._factory().tostring(target_data, encoding="unicode")
            parse_result = parse_string(
                xml_string, XML_MEDIA_TYPE, correlation_id=self.correlation_id
            )

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=parse_result.success,
                converted_data=parse_result,
                original_data=target_data,
                conversion_time_ms=processing_time,
                metadata={"original_tag": target_data.tag, "xml_length": len(xml_string)},
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            self._logger.exception("Conversion from target failed")
            return self._create_error_result(
                f"Failed to convert from {self.metadata.target_library}: {e}",
                target_data,
                processing_time,
            )

    def _folder(self, factory: Any, warnings: List[str]) -> Any:
        def fold(element: Element, children: Optional[List[Any]]) -> Any:
            tag = xml_name(element.name) or "unknown"
            target = factory.Element(tag)
            for attr_name, value in element.attribute_texts():
                name = xml_name(attr_name if attr_name is not None else value)
                if name is None or name == "xmlns":
                    warnings.append(f"Attribute skipped on <{element.name}>: {attr_name or value!r}")
                    continue
                target.set(name, xml_text(value))
            self._attach(factory, target, children or [], warnings)
            return target
        return fold

    def _convert_top(self, factory: Any, node: Node, warnings: List[str]) -> Any:
        if isinstance(node, Element):
            return node.fold_element(self._folder(factory, warnings))
        return node

    @staticmethod
    def _attach(factory: Any, target: Any, children: List[Any], warnings: List[str]) -> None:
        last = None
        for child in children:
            if isinstance(child, Text):
                text = xml_text(child.text())
                if last is None:
                    target.text = (target.text or "") + text
                else:
                    last.tail = (last.tail or "") + text
                continue
            if isinstance(child, Comment):
                converted = factory.Comment(xml_text(child.content).replace("--", "- -"))
            elif isinstance(child, ProcessingInstruction):
                target_name = child.target
                if not target_name or target_name.lower() == "xml":
                    continue
                body = child.raw[2:].lstrip()[len(target_name):].rstrip(">").rstrip("?").strip()
                converted = factory.ProcessingInstruction(target_name, xml_text(body))
            elif isinstance(child, Node):
                # Doctypes and bogus end tags have no element-tree form
                continue
            else:
                converted = child
            target.append(converted)
            last = converted

    def _create_error_result(
        self,
        error_message: str,
        original_data: Any,
        conversion_time_ms: float = 0.0
    ) -> ConversionResult:
        """Create a ConversionResult for error conditions."""
        return ConversionResult(
            success=False,
            converted_data=None,
            original_data=original_data,
            conversion_time_ms=conversion_time_ms,
            errors=[error_message],
            diagnostics=[
                DiagnosticEntry(
                    severity=DiagnosticSeverity.ERROR,
                    message=error_message,
                    component=self.__class__.__name__,
                    correlation_id=self.correlation_id
                )
            ]
        )


class ElementTreeAdapter(IntegrationAdapter):
    """Adapter for xml.etree.ElementTree."""

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="elementtree",
            version="1.0.0",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="xml.etree.ElementTree",
            description="Conversion between htree documents and ElementTree",
        )

    def is_available(self) -> bool:
        return True

    def _factory(self) -> Any:
        import xml.etree.ElementTree as ET
        return ET


class LxmlAdapter(IntegrationAdapter):
    """Adapter for lxml.etree."""

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="lxml",
            version="1.0.0",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="lxml",
            description="Conversion between htree documents and lxml.etree",
        )

    def is_available(self) -> bool:
        """Check if lxml is available."""
        try:
            import lxml.etree  # noqa: F401
            return True
        except ImportError:
            return False

    def _factory(self) -> Any:
        import lxml.etree as ET
        return ET


BS4_PARSER = "html.parser"


class BeautifulSoupAdapter(IntegrationAdapter):
    """Adapter for BeautifulSoup.

    The tree is built with ElementTree first and serialized, then handed to
    BeautifulSoup's bundled ``html.parser`` so lxml is not required.
    """

    @property
    def metadata(self) -> AdapterMetadata:
        return AdapterMetadata(
            name="beautifulsoup",
            version="1.0.0",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="beautifulsoup4",
            description="Conversion between htree documents and BeautifulSoup",
        )

    def is_available(self) -> bool:
        """Check if BeautifulSoup is available."""
        try:
            import bs4  # noqa: F401
            return True
        except ImportError:
            return False

    def _factory(self) -> Any:
        import xml.etree.ElementTree as ET
        return ET

    def to_target(self, parse_result: ParseResult) -> ConversionResult:
        """Convert the document of ``parse_result`` into a BeautifulSoup object."""
        start_time = time.time()
        element_result = super().to_target(parse_result)
        if not element_result.success:
            return element_result
        try:
            from bs4 import BeautifulSoup

            xml_string = self._factory().tostring(
                element_result.converted_data, encoding="unicode"
            )
            soup = BeautifulSoup(xml_string, BS4_PARSER)

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=True,
                converted_data=soup,
                original_data=parse_result,
                conversion_time_ms=processing_time,
                warnings=element_result.warnings,
                metadata={
                    "parser_name": BS4_PARSER,
                    "xml_length": len(xml_string),
                    "wrapped": element_result.metadata["wrapped"],
                },
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            self._logger.exception("Conversion to BeautifulSoup failed")
            return self._create_error_result(
                f"Failed to convert to BeautifulSoup: {e}",
                parse_result,
                processing_time,
            )

    def from_target(self, target_data: Any) -> ConversionResult:
        """Serialize a BeautifulSoup object and parse it back as HTML."""
        start_time = time.time()
        try:
            from htree.api.parser import parse_string

            if not hasattr(target_data, "prettify"):
                return self._create_error_result(
                    "Target data is not a valid BeautifulSoup object",
                    target_data,
                    (time.time() - start_time) * 1000,
                )
            html_string = str(target_data)
            parse_result = parse_string(
                html_string, HTML_MEDIA_TYPE, correlation_id=self.correlation_id
            )

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=parse_result.success,
                converted_data=parse_result,
                original_data=target_data,
                conversion_time_ms=processing_time,
                metadata={"html_length": len(html_string)},
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            self._logger.exception("Conversion from BeautifulSoup failed")
            return self._create_error_result(
                f"Failed to convert from BeautifulSoup: {e}",
                target_data,
                processing_time,
            )


_ADAPTERS: Dict[str, Type[IntegrationAdapter]] = {
    "elementtree": ElementTreeAdapter,
    "lxml": LxmlAdapter,
    "beautifulsoup": BeautifulSoupAdapter,
}


def get_adapter(
    adapter_name: str,
    correlation_id: Optional[str] = None
) -> Optional[IntegrationAdapter]:
    """Get an adapter instance by name.

    Returns:
        Adapter instance if the name is known and its library importable,
        None otherwise
    """
    adapter_class = _ADAPTERS.get(adapter_name.lower())
    if adapter_class is None:
        return None
    adapter = adapter_class(correlation_id)
    return adapter if adapter.is_available() else None


def list_available_adapters() -> List[AdapterMetadata]:
    """List metadata of the adapters whose library is importable."""
    adapters = (adapter_class() for adapter_class in _ADAPTERS.values())
    return [adapter.metadata for adapter in adapters if adapter.is_available()]
