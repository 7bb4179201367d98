"""Parser API with progressive disclosure.

Module-level :func:`parse`, :func:`parse_string` and :func:`parse_file` cover
one-off parsing; :class:`HTreeParser` holds a configuration and reusable
pipeline components for batch use.  None of them raise on bad input: any
unexpected failure is logged and turned into a ``ParseResult`` with
``success=False`` whose document still reproduces the input text.
"""

import time
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, TextIO, Union

from htree.character import encode_rcdata
from htree.shared import DiagnosticSeverity, ParserConfig, get_logger
from htree.tree import Document, HTreeBuilder, ParseResult, Text

# Type definitions for input data
InputType = Union[str, bytes, BinaryIO, TextIO, Path]

DEFAULT_ENCODING = "utf-8"
PREVIEW_LENGTH = 100  # Max length for content preview in logs
MS_PER_SECOND = 1000


def parse(
    input_data: InputType,
    content_type: Optional[str] = None,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> ParseResult:
    """Parse HTML or XML from a string, bytes, path or file-like object.

    Args:
        input_data: Document text, UTF-8 bytes, a Path, or an object with
            a ``read`` method
        content_type: Optional MIME type hint; XML types disable HTML-specific
            handling
        config: Parser configuration, defaults to ``ParserConfig()``
        correlation_id: Optional correlation ID for request tracking

    Returns:
        ParseResult containing the document tree, diagnostics and metrics

    Examples:
        >>> result = parse("<p>a<p>b")
        >>> [e.name for e in result.document.children]
        ['p', 'p']
        >>> result.raw_string()
        '<p>a<p>b'
    """
    start_time = time.time()
    logger = get_logger(__name__, correlation_id, "parse")

    logger.info(
        "Starting parse operation",
        extra={
            "input_type": type(input_data).__name__,
            "content_type": content_type,
        }
    )

    text: Optional[str] = None
    try:
        if isinstance(input_data, Path):
            return parse_file(
                input_data, content_type=content_type, config=config,
                correlation_id=correlation_id,
            )
        if hasattr(input_data, "read"):
            input_data = input_data.read()
        text = _as_text(input_data, DEFAULT_ENCODING)
        return _parse_text(text, content_type, config, correlation_id)

    except Exception as e:
        # Never-fail guarantee
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception(
            "Parse operation failed",
            extra={"processing_time_ms": processing_time}
        )
        return _create_error_result(
            f"Parse operation failed: {e}", text, correlation_id, processing_time
        )


def parse_string(
    text: str,
    content_type: Optional[str] = None,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> ParseResult:
    """Parse a document held in a string.

    Examples:
        >>> parse_string("<title> Hello </title>").title
        'Hello'
    """
    start_time = time.time()
    logger = get_logger(__name__, correlation_id, "parse_string")

    logger.info(
        "Starting string parse operation",
        extra={
            "content_length": len(text),
            "preview": (
                text[:PREVIEW_LENGTH] + "..." if len(text) > PREVIEW_LENGTH else text
            ),
        }
    )

    try:
        return _parse_text(text, content_type, config, correlation_id)

    except Exception as e:
        # Never-fail guarantee
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception(
            "String parse operation failed",
            extra={"processing_time_ms": processing_time}
        )
        return _create_error_result(
            f"String parse failed: {e}", text, correlation_id, processing_time
        )


def parse_file(
    file_path: Union[str, Path],
    encoding: str = DEFAULT_ENCODING,
    content_type: Optional[str] = None,
    config: Optional[ParserConfig] = None,
    correlation_id: Optional[str] = None,
) -> ParseResult:
    """Parse a document stored in a file.

    Undecodable bytes are replaced rather than rejected.

    Args:
        file_path: Path to the file (string or Path object)
        encoding: Text encoding of the file
        content_type: Optional MIME type hint
        config: Parser configuration, defaults to ``ParserConfig()``
        correlation_id: Optional correlation ID for request tracking

    Returns:
        ParseResult; ``success`` is False when the file cannot be read
    """
    start_time = time.time()
    logger = get_logger(__name__, correlation_id, "parse_file")

    path_obj = Path(file_path)

    logger.info(
        "Starting file parse operation",
        extra={"file_path": str(path_obj), "encoding": encoding}
    )

    error_message = None
    if not path_obj.exists():
        error_message = f"File not found: {path_obj}"
    elif not path_obj.is_file():
        error_message = f"Path is not a file: {path_obj}"
    if error_message:
        logger.warning(error_message)
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        return _create_error_result(error_message, None, correlation_id, processing_time)

    text: Optional[str] = None
    try:
        with path_obj.open(encoding=encoding, errors="replace") as file:
            text = file.read()
        result = _parse_text(text, content_type, config, correlation_id)
        result.add_diagnostic(
            DiagnosticSeverity.DEBUG,
            f"File parsed with encoding: {encoding}",
            "file_parser",
            details={"file_path": str(path_obj), "encoding": encoding}
        )
        return result

    except PermissionError:
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.warning("Permission denied", extra={"file_path": str(path_obj)})
        return _create_error_result(
            f"Permission denied accessing file: {path_obj}",
            None,
            correlation_id,
            processing_time
        )

    except Exception as e:
        # Never-fail guarantee
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception(
            "File parse operation failed",
            extra={"file_path": str(path_obj), "processing_time_ms": processing_time}
        )
        return _create_error_result(
            f"File parse failed: {e}", text, correlation_id, processing_time
        )


def _as_text(content: Union[str, bytes], encoding: str) -> str:
    if isinstance(content, bytes):
        return content.decode(encoding, errors="replace")
    if isinstance(content, str):
        return content
    raise TypeError(f"Unsupported input type: {type(content).__name__}")


def _parse_text(
    text: str,
    content_type: Optional[str],
    config: Optional[ParserConfig],
    correlation_id: Optional[str],
) -> ParseResult:
    logger = get_logger(__name__, correlation_id, "parse_text")
    result = HTreeBuilder(config, correlation_id).build(text, content_type)
    logger.info(
        "Parse completed",
        extra={
            "element_count": result.performance.elements_built,
            "is_xml": result.is_xml,
            "repair_operations": result.performance.repair_operations,
            "processing_time_ms": result.performance.processing_time_ms,
        }
    )
    return result


def _create_error_result(
    error_message: str,
    text: Optional[str],
    correlation_id: Optional[str],
    processing_time: float
) -> ParseResult:
    """Create error result following never-fail philosophy.

    Args:
        error_message: Error description
        text: Input text if it could be read; kept as a single text node so
            the result still reproduces the input
        correlation_id: Optional correlation ID
        processing_time: Processing time in milliseconds

    Returns:
        ParseResult with ``success=False`` and a CRITICAL diagnostic
    """
    children = (Text(text, encode_rcdata(text)),) if text else ()
    result = ParseResult(
        document=Document(children),
        success=False,
        correlation_id=correlation_id,
    )
    result.performance.processing_time_ms = processing_time
    result.performance.characters_processed = len(text) if text else 0

    result.add_diagnostic(
        DiagnosticSeverity.CRITICAL,
        error_message,
        "api_parser"
    )

    return result


class HTreeParser:
    """Reusable parser with a fixed configuration.

    Examples:
        >>> parser = HTreeParser(ParserConfig.html())
        >>> parser.parse("<ul><li>a<li>b</ul>").success
        True
        >>> parser.statistics["total_parses"]
        1
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize the parser.

        Args:
            config: Parser configuration, defaults to ``ParserConfig()``
            correlation_id: Optional correlation ID for request tracking
        """
        self.config = config or ParserConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, "htree_parser")
        self._builder = HTreeBuilder(self.config, correlation_id)

        self._parse_count = 0
        self._successful_parses = 0
        self._total_processing_time = 0.0

        self.logger.info(
            "HTreeParser initialized",
            extra={"config_name": self.config.name}
        )

    def parse(
        self,
        input_data: InputType,
        content_type: Optional[str] = None,
    ) -> ParseResult:
        """Parse ``input_data`` with this parser's configuration.

        Args:
            input_data: Document text, bytes, Path or file-like object
            content_type: Optional MIME type hint

        Returns:
            ParseResult with the document tree, diagnostics and metrics
        """
        start_time = time.time()
        text: Optional[str] = None
        try:
            if isinstance(input_data, Path):
                result = parse_file(
                    input_data, content_type=content_type, config=self.config,
                    correlation_id=self.correlation_id,
                )
            else:
                if hasattr(input_data, "read"):
                    input_data = input_data.read()
                text = _as_text(input_data, DEFAULT_ENCODING)
                result = self._builder.build(text, content_type)

        except Exception as e:
            # Never-fail guarantee
            processing_time = (time.time() - start_time) * MS_PER_SECOND
            self.logger.exception(
                "Configured parse failed",
                extra={"processing_time_ms": processing_time}
            )
            result = _create_error_result(
                f"Configured parse failed: {e}", text, self.correlation_id, processing_time
            )

        self._parse_count += 1
        self._total_processing_time += result.performance.processing_time_ms
        if result.success:
            self._successful_parses += 1
        return result

    def reconfigure(self, config: ParserConfig) -> None:
        """Replace the configuration and rebuild the pipeline components."""
        self.config = config
        self._builder = HTreeBuilder(config, self.correlation_id)
        self.logger.info("Parser reconfigured", extra={"config_name": config.name})

    @property
    def statistics(self) -> Dict[str, Any]:
        """Get parser usage statistics."""
        return {
            "total_parses": self._parse_count,
            "successful_parses": self._successful_parses,
            "success_rate": (
                self._successful_parses / self._parse_count
                if self._parse_count > 0 else 0.0
            ),
            "total_processing_time_ms": self._total_processing_time,
            "average_processing_time_ms": (
                self._total_processing_time / self._parse_count
                if self._parse_count > 0 else 0.0
            ),
            "correlation_id": self.correlation_id,
        }

    def reset_statistics(self) -> None:
        """Reset parser usage statistics."""
        self._parse_count = 0
        self._successful_parses = 0
        self._total_processing_time = 0.0
