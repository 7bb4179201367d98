"""Configuration classes for the htree parser.

Each pipeline layer has its own small dataclass that validates itself in
``__post_init__``; :class:`ParserConfig` aggregates them into one immutable,
thread-safe object that can be serialized, overridden and shared between
parse calls.
"""

import hashlib
import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple

_COMPONENTS = ("scanner", "repair", "extraction", "global_")


@dataclass(frozen=True)
class ScannerConfig:
    """Configuration for the tokenization layer."""

    # Input past this many characters is kept as plain text.  Scanning is
    # linear, so the bound is only needed to cap work on huge documents.
    max_markup_scan_chars: Optional[int] = None
    detect_xml_declaration: bool = True
    raw_text_elements_enabled: bool = True
    assume_xml: bool = False

    def __post_init__(self) -> None:
        """Validate scanner configuration."""
        if self.max_markup_scan_chars is not None and self.max_markup_scan_chars < 0:
            raise ValueError("max_markup_scan_chars must be >= 0 or None")


@dataclass(frozen=True)
class RepairConfig:
    """Configuration for content-model repair."""

    enable_content_model_repair: bool = True
    trust_top_level_html: bool = True

    def __post_init__(self) -> None:
        """Validate repair configuration."""
        for flag in (self.enable_content_model_repair, self.trust_top_level_html):
            if not isinstance(flag, bool):
                raise ValueError("repair flags must be booleans")


@dataclass(frozen=True)
class ExtractionConfig:
    """Configuration for page examination and fingerprinting."""

    ignore_paths: Tuple[str, ...] = ()
    ignore_classes: Tuple[str, ...] = ()
    ignore_ids: Tuple[str, ...] = ()
    ignored_elements: Tuple[str, ...] = ("script", "style")
    fingerprint_algorithm: str = "sha1"

    def __post_init__(self) -> None:
        """Validate extraction configuration."""
        if self.fingerprint_algorithm not in hashlib.algorithms_available:
            raise ValueError(
                f"fingerprint_algorithm must be one of "
                f"{sorted(hashlib.algorithms_guaranteed)}"
            )
        for name in self.ignored_elements:
            if not name or name != name.lower():
                raise ValueError("ignored_elements must be non-empty lowercase names")


@dataclass(frozen=True)
class GlobalConfig:
    """Settings that apply across all components."""

    logging_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    collect_diagnostics: bool = True
    keep_tokens: bool = False

    def __post_init__(self) -> None:
        """Validate global configuration."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.logging_level not in valid_levels:
            raise ValueError(f"logging_level must be one of {valid_levels}")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class ParserConfig:
    """Immutable configuration for all htree parser layers.

    Thread-safe due to frozen dataclass implementation, so a single instance
    can be shared by every worker of a batch run.
    """

    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate cross-component consistency."""
        if self.scanner.assume_xml and self.repair.enable_content_model_repair:
            raise ConfigValidationError(
                "Content-model repair is HTML-specific and cannot run on XML input",
                field_name="repair.enable_content_model_repair",
                suggestions=["Use ParserConfig.xml()",
                             "Set repair__enable_content_model_repair=False"],
            )

    def override(self, **kwargs: Any) -> "ParserConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Keyword arguments for configuration fields to override,
                using ``component__field`` for nested fields

        Returns:
            New ParserConfig instance with overrides applied

        Example:
            >>> config = ParserConfig().override(scanner__max_markup_scan_chars=4096)
            >>> config.scanner.max_markup_scan_chars
            4096
        """
        nested_overrides: Dict[str, Dict[str, Any]] = {}
        top_level: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component == "global":
                    component = "global_"
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration component: {component}",
                        field_name=key,
                    )
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                top_level[key] = value

        new_fields: Dict[str, Any] = dict(top_level)
        try:
            for component, values in nested_overrides.items():
                new_fields[component] = replace(getattr(self, component), **values)
            return replace(self, **new_fields)
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {f.name: _dataclass_to_dict(getattr(obj, f.name))
                        for f in fields(obj)}
            if isinstance(obj, (list, tuple)):
                return [_dataclass_to_dict(item) for item in obj]
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParserConfig":
        """Create configuration from dictionary.

        Args:
            data: Dictionary as produced by :meth:`to_dict`; missing keys keep
                their defaults

        Returns:
            ParserConfig instance created from dictionary
        """
        component_types = {f.name: f.default_factory for f in fields(cls)
                           if f.name in _COMPONENTS}
        values: Dict[str, Any] = {}
        try:
            for key, value in data.items():
                if key in component_types:
                    component_cls = component_types[key]
                    values[key] = component_cls(**{
                        k: tuple(v) if isinstance(v, list) else v
                        for k, v in value.items()
                    })
                else:
                    values[key] = value
            return cls(**values)
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(f"Failed to deserialize configuration: {e}") from e

    @classmethod
    def from_json(cls, json_str: str) -> "ParserConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration JSON must be an object")
        return cls.from_dict(data)

    @classmethod
    def html(cls) -> "ParserConfig":
        """Preset for tag-soup HTML: raw-text elements and implied tags on."""
        return cls(name="html", description="Tag-soup HTML with content-model repair")

    @classmethod
    def xml(cls) -> "ParserConfig":
        """Preset for XML input: pure bracket matching, no HTML inference."""
        return cls(
            scanner=ScannerConfig(assume_xml=True),
            repair=RepairConfig(enable_content_model_repair=False),
            name="xml",
            description="XML input without HTML-specific implied tags",
        )
