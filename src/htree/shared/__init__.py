"""Shared utilities for htree parsing.

This module provides configuration objects, diagnostic result types, and the
correlation-aware logger used across all processing layers.
"""

from .config import (
    ConfigError,
    ConfigValidationError,
    ExtractionConfig,
    GlobalConfig,
    ParserConfig,
    RepairConfig,
    ScannerConfig,
)
from .logging import (
    CorrelationLogger,
    get_logger,
)
from .result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
)

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "CorrelationLogger",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "ExtractionConfig",
    "GlobalConfig",
    "ParserConfig",
    "PerformanceMetrics",
    "RepairConfig",
    "ScannerConfig",
    "get_logger",
]
