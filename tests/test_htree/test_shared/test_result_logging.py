"""Tests for diagnostics, metrics and the correlation logger."""

import logging

import pytest

from htree.shared import (
    CorrelationLogger,
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
    get_logger,
)


class TestDiagnosticEntry:
    """Test diagnostic entries."""

    def test_to_dict(self):
        """Test JSON-friendly conversion."""
        entry = DiagnosticEntry(
            severity=DiagnosticSeverity.WARNING,
            message="End tag '</z>' matches no open element",
            component="pairer",
            position={"line": 1, "column": 4, "offset": 3},
        )
        data = entry.to_dict()
        assert data["severity"] == "WARNING"
        assert data["component"] == "pairer"
        assert data["position"] == {"line": 1, "column": 4, "offset": 3}
        assert "details" not in data

    def test_empty_message_rejected(self):
        """Test diagnostic validation."""
        with pytest.raises(ValueError):
            DiagnosticEntry(DiagnosticSeverity.INFO, "", "repairer")

    def test_empty_component_rejected(self):
        """Test diagnostic validation."""
        with pytest.raises(ValueError):
            DiagnosticEntry(DiagnosticSeverity.INFO, "message", "")


class TestPerformanceMetrics:
    """Test performance metrics."""

    def test_repair_operations(self):
        """Test the total of structural repairs."""
        metrics = PerformanceMetrics(bogus_end_tags=1, implicit_closes=2, void_conversions=3)
        assert metrics.repair_operations == 6

    def test_rates_without_time(self):
        """Test that rates are zero when no time was measured."""
        metrics = PerformanceMetrics(characters_processed=100, tokens_generated=10)
        assert metrics.characters_per_second == 0.0
        assert metrics.tokens_per_second == 0.0

    def test_rates(self):
        """Test throughput calculations."""
        metrics = PerformanceMetrics(
            processing_time_ms=500.0, characters_processed=100, tokens_generated=10
        )
        assert metrics.characters_per_second == 200.0
        assert metrics.tokens_per_second == 20.0
        assert metrics.to_dict()["tokens_generated"] == 10


class TestCorrelationLogger:
    """Test the correlation-aware logger."""

    def test_get_logger(self):
        """Test logger construction."""
        logger = get_logger("htree.tree.pairer", "req-1")
        assert isinstance(logger, CorrelationLogger)
        assert logger.component == "pairer"
        assert logger.correlation_id == "req-1"

    def test_records_carry_correlation(self, caplog):
        """Test that records carry component and correlation ID."""
        logger = get_logger("htree.test", "req-42", "scanner")
        with caplog.at_level(logging.DEBUG, logger="htree.test"):
            logger.debug("Scan complete", extra={"token_counts": {"TEXT": 1}})

        record = caplog.records[-1]
        assert record.getMessage() == "Scan complete"
        assert record.component == "scanner"
        assert record.correlation_id == "req-42"
        assert record.token_counts == {"TEXT": 1}

    def test_is_enabled_for(self):
        """Test level checks."""
        logger = get_logger("htree.level_check")
        logging.getLogger("htree.level_check").setLevel(logging.ERROR)
        assert logger.is_enabled_for(logging.ERROR)
        assert not logger.is_enabled_for(logging.DEBUG)
