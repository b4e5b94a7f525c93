"""Tests for observability.py: contexts, stage timings and configuration."""

import inspect

import pytest

from variants_pipeline.core.observability import (
    LogContext,
    LogLevel,
    MetricsCollector,
    ObservabilityConfig,
    StructuredLogger,
    create_metrics_collector,
    timed_operation,
)


class TestLogContext:
    """Tests for LogContext derivation."""

    def test_derived_contexts_keep_correlation_id(self):
        """Test that per-token contexts stay on the invocation id."""
        base = LogContext(correlation_id="req-1", operation="process_object")

        token_context = base.with_metadata(token="700x700").with_operation("publish_variant")

        assert token_context.correlation_id == "req-1"
        assert token_context.operation == "publish_variant"
        assert token_context.metadata == {"token": "700x700"}
        assert base.metadata == {}


class TestStageTimings:
    """Tests for timed_operation and MetricsCollector."""

    def test_summaries_per_stage(self):
        """Test that each stage is summarised under its own name."""
        collector = MetricsCollector()

        for token in ("700x700", "1800x1800"):
            with timed_operation("transform", collector, token=token):
                pass
        with timed_operation("publish", collector):
            pass

        summaries = collector.get_operation_summaries()
        assert list(summaries) == ["transform", "publish"]
        assert summaries["transform"]["total_operations"] == 2
        assert summaries["publish"]["success_rate"] == 1.0

    def test_failed_stage_is_recorded_and_raised(self):
        """Test that a raising stage is timed as a failure."""
        collector = MetricsCollector()

        with pytest.raises(ValueError):
            with timed_operation("compress", collector):
                raise ValueError("pngquant: quality too low")

        (metric,) = collector.get_metrics("compress")
        assert metric.success is False
        assert metric.error_message == "pngquant: quality too low"
        assert metric.duration >= 0

    def test_without_collector(self):
        """Test that timing is a no-op without a collector."""
        with timed_operation("fetch", None):
            pass


class TestObservabilityConfig:
    """Tests for ObservabilityConfig and its helpers."""

    def test_settings(self):
        """Test the options the pipeline configures."""
        assert list(inspect.signature(ObservabilityConfig).parameters) == [
            "log_level",
            "enable_metrics",
        ]

    def test_metrics_can_be_disabled(self):
        """Test that no collector is created when metrics are off."""
        assert create_metrics_collector(ObservabilityConfig(enable_metrics=False)) is None
        assert isinstance(create_metrics_collector(ObservabilityConfig()), MetricsCollector)

    def test_structured_logger_levels(self):
        """Test the levels the pipeline logs at."""
        levels = {name for name in ("debug", "info", "warning", "error", "critical")
                  if hasattr(StructuredLogger, name)}

        assert levels == {"debug", "info", "warning", "error"}
        assert LogLevel.DEBUG.value == "DEBUG"
