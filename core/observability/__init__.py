"""
Observability Module

Provides:
- Structured logging with correlation IDs
- Metrics collection (extractors, migration objects, protocol calls)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_extractor_started,
    record_extractor_completed,
    record_extractor_failed,
    record_migration_run,
    record_protocol_call,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    "MetricsCollector",
    "get_metrics",
    "record_extractor_started",
    "record_extractor_completed",
    "record_extractor_failed",
    "record_migration_run",
    "record_protocol_call",
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
