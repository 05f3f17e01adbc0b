"""
Metrics Collection for Extraction and Migration Runs

Collects and exposes metrics for:
- Extractor lifecycle (started, completed, failed, rows read)
- Migration objects (runs, records loaded / rejected)
- Protocol calls (RFC, OData, HTTP) with timing (average, p95)
- Circuit breaker trips

Metrics are kept in memory for the life of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class ExtractorMetrics:
    """Metrics for extractor execution."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    rows_read: int = 0

    by_extractor: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0, "rows": 0})
    )


@dataclass
class MigrationMetrics:
    """Metrics for migration object runs."""
    runs: int = 0
    completed: int = 0
    failed: int = 0
    loaded: int = 0
    rejected: int = 0

    by_object: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"runs": 0, "loaded": 0, "rejected": 0, "failed": 0})
    )


@dataclass
class ProtocolMetrics:
    """Remote call counters by protocol (rfc, odata, http, ...)."""
    calls: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    errors: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    breaker_trips: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Call latency metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: Optional[str] = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: Optional[str] = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: Optional[str] = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_extractor_completed("FI_GL_ACCOUNTS", rows=1500)
        metrics.record_protocol_call("rfc", duration_ms=42.0)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.extractors = ExtractorMetrics()
        self.migration = MigrationMetrics()
        self.protocols = ProtocolMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def reset(self) -> None:
        with self._lock:
            self.extractors = ExtractorMetrics()
            self.migration = MigrationMetrics()
            self.protocols = ProtocolMetrics()
            self.timings = TimingMetrics()

    # =========================================================================
    # Extractors
    # =========================================================================

    def record_extractor_started(self, extractor_id: str):
        with self._lock:
            self.extractors.started += 1
            self.extractors.by_extractor[extractor_id]["started"] += 1

    def record_extractor_completed(self, extractor_id: str, rows: int = 0, duration_ms: Optional[float] = None):
        with self._lock:
            self.extractors.completed += 1
            self.extractors.rows_read += rows
            self.extractors.by_extractor[extractor_id]["completed"] += 1
            self.extractors.by_extractor[extractor_id]["rows"] += rows
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, f"extractor:{extractor_id}")

    def record_extractor_failed(self, extractor_id: str):
        with self._lock:
            self.extractors.failed += 1
            self.extractors.by_extractor[extractor_id]["failed"] += 1

    # =========================================================================
    # Migration
    # =========================================================================

    def record_migration_run(self, object_id: str, loaded: int, rejected: int, failed: bool = False):
        with self._lock:
            self.migration.runs += 1
            entry = self.migration.by_object[object_id]
            entry["runs"] += 1
            if failed:
                self.migration.failed += 1
                entry["failed"] += 1
                return
            self.migration.completed += 1
            self.migration.loaded += loaded
            self.migration.rejected += rejected
            entry["loaded"] += loaded
            entry["rejected"] += rejected

    # =========================================================================
    # Protocols
    # =========================================================================

    def record_protocol_call(self, protocol: str, duration_ms: Optional[float] = None, error: bool = False):
        with self._lock:
            self.protocols.calls[protocol] += 1
            if error:
                self.protocols.errors[protocol] += 1
            if duration_ms is not None:
                self.timings.add_sample(duration_ms, protocol)

    def record_breaker_trip(self, name: str):
        with self._lock:
            self.protocols.breaker_trips[name] += 1

    def get_timing_stats(self, stage: Optional[str] = None) -> Dict[str, float]:
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "extractors": {
                    "started": self.extractors.started,
                    "completed": self.extractors.completed,
                    "failed": self.extractors.failed,
                    "rows_read": self.extractors.rows_read,
                    "by_extractor": {k: dict(v) for k, v in self.extractors.by_extractor.items()},
                },
                "migration": {
                    "runs": self.migration.runs,
                    "completed": self.migration.completed,
                    "failed": self.migration.failed,
                    "loaded": self.migration.loaded,
                    "rejected": self.migration.rejected,
                    "by_object": {k: dict(v) for k, v in self.migration.by_object.items()},
                },
                "protocols": {
                    "calls": dict(self.protocols.calls),
                    "errors": dict(self.protocols.errors),
                    "breaker_trips": dict(self.protocols.breaker_trips),
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_extractor_started(extractor_id: str):
    get_metrics().record_extractor_started(extractor_id)


def record_extractor_completed(extractor_id: str, rows: int = 0, duration_ms: Optional[float] = None):
    get_metrics().record_extractor_completed(extractor_id, rows, duration_ms)


def record_extractor_failed(extractor_id: str):
    get_metrics().record_extractor_failed(extractor_id)


def record_migration_run(object_id: str, loaded: int, rejected: int, failed: bool = False):
    get_metrics().record_migration_run(object_id, loaded, rejected, failed)


def record_protocol_call(protocol: str, duration_ms: Optional[float] = None, error: bool = False):
    get_metrics().record_protocol_call(protocol, duration_ms, error)


def record_breaker_trip(name: str):
    get_metrics().record_breaker_trip(name)
