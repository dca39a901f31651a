"""Planning metrics for all-entries scans."""

from __future__ import annotations

import threading
from typing import Any
from typing import Dict
from typing import List


class PlanningMetrics:
    """Metrics collector for manifest-history planning."""

    def __init__(self):
        self._lock = threading.RLock()
        self.read_times: List[float] = []
        self.manifests_per_read: List[int] = []
        self.plan_times: List[float] = []
        self.snapshot_counts: List[int] = []
        self.manifest_mentions_total: int = 0
        self.unique_manifests_total: int = 0

    def record_manifest_list_read(self, duration_ms: float, manifest_count: int):
        """Record one snapshot's manifest-list read."""
        with self._lock:
            self.read_times.append(duration_ms)
            self.manifests_per_read.append(manifest_count)

    def record_plan(
        self, duration_ms: float, snapshot_count: int, mention_count: int, unique_count: int
    ):
        """Record one completed manifest aggregation."""
        with self._lock:
            self.plan_times.append(duration_ms)
            self.snapshot_counts.append(snapshot_count)
            self.manifest_mentions_total += mention_count
            self.unique_manifests_total += unique_count

    def get_summary(self) -> Dict[str, Any]:
        """Get summary metrics."""
        with self._lock:
            return {
                "total_manifest_list_reads": len(self.read_times),
                "total_plans": len(self.plan_times),
                "avg_read_time_ms": sum(self.read_times) / len(self.read_times)
                if self.read_times
                else 0,
                "avg_plan_time_ms": sum(self.plan_times) / len(self.plan_times)
                if self.plan_times
                else 0,
                "avg_manifests_per_read": sum(self.manifests_per_read)
                / len(self.manifests_per_read)
                if self.manifests_per_read
                else 0,
                "avg_snapshots_per_plan": sum(self.snapshot_counts) / len(self.snapshot_counts)
                if self.snapshot_counts
                else 0,
                "manifest_mentions_total": self.manifest_mentions_total,
                "unique_manifests_total": self.unique_manifests_total,
            }


# Global metrics instance
_metrics = PlanningMetrics()


def get_metrics() -> PlanningMetrics:
    """Return the process-wide metrics collector."""
    return _metrics


def get_metrics_summary() -> Dict[str, Any]:
    """Get global metrics summary."""
    return _metrics.get_summary()


def reset_metrics():
    """Reset all metrics (for testing)."""
    global _metrics
    _metrics = PlanningMetrics()
