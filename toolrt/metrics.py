"""In-process metrics for tool calls.

Provides Prometheus-compatible metrics for:
- Tool call counts by outcome
- Tool call latencies
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass
class Histogram:
    """Simple histogram for latency tracking."""

    buckets: list[float] = field(default_factory=lambda: [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0])
    counts: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket:
                self.counts[bucket] += 1

    def to_prometheus(self, name: str, labels: str = "") -> str:
        """Generate Prometheus histogram format."""
        lines = []
        label_str = f"{{{labels}}}" if labels else ""

        # Counts are already cumulative in observe()
        for bucket in self.buckets:
            lines.append(
                f'{name}_bucket{{le="{bucket}"{", " + labels if labels else ""}}} '
                f"{self.counts[bucket]}"
            )
        lines.append(f'{name}_bucket{{le="+Inf"{", " + labels if labels else ""}}} {self.count}')

        lines.append(f"{name}_sum{label_str} {self.sum}")
        lines.append(f"{name}_count{label_str} {self.count}")

        return "\n".join(lines)


class MetricsRegistry:
    """Simple metrics registry for counters and histograms."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)

    def inc_counter(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """Increment a counter metric."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._counters[name][label_key] += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Record a histogram observation."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if label_key not in self._histograms[name]:
                self._histograms[name][label_key] = Histogram()
            self._histograms[name][label_key].observe(value)

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        """Convert labels dict to a hashable key."""
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    def to_prometheus(self) -> str:
        """Generate Prometheus text format output."""
        lines = []

        with self._lock:
            for name, label_values in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                for label_key, value in label_values.items():
                    label_str = f"{{{label_key}}}" if label_key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")

            for name, label_histograms in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for label_key, histogram in label_histograms.items():
                    lines.append(histogram.to_prometheus(name, label_key))
                lines.append("")

        return "\n".join(lines)

    def get_stats(self) -> dict[str, Any]:
        """Get metrics as a dictionary (for JSON output)."""
        with self._lock:
            return {
                "counters": {k: dict(v) for k, v in self._counters.items()},
                "histograms": {
                    k: {lk: {"count": h.count, "sum": h.sum} for lk, h in v.items()}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Drop all recorded values."""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


# Global metrics registry
metrics = MetricsRegistry()


def record_tool_call(tool_name: str, status: str, duration: float) -> None:
    """Record a tool call outcome and its latency."""
    labels = {"tool": tool_name, "status": status}
    metrics.inc_counter("toolrt_tool_calls_total", labels)
    metrics.observe_histogram("toolrt_tool_duration_seconds", duration, {"tool": tool_name})
