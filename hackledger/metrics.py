"""
HACKLEDGER v1.0 — Metrics.

Simple in-memory registry rendered in Prometheus text format.
Tracks registrations, accepted and rejected votes, and payout outcomes.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class MetricsRegistry:
    """In-memory counters, gauges and summaries (no external deps)."""

    _counters: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _gauges: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    _hist_count: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _hist_sum: dict[str, float] = field(default_factory=lambda: defaultdict(float))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # ─── Core metric operations ───────────────────────────────────

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """Increment a counter."""
        key = self._key(name, labels)
        with self._lock:
            self._counters[key] += value

    def observe(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Record a summary observation (count + sum)."""
        key = self._key(name, labels)
        with self._lock:
            self._hist_count[key] += 1
            self._hist_sum[key] += value

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Set a gauge value."""
        key = self._key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a counter or gauge (0 if never set)."""
        key = self._key(name, labels)
        with self._lock:
            if key in self._counters:
                return self._counters[key]
            return self._gauges.get(key, 0)

    def _key(self, name: str, labels: dict[str, str] | None = None) -> str:
        if not labels:
            return name
        label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    # ─── Prometheus rendering ─────────────────────────────────────

    def to_prometheus(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        with self._lock:
            seen: set[str] = set()
            for key, value in sorted(self._counters.items()):
                base_name = key.split("{")[0]
                if base_name not in seen:
                    lines.append(f"# TYPE {base_name} counter")
                    seen.add(base_name)
                lines.append(f"{key} {value}")

            seen = set()
            for key, value in sorted(self._gauges.items()):
                base_name = key.split("{")[0]
                if base_name not in seen:
                    lines.append(f"# TYPE {base_name} gauge")
                    seen.add(base_name)
                lines.append(f"{key} {value:.2f}")

            seen = set()
            for key in sorted(self._hist_count):
                base_name = key.split("{")[0]
                if base_name not in seen:
                    lines.append(f"# TYPE {base_name} summary")
                    seen.add(base_name)
                count = self._hist_count[key]
                lines.append(f"{key}_count {count}")
                lines.append(f"{key}_sum {self._hist_sum[key]:.4f}")

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._hist_count.clear()
            self._hist_sum.clear()


# Global singleton
metrics = MetricsRegistry()
