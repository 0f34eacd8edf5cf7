"""
Basic in-memory metrics counters for observability.

Provides simple counters for the security-relevant paths:
- auth_success_total / auth_failure_total: credential resolution by method
- authz_denied_total: role and tenant gate rejections
- api_key_operations_total: API key lifecycle operations
- audit_writes_total / audit_write_failures_total: audit recorder outcomes
- audit_write_seconds: histogram of audit insert latency
"""
import re as _re
from collections import defaultdict
from typing import Any
import logging

logger = logging.getLogger("tenantgate.metrics")

_PROM_PREFIX = "tenantgate_"


class MetricsCollector:
    """Simple in-memory metrics collector."""

    def __init__(self):
        self.counters: dict[str, int] = defaultdict(int)
        self.histograms: dict[str, list[float]] = defaultdict(list)

    def increment_counter(self, name: str, value: int = 1, labels: dict[str, str] | None = None):
        """Increment a counter metric."""
        key = self._build_key(name, labels)
        self.counters[key] += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None):
        """Record a histogram observation."""
        key = self._build_key(name, labels)
        self.histograms[key].append(value)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Get current counter value."""
        key = self._build_key(name, labels)
        return self.counters.get(key, 0)

    def get_histogram_stats(self, name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
        """Get histogram statistics (count, sum, min, max, avg, p95)."""
        key = self._build_key(name, labels)
        values = self.histograms.get(key, [])

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "avg": 0, "p95": 0}

        sorted_vals = sorted(values)
        n = len(sorted_vals)
        p95_idx = max(0, int(n * 0.95) - 1)
        return {
            "count": n,
            "sum": sum(sorted_vals),
            "min": sorted_vals[0],
            "max": sorted_vals[-1],
            "avg": sum(sorted_vals) / n,
            "p95": sorted_vals[p95_idx],
        }

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "counters": dict(self.counters),
            "histograms": {k: self.get_histogram_stats(k) for k in self.histograms.keys()},
        }

    def reset(self):
        """Reset all metrics."""
        self.counters.clear()
        self.histograms.clear()

    @staticmethod
    def _build_key(name: str, labels: dict[str, str] | None) -> str:
        """Build metric key from name and labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


# Global metrics collector instance
metrics = MetricsCollector()


def record_auth_success(method: str):
    """Record a resolved principal (method: bearer | api_key | password)."""
    metrics.increment_counter("auth_success_total", labels={"method": method})


def record_auth_failure(method: str, reason: str):
    """Record a rejected credential (reason: missing | invalid)."""
    metrics.increment_counter("auth_failure_total", labels={"method": method, "reason": reason})


def record_authz_denied(gate: str):
    """Record a rejection by the role or tenant gate."""
    metrics.increment_counter("authz_denied_total", labels={"gate": gate})


def record_api_key_operation(operation: str):
    metrics.increment_counter("api_key_operations_total", labels={"operation": operation})


def record_audit_write(event: str, duration_seconds: float):
    metrics.increment_counter("audit_writes_total", labels={"event": event})
    metrics.observe_histogram("audit_write_seconds", duration_seconds)


def record_audit_failure(event: str):
    metrics.increment_counter("audit_write_failures_total", labels={"event": event})


def get_metrics_summary() -> dict:
    """Get a summary of all metrics."""
    return metrics.get_all_metrics()


def _parse_metric_key(key: str) -> tuple[str, str]:
    """Split an internal metric key into (base_name, prometheus_label_string).

    Internal keys look like ``name`` or ``name{k1=v1,k2=v2}`` (values are
    unquoted); the label string comes back as ``{k1="v1",k2="v2"}`` or ``""``.
    """
    m = _re.match(r'^([^{]+)(?:\{(.+)\})?$', key)
    if not m:
        return key, ""
    base_name = m.group(1)
    raw_labels = m.group(2) or ""
    if not raw_labels:
        return base_name, ""
    label_parts: list[str] = []
    for pair in raw_labels.split(","):
        if "=" in pair:
            k, v = pair.split("=", 1)
            label_parts.append(f'{k.strip()}="{v.strip()}"')
    label_str = "{" + ",".join(label_parts) + "}" if label_parts else ""
    return base_name, label_str


def to_prometheus_text() -> str:
    """Render all in-memory metrics as Prometheus text exposition format.

    Each metric family gets exactly one ``# TYPE`` line; histograms are
    rendered as summaries (count / sum / p95 quantile).
    """
    summary = get_metrics_summary()
    lines: list[str] = []

    counter_families: dict[str, list[tuple[str, int]]] = defaultdict(list)
    for key, val in summary.get("counters", {}).items():
        base_name, label_str = _parse_metric_key(key)
        counter_families[_PROM_PREFIX + base_name].append((label_str, val))
    for prom_name, entries in counter_families.items():
        lines.append(f"# TYPE {prom_name} counter")
        for label_str, val in entries:
            lines.append(f"{prom_name}{label_str} {val}")

    histogram_families: dict[str, list[tuple[str, dict]]] = defaultdict(list)
    for key, stats in summary.get("histograms", {}).items():
        base_name, label_str = _parse_metric_key(key)
        histogram_families[_PROM_PREFIX + base_name].append((label_str, stats))
    for prom_name, entries in histogram_families.items():
        lines.append(f"# TYPE {prom_name} summary")
        for label_str, stats in entries:
            q_label = label_str[:-1] + ',quantile="0.95"}' if label_str else '{quantile="0.95"}'
            lines.append(f"{prom_name}{q_label} {stats['p95']:.6f}")
            lines.append(f"{prom_name}_count{label_str} {stats['count']}")
            lines.append(f"{prom_name}_sum{label_str} {stats['sum']:.6f}")

    return "\n".join(lines) + "\n"
