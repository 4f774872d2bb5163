"""
Prometheus 指标定义
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

capability_scan_roots_total = Counter(
    "capability_scan_roots_total",
    "Graph roots produced by the registry scanner",
    ["stream"],
)

capability_attempt_total = Counter(
    "capability_attempt_total",
    "Candidate invocation attempts",
    ["capability", "status"],
)

capability_resolve_duration_seconds = Histogram(
    "capability_resolve_duration_seconds",
    "Time spent building a candidate set",
    ["capability"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

__all__ = [
    "capability_scan_roots_total",
    "capability_attempt_total",
    "capability_resolve_duration_seconds",
]
