"""Prometheus metrics for docseq."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Generation
IDENTIFIERS_ISSUED = Counter(
    "docseq_identifiers_issued_total", "Numbers handed out by the generator", ["prefix"]
)
GENERATION_DURATION = Histogram(
    "docseq_generation_duration_seconds",
    "Time spent reading the store and formatting the next number",
    ["prefix"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5),
)

# Failure modes
CONFLICTS_TOTAL = Counter(
    "docseq_conflicts_total", "Unique-constraint conflicts on insert", ["prefix"]
)
RETRIES_EXHAUSTED_TOTAL = Counter(
    "docseq_retries_exhausted_total", "Creations that ran out of attempts", ["prefix"]
)
MALFORMED_TOTAL = Counter(
    "docseq_malformed_total", "Stored numbers that failed to parse", ["prefix"]
)
WIDTH_EXCEEDED_TOTAL = Counter(
    "docseq_width_exceeded_total", "Numbers issued past their padding width", ["prefix"]
)

__all__ = [
    "IDENTIFIERS_ISSUED",
    "GENERATION_DURATION",
    "CONFLICTS_TOTAL",
    "RETRIES_EXHAUSTED_TOTAL",
    "MALFORMED_TOTAL",
    "WIDTH_EXCEEDED_TOTAL",
]
