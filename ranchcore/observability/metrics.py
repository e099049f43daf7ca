"""
Metrics definitions for RanchCore.

This module defines Prometheus metrics for the recurrence expansion
and proximity query paths. The CRUD server exposes the default
registry; the engine only records.
"""

from prometheus_client import Counter, Histogram

# 카운터 메트릭
occurrences_generated = Counter(
    "ranchcore_occurrences_generated_total",
    "Number of recurring occurrences handed to the persistence sink",
    ["recurrence_type"]
)

occurrence_persist_failures = Counter(
    "ranchcore_occurrence_persist_failures_total",
    "Number of sink errors while persisting generated occurrences",
    ["recurrence_type"]
)

expansions_partial = Counter(
    "ranchcore_expansions_partial_total",
    "Number of recurrence expansions that stopped before completion"
)

# 히스토그램 메트릭
proximity_query_seconds = Histogram(
    "ranchcore_proximity_query_duration_seconds",
    "Time spent answering proximity queries",
    ["kind"],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)

expansion_seconds = Histogram(
    "ranchcore_expansion_duration_seconds",
    "Time spent expanding and persisting a recurring chain",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)
