"""Run statistics and event logging."""

from __future__ import annotations

__all__ = [
    "GroupOutcome",
    "RunStats",
    "compute_run_stats",
    "log_event",
    "summarize_failures",
]

from batchloader.reporting.logging import log_event
from batchloader.reporting.metrics import (
    GroupOutcome,
    RunStats,
    compute_run_stats,
    summarize_failures,
)
