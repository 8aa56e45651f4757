from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, Iterable


@dataclass(frozen=True)
class GroupOutcome:
    source: str | None
    grouping_key: Hashable
    keys: int
    failures: int
    timed_out: bool = False
    error: str | None = None


@dataclass(frozen=True)
class RunStats:
    sources: int
    groups: int
    keys: int
    failures: int
    timeouts: int
    elapsed_ms: int
    failures_by_error: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.keys <= 0:
            return 0.0
        return (self.keys - self.failures) / self.keys


def compute_run_stats(
    outcomes: Iterable[GroupOutcome],
    sources: int,
    elapsed_ms: int,
) -> RunStats:
    outcomes = list(outcomes)
    groups = keys = failures = timeouts = 0
    for outcome in outcomes:
        groups += 1
        keys += outcome.keys
        failures += outcome.failures
        if outcome.timed_out:
            timeouts += 1
    return RunStats(
        sources=sources,
        groups=groups,
        keys=keys,
        failures=failures,
        timeouts=timeouts,
        elapsed_ms=elapsed_ms,
        failures_by_error=summarize_failures(outcomes),
    )


def summarize_failures(outcomes: Iterable[GroupOutcome]) -> dict[str, int]:
    failures: dict[str, int] = {}
    for outcome in outcomes:
        if outcome.error:
            failures[outcome.error] = failures.get(outcome.error, 0) + 1
    return failures
