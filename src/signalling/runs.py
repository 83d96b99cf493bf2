"""
Run planning: split the event sequence into contiguous runs separated by breaks.
The break itself is presented by Orchestrator.run_break.
"""
from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from signalling.errors import RunConfigWarning, warn
from signalling.sequencer import EventSlot


@dataclass(frozen=True)
class RunPlan:
    events_per_run: int
    runs: tuple[tuple[EventSlot, ...], ...]

    @property
    def n_runs(self) -> int:
        return len(self.runs)

    @property
    def n_events(self) -> int:
        return sum(len(run) for run in self.runs)

    def break_after(self, run_idx: int) -> bool:
        """Breaks fall between runs, never after the last one."""
        return run_idx < self.n_runs - 1

    def __iter__(self) -> Iterator[tuple[int, tuple[EventSlot, ...]]]:
        return iter(enumerate(self.runs))


def total_runs(total_events: int, events_per_run: int) -> int:
    if total_events <= 0:
        return 0
    return math.ceil(total_events / events_per_run)


def plan_runs(slots: Sequence[EventSlot], events_per_run: int) -> RunPlan:
    """
    Partition slots into runs of events_per_run (the last run may be shorter).

    A run size <= 0 is a misconfiguration: it is clamped to the whole
    sequence, giving a single run, and a RunConfigWarning is issued.
    """
    if events_per_run <= 0:
        clamped = max(len(slots), 1)
        warn(RunConfigWarning, f"events_per_run={events_per_run} is invalid; running all {len(slots)} events as one run")
        events_per_run = clamped

    n_runs = total_runs(len(slots), events_per_run)
    runs = tuple(
        tuple(slots[run_idx * events_per_run:(run_idx + 1) * events_per_run])
        for run_idx in range(n_runs)
    )
    return RunPlan(events_per_run=events_per_run, runs=runs)
