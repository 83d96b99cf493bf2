"""
Event sequencing: interleave attention tests among the regular trials.

Attention tests are placed by index over the combined sequence; every other
index is a regular trial, taken in order from the (already shuffled) pool.
"""
from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from psychopy import logging

from signalling import config
from signalling.errors import SequencingShortfallWarning, warn
from signalling.trials import AttentionTestRecord, TrialRecord


class EventKind(str, Enum):
    REGULAR = "regular"
    ATTENTION = "attention"


@dataclass(frozen=True)
class EventSlot:
    event_index: int    # 0-based over the whole sequence
    kind: EventKind
    payload_ref: int    # index into the trial pool (REGULAR) or the test set (ATTENTION)


def adjusted_trial_index(event_index: int, attention_indices: Iterable[int]) -> int:
    """Position in the trial list of a regular event: its index minus the tests strictly before it."""
    return event_index - sum(1 for t in attention_indices if t < event_index)


def attention_indices(slots: Sequence[EventSlot]) -> list[int]:
    return [s.event_index for s in slots if s.kind is EventKind.ATTENTION]


def place_attention_tests(n_trials: int, n_tests: int, rng: random.Random) -> list[int]:
    """
    Choose the event indices of the attention tests.

    The first test lands at a uniform index in [min(4, n_trials), min(7, n_trials)];
    each next one a uniform 4-7 events later. Placement stops when an index
    could no longer be preceded by enough regular trials, so some tests may
    not be placed at all.
    """
    if n_tests == 0:
        return []
    if n_trials == 0:
        return list(range(n_tests))

    start_lo, start_hi = config.ATTENTION_START_WINDOW
    step_lo, step_hi = config.ATTENTION_STEP_WINDOW
    idx = rng.randint(min(start_lo, n_trials), min(start_hi, n_trials))

    placed: list[int] = []
    while len(placed) < n_tests:
        if idx - len(placed) > n_trials:
            break
        placed.append(idx)
        idx += rng.randint(step_lo, step_hi)
    return placed


def sequence_events(
    trials: Sequence[TrialRecord],
    tests: Sequence[AttentionTestRecord],
    rng: random.Random,
) -> list[EventSlot]:
    """Build the ordered event slots; returns [] when there is nothing to run."""
    if len(trials) + len(tests) == 0:
        return []

    placed = place_attention_tests(len(trials), len(tests), rng)
    if len(placed) < len(tests):
        warn(
            SequencingShortfallWarning,
            f"Placed {len(placed)} of {len(tests)} attention tests; "
            f"{len(tests) - len(placed)} dropped for lack of index space",
        )

    n_events = len(trials) + len(placed)
    placed_set = set(placed)
    slots: list[EventSlot] = []
    test_n = 0
    for i in range(n_events):
        if i in placed_set:
            slots.append(EventSlot(i, EventKind.ATTENTION, test_n))
            test_n += 1
        else:
            slots.append(EventSlot(i, EventKind.REGULAR, adjusted_trial_index(i, placed)))

    logging.exp(f"Sequenced {n_events} events; attention tests at {placed}")
    return slots
