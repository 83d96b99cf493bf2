"""
Monetary-allocation records: the regular trial pool loaded from CSV and the
fixed catalog of attention tests.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from psychopy import logging

from signalling.errors import TrialLoadWarning, warn

_N_FIELDS = 4  # A self, A other, B self, B other


@dataclass(frozen=True)
class TrialRecord:
    option_a_self: float
    option_a_other: float
    option_b_self: float
    option_b_other: float

    def __post_init__(self) -> None:
        for value in self.magnitudes:
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"allocation magnitudes must be finite and non-negative; got {self.magnitudes}")

    @property
    def magnitudes(self) -> tuple[float, float, float, float]:
        return (self.option_a_self, self.option_a_other, self.option_b_self, self.option_b_other)


@dataclass(frozen=True)
class AttentionTestRecord(TrialRecord):
    correct_answer: str

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.correct_answer not in ("A", "B"):
            raise ValueError(f"correct_answer must be 'A' or 'B'; got {self.correct_answer!r}")


# Each test has one option that pays the participant strictly more; the
# answers are fixed here rather than computed from the magnitudes.
ATTENTION_TESTS: tuple[AttentionTestRecord, ...] = (
    AttentionTestRecord(10.0, 5.0, 5.0, 5.0, correct_answer="A"),
    AttentionTestRecord(5.0, 5.0, 10.0, 5.0, correct_answer="B"),
    AttentionTestRecord(10.0, 10.0, 5.0, 5.0, correct_answer="A"),
    AttentionTestRecord(5.0, 5.0, 10.0, 10.0, correct_answer="B"),
    AttentionTestRecord(10.0, 10.0, 5.0, 10.0, correct_answer="A"),
)


def load_trials(path: Path) -> list[TrialRecord]:
    """
    Read trial allocations from a comma-delimited file.

    The first row is a header. Each following row needs four numeric fields
    (A self, A other, B self, B other); extra fields are ignored. Rows that
    are short or do not parse are dropped with a TrialLoadWarning. A missing
    or empty file yields an empty list.
    """
    path = Path(path)
    if not path.exists():
        warn(TrialLoadWarning, f"Trial file not found: {path}", error=True)
        return []

    try:
        # Blank lines are kept as all-NaN rows so that index + 2 is the file line.
        df = pd.read_csv(
            path,
            engine="python",
            encoding="utf-8-sig",
            skip_blank_lines=False,
            skipinitialspace=True,
            on_bad_lines=lambda fields: fields[:_N_FIELDS],
        )
    except pd.errors.EmptyDataError:
        warn(TrialLoadWarning, f"Trial file is empty: {path}", error=True)
        return []
    if df.shape[1] < _N_FIELDS:
        warn(TrialLoadWarning, f"{path.name}: expected {_N_FIELDS} columns, got {df.shape[1]}", error=True)
        return []

    trials: list[TrialRecord] = []
    for i, row in df.iloc[:, :_N_FIELDS].iterrows():
        if df.loc[i].isna().all():
            continue
        line_n = i + 2
        fields = row.dropna().tolist()
        if len(fields) < _N_FIELDS:
            warn(TrialLoadWarning, f"{path.name} line {line_n}: expected {_N_FIELDS} values, got {len(fields)}: {fields}")
            continue
        values = pd.to_numeric(row, errors="coerce")
        if values.isna().any():
            warn(TrialLoadWarning, f"{path.name} line {line_n}: invalid allocation: {fields}")
            continue
        try:
            trials.append(TrialRecord(*(float(v) for v in values)))
        except ValueError:
            warn(TrialLoadWarning, f"{path.name} line {line_n}: invalid allocation: {fields}")

    logging.exp(f"Loaded {len(trials)} trials from {path}")
    return trials


def shuffle_trials(trials: list[TrialRecord], rng: random.Random) -> list[TrialRecord]:
    """Return a shuffled copy; rng.shuffle is an unbiased Fisher-Yates pass."""
    shuffled = list(trials)
    rng.shuffle(shuffled)
    return shuffled


def is_correct(test: AttentionTestRecord, choice: str) -> bool:
    return choice == test.correct_answer
