"""
Data recording: ResponseRecord, ResponseLog, attention_summary, write_manifest.
"""
from __future__ import annotations

import csv
import json
import random
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd
from psychopy import logging

from signalling import config
from signalling.errors import LogOrderError
from signalling.sequencer import EventKind, EventSlot
from signalling.trials import AttentionTestRecord, is_correct

if TYPE_CHECKING:
    from signalling.session import SessionInfo


@dataclass(frozen=True)
class ResponseRecord:
    participant_id: str
    event_number: int                 # 1-based
    absolute_time: float              # seconds on the global clock
    event_label: str                  # task type or "AttentionTest"
    choice: str                       # "A" | "B" | "None" | "Error/Skipped"
    reaction_time: float
    bar_data: tuple[float, float, float, float] | None

    @classmethod
    def placeholder(
        cls, participant_id: str, event_number: int, absolute_time: float, event_label: str
    ) -> ResponseRecord:
        """Row for an event that could not be run, keeping one row per event number."""
        return cls(
            participant_id=participant_id,
            event_number=event_number,
            absolute_time=absolute_time,
            event_label=event_label,
            choice=config.ERROR_CHOICE,
            reaction_time=0.0,
            bar_data=None,
        )

    def as_row(self) -> dict[str, object]:
        if self.bar_data is None:
            bar_data = config.NOT_APPLICABLE
        else:
            bar_data = config.BAR_DATA_SEPARATOR.join(f"{v:g}" for v in self.bar_data)
        return dict(zip(config.LOG_COLUMNS, [
            self.participant_id,
            self.event_number,
            round(self.absolute_time, 6),
            self.event_label,
            self.choice,
            round(self.reaction_time, 6),
            bar_data,
        ]))


def log_filename(
    run_dir: Path, participant_id: str, task_type: str, when: datetime, rng: random.Random
) -> Path:
    """Return a path in run_dir that does not exist yet."""
    ts = when.strftime("%Y%m%dT%H%M%S")
    while True:
        path = run_dir / f"ResponseLog_{participant_id}_{task_type}_{ts}_{rng.randint(1000, 9999)}.csv"
        if not path.exists():
            return path


class ResponseLog:
    """
    In-memory list of ResponseRecords, one per event in event-number order.

    flush() may be called any number of times; each call writes the full
    current record set to a new file.
    """

    def __init__(self, participant_id: str, task_type: str, rng: random.Random | None = None) -> None:
        self.participant_id = participant_id
        self.task_type = task_type
        self._records: list[ResponseRecord] = []
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[ResponseRecord, ...]:
        return tuple(self._records)

    @property
    def next_event_number(self) -> int:
        return len(self._records) + 1

    def append(self, record: ResponseRecord) -> None:
        if record.event_number != self.next_event_number:
            raise LogOrderError(
                f"Expected event {self.next_event_number}, got {record.event_number}"
            )
        self._records.append(record)

    def flush(self, run_dir: Path, when: datetime | None = None) -> Path:
        run_dir = Path(run_dir)
        run_dir.mkdir(parents=True, exist_ok=True)
        path = log_filename(run_dir, self.participant_id, self.task_type, when or datetime.now(), self._rng)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=config.LOG_COLUMNS)
            writer.writeheader()
            for record in self._records:
                writer.writerow(record.as_row())
        logging.exp(f"Response log ({len(self._records)} rows) saved to {path}")
        return path

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.as_row() for r in self._records], columns=config.LOG_COLUMNS)


def flush_with_fallback(log: ResponseLog, run_dir: Path, fallback_dir: Path) -> Path | None:
    """Flush to run_dir, else once to fallback_dir; returns None if both writes fail."""
    for target in (run_dir, fallback_dir):
        try:
            return log.flush(target)
        except OSError as exc:
            logging.error(f"Could not save response log to {target}: {exc}")
    return None


def attention_summary(
    records: Sequence[ResponseRecord],
    slots: Sequence[EventSlot],
    tests: Sequence[AttentionTestRecord],
) -> pd.DataFrame:
    """Score every attention test that has a record against its known answer."""
    by_number = {r.event_number: r for r in records}
    rows = []
    for slot in slots:
        if slot.kind is not EventKind.ATTENTION:
            continue
        record = by_number.get(slot.event_index + 1)
        if record is None:
            continue
        test = tests[slot.payload_ref]
        rows.append({
            "event_number": record.event_number,
            "correct_answer": test.correct_answer,
            "choice": record.choice,
            "correct": is_correct(test, record.choice),
        })
    return pd.DataFrame(rows, columns=["event_number", "correct_answer", "choice", "correct"])


def write_manifest(
    run_dir: Path,
    session_info: "SessionInfo",
    session_time: datetime,
    frame_rate: float,
    n_events: int,
    n_attention: int,
    n_runs: int,
    settings: config.TaskSettings,
) -> None:
    from signalling import __version__

    manifest = {
        "signalling_task_version": __version__,
        "participant_id": session_info.participant_id,
        "series": session_info.series,
        "language": session_info.language,
        "task_type": session_info.task_type,
        "show_instructions": session_info.show_instructions,
        "seed": session_info.seed,
        "session_time": session_time.isoformat(timespec="seconds"),
        "frame_rate_hz": round(frame_rate, 3),
        "n_events": n_events,
        "n_attention_tests": n_attention,
        "n_runs": n_runs,
        "task_settings": asdict(settings),
    }
    with open(run_dir / "manifest.json", "w") as f:
        json.dump(manifest, f, indent=2)
