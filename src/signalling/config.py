"""
All task constants. No imports from other signalling modules.
All time values are in seconds unless the name includes a unit suffix.
"""
from __future__ import annotations

from dataclasses import dataclass

# Phase durations (seconds); ranges are drawn uniformly per event
TIMING_S: dict[str, float] = {
    "onset": 2.0,
    "confirmation_min": 2.0,
    "confirmation_max": 4.0,
    "fixation_min": 2.0,
    "fixation_max": 4.0,
    "inter_run": 10.0,
    "close_delay": 10.0,
    "instruction_page": 10.0,
}

# Run structure
EVENTS_PER_RUN: int = 9

# Attention-test placement over the combined event sequence (inclusive bounds)
ATTENTION_START_WINDOW: tuple[int, int] = (4, 7)
ATTENTION_STEP_WINDOW: tuple[int, int] = (4, 7)

# Task conditions
TASK_TYPES: list[str] = ["Deception", "Control"]
LANGUAGES: dict[str, str] = {"English": "en", "Farsi": "fa"}
DEFAULT_LANGUAGE: str = "en"
SERIES: list[str] = ["1", "2"]

# Keyboard layout
KEYS: dict[str, str] = {"option_a": "left", "option_b": "right", "start": "space", "end": "escape"}
CHOICE_KEYS: dict[str, str] = {KEYS["option_a"]: "A", KEYS["option_b"]: "B"}

# Response log format
LOG_COLUMNS: list[str] = [
    "ParticipantID", "EventNumber", "AbsoluteTime", "TaskTypeOrEvent",
    "MessageChosenOrResponse", "ReactionTime", "BarData",
]
BAR_DATA_SEPARATOR: str = ";"
NOT_APPLICABLE: str = "N/A"
ERROR_CHOICE: str = "Error/Skipped"
NO_CHOICE: str = "None"
ATTENTION_LABEL: str = "AttentionTest"

# Localization tables
UI_TABLE: str = "UI"
MESSAGE_TABLE: str = "Messages"

# Option button appearance
DIMMED_OPACITY: float = 0.5
DECISION_COLOR: str = "green"
CHOSEN_COLOR: str = "red"

# Bar chart
CHART_MAX_HEIGHT: float = 0.35   # window heights
SELF_COLOR: str = "red"
OTHER_COLOR: str = "blue"


@dataclass
class TaskSettings:
    """Per-session timing and run size; defaults come from the constants above."""

    onset_s: float = TIMING_S["onset"]
    confirmation_min_s: float = TIMING_S["confirmation_min"]
    confirmation_max_s: float = TIMING_S["confirmation_max"]
    fixation_min_s: float = TIMING_S["fixation_min"]
    fixation_max_s: float = TIMING_S["fixation_max"]
    inter_run_s: float = TIMING_S["inter_run"]
    close_delay_s: float = TIMING_S["close_delay"]
    events_per_run: int = EVENTS_PER_RUN
