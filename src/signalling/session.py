"""
Session initialisation: dialog, screen setup, output directory, data paths,
instruction display and the ready screen.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import pyglet
from psychopy import core, event as psy_event, logging, monitors, visual

from signalling import config
from signalling.display import Stimuli, draw_ready
from signalling.errors import ExperimentAborted

# Resolve project root as two levels above src/signalling/
_PACKAGE_DIR = Path(__file__).parent          # src/signalling/
_PROJECT_ROOT = _PACKAGE_DIR.parent.parent    # project root
_STIMULI_DIR = _PROJECT_ROOT / "stimuli"
_TEXT_DIR = _PROJECT_ROOT / "text"
_INSTRUCTIONS_DIR = _PROJECT_ROOT / "instructions"
_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg"}

TRIAL_DATA_PATH = _STIMULI_DIR / "TrialData.csv"
STRINGS_PATH = _TEXT_DIR / "strings.csv"


@dataclass
class SessionInfo:
    participant_id: str
    series: str                # "1" | "2"
    language: str              # "en" | "fa"
    task_type: str             # "Deception" | "Control"
    show_instructions: bool
    seed: int


def _parse_language(label: str) -> str:
    if label in config.LANGUAGES:
        return config.LANGUAGES[label]
    logging.error(f"Unknown language selected: {label}. Defaulting to '{config.DEFAULT_LANGUAGE}'.")
    return config.DEFAULT_LANGUAGE


def _parse_task_type(label: str) -> str:
    for task_type in config.TASK_TYPES:
        if label.strip().lower() == task_type.lower():
            return task_type
    logging.error(f"Unknown task type selected: {label}. Defaulting to {config.TASK_TYPES[0]}.")
    return config.TASK_TYPES[0]


def _parse_seed(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return random.randrange(2**32)


def show_dialog() -> SessionInfo:
    """Present the startup dialog and return a SessionInfo."""
    from psychopy import gui  # needs a Qt/wx backend; imported only when the dialog is shown

    fields = {
        "Participant ID": "P000",
        "Series": config.SERIES,
        "Language": list(config.LANGUAGES),
        "Task type": config.TASK_TYPES,
        "Show instructions? (yes/no)": "yes",
        "Seed (blank = random)": "",
    }
    dlg = gui.DlgFromDict(dictionary=fields, title="Signalling Task", sortKeys=False)
    if not dlg.OK:
        core.quit()

    return SessionInfo(
        participant_id=str(fields["Participant ID"]).strip(),
        series=str(fields["Series"]),
        language=_parse_language(str(fields["Language"])),
        task_type=_parse_task_type(str(fields["Task type"])),
        show_instructions=str(fields["Show instructions? (yes/no)"]).strip().lower() == "yes",
        seed=_parse_seed(str(fields["Seed (blank = random)"]).strip()),
    )


def setup_screen() -> tuple[list[int], visual.Window]:
    """Create and return (win_res, win)."""
    display = pyglet.canvas.get_display()
    screens = display.get_screens()
    win_res = [screens[-1].width, screens[-1].height]
    exp_mon = monitors.Monitor("exp_mon")
    exp_mon.setSizePix(win_res)
    win = visual.Window(
        size=win_res,
        screen=len(screens) - 1,
        allowGUI=True,
        fullscr=True,
        monitor=exp_mon,
        units="height",
        color=(-0.6, -0.6, -0.6),
    )
    return win_res, win


def make_run_dir(data_dir: Path, session_info: SessionInfo, session_time: datetime) -> Path:
    """Create and return data/{participant_id}_{task_type}_{YYYYMMDDTHHMMSS}/."""
    ts = session_time.strftime("%Y%m%dT%H%M%S")
    run_dir = data_dir / f"{session_info.participant_id}_{session_info.task_type}_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def instruction_images(session_info: SessionInfo, root: Path = _INSTRUCTIONS_DIR) -> list[Path]:
    """
    Return the instruction pages for the session's series, task and language.

    Falls back to the first non-empty set of any other combination; returns
    [] when no instruction images exist at all.
    """
    def pages(series: str, task_type: str, language: str) -> list[Path]:
        folder = root / f"series{series}" / f"{task_type}_{language}"
        if not folder.is_dir():
            return []
        return sorted(p for p in folder.iterdir() if p.suffix.lower() in _IMAGE_SUFFIXES)

    selected = pages(session_info.series, session_info.task_type, session_info.language)
    if selected:
        return selected

    logging.error(
        f"No instruction images for series {session_info.series}, "
        f"{session_info.task_type}, {session_info.language}"
    )
    for series in config.SERIES:
        for task_type in config.TASK_TYPES:
            for language in config.LANGUAGES.values():
                fallback = pages(series, task_type, language)
                if fallback:
                    logging.warning(f"Using fallback instruction set series{series}/{task_type}_{language}")
                    return fallback
    logging.error("No fallback instruction sets available; skipping instructions")
    return []


def display_instructions(win: visual.Window, stimuli: Stimuli, session_info: SessionInfo) -> None:
    """Show each instruction image until any key is pressed or the page time runs out."""
    page_dur = config.TIMING_S["instruction_page"]
    for page in instruction_images(session_info):
        stimuli.instr_image.image = str(page)
        psy_event.clearEvents()
        timer = core.CountdownTimer(page_dur)
        while timer.getTime() > 0:
            stimuli.instr_image.draw()
            win.flip()
            keys = psy_event.getKeys()
            if config.KEYS["end"] in keys:
                raise ExperimentAborted("End key pressed during instructions")
            if keys:
                break


def wait_for_start(win: visual.Window, stimuli: Stimuli) -> None:
    """Show the ready screen until the start key is pressed."""
    psy_event.clearEvents()
    while True:
        draw_ready(stimuli)
        win.flip()
        keys = psy_event.getKeys(keyList=[config.KEYS["start"], config.KEYS["end"]])
        if config.KEYS["end"] in keys:
            raise ExperimentAborted("End key pressed on ready screen")
        if keys:
            return
