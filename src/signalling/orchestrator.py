"""
Orchestrator: drives each event slot through onset -> decision ->
confirmation -> fixation and presents the breaks between runs.

Single-threaded and blocking: each phase is a frame loop on a PsychoPy timer,
and only the decision phase waits on input. Records go to the ResponseLog
the moment a decision is captured; nothing is written to disk here.
"""
from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from enum import Enum

from psychopy import core, event as psy_event, logging, visual

from signalling import config
from signalling.display import (
    Stimuli,
    draw_fixation,
    draw_inter_run,
    draw_trial,
    set_chart,
    set_option_text,
)
from signalling.errors import ExperimentAborted, IndexResolutionWarning, warn
from signalling.localization import StringTables
from signalling.recorder import ResponseLog, ResponseRecord
from signalling.runs import RunPlan
from signalling.sequencer import EventKind, EventSlot
from signalling.trials import AttentionTestRecord, TrialRecord


class Phase(str, Enum):
    IDLE = "idle"
    ONSET = "onset"
    DECISION = "decision"
    CONFIRMATION = "confirmation"
    FIXATION = "fixation"
    BREAK = "break"
    DONE = "done"


# Skipped events run no phases, so an event may start from any resting state
# and a run made only of skipped events goes straight from one break to the next.
_TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.IDLE: {Phase.ONSET, Phase.BREAK, Phase.DONE},
    Phase.ONSET: {Phase.DECISION},
    Phase.DECISION: {Phase.CONFIRMATION},
    Phase.CONFIRMATION: {Phase.FIXATION},
    Phase.FIXATION: {Phase.ONSET, Phase.BREAK, Phase.DONE},
    Phase.BREAK: {Phase.ONSET, Phase.BREAK, Phase.DONE},
    Phase.DONE: set(),
}


class DecisionLatch:
    """One-shot choice holder: the first registration wins until reset()."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.choice: str | None = None
        self.rt_s: float | None = None

    @property
    def decided(self) -> bool:
        return self.choice is not None

    def register(self, choice: str, rt_s: float) -> bool:
        if self.decided:
            return False
        self.choice = choice
        self.rt_s = rt_s
        return True


def _check_quit() -> None:
    """Raise ExperimentAborted if the end key is pressed."""
    if psy_event.getKeys(keyList=[config.KEYS["end"]]):
        raise ExperimentAborted("End key pressed")


class Orchestrator:
    def __init__(
        self,
        win: visual.Window,
        stimuli: Stimuli,
        global_clock: core.Clock,
        strings: StringTables,
        participant_id: str,
        task_type: str,
        trials: Sequence[TrialRecord],
        tests: Sequence[AttentionTestRecord],
        log: ResponseLog,
        settings: config.TaskSettings,
        rng: random.Random,
        mouse: psy_event.Mouse | None = None,
    ) -> None:
        self.win = win
        self.stimuli = stimuli
        self.global_clock = global_clock
        self.strings = strings
        self.participant_id = participant_id
        self.task_type = task_type
        self.trials = trials
        self.tests = tests
        self.log = log
        self.settings = settings
        self.rng = rng
        self.mouse = mouse
        self.latch = DecisionLatch()
        self.phase = Phase.IDLE
        self._decision_start = 0.0

    def _enter(self, phase: Phase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal phase transition {self.phase.value} -> {phase.value}")
        logging.debug(f"phase {self.phase.value} -> {phase.value}")
        self.phase = phase

    # ── EXPERIMENT ────────────────────────────────────────────────────────────

    def run_experiment(
        self,
        plan: RunPlan,
        on_record: Callable[[ResponseRecord, int], None] | None = None,
    ) -> ResponseLog:
        """Run every event of every run, with a break between consecutive runs."""
        if plan.n_events == 0:
            logging.error("No events to run; ending experiment")
            self._enter(Phase.DONE)
            return self.log

        for run_idx, run in plan:
            logging.exp(f"Run {run_idx + 1}/{plan.n_runs} start ({len(run)} events)")
            for slot in run:
                record = self.run_event(slot)
                if on_record is not None:
                    on_record(record, run_idx)
            if plan.break_after(run_idx):
                self.run_break()

        self._enter(Phase.DONE)
        logging.exp(f"Experiment complete: {len(self.log)} events")
        return self.log

    def run_event(self, slot: EventSlot) -> ResponseRecord:
        """Run one event through all phases and return its record."""
        event_number = slot.event_index + 1
        label = config.ATTENTION_LABEL if slot.kind is EventKind.ATTENTION else self.task_type
        trial = self.resolve(slot)

        if trial is None:
            record = ResponseRecord.placeholder(
                self.participant_id, event_number, self.global_clock.getTime(), label,
            )
            self.log.append(record)
            return record

        text_a, text_b = self.option_texts(slot.kind)
        self.run_onset(trial, text_a, text_b)
        choice, rt_s = self.run_decision()

        record = ResponseRecord(
            participant_id=self.participant_id,
            event_number=event_number,
            absolute_time=self._decision_start + rt_s,
            event_label=label,
            choice=choice,
            reaction_time=rt_s,
            bar_data=trial.magnitudes,
        )
        self.log.append(record)
        logging.exp(f"Event {event_number:3d}  {label:<13}  choice={choice}  RT={rt_s:.3f} s")

        self.run_confirmation(choice)
        self.run_fixation()
        return record

    def resolve(self, slot: EventSlot) -> TrialRecord | None:
        """Return the record behind a slot, or None (with a warning) if it is out of range."""
        pool: Sequence[TrialRecord] = self.tests if slot.kind is EventKind.ATTENTION else self.trials
        if 0 <= slot.payload_ref < len(pool):
            return pool[slot.payload_ref]
        warn(
            IndexResolutionWarning,
            f"Event {slot.event_index + 1}: {slot.kind.value} reference {slot.payload_ref} "
            f"outside pool of {len(pool)}; skipped",
            error=True,
        )
        return None

    def option_texts(self, kind: EventKind) -> tuple[str, str]:
        prefix = config.ATTENTION_LABEL if kind is EventKind.ATTENTION else self.task_type
        return (
            self.strings.get_string(config.MESSAGE_TABLE, f"{prefix}_OptionA"),
            self.strings.get_string(config.MESSAGE_TABLE, f"{prefix}_OptionB"),
        )

    # ── PHASES ────────────────────────────────────────────────────────────────

    def run_onset(self, trial: TrialRecord, text_a: str, text_b: str) -> None:
        """Show the chart and dimmed options for the full onset duration; input is ignored."""
        self._enter(Phase.ONSET)
        set_chart(self.stimuli, trial)
        set_option_text(self.stimuli, text_a, text_b)
        timer = core.CountdownTimer(self.settings.onset_s)
        while timer.getTime() > 0:
            draw_trial(self.stimuli, Phase.ONSET.value)
            self.win.flip()
            _check_quit()

    def run_decision(self) -> tuple[str, float]:
        """
        Enable the options and block until one is chosen.
        Returns (choice, rt_s) with rt_s measured from phase entry.
        """
        self._enter(Phase.DECISION)
        self.latch.reset()
        psy_event.clearEvents()  # presses made during onset do not count
        if self.mouse is not None:
            self.mouse.clickReset()
        decision_clock = core.Clock()
        self._decision_start = self.global_clock.getTime()

        while not self.latch.decided:
            draw_trial(self.stimuli, Phase.DECISION.value)
            self.win.flip()

            keys = psy_event.getKeys(keyList=list(config.CHOICE_KEYS), timeStamped=decision_clock)
            for key_name, t in keys:
                self.latch.register(config.CHOICE_KEYS[key_name], t)

            if self.mouse is not None and not self.latch.decided:
                if self.mouse.isPressedIn(self.stimuli.button_a):
                    self.latch.register("A", decision_clock.getTime())
                elif self.mouse.isPressedIn(self.stimuli.button_b):
                    self.latch.register("B", decision_clock.getTime())

            _check_quit()

        return self.latch.choice, self.latch.rt_s

    def run_confirmation(self, choice: str) -> None:
        """Highlight the chosen option for a uniform random duration."""
        self._enter(Phase.CONFIRMATION)
        duration = self.rng.uniform(self.settings.confirmation_min_s, self.settings.confirmation_max_s)
        timer = core.CountdownTimer(duration)
        while timer.getTime() > 0:
            draw_trial(self.stimuli, Phase.CONFIRMATION.value, choice)
            self.win.flip()
            _check_quit()

    def run_fixation(self) -> None:
        self._enter(Phase.FIXATION)
        duration = self.rng.uniform(self.settings.fixation_min_s, self.settings.fixation_max_s)
        timer = core.CountdownTimer(duration)
        while timer.getTime() > 0:
            draw_fixation(self.stimuli)
            self.win.flip()
            _check_quit()

    def run_break(self) -> None:
        """Hide the task and show the break screen for the inter-run interval."""
        self._enter(Phase.BREAK)
        logging.exp(f"Inter-run break ({self.settings.inter_run_s:.1f} s)")
        timer = core.CountdownTimer(self.settings.inter_run_s)
        while timer.getTime() > 0:
            draw_inter_run(self.stimuli)
            self.win.flip()
            _check_quit()
