"""
PsychoPy visual component construction and draw helpers.
No clocks, no response logic, no I/O. Button appearance is a pure function
of the current phase and the captured choice (option_style).
"""
from __future__ import annotations

from dataclasses import dataclass

from psychopy import visual

from signalling import config
from signalling.localization import StringTables
from signalling.trials import TrialRecord

# Chart geometry (height units)
_BASELINE_Y = -0.05
_BAR_W = 0.08
_BAR_X = (-0.30, -0.20, 0.20, 0.30)   # A self, A other, B self, B other
_BAR_COLORS = (config.SELF_COLOR, config.OTHER_COLOR, config.SELF_COLOR, config.OTHER_COLOR)
_BUTTON_Y = -0.32
_BUTTON_X = (-0.3, 0.3)


@dataclass
class Stimuli:
    win: visual.Window
    fix: visual.TextStim
    bars: list[visual.Rect]
    bar_values: list[visual.TextStim]
    group_a_label: visual.TextStim
    group_b_label: visual.TextStim
    legend_self_patch: visual.Rect
    legend_self_label: visual.TextStim
    legend_other_patch: visual.Rect
    legend_other_label: visual.TextStim
    button_a: visual.Rect
    button_b: visual.Rect
    button_a_text: visual.TextStim
    button_b_text: visual.TextStim
    instr_image: visual.ImageStim
    ready: visual.TextStim
    inter_run: visual.TextStim
    end: visual.TextStim


def build_stimuli(win: visual.Window) -> Stimuli:
    """Construct all visual stimuli and return a Stimuli dataclass."""
    y_scr = 1.0
    win_res = win.size
    x_scr = float(win_res[0]) / float(win_res[1])
    font_h = y_scr / 30
    wrap_w = x_scr / 1.5
    text_col = "white"

    fix = visual.TextStim(
        win, name="fix", pos=(0, 0), text="+", height=font_h * 2, color=text_col,
        autoLog=False,
    )

    bars = [
        visual.Rect(win, name=f"bar_{i}", width=_BAR_W, height=0.001, pos=(x, _BASELINE_Y),
                    fillColor=col, lineColor=None, autoLog=False)
        for i, (x, col) in enumerate(zip(_BAR_X, _BAR_COLORS))
    ]
    bar_values = [
        visual.TextStim(win, name=f"bar_value_{i}", pos=(x, _BASELINE_Y + 0.02), text="",
                        height=font_h * 0.8, color=text_col, autoLog=False)
        for i, x in enumerate(_BAR_X)
    ]

    group_a_label = visual.TextStim(
        win, name="group_a_label", pos=(-0.25, _BASELINE_Y - 0.04), text="Option A",
        height=font_h, color=text_col, autoLog=False,
    )
    group_b_label = visual.TextStim(
        win, name="group_b_label", pos=(0.25, _BASELINE_Y - 0.04), text="Option B",
        height=font_h, color=text_col, autoLog=False,
    )

    legend_y = 0.42
    legend_self_patch = visual.Rect(
        win, name="legend_self_patch", width=0.025, height=0.025, pos=(-0.2, legend_y),
        fillColor=config.SELF_COLOR, lineColor=None, autoLog=False,
    )
    legend_self_label = visual.TextStim(
        win, name="legend_self_label", pos=(-0.18, legend_y), text="You", anchorHoriz="left",
        height=font_h, color=text_col, autoLog=False,
    )
    legend_other_patch = visual.Rect(
        win, name="legend_other_patch", width=0.025, height=0.025, pos=(0.05, legend_y),
        fillColor=config.OTHER_COLOR, lineColor=None, autoLog=False,
    )
    legend_other_label = visual.TextStim(
        win, name="legend_other_label", pos=(0.07, legend_y), text="Receiver", anchorHoriz="left",
        height=font_h, color=text_col, autoLog=False,
    )

    button_a, button_b = (
        visual.Rect(win, name=name, width=0.5, height=0.2, pos=(x, _BUTTON_Y),
                    fillColor=(-0.4, -0.4, -0.4), lineColor=None, lineWidth=6, autoLog=False)
        for name, x in (("button_a", _BUTTON_X[0]), ("button_b", _BUTTON_X[1]))
    )
    button_a_text, button_b_text = (
        visual.TextStim(win, name=name, pos=(x, _BUTTON_Y), text="", height=font_h * 0.8,
                        wrapWidth=0.45, color=text_col, autoLog=False)
        for name, x in (("button_a_text", _BUTTON_X[0]), ("button_b_text", _BUTTON_X[1]))
    )

    instr_image = visual.ImageStim(win, name="instr_image", image=None, pos=(0, 0), size=None, autoLog=False)

    ready = visual.TextStim(
        win, name="ready", pos=(0, 0), text="", height=font_h, color=text_col,
        wrapWidth=wrap_w, autoLog=False,
    )
    inter_run = visual.TextStim(
        win, name="inter_run", pos=(0, 0), text="", height=font_h, color=text_col,
        wrapWidth=wrap_w, autoLog=False,
    )
    end = visual.TextStim(
        win, name="end", pos=(0, 0), text="", height=font_h, color=text_col,
        wrapWidth=wrap_w, autoLog=False,
    )

    return Stimuli(
        win=win,
        fix=fix,
        bars=bars,
        bar_values=bar_values,
        group_a_label=group_a_label,
        group_b_label=group_b_label,
        legend_self_patch=legend_self_patch,
        legend_self_label=legend_self_label,
        legend_other_patch=legend_other_patch,
        legend_other_label=legend_other_label,
        button_a=button_a,
        button_b=button_b,
        button_a_text=button_a_text,
        button_b_text=button_b_text,
        instr_image=instr_image,
        ready=ready,
        inter_run=inter_run,
        end=end,
    )


def apply_static_text(stimuli: Stimuli, strings: StringTables) -> None:
    """Fill in every label that does not change between events."""
    ui = config.UI_TABLE
    stimuli.group_a_label.text = strings.get_string(ui, "Chart_OptionA")
    stimuli.group_b_label.text = strings.get_string(ui, "Chart_OptionB")
    stimuli.legend_self_label.text = strings.get_string(ui, "Legend_Self")
    stimuli.legend_other_label.text = strings.get_string(ui, "Legend_Other")
    stimuli.ready.text = strings.get_string(ui, "Ready_Message")
    stimuli.inter_run.text = strings.get_string(ui, "InterRun_Message")
    stimuli.end.text = strings.get_string(ui, "End_Message")


def bar_heights(
    magnitudes: tuple[float, float, float, float], max_height: float = config.CHART_MAX_HEIGHT
) -> list[float]:
    """Scale the four magnitudes so the largest bar is max_height tall."""
    top = max(magnitudes)
    if top <= 0:
        return [0.0] * len(magnitudes)
    return [max_height * v / top for v in magnitudes]


def option_style(phase: str, option: str, choice: str | None) -> tuple[str | None, float]:
    """Return (outline colour, opacity) for an option button."""
    if phase == "decision":
        return config.DECISION_COLOR, 1.0
    if phase == "confirmation":
        return (config.CHOSEN_COLOR if option == choice else None), 1.0
    return None, config.DIMMED_OPACITY


def set_chart(stimuli: Stimuli, trial: TrialRecord) -> None:
    for bar, value_text, x, h, v in zip(
        stimuli.bars, stimuli.bar_values, _BAR_X, bar_heights(trial.magnitudes), trial.magnitudes
    ):
        bar.height = max(h, 0.001)
        bar.pos = (x, _BASELINE_Y + h / 2)
        value_text.text = f"{v:g}"
        value_text.pos = (x, _BASELINE_Y + h + 0.02)


def set_option_text(stimuli: Stimuli, text_a: str, text_b: str) -> None:
    stimuli.button_a_text.text = text_a
    stimuli.button_b_text.text = text_b


def draw_trial(stimuli: Stimuli, phase: str, choice: str | None = None) -> None:
    for stim in (
        *stimuli.bars, *stimuli.bar_values,
        stimuli.group_a_label, stimuli.group_b_label,
        stimuli.legend_self_patch, stimuli.legend_self_label,
        stimuli.legend_other_patch, stimuli.legend_other_label,
    ):
        stim.draw()
    for option, button, text in (
        ("A", stimuli.button_a, stimuli.button_a_text),
        ("B", stimuli.button_b, stimuli.button_b_text),
    ):
        line_color, opacity = option_style(phase, option, choice)
        button.lineColor = line_color
        button.opacity = opacity
        text.opacity = opacity
        button.draw()
        text.draw()


def draw_fixation(stimuli: Stimuli) -> None:
    stimuli.fix.draw()


def draw_inter_run(stimuli: Stimuli) -> None:
    stimuli.inter_run.draw()


def draw_ready(stimuli: Stimuli) -> None:
    stimuli.ready.draw()


def draw_end(stimuli: Stimuli) -> None:
    stimuli.end.draw()
