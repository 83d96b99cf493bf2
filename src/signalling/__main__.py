"""
Entry point: `python -m signalling` or `signalling-task` script.
Wires all modules together.
"""
from __future__ import annotations


def run() -> None:
    # Disable pyglet event checking in background threads (prevents macOS crash)
    from psychopy import core
    core.checkPygletDuringWait = False

    import random
    from datetime import datetime
    from pathlib import Path

    from psychopy import event as psy_event, logging
    from rich.console import Console
    from rich.live import Live
    from rich.table import Table
    import rich.box

    from signalling import config, display, recorder, runs, sequencer, session, trials
    from signalling.errors import ExperimentAborted
    from signalling.localization import StringTables
    from signalling.orchestrator import Orchestrator

    # ── INITIALISE SESSION ───────────────────────────────────────────────────
    session_info = session.show_dialog()
    session_time = datetime.now()
    settings = config.TaskSettings()
    rng = random.Random(session_info.seed)

    _, win = session.setup_screen()

    measured_fps = win.getActualFrameRate()
    frame_rate = measured_fps if (measured_fps is not None and measured_fps < 200) else 60.0

    # ── LOGGING ──────────────────────────────────────────────────────────────
    data_dir = Path("data")
    run_dir = session.make_run_dir(data_dir, session_info, session_time)
    logging.LogFile(str(run_dir / "experiment.log"), level=logging.EXP)
    logging.console.setLevel(logging.WARNING)  # rich handles terminal output

    rcon = Console(stderr=True)
    rcon.print(
        f"[bold]Session:[/bold] participant=[cyan]{session_info.participant_id}[/cyan]  "
        f"task=[cyan]{session_info.task_type}[/cyan]  series=[cyan]{session_info.series}[/cyan]  "
        f"language=[cyan]{session_info.language}[/cyan]  seed=[cyan]{session_info.seed}[/cyan]"
    )
    rcon.print(f"[bold]Frame rate:[/bold] {frame_rate:.1f} Hz")
    logging.exp(
        f"Session: participant={session_info.participant_id}  task={session_info.task_type}  "
        f"series={session_info.series}  language={session_info.language}  seed={session_info.seed}"
    )

    # ── TEXT & STIMULI ───────────────────────────────────────────────────────
    strings = StringTables.from_csv(session.STRINGS_PATH, session_info.language)
    stimuli_obj = display.build_stimuli(win)
    display.apply_static_text(stimuli_obj, strings)

    # ── TRIAL POOL & SEQUENCE ────────────────────────────────────────────────
    trial_pool = trials.shuffle_trials(trials.load_trials(session.TRIAL_DATA_PATH), rng)
    tests = list(trials.ATTENTION_TESTS)
    slots = sequencer.sequence_events(trial_pool, tests, rng)
    plan = runs.plan_runs(slots, settings.events_per_run)
    n_attention = len(sequencer.attention_indices(slots))

    rcon.print(
        f"[bold]Events:[/bold] {len(slots)}  "
        f"(trials=[cyan]{len(trial_pool)}[/cyan]  attention=[cyan]{n_attention}[/cyan] "
        f"at {[i + 1 for i in sequencer.attention_indices(slots)]})  "
        f"runs=[cyan]{plan.n_runs}[/cyan] x {plan.events_per_run}"
    )
    logging.exp(f"Run plan: {len(slots)} events in {plan.n_runs} runs of {plan.events_per_run}")

    recorder.write_manifest(
        run_dir=run_dir,
        session_info=session_info,
        session_time=session_time,
        frame_rate=frame_rate,
        n_events=len(slots),
        n_attention=n_attention,
        n_runs=plan.n_runs,
        settings=settings,
    )

    response_log = recorder.ResponseLog(session_info.participant_id, session_info.task_type, rng=random.Random())

    def save_log() -> None:
        path = recorder.flush_with_fallback(response_log, run_dir, Path.home())
        if path is None:
            rcon.print(
                f"[bold red]Could not save response log[/bold red] to {run_dir} or {Path.home()}; "
                "see experiment.log"
            )
        else:
            rcon.print(f"[bold]Response log:[/bold] {path}")

    def close() -> None:
        logging.flush()
        win.close()
        core.quit()

    # ── EMPTY EXPERIMENT ─────────────────────────────────────────────────────
    if not slots:
        rcon.print("[bold red]No trials or attention tests available; ending experiment[/bold red]")
        logging.error("No trials or attention tests available; ending experiment")
        save_log()
        close()
        return

    win.mouseVisible = True
    mouse = psy_event.Mouse(win=win)

    try:
        # ── INSTRUCTIONS ─────────────────────────────────────────────────────
        if session_info.show_instructions:
            session.display_instructions(win, stimuli_obj, session_info)
        session.wait_for_start(win, stimuli_obj)

        global_clock = core.Clock()
        rcon.print("[bold green]Task started[/bold green]: global clock reset")
        logging.exp("Task started; global clock reset")

        orchestrator = Orchestrator(
            win=win,
            stimuli=stimuli_obj,
            global_clock=global_clock,
            strings=strings,
            participant_id=session_info.participant_id,
            task_type=session_info.task_type,
            trials=trial_pool,
            tests=tests,
            log=response_log,
            settings=settings,
            rng=rng,
            mouse=mouse,
        )

        # ── EVENT LOOP ───────────────────────────────────────────────────────
        attention_by_number = {
            s.event_index + 1: tests[s.payload_ref]
            for s in slots if s.kind is sequencer.EventKind.ATTENTION
        }

        table = Table(box=rich.box.SIMPLE_HEAD)
        table.add_column("#", justify="right")
        table.add_column("Run", justify="right")
        table.add_column("Event")
        table.add_column("Choice")
        table.add_column("RT", justify="right")
        table.add_column("Check")

        # auto_refresh=False prevents a background timer thread during events
        with Live(table, console=rcon, auto_refresh=False) as live:
            def on_record(rec: recorder.ResponseRecord, run_idx: int) -> None:
                test = attention_by_number.get(rec.event_number)
                if test is None:
                    check = ""
                elif trials.is_correct(test, rec.choice):
                    check = "[green]pass[/green]"
                else:
                    check = "[red]fail[/red]"
                choice = rec.choice if rec.choice != config.ERROR_CHOICE else f"[yellow]{rec.choice}[/yellow]"
                table.add_row(
                    f"{rec.event_number}/{len(slots)}",
                    f"{run_idx + 1}/{plan.n_runs}",
                    rec.event_label,
                    choice,
                    f"{rec.reaction_time * 1000:.0f} ms",
                    check,
                )
                live.refresh()

            orchestrator.run_experiment(plan, on_record=on_record)

    except ExperimentAborted as exc:
        rcon.print(f"[bold yellow]Experiment aborted:[/bold yellow] {exc}")
        logging.warning(f"Experiment aborted: {exc} ({len(response_log)} events recorded)")
        save_log()
        close()
        return
    except BaseException as exc:
        rcon.print(f"[bold red]Experiment stopped by an error:[/bold red] {exc!r}")
        logging.error(f"Experiment stopped by an error: {exc!r} ({len(response_log)} events recorded)")
        save_log()
        logging.flush()
        win.close()
        raise

    # ── SUMMARY ──────────────────────────────────────────────────────────────
    summary = recorder.attention_summary(response_log.records, slots, tests)
    n_correct = int(summary["correct"].sum())
    rcon.print(
        f"\n[bold]Run complete:[/bold] {len(response_log)} events  "
        f"attention checks passed: [bold cyan]{n_correct}/{len(summary)}[/bold cyan]"
    )
    logging.exp(f"Run complete: {len(response_log)} events; attention checks passed {n_correct}/{len(summary)}")

    save_log()

    # ── END SCREEN ───────────────────────────────────────────────────────────
    end_timer = core.CountdownTimer(settings.close_delay_s)
    while end_timer.getTime() > 0:
        display.draw_end(stimuli_obj)
        win.flip()

    close()


if __name__ == "__main__":
    run()
