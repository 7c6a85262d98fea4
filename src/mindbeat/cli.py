"""CLI for the mindbeat EEG/ECG monitor."""

import asyncio
import logging

import click

from mindbeat.config import SESSION_DURATIONS_MIN, Goal

GOALS = [g.value for g in Goal]
DURATIONS = [str(d) for d in SESSION_DURATIONS_MIN]


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging.")
def main(debug: bool) -> None:
    """mindbeat: real-time EEG band power, heart rate and HRV."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--timeout", "-t", default=10.0, help="Scan timeout in seconds.")
def scan(timeout: float) -> None:
    """Scan for nearby devices."""
    from mindbeat.scanner import scan as do_scan

    asyncio.run(do_scan(timeout))


@main.command()
@click.option("--address", "-a", default=None, help="BLE address to connect to.")
@click.option("--goal", "-g", type=click.Choice(GOALS), default=Goal.ANXIETY.value,
              help="Goal for the live score.")
@click.option("--session", "-s", type=click.Choice(DURATIONS), default=None,
              help="Start a timed session of this many minutes.")
@click.option("--duration", "-d", default=None, type=float, help="Stream duration in seconds.")
def stream(address: str | None, goal: str, session: str | None, duration: float | None) -> None:
    """Stream live data from a device through the monitor."""
    from mindbeat.monitor import BiosignalMonitor
    from mindbeat.stream import print_event, stream_device

    monitor = BiosignalMonitor(goal=goal)
    monitor.subscribe(print_event)
    try:
        asyncio.run(stream_device(address, monitor, int(session) if session else None, duration))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@main.command()
@click.option("--address", "-a", default=None, help="BLE address to connect to.")
@click.option("--duration", "-d", default=None, type=float, help="Capture duration in seconds.")
@click.option("--output", "-o", default=None, help="Output file path.")
def capture(address: str | None, duration: float | None, output: str | None) -> None:
    """Capture raw data notifications to a JSONL file."""
    from mindbeat.logger import capture as do_capture

    try:
        asyncio.run(do_capture(address, duration, output))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Write the report as JSON.")
@click.option("--goal", "-g", type=click.Choice(GOALS), default=Goal.ANXIETY.value,
              help="Goal for the live score.")
@click.option("--session", "-s", type=click.Choice(DURATIONS), default=None,
              help="Score the replay as a session of this many minutes.")
@click.option("--verbose", "-v", is_flag=True, help="Report skipped lines.")
def replay(file: str, output: str | None, goal: str, session: str | None, verbose: bool) -> None:
    """Replay a capture (.jsonl) or sample file (.csv) through the monitor."""
    from mindbeat.replay import replay_file

    result = replay_file(file, output, goal=goal,
                         session_min=int(session) if session else None, verbose=verbose)
    if result.summary is not None:
        click.echo("\n--- Session Summary ---")
        click.echo(result.summary.to_json())


@main.command()
@click.option("--seconds", default=30.0, help="Length of the simulated recording.")
@click.option("--bpm", default=72.0, help="Simulated heart rate.")
@click.option("--alpha-hz", default=10.0, help="Dominant EEG rhythm frequency.")
@click.option("--goal", "-g", type=click.Choice(GOALS), default=Goal.MEDITATION.value,
              help="Goal for the live score.")
@click.option("--session", "-s", type=click.Choice(DURATIONS), default="3",
              help="Session length in minutes.")
@click.option("--drop-every", default=None, type=int,
              help="Drop one sample every N to exercise loss detection.")
def simulate(seconds: float, bpm: float, alpha_hz: float, goal: str, session: str,
             drop_every: int | None) -> None:
    """Run the pipeline on a synthetic recording."""
    from mindbeat.replay import run_offline
    from mindbeat.synthetic import SyntheticSource

    source = SyntheticSource(
        left={alpha_hz: 1.0, 6.0: 0.3},
        right={alpha_hz: 0.8, 20.0: 0.2},
        bpm=bpm,
        drop_every=drop_every,
    )
    result = run_offline(source.samples(seconds), goal=goal, session_min=int(session),
                         session_goal=goal)
    report = result.to_dict()

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Simulated {seconds:.0f} s at {bpm:.0f} BPM, {alpha_hz:.1f} Hz rhythm")
    click.echo(f"{'=' * 60}")
    if report["last_bpm"] is not None:
        click.echo(f"  BPM:        {report['last_bpm']:.0f}")
    if result.hearts:
        s = result.hearts[-1].stats
        click.echo(f"  SDNN:       {s.sdnn:.1f} ms")
        click.echo(f"  RMSSD:      {s.rmssd:.1f} ms")
        click.echo(f"  pNN50:      {s.pnn50:.1f} %")
    if report["last_score"] is not None:
        click.echo(f"  {goal.capitalize()} score: {report['last_score']:.3f}")
    click.echo(f"  State:      {report['display_state']}")
    click.echo(f"  Lost:       {report['lost_samples']} samples")
    click.echo(f"{'=' * 60}")
    if result.summary is not None:
        click.echo(result.summary.to_json())


if __name__ == "__main__":
    main()
