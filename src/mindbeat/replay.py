"""Replay recorded sample streams through the monitor for offline analysis.

Two input formats are understood:

* ``.jsonl`` captures written by :mod:`mindbeat.logger` (one notification
  per line, ``hex_data`` or ``raw_bytes_b64``).
* ``.csv`` files with ``counter,eeg0,eeg1,ecg`` rows (header optional).

Replays run on a :class:`SampleClock`, so every timing rule (1 s cardiac
batches, 5 s state debounce, session countdown) behaves as if the data
were arriving live at 500 Hz.
"""

from __future__ import annotations

import asyncio
import base64
import csv
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Iterable

from mindbeat.config import COUNTER_MODULUS, SAMPLE_RATE, Goal
from mindbeat.ingest import LossEvent, Sample
from mindbeat.monitor import (
    BandPowerUpdate,
    BiosignalMonitor,
    HeartUpdate,
    SampleClock,
    StateUpdate,
)
from mindbeat.protocol import decode_notification
from mindbeat.session import SessionSummary
from mindbeat.states import Classifier, classify_hrv

log = logging.getLogger(__name__)


@dataclass
class ReplayResult:
    """Everything the monitor emitted during a replay."""

    samples: int = 0
    losses: list[LossEvent] = field(default_factory=list)
    bands: list[BandPowerUpdate] = field(default_factory=list)
    hearts: list[HeartUpdate] = field(default_factory=list)
    states: list[StateUpdate] = field(default_factory=list)
    summary: SessionSummary | None = None

    def collect(self, event: object) -> None:
        if isinstance(event, BandPowerUpdate):
            self.bands.append(event)
        elif isinstance(event, HeartUpdate):
            self.hearts.append(event)
        elif isinstance(event, StateUpdate):
            self.states.append(event)
        elif isinstance(event, LossEvent):
            self.losses.append(event)
        elif isinstance(event, SessionSummary):
            self.summary = event

    def to_dict(self) -> dict:
        last_heart = self.hearts[-1] if self.hearts else None
        last_band = self.bands[-1] if self.bands else None
        return {
            "samples": self.samples,
            "lost_samples": sum(e.missing or 0 for e in self.losses),
            "loss_events": len(self.losses),
            "band_updates": len(self.bands),
            "heart_updates": len(self.hearts),
            "last_bpm": last_heart.displayed_bpm if last_heart else None,
            "last_hrv": last_heart.stats.to_dict() if last_heart else None,
            "last_score": last_band.score if last_band else None,
            "display_state": self.states[-1].display_state.value if self.states else None,
            "summary": self.summary.to_dict() if self.summary else None,
        }


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_jsonl(path: Path, verbose: bool = False) -> list[Sample]:
    samples: list[Sample] = []
    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                if verbose:
                    print(f"  [line {line_num}] Invalid JSON, skipping")
                continue

            if "raw_bytes_b64" in entry:
                raw = base64.b64decode(entry["raw_bytes_b64"])
            elif "hex_data" in entry:
                raw = bytes.fromhex(entry["hex_data"])
            else:
                continue

            try:
                samples.extend(decode_notification(raw))
            except ValueError as e:
                if verbose:
                    print(f"  [line {line_num}] {e}, skipping")
    return samples


def _load_csv(path: Path, verbose: bool = False) -> list[Sample]:
    samples: list[Sample] = []
    with open(path, newline="") as f:
        for line_num, row in enumerate(csv.reader(f), 1):
            if not row or row[0].strip().startswith("#"):
                continue
            try:
                samples.append(Sample.from_tuple([v.strip() for v in row[:4]]))
            except ValueError:
                # Header or garbage row
                if verbose:
                    print(f"  [line {line_num}] Not a sample row, skipping")
    return samples


def load_samples(path: str | Path, verbose: bool = False) -> list[Sample]:
    """Load samples from a ``.jsonl`` capture or a ``.csv`` file."""
    path = Path(path)
    if path.suffix.lower() == ".csv":
        samples = _load_csv(path, verbose)
    else:
        samples = _load_jsonl(path, verbose)
    log.debug("loaded %d samples from %s", len(samples), path.name)
    return samples


def counter_modulus(samples: Iterable[Sample]) -> int | None:
    """Counter wrap to assume for a recording.

    The device counter is a uint8.  A file holding any counter outside
    [0, 256) was numbered without wrapping, so gaps are sized by plain
    subtraction instead.
    """
    if any(not 0 <= s.counter < COUNTER_MODULUS for s in samples):
        return None
    return COUNTER_MODULUS


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


async def _clocked(samples: Iterable[Sample], clock: SampleClock) -> AsyncIterator[Sample]:
    for s in samples:
        clock.advance()
        yield s


def run_offline(
    samples: Iterable[Sample],
    goal: Goal | str = Goal.ANXIETY,
    session_min: int | None = None,
    session_goal: Goal | str = Goal.MEDITATION,
    classifier: Classifier = classify_hrv,
    sample_rate: float = SAMPLE_RATE,
) -> ReplayResult:
    """Run a finite sample sequence through a fresh monitor.

    If ``session_min`` is given a session starts with the first sample; it
    ends when its timer runs out or, at the latest, when the input ends.
    Counter gaps are sized with the wrap chosen by :func:`counter_modulus`.
    """
    samples = list(samples)
    clock = SampleClock(sample_rate)
    monitor = BiosignalMonitor(
        goal=goal,
        classifier=classifier,
        clock=clock,
        stop_session_on_disconnect=True,
        counter_modulus=counter_modulus(samples),
    )
    result = ReplayResult()
    monitor.subscribe(result.collect)

    result.samples = len(samples)

    async def _run() -> None:
        if session_min:
            monitor.start_session(session_min, session_goal)
        await monitor.run(_clocked(samples, clock))

    asyncio.run(_run())
    return result


def replay_file(
    path: str,
    output_path: str | None = None,
    goal: Goal | str = Goal.ANXIETY,
    session_min: int | None = None,
    verbose: bool = False,
) -> ReplayResult:
    """Replay a capture or CSV file and print a short report.

    Args:
        path: ``.jsonl`` capture or ``.csv`` sample file.
        output_path: Optional path to write the report as JSON.
        goal: Online score goal.
        session_min: Record the replay as a session of this many minutes.
        verbose: Print skipped lines.
    """
    p = Path(path)
    if not p.exists():
        print(f"File not found: {path}")
        return ReplayResult()

    print(f"Replaying {p.name}...")
    samples = load_samples(p, verbose)
    if not samples:
        print("No samples decoded.")
        return ReplayResult()

    result = run_offline(samples, goal=goal, session_min=session_min, session_goal=goal)
    report = result.to_dict()

    print(f"\nSummary: {result.samples} samples "
          f"({result.samples / SAMPLE_RATE:.1f} s), "
          f"{report['lost_samples']} lost in {report['loss_events']} gap(s), "
          f"{report['band_updates']} band updates, {report['heart_updates']} heart updates")
    if report["last_bpm"] is not None:
        print(f"  Last BPM: {report['last_bpm']:.0f}")
    if report["display_state"] is not None:
        print(f"  State:    {report['display_state']}")
    if result.summary is not None:
        print(f"  Session:  {result.summary!r}")

    if output_path:
        with open(output_path, "w") as out:
            json.dump(report, out, indent=2)
        print(f"Output written to {output_path}")

    return result
