"""Shared fixtures and helpers for the mindbeat test suite."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from mindbeat.config import SAMPLE_RATE
from mindbeat.ingest import Sample
from mindbeat.monitor import BiosignalMonitor, SampleClock
from mindbeat.session import SessionSample
from mindbeat.spectral import BandPowerFrame
from mindbeat.synthetic import ecg_pulses, sine


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def make_sine(freq_hz: float, n: int = 256, amplitude: float = 1.0) -> np.ndarray:
    """Noise-free sinusoid at the device sample rate."""
    return sine(freq_hz, n, SAMPLE_RATE, amplitude)


def make_ecg(bpm: float = 75.0, n: int = 2500) -> np.ndarray:
    """Noise-free pulse train; at 75 BPM beats land on 200, 600, ..., 2200."""
    return ecg_pulses(bpm, n, SAMPLE_RATE)


def ecg_from_beats(positions: list[int], n: int = 2500, width: float = 5.0) -> np.ndarray:
    """Gaussian pulses centred exactly on the given sample indices."""
    out = np.zeros(n, dtype=np.float64)
    idx = np.arange(n)
    for p in positions:
        out += np.exp(-0.5 * ((idx - p) / width) ** 2)
    return out


# ---------------------------------------------------------------------------
# Frame / record helpers
# ---------------------------------------------------------------------------


def make_frame(**bands: float) -> BandPowerFrame:
    """BandPowerFrame with unspecified bands at zero."""
    return BandPowerFrame(**bands)


def make_session_sample(
    timestamp: float = 0.0,
    alpha: float = 0.0,
    beta: float = 0.0,
    theta: float = 0.0,
    delta: float = 0.0,
    symmetry: float = 0.0,
    lateralization: float | None = None,
) -> SessionSample:
    return SessionSample(
        timestamp=timestamp,
        alpha=alpha,
        beta=beta,
        theta=theta,
        delta=delta,
        symmetry=symmetry,
        lateralization=symmetry if lateralization is None else lateralization,
    )


def make_samples(n: int, start_counter: int = 0) -> list[Sample]:
    """``n`` consecutive zero-valued samples with wrapping counters."""
    return [Sample((start_counter + i) % 256, 0.0, 0.0, 0.0) for i in range(n)]


# ---------------------------------------------------------------------------
# Monitor helpers
# ---------------------------------------------------------------------------


def feed(monitor: BiosignalMonitor, clock: SampleClock, samples) -> None:
    """Push samples through a monitor synchronously, ticking the clock."""
    for s in samples:
        clock.advance()
        monitor.ingest(s)


@pytest.fixture
def clock() -> SampleClock:
    return SampleClock(SAMPLE_RATE)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def monitor(clock, events) -> BiosignalMonitor:
    """Monitor on a sample clock whose events are collected in ``events``."""
    m = BiosignalMonitor(clock=clock)
    m.subscribe(events.append)
    return m


# ---------------------------------------------------------------------------
# Capture file helpers
# ---------------------------------------------------------------------------


def write_jsonl(path: Path, entries: list[dict | str]) -> Path:
    """Write entries as JSONL; strings are written verbatim."""
    with open(path, "w") as f:
        for entry in entries:
            line = entry if isinstance(entry, str) else json.dumps(entry)
            f.write(line + "\n")
    return path


def make_capture_entry(
    hex_data: str,
    uuid: str = "beb5483e-36e1-4688-b7f5-ea07361b26a8",
    timestamp: str = "2024-02-13T12:00:00Z",
) -> dict:
    """Create a single JSONL capture entry."""
    return {
        "uuid": uuid,
        "hex_data": hex_data,
        "timestamp": timestamp,
    }
