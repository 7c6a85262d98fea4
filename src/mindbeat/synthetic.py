"""Deterministic synthetic EEG/ECG streams for demos and tests."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from mindbeat.config import COUNTER_MODULUS, SAMPLE_RATE
from mindbeat.ingest import Sample


def sine(freq_hz: float, n: int, fs: float = SAMPLE_RATE, amplitude: float = 1.0) -> np.ndarray:
    """``n`` samples of a sinusoid starting at phase 0."""
    t = np.arange(n) / fs
    return amplitude * np.sin(2 * math.pi * freq_hz * t)


def ecg_pulses(
    bpm: float,
    n: int,
    fs: float = SAMPLE_RATE,
    first_beat_sec: float = 0.4,
    amplitude: float = 1.0,
    width_sec: float = 0.01,
) -> np.ndarray:
    """Gaussian QRS-like pulses at a fixed rate.

    Beat centres are rounded to whole samples so the RR intervals are
    exact multiples of the sample period.
    """
    out = np.zeros(n, dtype=np.float64)
    period = 60.0 / bpm
    sigma = width_sec * fs
    half = int(math.ceil(4 * sigma))
    offsets = np.arange(-half, half + 1)
    pulse = amplitude * np.exp(-0.5 * (offsets / sigma) ** 2)

    t = first_beat_sec
    while t * fs < n:
        centre = int(round(t * fs))
        lo = max(0, centre - half)
        hi = min(n, centre + half + 1)
        out[lo:hi] += pulse[lo - (centre - half):hi - (centre - half)]
        t += period
    return out


@dataclass
class SyntheticSource:
    """Endless generator of device samples.

    Args:
        left: ``{freq_hz: amplitude}`` mixture for EEG channel 0.
        right: Mixture for EEG channel 1.
        bpm: Heart rate of the ECG pulse train.
        noise: Gaussian noise std added to every channel.
        drop_every: If set, skip one counter value every N samples to
            simulate transport loss.
        scale: Multiplier applied before output (device units).
        seed: RNG seed.
    """

    left: dict[float, float] = field(default_factory=lambda: {10.0: 1.0})
    right: dict[float, float] = field(default_factory=lambda: {10.0: 0.8})
    bpm: float = 72.0
    noise: float = 0.05
    drop_every: int | None = None
    scale: float = 1.0
    sample_rate: float = SAMPLE_RATE
    seed: int = 0

    def samples(self, seconds: float) -> Iterator[Sample]:
        n = int(seconds * self.sample_rate)
        rng = np.random.default_rng(self.seed)
        eeg0 = sum((sine(f, n, self.sample_rate, a) for f, a in self.left.items()), np.zeros(n))
        eeg1 = sum((sine(f, n, self.sample_rate, a) for f, a in self.right.items()), np.zeros(n))
        ecg = ecg_pulses(self.bpm, n, self.sample_rate)

        eeg0 = (eeg0 + rng.normal(0, self.noise, n)) * self.scale
        eeg1 = (eeg1 + rng.normal(0, self.noise, n)) * self.scale
        ecg = (ecg + rng.normal(0, self.noise * 0.1, n)) * self.scale

        counter = 0
        for i in range(n):
            if self.drop_every and i > 0 and i % self.drop_every == 0:
                counter = (counter + 1) % COUNTER_MODULUS
            yield Sample(counter, float(eeg0[i]), float(eeg1[i]), float(ecg[i]))
            counter = (counter + 1) % COUNTER_MODULUS
