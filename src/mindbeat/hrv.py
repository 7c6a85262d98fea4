"""Heart-rate-variability metrics over RR-interval sequences.

All intervals are in milliseconds.  The metric functions return None when
there are too few intervals to say anything; callers decide whether that
becomes a null reading or a zero default.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from mindbeat.config import HRV_CLAMP_MS


def compute_rmssd(rr_intervals: Sequence[float]) -> float | None:
    """RMSSD of one detection window, in ms.

    Short-term, beat-to-beat variability; the main input of the state
    classifier.  None until the window holds two RR intervals.
    """
    if len(rr_intervals) < 2:
        return None
    successive = np.diff(np.asarray(rr_intervals, dtype=np.float64))
    return round(float(np.sqrt(np.mean(np.square(successive)))), 2)


def sdnn(rr_intervals: Sequence[float]) -> float | None:
    """Sample standard deviation (ddof=1) of the window's RR intervals, ms."""
    if len(rr_intervals) < 2:
        return None
    return round(float(np.std(np.asarray(rr_intervals, dtype=np.float64), ddof=1)), 2)


def pnn50(rr_intervals: Sequence[float]) -> float | None:
    """Share of beat-to-beat RR changes above 50 ms, in percent (0-100)."""
    if len(rr_intervals) < 2:
        return None
    changes = np.abs(np.diff(np.asarray(rr_intervals, dtype=np.float64)))
    return round(float(np.mean(changes > 50.0) * 100.0), 1)


def mean_bpm(rr_intervals: Sequence[float]) -> float | None:
    """Heart rate from the mean RR interval, or None without intervals."""
    if len(rr_intervals) == 0:
        return None
    mean_rr = float(np.mean(np.asarray(rr_intervals, dtype=np.float64)))
    if mean_rr <= 0:
        return None
    return round(60_000.0 / mean_rr, 1)


def clamp_hrv(value: float, lo: float = HRV_CLAMP_MS[0], hi: float = HRV_CLAMP_MS[1]) -> float:
    """Clamp a per-beat HRV value into the displayable range."""
    return max(lo, min(hi, value))


def beat_hrv(rr_intervals: Sequence[float]) -> list[float]:
    """Instantaneous HRV per beat: |RR[i] - RR[i-1]|, clamped.

    One value for every beat that closes a second interval.
    """
    if len(rr_intervals) < 2:
        return []
    arr = np.asarray(rr_intervals, dtype=np.float64)
    return [round(clamp_hrv(float(d)), 1) for d in np.abs(np.diff(arr))]


class RunningStats:
    """High / low / mean of every value seen since the last reset."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.high: float | None = None
        self.low: float | None = None
        self._total = 0.0
        self.count = 0

    def update(self, value: float | None) -> None:
        if value is None or not math.isfinite(value):
            return
        self.high = value if self.high is None else max(self.high, value)
        self.low = value if self.low is None else min(self.low, value)
        self._total += value
        self.count += 1

    @property
    def avg(self) -> float | None:
        if self.count == 0:
            return None
        return self._total / self.count

    def __repr__(self) -> str:
        return f"RunningStats(n={self.count}, low={self.low}, high={self.high})"
