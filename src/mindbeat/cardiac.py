"""ECG beat detection, heart rate and HRV.

Like the spectral engine this is split across a worker channel:

* :class:`EcgWindow` (orchestrator side) keeps the last 5 s of ECG and,
  after every 500 new samples (1 s), emits a :class:`CardiacRequest`.
* :class:`CardiacAnalyzer` (worker side) detects beats in the window,
  derives RR intervals and HRV metrics, and tracks running extrema.
* :class:`BpmDisplayFilter` (orchestrator side) rate-limits the BPM shown
  to the user.

Beat detection is a compact Pan-Tompkins variant:
1. Remove baseline (median) and band-pass to the QRS band (5-20 Hz).
2. Square and integrate over an 80 ms moving window to get an energy
   envelope.
3. Pick envelope peaks above 30% of the window maximum, at least one
   refractory period (300 ms) apart.
4. Snap each peak to the largest raw deflection within +/-50 ms so the
   beat index does not inherit filter group delay.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, asdict, field

import numpy as np
from scipy import signal as sig

from mindbeat.buffers import ChannelBuffer
from mindbeat.config import (
    BPM_MAX_STEP,
    BPM_WINDOW,
    ECG_BANDPASS,
    ECG_BATCH,
    ECG_WINDOW,
    MIN_RR_SEC,
    RR_RANGE_MS,
    SAMPLE_RATE,
)
from mindbeat.hrv import (
    RunningStats,
    beat_hrv,
    compute_rmssd,
    mean_bpm,
    pnn50,
    sdnn,
)

log = logging.getLogger(__name__)

# Envelope peak threshold, as a fraction of the window maximum
PEAK_THRESHOLD = 0.3
INTEGRATION_SEC = 0.08
SNAP_SEC = 0.05


@dataclass(frozen=True)
class CardiacRequest:
    ecg: np.ndarray
    sample_rate: float = SAMPLE_RATE


@dataclass
class HRVStat:
    """Cardiac features for one detection pass.

    ``bpm`` and ``hrv`` are None when the window holds no valid beat pair.
    ``sdnn``, ``rmssd`` and ``pnn50`` default to 0 when undetermined.
    ``high``/``low``/``avg`` (and the ``hrv_*`` equivalents) aggregate every
    reading since the analyzer was created.
    """

    bpm: float | None = None
    high: int | None = None
    low: int | None = None
    avg: int | None = None
    hrv: float | None = None
    hrv_high: float | None = None
    hrv_low: float | None = None
    hrv_avg: float | None = None
    sdnn: float = 0.0
    rmssd: float = 0.0
    pnn50: float = 0.0
    peaks: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    def __repr__(self) -> str:
        bpm = "--" if self.bpm is None else f"{self.bpm:.1f}"
        return (
            f"HRVStat(bpm={bpm}, sdnn={self.sdnn:.1f}, "
            f"rmssd={self.rmssd:.1f}, pnn50={self.pnn50:.1f})"
        )


# ---------------------------------------------------------------------------
# Beat detection
# ---------------------------------------------------------------------------


def _bandpass_filter(
    data: np.ndarray,
    fs: float,
    lo: float = ECG_BANDPASS[0],
    hi: float = ECG_BANDPASS[1],
    order: int = 2,
) -> np.ndarray:
    """Apply a zero-phase Butterworth bandpass filter."""
    nyq = fs / 2.0
    lo_n = max(lo / nyq, 0.001)
    hi_n = min(hi / nyq, 0.999)
    if lo_n >= hi_n:
        return data
    sos = sig.butter(order, [lo_n, hi_n], btype="band", output="sos")
    padlen = min(len(data) - 1, 3 * (2 * len(sos) + 1))
    return sig.sosfiltfilt(sos, data, padlen=padlen)


def detect_beats(
    ecg: np.ndarray,
    fs: float = SAMPLE_RATE,
    min_rr_sec: float = MIN_RR_SEC,
) -> np.ndarray:
    """Return the sample indices of detected R peaks, in ascending order."""
    x = np.nan_to_num(np.asarray(ecg, dtype=np.float64))
    if len(x) < int(fs * min_rr_sec) * 2:
        return np.array([], dtype=int)

    x = x - np.median(x)
    filtered = _bandpass_filter(x, fs)

    width = max(1, int(INTEGRATION_SEC * fs))
    envelope = np.convolve(filtered ** 2, np.ones(width) / width, mode="same")
    top = float(np.max(envelope))
    if top <= 0.0:
        return np.array([], dtype=int)

    candidates, _ = sig.find_peaks(
        envelope,
        height=PEAK_THRESHOLD * top,
        distance=max(1, int(min_rr_sec * fs)),
    )

    snap = int(SNAP_SEC * fs)
    beats: list[int] = []
    for p in candidates:
        lo = max(0, p - snap)
        hi = min(len(x), p + snap + 1)
        idx = lo + int(np.argmax(np.abs(x[lo:hi])))
        if beats and idx - beats[-1] < int(min_rr_sec * fs):
            continue
        beats.append(idx)
    return np.asarray(beats, dtype=int)


def rr_intervals_ms(
    beats: np.ndarray,
    fs: float = SAMPLE_RATE,
    rr_range: tuple[float, float] = RR_RANGE_MS,
) -> list[float]:
    """RR intervals (ms) between consecutive beats, implausible ones dropped."""
    if len(beats) < 2:
        return []
    rr = np.diff(np.asarray(beats, dtype=np.float64)) / fs * 1000.0
    lo, hi = rr_range
    return [float(v) for v in rr if lo <= v <= hi]


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------


class CardiacAnalyzer:
    """Stateful request handler for the heart-rate worker."""

    def __init__(self, min_rr_sec: float = MIN_RR_SEC) -> None:
        self.min_rr_sec = min_rr_sec
        self.bpm_stats = RunningStats()
        self.hrv_stats = RunningStats()

    def __call__(self, request: CardiacRequest) -> HRVStat:
        fs = request.sample_rate
        beats = detect_beats(request.ecg, fs, self.min_rr_sec)
        rr = rr_intervals_ms(beats, fs)
        log.debug("%d beats, %d valid RR intervals", len(beats), len(rr))

        bpm = mean_bpm(rr)
        per_beat = beat_hrv(rr)
        hrv = per_beat[-1] if per_beat else None

        self.bpm_stats.update(bpm)
        self.hrv_stats.update(hrv)

        return HRVStat(
            bpm=bpm,
            high=_round_or_none(self.bpm_stats.high),
            low=_round_or_none(self.bpm_stats.low),
            avg=_round_or_none(self.bpm_stats.avg),
            hrv=hrv,
            hrv_high=self.hrv_stats.high,
            hrv_low=self.hrv_stats.low,
            hrv_avg=None if self.hrv_stats.avg is None else round(self.hrv_stats.avg, 1),
            sdnn=sdnn(rr) or 0.0,
            rmssd=compute_rmssd(rr) or 0.0,
            pnn50=pnn50(rr) or 0.0,
            peaks=[int(b) for b in beats],
        )


def _round_or_none(value: float | None) -> int | None:
    return None if value is None else int(round(value))


# ---------------------------------------------------------------------------
# Orchestrator side
# ---------------------------------------------------------------------------


class EcgWindow:
    """Rolling ECG buffer that requests a detection pass once per batch."""

    def __init__(
        self,
        capacity: int = ECG_WINDOW,
        batch: int = ECG_BATCH,
        sample_rate: float = SAMPLE_RATE,
    ) -> None:
        self.buffer = ChannelBuffer(capacity)
        self.batch = batch
        self.sample_rate = sample_rate
        self.pending = 0

    def push(self, ecg: float) -> CardiacRequest | None:
        self.buffer.push(ecg)
        self.pending += 1
        if self.pending < self.batch:
            return None
        self.pending = 0
        return CardiacRequest(ecg=self.buffer.snapshot(), sample_rate=self.sample_rate)

    def reset(self) -> None:
        self.buffer.clear()
        self.pending = 0


class BpmDisplayFilter:
    """Smooth and rate-limit the BPM shown to the user.

    Keeps the last ``window`` non-null readings; the displayed value steps
    toward their mean by at most ``max_step`` per update.  A null reading
    clears the window so a stale value is never shown as current.
    """

    def __init__(self, window: int = BPM_WINDOW, max_step: float = BPM_MAX_STEP) -> None:
        self.max_step = max_step
        self.readings: deque[float] = deque(maxlen=window)
        self.displayed: float | None = None

    def update(self, bpm: float | None) -> float | None:
        if bpm is None:
            self.reset()
            return None
        self.readings.append(bpm)
        target = sum(self.readings) / len(self.readings)
        if self.displayed is None:
            self.displayed = target
        else:
            diff = target - self.displayed
            self.displayed += max(-self.max_step, min(self.max_step, diff))
        return self.displayed

    def reset(self) -> None:
        self.readings.clear()
        self.displayed = None
