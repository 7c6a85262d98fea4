"""EEG band-power engine.

Two halves that live on opposite sides of a worker channel:

* :class:`SpectralEngine` (orchestrator side) keeps a 256-sample rolling
  window per EEG channel and, every 10th sample once the window is full,
  emits a :class:`SpectralRequest` holding *copies* of both windows.
* :class:`BandPowerAnalyzer` (worker side) turns a request into a pair of
  smoothed :class:`BandPowerFrame` objects.

Algorithm per channel:
1. Remove the DC offset and apply a Hann taper.
2. One-sided FFT, scaled to a power spectral density (units^2 / Hz).
3. Integrate the PSD over each band's [lo, hi) range.
4. Exponential moving average across successive windows.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field

import numpy as np

from mindbeat.buffers import ChannelBuffer
from mindbeat.config import (
    BANDS,
    EPSILON,
    FFT_HOP,
    FFT_SIZE,
    SAMPLE_RATE,
    SMOOTHING_ALPHA,
    Goal,
)


@dataclass
class BandPowerFrame:
    """Band powers of one channel for one spectral window."""

    delta: float = 0.0
    theta: float = 0.0
    alpha: float = 0.0
    beta: float = 0.0
    gamma: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    def dominant(self) -> str:
        """Name of the band with the highest power (first wins on ties)."""
        d = self.to_dict()
        return max(d, key=d.__getitem__)

    def __repr__(self) -> str:
        return (
            f"BandPowerFrame(d={self.delta:.3g}, t={self.theta:.3g}, "
            f"a={self.alpha:.3g}, b={self.beta:.3g}, g={self.gamma:.3g})"
        )


@dataclass(frozen=True)
class SpectralRequest:
    eeg0: np.ndarray
    eeg1: np.ndarray
    sample_rate: float = SAMPLE_RATE
    fft_size: int = FFT_SIZE


@dataclass(frozen=True)
class SpectralResponse:
    smooth0: BandPowerFrame
    smooth1: BandPowerFrame


# ---------------------------------------------------------------------------
# Spectral decomposition
# ---------------------------------------------------------------------------


def band_powers(
    window: np.ndarray,
    fs: float = SAMPLE_RATE,
    bands: dict[str, tuple[float, float]] = BANDS,
) -> dict[str, float]:
    """Absolute power per band for a single window.

    Returns a dict ``{band_name: power}``.  Non-finite samples are replaced
    by zero so that one corrupt reading can't poison the whole window.
    """
    x = np.asarray(window, dtype=np.float64)
    n = len(x)
    if n < 2:
        return {name: 0.0 for name in bands}

    x = np.nan_to_num(x, nan=0.0, posinf=0.0, neginf=0.0)
    x = x - np.mean(x)
    taper = np.hanning(n)
    spectrum = np.fft.rfft(x * taper)
    freqs = np.fft.rfftfreq(n, d=1.0 / fs)

    # One-sided PSD, Hann-compensated so a unit sinusoid integrates to ~0.5
    psd = (np.abs(spectrum) ** 2) / (fs * np.sum(taper ** 2))
    psd[1:-1] *= 2.0
    df = fs / n

    powers: dict[str, float] = {}
    for name, (lo, hi) in bands.items():
        mask = (freqs >= lo) & (freqs < hi)
        powers[name] = float(np.sum(psd[mask]) * df) if np.any(mask) else 0.0
    return powers


class BandSmoother:
    """Exponential moving average over successive band-power dicts."""

    def __init__(self, alpha: float = SMOOTHING_ALPHA) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError("smoothing alpha must be in (0, 1]")
        self.alpha = alpha
        self.state: dict[str, float] | None = None

    def update(self, raw: dict[str, float]) -> BandPowerFrame:
        if self.state is None:
            self.state = dict(raw)
        else:
            a = self.alpha
            self.state = {
                k: a * raw[k] + (1.0 - a) * self.state.get(k, raw[k]) for k in raw
            }
        return BandPowerFrame(**{k: max(0.0, v) for k, v in self.state.items()})

    def reset(self) -> None:
        self.state = None


# ---------------------------------------------------------------------------
# Orchestrator side: rolling windows and cadence
# ---------------------------------------------------------------------------


class SpectralEngine:
    """Rolling EEG windows that decide *when* a decomposition is due."""

    def __init__(
        self,
        fft_size: int = FFT_SIZE,
        hop: int = FFT_HOP,
        sample_rate: float = SAMPLE_RATE,
    ) -> None:
        self.fft_size = fft_size
        self.hop = hop
        self.sample_rate = sample_rate
        self.buf0 = ChannelBuffer(fft_size)
        self.buf1 = ChannelBuffer(fft_size)
        self.sample_count = 0

    def push(self, eeg0: float, eeg1: float) -> SpectralRequest | None:
        """Append one sample pair; return a request when one is due."""
        self.buf0.push(eeg0)
        self.buf1.push(eeg1)
        self.sample_count += 1
        if self.sample_count % self.hop != 0 or not self.buf0.full:
            return None
        return SpectralRequest(
            eeg0=self.buf0.snapshot(),
            eeg1=self.buf1.snapshot(),
            sample_rate=self.sample_rate,
            fft_size=self.fft_size,
        )

    def reset(self) -> None:
        self.buf0.clear()
        self.buf1.clear()
        self.sample_count = 0


# ---------------------------------------------------------------------------
# Worker side: decomposition + smoothing
# ---------------------------------------------------------------------------


@dataclass
class BandPowerAnalyzer:
    """Stateful request handler for the band-power worker."""

    bands: dict[str, tuple[float, float]] = field(default_factory=lambda: dict(BANDS))
    smoothing: float = SMOOTHING_ALPHA

    def __post_init__(self) -> None:
        self._smooth0 = BandSmoother(self.smoothing)
        self._smooth1 = BandSmoother(self.smoothing)

    def __call__(self, request: SpectralRequest) -> SpectralResponse | None:
        if len(request.eeg0) < request.fft_size or len(request.eeg1) < request.fft_size:
            return None
        raw0 = band_powers(request.eeg0[-request.fft_size:], request.sample_rate, self.bands)
        raw1 = band_powers(request.eeg1[-request.fft_size:], request.sample_rate, self.bands)
        return SpectralResponse(
            smooth0=self._smooth0.update(raw0),
            smooth1=self._smooth1.update(raw1),
        )


# ---------------------------------------------------------------------------
# Online goal score
# ---------------------------------------------------------------------------


def goal_score(goal: Goal | str, left: BandPowerFrame, right: BandPowerFrame) -> float:
    """Live score for the selected training goal.

    anxiety    -- alpha/beta ratio summed over both hemispheres
    meditation -- mean theta
    sleep      -- mean delta
    """
    goal = Goal(goal)
    if goal is Goal.ANXIETY:
        return (left.alpha + right.alpha) / (left.beta + right.beta + EPSILON)
    if goal is Goal.MEDITATION:
        return (left.theta + right.theta) / 2.0
    return (left.delta + right.delta) / 2.0
