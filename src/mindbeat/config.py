"""Tunable constants for the mindbeat pipeline.

Everything here has a sensible default for the 500 Hz two-EEG/one-ECG
wearable.  Runtime code takes these as keyword defaults so callers (and the
CLI) can override individual values without touching this module.
"""

from __future__ import annotations

from enum import Enum

# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------
SAMPLE_RATE = 500  # Hz, nominal device rate
COUNTER_MODULUS = 256  # the sample counter is a wrapping uint8

# ---------------------------------------------------------------------------
# Spectral engine
# ---------------------------------------------------------------------------
FFT_SIZE = 256  # samples per spectral window (~0.5 s at 500 Hz)
FFT_HOP = 10  # run a decomposition every N samples (~50 Hz)

# Band edges in Hz, [lo, hi).  Gamma is open-ended up to Nyquist.
BANDS: dict[str, tuple[float, float]] = {
    "delta": (0.5, 4.0),
    "theta": (4.0, 8.0),
    "alpha": (8.0, 13.0),
    "beta": (13.0, 30.0),
    "gamma": (30.0, SAMPLE_RATE / 2.0),
}

# EMA weight given to the newest raw band power (0 < a <= 1)
SMOOTHING_ALPHA = 0.3

# ---------------------------------------------------------------------------
# Cardiac extractor
# ---------------------------------------------------------------------------
ECG_WINDOW = 2500  # 5 s at 500 Hz
ECG_BATCH = 500  # new samples between detection passes (1 s)
ECG_BANDPASS = (5.0, 20.0)  # Hz, QRS energy band
MIN_RR_SEC = 0.3  # refractory period, caps detection at 200 BPM
RR_RANGE_MS = (300.0, 2000.0)  # plausible RR intervals
HRV_CLAMP_MS = (0.0, 1500.0)

# Display-side BPM smoothing
BPM_WINDOW = 5
BPM_MAX_STEP = 2.0

# ---------------------------------------------------------------------------
# State debouncer
# ---------------------------------------------------------------------------
STATE_INTERVAL_SEC = 5.0

# ---------------------------------------------------------------------------
# Sessions and scoring
# ---------------------------------------------------------------------------
SESSION_DURATIONS_MIN = (3, 5, 10, 15)
EPSILON = 0.001
SYMMETRY_THRESHOLD = 0.05
SESSION_PHASES = 12

# Stop and summarise an active session when the device disconnects.
STOP_SESSION_ON_DISCONNECT = True


class Goal(str, Enum):
    """What the user is training for; selects the online score formula."""

    ANXIETY = "anxiety"
    MEDITATION = "meditation"
    SLEEP = "sleep"


# Auxiliary per-goal band weights for the session's weighted EEG score.
# Anxiety training rewards the same alpha-heavy profile as relaxation.
GOAL_WEIGHTS: dict[str, dict[str, float]] = {
    "meditation": {"alpha": 0.4, "theta": 0.6},
    "relaxation": {"alpha": 0.7, "theta": 0.3},
    "anxiety": {"alpha": 0.7, "theta": 0.3},
    "focus": {"beta": 0.8, "alpha": 0.2},
    "sleep": {"delta": 1.0},
}

# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------
WORKER_QUEUE_SIZE = 8
