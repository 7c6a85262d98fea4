"""Real-time EEG band power, heart rate and HRV for a two-EEG/one-ECG wearable.

Modules:
    ingest    -- Sample model and counter-gap detection
    spectral  -- Rolling FFT band powers and the online goal score
    cardiac   -- ECG beat detection, BPM and HRV
    states    -- Affective-state classifier and display debouncer
    session   -- Session recording and end-of-session summary
    workers   -- Bounded asyncio worker actors
    monitor   -- The orchestrator tying everything together
"""

from mindbeat.ingest import Sample, LossEvent, LossDetector
from mindbeat.spectral import BandPowerFrame, SpectralEngine, BandPowerAnalyzer, goal_score
from mindbeat.cardiac import CardiacAnalyzer, HRVStat, BpmDisplayFilter, detect_beats
from mindbeat.states import State, StateDebouncer, classify_hrv
from mindbeat.session import SessionRecorder, SessionSummary, summarize_session
from mindbeat.monitor import BiosignalMonitor, SampleClock

__version__ = "0.1.0"

__all__ = [
    # ingest
    "Sample",
    "LossEvent",
    "LossDetector",
    # spectral
    "BandPowerFrame",
    "SpectralEngine",
    "BandPowerAnalyzer",
    "goal_score",
    # cardiac
    "CardiacAnalyzer",
    "HRVStat",
    "BpmDisplayFilter",
    "detect_beats",
    # states
    "State",
    "StateDebouncer",
    "classify_hrv",
    # session
    "SessionRecorder",
    "SessionSummary",
    "summarize_session",
    # monitor
    "BiosignalMonitor",
    "SampleClock",
]
