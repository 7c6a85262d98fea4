"""Affective-state classification and display debouncing.

The per-second classifier output is noisy.  :class:`StateDebouncer` keeps a
trailing 5-second window of raw states and only changes the displayed
state once per interval, to the most frequent raw state in the window.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from mindbeat.config import STATE_INTERVAL_SEC

log = logging.getLogger(__name__)


class State(str, Enum):
    STRESSED = "stressed"
    RELAXED = "relaxed"
    HAPPY = "happy"
    FOCUSED = "focused"
    NEUTRAL = "neutral"
    MILD_STRESS = "mild_stress"
    NO_DATA = "no_data"

    @property
    def label(self) -> str:
        """Human-readable label, as shown next to the live readings."""
        if self is State.NO_DATA:
            return "Analyzing..."
        return self.value.replace("_", " ")


Classifier = Callable[[float, float, float], State]


# ---------------------------------------------------------------------------
# Default rule-based classifier
# ---------------------------------------------------------------------------

# RMSSD bands (ms)
RMSSD_STRESSED = 20.0
RMSSD_MILD = 30.0
RMSSD_HAPPY = 40.0
RMSSD_RELAXED = 50.0
# SDNN below this with low RMSSD reads as sympathetic dominance
SDNN_STRESSED = 30.0
# pNN50 bands (%)
PNN50_RELAXED = 20.0
PNN50_HAPPY = 10.0
PNN50_FOCUSED = 5.0


def classify_hrv(sdnn: float, rmssd: float, pnn50: float) -> State:
    """Map an HRV triple to a coarse affective state.

    Higher parasympathetic activity (RMSSD, pNN50) reads as calmer.  An
    all-zero triple means the extractor found no usable beats.
    """
    if sdnn <= 0.0 and rmssd <= 0.0 and pnn50 <= 0.0:
        return State.NO_DATA
    if rmssd < RMSSD_STRESSED and sdnn < SDNN_STRESSED:
        return State.STRESSED
    if rmssd < RMSSD_MILD:
        return State.MILD_STRESS
    if rmssd >= RMSSD_RELAXED and pnn50 >= PNN50_RELAXED:
        return State.RELAXED
    if rmssd >= RMSSD_HAPPY and pnn50 >= PNN50_HAPPY:
        return State.HAPPY
    if pnn50 < PNN50_FOCUSED:
        return State.FOCUSED
    return State.NEUTRAL


# ---------------------------------------------------------------------------
# Debouncer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StateEvent:
    state: State
    timestamp: float


def majority_state(events: list[StateEvent]) -> State | None:
    """Most frequent state; ties go to whichever was seen first."""
    if not events:
        return None
    counts = Counter(e.state for e in events)
    # most_common() is stable, so equal counts keep first-seen order
    return counts.most_common(1)[0][0]


class StateDebouncer:
    """Turn a stream of raw states into a display state that moves slowly.

    * For the first ``interval`` seconds after :meth:`reset` the display
      state is forced to ``no_data``.
    * After that, whenever ``interval`` seconds have passed since the last
      change, the display state becomes the mode of the trailing window.
    """

    def __init__(self, interval: float = STATE_INTERVAL_SEC) -> None:
        self.interval = interval
        self.window: list[StateEvent] = []
        self.display = State.NO_DATA
        self.connection_start: float | None = None
        self.last_update = 0.0

    def reset(self, now: float | None = None) -> None:
        """Start over, e.g. on (re)connect or disconnect."""
        self.window = []
        self.display = State.NO_DATA
        self.connection_start = now
        self.last_update = now if now is not None else 0.0

    def update(self, state: State, now: float) -> State:
        """Record a raw state observed at ``now``; return the display state."""
        if self.connection_start is None:
            self.reset(now)

        self.window.append(StateEvent(State(state), now))
        cutoff = now - self.interval
        self.window = [e for e in self.window if e.timestamp >= cutoff]

        if now - self.connection_start < self.interval:
            self.display = State.NO_DATA
        elif now - self.last_update >= self.interval:
            mode = majority_state(self.window)
            if mode is not None:
                if mode is not self.display:
                    log.debug("display state %s -> %s", self.display.value, mode.value)
                self.display = mode
                self.last_update = now
        return self.display
