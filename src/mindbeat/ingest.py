"""Sample normalisation and counter-gap (packet loss) detection.

The device stamps every sample with a wrapping counter.  A jump in that
counter means samples were lost in transit; we report the gap but keep
buffering whatever arrives, so downstream windows just contain a seam.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from mindbeat.config import COUNTER_MODULUS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    """One device tick: counter plus two EEG channels and one ECG channel."""

    counter: int
    eeg0: float
    eeg1: float
    ecg: float

    @classmethod
    def from_tuple(cls, values: Sequence[float]) -> Sample:
        """Build a Sample from a raw ``(counter, eeg0, eeg1, ecg)`` tuple."""
        if len(values) != 4:
            raise ValueError(f"expected 4 values (counter, eeg0, eeg1, ecg), got {len(values)}")
        counter, eeg0, eeg1, ecg = values
        return cls(int(counter), float(eeg0), float(eeg1), float(ecg))


@dataclass(frozen=True)
class LossEvent:
    """Counter discontinuity between two consecutive samples.

    ``missing`` is None when the gap cannot be sized unambiguously (the
    counter moved backwards by more than half the modulus, which looks the
    same as a large forward jump across the wrap).
    """

    previous: int
    current: int
    missing: int | None

    def __repr__(self) -> str:
        n = "?" if self.missing is None else str(self.missing)
        return f"LossEvent({self.previous} -> {self.current}, missing={n})"


class LossDetector:
    """Track the previous counter and flag gaps.

    Owned by a single monitor; call :meth:`reset` on every (re)connection so
    the first sample of the new stream becomes the baseline instead of being
    compared against a stale counter.
    """

    def __init__(self, modulus: int | None = COUNTER_MODULUS) -> None:
        self.modulus = modulus
        self.previous: int | None = None
        self.total_missing = 0
        self.events = 0

    def reset(self) -> None:
        self.previous = None

    def check(self, counter: int) -> LossEvent | None:
        """Feed the next counter; return a LossEvent if samples went missing."""
        prev = self.previous
        self.previous = counter
        if prev is None:
            return None

        if self.modulus is None:
            missing: int | None = counter - prev - 1
            if missing == 0:
                return None
            if missing < 0:
                missing = None
        else:
            step = (counter - prev) % self.modulus
            if step == 1:
                return None
            if step == 0 or step > self.modulus // 2:
                # Repeated counter or a backwards jump: can't tell how many
                # full wraps happened in between.
                missing = None
            else:
                missing = step - 1

        event = LossEvent(previous=prev, current=counter, missing=missing)
        self.events += 1
        if missing is not None:
            self.total_missing += missing
        log.info("sample loss: %r", event)
        return event
