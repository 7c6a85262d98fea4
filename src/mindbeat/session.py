"""Meditation session recording and end-of-session scoring.

A session goes idle -> active -> summarized -> idle.  While active, every
band-power frame pair is reduced to one :class:`SessionSample` (hemisphere
averages plus alpha symmetry) and appended to the record.  Stopping freezes
the record and scores it into a JSON-serialisable :class:`SessionSummary`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any

from mindbeat.config import (
    EPSILON,
    GOAL_WEIGHTS,
    SESSION_DURATIONS_MIN,
    SESSION_PHASES,
    SYMMETRY_THRESHOLD,
    Goal,
)
from mindbeat.spectral import BandPowerFrame

log = logging.getLogger(__name__)

# Session bands in tie-break order
SESSION_BANDS = ("alpha", "beta", "theta", "delta")

# Band -> (state percentage key, mental state, description)
BAND_STATES = {
    "alpha": (
        "Relaxed",
        "Relaxed",
        "Your mind was in a calm and relaxed state, ideal for meditation.",
    ),
    "beta": (
        "Focused",
        "Focused",
        "Your mind was highly alert or active. Try to slow down your breath "
        "to enter a calmer state.",
    ),
    "theta": (
        "Meditation",
        "Meditation",
        "You entered a deeply meditative state. Excellent work.",
    ),
    "delta": (
        "Drowsy",
        "Drowsy",
        "Your brain was in a very slow-wave state, indicating deep rest or sleepiness.",
    ),
}

# Band -> phase name used for the stacked phase chart
PHASE_NAMES = {"alpha": "relaxed", "beta": "focused", "theta": "deep", "delta": "drowsy"}


@dataclass(frozen=True)
class SessionSample:
    """One recorded point: hemisphere-averaged bands plus symmetry.

    ``symmetry`` is |alpha_left - alpha_right|; ``lateralization`` keeps the
    sign (positive = left channel stronger) so the summary can say which
    side dominates.
    """

    timestamp: float
    alpha: float
    beta: float
    theta: float
    delta: float
    symmetry: float
    lateralization: float = 0.0

    @classmethod
    def from_frames(
        cls, timestamp: float, left: BandPowerFrame, right: BandPowerFrame
    ) -> SessionSample:
        return cls(
            timestamp=timestamp,
            alpha=(left.alpha + right.alpha) / 2.0,
            beta=(left.beta + right.beta) / 2.0,
            theta=(left.theta + right.theta) / 2.0,
            delta=(left.delta + right.delta) / 2.0,
            symmetry=abs(left.alpha - right.alpha),
            lateralization=left.alpha - right.alpha,
        )


@dataclass
class SessionPhase:
    """Band averages over one twelfth of the session."""

    phase: str
    alpha: float
    beta: float
    theta: float
    delta: float
    heights: dict[str, float] = field(default_factory=dict)


@dataclass
class SessionSummary:
    """End-of-session report."""

    goal: str
    sample_count: int
    duration_sec: float
    formatted_duration: str
    averages: dict[str, float]
    total_power: float
    state_percentages: dict[str, float]
    good_meditation_pct: float
    most_frequent: str
    mental_state: str
    state_description: str
    focus_score: float
    avg_symmetry: float
    symmetry_label: str
    dominant_bands: dict[str, int]
    weighted_eeg_score: float
    phases: list[SessionPhase] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly)."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"SessionSummary({self.formatted_duration}, n={self.sample_count}, "
            f"dominant={self.most_frequent}, focus={self.focus_score:.2f}, "
            f"meditation={self.good_meditation_pct:.1f}%)"
        )


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def format_duration(elapsed_ms: float) -> str:
    """Humanise a duration: seconds up to a minute, whole minutes beyond."""
    if elapsed_ms <= 60_000:
        return f"{round(elapsed_ms / 1000)} sec"
    return f"{round(elapsed_ms / 60_000)} min"


def most_frequent_band(averages: dict[str, float]) -> str:
    """Band with the highest average; ties resolve alpha, beta, theta, delta."""
    best = SESSION_BANDS[0]
    for band in SESSION_BANDS[1:]:
        if averages[band] > averages[best]:
            best = band
    return best


def symmetry_label(
    avg_symmetry: float,
    avg_lateralization: float = 0.0,
    threshold: float = SYMMETRY_THRESHOLD,
) -> str:
    if abs(avg_symmetry) < threshold:
        return "Balanced"
    if avg_lateralization >= 0:
        return "Left hemisphere dominant"
    return "Right hemisphere dominant"


def weighted_eeg_score(averages: dict[str, float], goal: str) -> float:
    weights = GOAL_WEIGHTS.get(goal, {})
    return sum(w * averages.get(band, 0.0) for band, w in weights.items())


def session_phases(samples: list[SessionSample], n_phases: int = SESSION_PHASES) -> list[SessionPhase]:
    """Split the record into ``n_phases`` equal segments and average each."""
    if not samples:
        return []
    size = -(-len(samples) // n_phases)  # ceil division
    phases: list[SessionPhase] = []
    for start in range(0, len(samples), size):
        segment = samples[start:start + size]
        avg = {b: sum(getattr(s, b) for s in segment) / len(segment) for b in SESSION_BANDS}
        total = sum(avg.values())
        heights = {
            PHASE_NAMES[b]: (avg[b] / total if total > 0 else 0.0) for b in SESSION_BANDS
        }
        phases.append(
            SessionPhase(
                phase=PHASE_NAMES[most_frequent_band(avg)],
                alpha=avg["alpha"],
                beta=avg["beta"],
                theta=avg["theta"],
                delta=avg["delta"],
                heights=heights,
            )
        )
    return phases


def summarize_session(
    samples: list[SessionSample],
    goal: Goal | str = Goal.MEDITATION,
    elapsed_sec: float | None = None,
) -> SessionSummary | None:
    """Score a frozen session record.

    Args:
        samples: The frozen record, oldest first.
        goal: Training goal; selects the weighted-score band weights.
        elapsed_sec: Wall-clock session length.  Defaults to the span
            between the first and last sample.

    Returns:
        A SessionSummary, or None for an empty record.
    """
    if not samples:
        return None

    goal_name = goal.value if isinstance(goal, Goal) else str(goal)
    n = len(samples)
    averages = {b: sum(getattr(s, b) for s in samples) / n for b in SESSION_BANDS}
    averages["symmetry"] = sum(s.symmetry for s in samples) / n
    avg_lateralization = sum(s.lateralization for s in samples) / n

    total_power = sum(averages[b] for b in SESSION_BANDS)
    denom = total_power if total_power > 0 else EPSILON

    state_percentages = {
        BAND_STATES[b][0]: round(averages[b] / denom * 100.0, 1) for b in SESSION_BANDS
    }
    good_meditation_pct = round((averages["alpha"] + averages["theta"]) / denom * 100.0, 1)

    best = most_frequent_band(averages)
    _, mental_state, description = BAND_STATES[best]

    if elapsed_sec is None:
        elapsed_sec = samples[-1].timestamp - samples[0].timestamp

    return SessionSummary(
        goal=goal_name,
        sample_count=n,
        duration_sec=round(elapsed_sec, 3),
        formatted_duration=format_duration(elapsed_sec * 1000.0),
        averages=averages,
        total_power=total_power,
        state_percentages=state_percentages,
        good_meditation_pct=good_meditation_pct,
        most_frequent=best,
        mental_state=mental_state,
        state_description=description,
        focus_score=round(
            (averages["alpha"] + averages["theta"]) / (averages["beta"] + EPSILON), 2
        ),
        avg_symmetry=round(averages["symmetry"], 3),
        symmetry_label=symmetry_label(averages["symmetry"], avg_lateralization),
        dominant_bands={b: int(round(averages[b] * 1000)) for b in SESSION_BANDS},
        weighted_eeg_score=weighted_eeg_score(averages, goal_name),
        phases=session_phases(samples),
    )


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


class SessionStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SUMMARIZED = "summarized"


class SessionRecorder:
    """Owns the in-progress session record and its lifecycle."""

    def __init__(self) -> None:
        self.status = SessionStatus.IDLE
        self.goal: str = Goal.MEDITATION.value
        self.duration_min: int | None = None
        self.started_at: float | None = None
        self.records: list[SessionSample] = []
        self.last_summary: SessionSummary | None = None

    @property
    def active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def deadline(self) -> float | None:
        """Clock time at which the session should auto-stop."""
        if not self.active or self.duration_min is None or self.started_at is None:
            return None
        return self.started_at + self.duration_min * 60.0

    def start(self, now: float, duration_min: int = 3, goal: Goal | str = Goal.MEDITATION) -> None:
        if duration_min not in SESSION_DURATIONS_MIN:
            raise ValueError(
                f"session duration must be one of {SESSION_DURATIONS_MIN} minutes, "
                f"got {duration_min}"
            )
        self.goal = Goal(goal).value
        self.duration_min = duration_min
        self.started_at = now
        self.records = []
        self.last_summary = None
        self.status = SessionStatus.ACTIVE
        log.info("session started (%d min, goal=%s)", duration_min, self.goal)

    def record(self, sample: SessionSample) -> None:
        if self.active:
            self.records.append(sample)

    def stop(self, now: float) -> SessionSummary | None:
        """Freeze the record and score it.  No-op when idle."""
        if not self.active:
            return None
        start = self.started_at if self.started_at is not None else now
        frozen = [s for s in self.records if s.timestamp >= start]
        self.records = []
        summary = summarize_session(frozen, self.goal, elapsed_sec=now - start)
        self.status = SessionStatus.SUMMARIZED if summary is not None else SessionStatus.IDLE
        self.last_summary = summary
        if summary is None:
            log.info("session stopped with no samples; nothing to summarise")
        else:
            log.info("session stopped: %r", summary)
        return summary

    def dismiss(self) -> None:
        """Drop the last summary and return to idle."""
        self.last_summary = None
        if self.status is SessionStatus.SUMMARIZED:
            self.status = SessionStatus.IDLE
