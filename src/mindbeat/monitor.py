"""The orchestrator: wires ingestion, workers, debouncing and sessions.

Data flow::

    Sample -> LossDetector
           -> SpectralEngine --(request)--> band-power worker --> handle_band_powers
           -> EcgWindow      --(request)--> heart-rate worker --> handle_cardiac
                                         --> classifier worker --> handle_state

The monitor itself is single-threaded: it reacts to samples, worker
results and lifecycle calls strictly in the order they arrive on the event
loop.  Outputs are typed events pushed to subscribed listeners.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import AsyncIterable, Callable

from mindbeat.cardiac import (
    BpmDisplayFilter,
    CardiacAnalyzer,
    EcgWindow,
    HRVStat,
)
from mindbeat.config import (
    COUNTER_MODULUS,
    SAMPLE_RATE,
    STATE_INTERVAL_SEC,
    STOP_SESSION_ON_DISCONNECT,
    Goal,
)
from mindbeat.ingest import LossDetector, LossEvent, Sample
from mindbeat.session import SessionRecorder, SessionSample, SessionSummary
from mindbeat.spectral import (
    BandPowerAnalyzer,
    BandPowerFrame,
    SpectralEngine,
    SpectralResponse,
    goal_score,
)
from mindbeat.states import Classifier, State, StateDebouncer, classify_hrv
from mindbeat.workers import Worker

log = logging.getLogger(__name__)

Listener = Callable[[object], None]


# ---------------------------------------------------------------------------
# Output events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BandPowerUpdate:
    timestamp: float
    left: BandPowerFrame
    right: BandPowerFrame
    goal: str
    score: float


@dataclass(frozen=True)
class HeartUpdate:
    timestamp: float
    stats: HRVStat
    displayed_bpm: float | None


@dataclass(frozen=True)
class StateUpdate:
    timestamp: float
    raw_state: State
    display_state: State


@dataclass(frozen=True)
class ClassifyRequest:
    sdnn: float
    rmssd: float
    pnn50: float


class ClassifierHandler:
    """Worker-side wrapper around the (external) HRV classifier."""

    def __init__(self, classify: Classifier) -> None:
        self.classify = classify

    def __call__(self, request: ClassifyRequest) -> State:
        return State(self.classify(request.sdnn, request.rmssd, request.pnn50))


class SampleClock:
    """Clock driven by sample count rather than wall time.

    Used for replays and simulations, where samples arrive far faster than
    real time but all timing rules should behave as if they didn't.
    """

    def __init__(self, sample_rate: float = SAMPLE_RATE, start: float = 0.0) -> None:
        self.sample_rate = sample_rate
        self.start = start
        self.samples = 0

    def advance(self, n: int = 1) -> None:
        self.samples += n

    def __call__(self) -> float:
        return self.start + self.samples / self.sample_rate


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------


class BiosignalMonitor:
    """Live EEG/ECG monitor for one device connection.

    Args:
        goal: Training goal for the online score.
        classifier: ``(sdnn, rmssd, pnn50) -> State``; defaults to the
            built-in rule-based :func:`classify_hrv`.
        clock: Zero-argument callable returning seconds.
        stop_session_on_disconnect: Summarise an active session when the
            device drops instead of leaving it open.
        counter_modulus: Wrap of the sample counter, or None for counters
            that never wrap (e.g. re-numbered CSV exports).
    """

    def __init__(
        self,
        goal: Goal | str = Goal.ANXIETY,
        classifier: Classifier = classify_hrv,
        clock: Callable[[], float] = time.monotonic,
        stop_session_on_disconnect: bool = STOP_SESSION_ON_DISCONNECT,
        state_interval: float = STATE_INTERVAL_SEC,
        counter_modulus: int | None = COUNTER_MODULUS,
    ) -> None:
        self.goal = Goal(goal)
        self.clock = clock
        self.stop_session_on_disconnect = stop_session_on_disconnect

        self.loss = LossDetector(counter_modulus)
        self.spectral = SpectralEngine()
        self.ecg = EcgWindow()
        self.bpm_filter = BpmDisplayFilter()
        self.debouncer = StateDebouncer(state_interval)
        self.session = SessionRecorder()

        self.band_worker = Worker("band-power", BandPowerAnalyzer, self.handle_band_powers)
        self.heart_worker = Worker("heart-rate", CardiacAnalyzer, self.handle_cardiac)
        self.state_worker = Worker(
            "classifier", lambda: ClassifierHandler(classifier), self.handle_state
        )

        self.connected = False
        self.latest_bands: BandPowerUpdate | None = None
        self.latest_heart: HeartUpdate | None = None
        self.latest_score: float | None = None
        self._listeners: list[Listener] = []

    @property
    def workers(self) -> tuple[Worker, Worker, Worker]:
        return (self.band_worker, self.heart_worker, self.state_worker)

    @property
    def display_state(self) -> State:
        return self.debouncer.display

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: object) -> None:
        for listener in self._listeners:
            listener(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Start a fresh connection: clear every buffer and window."""
        now = self.clock()
        self._reset_pipeline(now)
        self.connected = True
        log.info("connected")

    def disconnect(self) -> SessionSummary | None:
        """Tear down per-connection state.  May stop an active session."""
        now = self.clock()
        summary = None
        if self.session.active and self.stop_session_on_disconnect:
            summary = self.stop_session()
        self._reset_pipeline(now)
        self.connected = False
        log.info("disconnected")
        return summary

    def _reset_pipeline(self, now: float) -> None:
        self.loss.reset()
        self.spectral.reset()
        self.ecg.reset()
        self.bpm_filter.reset()
        self.debouncer.reset(now)
        for worker in self.workers:
            worker.reset()
        self.latest_bands = None
        self.latest_heart = None
        self.latest_score = None

    def set_goal(self, goal: Goal | str) -> None:
        self.goal = Goal(goal)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, duration_min: int = 3, goal: Goal | str | None = None) -> None:
        self.session.start(self.clock(), duration_min, goal if goal is not None else Goal.MEDITATION)

    def stop_session(self) -> SessionSummary | None:
        summary = self.session.stop(self.clock())
        if summary is not None:
            self._emit(summary)
        return summary

    def check_session_timer(self) -> SessionSummary | None:
        """Auto-stop the session once its duration has elapsed."""
        deadline = self.session.deadline()
        if deadline is not None and self.clock() >= deadline:
            log.info("session timer elapsed")
            return self.stop_session()
        return None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, sample: Sample) -> None:
        """Consume one device sample."""
        if not self.connected:
            self.connect()

        loss = self.loss.check(sample.counter)
        if loss is not None:
            self._emit(loss)

        request = self.spectral.push(sample.eeg0, sample.eeg1)
        if request is not None:
            self.band_worker.submit(request)

        ecg_request = self.ecg.push(sample.ecg)
        if ecg_request is not None:
            self.heart_worker.submit(ecg_request)

        self.check_session_timer()

    # ------------------------------------------------------------------
    # Worker results
    # ------------------------------------------------------------------

    def handle_band_powers(self, response: SpectralResponse) -> BandPowerUpdate:
        now = self.clock()
        left, right = response.smooth0, response.smooth1
        score = goal_score(self.goal, left, right)
        update = BandPowerUpdate(
            timestamp=now, left=left, right=right, goal=self.goal.value, score=score
        )
        self.latest_bands = update
        self.latest_score = score
        if self.session.active:
            self.session.record(SessionSample.from_frames(now, left, right))
        self._emit(update)
        return update

    def handle_cardiac(self, stats: HRVStat) -> HeartUpdate:
        now = self.clock()
        bpm = stats.bpm if stats.bpm is not None and math.isfinite(stats.bpm) else None
        update = HeartUpdate(timestamp=now, stats=stats, displayed_bpm=self.bpm_filter.update(bpm))
        self.latest_heart = update
        self._emit(update)
        self.state_worker.submit(ClassifyRequest(stats.sdnn, stats.rmssd, stats.pnn50))
        return update

    def handle_state(self, state: State) -> StateUpdate:
        now = self.clock()
        display = self.debouncer.update(state, now)
        update = StateUpdate(timestamp=now, raw_state=state, display_state=display)
        self._emit(update)
        return update

    # ------------------------------------------------------------------
    # Async driver
    # ------------------------------------------------------------------

    async def start(self) -> None:
        for worker in self.workers:
            worker.start()

    async def drain(self) -> None:
        """Wait for every in-flight request, including chained ones."""
        for worker in self.workers:
            await worker.join()

    async def stop(self) -> None:
        for worker in self.workers:
            await worker.stop()

    async def run(self, samples: AsyncIterable[Sample], timer_interval: float = 1.0) -> None:
        """Consume an async sample stream until it ends.

        Starts the workers, yields to them after every sample, runs the
        session countdown on its own timer, and on exit drains the workers
        and disconnects.
        """
        await self.start()
        ticker = asyncio.create_task(self._session_ticker(timer_interval))
        try:
            self.connect()
            async for sample in samples:
                self.ingest(sample)
                await asyncio.sleep(0)
            await self.drain()
        finally:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
            await self.stop()
            self.disconnect()

    async def _session_ticker(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.check_session_timer()
