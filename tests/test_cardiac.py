"""Tests for cardiac.py: beat detection, HRV stats and BPM display filtering."""

import numpy as np
import pytest

from mindbeat.cardiac import (
    BpmDisplayFilter,
    CardiacAnalyzer,
    CardiacRequest,
    EcgWindow,
    HRVStat,
    detect_beats,
    rr_intervals_ms,
)

from tests.conftest import ecg_from_beats, make_ecg


# ===================================================================
# Beat detection
# ===================================================================


class TestDetectBeats:
    def test_regular_75_bpm(self):
        beats = detect_beats(make_ecg(75.0))
        assert list(beats) == [200, 600, 1000, 1400, 1800, 2200]

    def test_irregular_positions(self):
        positions = [200, 600, 1050, 1400]
        assert list(detect_beats(ecg_from_beats(positions))) == positions

    def test_inverted_polarity(self):
        beats = detect_beats(-make_ecg(75.0))
        assert list(beats) == [200, 600, 1000, 1400, 1800, 2200]

    def test_baseline_offset_is_ignored(self):
        beats = detect_beats(make_ecg(75.0) + 500.0)
        assert len(beats) == 6

    def test_flat_signal(self):
        assert len(detect_beats(np.zeros(2500))) == 0

    def test_too_short(self):
        assert len(detect_beats(np.zeros(100))) == 0


class TestRRIntervals:
    def test_converts_to_ms(self):
        assert rr_intervals_ms(np.array([0, 500, 900])) == [1000.0, 800.0]

    def test_drops_implausible(self):
        # 100 ms and 3000 ms are outside 300-2000
        assert rr_intervals_ms(np.array([0, 50, 550, 2050])) == [1000.0]

    def test_single_beat(self):
        assert rr_intervals_ms(np.array([100])) == []


# ===================================================================
# CardiacAnalyzer
# ===================================================================


class TestCardiacAnalyzer:
    def test_regular_rhythm(self):
        stats = CardiacAnalyzer()(CardiacRequest(make_ecg(75.0)))
        assert stats.bpm == pytest.approx(75.0, abs=1.0)
        assert stats.sdnn == pytest.approx(0.0, abs=1.0)
        assert stats.rmssd == 0.0
        assert stats.hrv == 0.0
        assert (stats.high, stats.low, stats.avg) == (75, 75, 75)

    def test_irregular_rhythm(self):
        # RR 800, 900, 700 ms
        ecg = ecg_from_beats([200, 600, 1050, 1400])
        stats = CardiacAnalyzer()(CardiacRequest(ecg))
        assert stats.bpm == 75.0
        assert stats.hrv == 200.0
        assert stats.sdnn == 100.0
        assert stats.rmssd == pytest.approx(158.11, abs=0.01)
        assert stats.pnn50 == 100.0
        assert stats.peaks == [200, 600, 1050, 1400]

    def test_flat_signal_has_no_reading(self):
        stats = CardiacAnalyzer()(CardiacRequest(np.zeros(2500)))
        assert stats.bpm is None
        assert stats.hrv is None
        assert stats.sdnn == 0.0
        assert stats.rmssd == 0.0
        assert stats.pnn50 == 0.0

    def test_running_extrema_persist_across_requests(self):
        analyzer = CardiacAnalyzer()
        analyzer(CardiacRequest(make_ecg(75.0)))
        analyzer(CardiacRequest(np.zeros(2500)))
        stats = analyzer(CardiacRequest(make_ecg(60.0)))
        assert stats.high == 75
        assert stats.low == 60
        assert stats.avg == 68  # round(67.5) -> banker's rounding gives 68

    def test_to_dict(self):
        d = HRVStat(bpm=70.0).to_dict()
        assert d["bpm"] == 70.0
        assert d["sdnn"] == 0.0
        assert d["peaks"] == []


# ===================================================================
# EcgWindow
# ===================================================================


class TestEcgWindow:
    def test_request_every_batch(self):
        window = EcgWindow()
        due = [i for i in range(1, 3001) if window.push(0.0) is not None]
        assert due == [500, 1000, 1500, 2000, 2500, 3000]

    def test_window_caps_at_five_seconds(self):
        window = EcgWindow()
        request = None
        for i in range(3000):
            request = window.push(float(i)) or request
        assert len(request.ecg) == 2500
        assert request.ecg[0] == 500.0

    def test_reset(self):
        window = EcgWindow()
        for _ in range(499):
            window.push(0.0)
        window.reset()
        assert window.push(0.0) is None
        assert len(window.buffer) == 1


# ===================================================================
# BpmDisplayFilter
# ===================================================================


class TestBpmDisplayFilter:
    def test_first_reading_shown_directly(self):
        assert BpmDisplayFilter().update(60.0) == 60.0

    def test_step_is_rate_limited(self):
        f = BpmDisplayFilter()
        shown = [f.update(60.0)]
        for _ in range(20):
            shown.append(f.update(90.0))
        steps = np.abs(np.diff(shown))
        assert np.all(steps <= 2.0 + 1e-9)
        assert shown[1] == 62.0

    def test_converges_to_stable_input(self):
        f = BpmDisplayFilter()
        f.update(60.0)
        for _ in range(30):
            value = f.update(80.0)
        assert value == pytest.approx(80.0)

    def test_null_reading_resets(self):
        f = BpmDisplayFilter()
        f.update(60.0)
        assert f.update(None) is None
        assert f.update(90.0) == 90.0

    def test_window_is_bounded(self):
        f = BpmDisplayFilter(window=5)
        for v in range(10):
            f.update(float(v))
        assert list(f.readings) == [5.0, 6.0, 7.0, 8.0, 9.0]
