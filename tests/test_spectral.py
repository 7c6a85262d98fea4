"""Tests for spectral.py: band powers, smoothing, cadence and goal scores."""

import numpy as np
import pytest

from mindbeat.config import BANDS, EPSILON, Goal
from mindbeat.spectral import (
    BandPowerAnalyzer,
    BandPowerFrame,
    BandSmoother,
    SpectralEngine,
    SpectralRequest,
    band_powers,
    goal_score,
)

from tests.conftest import make_frame, make_sine


# ===================================================================
# band_powers
# ===================================================================


class TestBandPowers:
    def test_alpha_sine_is_alpha_dominant(self):
        powers = band_powers(make_sine(10.0))
        assert powers["alpha"] > powers["delta"]
        assert powers["alpha"] > powers["beta"]
        assert powers["alpha"] > powers["gamma"]
        assert powers["alpha"] > powers["theta"]

    def test_beta_sine_is_beta_dominant(self):
        powers = band_powers(make_sine(20.0))
        assert max(powers, key=powers.get) == "beta"

    def test_returns_every_band(self):
        assert set(band_powers(make_sine(10.0))) == set(BANDS)

    def test_constant_signal_has_no_power(self):
        powers = band_powers(np.full(256, 5.0))
        assert all(v == pytest.approx(0.0, abs=1e-12) for v in powers.values())

    def test_nan_samples_do_not_poison_window(self):
        x = make_sine(10.0)
        x[10] = np.nan
        powers = band_powers(x)
        assert all(np.isfinite(v) for v in powers.values())
        assert max(powers, key=powers.get) == "alpha"

    def test_amplitude_scales_power_quadratically(self):
        p1 = band_powers(make_sine(10.0, amplitude=1.0))["alpha"]
        p2 = band_powers(make_sine(10.0, amplitude=2.0))["alpha"]
        assert p2 == pytest.approx(4.0 * p1, rel=1e-6)

    def test_too_short(self):
        assert band_powers(np.array([1.0])) == {name: 0.0 for name in BANDS}


# ===================================================================
# BandSmoother
# ===================================================================


class TestBandSmoother:
    def test_first_update_passes_through(self):
        sm = BandSmoother(0.3)
        frame = sm.update({"delta": 1.0, "theta": 2.0, "alpha": 3.0, "beta": 4.0, "gamma": 5.0})
        assert frame == BandPowerFrame(1.0, 2.0, 3.0, 4.0, 5.0)

    def test_ema(self):
        sm = BandSmoother(0.3)
        zeros = {name: 0.0 for name in BANDS}
        sm.update(zeros)
        frame = sm.update({**zeros, "alpha": 10.0})
        assert frame.alpha == pytest.approx(3.0)
        frame = sm.update({**zeros, "alpha": 10.0})
        assert frame.alpha == pytest.approx(0.3 * 10.0 + 0.7 * 3.0)

    def test_reset(self):
        sm = BandSmoother(0.5)
        sm.update({"alpha": 10.0})
        sm.reset()
        assert sm.update({"alpha": 2.0}).alpha == 2.0

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            BandSmoother(alpha)


# ===================================================================
# SpectralEngine cadence
# ===================================================================


class TestSpectralEngine:
    def test_no_request_until_window_full(self):
        engine = SpectralEngine()
        results = [engine.push(0.0, 0.0) for _ in range(255)]
        assert all(r is None for r in results)

    def test_request_every_hop_once_full(self):
        engine = SpectralEngine()
        due = [i for i in range(1, 301) if engine.push(float(i), float(-i)) is not None]
        assert due == [260, 270, 280, 290, 300]

    def test_request_holds_latest_window_copies(self):
        engine = SpectralEngine()
        request = None
        for i in range(1, 261):
            request = engine.push(float(i), float(-i))
        assert request is not None
        assert len(request.eeg0) == 256
        assert request.eeg0[-1] == 260.0
        assert request.eeg1[0] == -5.0
        request.eeg0[0] = 0.0
        assert engine.buf0.snapshot()[0] == 5.0

    def test_reset_restarts_window(self):
        engine = SpectralEngine()
        for _ in range(300):
            engine.push(0.0, 0.0)
        engine.reset()
        assert engine.sample_count == 0
        assert all(engine.push(0.0, 0.0) is None for _ in range(255))


# ===================================================================
# BandPowerAnalyzer
# ===================================================================


class TestBandPowerAnalyzer:
    def test_both_channels_smoothed(self):
        analyzer = BandPowerAnalyzer()
        request = SpectralRequest(eeg0=make_sine(10.0), eeg1=make_sine(20.0))
        response = analyzer(request)
        assert response.smooth0.dominant() == "alpha"
        assert response.smooth1.dominant() == "beta"

    def test_short_window_is_ignored(self):
        analyzer = BandPowerAnalyzer()
        request = SpectralRequest(eeg0=np.zeros(100), eeg1=np.zeros(100))
        assert analyzer(request) is None

    def test_smoothing_carries_across_requests(self):
        analyzer = BandPowerAnalyzer()
        first = analyzer(SpectralRequest(eeg0=make_sine(10.0), eeg1=make_sine(10.0)))
        second = analyzer(SpectralRequest(eeg0=np.zeros(256), eeg1=np.zeros(256)))
        assert second.smooth0.alpha == pytest.approx(0.7 * first.smooth0.alpha)


# ===================================================================
# goal_score
# ===================================================================


class TestGoalScore:
    def test_anxiety_is_alpha_over_beta(self):
        left = make_frame(alpha=2.0, beta=1.0)
        right = make_frame(alpha=4.0, beta=1.0)
        assert goal_score(Goal.ANXIETY, left, right) == pytest.approx(6.0 / (2.0 + EPSILON))

    def test_anxiety_with_no_beta_is_finite(self):
        score = goal_score("anxiety", make_frame(alpha=1.0), make_frame(alpha=1.0))
        assert score == pytest.approx(2.0 / EPSILON)

    def test_meditation_is_mean_theta(self):
        assert goal_score("meditation", make_frame(theta=2.0), make_frame(theta=4.0)) == 3.0

    def test_sleep_is_mean_delta(self):
        assert goal_score(Goal.SLEEP, make_frame(delta=1.0), make_frame(delta=0.0)) == 0.5

    def test_unknown_goal(self):
        with pytest.raises(ValueError):
            goal_score("focus", make_frame(), make_frame())


class TestBandPowerFrame:
    def test_dominant_tie_goes_to_first_band(self):
        assert BandPowerFrame(1.0, 1.0, 1.0, 1.0, 1.0).dominant() == "delta"

    def test_to_dict(self):
        assert BandPowerFrame(alpha=1.0).to_dict() == {
            "delta": 0.0, "theta": 0.0, "alpha": 1.0, "beta": 0.0, "gamma": 0.0,
        }
