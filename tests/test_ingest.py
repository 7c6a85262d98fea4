"""Tests for ingest.py: sample model and counter-gap detection."""

import pytest

from mindbeat.ingest import LossDetector, LossEvent, Sample


class TestSample:
    def test_from_tuple_coerces_types(self):
        s = Sample.from_tuple(["7", "1.5", "-2", "3"])
        assert s == Sample(7, 1.5, -2.0, 3.0)
        assert isinstance(s.counter, int)

    def test_from_tuple_wrong_length(self):
        with pytest.raises(ValueError):
            Sample.from_tuple([1, 2, 3])

    def test_frozen(self):
        s = Sample(0, 0.0, 0.0, 0.0)
        with pytest.raises(AttributeError):
            s.counter = 1


class TestLossDetector:
    def test_first_sample_is_baseline(self):
        det = LossDetector()
        assert det.check(42) is None

    def test_consecutive_counters(self):
        det = LossDetector()
        assert [det.check(c) for c in range(10)] == [None] * 10
        assert det.events == 0

    def test_wraparound_is_not_a_gap(self):
        det = LossDetector()
        for c in (254, 255, 0, 1):
            assert det.check(c) is None

    def test_gap_reports_missing_count(self):
        det = LossDetector()
        det.check(10)
        event = det.check(13)
        assert event == LossEvent(previous=10, current=13, missing=2)
        assert det.total_missing == 2

    def test_gap_across_wrap(self):
        det = LossDetector()
        det.check(250)
        event = det.check(2)
        assert event is not None
        assert event.missing == 7

    def test_repeated_counter_is_ambiguous(self):
        det = LossDetector()
        det.check(5)
        event = det.check(5)
        assert event is not None
        assert event.missing is None

    def test_backwards_jump_is_ambiguous(self):
        det = LossDetector()
        det.check(100)
        event = det.check(90)
        assert event is not None
        assert event.missing is None
        assert det.total_missing == 0
        assert det.events == 1

    def test_event_only_when_counter_skips(self):
        """An event fires exactly when cur != (prev + 1) mod 256."""
        det = LossDetector()
        counters = [0, 1, 2, 4, 5, 5, 6, 255, 0, 3]
        fired = [det.check(c) is not None for c in counters]
        expected = [False] + [
            cur != (prev + 1) % 256 for prev, cur in zip(counters, counters[1:])
        ]
        assert fired == expected

    def test_reset_forgets_previous(self):
        det = LossDetector()
        det.check(10)
        det.reset()
        assert det.check(200) is None

    def test_unbounded_counter(self):
        det = LossDetector(modulus=None)
        det.check(1000)
        assert det.check(1001) is None
        assert det.check(1005).missing == 3
        assert det.check(3).missing is None

    def test_repr(self):
        assert "missing=?" in repr(LossEvent(1, 1, None))
        assert "missing=2" in repr(LossEvent(1, 4, 2))
