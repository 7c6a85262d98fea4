"""Tests for protocol.py: notification framing and device naming."""

import struct

import pytest

from mindbeat.ingest import Sample
from mindbeat.protocol import (
    BLOCK_SIZE,
    SAMPLE_SIZE,
    SAMPLES_PER_BLOCK,
    decode_notification,
    encode_samples,
    format_samples,
    is_device_name,
)


class TestFraming:
    def test_sizes(self):
        assert SAMPLE_SIZE == 7
        assert BLOCK_SIZE == SAMPLE_SIZE * SAMPLES_PER_BLOCK == 70

    def test_decode_single_sample(self):
        raw = bytes([5, 0x01, 0x00, 0xFF, 0xFF, 0x00, 0x10])
        assert decode_notification(raw) == [Sample(5, 256.0, -1.0, 16.0)]

    def test_decode_full_block(self):
        raw = b"".join(struct.pack(">Bhhh", i, i * 10, -i * 10, 1000) for i in range(10))
        samples = decode_notification(bytearray(raw))
        assert len(samples) == SAMPLES_PER_BLOCK
        assert [s.counter for s in samples] == list(range(10))
        assert samples[3] == Sample(3, 30.0, -30.0, 1000.0)

    @pytest.mark.parametrize("length", [0, 6, 8, 69])
    def test_decode_bad_length(self, length):
        with pytest.raises(ValueError):
            decode_notification(b"\x00" * length)

    def test_encode_matches_wire_format(self):
        raw = encode_samples([Sample(5, 256.0, -1.0, 16.0)])
        assert raw == bytes([5, 0x01, 0x00, 0xFF, 0xFF, 0x00, 0x10])

    def test_encode_wraps_counter_and_accepts_tuples(self):
        raw = encode_samples([(257, 1.4, 2.6, -3.0)])
        assert decode_notification(raw) == [Sample(1, 1.0, 3.0, -3.0)]

    def test_encode_out_of_range_value(self):
        with pytest.raises(struct.error):
            encode_samples([Sample(0, 40000.0, 0.0, 0.0)])


class TestDeviceName:
    @pytest.mark.parametrize("name", ["NPG-Lite", "npg-30:AB", "NPG"])
    def test_matches(self, name):
        assert is_device_name(name)

    @pytest.mark.parametrize("name", [None, "", "Muse-1234", "xNPG"])
    def test_rejects(self, name):
        assert not is_device_name(name)


class TestFormatSamples:
    def test_empty(self):
        assert format_samples([]) == "<empty>"

    def test_counter_range(self):
        text = format_samples([Sample(4, 1.0, 2.0, 3.0), Sample(5, 0.0, 0.0, 0.0)])
        assert text.startswith("2 samples, counter 4..5")
