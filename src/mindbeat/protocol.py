"""BLE protocol constants and notification framing for the EEG/ECG wearable.

Each notification on the data characteristic carries a block of samples:

    [sample 0][sample 1] ... [sample N-1]      N = SAMPLES_PER_BLOCK (10)

and each 7-byte sample is:

    [0]     Counter (uint8, wraps at 256)
    [1:3]   EEG channel 0 (int16 BE, left hemisphere)
    [3:5]   EEG channel 1 (int16 BE, right hemisphere)
    [5:7]   ECG           (int16 BE)

Streaming is controlled by writing ASCII commands to the control
characteristic.
"""

from __future__ import annotations

import struct
from typing import Iterable

from mindbeat.config import COUNTER_MODULUS
from mindbeat.ingest import Sample

# ---------------------------------------------------------------------------
# BLE UUIDs
# ---------------------------------------------------------------------------
SERVICE_UUID = "4fafc201-1fb5-459e-8fcc-c5c9c331914b"
DATA_CHAR_UUID = "beb5483e-36e1-4688-b7f5-ea07361b26a8"
CONTROL_CHAR_UUID = "0000ff01-0000-1000-8000-00805f9b34fb"

DEVICE_NAME_PREFIX = "NPG"

# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------
CHANNELS = 3
SAMPLE_SIZE = 1 + 2 * CHANNELS  # 7 bytes
SAMPLES_PER_BLOCK = 10
BLOCK_SIZE = SAMPLE_SIZE * SAMPLES_PER_BLOCK  # 70 bytes

_SAMPLE_STRUCT = struct.Struct(">Bhhh")

# ---------------------------------------------------------------------------
# Control commands
# ---------------------------------------------------------------------------
CMD_START = b"START"
CMD_STOP = b"STOP"


def is_device_name(name: str | None, prefix: str = DEVICE_NAME_PREFIX) -> bool:
    """Check whether an advertised name belongs to a supported device."""
    return bool(name) and name.upper().startswith(prefix.upper())


def decode_notification(data: bytes | bytearray) -> list[Sample]:
    """Decode one data notification into samples.

    Accepts any whole number of 7-byte samples (a full block is 10).

    Raises:
        ValueError: if the payload is empty or not a multiple of 7 bytes.
    """
    if len(data) == 0 or len(data) % SAMPLE_SIZE != 0:
        raise ValueError(
            f"notification length {len(data)} is not a positive multiple of {SAMPLE_SIZE}"
        )
    return [
        Sample(counter, float(eeg0), float(eeg1), float(ecg))
        for counter, eeg0, eeg1, ecg in _SAMPLE_STRUCT.iter_unpack(bytes(data))
    ]


def encode_samples(samples: Iterable[Sample | tuple]) -> bytes:
    """Pack samples into the notification wire format.

    Values are rounded and must fit in int16; counters are wrapped.
    """
    buf = bytearray()
    for s in samples:
        if not isinstance(s, Sample):
            s = Sample.from_tuple(s)
        buf += _SAMPLE_STRUCT.pack(
            s.counter % COUNTER_MODULUS,
            int(round(s.eeg0)),
            int(round(s.eeg1)),
            int(round(s.ecg)),
        )
    return bytes(buf)


def format_samples(samples: list[Sample]) -> str:
    """One-line human-readable rendering of a decoded block."""
    if not samples:
        return "<empty>"
    first, last = samples[0], samples[-1]
    return (
        f"{len(samples)} samples, counter {first.counter}..{last.counter}, "
        f"eeg0={first.eeg0:+.0f} eeg1={first.eeg1:+.0f} ecg={first.ecg:+.0f}"
    )
