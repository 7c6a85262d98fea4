"""Live streaming from the wearable into a :class:`BiosignalMonitor`.

1. Connect and subscribe to the data characteristic.
2. Write START to the control characteristic.
3. Decode each notification into samples and push them onto an asyncio
   queue that the monitor consumes.
4. On exit, write STOP and disconnect.

Reconnection is left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic

from mindbeat.ingest import LossEvent, Sample
from mindbeat.monitor import BandPowerUpdate, BiosignalMonitor, HeartUpdate, StateUpdate
from mindbeat.protocol import (
    CMD_START,
    CMD_STOP,
    CONTROL_CHAR_UUID,
    DATA_CHAR_UUID,
    decode_notification,
)
from mindbeat.scanner import find_device
from mindbeat.session import SessionSummary

log = logging.getLogger(__name__)

_END = None


async def _drain_queue(queue: asyncio.Queue) -> AsyncIterator[Sample]:
    while True:
        sample = await queue.get()
        if sample is _END:
            return
        yield sample


def print_event(event: object) -> None:
    """Console renderer for monitor events."""
    if isinstance(event, HeartUpdate):
        s = event.stats
        bpm = "--" if event.displayed_bpm is None else f"{event.displayed_bpm:.0f}"
        hrv = "--" if s.hrv is None else f"{s.hrv:.0f}"
        print(
            f"[{event.timestamp:8.1f}s] BPM {bpm} (hi {s.high or '--'} lo {s.low or '--'})"
            f"  HRV {hrv} ms  SDNN {s.sdnn:.1f}  RMSSD {s.rmssd:.1f}  pNN50 {s.pnn50:.0f}%",
            flush=True,
        )
    elif isinstance(event, StateUpdate):
        print(f"[{event.timestamp:8.1f}s] state {event.display_state.label}"
              f" (raw {event.raw_state.value})", flush=True)
    elif isinstance(event, LossEvent):
        print(f"  ! {event!r}", flush=True)
    elif isinstance(event, SessionSummary):
        print("\n--- Session Summary ---")
        print(event.to_json())
    elif isinstance(event, BandPowerUpdate):
        pass  # ~50 Hz, too fast for a terminal


async def stream_device(
    address: str | None = None,
    monitor: BiosignalMonitor | None = None,
    session_min: int | None = None,
    duration: float | None = None,
) -> BiosignalMonitor | None:
    """Connect to a device and run the monitor on its live stream.

    Args:
        address: BLE address. If None, scans for a device.
        monitor: Monitor to feed; a default one printing to stdout is
            created when omitted.
        session_min: Start a timed session of this many minutes right away.
        duration: Stop streaming after this many seconds (None = Ctrl+C).
    """
    if address is None:
        device = await find_device()
        if device is None:
            print("No device found.")
            return None
        address = device.address

    if monitor is None:
        monitor = BiosignalMonitor()
        monitor.subscribe(print_event)

    queue: asyncio.Queue = asyncio.Queue()
    blocks = 0

    def _on_notification(_char: BleakGATTCharacteristic, data: bytearray) -> None:
        nonlocal blocks
        try:
            samples = decode_notification(data)
        except ValueError as e:
            log.warning("dropping malformed notification: %s", e)
            return
        blocks += 1
        for s in samples:
            queue.put_nowait(s)

    print(f"Connecting to {address}...")

    async with BleakClient(address) as client:
        print(f"Connected. MTU={client.mtu_size}")
        await client.start_notify(DATA_CHAR_UUID, _on_notification)
        await client.write_gatt_char(CONTROL_CHAR_UUID, CMD_START, response=True)

        runner = asyncio.create_task(monitor.run(_drain_queue(queue)))
        await asyncio.sleep(0)
        if session_min:
            monitor.start_session(session_min, monitor.goal)
            print(f"Session started ({session_min} min).")

        print("\nStreaming (Ctrl+C to stop):\n")
        try:
            if duration:
                await asyncio.sleep(duration)
            else:
                while not runner.done():
                    await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            print(f"\n  Stopping stream ({blocks} blocks received)...")
            try:
                await client.write_gatt_char(CONTROL_CHAR_UUID, CMD_STOP, response=True)
                await client.stop_notify(DATA_CHAR_UUID)
            except Exception as e:
                log.debug("stop command failed: %s", e)
            queue.put_nowait(_END)
            await runner

    return monitor
