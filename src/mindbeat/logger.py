"""Capture raw data notifications from the wearable to a JSONL file."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic

from mindbeat.protocol import CMD_START, CMD_STOP, CONTROL_CHAR_UUID, DATA_CHAR_UUID
from mindbeat.scanner import find_device

log = logging.getLogger(__name__)

LOGS_DIR = Path.cwd() / "logs"


def capture_record(data: bytes | bytearray, uuid: str = DATA_CHAR_UUID) -> dict:
    """Build one JSONL capture record for a notification."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uuid": uuid,
        "hex_data": bytes(data).hex(),
        "length": len(data),
    }


async def capture(
    address: str | None = None,
    duration: float | None = None,
    output: str | None = None,
) -> Path | None:
    """Stream from the device and append every data notification to a file.

    Args:
        address: BLE address. If None, scans for a device.
        duration: Capture duration in seconds. None = run until Ctrl+C.
        output: Output file path. If None, auto-generates in logs/.

    Returns:
        The capture file path, or None if no device was found.
    """
    if address is None:
        device = await find_device()
        if device is None:
            print("No device found.")
            return None
        address = device.address

    if output is None:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = str(LOGS_DIR / f"capture_{ts}.jsonl")

    outpath = Path(output)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    count = 0

    print(f"Connecting to {address}...")

    async with BleakClient(address) as client:
        print(f"Connected. MTU={client.mtu_size}")

        with open(outpath, "a") as f:

            def handler(_char: BleakGATTCharacteristic, data: bytearray) -> None:
                nonlocal count
                f.write(json.dumps(capture_record(data)) + "\n")
                count += 1

            await client.start_notify(DATA_CHAR_UUID, handler)
            await client.write_gatt_char(CONTROL_CHAR_UUID, CMD_START, response=True)
            print(f"\nCapturing -> {outpath}")
            print("Press Ctrl+C to stop.\n")

            try:
                if duration:
                    await asyncio.sleep(duration)
                else:
                    while True:
                        await asyncio.sleep(1)
            except asyncio.CancelledError:
                pass
            finally:
                try:
                    await client.write_gatt_char(CONTROL_CHAR_UUID, CMD_STOP, response=True)
                except Exception as e:
                    log.debug("stop command failed: %s", e)
                f.flush()
                print(f"\nCapture complete. {count} notifications -> {outpath}")

    return outpath
