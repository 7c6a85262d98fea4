"""Scan for supported EEG/ECG BLE devices."""

import asyncio

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from mindbeat.protocol import DEVICE_NAME_PREFIX, is_device_name


async def scan(
    timeout: float = 10.0,
    prefix: str = DEVICE_NAME_PREFIX,
) -> list[tuple[BLEDevice, AdvertisementData]]:
    """Scan for nearby devices.

    Returns a list of (device, advertisement_data) tuples for devices
    whose advertised name starts with ``prefix``.
    """
    results: list[tuple[BLEDevice, AdvertisementData]] = []

    def _callback(device: BLEDevice, adv: AdvertisementData) -> None:
        name = adv.local_name or device.name or ""
        if is_device_name(name, prefix):
            # Avoid duplicates
            if not any(d.address == device.address for d, _ in results):
                results.append((device, adv))
                print(f"  Found: {name} [{device.address}] RSSI={adv.rssi} dBm")

    scanner = BleakScanner(detection_callback=_callback)
    print(f"Scanning for {prefix}* devices ({timeout}s)...")
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()

    if not results:
        print("No devices found.")
    else:
        print(f"\n{len(results)} device(s) found.")

    return results


async def find_device(timeout: float = 10.0, prefix: str = DEVICE_NAME_PREFIX) -> BLEDevice | None:
    """Find the first matching device and return it."""
    results = await scan(timeout, prefix)
    if results:
        return results[0][0]
    return None
