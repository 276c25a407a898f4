#!/usr/bin/env python3
"""
Example: find PawFeeds devices on the LAN, remember them, and feed once.

Run from project root:
    uv run python examples/scan_and_feed.py
    uv run python examples/scan_and_feed.py 192.168.1.11 40

With an address argument, discovery is skipped and the script feeds that
feeder-brain directly (useful when the scan cannot detect the local network).
"""

import asyncio
import logging
import sys

from aiohttp import ClientSession

from pawfeeds import FeederDevice, FeederRegistry, discover_feeders, merge_paired_devices


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    address: str | None = None
    grams = 20

    if len(sys.argv) > 1:
        address = sys.argv[1].strip()
        if len(sys.argv) > 2:
            grams = int(sys.argv[2])
        print(f"Using feeder-brain: {address!r} (no discovery)")

    async with ClientSession() as session:
        if address is None:
            print("Scanning the local /24 network...")
            devices = await discover_feeders(session=session)
            if not devices:
                print("No feeders found. Ensure this machine is on the same Wi-Fi as the feeder.")
                print("Or pass an address:  uv run python examples/scan_and_feed.py 192.168.1.11")
                return
            for device in devices:
                print(f"  {device.display_name}: camera={device.camera_address or '-'} "
                      f"feeder={device.feeder_address or '-'} weight={device.container_weight_grams:g}g")

            registry = FeederRegistry()
            async with registry.transaction() as slots:
                merge_paired_devices(slots, devices)
            print(f"Saved {len(slots)} slot(s) to {registry.path}")

            complete = [d for d in devices if d.feeder_address]
            if not complete:
                print("No feeder-brain answered; nothing to feed.")
                return
            address = complete[0].feeder_address

        feeder = FeederDevice(address, session=session)
        status = await feeder.get_status()
        print(f"Status: hostname={status.hostname!r} weight={status.container_weight_grams:g}g")

        await feeder.feed(grams, feeder_id=1)
        print(f"Dispensed {grams}g.")

    print("Done.")


if __name__ == "__main__":
    asyncio.run(main())
