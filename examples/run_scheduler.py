#!/usr/bin/env python3
"""
Example: run the schedule engine against the saved feeders until Ctrl+C.

Run from project root:
    uv run python examples/run_scheduler.py
    PAWFEEDS_TOKEN=... uv run python examples/run_scheduler.py

Without PAWFEEDS_TOKEN only feeders with a known LAN address are fed; with it,
feeders that only have a device id are fed through the cloud relay.
"""

import asyncio
import logging
import os

from aiohttp import ClientSession

from pawfeeds import PawfeedsConfig, recalculated


def print_dispatch(slot, profile, schedule, result) -> None:
    state = "OK" if result.success else "FAILED"
    print(f"[{state}] {slot.name} / {profile.name} / {schedule.name} via {result.transport}: {result.message}")


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    config = PawfeedsConfig.from_mapping(
        {
            "tick_interval": os.environ.get("PAWFEEDS_TICK_INTERVAL"),
            "store_path": os.environ.get("PAWFEEDS_STORE"),
        }
    )

    registry = config.registry()
    async with registry.transaction() as slots:
        for slot in slots:
            slot.profiles = [recalculated(profile) for profile in slot.profiles]
            for profile in slot.profiles:
                times = ", ".join(s.time_of_day.strftime("%H:%M") for s in profile.enabled_schedules)
                print(f"{slot.name} / {profile.name}: {profile.computed_daily_portion_grams}g/day at {times or 'never'}")

    token = os.environ.get("PAWFEEDS_TOKEN")
    async with ClientSession() as session:
        engine = config.engine(
            token_provider=(lambda: token) if token else None,
            session=session,
            on_dispatch=print_dispatch,
        )
        engine.start()
        print(f"Engine running every {config.tick_interval.total_seconds():g}s. Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            await engine.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
