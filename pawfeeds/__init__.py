"""
PawFeeds Feeder Library

A Python library for finding, provisioning and feeding from PawFeeds smart pet
feeders over the local network, with a cloud relay fallback and a background
engine that fires recurring feeding schedules.

Example usage:
    from pawfeeds import FeederRegistry, ScheduleTriggerEngine, LocalTransport
    from pawfeeds import discover_feeders, merge_paired_devices

    async def main():
        registry = FeederRegistry()

        # Find cameras and feeder-brains on the LAN and remember them
        async with registry.transaction() as slots:
            merge_paired_devices(slots, await discover_feeders())

        # Fire due schedules every 30 seconds
        engine = ScheduleTriggerEngine(registry, LocalTransport())
        engine.start()
        ...
        await engine.stop()

    asyncio.run(main())
"""

from .config import PawfeedsConfig
from .discovery import ScanSession, discover_feeders, scan_for_any_device, scan_network
from .exceptions import (
    DeviceConnectionError,
    DeviceResponseError,
    PawfeedsError,
    RegistryError,
    RelayAuthError,
    RelayError,
)
from .feeder import FeederDevice, refresh_slots
from .models import (
    ActivityLevel,
    DeviceRole,
    DispatchResult,
    FeederSlot,
    FeedingSchedule,
    PairedDevice,
    PetProfile,
    ProbeResult,
    ProvisionRequest,
    ProvisionResult,
    SexStatus,
    Weekday,
    WifiNetwork,
)
from .pairing import pair
from .portion import compute_daily_portion, dispatch_portion, per_meal_portion, recalculated
from .provisioning import ProvisioningClient
from .registry import FeederRegistry, merge_paired_devices
from .scheduler import ScheduleState, ScheduleTriggerEngine, TriggerOutcome
from .transport import CloudRelayClient, LocalTransport, RemoteTransport

__version__ = "0.1.0"
__all__ = [
    "ActivityLevel",
    "CloudRelayClient",
    "DeviceConnectionError",
    "DeviceResponseError",
    "DeviceRole",
    "DispatchResult",
    "FeederDevice",
    "FeederRegistry",
    "FeederSlot",
    "FeedingSchedule",
    "LocalTransport",
    "PairedDevice",
    "PawfeedsConfig",
    "PawfeedsError",
    "PetProfile",
    "ProbeResult",
    "ProvisionRequest",
    "ProvisionResult",
    "ProvisioningClient",
    "RegistryError",
    "RelayAuthError",
    "RelayError",
    "RemoteTransport",
    "ScanSession",
    "ScheduleState",
    "ScheduleTriggerEngine",
    "SexStatus",
    "TriggerOutcome",
    "Weekday",
    "WifiNetwork",
    "compute_daily_portion",
    "discover_feeders",
    "dispatch_portion",
    "merge_paired_devices",
    "pair",
    "per_meal_portion",
    "recalculated",
    "refresh_slots",
    "scan_for_any_device",
    "scan_network",
]
