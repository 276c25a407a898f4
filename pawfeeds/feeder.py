"""
PawFeeds Feeder LAN Device Controller

Direct HTTP control of a provisioned feeder-brain on the local network.
"""

import asyncio
import logging
from typing import List, Optional

from aiohttp import ClientSession

from .exceptions import DeviceConnectionError
from .models import FeederSlot, ProbeResult
from .protocol import (
    ENDPOINT_FACTORY_RESET,
    ENDPOINT_FEED,
    ENDPOINT_STATUS,
    FACTORY_RESET_TIMEOUT,
    FEED_TIMEOUT,
    PROBE_TIMEOUT,
    FeederHTTPProtocol,
    is_known_address,
    is_success,
    parse_device_status,
)

_LOGGER = logging.getLogger(__name__)

VALID_FEEDER_IDS = (1, 2)


class FeederDevice:
    """
    Main class for controlling a PawFeeds feeder-brain over the LAN.

    Example:
        async def main():
            feeder = FeederDevice("192.168.1.42")
            await feeder.feed(grams=60, feeder_id=1)

        asyncio.run(main())
    """

    def __init__(
        self,
        address: str,
        session: Optional[ClientSession] = None,
        feed_timeout: float = FEED_TIMEOUT,
        status_timeout: float = PROBE_TIMEOUT,
        reset_timeout: float = FACTORY_RESET_TIMEOUT,
    ):
        """
        Initialize feeder device controller.

        Args:
            address: LAN IPv4 address of the feeder-brain (e.g., "192.168.1.42")
            session: Optional shared aiohttp session
            feed_timeout: Timeout for feed commands in seconds
            status_timeout: Timeout for status polls in seconds
            reset_timeout: Timeout for factory reset in seconds
        """
        self.address = address
        self.feed_timeout = feed_timeout
        self.status_timeout = status_timeout
        self.reset_timeout = reset_timeout
        self._protocol = FeederHTTPProtocol(address, session=session, timeout=status_timeout)

    async def feed(self, grams: int, feeder_id: int = 1) -> bool:
        """
        Dispense food from one slot.

        Args:
            grams: Amount to dispense; must be positive
            feeder_id: Slot on the unit (1 or 2)

        Returns:
            True if the feeder accepted the command (any 2xx)

        Raises:
            ValueError: If the address, amount or slot is invalid (nothing is sent)
            DeviceConnectionError: If the feeder cannot be reached or rejects the command
        """
        if not is_known_address(self.address):
            raise ValueError(f"No LAN address for feeder (got {self.address!r})")
        if grams <= 0:
            raise ValueError(f"Cannot feed {grams}g")
        if feeder_id not in VALID_FEEDER_IDS:
            raise ValueError(f"Invalid feeder slot {feeder_id}")

        status, body = await self._protocol.post_json(
            ENDPOINT_FEED, {"grams": int(grams), "feeder": feeder_id}, timeout=self.feed_timeout
        )
        if not is_success(status):
            raise DeviceConnectionError(
                self.address, f"Feed rejected with HTTP {status}: {body.strip()[:120]}", status=status
            )
        _LOGGER.info("[%s] Dispensed %dg from feeder %d", self.address, grams, feeder_id)
        return True

    async def factory_reset(self) -> bool:
        """
        Ask the device to wipe its Wi-Fi credentials and identity.

        Returns:
            True if the device acknowledged with a 2xx, False otherwise
        """
        if not is_known_address(self.address):
            return False
        try:
            status, _ = await self._protocol.post_json(
                ENDPOINT_FACTORY_RESET, timeout=self.reset_timeout
            )
        except DeviceConnectionError as exc:
            _LOGGER.warning("[%s] Factory reset failed: %s", self.address, exc)
            return False
        return is_success(status)

    async def get_status(self) -> ProbeResult:
        """
        Query ``/status``.

        Raises:
            DeviceConnectionError: If the device is unreachable or answers non-2xx
        """
        status, body = await self._protocol.get(ENDPOINT_STATUS, timeout=self.status_timeout)
        if not is_success(status):
            raise DeviceConnectionError(self.address, f"Status returned HTTP {status}", status=status)
        return parse_device_status(self.address, body)

    async def refresh(self, slot: FeederSlot) -> bool:
        """
        Poll the feeder and update the slot's volatile fields in place.

        Returns:
            The new ``online`` flag
        """
        if not is_known_address(self.address):
            slot.online = False
            return False
        try:
            result = await self.get_status()
        except DeviceConnectionError as exc:
            _LOGGER.debug("[%s] Status poll failed: %s", self.address, exc)
            slot.online = False
            return False
        slot.online = True
        slot.container_weight_grams = result.container_weight_grams
        return True


async def refresh_slots(
    slots: List[FeederSlot],
    session: Optional[ClientSession] = None,
    timeout: float = PROBE_TIMEOUT,
) -> List[FeederSlot]:
    """Poll every slot's feeder-brain concurrently and update ``online`` and weight."""
    await asyncio.gather(
        *(
            FeederDevice(slot.feeder_address, session=session, status_timeout=timeout).refresh(slot)
            for slot in slots
        )
    )
    return slots
