"""
Feed command dispatch.

Two transports share one contract, ``dispatch(slot, grams) -> DispatchResult``:
a direct LAN call to the feeder-brain, and a relay through the cloud command
queue for slots whose LAN address is unknown. Neither ever raises; every
failure comes back as ``DispatchResult(success=False, message=...)``.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import aiohttp
from aiohttp import ClientSession
from yarl import URL

from .exceptions import PawfeedsError, RelayAuthError, RelayError
from .feeder import FeederDevice
from .helpers import coerce_bool, coerce_str, decode_json, first_present
from .models import DispatchResult, FeederSlot
from .protocol import FEED_TIMEOUT, fetch, is_known_address, is_success

_LOGGER = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "https://asia-east2-pawfeedscloud.cloudfunctions.net/sendCommand"
RELAY_TIMEOUT = 10.0

COMMAND_FEED = "FEED"

TRANSPORT_LOCAL = "local"
TRANSPORT_REMOTE = "remote"
TRANSPORT_NONE = "none"

# Returns the current user's bearer token, sync or async
TokenProvider = Callable[[], Union[str, Awaitable[str]]]


class LocalTransport:
    """Feed over the LAN by POSTing to the slot's feeder-brain."""

    name = TRANSPORT_LOCAL

    def __init__(self, session: Optional[ClientSession] = None, timeout: float = FEED_TIMEOUT):
        self._session = session
        self.timeout = timeout

    def can_dispatch(self, slot: FeederSlot) -> bool:
        return is_known_address(slot.feeder_address)

    async def dispatch(self, slot: FeederSlot, grams: int) -> DispatchResult:
        device = FeederDevice(slot.feeder_address, session=self._session, feed_timeout=self.timeout)
        try:
            await device.feed(grams, feeder_id=slot.id)
        except (PawfeedsError, ValueError) as exc:
            _LOGGER.warning("[%s] Local feed for slot %d failed: %s", slot.feeder_address, slot.id, exc)
            return DispatchResult(success=False, message=str(exc), transport=self.name)
        return DispatchResult(
            success=True, message=f"Dispensed {grams}g locally.", transport=self.name
        )


class CloudRelayClient:
    """Client for the cloud ``sendCommand`` relay."""

    def __init__(
        self,
        token_provider: TokenProvider,
        session: Optional[ClientSession] = None,
        url: str = DEFAULT_RELAY_URL,
        timeout: float = RELAY_TIMEOUT,
    ):
        """
        Args:
            token_provider: Callable returning the signed-in user's bearer token
            session: Optional shared aiohttp session
            url: Relay endpoint
            timeout: Request timeout in seconds
        """
        self._token_provider = token_provider
        self._session = session
        self.url = URL(url)
        self.timeout = timeout

    async def _get_token(self) -> str:
        try:
            token = self._token_provider()
            if inspect.isawaitable(token):
                token = await token
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise RelayAuthError(f"Could not obtain auth token: {exc}") from exc
        if not token:
            raise RelayAuthError("Not signed in")
        return str(token)

    async def _post(self, payload: Dict[str, Any], headers: Dict[str, str]):
        if self._session is not None:
            return await fetch(
                self._session, "POST", self.url, json_body=payload, headers=headers, timeout=self.timeout
            )
        async with aiohttp.ClientSession() as session:
            return await fetch(
                session, "POST", self.url, json_body=payload, headers=headers, timeout=self.timeout
            )

    async def send_command(self, device_id: str, command: Mapping[str, Any]) -> str:
        """
        Queue a command for a device.

        Returns:
            The relay's confirmation message

        Raises:
            RelayAuthError: If no token is available or the relay refuses it
            RelayError: On transport failure, non-2xx status or an explicit failure flag
        """
        token = await self._get_token()
        headers = {"Authorization": f"Bearer {token}"}
        payload = {"data": {"deviceId": device_id, "command": dict(command)}}

        _LOGGER.debug("Sending %s command to device %s", command.get("type"), device_id)
        try:
            status, body = await self._post(payload, headers)
        except asyncio.TimeoutError as exc:
            raise RelayError("Relay request timed out") from exc
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            raise RelayError(f"Relay request failed: {exc}") from exc

        data = decode_json(body)
        message = _relay_message(data)
        if status in (401, 403):
            raise RelayAuthError(message or f"HTTP {status}")
        if not is_success(status):
            raise RelayError(message or f"HTTP {status}")

        # Callable functions wrap the handler's return value under "result"
        result = data.get("result", data) if isinstance(data, Mapping) else None
        success = coerce_bool(first_present(result, ("success",)))
        if success is False:
            raise RelayError(message or "Relay reported failure")
        return message or "Command sent successfully."


def _relay_message(data: Any) -> str:
    if not isinstance(data, Mapping):
        return ""
    for container in (data.get("result"), data.get("error"), data):
        message = coerce_str(first_present(container, ("message",)))
        if message:
            return message
    return ""


class RemoteTransport:
    """Feed through the cloud relay using the slot's provisioned device id."""

    name = TRANSPORT_REMOTE

    def __init__(self, relay: CloudRelayClient):
        self._relay = relay

    def can_dispatch(self, slot: FeederSlot) -> bool:
        return bool(slot.device_id.strip())

    async def dispatch(self, slot: FeederSlot, grams: int) -> DispatchResult:
        if not self.can_dispatch(slot):
            return DispatchResult(success=False, message="No device id for this feeder.", transport=self.name)
        if grams <= 0:
            return DispatchResult(success=False, message=f"Cannot feed {grams}g.", transport=self.name)

        command = {"type": COMMAND_FEED, "feeder": slot.id, "grams": int(grams)}
        try:
            message = await self._relay.send_command(slot.device_id, command)
        except RelayError as exc:
            _LOGGER.warning("Remote feed for device %s slot %d failed: %s", slot.device_id, slot.id, exc)
            return DispatchResult(success=False, message=str(exc), transport=self.name)
        return DispatchResult(success=True, message=message, transport=self.name)
