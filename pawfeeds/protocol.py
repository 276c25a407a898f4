"""
Low-level HTTP protocol implementation for PawFeeds devices.

This module handles the device-side HTTP surface (discovery probes, feed and
reset commands, AP-mode provisioning) and the tolerant decoding of whatever
each firmware generation answers with.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from yarl import URL

from .exceptions import DeviceConnectionError, DeviceResponseError
from .helpers import coerce_bool, coerce_float, coerce_int, coerce_str, decode_json, first_present
from .models import DeviceRole, ProbeResult, ProvisionResult, WifiNetwork

_LOGGER = logging.getLogger(__name__)

# Fixed address of a device in AP (provisioning) mode
AP_ADDRESS = "192.168.4.1"

# Device endpoints
ENDPOINT_HELLO = "/hello"
ENDPOINT_STATUS = "/status"
ENDPOINT_FEED = "/feed"
ENDPOINT_FACTORY_RESET = "/factory_reset"
ENDPOINT_PROVISION = "/provision"
ENDPOINT_SCAN = "/scan"

# Hostname convention: pawfeeds-cam-<core>, pawfeeds-cam-<core>-2, pawfeeds-std-<core>
CAMERA_HOSTNAME_PREFIX = "pawfeeds-cam-"
FEEDER_HOSTNAME_PREFIX = "pawfeeds-std-"
SECOND_SLOT_SUFFIX = "-2"

# Stored in place of an address by older app releases
PLACEHOLDER_ADDRESSES = ("", "n/a", "unknown", "none", "0.0.0.0")

# Timeouts (seconds)
PROBE_TIMEOUT = 3.0
FAST_PROBE_TIMEOUT = 0.9
FEED_TIMEOUT = 10.0
FACTORY_RESET_TIMEOUT = 5.0
PROVISION_TIMEOUT = 20.0
DEFAULT_SCAN_CONCURRENCY = 32

# Field aliases seen across firmware versions
HOSTNAME_KEYS = ("hostname", "host", "name")
ROLE_KEYS = ("role", "type", "device")
MODE_KEYS = ("mode",)
WEIGHT_KEYS = ("container_weight_grams", "containerWeightGrams", "weight")
CONNECTED_KEYS = ("connected",)

CAMERA_ROLE_VALUES = ("camera", "camera-sta", "cam", "cam-sta")
FEEDER_ROLE_VALUES = ("feeder", "feeder-sta", "sta", "std", "brain", "feeder-brain")

# /scan response shapes
NETWORK_LIST_KEYS = ("networks", "aps", "AP", "results", "wifi", "stations")
SSID_KEYS = ("ssid", "SSID", "ap")
RSSI_KEYS = ("rssi", "RSSI", "signal")
SECURE_KEYS = ("secure", "encrypted", "secureMode")
AUTH_KEYS = ("auth", "encryption", "ENC")


def is_success(status: int) -> bool:
    return 200 <= status < 300


def is_known_address(address: Optional[str]) -> bool:
    """True for a usable LAN address (not empty and not a stored placeholder)."""
    return (address or "").strip().lower() not in PLACEHOLDER_ADDRESSES


def role_from_hostname(hostname: str) -> DeviceRole:
    name = (hostname or "").strip().lower()
    if name.startswith(CAMERA_HOSTNAME_PREFIX):
        return DeviceRole.CAMERA
    if name.startswith(FEEDER_HOSTNAME_PREFIX):
        return DeviceRole.FEEDER
    return DeviceRole.UNKNOWN


def role_from_text(value: Any) -> DeviceRole:
    text = coerce_str(value).lower()
    if text in CAMERA_ROLE_VALUES:
        return DeviceRole.CAMERA
    if text in FEEDER_ROLE_VALUES:
        return DeviceRole.FEEDER
    return DeviceRole.UNKNOWN


def classify_role(declared: Any, hostname: str) -> DeviceRole:
    """Resolve a host's role: declared role first, hostname prefix as fallback."""
    role = role_from_text(declared)
    if role != DeviceRole.UNKNOWN:
        return role
    return role_from_hostname(hostname)


def camera_hostname(name: str, feeder_id: int = 1) -> str:
    """Build the camera hostname a device is provisioned with."""
    core = (name or "").strip()
    if core.lower().startswith(CAMERA_HOSTNAME_PREFIX):
        core = core[len(CAMERA_HOSTNAME_PREFIX):]
    hostname = f"{CAMERA_HOSTNAME_PREFIX}{core}"
    if feeder_id == 2 and not hostname.endswith(SECOND_SLOT_SUFFIX):
        hostname += SECOND_SLOT_SUFFIX
    return hostname


def parse_device_status(address: str, body: Optional[str]) -> ProbeResult:
    """Decode a ``/hello`` or ``/status`` body into a :class:`ProbeResult`.

    Missing fields default to empty/zero and a body that is not a JSON object
    yields an unclassified result; nothing here raises.
    """
    result = ProbeResult(address=address)
    data = decode_json(body)
    if not isinstance(data, Mapping):
        return result

    result.hostname = coerce_str(first_present(data, HOSTNAME_KEYS))
    result.container_weight_grams = max(0.0, coerce_float(first_present(data, WEIGHT_KEYS)))
    result.connected = coerce_bool(first_present(data, CONNECTED_KEYS))

    declared = role_from_text(first_present(data, ROLE_KEYS))
    if declared == DeviceRole.UNKNOWN:
        declared = role_from_text(first_present(data, MODE_KEYS))
    result.role = declared if declared != DeviceRole.UNKNOWN else role_from_hostname(result.hostname)
    return result


def merge_probe_results(primary: ProbeResult, secondary: ProbeResult) -> ProbeResult:
    """Fill the gaps in ``primary`` with what ``secondary`` knows."""
    return ProbeResult(
        address=primary.address,
        role=primary.role if primary.role != DeviceRole.UNKNOWN else secondary.role,
        hostname=primary.hostname or secondary.hostname,
        container_weight_grams=primary.container_weight_grams or secondary.container_weight_grams,
        connected=primary.connected if primary.connected is not None else secondary.connected,
    )


def _parse_network(item: Any) -> Optional[WifiNetwork]:
    if isinstance(item, str):
        return WifiNetwork(ssid=item.strip())
    if not isinstance(item, Mapping):
        return None

    ssid = ""
    for key in SSID_KEYS:
        value = item.get(key)
        if isinstance(value, str):
            ssid = value
            break

    rssi = 0
    for key in RSSI_KEYS:
        value = item.get(key)
        if value is not None and not isinstance(value, bool):
            rssi = coerce_int(value)
            break

    secure = None
    for key in SECURE_KEYS:
        secure = coerce_bool(item.get(key))
        if secure is not None:
            break
    if secure is None:
        auth = coerce_str(first_present(item, AUTH_KEYS))
        if auth:
            secure = auth.lower() != "open"

    return WifiNetwork(ssid=ssid.strip(), rssi=rssi, secure=True if secure is None else secure)


def _find_network_list(data: Mapping) -> Optional[List[Any]]:
    for key in NETWORK_LIST_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    nested = data.get("scan")
    if isinstance(nested, Mapping):
        found = _find_network_list(nested)
        if found is not None:
            return found
    value = data.get("list")
    if isinstance(value, list):
        return value
    return None


def normalize_networks(networks: List[Optional[WifiNetwork]]) -> List[WifiNetwork]:
    """Drop entries without an SSID and order by signal strength, strongest first."""
    usable = [n for n in networks if n is not None and n.ssid]
    return sorted(usable, key=lambda n: n.rssi, reverse=True)


def parse_wifi_networks(raw: Optional[str]) -> List[WifiNetwork]:
    """Normalize every ``/scan`` response shape into one sorted list.

    Handles a bare JSON array, an object wrapping the array under one of
    several keys (optionally nested under ``scan``), a single network object
    and plain newline-delimited SSIDs.

    Raises:
        DeviceResponseError: If the body looks like JSON but does not parse
    """
    if not raw or not raw.strip():
        return []

    trimmed = raw.strip()
    if trimmed.startswith("[") or trimmed.startswith("{"):
        data = decode_json(trimmed)
        if data is None:
            raise DeviceResponseError(f"Failed to parse /scan response: {trimmed[:200]}")
        if isinstance(data, list):
            return normalize_networks([_parse_network(item) for item in data])
        if isinstance(data, Mapping):
            items = _find_network_list(data)
            if items is not None:
                return normalize_networks([_parse_network(item) for item in items])
            return normalize_networks([_parse_network(data)])
        return []

    return normalize_networks(
        [WifiNetwork(ssid=line.strip()) for line in trimmed.splitlines() if line.strip()]
    )


def parse_provision_result(status: int, raw: Optional[str]) -> ProvisionResult:
    """Decode a ``/provision`` answer, tolerating firmware that omits newer fields."""
    if not is_success(status):
        return ProvisionResult(success=False, message=f"HTTP {status}")
    if not raw or not raw.strip():
        return ProvisionResult(success=False, message="Empty response")

    data = decode_json(raw) if raw.strip().startswith("{") else None
    if isinstance(data, Mapping):
        return ProvisionResult.from_dict(data)
    # Oldest firmware answers with a plain-text confirmation
    return ProvisionResult(success=True, message=raw)


async def fetch(
    session: ClientSession,
    method: str,
    url: URL,
    *,
    json_body: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = PROBE_TIMEOUT,
) -> Tuple[int, str]:
    """Perform one request and return ``(status, body text)``.

    Undecodable bytes in the body are replaced rather than rejected.

    Transport errors propagate unchanged; callers translate them.
    """
    async with session.request(
        method,
        url,
        json=json_body,
        headers=headers,
        timeout=ClientTimeout(total=timeout),
    ) as response:
        text = await response.text(errors="replace")
        return response.status, text


class FeederHTTPProtocol:
    """Low-level HTTP handler for one device address"""

    def __init__(
        self,
        address: str,
        session: Optional[ClientSession] = None,
        timeout: float = PROBE_TIMEOUT,
    ):
        """
        Args:
            address: Device IPv4 address (no scheme, no port)
            session: Shared aiohttp session; a short-lived one is opened per request if omitted
            timeout: Default per-request timeout in seconds
        """
        self.address = address
        self.timeout = timeout
        self._session = session

    def url(self, path: str) -> URL:
        return URL.build(scheme="http", host=self.address, path=path)

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[ClientSession]:
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, str]:
        """
        Send a request to the device.

        Returns:
            Tuple of HTTP status and body text

        Raises:
            DeviceConnectionError: On timeout, refused connection or any other transport failure
        """
        try:
            url = self.url(path)
            async with self._session_scope() as session:
                status, text = await fetch(
                    session,
                    method,
                    url,
                    json_body=json_body,
                    timeout=timeout if timeout is not None else self.timeout,
                )
        except asyncio.TimeoutError as exc:
            raise DeviceConnectionError(self.address, f"{method} {path} timed out") from exc
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            raise DeviceConnectionError(self.address, f"{method} {path} failed: {exc}") from exc

        _LOGGER.debug("[%s] %s %s -> %s", self.address, method, path, status)
        return status, text

    async def get(self, path: str, timeout: Optional[float] = None) -> Tuple[int, str]:
        return await self.request("GET", path, timeout=timeout)

    async def post_json(
        self, path: str, payload: Optional[Any] = None, timeout: Optional[float] = None
    ) -> Tuple[int, str]:
        return await self.request("POST", path, json_body=payload, timeout=timeout)

    async def probe(self, timeout: Optional[float] = None) -> Optional[ProbeResult]:
        """
        Probe the device with ``/hello`` and ``/status``.

        Either endpoint answering 2xx makes the host a hit; ``/status`` is
        asked even when ``/hello`` fails.

        Returns:
            The merged result of both endpoints, or None if the host is not a hit

        Raises:
            DeviceConnectionError: If neither endpoint could be reached
        """
        hit: Optional[ProbeResult] = None

        try:
            status, body = await self.get(ENDPOINT_HELLO, timeout=timeout)
        except DeviceConnectionError as exc:
            _LOGGER.debug("[%s] /hello failed: %s", self.address, exc)
        else:
            if is_success(status):
                hit = parse_device_status(self.address, body)

        try:
            status, body = await self.get(ENDPOINT_STATUS, timeout=timeout)
        except DeviceConnectionError as exc:
            if hit is not None:
                _LOGGER.debug("[%s] /status failed after /hello hit: %s", self.address, exc)
                return hit
            raise

        if is_success(status):
            from_status = parse_device_status(self.address, body)
            hit = from_status if hit is None else merge_probe_results(hit, from_status)
        return hit
