"""Settings for the PawFeeds clients and the schedule engine."""

from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

from aiohttp import ClientSession

from .discovery import ScanSession
from .feeder import FeederDevice
from .helpers import coerce_float, coerce_int, coerce_str, parse_interval
from .protocol import (
    DEFAULT_SCAN_CONCURRENCY,
    FACTORY_RESET_TIMEOUT,
    FAST_PROBE_TIMEOUT,
    FEED_TIMEOUT,
    PROBE_TIMEOUT,
    PROVISION_TIMEOUT,
)
from .provisioning import ProvisioningClient
from .registry import DEFAULT_STORE_PATH, FeederRegistry
from .scheduler import DEFAULT_TICK_INTERVAL, DispatchCallback, ScheduleTriggerEngine
from .transport import (
    DEFAULT_RELAY_URL,
    RELAY_TIMEOUT,
    CloudRelayClient,
    LocalTransport,
    RemoteTransport,
    TokenProvider,
)


@dataclass
class PawfeedsConfig:
    probe_timeout: float = PROBE_TIMEOUT
    fast_probe_timeout: float = FAST_PROBE_TIMEOUT
    scan_concurrency: int = DEFAULT_SCAN_CONCURRENCY
    local_dispatch_timeout: float = FEED_TIMEOUT
    remote_dispatch_timeout: float = RELAY_TIMEOUT
    factory_reset_timeout: float = FACTORY_RESET_TIMEOUT
    provision_timeout: float = PROVISION_TIMEOUT
    tick_interval: timedelta = DEFAULT_TICK_INTERVAL
    relay_url: str = DEFAULT_RELAY_URL
    store_path: Path = field(default_factory=lambda: DEFAULT_STORE_PATH)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PawfeedsConfig":
        """
        Build a config from loosely-typed values (e.g. parsed JSON or env).

        Unknown keys are ignored; unusable values keep the default.
        """
        config = cls()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            default = getattr(config, key)
            if isinstance(default, timedelta):
                parsed = parse_interval(value, default)
            elif isinstance(default, Path):
                text = coerce_str(value)
                parsed = Path(text).expanduser() if text else default
            elif isinstance(default, int):
                parsed = coerce_int(value, default)
                if parsed <= 0:
                    parsed = default
            elif isinstance(default, float):
                parsed = coerce_float(value, default)
                if parsed <= 0:
                    parsed = default
            else:
                parsed = coerce_str(value, default) or default
            setattr(config, key, parsed)
        return config

    def registry(self) -> FeederRegistry:
        return FeederRegistry(self.store_path)

    def scan_session(self, session: Optional[ClientSession] = None) -> ScanSession:
        return ScanSession(
            timeout=self.probe_timeout,
            concurrency=self.scan_concurrency,
            session=session,
            fast_timeout=self.fast_probe_timeout,
        )

    def feeder(self, address: str, session: Optional[ClientSession] = None) -> FeederDevice:
        return FeederDevice(
            address,
            session=session,
            feed_timeout=self.local_dispatch_timeout,
            status_timeout=self.probe_timeout,
            reset_timeout=self.factory_reset_timeout,
        )

    def provisioning_client(self, session: Optional[ClientSession] = None) -> ProvisioningClient:
        return ProvisioningClient(session=session, timeout=self.provision_timeout)

    def local_transport(self, session: Optional[ClientSession] = None) -> LocalTransport:
        return LocalTransport(session=session, timeout=self.local_dispatch_timeout)

    def remote_transport(
        self, token_provider: TokenProvider, session: Optional[ClientSession] = None
    ) -> RemoteTransport:
        relay = CloudRelayClient(
            token_provider, session=session, url=self.relay_url, timeout=self.remote_dispatch_timeout
        )
        return RemoteTransport(relay)

    def engine(
        self,
        token_provider: Optional[TokenProvider] = None,
        session: Optional[ClientSession] = None,
        on_dispatch: Optional[DispatchCallback] = None,
    ) -> ScheduleTriggerEngine:
        """Assemble a trigger engine; without a token provider only LAN feeding is possible."""
        remote = self.remote_transport(token_provider, session) if token_provider is not None else None
        return ScheduleTriggerEngine(
            self.registry(),
            self.local_transport(session),
            remote,
            interval=self.tick_interval,
            on_dispatch=on_dispatch,
        )
