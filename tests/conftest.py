"""Shared fixtures: an in-memory stand-in for ``aiohttp.ClientSession``."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import pytest


@dataclass
class FakeResponse:
    status: int = 200
    body: Any = ""
    delay: float = 0.0
    exc: Optional[BaseException] = None

    async def text(self, encoding: Optional[str] = None, errors: str = "strict") -> str:
        if isinstance(self.body, (dict, list)):
            return json.dumps(self.body)
        if isinstance(self.body, bytes):
            return self.body.decode(encoding or "utf-8", errors)
        return self.body


@dataclass
class FakeCall:
    method: str
    url: str
    json: Any = None
    headers: Optional[Dict[str, str]] = None


class _RequestContext:
    def __init__(self, response: FakeResponse):
        self._response = response

    async def __aenter__(self) -> FakeResponse:
        if self._response.delay:
            await asyncio.sleep(self._response.delay)
        if self._response.exc is not None:
            raise self._response.exc
        return self._response

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Answers requests from a route table keyed by ``(method, url)``.

    Unrouted requests fail like a refused connection unless ``default`` is set.
    """

    closed = False

    def __init__(self):
        self.routes: Dict[Tuple[str, str], FakeResponse] = {}
        self.default: Optional[FakeResponse] = None
        self.calls: List[FakeCall] = []

    def add(self, method: str, url: str, status: int = 200, body: Any = "", **kwargs) -> None:
        self.routes[(method, url)] = FakeResponse(status=status, body=body, **kwargs)

    def set_default(self, status: int = 404, body: Any = "", **kwargs) -> None:
        self.default = FakeResponse(status=status, body=body, **kwargs)

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append(FakeCall(method, str(url), json, headers))
        response = self.routes.get((method, str(url)), self.default)
        if response is None:
            response = FakeResponse(exc=aiohttp.ClientConnectionError(f"Cannot connect to {url}"))
        return _RequestContext(response)

    def calls_to(self, url: str) -> List[FakeCall]:
        return [call for call in self.calls if call.url == url]


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "feeders.json"
