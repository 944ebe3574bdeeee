import asyncio
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

import httpx

from devicegeo.clients.base import BaseIPLookupClient
from devicegeo.models.common import LocationRecord
from devicegeo.models.outcome import ProviderOutcome


class MockResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = {} if payload is None else payload
        self.text = text

    def json(self) -> Any:
        return self._payload


class BadJsonResponse(MockResponse):
    def json(self) -> Any:
        raise ValueError("not json")


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient.

    Requested URLs and the timeout the client was built with are recorded on
    the shared ``calls`` list.
    """

    def __init__(self, response: MockResponse, calls: list[dict[str, Any]] | None = None, timeout: Any = None) -> None:
        self._response = response
        self._calls = calls if calls is not None else []
        self._timeout = timeout

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str) -> MockResponse:
        self._calls.append({"url": url, "timeout": self._timeout})
        return self._response


def make_fake_async_client(
    response: MockResponse, calls: list[dict[str, Any]] | None = None
) -> Callable[..., MockAsyncClient]:
    """Factory for a fake httpx.AsyncClient returning a fixed response.

    This avoids repeating the same stub definition in every test.
    """

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return MockAsyncClient(response, calls=calls, timeout=kwargs.get("timeout"))

    return _fake_client


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure.

    The target URL is provided at construction time, so tests for different providers
    can reuse this implementation with different base URLs.
    """

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.RequestError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str) -> MockResponse:
        return MockResponse(status_code=HTTPStatus.OK, payload={})


class TimingOutAsyncClient(MockAsyncClient):
    """Async client whose GET times out."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(MockResponse(status_code=HTTPStatus.OK))

    async def get(self, url: str) -> MockResponse:
        raise httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))


class StallingAsyncClient(MockAsyncClient):
    """Async client whose GET never completes on its own, as a trickling response would."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(MockResponse(status_code=HTTPStatus.OK))

    async def get(self, url: str) -> MockResponse:
        await asyncio.sleep(60)
        return self._response


class FakeProvider(BaseIPLookupClient):
    """Provider adapter double returning a configured outcome without any HTTP.

    ``outcome`` may be a ProviderOutcome or an exception to raise; it can be
    swapped between calls. Every ``lookup`` argument is recorded in ``calls``.
    """

    default_base_url = "http://fake.invalid"

    def __init__(self, name: str, outcome: ProviderOutcome | Exception | None = None, delay: float = 0.0) -> None:
        super().__init__()
        self.name = name
        self.outcome = outcome if outcome is not None else ProviderOutcome.failed(name, "not configured")
        self.delay = delay
        self.calls: list[str | None] = []

    def build_url(self, ip: str | None) -> str:
        return f"{self._base_url}/{ip or 'auto'}"

    def transform(self, data: dict[str, Any]) -> LocationRecord:
        return LocationRecord.model_validate(data)

    async def lookup(self, ip: str | None) -> ProviderOutcome:
        self.calls.append(ip)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def success(provider: str, **fields: Any) -> ProviderOutcome:
    return ProviderOutcome.success(provider, LocationRecord(**fields))


def rate_limited(provider: str) -> ProviderOutcome:
    return ProviderOutcome.rate_limited(provider, "IP provider rate limit or quota exceeded (HTTP 429).")


def failed(provider: str, reason: str = "IP provider returned HTTP 500") -> ProviderOutcome:
    return ProviderOutcome.failed(provider, reason)
