import asyncio
from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Any, ClassVar

import httpx

from devicegeo.errors import (
    IpNotFoundError,
    IpProviderError,
    MalformedResponseError,
    RateLimitedError,
    UpstreamServiceError,
)
from devicegeo.logger import logger
from devicegeo.models.common import LocationRecord
from devicegeo.models.outcome import ProviderOutcome

DEFAULT_TIMEOUT_SECONDS = 8.0


class BaseIPLookupClient(ABC):
    """Abstract base for all IP geolocation provider adapters.

    Concrete implementations build the provider URL and map its native response
    into a LocationRecord. ``lookup`` performs a single HTTP GET and reports a
    ProviderOutcome; errors raised while talking to the provider never escape it.
    Adapters hold no mutable state and no cache.
    """

    name: ClassVar[str]
    default_base_url: ClassVar[str]

    def __init__(self, base_url: str | None = None, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @abstractmethod
    def build_url(self, ip: str | None) -> str:
        """Build the lookup URL; ``ip=None`` asks the provider to detect the caller."""
        raise NotImplementedError

    @abstractmethod
    def transform(self, data: dict[str, Any]) -> LocationRecord:
        """Map the provider's native response onto the canonical LocationRecord."""
        raise NotImplementedError

    async def lookup(self, ip: str | None) -> ProviderOutcome:
        """Look up ``ip`` (or the caller's own address when None) with this provider."""
        url = self.build_url(ip)
        logger.info(f"Trying IP provider provider={self.name} url={url}")
        try:
            record = await self._request(url)
        except RateLimitedError as exc:
            logger.warning(f"IP provider rate limited provider={self.name} ip={ip} error={exc}")
            return ProviderOutcome.rate_limited(self.name, str(exc))
        except IpProviderError as exc:
            logger.warning(
                f"IP provider failed provider={self.name} ip={ip} error_type={type(exc).__name__} error={exc}"
            )
            return ProviderOutcome.failed(self.name, str(exc))

        logger.info(
            f"IP provider success provider={self.name} ip={record.ip} city={record.city} "
            f"country={record.country_name or record.country} keys={sorted(record.to_payload())}"
        )
        return ProviderOutcome.success(self.name, record)

    async def _request(self, url: str) -> LocationRecord:
        """Perform the HTTP request and normalize the response.

        httpx applies its timeout per phase (connect, read...), so the whole request
        is additionally bounded by the same budget.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await asyncio.wait_for(client.get(url), timeout=self._timeout_seconds)
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise UpstreamServiceError(f"Request to IP provider timed out after {self._timeout_seconds}s") from exc
        except httpx.RequestError as exc:
            raise UpstreamServiceError(f"Request to IP provider failed: {repr(exc)}") from exc

        self._handle_http_errors(response)

        data = self._parse_json(response)
        self._handle_provider_error(data)

        record = self.transform(data)
        if record.is_empty:
            raise MalformedResponseError("IP provider response contained no location fields.")
        return record

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP status codes from the provider to domain-specific errors."""
        status_code = response.status_code

        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            # 429 Quota exceeded / rate limit hit.
            raise RateLimitedError("IP provider rate limit or quota exceeded (HTTP 429).")

        if status_code == HTTPStatus.NOT_FOUND:
            raise IpNotFoundError("No geolocation information found for this IP address.")

        if status_code >= HTTPStatus.BAD_REQUEST:
            raise UpstreamServiceError(f"IP provider returned HTTP {status_code}: {response.text}")

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Hook for providers that embed errors in a successful HTTP response."""

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Failed to decode IP provider response as JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object from IP provider, got {type(data).__name__}")
        return data
