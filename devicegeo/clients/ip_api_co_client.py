from http import HTTPStatus
from typing import Any

import httpx

from devicegeo.clients.base import BaseIPLookupClient
from devicegeo.errors import (
    InvalidIpError,
    IpNotFoundError,
    RateLimitedError,
    ReservedIpError,
    UpstreamServiceError,
)
from devicegeo.models.common import LocationRecord


class IpApiCo(BaseIPLookupClient):
    """Adapter for the https://ipapi.co/ IP geolocation API.

    ipapi.co already uses close to canonical field names, so the transform is
    mostly a rename of ``org`` and ``postal``.
    """

    name = "ipapi.co"
    default_base_url = "https://ipapi.co"

    def build_url(self, ip: str | None) -> str:
        if ip:
            return f"{self._base_url}/{ip}/json/"
        return f"{self._base_url}/json/"

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP status codes from the provider to domain-specific errors.

        Follows the documented error semantics:
        https://ipapi.co/api/#specific-location-field6
        """
        status_code = response.status_code

        if status_code == HTTPStatus.BAD_REQUEST:
            # 400 Bad Request – something is wrong with our request to the provider.
            raise UpstreamServiceError(f"IP provider returned HTTP 400 Bad Request: {response.text}")
        if status_code == HTTPStatus.FORBIDDEN:
            # 403 Authentication Failed.
            raise UpstreamServiceError("Authentication with IP provider failed (HTTP 403).")
        if status_code == HTTPStatus.TOO_MANY_REQUESTS:
            # 429 Quota exceeded / rate limit hit.
            raise RateLimitedError("IP provider rate limit or quota exceeded (HTTP 429).")
        if status_code == HTTPStatus.NOT_FOUND:
            # 404 URL Not Found (e.g. malformed endpoint).
            raise IpNotFoundError("No geolocation information found for this IP address.")

        super()._handle_http_errors(response)

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Normalize provider-specific error payloads into domain exceptions.

        ipapi.co embeds error information in the JSON body, sometimes with HTTP 200.
        Examples:
            { "error": true, "reason": "Invalid IP Address", "ip": "..." }
            { "error": true, "reason": "Reserved IP Address", "ip": "127.0.0.1", "reserved": true }
            { "error": true, "reason": "RateLimited", "message": "..." }
            { "error": true, "reason": "Quota exceeded", "message": "..." }
        """
        if not data.get("error"):
            return

        reason = str(data.get("reason") or data.get("message") or "Unknown error from ipapi.co")
        lower_reason = reason.lower()

        if "ratelimited" in lower_reason or "quota" in lower_reason:
            raise RateLimitedError(f"IP provider rate limit or quota exceeded: {reason}")

        if "reserved" in lower_reason or data.get("reserved") is True:
            raise ReservedIpError(reason)

        if "invalid" in lower_reason:
            raise InvalidIpError(reason)

        raise UpstreamServiceError(reason)

    def transform(self, data: dict[str, Any]) -> LocationRecord:
        return LocationRecord(
            ip=data.get("ip"),
            city=data.get("city"),
            region=data.get("region"),
            region_code=data.get("region_code"),
            country=data.get("country"),
            country_name=data.get("country_name"),
            country_code=data.get("country_code"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            # ipapi.co exposes organisation/ISP information via the "org" field.
            organization=data.get("org"),
            postal_code=data.get("postal"),
            timezone=data.get("timezone"),
        )
