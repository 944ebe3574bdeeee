from typing import Any

from devicegeo.clients.base import BaseIPLookupClient
from devicegeo.errors import (
    InvalidIpError,
    IpNotFoundError,
    RateLimitedError,
    ReservedIpError,
    UpstreamServiceError,
)
from devicegeo.models.common import LocationRecord


class IpApiCom(BaseIPLookupClient):
    """Adapter for the http://ip-api.com JSON API."""

    name = "ip-api.com"
    default_base_url = "http://ip-api.com"

    def build_url(self, ip: str | None) -> str:
        if ip:
            return f"{self._base_url}/json/{ip}"
        return f"{self._base_url}/json/"

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """Normalize ip-api.com status/message into domain exceptions.

        The API answers with HTTP 200 and ``status`` set to "success" or "fail".
        """
        status_value = str(data.get("status") or "").lower()

        if status_value == "success":
            return

        # status is "fail" or unknown
        message = str(data.get("message") or "Unknown error from ip-api.com")
        lower_msg = message.lower()

        if "invalid query" in lower_msg or "invalid" in lower_msg:
            raise InvalidIpError(message)

        if "private range" in lower_msg or "reserved range" in lower_msg:
            raise ReservedIpError(message)

        if "quota" in lower_msg or "limit" in lower_msg:
            raise RateLimitedError(f"IP provider rate limit or quota exceeded: {message}")

        if "not found" in lower_msg:
            raise IpNotFoundError(message)

        raise UpstreamServiceError(message)

    def transform(self, data: dict[str, Any]) -> LocationRecord:
        return LocationRecord(
            ip=data.get("query"),
            city=data.get("city"),
            region=data.get("regionName"),
            region_code=data.get("region"),
            country=data.get("country"),
            country_name=data.get("country"),
            country_code=data.get("countryCode"),
            latitude=data.get("lat"),
            longitude=data.get("lon"),
            organization=data.get("org") or data.get("isp"),
            postal_code=data.get("zip"),
            timezone=data.get("timezone"),
        )
