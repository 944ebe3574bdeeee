from typing import Any
from urllib.parse import urlencode

from devicegeo.clients.base import DEFAULT_TIMEOUT_SECONDS, BaseIPLookupClient
from devicegeo.errors import ReservedIpError, UpstreamServiceError
from devicegeo.models.common import LocationRecord


def split_loc(loc: Any) -> tuple[str | None, str | None]:
    """Split ipinfo's combined ``"lat,long"`` string into its two parts."""
    if not isinstance(loc, str) or "," not in loc:
        return None, None
    latitude, _, longitude = loc.partition(",")
    return latitude.strip() or None, longitude.strip() or None


class IpInfoIo(BaseIPLookupClient):
    """Adapter for the https://ipinfo.io JSON API.

    The free tier works without a token; when one is configured it is sent as
    the ``token`` query parameter.
    """

    name = "ipinfo.io"
    default_base_url = "https://ipinfo.io"

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        token: str | None = None,
    ) -> None:
        super().__init__(base_url=base_url, timeout_seconds=timeout_seconds)
        self._token = token

    def build_url(self, ip: str | None) -> str:
        url = f"{self._base_url}/{ip}/json" if ip else f"{self._base_url}/json"
        if self._token:
            url = f"{url}?{urlencode({'token': self._token})}"
        return url

    def _handle_provider_error(self, data: dict[str, Any]) -> None:
        """ipinfo flags private/reserved addresses with ``bogon`` and errors with an ``error`` object."""
        if data.get("bogon"):
            raise ReservedIpError(f"Reserved IP Address: {data.get('ip')}")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("message") or error.get("title") or "Unknown error from ipinfo.io"
            else:
                message = str(error)
            raise UpstreamServiceError(str(message))

    def transform(self, data: dict[str, Any]) -> LocationRecord:
        latitude, longitude = split_loc(data.get("loc"))
        return LocationRecord(
            ip=data.get("ip"),
            city=data.get("city"),
            region=data.get("region"),
            # ipinfo only reports the two-letter country code.
            country=data.get("country"),
            country_name=data.get("country"),
            country_code=data.get("country"),
            latitude=latitude,
            longitude=longitude,
            organization=data.get("org"),
            postal_code=data.get("postal"),
            timezone=data.get("timezone"),
        )
