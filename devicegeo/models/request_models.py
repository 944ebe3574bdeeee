from ipaddress import ip_address
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IPLookupRequest(BaseModel):
    """Request model for the resolver diagnostic lookup via query parameters.

    If `ip` is provided, the resolver is asked about that explicit IP address.
    If `ip` is omitted or blank, the IP detected for the calling client is used.
    """

    ip: str | None = Field(
        default=None,
        description="IPv4 or IPv6 address to look up. If omitted, the client's IP is used.",
        examples=["8.8.8.8", "2001:4860:4860::8888"],
    )

    @field_validator("ip", mode="before")
    @classmethod
    def _validate_ip(cls, value: str | None) -> str | None:
        """Validate that ip is either empty/None or a valid IP address (IPv4 or IPv6).

        - None or blank string -> treated as None (client IP lookup, no error).
        - Non-blank -> must be a valid IP literal, otherwise a validation error
          is raised and the endpoint handler is never invoked.
        """
        if value is None:
            return None

        value_str = str(value).strip()
        if not value_str:
            return None

        try:
            ip_address(value_str)
        except ValueError as exc:
            raise ValueError("ip must be a valid IPv4 or IPv6 address") from exc

        return value_str


class ScreenInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    width: int | None = None
    height: int | None = None
    avail_width: int | None = None
    avail_height: int | None = None
    color_depth: int | None = None
    pixel_depth: int | None = None


class DeviceFingerprint(BaseModel):
    """Browser/device fingerprint posted by the collection script.

    Known keys are typed; anything else the script sends is kept as-is.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    user_agent: str | None = None
    language: str | None = None
    languages: list[str] | None = None
    platform: str | None = None
    vendor: str | None = None
    online: bool | None = None
    cookie_enabled: bool | None = None
    screen: ScreenInfo | None = None
    timezone: str | None = None
    hardware_concurrency: int | None = None
    # navigator.deviceMemory is a number in Chromium and missing or a string elsewhere.
    device_memory: float | str | None = None
    referrer: str | None = None
    page_url: str | None = Field(default=None, alias="pageURL")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
