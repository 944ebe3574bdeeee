import math
from typing import Any

from pydantic import BaseModel, ConfigDict, SerializerFunctionWrapHandler, field_validator, model_serializer
from pydantic.alias_generators import to_camel


class LocationRecord(BaseModel):
    """Normalized geolocation data returned by an IP provider.

    Every field is optional because providers differ in coverage. Field names are
    canonical across providers and serialize as camelCase (``regionCode``,
    ``postalCode``...); absent fields are omitted from serialized output.
    Records are frozen so a cached instance can be shared between callers.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ip: str | None = None
    city: str | None = None
    region: str | None = None
    region_code: str | None = None
    country: str | None = None
    country_name: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    organization: str | None = None
    postal_code: str | None = None
    timezone: str | None = None

    @field_validator(
        "ip",
        "city",
        "region",
        "region_code",
        "country",
        "country_name",
        "country_code",
        "organization",
        "postal_code",
        "timezone",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        """Providers report unknown values as empty strings; treat those as absent."""
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return str(value)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> float | None:
        """Allow latitude/longitude to be provided as strings, numbers, or null.

        Providers may return these fields as strings; this validator normalizes them
        into floats. Missing, unparsable or non-finite values become ``None``, never 0.
        """
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return number

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        return {key: value for key, value in handler(self).items() if value is not None}

    @property
    def is_empty(self) -> bool:
        return not self.to_payload()

    def to_payload(self) -> dict[str, Any]:
        """Canonical camelCase mapping with absent fields omitted."""
        return self.model_dump(by_alias=True)
