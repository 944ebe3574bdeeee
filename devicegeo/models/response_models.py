from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from devicegeo.models.common import LocationRecord
from devicegeo.models.request_models import DeviceFingerprint


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str
    timestamp: datetime


class HelloResponse(BaseModel):
    """Response model for the keep-alive target endpoint."""

    message: str
    timestamp: datetime


class StoredDevice(DeviceFingerprint):
    """A collected fingerprint enriched with IP and location, as persisted."""

    id: str
    ip: str
    location: LocationRecord | None = None
    created_at: datetime


class CollectResponse(BaseModel):
    success: bool
    data: StoredDevice


class RecentResponse(BaseModel):
    success: bool
    count: int
    data: list[StoredDevice]


class IPLookupResponse(_CamelModel):
    """Resolver diagnostic response for a single IP."""

    tested_ip: str
    location: LocationRecord
    data_keys: list[str]
    cache_size: int


class CacheEntryInfo(_CamelModel):
    key: str
    age_minutes: int
    has_data: bool


class CacheInfoResponse(BaseModel):
    size: int
    entries: list[CacheEntryInfo] = Field(default_factory=list)


class ClearCacheResponse(BaseModel):
    success: bool
    message: str
