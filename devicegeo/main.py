from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Annotated

from fastapi import Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from devicegeo.exception_handlers import (
    pydantic_validation_exception_handler,
    unhandled_exception_handler,
)
from devicegeo.ip_utils import get_client_ip
from devicegeo.keep_alive import KeepAlive
from devicegeo.logger import logger
from devicegeo.models.request_models import DeviceFingerprint, IPLookupRequest
from devicegeo.models.response_models import (
    CacheInfoResponse,
    ClearCacheResponse,
    CollectResponse,
    HealthResponse,
    HelloResponse,
    IPLookupResponse,
    RecentResponse,
)
from devicegeo.resolver import LocationResolver
from devicegeo.settings import Settings, get_settings
from devicegeo.store import InMemoryDeviceStore


@lru_cache
def get_resolver() -> LocationResolver:
    """Dependency providing the process-wide LocationResolver."""
    return LocationResolver.from_settings(get_settings())


@lru_cache
def get_device_store() -> InMemoryDeviceStore:
    """Dependency providing the process-wide device record store."""
    return InMemoryDeviceStore(max_records=get_settings().MAX_STORED_DEVICES)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    resolver = get_resolver()
    logger.info(
        "Started Device Geolocation Service "
        f"providers={[provider.name for provider in resolver.providers]} "
        f"cache_ttl={settings.IP_CACHE_TTL_SECONDS}s"
    )
    keep_alive = None
    if settings.KEEP_ALIVE_ENABLED:
        keep_alive = KeepAlive(settings.keep_alive_url, settings.KEEP_ALIVE_INTERVAL_SECONDS)
        keep_alive.start()
    try:
        yield
    finally:
        if keep_alive is not None:
            await keep_alive.stop()


app = FastAPI(
    title="Device Geolocation Service",
    version="0.1.0",
    description="Collects device fingerprints and enriches them with IP geolocation.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ALLOW_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Register global exception handlers using the shared handlers module.
app.add_exception_handler(ValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(RequestValidationError, pydantic_validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _detect_client_ip(request: Request) -> str:
    return get_client_ip(request.headers, request.client.host if request.client else None)


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="ok", timestamp=_now())


@app.get(
    "/hello",
    tags=["health"],
    response_model=HelloResponse,
    status_code=status.HTTP_200_OK,
    summary="Keep-alive target",
)
async def hello() -> HelloResponse:
    return HelloResponse(message="Hello! Server is alive", timestamp=_now())


@app.post(
    "/collect",
    tags=["devices"],
    response_model=CollectResponse,
    status_code=status.HTTP_200_OK,
    summary="Store a device fingerprint enriched with IP geolocation.",
)
async def collect(
    request: Request,
    resolver: Annotated[LocationResolver, Depends(get_resolver)],
    store: Annotated[InMemoryDeviceStore, Depends(get_device_store)],
    fingerprint: Annotated[DeviceFingerprint | None, Body()] = None,
) -> CollectResponse:
    """Enrich the posted fingerprint with the requester's location and store it.

    - The IP is detected from proxy headers or the socket peer.
    - The IP reported by the provider wins over the detected one, since it is
      the public address when the detected one is private.
    - An unresolvable location is stored as null.
    """
    detected_ip = _detect_client_ip(request)
    logger.info(
        "New device collection request "
        f"detected_ip={detected_ip} x_forwarded_for={request.headers.get('x-forwarded-for')} "
        f"x_real_ip={request.headers.get('x-real-ip')} cf_connecting_ip={request.headers.get('cf-connecting-ip')}"
    )

    location = await resolver.resolve(detected_ip)
    final_ip = location.ip or detected_ip

    saved = await store.save(
        fingerprint or DeviceFingerprint(),
        ip=final_ip,
        location=None if location.is_empty else location,
    )
    logger.info(f"Device data saved id={saved.id} ip={final_ip} location_keys={list(location.to_payload())}")
    return CollectResponse(success=True, data=saved)


@app.get(
    "/recent",
    tags=["devices"],
    response_model=RecentResponse,
    status_code=status.HTTP_200_OK,
    summary="Most recently collected devices.",
)
async def recent(
    store: Annotated[InMemoryDeviceStore, Depends(get_device_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> RecentResponse:
    effective_limit = min(limit or settings.RECENT_LIMIT_DEFAULT, settings.RECENT_LIMIT_MAX)
    records = await store.recent(effective_limit)
    return RecentResponse(success=True, count=len(records), data=records)


@app.get(
    "/v1/ip/lookup",
    response_model=IPLookupResponse,
    status_code=status.HTTP_200_OK,
    tags=["ip"],
    summary="Resolve geolocation for an IP address through the cached provider chain.",
)
async def ip_lookup(
    request: Request,
    query: Annotated[IPLookupRequest, Depends()],
    resolver: Annotated[LocationResolver, Depends(get_resolver)],
) -> IPLookupResponse:
    """Diagnostic lookup for either a specific IP or the caller's IP.

    - If `query.ip` is provided, that IP is used.
    - Otherwise, the client's IP is detected from the request headers/peer.
    """
    tested_ip = query.ip or _detect_client_ip(request)
    logger.info(f"Testing location lookup path={request.url.path} method={request.method} ip={tested_ip}")

    location = await resolver.resolve(tested_ip)
    return IPLookupResponse(
        tested_ip=tested_ip,
        location=location,
        data_keys=list(location.to_payload()),
        cache_size=len(resolver.cache),
    )


@app.get(
    "/cache-info",
    tags=["cache"],
    response_model=CacheInfoResponse,
    status_code=status.HTTP_200_OK,
    summary="Inspect the IP location cache.",
)
async def cache_info(resolver: Annotated[LocationResolver, Depends(get_resolver)]) -> CacheInfoResponse:
    entries = resolver.cache_snapshot()
    return CacheInfoResponse(size=len(entries), entries=entries)


@app.post(
    "/clear-cache",
    tags=["cache"],
    response_model=ClearCacheResponse,
    status_code=status.HTTP_200_OK,
    summary="Evict every entry from the IP location cache.",
)
async def clear_cache(resolver: Annotated[LocationResolver, Depends(get_resolver)]) -> ClearCacheResponse:
    resolver.clear_cache()
    return ClearCacheResponse(success=True, message="Cache cleared")
