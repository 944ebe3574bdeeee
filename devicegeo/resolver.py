import asyncio
from collections.abc import Sequence

from devicegeo.cache import LocationCache
from devicegeo.clients.base import BaseIPLookupClient
from devicegeo.clients.factory import build_providers
from devicegeo.ip_utils import is_auto_detect_ip, normalize_cache_key
from devicegeo.logger import logger
from devicegeo.models.common import LocationRecord
from devicegeo.models.outcome import OutcomeKind, ProviderOutcome
from devicegeo.models.response_models import CacheEntryInfo
from devicegeo.settings import Settings


class LocationResolver:
    """Resolves an IP to a location through a cached, ordered provider fallback chain.

    - Fresh cache entries are returned without any network call.
    - On a miss the providers are tried one at a time in their fixed order; the
      first success is cached and returned.
    - If every provider fails an empty LocationRecord is returned and nothing is
      cached, so the next call tries the whole chain again.
    - Concurrent misses on the same key share a single fetch.

    ``resolve`` never raises.
    """

    def __init__(
        self,
        providers: Sequence[BaseIPLookupClient],
        cache: LocationCache | None = None,
        resolve_timeout_seconds: float | None = None,
    ) -> None:
        self._providers = tuple(providers)
        self._cache = cache if cache is not None else LocationCache()
        self._resolve_timeout_seconds = resolve_timeout_seconds
        self._inflight: dict[str, asyncio.Task[LocationRecord]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocationResolver":
        return cls(
            providers=build_providers(settings),
            cache=LocationCache(ttl_seconds=settings.IP_CACHE_TTL_SECONDS),
            resolve_timeout_seconds=settings.RESOLVE_TIMEOUT_SECONDS,
        )

    @property
    def providers(self) -> tuple[BaseIPLookupClient, ...]:
        return self._providers

    @property
    def cache(self) -> LocationCache:
        return self._cache

    async def resolve(self, raw_ip: str | None) -> LocationRecord:
        """Return the location for ``raw_ip``; an empty record when nothing could be resolved."""
        ip = (raw_ip or "").strip()
        cache_key = normalize_cache_key(ip)

        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info(f"Using cached location data key={cache_key}")
            return cached

        task = self._inflight.get(cache_key)
        if task is None:
            task = asyncio.create_task(self._fetch(cache_key, ip))
            self._inflight[cache_key] = task
            task.add_done_callback(lambda done, key=cache_key: self._forget_inflight(key, done))
        else:
            logger.info(f"Joining in-flight location lookup key={cache_key}")

        # Shielded so that a cancelled caller does not cancel the fetch other callers share.
        return await asyncio.shield(task)

    def cache_snapshot(self) -> list[CacheEntryInfo]:
        now = self._cache.now()
        return [
            CacheEntryInfo(
                key=entry.key,
                age_minutes=round((now - entry.stored_at) / 60),
                has_data=not entry.data.is_empty,
            )
            for entry in self._cache.entries()
        ]

    def clear_cache(self) -> None:
        """Evict every cache entry; in-flight fetches still complete and may repopulate it."""
        removed = self._cache.clear()
        logger.info(f"Location cache cleared removed={removed}")

    def _forget_inflight(self, key: str, task: "asyncio.Task[LocationRecord]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch(self, cache_key: str, ip: str) -> LocationRecord:
        try:
            if self._resolve_timeout_seconds is None:
                return await self._run_chain(cache_key, ip)
            return await asyncio.wait_for(self._run_chain(cache_key, ip), timeout=self._resolve_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Location lookup exceeded overall deadline key={cache_key} "
                f"timeout={self._resolve_timeout_seconds}s"
            )
            return LocationRecord()

    async def _run_chain(self, cache_key: str, ip: str) -> LocationRecord:
        use_auto = is_auto_detect_ip(ip)
        lookup_ip = None if use_auto else ip
        if use_auto:
            logger.info(f"Using auto IP detection for local/private IP key={cache_key}")
        else:
            logger.info(f"Looking up specific IP ip={ip}")

        for provider in self._providers:
            outcome = await self._attempt(provider, lookup_ip)
            if outcome.kind is OutcomeKind.success and outcome.record is not None:
                self._cache.set(cache_key, outcome.record)
                return outcome.record
            if outcome.kind is OutcomeKind.rate_limited:
                logger.warning(f"{provider.name} rate limited, trying next provider key={cache_key}")

        logger.warning(f"All IP lookup providers failed key={cache_key} providers={len(self._providers)}")
        return LocationRecord()

    @staticmethod
    async def _attempt(provider: BaseIPLookupClient, ip: str | None) -> ProviderOutcome:
        try:
            return await provider.lookup(ip)
        except Exception as exc:
            # Adapters report outcomes rather than raising; anything escaping is a failed attempt.
            logger.exception(f"Unexpected error from IP provider provider={provider.name} error={repr(exc)}")
            return ProviderOutcome.failed(provider.name, repr(exc))
