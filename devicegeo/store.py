import asyncio
import uuid
from collections import deque
from datetime import datetime, timezone

from devicegeo.models.common import LocationRecord
from devicegeo.models.request_models import DeviceFingerprint
from devicegeo.models.response_models import StoredDevice

DEFAULT_MAX_RECORDS = 10000


class InMemoryDeviceStore:
    """Process-local store for enriched device records.

    Holds at most ``max_records``; the oldest records are dropped first.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._records: deque[StoredDevice] = deque(maxlen=max_records)
        self._lock = asyncio.Lock()

    async def save(self, fingerprint: DeviceFingerprint, ip: str, location: LocationRecord | None) -> StoredDevice:
        """Persist the fingerprint with its resolved IP and location.

        ``ip`` and ``location`` override any keys of the same name sent by the client.
        """
        payload = fingerprint.to_payload()
        payload.update(
            id=uuid.uuid4().hex,
            ip=ip,
            location=location,
            createdAt=datetime.now(timezone.utc),
        )
        record = StoredDevice.model_validate(payload)
        async with self._lock:
            self._records.append(record)
        return record

    async def recent(self, limit: int) -> list[StoredDevice]:
        """Newest-first list of at most ``limit`` records."""
        if limit <= 0:
            return []
        async with self._lock:
            records = list(self._records)
        return records[::-1][:limit]

    def __len__(self) -> int:
        return len(self._records)
