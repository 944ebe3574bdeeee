import asyncio
from http import HTTPStatus

import httpx

from devicegeo.logger import logger

DEFAULT_INTERVAL_SECONDS = 10 * 60
PING_TIMEOUT_SECONDS = 10.0


class KeepAlive:
    """Periodically pings the service's own ``/hello`` endpoint.

    Free hosting tiers put idle instances to sleep; a request every few minutes
    keeps the process, and with it the location cache, warm.
    """

    def __init__(self, base_url: str, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> None:
        self._url = f"{base_url.rstrip('/')}/hello"
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def ping_once(self) -> bool:
        """Send one ping; failures are logged and reported as False."""
        logger.info(f"Pinging server to keep alive url={self._url}")
        try:
            async with httpx.AsyncClient(timeout=PING_TIMEOUT_SECONDS) as client:
                response = await client.get(self._url)
        except httpx.RequestError as exc:
            logger.warning(f"Keep-alive ping failed url={self._url} error={repr(exc)}")
            return False

        if response.status_code >= HTTPStatus.BAD_REQUEST:
            logger.warning(f"Keep-alive ping failed url={self._url} status={response.status_code}")
            return False

        try:
            message = response.json().get("message")
        except (ValueError, AttributeError):
            message = None

        logger.info(f"Keep-alive ping successful message={message}")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            await self.ping_once()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting keep-alive url={self._url} interval={self._interval_seconds}s")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
