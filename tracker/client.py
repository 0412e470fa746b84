"""
Position client: fetches the live ISS position with timeout and retry, and
logs position samples and pass searches to the sink on a best-effort basis.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

import structlog

from .config import Config
from .errors import PayloadError, TrackerError, TransportError
from .fetcher import DEFAULT_TIMEOUT, HTTPFetcher, raise_for_status
from .models import ISS_ALTITUDE_KM, Position, SearchLogEntry
from .retry import retry_with_backoff

logger = structlog.get_logger(__name__)

ISS_NOW_URL = 'http://api.open-notify.org/iss-now.json'


class PositionClient:
    def __init__(
        self,
        fetcher: HTTPFetcher,
        sink: Any = None,
        url: str = ISS_NOW_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        altitude: float = ISS_ALTITUDE_KM,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.sink = sink
        self.url = url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.altitude = altitude
        self._sleep = sleep
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: Config, sink: Any = None,
                    fetcher: HTTPFetcher = None) -> "PositionClient":
        settings = config.position
        timeout = float(settings.get('timeout', DEFAULT_TIMEOUT))
        return cls(
            fetcher=fetcher or HTTPFetcher(timeout=timeout),
            sink=sink,
            url=settings.get('url', ISS_NOW_URL),
            timeout=timeout,
            max_attempts=int(settings.get('max_attempts', 3)),
            base_delay=float(settings.get('base_delay', 1.0)),
            altitude=float(settings.get('altitude_km', ISS_ALTITUDE_KM)),
        )

    async def __aenter__(self) -> "PositionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.wait_for_pending_logs()
        await self.fetcher.aclose()

    async def get_current_position(self) -> Optional[Position]:
        """Return the current ISS position, or None when it cannot be obtained.

        Transport failures and timeouts are retried with backoff; payload errors
        are not. Every failure ends as None. A successful sample is handed to
        the sink in the background.
        """
        try:
            position = await retry_with_backoff(
                self._fetch_position,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                retry_on=(TransportError,),
                sleep=self._sleep,
            )
        except TrackerError as e:
            logger.error("iss_position_fetch_failed", url=self.url, error=str(e))
            return None
        except Exception as e:
            logger.error("iss_position_unexpected_error",
                         url=self.url,
                         error=str(e),
                         exc_info=True)
            return None

        if position is None:
            logger.warning("iss_position_missing", url=self.url)
            return None

        self._schedule(self._log_position(position))
        return position

    async def _fetch_position(self) -> Optional[Position]:
        response = await self.fetcher.fetch(self.url, timeout=self.timeout)
        raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise PayloadError(f"Response is not valid JSON: {e}") from e

        return self.parse_position(data)

    def parse_position(self, data: Any) -> Optional[Position]:
        """Build a Position from an iss-now payload.

        Returns None when the payload has no ``iss_position`` object.
        """
        if not isinstance(data, dict):
            raise PayloadError(f"Expected a JSON object, got {type(data).__name__}")

        raw = data.get('iss_position')
        if raw is None:
            return None

        try:
            return Position(
                latitude=float(raw['latitude']),
                longitude=float(raw['longitude']),
                altitude=self.altitude,
                timestamp=int(data['timestamp']),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PayloadError(f"Malformed iss_position payload: {e!r}") from e

    async def log_search(self, city_name: str, lat: float, lng: float,
                         passes_found: int, status: str) -> None:
        """Write one pass search event to the sink. Failures are discarded."""
        if self.sink is None:
            return
        try:
            entry = SearchLogEntry(
                city_name=city_name,
                latitude=lat,
                longitude=lng,
                passes_found=passes_found,
                status=status,
            )
            await asyncio.to_thread(self.sink.insert_search, entry)
        except Exception as e:
            logger.error("search_log_failed", city_name=city_name, error=str(e))

    async def _log_position(self, position: Position) -> None:
        if self.sink is None:
            return
        try:
            await asyncio.to_thread(self.sink.insert_position, position)
        except Exception as e:
            logger.error("position_log_failed", error=str(e))

    def _schedule(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_for_pending_logs(self) -> None:
        """Wait until every background sink write has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
