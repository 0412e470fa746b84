"""
Upcoming satellite passes for a location.

Pass data comes from a static table placed at fixed offsets from the current
time; there is no orbit propagation behind it. Every search is logged to the
sink through the position client, successful or not.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

import structlog

from .client import PositionClient
from .errors import PassLookupError
from .models import Countdown, PassRecord

logger = structlog.get_logger(__name__)

# name, offset from now, duration (min), max elevation (deg), direction, NORAD id
MOCK_PASS_TABLE = [
    ("ISS (International Space Station)", timedelta(hours=2), 6, 67, "NW to SE", 25544),
    ("Starlink-1007", timedelta(hours=8), 4, 42, "SW to NE", 44235),
    ("Hubble Space Telescope", timedelta(days=1), 5, 28, "W to E", 20580),
    ("ISS (International Space Station)", timedelta(days=1.5), 7, 54, "NNW to SSE", 25544),
    ("Starlink-2156", timedelta(days=2), 3, 35, "N to S", 47439),
    ("ISS (International Space Station)", timedelta(days=3), 6, 71, "W to E", 25544),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mock_passes(now: datetime) -> List[PassRecord]:
    return [
        PassRecord(
            name=name,
            start_time=now + offset,
            duration=duration,
            max_elevation=max_elevation,
            direction=direction,
            norad_id=norad_id,
        )
        for name, offset, duration, max_elevation, direction, norad_id in MOCK_PASS_TABLE
    ]


def countdown(target: datetime, now: Optional[datetime] = None) -> Countdown:
    """Time left until ``target``, all zeros once it has passed."""
    now = now or utcnow()
    remaining = int((target - now).total_seconds())
    if remaining <= 0:
        return Countdown()

    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)
    return Countdown(days=days, hours=hours, minutes=minutes, seconds=seconds)


def validate_coordinates(lat: float, lon: float) -> None:
    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180 <= lon <= 180:
        raise ValueError(f"Longitude out of range: {lon}")


class PassService:
    def __init__(
        self,
        client: PositionClient,
        source: Callable[[datetime], List[PassRecord]] = mock_passes,
        simulated_delay: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.source = source
        self.simulated_delay = simulated_delay
        self._clock = clock
        self._sleep = sleep

    def upcoming(self, norad_id: int = None) -> List[PassRecord]:
        """Passes sorted by start time, optionally for a single satellite."""
        passes = sorted(self.source(self._clock()), key=lambda p: p.start_time)
        if norad_id is not None:
            passes = [p for p in passes if p.norad_id == norad_id]
        return passes

    async def search(self, lat: float, lon: float, label: str = None) -> List[PassRecord]:
        """Look up passes for a location and log the search.

        Raises ValueError for out-of-range coordinates and PassLookupError when
        the pass table cannot be produced. Sink failures never change the result.
        """
        validate_coordinates(lat, lon)
        label = label or f"Location {lat}, {lon}"

        try:
            if self.simulated_delay > 0:
                await self._sleep(self.simulated_delay)
            passes = self.upcoming()
        except Exception as e:
            logger.error("pass_lookup_failed", city_name=label, error=str(e))
            await self.client.log_search(label, lat, lon, 0, 'error')
            raise PassLookupError(f"Failed to fetch satellite data: {e}") from e

        logger.info("pass_lookup_completed", city_name=label, passes_found=len(passes))
        await self.client.log_search(label, lat, lon, len(passes), 'success')
        return passes
