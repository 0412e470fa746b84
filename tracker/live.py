"""
Live ISS tracker: polls the position client on a fixed interval and keeps the
state a map view renders (latest position, last update, error, recent trail).
"""
import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, Optional, Tuple

import structlog

from .client import PositionClient
from .models import Position
from .poller import RepeatingTask

logger = structlog.get_logger(__name__)

UNAVAILABLE_MESSAGE = 'Unable to fetch ISS position'
CONNECTION_MESSAGE = 'Failed to connect to ISS tracking service'


class LiveTracker:
    def __init__(
        self,
        client: PositionClient,
        interval: float = 5.0,
        history_size: int = 50,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.interval = interval
        self.position: Optional[Position] = None
        self.last_update: Optional[datetime] = None
        self.error: Optional[str] = None
        self.is_loading = True
        self.history: Deque[Position] = deque(maxlen=history_size)
        # Poll results go through on_result so a poll finishing after stop() is dropped.
        self._poller = RepeatingTask(self._fetch, interval, on_result=self._apply,
                                     sleep=sleep, name="live_tracker")

    async def __aenter__(self) -> "LiveTracker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def status(self) -> str:
        if self.error:
            return 'error'
        if self.is_loading:
            return 'loading'
        return 'live'

    @property
    def running(self) -> bool:
        return self._poller.running

    def start(self) -> None:
        logger.info("live_tracker_started", interval=self.interval)
        self._poller.start()

    async def stop(self) -> None:
        await self._poller.stop()

    async def refresh(self) -> Optional[Position]:
        """Fetch once and update the view state. Also the manual retry action."""
        outcome = await self._fetch()
        self._apply(outcome)
        return outcome[0]

    async def _fetch(self) -> Tuple[Optional[Position], Optional[str]]:
        """Fetch without touching state; returns (position, error message)."""
        try:
            position = await self.client.get_current_position()
        except Exception as e:
            logger.error("live_tracker_error", error=str(e))
            return None, CONNECTION_MESSAGE

        if position is None:
            return None, UNAVAILABLE_MESSAGE
        return position, None

    def _apply(self, outcome: Tuple[Optional[Position], Optional[str]]) -> None:
        position, error = outcome
        self.is_loading = False
        if position is None:
            self.error = error
            return

        self.position = position
        self.last_update = datetime.now(timezone.utc)
        self.error = None
        self.history.append(position)
        logger.info("live_tracker_update",
                    latitude=position.latitude,
                    longitude=position.longitude,
                    timestamp=position.timestamp)

    def snapshot(self) -> dict:
        return {
            'status': self.status,
            'error': self.error,
            'last_update': self.last_update.isoformat() if self.last_update else None,
            'position': self.position.model_dump() if self.position else None,
            'history': [p.model_dump() for p in self.history],
        }
