import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class RepeatingTask:
    """Run an async operation now and then every ``interval`` seconds until stopped.

    ``stop()`` sets the cancellation token. A pending wait is cancelled at once;
    an operation already in flight runs to completion and its result is dropped.
    Exceptions from the operation are logged and the loop carries on.
    """

    def __init__(
        self,
        operation: Callable[[], Awaitable[Any]],
        interval: float,
        on_result: Optional[Callable[[Any], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "repeating_task",
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.operation = operation
        self.interval = interval
        self.on_result = on_result
        self.name = name
        self.runs = 0
        self._sleep = sleep
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._waiting = False

    async def __aenter__(self) -> "RepeatingTask":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> None:
        if self.running:
            raise RuntimeError(f"{self.name} is already running")
        self._stopped.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("repeating_task_started", name=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Cancel the schedule and wait for the loop to exit."""
        self._stopped.set()
        task, self._task = self._task, None
        if task is None:
            return
        if self._waiting:
            task.cancel()
        await task
        logger.info("repeating_task_stopped", name=self.name, runs=self.runs)

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                result = await self.operation()
            except Exception as e:
                logger.error("repeating_task_error", name=self.name, error=str(e))
            else:
                if self._stopped.is_set():
                    logger.debug("repeating_task_result_discarded", name=self.name)
                    break
                if self.on_result is not None:
                    self.on_result(result)
            self.runs += 1

            if self._stopped.is_set():
                break

            self._waiting = True
            try:
                await self._sleep(self.interval)
            except asyncio.CancelledError:
                if self._stopped.is_set():
                    break
                raise
            finally:
                self._waiting = False
