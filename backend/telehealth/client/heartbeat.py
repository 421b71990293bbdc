"""
Periodic presence heartbeat for a connected participant.

The server treats a participant as present for 15 seconds after each
heartbeat, so one missed beat at the default 10 second interval is enough to
show the participant as gone. Failures are expected noise and are only logged.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 10.0


class HeartbeatClient:
    def __init__(self, send: Callable[[], Awaitable], interval: float = HEARTBEAT_INTERVAL_SECONDS):
        self._send = send
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start beating, replacing any timer already running."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._send()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Heartbeat failed: %s", e)
