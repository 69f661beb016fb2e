"""Heartbeat pulse scheduling from the wearer's BPM and RR interval."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .state import SharedPulseState

logger = logging.getLogger(__name__)

BeatCallback = Callable[[], Awaitable[None]]


def beat_interval_ms(bpm: int, rr_interval: int) -> int | None:
    """Return the wait before the next pulse, or None if the rhythm has stopped.

    A BPM of 0 stops the rhythm. Otherwise the RR interval wins when present
    and the period is derived from BPM as a fallback.
    """
    if bpm <= 0:
        return None
    if rr_interval > 0:
        return rr_interval
    return int(60000 / bpm)


class HeartbeatScheduler:
    """Emits a beat at the current cardiac cadence while the sensor is connected.

    The loop re-reads the shared state every cycle, so a new heart rate takes
    effect on the next beat. It ends by itself when BPM drops to 0 or the link
    is down and is restarted by ``ensure_running()`` on the next reading.
    """

    def __init__(self, state: SharedPulseState, on_beat: BeatCallback):
        self._state = state
        self.on_beat = on_beat
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_running(self) -> None:
        """Start the pulse loop unless one is already active."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        logger.debug("Heartbeat started")
        while True:
            snapshot = self._state.snapshot()
            if not snapshot.connected:
                break
            wait_ms = beat_interval_ms(snapshot.bpm, snapshot.rr_interval)
            if wait_ms is None:
                break

            await asyncio.sleep(wait_ms / 1000)
            try:
                await self.on_beat()
            except Exception:
                logger.exception("Beat handler failed")
        logger.debug("Heartbeat stopped")

    async def stop(self) -> None:
        """Cancel the pulse loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
