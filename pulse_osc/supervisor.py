"""Session supervision: liveness checks, reconnects and output fan-out."""

import asyncio
import logging

from .ble import ConnectionManager, LinkError
from .feed import PulseFeed
from .osc import ParameterBridge
from .output import BpmFileWriter
from .parser import HeartRateReading
from .scheduler import HeartbeatScheduler
from .state import SharedPulseState

logger = logging.getLogger(__name__)

# Extra staleness, on top of the timeout, before parameters are cleared
CLEAR_GRACE = 2.0


class PulseSession:
    """Runs one sensor session end to end.

    Readings from the link are published through the bridge and kick the
    heartbeat scheduler. A polling loop reconnects when notifications stop
    and clears the avatar parameters when they have been stale for a while.
    """

    def __init__(
        self,
        state: SharedPulseState,
        bridge: ParameterBridge,
        *,
        address: str | None = None,
        name_filter: str | None = None,
        scan_timeout: float = 5.0,
        timeout_interval: float = 3.0,
        restart_delay: float = 3.0,
        poll_interval: float = 2.0,
        writer: BpmFileWriter | None = None,
        feed: PulseFeed | None = None,
    ):
        self.state = state
        self.bridge = bridge
        self.timeout_interval = timeout_interval
        self.restart_delay = restart_delay
        self.poll_interval = poll_interval
        self.writer = writer
        self.feed = feed
        self.link = ConnectionManager(
            state,
            self.on_reading,
            address=address,
            name_filter=name_filter,
            scan_timeout=scan_timeout,
        )
        self.scheduler = HeartbeatScheduler(state, self.on_beat)
        self._stopping = False
        self._pulses: set[asyncio.Task] = set()

    async def on_reading(self, reading: HeartRateReading) -> None:
        """Publish a fresh reading and make sure the heartbeat is running."""
        snapshot = self.state.snapshot()
        if not self.bridge.publish(snapshot.bpm, snapshot.rr_interval, snapshot.connected):
            logger.debug("Parameter update incomplete")
        if self.writer:
            self.writer.write(snapshot.bpm)
        if self.feed:
            await self.feed.send_reading(reading)
        self.scheduler.ensure_running()

    async def on_beat(self) -> None:
        # The pulse holds isHRBeat high for a while; run it beside the scheduler
        task = asyncio.create_task(self.bridge.pulse())
        self._pulses.add(task)
        task.add_done_callback(self._pulses.discard)
        if self.feed:
            await self.feed.send_beat()

    async def _send_status(self, status: str, device: str | None = None) -> None:
        if self.feed:
            await self.feed.send_status(status, device)

    async def check_liveness(self, now: float | None = None) -> None:
        """Clear and reconnect when notifications have gone stale."""
        elapsed = self.state.seconds_since_update(now)
        if elapsed > self.timeout_interval + CLEAR_GRACE:
            self.state.set_connected(False)
            self.bridge.clear()

        if elapsed > self.timeout_interval:
            await self.reconnect()

    async def reconnect(self) -> bool:
        """Retry the link every ``restart_delay`` seconds until it comes up.

        Returns False only if the session was stopped while retrying.
        """
        logger.info("Connecting...")
        await self._send_status("connecting")
        while not self._stopping:
            try:
                name = await self.link.connect()
            except LinkError as e:
                self.state.set_connected(False)
                self.bridge.clear()
                logger.warning(
                    "Failure while initiating heart rate link: %s. Retrying in %.1f seconds...",
                    e,
                    self.restart_delay,
                )
                await self._send_status("disconnected")
                await asyncio.sleep(self.restart_delay)
                continue

            self.state.set_connected(True)
            self.state.touch()
            count = self.state.record_connection()
            logger.info("Connected to %s (connection %d)", name, count)
            await self._send_status("connected", name)
            return True
        return False

    async def run(self) -> None:
        """Poll liveness until stopped."""
        while not self._stopping:
            await self.check_liveness()
            await asyncio.sleep(self.poll_interval)

    def _log_summary(self) -> None:
        stats = self.state.stats
        if stats.max_bpm_at:
            logger.info("Max: %d bpm at %s", stats.max_bpm, stats.max_bpm_at.strftime("%H:%M"))
        if stats.min_bpm_at:
            logger.info("Min: %d bpm at %s", stats.min_bpm, stats.min_bpm_at.strftime("%H:%M"))
        logger.info("Connections: %d", stats.connection_count)

    async def stop(self) -> None:
        """Stop the heartbeat, release the link and reset the parameters."""
        logger.debug("Stopping session...")
        self._stopping = True
        await self.scheduler.stop()
        for task in list(self._pulses):
            task.cancel()
        await self.link.disconnect()
        self.state.set_connected(False)
        self.bridge.clear()
        self._log_summary()
