"""OSC parameter output gated by what the avatar currently exposes."""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

logger = logging.getLogger(__name__)

PARAMETER_PREFIX = "/avatar/parameters/"
AVATAR_CHANGE_ADDRESS = "/avatar/change"

RECOGNIZED_PARAMETERS = frozenset(
    {
        "isHRConnected",
        "HR",
        "onesHR",
        "tensHR",
        "hundredsHR",
        "floatHR",
        "isHRBeat",
        "RRInterval",
        "HeartBeatToggle",
    }
)

OscValue = bool | int | float


def float_hr(bpm: int) -> float:
    """Map BPM from [0, 255] onto [-1, +1]."""
    return bpm * 0.0078125 - 1.0


class ParameterBridge:
    """Sends heart rate parameters to the avatar over OSC.

    Only parameters that are both recognized and currently declared by the
    avatar are sent. With no declared parameters or no attached client every
    operation is a successful no-op.
    """

    def __init__(self, beat_hold: float = 0.25):
        self._beat_hold = beat_hold
        self._client: SimpleUDPClient | None = None
        self._lock = threading.Lock()
        self._available: frozenset[str] = frozenset()
        self._heartbeat_toggle = False
        self._beat_held = False

    def attach(self, host: str, port: int) -> None:
        """Point the bridge at an OSC endpoint, replacing any previous one."""
        self._client = SimpleUDPClient(host, port)
        logger.debug("OSC output to %s:%d", host, port)

    @property
    def available_parameters(self) -> frozenset[str]:
        with self._lock:
            return self._available

    def update_available_parameters(self, names: Iterable[str]) -> int:
        """Replace the available set from the avatar's declared parameter list."""
        available = set()
        for name in names:
            short = name.removeprefix(PARAMETER_PREFIX)
            if short in RECOGNIZED_PARAMETERS:
                available.add(short)
        with self._lock:
            self._available = frozenset(available)
        logger.info("Found %d parameters", len(available))
        return len(available)

    def _target(self) -> tuple[SimpleUDPClient, frozenset[str]] | None:
        available = self.available_parameters
        if not available or self._client is None:
            return None
        return self._client, available

    @staticmethod
    def _send_batch(
        client: SimpleUDPClient,
        available: frozenset[str],
        values: list[tuple[str, OscValue]],
    ) -> bool:
        for name, value in values:
            if name not in available:
                continue
            try:
                client.send_message(PARAMETER_PREFIX + name, value)
            except OSError as e:
                logger.warning("OSC send of %s failed: %s", name, e)
                return False
        return True

    def publish(self, bpm: int, rr_interval: int, is_connected: bool) -> bool:
        """Send the current reading. Returns False if a send failed."""
        target = self._target()
        if target is None:
            return True
        client, available = target
        values: list[tuple[str, OscValue]] = [
            ("isHRConnected", bool(is_connected)),
            ("HR", bpm),
            ("onesHR", bpm % 10),
            ("tensHR", bpm // 10 % 10),
            ("hundredsHR", bpm // 100 % 10),
            ("floatHR", float_hr(bpm)),
            ("RRInterval", rr_interval),
        ]
        return self._send_batch(client, available, values)

    def clear(self) -> bool:
        """Reset every parameter to its neutral value."""
        target = self._target()
        if target is None:
            return True
        client, available = target
        values: list[tuple[str, OscValue]] = [
            ("isHRConnected", False),
            ("HR", 0),
            ("onesHR", 0),
            ("tensHR", 0),
            ("hundredsHR", 0),
            ("floatHR", -1.0),
            ("isHRBeat", False),
            ("RRInterval", 0),
        ]
        return self._send_batch(client, available, values)

    async def pulse(self) -> None:
        """Flip HeartBeatToggle and blink isHRBeat, whichever the avatar has."""
        target = self._target()
        if target is None:
            return
        client, available = target

        if "HeartBeatToggle" in available:
            self._heartbeat_toggle = not self._heartbeat_toggle
            try:
                client.send_message(PARAMETER_PREFIX + "HeartBeatToggle", self._heartbeat_toggle)
            except OSError as e:
                logger.debug("HeartBeatToggle send failed: %s", e)

        # A blink still in flight from the previous beat is left to finish
        if "isHRBeat" not in available or self._beat_held:
            return
        self._beat_held = True
        try:
            client.send_message(PARAMETER_PREFIX + "isHRBeat", True)
            # Held long enough to survive the avatar's parameter sync rate
            await asyncio.sleep(self._beat_hold)
            client.send_message(PARAMETER_PREFIX + "isHRBeat", False)
        except OSError as e:
            logger.debug("isHRBeat send failed: %s", e)
        finally:
            self._beat_held = False


class AvatarChangeListener:
    """Listens for /avatar/change and triggers a parameter refresh."""

    def __init__(self, host: str, port: int, on_change: Callable[[], Awaitable[None]]):
        self.host = host
        self.port = port
        self.on_change = on_change
        self._transport: asyncio.DatagramTransport | None = None
        self._pending: set[asyncio.Task] = set()

    def _handle_change(self, address: str, *args: object) -> None:
        logger.info("Avatar change")
        task = asyncio.get_running_loop().create_task(self.on_change())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def build_dispatcher(self) -> Dispatcher:
        dispatcher = Dispatcher()
        dispatcher.map(AVATAR_CHANGE_ADDRESS, self._handle_change)
        return dispatcher

    async def start(self) -> None:
        server = AsyncIOOSCUDPServer(
            (self.host, self.port),
            self.build_dispatcher(),
            asyncio.get_running_loop(),
        )
        self._transport, _ = await server.create_serve_endpoint()
        logger.debug("Listening for OSC on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._transport:
            self._transport.close()
            self._transport = None
        for task in list(self._pending):
            task.cancel()
