"""BLE heart rate sensor discovery and link management."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError
from bleak.uuids import normalize_uuid_str

from .parser import DecodeFailure, HeartRateReading, decode_heart_rate
from .state import ConnectionState, SharedPulseState

logger = logging.getLogger(__name__)

HR_SERVICE_UUID = normalize_uuid_str("180D")
HR_CHAR_UUID = normalize_uuid_str("2A37")
DEVICE_NAME_UUID = normalize_uuid_str("2A00")

ReadingCallback = Callable[[HeartRateReading], Awaitable[None]]

_LINK_ERRORS = (BleakError, TimeoutError, OSError)


class LinkError(Exception):
    """A single connection attempt failed."""


class DeviceNotFound(LinkError):
    pass


class ServiceUnavailable(LinkError):
    pass


class CharacteristicNotFound(LinkError):
    pass


async def scan_hr_devices(
    timeout: float = 5.0,
    name_filter: str | None = None,
) -> list[tuple[str, str]]:
    """Scan for BLE devices advertising Heart Rate service.

    Args:
        timeout: Scan duration in seconds
        name_filter: Optional case-insensitive substring to filter device names

    Returns:
        List of (address, name) tuples for discovered HR devices
    """
    devices: dict[str, str] = {}
    filter_lower = name_filter.lower() if name_filter else None

    def detection_callback(device: BLEDevice, adv: AdvertisementData) -> None:
        if HR_SERVICE_UUID not in (adv.service_uuids or []):
            return
        if device.address in devices:
            return
        name = device.name or "Unknown"
        if filter_lower is None or filter_lower in name.lower():
            logger.debug("Discovered: %s (%s)", name, device.address)
            devices[device.address] = name

    scanner = BleakScanner(detection_callback=detection_callback)
    await scanner.start()
    await asyncio.sleep(timeout)
    await scanner.stop()

    logger.debug("Scan complete, found %d device(s)", len(devices))
    return list(devices.items())


class ConnectionManager:
    """Owns the single link to the heart rate sensor.

    ``connect()`` makes one attempt and raises a ``LinkError`` subclass on
    failure; retrying is up to the caller.
    """

    def __init__(
        self,
        state: SharedPulseState,
        on_reading: ReadingCallback,
        address: str | None = None,
        name_filter: str | None = None,
        scan_timeout: float = 5.0,
    ):
        self.address = address
        self.name_filter = name_filter
        self.on_reading = on_reading
        self._shared = state
        self._scan_timeout = scan_timeout
        self._client: BleakClient | None = None
        self._link_lock = asyncio.Lock()
        self._buffer = bytearray()
        self.state = ConnectionState.DISCONNECTED

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.debug("Link state: %s -> %s", self.state.value, state.value)
            self.state = state

    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    async def _locate_device(self) -> BLEDevice | str:
        try:
            return await self._scan_for_device()
        except _LINK_ERRORS as e:
            raise DeviceNotFound(f"Scanning for heart rate devices failed: {e}") from e

    async def _scan_for_device(self) -> BLEDevice | str:
        if self.address:
            device = await BleakScanner.find_device_by_address(self.address, timeout=self._scan_timeout)
            if device is None:
                raise DeviceNotFound(f"Unable to locate heart rate device {self.address}")
            return device

        devices = await scan_hr_devices(timeout=self._scan_timeout, name_filter=self.name_filter)
        if not devices:
            raise DeviceNotFound("Unable to locate heart rate device")
        address, name = devices[0]
        logger.info("Found: %s (%s)", name, address)
        return address

    async def connect(self) -> str:
        """Locate the sensor, subscribe to HR notifications and return its name."""
        self._set_state(ConnectionState.CONNECTING)
        try:
            target = await self._locate_device()
            async with self._link_lock:
                await self._release_link()
                await self._establish(target)
        except LinkError:
            await self._release()
            self._set_state(ConnectionState.RETRYING)
            raise

        self._set_state(ConnectionState.CONNECTED)
        return await self._read_device_name()

    async def _establish(self, target: BLEDevice | str) -> None:
        client = BleakClient(target, disconnected_callback=self._on_disconnected)
        self._client = client
        try:
            await client.connect()
        except _LINK_ERRORS as e:
            raise ServiceUnavailable(
                f"Unable to get service to {target}. Is the device in use by another program?"
            ) from e

        service = client.services.get_service(HR_SERVICE_UUID)
        if service is None:
            raise ServiceUnavailable(f"Unable to get service to {target}. Heart rate service not offered")

        characteristic = service.get_characteristic(HR_CHAR_UUID)
        if characteristic is None:
            raise CharacteristicNotFound(f"Unable to locate heart rate measurement on device {target}")

        try:
            await client.start_notify(characteristic, self._notify_handler)
        except _LINK_ERRORS as e:
            raise ServiceUnavailable(f"Subscribing to HR notifications failed: {e}") from e
        logger.debug("Subscribed to HR notifications on %s", target)

    async def _release_link(self) -> None:
        """Drop the current client. Caller holds the link lock."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if client.is_connected:
                await client.stop_notify(HR_CHAR_UUID)
                await client.disconnect()
        except _LINK_ERRORS as e:
            logger.debug("Error releasing link: %s", e)

    async def _release(self) -> None:
        async with self._link_lock:
            await self._release_link()

    async def disconnect(self) -> None:
        """Release the link. Safe to call repeatedly or before any connect."""
        if self.is_connected():
            logger.debug("Disconnected from device")
        await self._release()
        self._set_state(ConnectionState.DISCONNECTED)

    def _on_disconnected(self, client: BleakClient) -> None:
        if client is self._client and self.state is ConnectionState.CONNECTED:
            logger.info("Sensor link lost")
            self._shared.set_connected(False)
            self._set_state(ConnectionState.RETRYING)

    async def _read_device_name(self) -> str:
        """Read device name from GATT, fallback to address."""
        fallback = self.address or "heart rate sensor"
        if self._client is None:
            return fallback
        try:
            name_bytes = await self._client.read_gatt_char(DEVICE_NAME_UUID)
            return name_bytes.decode("utf-8", errors="ignore")
        except _LINK_ERRORS:
            return self._client.address or fallback

    async def _notify_handler(self, _: object, data: bytearray) -> None:
        """Handle incoming HR notifications."""
        buffer = self._buffer
        if len(buffer) != len(data):
            buffer = bytearray(len(data))
            self._buffer = buffer
        buffer[:] = data

        result = decode_heart_rate(buffer)
        if isinstance(result, DecodeFailure):
            logger.warning("Malformed HR packet: %s", result.message)
            return

        self._shared.update(result)
        logger.debug("HR: %d bpm, RR: %s", result.bpm, list(result.rr_intervals))
        try:
            await self.on_reading(result)
        except Exception:
            logger.exception("Reading handler failed")
