"""Shared pulse state read by the scheduler and the liveness monitor."""

import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .parser import HeartRateReading


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"


@dataclass(frozen=True)
class PulseSnapshot:
    """Consistent view of the shared state taken under the lock."""

    bpm: int
    rr_interval: int
    connected: bool
    last_update: float | None


@dataclass
class SessionStats:
    max_bpm: int = 0
    max_bpm_at: datetime | None = None
    min_bpm: int | None = None
    min_bpm_at: datetime | None = None
    connection_count: int = 0


class SharedPulseState:
    """Latest BPM/RR pair, connected flag and liveness timestamp.

    BPM, RR interval and timestamp are always written together so readers
    never see a BPM from one notification with an RR from another.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._bpm = 0
        self._rr_interval = 0
        self._connected = False
        self._last_update: float | None = None
        self._stats = SessionStats()

    def update(self, reading: HeartRateReading) -> PulseSnapshot:
        """Store a decoded reading and refresh the liveness timestamp."""
        now = datetime.now()
        with self._lock:
            self._bpm = reading.bpm
            self._rr_interval = reading.first_rr_interval
            self._last_update = self._clock()

            if reading.bpm > self._stats.max_bpm:
                self._stats.max_bpm = reading.bpm
                self._stats.max_bpm_at = now
            if reading.bpm != 0 and (self._stats.min_bpm is None or reading.bpm < self._stats.min_bpm):
                self._stats.min_bpm = reading.bpm
                self._stats.min_bpm_at = now

            return self._snapshot()

    def touch(self) -> None:
        """Reset the liveness baseline without changing the reading."""
        with self._lock:
            self._last_update = self._clock()

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = connected

    def record_connection(self) -> int:
        """Count a successful connection and return the new total."""
        with self._lock:
            self._stats.connection_count += 1
            return self._stats.connection_count

    def snapshot(self) -> PulseSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> PulseSnapshot:
        return PulseSnapshot(
            bpm=self._bpm,
            rr_interval=self._rr_interval,
            connected=self._connected,
            last_update=self._last_update,
        )

    def seconds_since_update(self, now: float | None = None) -> float:
        """Seconds since the last notification, infinite before the first one."""
        with self._lock:
            last = self._last_update
        if last is None:
            return math.inf
        if now is None:
            now = self._clock()
        return now - last

    @property
    def stats(self) -> SessionStats:
        with self._lock:
            return SessionStats(**vars(self._stats))
