"""Heart rate measurement decoder following the BLE HR specification.

Malformed payloads are reported as a ``DecodeFailure`` value rather than an
exception, so the notification path can discard them and keep prior readings.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag


class HeartRateFlags(IntFlag):
    """Flag bits of the first payload byte (contact bits kept in the raw value)."""

    NONE = 0
    IS_SHORT = 1
    HAS_ENERGY_EXPENDED = 1 << 3
    HAS_RR_INTERVAL = 1 << 4


class ContactStatus(IntEnum):
    """Sensor contact status, bits 1-2 of the flags byte."""

    NOT_SUPPORTED = 0
    NOT_SUPPORTED_2 = 1
    NO_CONTACT = 2
    CONTACT = 3


class FailureReason(Enum):
    EMPTY_PAYLOAD = "empty payload"
    TRUNCATED_PAYLOAD = "truncated payload"


@dataclass(frozen=True)
class HeartRateReading:
    """Decoded heart rate measurement.

    ``rr_intervals`` is empty when the RR flag is unset; values are used as
    milliseconds as delivered by the sensor.
    """

    flags: HeartRateFlags
    contact_status: ContactStatus
    bpm: int
    energy_expended: int | None = None
    rr_intervals: tuple[int, ...] = ()

    @property
    def first_rr_interval(self) -> int:
        """First RR interval if present and positive, else 0."""
        if self.rr_intervals and self.rr_intervals[0] > 0:
            return self.rr_intervals[0]
        return 0


@dataclass(frozen=True)
class DecodeFailure:
    reason: FailureReason
    length: int
    message: str


def _u16(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 2], "little")


def decode_heart_rate(data: bytes) -> HeartRateReading | DecodeFailure:
    """Decode raw bytes from the HR measurement characteristic (0x2A37).

    Args:
        data: Notification payload

    Returns:
        HeartRateReading, or DecodeFailure if the payload is empty or too short
    """
    if not data:
        return DecodeFailure(FailureReason.EMPTY_PAYLOAD, 0, "Empty HR data received")

    raw_flags = data[0]
    flags = HeartRateFlags(raw_flags)
    is_short = bool(flags & HeartRateFlags.IS_SHORT)
    contact_status = ContactStatus((raw_flags >> 1) & 0b11)
    has_energy = bool(flags & HeartRateFlags.HAS_ENERGY_EXPENDED)
    has_rr = bool(flags & HeartRateFlags.HAS_RR_INTERVAL)

    min_len = 3 if is_short else 2
    if len(data) < min_len:
        return DecodeFailure(
            FailureReason.TRUNCATED_PAYLOAD,
            len(data),
            f"HR data too short: {len(data)} bytes, need {min_len}",
        )

    if is_short:
        bpm = _u16(data, 1)
        offset = 3
    else:
        bpm = data[1]
        offset = 2

    energy_expended = None
    if has_energy:
        if len(data) < offset + 2:
            return DecodeFailure(
                FailureReason.TRUNCATED_PAYLOAD,
                len(data),
                f"HR data too short for energy expended: {len(data)} bytes, need {offset + 2}",
            )
        energy_expended = _u16(data, offset)
        offset += 2

    rr_intervals: tuple[int, ...] = ()
    if has_rr:
        # A dangling odd byte is dropped
        count = (len(data) - offset) // 2
        rr_intervals = tuple(_u16(data, offset + 2 * i) for i in range(count))

    return HeartRateReading(
        flags=flags,
        contact_status=contact_status,
        bpm=bpm,
        energy_expended=energy_expended,
        rr_intervals=rr_intervals,
    )
