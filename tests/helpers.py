"""Shared test helper functions for pulse_osc tests."""

from __future__ import annotations


def make_hr_packet(
    bpm: int,
    *,
    is_16bit: bool = False,
    contact_status: int = 0,
    energy: int | None = None,
    rr_intervals: list[int] | None = None,
) -> bytes:
    """Build a BLE HR measurement packet.

    Args:
        bpm: Heart rate in BPM
        is_16bit: If True, use 16-bit BPM format
        contact_status: Two-bit sensor contact value (0-3)
        energy: Energy expended (if present)
        rr_intervals: RR intervals, 16-bit each

    Returns:
        Raw bytes for HR measurement characteristic
    """
    flags = (contact_status & 0b11) << 1

    if is_16bit:
        flags |= 0b1
    if energy is not None:
        flags |= 0b1000
    if rr_intervals:
        flags |= 0b10000

    data = bytearray([flags])

    if is_16bit:
        data.extend(bpm.to_bytes(2, "little"))
    else:
        data.append(bpm)

    if energy is not None:
        data.extend(energy.to_bytes(2, "little"))

    for rr in rr_intervals or []:
        data.extend(rr.to_bytes(2, "little"))

    return bytes(data)


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
