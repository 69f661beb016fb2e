"""Shared test fixtures for pulse_osc tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from pulse_osc.osc import RECOGNIZED_PARAMETERS, ParameterBridge
from pulse_osc.parser import HeartRateReading, decode_heart_rate
from pulse_osc.state import SharedPulseState
from tests.helpers import FakeClock, make_hr_packet


@pytest.fixture
def hr_packet_simple() -> bytes:
    """Simple 8-bit BPM packet (72 bpm)."""
    return make_hr_packet(72)


@pytest.fixture
def hr_packet_16bit() -> bytes:
    """16-bit BPM packet (180 bpm)."""
    return make_hr_packet(180, is_16bit=True)


@pytest.fixture
def hr_packet_with_rr() -> bytes:
    """Packet with two RR intervals."""
    return make_hr_packet(75, rr_intervals=[800, 820])


@pytest.fixture
def hr_packet_full() -> bytes:
    """Packet with all fields populated."""
    return make_hr_packet(
        150,
        is_16bit=True,
        contact_status=3,
        energy=1500,
        rr_intervals=[400, 410],
    )


@pytest.fixture
def reading_with_rr() -> HeartRateReading:
    reading = decode_heart_rate(make_hr_packet(75, rr_intervals=[800, 820]))
    assert isinstance(reading, HeartRateReading)
    return reading


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def shared_state(clock) -> SharedPulseState:
    return SharedPulseState(clock=clock)


# OSC fixtures
@pytest.fixture
def mock_osc_client():
    """Create a mock SimpleUDPClient."""
    client = MagicMock()
    client.send_message = MagicMock()
    return client


@pytest.fixture
def bridge(mock_osc_client) -> ParameterBridge:
    """Bridge with every parameter available and a mock client attached."""
    bridge = ParameterBridge(beat_hold=0)
    bridge._client = mock_osc_client
    bridge.update_available_parameters(RECOGNIZED_PARAMETERS)
    return bridge


# Mock fixtures for BLE
@pytest.fixture
def mock_bleak_client():
    """Create a mock BleakClient with the HR characteristic present."""
    client = AsyncMock()
    client.is_connected = True
    client.address = "AA:BB:CC:DD:EE:FF"
    client.connect = AsyncMock(return_value=True)
    client.disconnect = AsyncMock()
    client.start_notify = AsyncMock()
    client.stop_notify = AsyncMock()
    client.read_gatt_char = AsyncMock(return_value=b"TestDevice")

    hr_service = MagicMock()
    hr_service.get_characteristic = MagicMock(return_value=MagicMock(name="hr_characteristic"))
    services = MagicMock()
    services.get_service = MagicMock(return_value=hr_service)
    client.services = services
    return client


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket connection."""
    ws = AsyncMock()
    ws.send = AsyncMock()
    ws.close = AsyncMock()
    return ws
