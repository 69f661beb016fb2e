"""BLE heart rate monitor to OSC avatar parameter bridge."""

from .ble import (
    CharacteristicNotFound,
    ConnectionManager,
    DeviceNotFound,
    LinkError,
    ServiceUnavailable,
    scan_hr_devices,
)
from .config import Config, ConfigError, load_config
from .discovery import ParameterDiscovery
from .feed import PulseFeed
from .log import setup_logging
from .osc import AvatarChangeListener, ParameterBridge
from .parser import ContactStatus, DecodeFailure, FailureReason, HeartRateReading, decode_heart_rate
from .scheduler import HeartbeatScheduler, beat_interval_ms
from .state import ConnectionState, SharedPulseState
from .supervisor import PulseSession

__all__ = [
    "decode_heart_rate",
    "HeartRateReading",
    "DecodeFailure",
    "FailureReason",
    "ContactStatus",
    "ConnectionManager",
    "ConnectionState",
    "LinkError",
    "DeviceNotFound",
    "ServiceUnavailable",
    "CharacteristicNotFound",
    "scan_hr_devices",
    "SharedPulseState",
    "HeartbeatScheduler",
    "beat_interval_ms",
    "ParameterBridge",
    "AvatarChangeListener",
    "ParameterDiscovery",
    "PulseSession",
    "PulseFeed",
    "Config",
    "ConfigError",
    "load_config",
    "setup_logging",
]
