"""Configuration file loading and defaults."""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .osc import RECOGNIZED_PARAMETERS

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS = sorted(RECOGNIZED_PARAMETERS)

DEFAULT_CONFIG_TEXT = """\
[link]
# Seconds without a notification before the sensor is considered stale
timeout_interval = 3.0
# Seconds between reconnect attempts
restart_delay = 3.0
poll_interval = 2.0
scan_timeout = 5.0

[device]
address = ""
name_filter = ""

[osc]
host = "127.0.0.1"
port = 9000
listen_port = 9001
# OSCQuery endpoint of the avatar client; empty uses the parameters list below
query_url = ""
parameters = [{parameters}]
beat_hold = 0.25

[output]
write_to_txt = false
txt_path = "HR.txt"
log_level = "INFO"

[feed]
enabled = false
host = "127.0.0.1"
port = 8765
broadcast_timeout = 0.5
""".replace("{parameters}", ", ".join(f'"{name}"' for name in DEFAULT_PARAMETERS))


class ConfigError(Exception):
    """The configuration file is malformed."""


@dataclass
class LinkConfig:
    timeout_interval: float = 3.0
    restart_delay: float = 3.0
    poll_interval: float = 2.0
    scan_timeout: float = 5.0


@dataclass
class DeviceConfig:
    address: str = ""
    name_filter: str = ""


@dataclass
class OscConfig:
    host: str = "127.0.0.1"
    port: int = 9000
    listen_port: int = 9001
    query_url: str = ""
    parameters: list[str] = field(default_factory=lambda: list(DEFAULT_PARAMETERS))
    beat_hold: float = 0.25


@dataclass
class OutputConfig:
    write_to_txt: bool = False
    txt_path: str = "HR.txt"
    log_level: str = "INFO"


@dataclass
class FeedConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8765
    broadcast_timeout: float = 0.5


@dataclass
class Config:
    link: LinkConfig = field(default_factory=LinkConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    osc: OscConfig = field(default_factory=OscConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)


SECTIONS = ("link", "device", "osc", "output", "feed")


def config_paths() -> list[Path]:
    return [
        Path("./config.toml"),
        Path.home() / ".config" / "pulse-osc" / "config.toml",
    ]


def load_config() -> Config:
    """Load config from file, writing a default file if none exists.

    Raises:
        ConfigError: If the file exists but cannot be parsed
    """
    paths = config_paths()
    for path in paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid config file '{path}': {e}") from e
            return _parse_config(data, path)

    _write_default(paths[-1])
    return Config()


def _write_default(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
        logger.info("Wrote default config to '%s'", path)
    except OSError as e:
        logger.warning("Could not write default config '%s': %s", path, e)


def _parse_config(data: dict, source: Path | str = "config") -> Config:
    """Parse TOML dict into Config dataclass.

    Uses dataclass defaults for missing values.
    """
    unknown = sorted(set(data) - set(SECTIONS))
    if unknown:
        raise ConfigError(f"Invalid config file '{source}': unknown section(s) {', '.join(unknown)}")
    try:
        config = Config(
            link=LinkConfig(**data.get("link", {})),
            device=DeviceConfig(**data.get("device", {})),
            osc=OscConfig(**data.get("osc", {})),
            output=OutputConfig(**data.get("output", {})),
            feed=FeedConfig(**data.get("feed", {})),
        )
        _validate(config, source)
    except TypeError as e:
        raise ConfigError(f"Invalid config file '{source}': {e}") from e
    return config


def _validate(config: Config, source: Path | str) -> None:
    link = config.link
    for name in ("timeout_interval", "restart_delay", "poll_interval", "scan_timeout"):
        if getattr(link, name) <= 0:
            raise ConfigError(f"Invalid config file '{source}': link.{name} must be positive")
    ports = {
        "osc.port": config.osc.port,
        "osc.listen_port": config.osc.listen_port,
        "feed.port": config.feed.port,
    }
    for name, port in ports.items():
        if not 0 < port < 65536:
            raise ConfigError(f"Invalid config file '{source}': {name} out of range")
