"""Tests for pulse_osc.config module."""

import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest

from pulse_osc.config import (
    DEFAULT_CONFIG_TEXT,
    Config,
    ConfigError,
    LinkConfig,
    OscConfig,
    _parse_config,
    load_config,
)
from pulse_osc.osc import RECOGNIZED_PARAMETERS


@pytest.fixture
def sample_config_dict() -> dict:
    """Sample config dict as would be parsed from TOML."""
    return {
        "link": {"timeout_interval": 5.0, "restart_delay": 10.0},
        "device": {"address": "11:22:33:44:55:66", "name_filter": "Polar"},
        "osc": {"port": 9100, "query_url": "http://127.0.0.1:9010", "parameters": ["HR"]},
        "output": {"write_to_txt": True, "log_level": "DEBUG"},
        "feed": {"enabled": True, "port": 9999},
    }


class TestDefaults:
    def test_link_defaults(self):
        config = LinkConfig()
        assert config.timeout_interval == 3.0
        assert config.restart_delay == 3.0
        assert config.poll_interval == 2.0

    def test_osc_defaults(self):
        config = OscConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 9000
        assert config.listen_port == 9001
        assert set(config.parameters) == RECOGNIZED_PARAMETERS
        assert config.beat_hold == 0.25

    def test_parameters_not_shared(self):
        a, b = OscConfig(), OscConfig()
        a.parameters.append("extra")
        assert "extra" not in b.parameters

    def test_config_defaults(self):
        config = Config()
        assert config.output.write_to_txt is False
        assert config.output.txt_path == "HR.txt"
        assert config.feed.enabled is False
        assert config.device.address == ""

    def test_default_text_matches_dataclasses(self):
        """The file written on first run parses back to the defaults."""
        assert _parse_config(tomllib.loads(DEFAULT_CONFIG_TEXT)) == Config()


class TestParseConfig:
    def test_parse_full_config(self, sample_config_dict):
        config = _parse_config(sample_config_dict)
        assert config.link.timeout_interval == 5.0
        assert config.link.restart_delay == 10.0
        assert config.device.name_filter == "Polar"
        assert config.osc.port == 9100
        assert config.osc.parameters == ["HR"]
        assert config.output.write_to_txt is True
        assert config.feed.port == 9999

    def test_parse_empty_config(self):
        assert _parse_config({}) == Config()

    def test_unknown_key_raises_config_error(self):
        with pytest.raises(ConfigError, match="unexpected keyword argument"):
            _parse_config({"link": {"TimeOutInterval": 3.0}})

    def test_unknown_section_rejected(self):
        with pytest.raises(ConfigError, match=r"unknown section\(s\) oscc"):
            _parse_config({"oscc": {"port": 9000}})

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ConfigError, match="restart_delay"):
            _parse_config({"link": {"restart_delay": 0}})

    def test_port_out_of_range_rejected(self):
        with pytest.raises(ConfigError, match="osc.port"):
            _parse_config({"osc": {"port": 70000}})

    def test_wrong_type_rejected(self):
        with pytest.raises(ConfigError, match="Invalid config file"):
            _parse_config({"link": {"timeout_interval": "soon"}})


class TestLoadConfig:
    def test_writes_default_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch.object(Path, "home", return_value=tmp_path / "home"):
            config = load_config()

        assert config == Config()
        written = tmp_path / "home" / ".config" / "pulse-osc" / "config.toml"
        assert written.read_text() == DEFAULT_CONFIG_TEXT

    def test_local_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.toml").write_bytes(b"[link]\ntimeout_interval = 6.0\n")
        with patch.object(Path, "home", return_value=tmp_path / "home"):
            config = load_config()
        assert config.link.timeout_interval == 6.0

    def test_local_takes_priority(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.toml").write_bytes(b"[osc]\nport = 1111\n")
        home_dir = tmp_path / "home" / ".config" / "pulse-osc"
        home_dir.mkdir(parents=True)
        (home_dir / "config.toml").write_bytes(b"[osc]\nport = 2222\n")

        with patch.object(Path, "home", return_value=tmp_path / "home"):
            config = load_config()
        assert config.osc.port == 1111

    def test_home_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        home_dir = tmp_path / "home" / ".config" / "pulse-osc"
        home_dir.mkdir(parents=True)
        (home_dir / "config.toml").write_bytes(b"[link]\nrestart_delay = 7.0\n")

        with patch.object(Path, "home", return_value=tmp_path / "home"):
            config = load_config()
        assert config.link.restart_delay == 7.0

    def test_malformed_file_raises(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.toml").write_bytes(b"[link\ntimeout_interval = ")
        with patch.object(Path, "home", return_value=tmp_path / "home"):
            with pytest.raises(ConfigError, match="Invalid config file"):
                load_config()
