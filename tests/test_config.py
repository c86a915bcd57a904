"""Tests for beacon_ledger.config loading and environment overrides."""

import configparser

import pytest

from beacon_ledger.config import (
    PROJECT_ROOT,
    BeaconConfig,
    StorageSettings,
    _load_from_ini,
    config,
    get_config_status,
    load_config,
    print_config_summary,
    use_test_storage,
)


@pytest.mark.unit
def test_defaults():
    cfg = BeaconConfig()

    assert cfg.server.port == 8888
    assert cfg.beacon.bits_length == 32
    assert cfg.beacon.interval_seconds == 60.0
    assert cfg.beacon.max_append_attempts == 3
    assert cfg.logging.format == "detailed"
    assert cfg.beacon.absolute_entropy_path is None


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("BEACON_HOST", "0.0.0.0")
    monkeypatch.setenv("BEACON_PORT", "9100")
    monkeypatch.setenv("BEACON_STORAGE", "memory:")
    monkeypatch.setenv("BEACON_BITS_LENGTH", "64")
    monkeypatch.setenv("BEACON_INTERVAL", "2.5")
    monkeypatch.setenv("BEACON_KEY_PATH", "/etc/beacon/key.pem")
    monkeypatch.setenv("BEACON_ENTROPY_PATH", "/dev/hwrng")
    monkeypatch.setenv("BEACON_LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.server.host == "0.0.0.0"
    assert cfg.server.port == 9100
    assert cfg.storage.resolved_location == "memory:"
    assert cfg.beacon.bits_length == 64
    assert cfg.beacon.interval_seconds == 2.5
    assert str(cfg.beacon.absolute_key_path) == "/etc/beacon/key.pem"
    assert str(cfg.beacon.absolute_entropy_path) == "/dev/hwrng"
    assert cfg.logging.level == "DEBUG"


@pytest.mark.unit
def test_invalid_bits_length_env_rejected(monkeypatch):
    monkeypatch.setenv("BEACON_BITS_LENGTH", "16")

    with pytest.raises(ValueError, match="32 or 64"):
        load_config()


@pytest.mark.unit
def test_load_from_ini_sections():
    parser = configparser.ConfigParser()
    parser.read_string("""
[server]
host = 10.0.0.1
port = 8080

[storage]
location = jsonl:ledger/beacon.log

[beacon]
bits_length = 64
interval_seconds = 30
key_path = keys/beacon.pem
max_append_attempts = 5
entropy_path = capture/audio.raw

[logging]
level = warning
format = JSON
""")
    cfg = BeaconConfig()

    _load_from_ini(parser, cfg)

    assert cfg.server.host == "10.0.0.1"
    assert cfg.server.port == 8080
    assert cfg.storage.resolved_location == f"jsonl:{PROJECT_ROOT / 'ledger' / 'beacon.log'}"
    assert cfg.beacon.bits_length == 64
    assert cfg.beacon.interval_seconds == 30.0
    assert cfg.beacon.absolute_key_path == PROJECT_ROOT / "keys" / "beacon.pem"
    assert cfg.beacon.max_append_attempts == 5
    assert cfg.beacon.absolute_entropy_path == PROJECT_ROOT / "capture" / "audio.raw"
    assert cfg.logging.level == "WARNING"
    assert cfg.logging.format == "json"


@pytest.mark.unit
def test_unknown_log_format_keeps_default():
    parser = configparser.ConfigParser()
    parser.read_string("[logging]\nformat = xml\n")
    cfg = BeaconConfig()

    _load_from_ini(parser, cfg)

    assert cfg.logging.format == "detailed"


@pytest.mark.unit
@pytest.mark.parametrize(
    "location, expected",
    [
        ("memory:", "memory:"),
        (":memory:", ":memory:"),
        ("/var/lib/beacon.db", "/var/lib/beacon.db"),
        ("data/beacon.db", str(PROJECT_ROOT / "data" / "beacon.db")),
        ("sqlite:data/beacon.db", f"sqlite:{PROJECT_ROOT / 'data' / 'beacon.db'}"),
    ],
)
def test_storage_location_resolution(location, expected):
    assert StorageSettings(location=location).resolved_location == expected


@pytest.mark.unit
def test_use_test_storage_restores_location(tmp_path):
    original = config.storage.location

    with use_test_storage(tmp_path / "beacon.db") as location:
        assert config.storage.location == location
        assert get_config_status()["storage_location"] == str(tmp_path / "beacon.db")

    assert config.storage.location == original


@pytest.mark.unit
def test_print_config_summary(capsys):
    print_config_summary()

    out = capsys.readouterr().out
    assert "BEACON CONFIGURATION" in out
    assert f"Bits length: {config.beacon.bits_length} bytes" in out
