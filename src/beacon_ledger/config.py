"""
Beacon configuration management.

This module loads beacon configuration from multiple sources with a clear
priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/beacon.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The
BeaconConfig dataclass provides typed access to all settings.

Usage:
    from beacon_ledger.config import config

    print(config.server.port)
    print(config.storage.resolved_location)
    print(config.beacon.bits_length)

Environment Variable Mapping:
    BEACON_HOST         -> server.host
    BEACON_PORT         -> server.port
    BEACON_STORAGE      -> storage.location
    BEACON_BITS_LENGTH  -> beacon.bits_length
    BEACON_INTERVAL     -> beacon.interval_seconds
    BEACON_KEY_PATH     -> beacon.key_path
    BEACON_ENTROPY_PATH -> beacon.entropy_path
    BEACON_LOG_LEVEL    -> logging.level
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "beacon.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "beacon.example.ini"

# Locations that name a backend rather than a file path.
_NON_PATH_LOCATIONS = ("memory:", ":memory:", "sqlite::memory:")


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """HTTP read API configuration."""

    host: str = "127.0.0.1"
    port: int = 8888


@dataclass
class StorageSettings:
    """Where beacon records are persisted."""

    location: str = "data/beacon.db"

    @property
    def resolved_location(self) -> str:
        """Storage location with relative file paths anchored at the project root."""
        if self.location in _NON_PATH_LOCATIONS:
            return self.location
        prefix = ""
        path_part = self.location
        for scheme in ("sqlite:", "jsonl:"):
            if path_part.startswith(scheme):
                prefix, path_part = scheme, path_part.removeprefix(scheme)
                break
        p = Path(path_part)
        if not p.is_absolute():
            p = PROJECT_ROOT / p
        return f"{prefix}{p}"


@dataclass
class BeaconSettings:
    """Record generation settings."""

    bits_length: int = 32
    interval_seconds: float = 60.0
    key_path: str = "config/beacon_key.pem"
    max_append_attempts: int = 3
    # Device or pipe to read entropy from; empty means the OS CSPRNG.
    entropy_path: str = ""

    @property
    def absolute_key_path(self) -> Path:
        p = Path(self.key_path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p

    @property
    def absolute_entropy_path(self) -> Path | None:
        if not self.entropy_path:
            return None
        p = Path(self.entropy_path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class BeaconConfig:
    """
    Complete beacon configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    beacon: BeaconSettings = field(default_factory=BeaconSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bits_length(value: str) -> int:
    """Parse and validate the per-record entropy length."""
    bits_length = int(value)
    if bits_length not in (32, 64):
        raise ValueError(f"bits_length must be 32 or 64, got {bits_length}")
    return bits_length


def _load_from_ini(parser: configparser.ConfigParser, cfg: BeaconConfig) -> None:
    """Load configuration from parsed INI file into BeaconConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Storage section
    if parser.has_section("storage"):
        if parser.has_option("storage", "location"):
            cfg.storage.location = parser.get("storage", "location")

    # Beacon section
    if parser.has_section("beacon"):
        if parser.has_option("beacon", "bits_length"):
            cfg.beacon.bits_length = _parse_bits_length(parser.get("beacon", "bits_length"))
        if parser.has_option("beacon", "interval_seconds"):
            cfg.beacon.interval_seconds = parser.getfloat("beacon", "interval_seconds")
        if parser.has_option("beacon", "key_path"):
            cfg.beacon.key_path = parser.get("beacon", "key_path")
        if parser.has_option("beacon", "max_append_attempts"):
            cfg.beacon.max_append_attempts = parser.getint("beacon", "max_append_attempts")
        if parser.has_option("beacon", "entropy_path"):
            cfg.beacon.entropy_path = parser.get("beacon", "entropy_path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: BeaconConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_host := os.getenv("BEACON_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("BEACON_PORT"):
        cfg.server.port = int(env_port)

    if env_storage := os.getenv("BEACON_STORAGE"):
        cfg.storage.location = env_storage

    if env_bits := os.getenv("BEACON_BITS_LENGTH"):
        cfg.beacon.bits_length = _parse_bits_length(env_bits)
    if env_interval := os.getenv("BEACON_INTERVAL"):
        cfg.beacon.interval_seconds = float(env_interval)
    if env_key := os.getenv("BEACON_KEY_PATH"):
        cfg.beacon.key_path = env_key
    if env_entropy := os.getenv("BEACON_ENTROPY_PATH"):
        cfg.beacon.entropy_path = env_entropy

    if env_log := os.getenv("BEACON_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config() -> BeaconConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/beacon.ini
        3. config/beacon.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        BeaconConfig: Fully populated configuration object.
    """
    cfg = BeaconConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """Return configuration source information for diagnostics."""
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "storage_location": config.storage.resolved_location,
        "bits_length": config.beacon.bits_length,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("BEACON CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to beacon.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Storage:     {status['storage_location']}")
    print(f"Bits length: {config.beacon.bits_length} bytes")
    print(f"Interval:    {config.beacon.interval_seconds}s")
    print(f"Key file:    {config.beacon.absolute_key_path}")
    print(f"Entropy:     {config.beacon.absolute_entropy_path or 'OS CSPRNG'}")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_storage:
    """
    Context manager for pointing the config at a temporary storage location.

    Usage:
        from beacon_ledger.config import use_test_storage

        def test_something(tmp_path):
            with use_test_storage(tmp_path / "beacon.db"):
                ...

    Args:
        location: Storage location (path or backend string) for the test.
    """

    def __init__(self, location: Path | str):
        self.location = str(location)
        self.original_location: str | None = None

    def __enter__(self) -> str:
        self.original_location = config.storage.location
        config.storage.location = self.location
        return self.location

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.original_location is not None:
            config.storage.location = self.original_location
