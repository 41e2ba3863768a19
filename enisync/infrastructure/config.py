"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all enisync settings
- Falls back to sensible defaults when the config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Environment values arrive as strings and are coerced per field type
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetadataConfig:
    """Instance metadata service connection."""
    host: str = "169.254.169.254"
    port: int = 80
    open_timeout: float = 5.0
    read_timeout: float = 5.0
    retries: int = 5


@dataclass(frozen=True)
class ConvergenceConfig:
    """Polling budget for every wait-for-convergence step."""
    timeout: float = 120.0
    interval: float = 0.3


@dataclass(frozen=True)
class OwnershipConfig:
    owner_tag: str = "enisync"
    protect_seconds: int = 60


@dataclass(frozen=True)
class ConnectivityConfig:
    """Defaults for the ping-based connectivity test."""
    target: str = "8.8.8.8"
    timeout: int = 30


@dataclass(frozen=True)
class CloudConfig:
    region: str = ""  # empty: derive from the availability zone
    profile: str = ""


@dataclass(frozen=True)
class CommandsConfig:
    ip_path: str = "/sbin/ip"
    ping_path: str = "ping"
    sysfs_root: str = "/sys/class/net"


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class EniSyncConfig:
    """Root configuration for enisync."""
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    convergence: ConvergenceConfig = field(default_factory=ConvergenceConfig)
    ownership: OwnershipConfig = field(default_factory=OwnershipConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    commands: CommandsConfig = field(default_factory=CommandsConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"


DEFAULT_PATH = "enisync.json"

# field annotations are strings under `from __future__ import annotations`
_COERCE = {
    "int": int,
    "float": float,
    "bool": lambda value: value.strip().lower() in ("true", "1", "yes", "on"),
}


def _sections() -> dict[str, type]:
    """Section name -> section dataclass, read off EniSyncConfig itself."""
    return {
        f.name: f.default_factory
        for f in dataclasses.fields(EniSyncConfig)
        if f.default_factory is not dataclasses.MISSING
    }


def _env_override(data: dict, prefix: str = "ENISYNC") -> dict:
    """Overlay ENISYNC_SECTION_KEY variables onto the file data.

    The section is everything up to the first underscore after the prefix,
    so ENISYNC_OWNERSHIP_OWNER_TAG sets ownership.owner_tag. Top-level keys
    (ENISYNC_LOG_LEVEL) are matched first.
    """
    sections = _sections()
    top_level = {f.name for f in dataclasses.fields(EniSyncConfig)} - sections.keys()
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in top_level:
            data[name] = value
            continue
        section, _, field_name = name.partition("_")
        if section in sections and field_name:
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Invalid config file %s: expected a JSON object", path)
        return {}
    return data


def _build_section(cls: type, data: dict):
    """Build one section dataclass, ignoring unknown keys and coercing strings."""
    values = {}
    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        coerce = _COERCE.get(f.type)
        if isinstance(value, str) and coerce is not None:
            value = coerce(value)
        elif f.type == "float" and isinstance(value, int):
            value = float(value)
        values[f.name] = value
    return cls(**values)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "ENISYNC",
) -> EniSyncConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (ENISYNC_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to enisync.json in CWD.
        env_prefix: Environment variable prefix. Defaults to ENISYNC.
    """
    data = _env_override(_parse_config_file(Path(path or DEFAULT_PATH)), env_prefix)
    sections = {
        name: _build_section(cls, data[name] if isinstance(data.get(name), dict) else {})
        for name, cls in _sections().items()
    }
    return EniSyncConfig(**sections, log_level=data.get("log_level", "WARNING"))
