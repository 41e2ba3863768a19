"""Tests for configuration module."""

import json
import os
from unittest.mock import patch

from enisync.infrastructure.config import (
    CommandsConfig,
    ConvergenceConfig,
    EniSyncConfig,
    MetadataConfig,
    OwnershipConfig,
    TelemetryConfig,
    load_config,
)


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/enisync.json")
        assert config.log_level == "WARNING"
        assert config.metadata.host == "169.254.169.254"
        assert config.metadata.retries == 5
        assert config.convergence.timeout == 120.0
        assert config.convergence.interval == 0.3
        assert config.ownership.owner_tag == "enisync"
        assert config.ownership.protect_seconds == 60
        assert config.connectivity.target == "8.8.8.8"
        assert config.cloud.region == ""
        assert config.commands.ip_path == "/sbin/ip"
        assert config.telemetry.endpoint == ""

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/enisync.json")
        assert isinstance(config.metadata, MetadataConfig)
        assert isinstance(config.convergence, ConvergenceConfig)
        assert isinstance(config.ownership, OwnershipConfig)
        assert isinstance(config.commands, CommandsConfig)
        assert isinstance(config.telemetry, TelemetryConfig)

    def test_dataclass_defaults_match_loader(self):
        assert load_config(path="/nonexistent/enisync.json") == EniSyncConfig()


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "enisync.json"
        config_file.write_text(json.dumps({
            "log_level": "DEBUG",
            "convergence": {"timeout": 300, "interval": 1},
            "ownership": {"owner_tag": "platform-team"},
            "cloud": {"region": "eu-west-1"},
        }))

        config = load_config(path=str(config_file))
        assert config.log_level == "DEBUG"
        assert config.convergence.timeout == 300.0
        assert isinstance(config.convergence.interval, float)
        assert config.ownership.owner_tag == "platform-team"
        assert config.cloud.region == "eu-west-1"

    def test_partial_config(self, tmp_path):
        config_file = tmp_path / "enisync.json"
        config_file.write_text(json.dumps({"metadata": {"retries": 2}}))

        config = load_config(path=str(config_file))
        assert config.metadata.retries == 2
        assert config.metadata.port == 80  # default preserved
        assert config.ownership.protect_seconds == 60  # default preserved

    def test_invalid_json_returns_defaults(self, tmp_path):
        config_file = tmp_path / "enisync.json"
        config_file.write_text("not valid json{{{")

        config = load_config(path=str(config_file))
        assert config.convergence.timeout == 120.0

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "enisync.json"
        config_file.write_text(json.dumps({
            "ownership": {"protect_seconds": 10, "unknown_key": "ignored"},
        }))

        config = load_config(path=str(config_file))
        assert config.ownership.protect_seconds == 10


class TestEnvOverride:
    def test_env_overrides_file(self, tmp_path):
        config_file = tmp_path / "enisync.json"
        config_file.write_text(json.dumps({"convergence": {"timeout": 60}}))

        with patch.dict(os.environ, {"ENISYNC_CONVERGENCE_TIMEOUT": "90"}):
            config = load_config(path=str(config_file))
        assert config.convergence.timeout == 90.0

    def test_env_coerces_types(self):
        with patch.dict(os.environ, {
            "ENISYNC_METADATA_RETRIES": "7",
            "ENISYNC_TELEMETRY_INSECURE": "true",
            "ENISYNC_CLOUD_PROFILE": "ops",
        }):
            config = load_config(path="/nonexistent/enisync.json")
        assert config.metadata.retries == 7
        assert config.telemetry.insecure is True
        assert config.cloud.profile == "ops"

    def test_env_field_names_with_underscores(self):
        with patch.dict(os.environ, {"ENISYNC_OWNERSHIP_OWNER_TAG": "blue"}):
            config = load_config(path="/nonexistent/enisync.json")
        assert config.ownership.owner_tag == "blue"

    def test_env_log_level(self):
        with patch.dict(os.environ, {"ENISYNC_LOG_LEVEL": "INFO"}):
            config = load_config(path="/nonexistent/enisync.json")
        assert config.log_level == "INFO"

    def test_custom_prefix(self):
        with patch.dict(os.environ, {"CUSTOM_CLOUD_REGION": "us-west-2"}):
            config = load_config(path="/nonexistent/enisync.json", env_prefix="CUSTOM")
        assert config.cloud.region == "us-west-2"
