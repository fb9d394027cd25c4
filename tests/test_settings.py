"""Tests for discovery settings."""

import os

import pytest
from pydantic import ValidationError

from hue_discovery.models import DiscoveryMode
from hue_discovery.settings import CLOUD_DISCOVERY_URL, DiscoverySettings


@pytest.fixture
def clean_env(monkeypatch):
    """Remove HUE_DISCOVERY_* variables from the environment."""
    for suffix in ("MODE", "MDNS", "SSDP", "TIMEOUT", "CLOUD_URL", "EXTRA_IPS", "LOG_LEVEL"):
        monkeypatch.delenv(f"HUE_DISCOVERY_{suffix}", raising=False)
    return monkeypatch


class TestDiscoverySettings:
    """Test default values and validation."""

    def test_defaults(self):
        """Defaults match the documented timeouts."""
        settings = DiscoverySettings()

        assert settings.mode is DiscoveryMode.CONCURRENT
        assert settings.mdns_enabled is True
        assert settings.ssdp_enabled is False
        assert settings.session_timeout == 40.0
        assert settings.cloud_url == CLOUD_DISCOVERY_URL
        assert settings.cloud_timeout == 5.0
        assert settings.cloud_attempts == 3
        assert settings.mdns_timeout == 8.0
        assert settings.config_probe_timeout == 4.0
        assert settings.description_probe_timeout == 3.0
        assert settings.smart_probe_timeout == 2.0
        assert settings.ip_scan_timeout == 15.0
        assert settings.smart_timeout == 15.0

    def test_negative_timeout_rejected(self):
        """Timeouts must be positive."""
        with pytest.raises(ValidationError):
            DiscoverySettings(session_timeout=-1)

    def test_invalid_log_level(self):
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            DiscoverySettings(log_level="LOUD")

    def test_log_level_uppercased(self):
        """Log level is case-insensitive."""
        assert DiscoverySettings(log_level="debug").log_level == "DEBUG"

    def test_extra_ips_from_string(self):
        """Comma-separated ranges are split."""
        settings = DiscoverySettings(extra_ip_ranges="10.0.0.1-10.0.0.5, 192.168.7.0/29")
        assert settings.extra_ip_ranges == ["10.0.0.1-10.0.0.5", "192.168.7.0/29"]


class TestFromEnv:
    """Test environment loading."""

    def test_env_overrides(self, clean_env, tmp_path):
        """HUE_DISCOVERY_* variables populate settings."""
        clean_env.setenv("HUE_DISCOVERY_MODE", "sequential")
        clean_env.setenv("HUE_DISCOVERY_MDNS", "false")
        clean_env.setenv("HUE_DISCOVERY_TIMEOUT", "12.5")
        clean_env.setenv("HUE_DISCOVERY_EXTRA_IPS", "10.1.1.1")

        settings = DiscoverySettings.from_env(env_file=str(tmp_path / "missing.env"))

        assert settings.mode is DiscoveryMode.SEQUENTIAL
        assert settings.mdns_enabled is False
        assert settings.session_timeout == 12.5
        assert settings.extra_ip_ranges == ["10.1.1.1"]

    def test_keyword_overrides_win(self, clean_env):
        """Explicit overrides beat the environment; None means unset."""
        clean_env.setenv("HUE_DISCOVERY_SSDP", "true")

        settings = DiscoverySettings.from_env(env_file=None, ssdp_enabled=False, mode=None)

        assert settings.ssdp_enabled is False
        assert settings.mode is DiscoveryMode.CONCURRENT

    def test_dotenv_file(self, clean_env, tmp_path):
        """A .env file is loaded when present."""
        env_file = tmp_path / ".env"
        env_file.write_text("HUE_DISCOVERY_LOG_LEVEL=warning\n")

        try:
            settings = DiscoverySettings.from_env(env_file=str(env_file))
        finally:
            os.environ.pop("HUE_DISCOVERY_LOG_LEVEL", None)

        assert settings.log_level == "WARNING"
