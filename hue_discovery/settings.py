"""Discovery settings with environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from .models import DiscoveryMode

CLOUD_DISCOVERY_URL = "https://discovery.meethue.com"
ENV_PREFIX = "HUE_DISCOVERY_"

# env var suffix -> settings field
_ENV_FIELDS: Dict[str, str] = {
    "MODE": "mode",
    "MDNS": "mdns_enabled",
    "SSDP": "ssdp_enabled",
    "TIMEOUT": "session_timeout",
    "CLOUD_URL": "cloud_url",
    "EXTRA_IPS": "extra_ip_ranges",
    "LOG_LEVEL": "log_level",
}


class DiscoverySettings(BaseModel):
    """Tunable timeouts and strategy selection for a discovery session."""

    mode: DiscoveryMode = Field(default=DiscoveryMode.CONCURRENT)
    mdns_enabled: bool = Field(default=True)
    ssdp_enabled: bool = Field(default=False)

    session_timeout: float = Field(default=40.0, gt=0, le=600)

    cloud_url: str = Field(default=CLOUD_DISCOVERY_URL)
    cloud_timeout: float = Field(default=5.0, gt=0, le=60)
    cloud_attempts: int = Field(default=3, ge=1, le=10)

    mdns_timeout: float = Field(default=8.0, gt=0, le=60)
    ssdp_timeout: float = Field(default=6.0, gt=0, le=60)

    config_probe_timeout: float = Field(default=4.0, gt=0, le=30)
    description_probe_timeout: float = Field(default=3.0, gt=0, le=30)
    smart_probe_timeout: float = Field(default=2.0, gt=0, le=30)
    probe_attempts: int = Field(default=2, ge=1, le=5)
    max_concurrent_probes: int = Field(default=16, ge=1, le=256)

    ip_scan_timeout: float = Field(default=15.0, gt=0, le=300)
    smart_timeout: float = Field(default=15.0, gt=0, le=300)

    extra_ip_ranges: List[str] = Field(default_factory=list)
    log_level: str = Field(default="INFO")

    @field_validator("extra_ip_ranges", mode="before")
    @classmethod
    def split_ip_ranges(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env", **overrides: Any) -> DiscoverySettings:
        """Build settings from ``HUE_DISCOVERY_*`` variables.

        A ``.env`` file is loaded first when present; explicit keyword
        overrides win over the environment.
        """
        if env_file and Path(env_file).exists():
            load_dotenv(env_file)
            logger.debug(f"Loaded environment from {env_file}")

        values: Dict[str, Any] = {}
        for suffix, field_name in _ENV_FIELDS.items():
            raw = os.getenv(f"{ENV_PREFIX}{suffix}")
            if raw is not None and raw != "":
                values[field_name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
