"""Configuration loading utilities for appian-deployer.

Precedence, highest first: command-line overrides, environment variables
(a ``.env`` file is loaded into the environment), the JSON config file, and
the dataclass defaults below.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .orchestrator.models import PollPolicy
from .paths import DEFAULT_CONFIG_PATH

logger = logging.getLogger(__name__)

# Load .env file if it exists
load_dotenv()

DEFAULT_BASE_URL = "https://mysite.appiancloud.com"


@dataclass
class ApiConfig:
    """Connection settings for the deployment REST API."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    timeout_seconds: float = 300
    proxy: Optional[str] = None  # 代理设置，如 "http://127.0.0.1:7890"

    def validate(self) -> None:
        if not self.base_url:
            raise ConfigurationError("base_url cannot be empty")
        if not self.api_key:
            raise ConfigurationError(
                "api_key cannot be empty (use --api-key, APPIAN_API_KEY or the config file)"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be greater than 0")

    def api_url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass
class LoggingConfig:
    level: str = "info"
    json: bool = False


@dataclass
class DownloadConfig:
    dir: str = "."


@dataclass
class MonitorConfig:
    """Default poll policy and log-follow cadence."""

    interval_seconds: float = 10
    timeout_seconds: float = 3600
    max_consecutive_transient_errors: int = 5
    logs_follow_interval_seconds: float = 2
    max_parallel: int = 4

    def poll_policy(
        self,
        interval_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        max_consecutive_transient_errors: Optional[int] = None,
    ) -> PollPolicy:
        return PollPolicy(
            interval_seconds=self.interval_seconds if interval_seconds is None else interval_seconds,
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
            max_consecutive_transient_errors=(
                self.max_consecutive_transient_errors
                if max_consecutive_transient_errors is None
                else max_consecutive_transient_errors
            ),
        )


@dataclass
class CliOverrides:
    base_url: Optional[str] = None
    api_key: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level configuration."""

    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        def section(klass, name: str):
            data = payload.get(name, {}) or {}
            # 过滤掉以下划线开头的注释字段和未知字段
            known = {f.name for f in fields(klass)}
            unknown = [k for k in data if k not in known and not k.startswith("_")]
            if unknown:
                logger.warning("Ignoring unknown %s settings: %s", name, ", ".join(sorted(unknown)))
            return klass(**{k: v for k, v in data.items() if k in known})

        return cls(
            api=section(ApiConfig, "api"),
            logging=section(LoggingConfig, "logging"),
            download=section(DownloadConfig, "download"),
            monitor=section(MonitorConfig, "monitor"),
        )


_ENV_OVERRIDES: Dict[str, tuple] = {
    "APPIAN_BASE_URL": ("api", "base_url", str),
    "APPIAN_API_KEY": ("api", "api_key", str),
    "APPIAN_TIMEOUT_SECONDS": ("api", "timeout_seconds", float),
    "APPIAN_PROXY": ("api", "proxy", str),
    "APPIAN_LOG_LEVEL": ("logging", "level", str),
    "APPIAN_DOWNLOAD_DIR": ("download", "dir", str),
    "APPIAN_POLL_INTERVAL_SECONDS": ("monitor", "interval_seconds", float),
    "APPIAN_POLL_TIMEOUT_SECONDS": ("monitor", "timeout_seconds", float),
}


def _apply_env(config: AppConfig) -> None:
    for variable, (section_name, attribute, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(variable)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid value for {variable}: {raw!r}") from exc
        setattr(getattr(config, section_name), attribute, value)


def _read_file(path: Path) -> AppConfig:
    logger.info("Loading configuration from: %s", path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return AppConfig.from_dict(data)


def load_config(
    path: Optional[str] = None,
    overrides: Optional[CliOverrides] = None,
) -> AppConfig:
    """Resolve the configuration once at process start.

    An explicit ``path`` must exist. Without one, ``appian-deployer.json`` in
    the working directory is used when present, otherwise only the
    environment and defaults apply.

    Environment variables (higher priority than the config file):
    - APPIAN_BASE_URL, APPIAN_API_KEY, APPIAN_TIMEOUT_SECONDS, APPIAN_PROXY
    - APPIAN_LOG_LEVEL, APPIAN_DOWNLOAD_DIR
    - APPIAN_POLL_INTERVAL_SECONDS, APPIAN_POLL_TIMEOUT_SECONDS
    """
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise ConfigurationError(f"Could not find configuration file: {candidate}")
        config = _read_file(candidate)
    elif DEFAULT_CONFIG_PATH.is_file():
        config = _read_file(DEFAULT_CONFIG_PATH)
    else:
        logger.debug("No config file found, using environment and defaults")
        config = AppConfig()

    _apply_env(config)

    if overrides is not None:
        if overrides.base_url:
            config.api.base_url = overrides.base_url
        if overrides.api_key:
            config.api.api_key = overrides.api_key
    return config


def redacted(config: AppConfig) -> Dict[str, Any]:
    """Config as a dict with the API key masked, for debug output."""
    data = {
        "api": vars(config.api).copy(),
        "logging": vars(config.logging).copy(),
        "download": vars(config.download).copy(),
        "monitor": vars(config.monitor).copy(),
    }
    if data["api"]["api_key"]:
        data["api"]["api_key"] = "***"
    return data
