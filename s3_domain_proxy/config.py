from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

LOG = logging.getLogger("s3_domain_proxy.config")

DEFAULT_PORT = "8080"
DEFAULT_CONFIG_PATH = "config.yaml"

SAMPLE_DOMAIN = "example.com"
SAMPLE_BACKEND: dict[str, Any] = {
    "bucket": "<your-s3-bucket>",
    "region": "<your-s3-region>",
    "endpoint": "<your-s3-endpoint>",
    "access_key": "<your-s3-access-key>",
    "secret_key": "<your-s3-secret-key>",
    "path_prefix": "<your-s3-path-prefix>",
    "use_path_style": False,
}


class BackendConfig(BaseModel):
    """Storage settings for one public domain."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    bucket: str
    region: str
    endpoint: str | None = None
    access_key: str = ""
    secret_key: str = ""
    path_prefix: str = ""
    use_path_style: bool = False

    @field_validator("endpoint", mode="before")
    @classmethod
    def _empty_endpoint_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("path_prefix", mode="before")
    @classmethod
    def _null_prefix_is_empty(cls, value: object) -> object:
        return "" if value is None else value


class ProxyConfig(BaseModel):
    """Listen port plus the Host → backend table."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    port: str = DEFAULT_PORT
    domains: dict[str, BackendConfig] = Field(default_factory=dict)

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, value: object) -> object:
        if value is None or value == "":
            return DEFAULT_PORT
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: str) -> str:
        if not value.isdigit() or not 0 < int(value) < 65536:
            msg = f"invalid port {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("domains", mode="before")
    @classmethod
    def _null_domains_is_empty(cls, value: object) -> object:
        return {} if value is None else value


class ServerSettings(BaseSettings):
    """Process settings read from ``S3_DOMAIN_PROXY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="S3_DOMAIN_PROXY_", case_sensitive=False, extra="ignore"
    )

    config: str = DEFAULT_CONFIG_PATH
    host: str = "0.0.0.0"
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    metrics_enabled: bool = False
    log_level: str = "INFO"


def load_config(path: str | Path) -> ProxyConfig:
    """Load and validate a YAML configuration document.

    Raises:
        ConfigError: if the file cannot be read, is not valid YAML, or does
            not match the configuration schema.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        msg = f"cannot read config file {path}: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"malformed config file {path}: {exc}"
        raise ConfigError(msg) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"config file {path} must contain a mapping at the top level"
        raise ConfigError(msg)

    try:
        config = ProxyConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"invalid config file {path}: {exc}"
        raise ConfigError(msg) from exc

    LOG.debug("loaded config %s (%d domains)", path, len(config.domains))
    return config


def sample_config() -> dict[str, Any]:
    return {
        "port": DEFAULT_PORT,
        "domains": {SAMPLE_DOMAIN: dict(SAMPLE_BACKEND)},
    }


def write_sample_config(path: str | Path) -> Path:
    """Write a sample configuration with placeholder values to ``path``."""
    path = Path(path)
    try:
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(sample_config(), f, sort_keys=False, allow_unicode=True)
    except OSError as exc:
        msg = f"failed to write config file {path}: {exc}"
        raise ConfigError(msg) from exc
    return path
