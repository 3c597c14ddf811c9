"""
Configuration - Loads and validates client configuration.

Merges an optional YAML config with environment variables (and a ``.env``
file). Environment variables take precedence over YAML values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from luno.exchange.request import BodyEncoding


DEFAULT_CONFIG_PATH = "config/config.yaml"


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------

def _as_bool(v: str) -> bool:
    return v.lower() in ("1", "true", "yes", "on")


_ENV_MAPPINGS = {
    "LUNO_KEY": ("credentials", "key"),
    "LUNO_SECRET": ("credentials", "secret"),
    "LUNO_BASE_URL": ("exchange", "base_url"),
    "LUNO_API_VERSION": ("exchange", "version"),
    "LUNO_DEFAULT_PAIR": ("exchange", "default_pair"),
    "LUNO_BODY_ENCODING": ("exchange", "body_encoding", lambda v: v.strip().lower()),
    "LUNO_TIMEOUT_SECONDS": ("exchange", "timeout_seconds", float),
    "LOG_LEVEL": ("app", "log_level"),
    "LOG_DIR": ("app", "log_dir"),
    "LOG_JSON": ("app", "json_logs", _as_bool),
}


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    """Override YAML values with environment variables where set."""
    for env_key, mapping in _ENV_MAPPINGS.items():
        value = os.getenv(env_key)
        if value is None or value == "":
            continue
        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        if not isinstance(config.get(section), dict):
            config[section] = {}
        try:
            config[section][key] = converter(value)
        except (ValueError, TypeError) as e:
            logging.getLogger("config").warning(
                "Env %s=%r failed to convert: %s. Using YAML value.",
                env_key, value, e,
            )


# ---------------------------------------------------------------------------
# Pydantic Configuration Models
# ---------------------------------------------------------------------------

class CredentialsConfig(BaseModel):
    key: str = ""
    secret: str = ""

    @model_validator(mode="after")
    def _paired(self) -> "CredentialsConfig":
        if bool(self.key) != bool(self.secret):
            raise ValueError("key and secret must be supplied together")
        return self

    @property
    def enabled(self) -> bool:
        return bool(self.key and self.secret)


class ExchangeConfig(BaseModel):
    base_url: str = "https://api.mybitx.com"
    version: str = "1"
    default_pair: str = "XBTZAR"
    body_encoding: BodyEncoding = BodyEncoding.FORM
    # None disables the client-side timeout.
    timeout_seconds: Optional[float] = None

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @field_validator("version", mode="before")
    @classmethod
    def _version_str(cls, v: Any) -> str:
        return str(v).strip()

    @field_validator("default_pair")
    @classmethod
    def _upper_pair(cls, v: str) -> str:
        pair = (v or "").strip().upper()
        if not pair:
            raise ValueError("default_pair must not be empty")
        return pair

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    json_logs: bool = False


class LunoConfig(BaseModel):
    """Root configuration model."""
    app: AppConfig = Field(default_factory=AppConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)


def load_config(
    config_path: str = DEFAULT_CONFIG_PATH,
    overrides: Optional[Dict[str, Any]] = None,
) -> LunoConfig:
    """Load a fresh config (YAML + .env + env) with optional deep overrides."""
    load_dotenv()

    yaml_config: Dict[str, Any] = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r") as f:
            yaml_config = yaml.safe_load(f) or {}

    _apply_env_overrides(yaml_config)

    def _deep_update(dst: Dict[str, Any], src: Dict[str, Any]) -> None:
        for key, value in (src or {}).items():
            if isinstance(value, dict) and isinstance(dst.get(key), dict):
                _deep_update(dst[key], value)
            else:
                dst[key] = value

    if overrides:
        _deep_update(yaml_config, overrides)

    return LunoConfig(**yaml_config)
