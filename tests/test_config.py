from __future__ import annotations

import pytest
from pydantic import ValidationError

from luno.core.config import LunoConfig, load_config
from luno.exchange.request import BodyEncoding


def test_defaults_without_file_or_env(clean_env, tmp_path):
    cfg = load_config(str(tmp_path / "missing.yaml"))

    assert cfg.exchange.base_url == "https://api.mybitx.com"
    assert cfg.exchange.version == "1"
    assert cfg.exchange.default_pair == "XBTZAR"
    assert cfg.exchange.body_encoding is BodyEncoding.FORM
    assert cfg.exchange.timeout_seconds is None
    assert cfg.credentials.enabled is False


def test_yaml_values_are_loaded(clean_env, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "exchange:\n"
        "  default_pair: ethzar\n"
        "  version: 1\n"
        "  base_url: https://api.luno.com/\n"
        "  body_encoding: json\n"
        "credentials:\n"
        "  key: yaml-key\n"
        "  secret: yaml-secret\n"
    )

    cfg = load_config(str(path))

    assert cfg.exchange.default_pair == "ETHZAR"
    assert cfg.exchange.version == "1"
    assert cfg.exchange.base_url == "https://api.luno.com"
    assert cfg.exchange.body_encoding is BodyEncoding.JSON
    assert cfg.credentials.key == "yaml-key"


def test_env_overrides_yaml(clean_env, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("exchange:\n  default_pair: ETHZAR\n")
    clean_env.setenv("LUNO_KEY", "env-key")
    clean_env.setenv("LUNO_SECRET", "env-secret")
    clean_env.setenv("LUNO_DEFAULT_PAIR", "XBTMYR")
    clean_env.setenv("LUNO_BODY_ENCODING", "JSON")
    clean_env.setenv("LUNO_TIMEOUT_SECONDS", "12.5")
    clean_env.setenv("LOG_JSON", "yes")

    cfg = load_config(str(path))

    assert cfg.credentials.key == "env-key"
    assert cfg.credentials.secret == "env-secret"
    assert cfg.exchange.default_pair == "XBTMYR"
    assert cfg.exchange.body_encoding is BodyEncoding.JSON
    assert cfg.exchange.timeout_seconds == 12.5
    assert cfg.app.json_logs is True


def test_bad_env_value_keeps_yaml_value(clean_env, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("exchange:\n  timeout_seconds: 30\n")
    clean_env.setenv("LUNO_TIMEOUT_SECONDS", "soon")

    cfg = load_config(str(path))

    assert cfg.exchange.timeout_seconds == 30


def test_overrides_are_deep_merged(clean_env, tmp_path):
    cfg = load_config(
        str(tmp_path / "missing.yaml"),
        overrides={"exchange": {"default_pair": "XBTIDR"}, "app": {"log_level": "DEBUG"}},
    )

    assert cfg.exchange.default_pair == "XBTIDR"
    assert cfg.exchange.version == "1"
    assert cfg.app.log_level == "DEBUG"


def test_credentials_must_be_paired():
    with pytest.raises(ValidationError):
        LunoConfig(credentials={"key": "only-key"})


def test_unknown_body_encoding_is_rejected():
    with pytest.raises(ValidationError):
        LunoConfig(exchange={"body_encoding": "xml"})


def test_empty_default_pair_is_rejected():
    with pytest.raises(ValidationError):
        LunoConfig(exchange={"default_pair": "  "})
