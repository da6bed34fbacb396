from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from pakar.config import (
    DEFAULT_MODEL,
    ConfigError,
    Settings,
    build_client,
    copy_config_template,
    load_config,
    write_config,
)
from pakar.models.credentials import CredentialOrigin
from pakar.operations.finalize import DEFAULT_FINALIZE_MODEL


def test_missing_config_file_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.yaml")
    settings = Settings.from_config(config)

    assert settings.model == DEFAULT_MODEL
    assert settings.finalize_model == DEFAULT_FINALIZE_MODEL
    assert settings.max_attempts == 3
    assert settings.retry_policy.quota_base_delay == 4.0


def test_config_file_is_merged_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump({"models": {"default": "gemini-custom"}, "retry": {"max_attempts": 5}}),
        encoding="utf-8",
    )

    settings = Settings.from_config(load_config(path), root=tmp_path)

    assert settings.model == "gemini-custom"
    assert settings.finalize_model == DEFAULT_FINALIZE_MODEL
    assert settings.max_attempts == 5
    assert settings.logs_root == tmp_path / "data" / "logs"


def test_environment_overrides_win(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAKAR_MODEL", "gemini-env")
    monkeypatch.setenv("PAKAR_TIMEOUT", "15")
    monkeypatch.setenv("PAKAR_LOGS_DIR", str(tmp_path / "logs"))

    settings = Settings.from_config(load_config(None))

    assert settings.model == "gemini-env"
    assert settings.timeout == 15.0
    assert settings.logs_root == tmp_path / "logs"


def test_malformed_yaml_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("models: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_non_numeric_retry_value_raises_config_error() -> None:
    config = copy_config_template()
    config["retry"]["max_attempts"] = "banyak"
    with pytest.raises(ConfigError):
        Settings.from_config(config)


def test_write_config_round_trips_template(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.yaml"
    write_config(path, copy_config_template())
    assert load_config(path) == copy_config_template()


def test_build_client_prefers_stored_user_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "system-key-000001")
    config = copy_config_template()
    config["credentials"]["user_key_path"] = str(tmp_path / "credentials.yaml")
    settings = Settings.from_config(config)

    assert settings.key_resolver().resolve().origin is CredentialOrigin.SYSTEM
    settings.key_store().set("personal-key-000002")
    assert settings.key_resolver().resolve().value == "personal-key-000002"

    client = build_client(settings, model="gemini-override")
    assert client.model == "gemini-override"
    assert client.retry_policy == settings.retry_policy
