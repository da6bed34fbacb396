"""YAML configuration, environment overrides and client construction."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .models.credentials import DEFAULT_SYSTEM_ENV_VARS, KeyResolver, UserKeyStore, env_key_provider
from .models.gemini import DEFAULT_BASE_URL, GeminiClient
from .models.llm_client import DEFAULT_MAX_ATTEMPTS, RetryPolicy
from .operations.finalize import DEFAULT_FINALIZE_MODEL
from .prompts import SYSTEM_INSTRUCTION

DEFAULT_CONFIG_NAME = "config.yaml"
DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_USER_KEY_PATH = "~/.config/pakar/credentials.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "models": {
        "default": DEFAULT_MODEL,
        "finalize": DEFAULT_FINALIZE_MODEL,
        "base_url": DEFAULT_BASE_URL,
        "timeout": 120,
    },
    "retry": {
        "max_attempts": DEFAULT_MAX_ATTEMPTS,
        "base_delay": 1.0,
        "quota_base_delay": 4.0,
        "multiplier": 1.5,
    },
    "credentials": {
        "system_env_vars": list(DEFAULT_SYSTEM_ENV_VARS),
        "user_key_path": DEFAULT_USER_KEY_PATH,
    },
    "paths": {
        "logs": "data/logs",
    },
}


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load YAML configuration merged over the defaults, then apply env overrides."""
    data = copy_config_template()
    if config_path is not None and config_path.exists():
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as error:
            raise ConfigError(f"Failed to parse config {config_path}: {error}") from error
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration must be a mapping at the top level.")
        data = _deep_merge(data, loaded)
    return _apply_env_overrides(data)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    models = data.setdefault("models", {})
    model = os.getenv("PAKAR_MODEL")
    if model:
        models["default"] = model
    finalize_model = os.getenv("PAKAR_FINALIZE_MODEL")
    if finalize_model:
        models["finalize"] = finalize_model
    timeout = os.getenv("PAKAR_TIMEOUT")
    if timeout:
        try:
            parsed = float(timeout)
            if parsed > 0:
                models["timeout"] = parsed
        except ValueError:
            pass
    logs_dir = os.getenv("PAKAR_LOGS_DIR")
    if logs_dir:
        data.setdefault("paths", {})["logs"] = logs_dir
    return data


@dataclass(slots=True)
class Settings:
    """Typed view over the configuration mapping."""

    model: str = DEFAULT_MODEL
    finalize_model: str = DEFAULT_FINALIZE_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 120.0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = 1.0
    quota_base_delay: float = 4.0
    multiplier: float = 1.5
    system_env_vars: List[str] = field(default_factory=lambda: list(DEFAULT_SYSTEM_ENV_VARS))
    user_key_path: Path = Path(DEFAULT_USER_KEY_PATH)
    logs_root: Optional[Path] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, root: Optional[Path] = None) -> "Settings":
        models = config.get("models") or {}
        retry = config.get("retry") or {}
        credentials = config.get("credentials") or {}
        paths = config.get("paths") or {}
        env_vars = credentials.get("system_env_vars") or list(DEFAULT_SYSTEM_ENV_VARS)
        if isinstance(env_vars, str):
            env_vars = [env_vars]

        logs_root: Optional[Path] = None
        logs_value = paths.get("logs")
        if isinstance(logs_value, str) and logs_value.strip():
            logs_root = Path(logs_value.strip()).expanduser()
            if not logs_root.is_absolute() and root is not None:
                logs_root = root / logs_root

        try:
            return cls(
                model=str(models.get("default") or DEFAULT_MODEL),
                finalize_model=str(models.get("finalize") or DEFAULT_FINALIZE_MODEL),
                base_url=str(models.get("base_url") or DEFAULT_BASE_URL),
                timeout=float(models.get("timeout", 120.0)),
                max_attempts=int(retry.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
                base_delay=float(retry.get("base_delay", 1.0)),
                quota_base_delay=float(retry.get("quota_base_delay", 4.0)),
                multiplier=float(retry.get("multiplier", 1.5)),
                system_env_vars=[str(name) for name in env_vars],
                user_key_path=Path(str(credentials.get("user_key_path") or DEFAULT_USER_KEY_PATH)).expanduser(),
                logs_root=logs_root,
            )
        except (TypeError, ValueError) as error:
            raise ConfigError(f"Invalid configuration value: {error}") from error

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            base_delay=self.base_delay,
            quota_base_delay=self.quota_base_delay,
            multiplier=self.multiplier,
        )

    def key_store(self) -> UserKeyStore:
        return UserKeyStore(self.user_key_path)

    def key_resolver(self) -> KeyResolver:
        return KeyResolver(user_key=self.key_store().get, system_key=env_key_provider(self.system_env_vars))


def build_client(settings: Settings, **overrides: Any) -> GeminiClient:
    """Construct the production Gemini client described by ``settings``."""
    options: Dict[str, Any] = {
        "model": settings.model,
        "key_resolver": settings.key_resolver(),
        "system_instruction": SYSTEM_INSTRUCTION,
        "base_url": settings.base_url,
        "timeout": settings.timeout,
        "max_attempts": settings.max_attempts,
        "retry_policy": settings.retry_policy,
    }
    options.update(overrides)
    return GeminiClient(**options)


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "DEFAULT_MODEL",
    "Settings",
    "build_client",
    "copy_config_template",
    "load_config",
    "write_config",
]
