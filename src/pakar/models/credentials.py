"""API key resolution: personal key first, shared system key second."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

import yaml

from ..errors import MissingCredentialError

__all__ = [
    "Credential",
    "CredentialOrigin",
    "KeyProvider",
    "KeyResolver",
    "UserKeyStore",
    "env_key_provider",
    "mask_key",
]


KeyProvider = Callable[[], Optional[str]]

DEFAULT_SYSTEM_ENV_VARS = ("GEMINI_API_KEY", "API_KEY", "VITE_GEMINI_API_KEY")


class CredentialOrigin(str, Enum):
    """Where a resolved API key came from."""

    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class Credential:
    """API key bound to its origin; fixed for a whole generation invocation."""

    value: str
    origin: CredentialOrigin

    def __repr__(self) -> str:
        return f"Credential(origin={self.origin.value!r}, value={mask_key(self.value)!r})"


class KeyResolver:
    """Pick the API key for a single generation call.

    Both providers are consulted on every ``resolve()`` so a personal key added
    mid-session takes effect on the next operation.
    """

    def __init__(self, *, user_key: Optional[KeyProvider] = None, system_key: Optional[KeyProvider] = None) -> None:
        self._user_key = user_key or (lambda: None)
        self._system_key = system_key or env_key_provider()

    def resolve(self) -> Credential:
        user_value = (self._user_key() or "").strip()
        if user_value:
            return Credential(user_value, CredentialOrigin.USER)
        system_value = (self._system_key() or "").strip()
        if system_value:
            return Credential(system_value, CredentialOrigin.SYSTEM)
        raise MissingCredentialError(
            "No API key available: set a personal key or configure GEMINI_API_KEY."
        )


def env_key_provider(names: Sequence[str] = DEFAULT_SYSTEM_ENV_VARS) -> KeyProvider:
    """Return a provider reading the first non-empty environment variable in ``names``."""
    candidates = tuple(names)

    def _provider() -> Optional[str]:
        for name in candidates:
            value = os.getenv(name)
            if value and value.strip():
                return value.strip()
        return None

    return _provider


class UserKeyStore:
    """YAML-backed store for the user's personal API key."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError):
            return None
        if not isinstance(data, dict):
            return None
        value = data.get("api_key")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def set(self, key: str) -> None:
        value = (key or "").strip()
        if not value:
            raise ValueError("API key must not be empty.")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump({"api_key": value}, handle, sort_keys=False)
        try:
            self._path.chmod(0o600)
        except OSError:
            pass

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return

    def has_custom_key(self) -> bool:
        return self.get() is not None


def mask_key(key: str) -> str:
    """Show only the head and tail of a key, e.g. ``AIzaSyAb...x7o9Qk``."""
    if not key or len(key) < 10:
        return "*" * 16
    return f"{key[:8]}...{key[-6:]}"
