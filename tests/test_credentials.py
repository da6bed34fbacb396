from __future__ import annotations

from pathlib import Path

import pytest

from pakar.errors import MissingCredentialError
from pakar.models.credentials import (
    CredentialOrigin,
    KeyResolver,
    UserKeyStore,
    env_key_provider,
    mask_key,
)


def test_user_key_takes_priority_over_system_key() -> None:
    resolver = KeyResolver(user_key=lambda: "user-key-123", system_key=lambda: "system-key-456")
    credential = resolver.resolve()
    assert credential.value == "user-key-123"
    assert credential.origin is CredentialOrigin.USER


def test_blank_user_key_falls_back_to_system_key() -> None:
    resolver = KeyResolver(user_key=lambda: "   ", system_key=lambda: "system-key-456")
    credential = resolver.resolve()
    assert credential.value == "system-key-456"
    assert credential.origin is CredentialOrigin.SYSTEM


def test_missing_keys_raise_before_any_call() -> None:
    resolver = KeyResolver(user_key=lambda: None, system_key=lambda: "")
    with pytest.raises(MissingCredentialError):
        resolver.resolve()


def test_resolver_picks_up_key_stored_mid_session(tmp_path: Path) -> None:
    store = UserKeyStore(tmp_path / "credentials.yaml")
    resolver = KeyResolver(user_key=store.get, system_key=lambda: "system-key-456")
    assert resolver.resolve().origin is CredentialOrigin.SYSTEM

    store.set("personal-key-789")
    credential = resolver.resolve()
    assert credential.value == "personal-key-789"
    assert credential.origin is CredentialOrigin.USER


def test_user_key_store_set_get_clear(tmp_path: Path) -> None:
    store = UserKeyStore(tmp_path / "nested" / "credentials.yaml")
    assert store.get() is None
    assert not store.has_custom_key()

    store.set("  AIzaSyExampleKey0001  ")
    assert store.get() == "AIzaSyExampleKey0001"
    assert store.has_custom_key()

    store.clear()
    assert store.get() is None
    store.clear()


def test_user_key_store_rejects_empty_key(tmp_path: Path) -> None:
    store = UserKeyStore(tmp_path / "credentials.yaml")
    with pytest.raises(ValueError):
        store.set("   ")
    assert not store.path.exists()


def test_env_provider_uses_first_non_empty_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("API_KEY", "from-api-key")
    monkeypatch.setenv("VITE_GEMINI_API_KEY", "from-vite")
    assert env_key_provider()() == "from-api-key"


def test_mask_key_hides_the_middle() -> None:
    assert mask_key("AIzaSyAbcdefghijklmnop") == "AIzaSyAb...klmnop"
    assert mask_key("short") == "*" * 16


def test_credential_repr_does_not_leak_key() -> None:
    credential = KeyResolver(user_key=lambda: "AIzaSyAbcdefghijklmnop").resolve()
    assert "AIzaSyAbcdefghijklmnop" not in repr(credential)
