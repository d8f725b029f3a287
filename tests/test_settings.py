"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from noteagent.agent.session import AgentConfig
from noteagent.chat.pipeline import ChatConfig
from noteagent.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "key"))


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NOTEAGENT_CREDENTIAL",
        "NOTEAGENT_BASE_URL",
        "NOTEAGENT_MODEL",
        "NOTEAGENT_PERSIST_KEY",
        "NOTEAGENT_LOG_DIR",
        "NOTEAGENT_DEBUG_LOGGING",
        "NOTEAGENT_AUTO_START",
        "NOTEAGENT_REQUEST_TIMEOUT",
        "NOTEAGENT_TEMPERATURE",
        "NOTEAGENT_CHAT_TIMEOUT",
        "NOTEAGENT_MAX_TOKENS",
        "NOTEAGENT_MAX_MESSAGES",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    assert _store(tmp_path).load() == Settings()


def test_defaults_match_service_parameters() -> None:
    settings = Settings()

    assert settings.model == "aimo-chat"
    assert settings.temperature == 0.5
    assert settings.max_tokens == 1000
    assert settings.top_p == 0.95
    assert settings.max_messages == 50
    assert settings.chat_timeout == 30.0


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = Settings(
        base_url="https://example.com/v1",
        credential="a.b.c",
        model="custom",
        max_messages=10,
        chat_timeout=5.0,
        persist_key="work",
        default_headers={"X-Test": "1"},
    )

    store.save(original)

    assert _store(tmp_path).load() == original


def test_credential_is_encrypted_on_disk(tmp_path: Path) -> None:
    store = _store(tmp_path)

    store.save(Settings(credential="header.payload.signature"))

    payload = json.loads(store.path.read_text(encoding="utf-8"))
    assert "credential" not in payload
    assert payload["credential_ciphertext"].startswith("fernet:")
    assert "header.payload.signature" not in store.path.read_text(encoding="utf-8")


def test_plaintext_credential_is_migrated(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text(json.dumps({"credential": "a.b.c", "model": "m"}), encoding="utf-8")

    settings = store.load()

    assert settings.credential == "a.b.c"
    assert settings.model == "m"
    assert "credential_ciphertext" in json.loads(store.path.read_text(encoding="utf-8"))


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text("{broken", encoding="utf-8")

    assert store.load() == Settings()


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text(json.dumps({"version": 1, "theme": "dark", "max_tokens": 42}), encoding="utf-8")

    assert store.load().max_tokens == 42


def test_overrides_and_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTEAGENT_MODEL", "env-model")
    monkeypatch.setenv("NOTEAGENT_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("NOTEAGENT_MAX_MESSAGES", "12")
    monkeypatch.setenv("NOTEAGENT_CHAT_TIMEOUT", "not-a-number")

    settings = _store(tmp_path).load(overrides={"persist_key": "cli", "model": "cli-model", "bogus": 1})

    assert settings.model == "env-model"
    assert settings.persist_key == "cli"
    assert settings.debug_logging is True
    assert settings.max_messages == 12
    assert settings.chat_timeout == 30.0


def test_derived_configs() -> None:
    settings = Settings(credential="a.b.c", auto_start=False, max_messages=7, chat_timeout=2.5, model="m")

    assert settings.agent_config() == AgentConfig(credential="a.b.c", auto_start=False)
    assert settings.chat_config() == ChatConfig(max_messages=7, timeout=2.5)
    assert settings.capability_settings().model == "m"
    assert settings.capability_settings().default_headers is None


def test_vault_round_trip_and_tampering(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    token = vault.encrypt("secret")

    assert vault.decrypt(token) == "secret"
    assert vault.decrypt("") == ""
    with pytest.raises(ValueError):
        vault.decrypt("fernet:garbage")
    with pytest.raises(ValueError):
        vault.decrypt("dpapi:whatever")


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("abcdefgh") == "ab****gh"
