"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..agent.capability import DEFAULT_BASE_URL, DEFAULT_MODEL, CapabilitySettings
from ..agent.session import AgentConfig
from ..chat.history import DEFAULT_MAX_MESSAGES
from ..chat.pipeline import DEFAULT_CHAT_TIMEOUT, ChatConfig
from ..utils.logging import configure_logging

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
    "load_settings",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".noteagent"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "NOTEAGENT_CREDENTIAL": "credential",
    "NOTEAGENT_BASE_URL": "base_url",
    "NOTEAGENT_MODEL": "model",
    "NOTEAGENT_PERSIST_KEY": "persist_key",
    "NOTEAGENT_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "NOTEAGENT_DEBUG_LOGGING": "debug_logging",
    "NOTEAGENT_AUTO_START": "auto_start",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "NOTEAGENT_REQUEST_TIMEOUT": "request_timeout",
    "NOTEAGENT_TEMPERATURE": "temperature",
    "NOTEAGENT_CHAT_TIMEOUT": "chat_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "NOTEAGENT_MAX_TOKENS": "max_tokens",
    "NOTEAGENT_MAX_MESSAGES": "max_messages",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_CREDENTIAL_FIELD = "credential_ciphertext"
_FERNET_PREFIX = "fernet"


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    base_url: str = DEFAULT_BASE_URL
    credential: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.5
    max_tokens: int = 1000
    top_p: float = 0.95
    request_timeout: float = 60.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    auto_start: bool = True
    max_messages: int = DEFAULT_MAX_MESSAGES
    chat_timeout: float = DEFAULT_CHAT_TIMEOUT
    persist_key: str = "default"
    debug_logging: bool = False
    log_dir: str = ""
    default_headers: dict[str, str] = field(default_factory=dict)

    def capability_settings(self) -> CapabilitySettings:
        return CapabilitySettings(
            base_url=self.base_url,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            default_headers=dict(self.default_headers) or None,
            debug_logging=self.debug_logging,
        )

    def agent_config(self) -> AgentConfig:
        return AgentConfig(credential=self.credential, auto_start=self.auto_start)

    def chat_config(self) -> ChatConfig:
        return ChatConfig(max_messages=self.max_messages, timeout=self.chat_timeout)


class SecretVault:
    """Encrypts and decrypts the credential with a Fernet key stored on disk."""

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{_FERNET_PREFIX}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, payload = _split_token(token)
        if prefix not in (None, _FERNET_PREFIX):
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply caller and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            credential, migrated = self._decrypt_credential(
                payload.pop(_CREDENTIAL_FIELD, None), payload.pop("credential", None)
            )
            try:
                settings = Settings(**_filter_fields(payload))
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if credential:
                settings = replace(settings, credential=credential)
            if migrated or payload.get("version") != _SETTINGS_VERSION:
                try:
                    self.save(settings)
                except OSError as exc:
                    LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="caller")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        body = json.dumps(self._serialize(settings), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        credential = data.pop("credential", "") or ""
        if credential:
            data[_CREDENTIAL_FIELD] = self._vault.encrypt(credential)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not hold an object", self._path)
            return {}
        return data

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings

    def _decrypt_credential(self, ciphertext: str | None, legacy_plaintext: str | None) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt credential: %s", exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected plaintext credential; migrating to encrypted storage.")
            return legacy_plaintext, True
        return "", False


def _split_token(token: str) -> tuple[str | None, str]:
    if ":" not in token:
        return None, token
    prefix, payload = token.split(":", 1)
    return (prefix or None), payload


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - {"credential"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def load_settings(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    console: bool = True,
) -> Settings:
    """Load settings from ``path`` and apply their logging configuration."""

    settings = SettingsStore(path).load(overrides=overrides)
    configure_logging(settings, console=console)
    LOGGER.info("Settings loaded (model=%s, credential=%s)", settings.model, redact_secret(settings.credential) or "<unset>")
    return settings
