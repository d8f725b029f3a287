"""Service layer helpers (settings persistence)."""

from .settings import SecretVault, Settings, SettingsStore, load_settings, redact_secret

__all__ = ["SecretVault", "Settings", "SettingsStore", "load_settings", "redact_secret"]
