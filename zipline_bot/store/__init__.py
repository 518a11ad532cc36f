"""Durable per-user state: Zipline tokens and upload preferences.

WHY: Both survive restarts and are looked up on every command, so they
are small write-through JSON files rather than a database.

HOW: JsonFileStore handles the file; CredentialStore and SettingsStore add
the typed get/set/delete contract for their record shape.

RULES:
- One store instance per file, injected into the bot (no module globals)
- Every mutation is on disk before the call returns
"""

from zipline_bot.store.credentials import CredentialStore
from zipline_bot.store.settings import SettingsStore, UserUploadSettings

__all__ = ["CredentialStore", "SettingsStore", "UserUploadSettings"]
