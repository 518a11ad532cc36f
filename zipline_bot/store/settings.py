"""Per-user upload preferences (expiry and image compression).

WHY: Users want every upload to expire or be compressed the same way
without repeating it on each shared file. The preferences are sent to
Zipline as upload headers.

HOW: A JsonFileStore whose values are {"expiry": ..., "compression": ...}
dicts (the userSettings.json layout), exposed as UserUploadSettings.

RULES:
- get() never fails for unknown users; it returns the all-None default
- set() trims both fields and stores blank strings as None
- Unknown keys in the file are ignored on read
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from zipline_bot.store.base import JsonFileStore

logger = logging.getLogger(__name__)


def _normalize(value: Optional[str]) -> Optional[str]:
    """Trim whitespace; empty or whitespace-only becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class UserUploadSettings:
    """Upload preferences for one user.

    RULES:
    - expiry: duration ("7d", "1h") or date string, passed through to Zipline
    - compression: image compression level/percent, passed through to Zipline
    - Both None means "use the server defaults"
    """

    expiry: Optional[str] = None
    compression: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> UserUploadSettings:
        if not isinstance(data, dict):
            return cls()
        return cls(
            expiry=_normalize(data.get("expiry")),
            compression=_normalize(data.get("compression")),
        )

    def normalized(self) -> UserUploadSettings:
        return UserUploadSettings(
            expiry=_normalize(self.expiry),
            compression=_normalize(self.compression),
        )

    def is_default(self) -> bool:
        return self.expiry is None and self.compression is None


class SettingsStore(JsonFileStore):
    """Durable mapping of Slack user id → UserUploadSettings."""

    def get(self, user_id: str) -> UserUploadSettings:
        return UserUploadSettings.from_dict(self._get_raw(user_id))

    def set(self, user_id: str, settings: UserUploadSettings) -> UserUploadSettings:
        """Store normalized settings and return what was stored."""
        normalized = settings.normalized()
        self._set_raw(user_id, asdict(normalized))
        logger.info(
            "Stored upload settings for user %s (expiry=%s, compression=%s)",
            user_id, normalized.expiry, normalized.compression,
        )
        return normalized

    def delete(self, user_id: str) -> None:
        if self._delete_raw(user_id):
            logger.info("Reset upload settings for user %s", user_id)
