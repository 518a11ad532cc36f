"""Per-user Zipline API tokens.

WHY: Every Zipline call is made on behalf of the Slack user who issued
the command, with that user's own token. Tokens must survive restarts.

HOW: A JsonFileStore whose values are the raw token strings, keyed by
Slack user id (the userTokens.json layout).

RULES:
- set() is an idempotent upsert; delete() of an unknown user is a no-op
- Tokens are only ever logged through mask_token()
"""

from __future__ import annotations

import logging
from typing import Optional

from zipline_bot.config import mask_token
from zipline_bot.store.base import JsonFileStore

logger = logging.getLogger(__name__)


class CredentialStore(JsonFileStore):
    """Durable mapping of Slack user id → Zipline API token."""

    def get(self, user_id: str) -> Optional[str]:
        token = self._get_raw(user_id)
        return token or None

    def set(self, user_id: str, token: str) -> None:
        self._set_raw(user_id, token)
        logger.info("Stored token %s for user %s", mask_token(token), user_id)

    def delete(self, user_id: str) -> None:
        if self._delete_raw(user_id):
            logger.info("Removed token for user %s", user_id)
