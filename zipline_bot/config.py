"""Configuration constants, file locations, and .env loading.

WHY: Centralizes every configurable value (Zipline URL, data files,
pagination constants, optional links and webhooks) so operators can find
and override them in one place instead of hunting through the bot logic.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level values, each overridable through an environment variable.
load_slack_tokens() gives a clear error when the Slack credentials are
missing.

RULES:
- Secrets (Slack tokens) are loaded from the environment, never hardcoded
- PAGE_SIZE and SESSION_TIMEOUT_S are fixed behaviour, not env-tunable
- Paths are pathlib.Path objects relative to the working directory
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the bot is started from)
load_dotenv()

# ---------------------------------------------------------------------------
# Zipline service
# ---------------------------------------------------------------------------

ZIPLINE_BASE_URL = os.getenv("ZIPLINE_BASE_URL", "http://localhost:3000").rstrip("/")

UPLOADS_PER_REQUEST = 50
"""Page size used when walking /api/user/files (server-side pagination)."""

# ---------------------------------------------------------------------------
# Local persisted state
# ---------------------------------------------------------------------------

DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
TOKENS_FILE = Path(os.getenv("TOKENS_FILE", str(DATA_DIR / "userTokens.json")))
SETTINGS_FILE = Path(os.getenv("SETTINGS_FILE", str(DATA_DIR / "userSettings.json")))

# Where attachments are staged between download and upload. None = system temp.
STAGING_DIR = os.getenv("STAGING_DIR") or None

# ---------------------------------------------------------------------------
# Upload listing pagination
# ---------------------------------------------------------------------------

PAGE_SIZE = 5
SESSION_TIMEOUT_S = 60.0
NAME_MAX_CHARS = 15

# ---------------------------------------------------------------------------
# Slack surface
# ---------------------------------------------------------------------------

ERROR_WEBHOOK_URL = os.getenv("ERROR_WEBHOOK_URL", "")
SLACK_INSTALL_URL = os.getenv("SLACK_INSTALL_URL", "")
SUPPORT_URL = os.getenv("SUPPORT_URL", "")
GITHUB_URL = os.getenv("GITHUB_URL", "")

# Channel (besides DMs with the bot) where shared files are relayed to Zipline
UPLOAD_CHANNEL_ID = os.getenv("UPLOAD_CHANNEL_ID", "")


def load_slack_tokens() -> tuple[str, str]:
    """Load the Slack bot and app-level tokens from the environment.

    WHY: Socket Mode needs both the bot token (xoxb-) for Web API calls
    and the app-level token (xapp-) for the WebSocket connection.

    RULES:
    - Raises ValueError naming the missing variable
    - Never returns a default/placeholder value
    """
    bot_token = os.getenv("SLACK_BOT_TOKEN", "").strip()
    app_token = os.getenv("SLACK_APP_TOKEN", "").strip()
    if not bot_token:
        raise ValueError(
            "Slack bot token not configured. "
            "Add SLACK_BOT_TOKEN to the .env file."
        )
    if not app_token:
        raise ValueError(
            "Slack app token not configured. "
            "Add SLACK_APP_TOKEN to the .env file."
        )
    return bot_token, app_token


def mask_token(token: str | None) -> str:
    """Return a log-safe rendering of a secret token."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "****"
    return "{}…".format(token[:4])
