"""Zipline Slack bot: link a Zipline token, upload files, browse uploads.

WHY: Zipline is a self-hosted file host with a token-authenticated HTTP
API. Team members want to push files to it and look up their uploads
without leaving Slack. This package bridges the two.

HOW: Four layers, leaf to root: JSON-file stores for per-user tokens and
upload settings (store), an httpx client for the Zipline API (api),
pagination sessions with idle expiry (core), and the slack-bolt glue that
dispatches /zipline subcommands and button clicks (slack).

RULES:
- Stores and the session registry are injected, never module globals
- Only slack/ knows about Slack; core/ and store/ are platform-free
- A user's Zipline token is never logged or echoed back in full
"""

__version__ = "0.1.0"
