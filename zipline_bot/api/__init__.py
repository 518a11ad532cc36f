"""Zipline API client package: HTTP interface to the file host.

WHY: The bot lists uploads, relays attachments, reads the user profile
and instance stats. This package keeps all Zipline communication behind
one client class.

HOW: ZiplineClient wraps httpx.Client. Responses are parsed into the
dataclasses defined in models.py.

RULES:
- All Zipline HTTP goes through ZiplineClient (no direct httpx elsewhere)
- Authentication is the user's raw token in the Authorization header
"""

from zipline_bot.api.client import RemoteError, TransferError, ZiplineClient
from zipline_bot.api.models import UploadRecord, UploadResult, UserProfile

__all__ = [
    "RemoteError",
    "TransferError",
    "UploadRecord",
    "UploadResult",
    "UserProfile",
    "ZiplineClient",
]
