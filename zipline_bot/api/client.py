"""HTTP client for the Zipline file-hosting API.

WHY: The bot lists a user's uploads, relays chat attachments into
Zipline, shows the user's profile, and reads instance stats. This module
keeps all of that HTTP behind one client class so the Slack layer never
builds URLs or inspects status codes.

HOW: Wraps httpx.Client. ZiplineClient is a context manager; enter it to
open the connection pools, exit to close them. Each call is one API step;
fetch_all walks the server-side pagination and upload_from_url stages the
source bytes in a temp file before the multipart upload.

RULES:
- Use as: with ZiplineClient(token) as client: ...
- Authentication is the raw token in the Authorization header (no scheme)
- The token is only sent to the Zipline base URL, never to source URLs
- Non-2xx Zipline responses raise RemoteError(status_code, body)
- A failed source download raises TransferError
- The staging file is removed on every exit path of upload_from_url
- No retries: every call is attempted exactly once
"""

from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
from pathlib import Path

import httpx

from zipline_bot.api.models import (
    ServiceStats,
    UploadPage,
    UploadRecord,
    UploadResult,
    UserProfile,
)
from zipline_bot.config import STAGING_DIR, UPLOADS_PER_REQUEST, ZIPLINE_BASE_URL
from zipline_bot.store.settings import UserUploadSettings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TIMEOUT = httpx.Timeout(120.0, connect=15.0)
_DOWNLOAD_CHUNK_BYTES = 64 * 1024

# Upload option headers understood by Zipline
HEADER_EXPIRY = "x-zipline-deletes-at"
HEADER_COMPRESSION = "x-zipline-image-compression-percent"


class RemoteError(Exception):
    """Raised when the Zipline API answers with a non-success status.

    WHY: Callers need a typed exception to tell Zipline rejections apart
    from network failures or bugs.

    RULES:
    - Always carries status_code and the response body text
    - The body is for logs only; it is never shown to Slack users
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Zipline API error {status_code}: {body}")


class TransferError(Exception):
    """Raised when the source file of an upload relay cannot be downloaded."""


class ZiplineClient:
    """Client for the subset of the Zipline API the bot uses.

    WHY: Provides typed methods for listing, uploading, profile and stats
    so the bot's command handlers stay free of HTTP details.

    HOW: Two httpx.Client instances: one bound to the Zipline base URL
    with the user's token, one bare client for relay source downloads and
    the unauthenticated stats call, so the token never leaks to third-party
    hosts.

    RULES:
    - token may be None only for get_service_stats (unauthenticated)
    - base_url defaults to ZIPLINE_BASE_URL from config
    - transport is for tests (httpx.MockTransport); None means real network
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        staging_dir: str | Path | None = None,
    ) -> None:
        self._token = token
        self._base_url = (base_url or ZIPLINE_BASE_URL).rstrip("/")
        self._transport = transport
        self._staging_dir = staging_dir if staging_dir is not None else STAGING_DIR
        self._client: httpx.Client | None = None
        self._public_client: httpx.Client | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def __enter__(self) -> ZiplineClient:
        headers = {"Authorization": self._token} if self._token else {}
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=_TIMEOUT,
            transport=self._transport,
        )
        self._public_client = httpx.Client(
            timeout=_TIMEOUT,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            self._client.close()
            self._client = None
        if self._public_client:
            self._public_client.close()
            self._public_client = None

    def _ensure_client(self) -> httpx.Client:
        """Return the active Zipline client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ZiplineClient must be used as a context manager: "
                "with ZiplineClient(token) as client: ..."
            )
        return self._client

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if not resp.is_success:
            raise RemoteError(resp.status_code, resp.text)

    # ------------------------------------------------------------------
    # User and stats
    # ------------------------------------------------------------------

    def get_user_profile(self) -> UserProfile:
        """Return the profile of the token's owner (GET /api/user)."""
        resp = self._ensure_client().get("/api/user")
        self._check(resp)
        return UserProfile.from_dict(resp.json())

    def get_service_stats(self) -> ServiceStats:
        """Return instance-wide statistics (GET /api/stats).

        RULES:
        - Sent without the Authorization header
        - Raises RemoteError like every other call; callers treat any
          failure here as "stats unavailable"
        """
        self._ensure_client()
        resp = self._public_client.get(f"{self._base_url}/api/stats")
        self._check(resp)
        return ServiceStats.from_dict(resp.json())

    # ------------------------------------------------------------------
    # Upload listing
    # ------------------------------------------------------------------

    def fetch_page(self, page: int, per_page: int = UPLOADS_PER_REQUEST) -> UploadPage:
        """Fetch one page of the user's uploads, newest first.

        Args:
            page: 1-based page number.
            per_page: Number of uploads per server page.

        Returns:
            UploadPage with the items, the requested page number, and the
            server-reported page count.
        """
        resp = self._ensure_client().get(
            "/api/user/files",
            params={
                "page": page,
                "perpage": per_page,
                "sortBy": "createdAt",
                "order": "desc",
                "filter": "all",
            },
        )
        self._check(resp)
        return UploadPage.from_dict(resp.json(), current_page=page)

    def fetch_all(self, per_page: int = UPLOADS_PER_REQUEST) -> list[UploadRecord]:
        """Fetch every upload of the user by walking the pages from 1.

        WHY: The listing view paginates locally, so it needs the full set.

        HOW: Requests pages 1, 2, ... and concatenates their items in fetch
        order. Stops on the first empty page, or once the requested page
        reaches the server-reported page count.

        RULES:
        - An empty page always ends the walk, whatever total_pages says
        - A warning is logged when an empty page arrives before total_pages
        - A missing total_pages keeps walking until an empty page
        """
        uploads: list[UploadRecord] = []
        page = 1

        while True:
            result = self.fetch_page(page, per_page)

            if not result.items:
                if result.total_pages is not None and page <= result.total_pages:
                    logger.warning(
                        "Zipline returned an empty page %d of %d; stopping early",
                        page, result.total_pages,
                    )
                break

            uploads.extend(result.items)

            if result.total_pages is not None and page >= result.total_pages:
                break
            page += 1

        logger.info("Fetched %d uploads across %d page(s)", len(uploads), page)
        return uploads

    # ------------------------------------------------------------------
    # Upload relay
    # ------------------------------------------------------------------

    def upload_from_url(
        self,
        source_url: str,
        filename: str,
        settings: UserUploadSettings | None = None,
        source_headers: dict[str, str] | None = None,
    ) -> UploadResult:
        """Download source_url and upload it to Zipline as filename.

        WHY: Chat attachments live on the chat platform's CDN; Zipline
        needs the bytes posted to /api/upload as multipart form data.

        HOW: Streams the source into a staging file, then streams that
        file into the multipart upload. Expiry and compression settings
        become Zipline upload headers when set.

        RULES:
        - source_headers go to the source download only (e.g. Slack auth)
        - Raises TransferError if the download fails for any reason
        - Raises RemoteError if Zipline rejects the upload
        - The staging file is gone before this method returns or raises

        Args:
            source_url: Where to download the bytes from.
            filename: Name to give the file in the multipart upload.
            settings: The user's upload preferences, if any.
            source_headers: Extra headers for the source download.

        Returns:
            UploadResult listing the created files.
        """
        client = self._ensure_client()
        settings = settings or UserUploadSettings()

        headers = {}
        if settings.expiry:
            headers[HEADER_EXPIRY] = settings.expiry
        if settings.compression:
            headers[HEADER_COMPRESSION] = settings.compression

        fd, tmp_name = tempfile.mkstemp(
            prefix="zipline_upload_",
            suffix=Path(filename).suffix,
            dir=self._staging_dir,
        )
        os.close(fd)
        staging_path = Path(tmp_name)

        try:
            self._download_to(source_url, staging_path, source_headers)

            content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
            with open(staging_path, "rb") as f:
                resp = client.post(
                    "/api/upload",
                    headers=headers,
                    files={"file": (filename, f, content_type)},
                )
            self._check(resp)
            result = UploadResult.from_dict(resp.json())
        finally:
            staging_path.unlink(missing_ok=True)

        logger.info("Uploaded %s (%d file(s) created)", filename, len(result.files))
        return result

    def _download_to(
        self,
        source_url: str,
        target: Path,
        headers: dict[str, str] | None,
    ) -> None:
        """Stream source_url into target, wrapping every failure in TransferError."""
        if self._public_client is None:
            raise RuntimeError("ZiplineClient must be used as a context manager")

        try:
            with self._public_client.stream("GET", source_url, headers=headers) as resp:
                if not resp.is_success:
                    raise TransferError(
                        f"Failed to download attachment: HTTP {resp.status_code}"
                    )
                with open(target, "wb") as f:
                    for chunk in resp.iter_bytes(_DOWNLOAD_CHUNK_BYTES):
                        f.write(chunk)
        except httpx.HTTPError as exc:
            raise TransferError(f"Failed to download attachment: {exc}") from exc
