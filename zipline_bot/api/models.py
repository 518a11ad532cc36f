"""Zipline API response dataclasses.

WHY: The Zipline API returns loosely-shaped JSON that differs slightly
between server versions (originalName vs name, wrapped vs bare user
objects). Typed dataclasses pin down the fields the bot actually uses and
keep the version quirks in one place.

HOW: Each dataclass has a from_dict factory that tolerates the known
variants and missing optional fields.

RULES:
- UploadRecord is an immutable snapshot; nothing here is persisted
- size is an int ≥ 0 or None when the server omits it
- created_at keeps the server's ISO-8601 string; created_epoch parses it
- Parsing never raises on a missing optional field
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _parse_timestamp(value: str | None) -> int | None:
    """Parse an ISO-8601 timestamp into epoch seconds, or None."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _as_size(value) -> int | None:  # noqa: ANN001
    if value is None or isinstance(value, bool):
        return None
    try:
        size = int(value)
    except (TypeError, ValueError):
        return None
    return size if size >= 0 else None


@dataclass(frozen=True)
class UploadRecord:
    """One file from GET /api/user/files.

    RULES:
    - name: originalName when the server has it, else the stored name
    - url: absolute, relative ("/u/abc.png"), or None
    """

    id: str
    name: str | None
    url: str | None
    size: int | None
    created_at: str | None

    @classmethod
    def from_dict(cls, data: dict) -> UploadRecord:
        return cls(
            id=str(data.get("id", "")),
            name=data.get("originalName") or data.get("name"),
            url=data.get("url"),
            size=_as_size(data.get("size")),
            created_at=data.get("createdAt"),
        )

    @property
    def created_epoch(self) -> int | None:
        return _parse_timestamp(self.created_at)


@dataclass(frozen=True)
class UploadPage:
    """One page of the user's upload listing.

    RULES:
    - current_page is 1-based (the page that was requested)
    - total_pages is None when the server did not report it
    """

    items: list[UploadRecord]
    current_page: int
    total_pages: int | None

    @classmethod
    def from_dict(cls, data: dict, current_page: int) -> UploadPage:
        raw_items = data.get("page") or []
        pages = data.get("pages")
        try:
            total_pages = int(pages) if pages is not None else None
        except (TypeError, ValueError):
            total_pages = None
        return cls(
            items=[UploadRecord.from_dict(item) for item in raw_items],
            current_page=current_page,
            total_pages=total_pages,
        )


@dataclass(frozen=True)
class UserProfile:
    """The authenticated user from GET /api/user."""

    username: str
    role: str
    quota_used: int | str | None = None
    quota_max: int | str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> UserProfile:
        # Newer servers wrap the object: {"user": {...}}
        user = data["user"] if isinstance(data.get("user"), dict) else data
        quota = user.get("quota") or {}
        return cls(
            username=str(user.get("username", "")),
            role=str(user.get("role", "")),
            quota_used=quota.get("used"),
            quota_max=quota.get("max"),
        )


@dataclass(frozen=True)
class ServiceStats:
    """Instance-wide statistics from GET /api/stats."""

    users: int | None = None
    files: int | None = None
    size: int | str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ServiceStats:
        """Parse a stats body; anything but a JSON object raises ValueError."""
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected stats payload: {type(data).__name__}")
        data = data["data"] if isinstance(data.get("data"), dict) else data
        return cls(
            users=_first_present(data, "users", "count_users", "usersCount"),
            files=_first_present(data, "files", "count", "filesUploaded"),
            size=_first_present(data, "size", "storageUsed", "size_num"),
        )


def _first_present(data: dict, *keys: str):  # noqa: ANN202
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


@dataclass(frozen=True)
class UploadedFile:
    """One file entry in the POST /api/upload response."""

    id: str | None
    url: str | None

    def link(self, base_url: str) -> str:
        if self.url:
            return self.url
        return "{}/u/{}".format(base_url.rstrip("/"), self.id)


@dataclass(frozen=True)
class UploadResult:
    """Response body of POST /api/upload."""

    files: list[UploadedFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> UploadResult:
        return cls(
            files=[
                UploadedFile(
                    id=str(f["id"]) if f.get("id") is not None else None,
                    url=f.get("url"),
                )
                for f in data.get("files") or []
            ]
        )

    def links(self, base_url: str) -> list[str]:
        return [f.link(base_url) for f in self.files]
