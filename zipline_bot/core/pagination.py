"""Pagination session state and page rendering for upload listings.

WHY: A user's upload history is shown five files at a time with
previous/next controls. The page arithmetic and the per-file display
rules are platform-independent, so they live here where they can be
tested without Slack.

HOW: PaginationSession holds the item snapshot, the owner and the current
page index, and exposes the two navigation transitions. render_page()
turns the current page into a PageView of UploadLine rows that the Slack
layer formats into blocks.

RULES:
- A session needs at least one item; page_size is 5 unless overridden
- total_pages = ceil(len(items) / page_size), computed once
- previous() at index 0 and next_page() on the last page are no-ops
- Names are cut to 15 visible characters (14 + "…")
- Sizes: None/0 → "unknown"; < 1 MiB → KB with 1 decimal; else MB with 2
- Relative urls are joined to the base URL; a missing url becomes /u/<id>
- Footer page numbers are 1-based
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from zipline_bot.api.models import UploadRecord
from zipline_bot.config import NAME_MAX_CHARS, PAGE_SIZE

_KB = 1024
_MB = _KB * 1024

UNKNOWN = "unknown"
UNNAMED = "Unnamed"
ELLIPSIS = "…"


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


@dataclass
class PaginationSession:
    """Navigation state of one paginated upload listing.

    WHY: Each /zipline list invocation gets its own private cursor over a
    snapshot of the user's uploads; nothing is shared across users.

    RULES:
    - owner_id: the Slack user who ran the listing (only they navigate)
    - items: immutable snapshot, newest first
    - page_index: always within [0, total_pages - 1]
    - expires_at: deadline on the registry clock, maintained by the SessionRegistry
    """

    owner_id: str
    items: Tuple[UploadRecord, ...]
    page_size: int = PAGE_SIZE
    page_index: int = 0
    expires_at: float = 0.0
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.items = tuple(self.items)
        if not self.items:
            raise ValueError("A pagination session needs at least one item")
        if self.page_size < 1:
            raise ValueError("page_size must be positive, got {}".format(self.page_size))
        self.total_pages = math.ceil(len(self.items) / self.page_size)
        if not 0 <= self.page_index < self.total_pages:
            raise ValueError(
                "page_index {} out of range for {} page(s)".format(
                    self.page_index, self.total_pages
                )
            )

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.total_pages

    def previous(self) -> bool:
        """Move one page back. Returns True if the index changed."""
        if not self.has_previous:
            return False
        self.page_index -= 1
        return True

    def next_page(self) -> bool:
        """Move one page forward. Returns True if the index changed."""
        if not self.has_next:
            return False
        self.page_index += 1
        return True

    def current_items(self) -> Tuple[UploadRecord, ...]:
        start = self.page_index * self.page_size
        return self.items[start:start + self.page_size]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadLine:
    """Display values for one upload row."""

    name: str
    url: str
    size: str
    created_epoch: Optional[int]


@dataclass(frozen=True)
class PageView:
    """Platform-neutral rendering of the session's current page."""

    lines: List[UploadLine]
    page_number: int
    total_pages: int
    has_previous: bool
    has_next: bool

    @property
    def footer(self) -> str:
        return "Page {} of {}".format(self.page_number, self.total_pages)

    @property
    def interactive(self) -> bool:
        return self.has_previous or self.has_next


def render_page(session: PaginationSession, base_url: str) -> PageView:
    """Render the session's current page into display rows."""
    return PageView(
        lines=[to_upload_line(record, base_url) for record in session.current_items()],
        page_number=session.page_index + 1,
        total_pages=session.total_pages,
        has_previous=session.has_previous,
        has_next=session.has_next,
    )


def to_upload_line(record: UploadRecord, base_url: str) -> UploadLine:
    return UploadLine(
        name=truncate_name(record.name or UNNAMED),
        url=resolve_upload_url(record, base_url),
        size=format_file_size(record.size),
        created_epoch=record.created_epoch,
    )


def truncate_name(name: str, max_chars: int = NAME_MAX_CHARS) -> str:
    """Cut name to at most max_chars visible characters, ending in "…"."""
    if len(name) <= max_chars:
        return name
    return name[:max_chars - 1] + ELLIPSIS


def resolve_upload_url(record: UploadRecord, base_url: str) -> str:
    """Return an absolute link to the upload.

    RULES:
    - A url starting with http(s) is used unchanged
    - A relative url is appended to base_url
    - No url at all falls back to base_url + "/u/<id>"
    """
    url = record.url
    if url and url.lower().startswith(("http://", "https://")):
        return url
    path = url or "/u/{}".format(record.id)
    if not path.startswith("/"):
        path = "/" + path
    return base_url.rstrip("/") + path


def format_file_size(size: Optional[int]) -> str:
    """Human-readable size: KB below one MiB, MB from there on."""
    if not size:
        return UNKNOWN
    if size < _MB:
        return "{:.1f} KB".format(size / _KB)
    return "{:.2f} MB".format(size / _MB)


def paginate(items: Sequence[UploadRecord], owner_id: str) -> Optional[PaginationSession]:
    """Build a session for items, or None when there is nothing to page."""
    if not items:
        return None
    return PaginationSession(owner_id=owner_id, items=tuple(items))
