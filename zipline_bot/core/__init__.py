"""Platform-independent core: pagination sessions and their registry.

WHY: The listing state machine is the stateful heart of the bot. Keeping
it free of Slack types makes it testable with plain data and fake timers.

HOW: pagination.py defines the per-listing session and page rendering;
sessions.py keeps live sessions, guards ownership and expires them.
"""

from zipline_bot.core.pagination import PageView, PaginationSession, render_page
from zipline_bot.core.sessions import (
    Direction,
    NavigationOutcome,
    NavigationResult,
    SessionRegistry,
)

__all__ = [
    "Direction",
    "NavigationOutcome",
    "NavigationResult",
    "PageView",
    "PaginationSession",
    "SessionRegistry",
    "render_page",
]
