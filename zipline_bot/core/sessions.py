"""Registry of live pagination sessions with idle expiry.

WHY: Every posted upload listing has its own navigation state, and the
button clicks that drive it arrive later as independent events. The
registry is the single place that maps a listing's id to its session,
enforces the ownership guard, and tears the session down when the user
stops navigating.

HOW: Sessions live in a dict keyed by session id ("<channel>:<ts>" in the
Slack layer). Each session carries an explicit expires_at deadline and a
one-shot timer. An accepted event pushes the deadline forward and re-arms
the timer. When the timer fires (or sweep() finds an overdue session) the
entry is removed and on_expire is called so the view can drop its
controls.

RULES:
- All state access holds self._lock; callbacks run outside it
- Navigation from anyone but the owner never changes the session
- on_expire is called exactly once per session, then the id is unknown
- A timer that fires before the deadline re-arms for the remaining time
- Deadlines use time.monotonic, the clock threading.Timer waits on
- Results carry a copy of the session so rendering needs no lock
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from zipline_bot.config import SESSION_TIMEOUT_S
from zipline_bot.core.pagination import PaginationSession

logger = logging.getLogger(__name__)

ExpireCallback = Callable[[str, PaginationSession], None]
TimerFactory = Callable[..., Any]


class Direction(str, enum.Enum):
    """Navigation directions, matching the listing buttons."""

    PREVIOUS = "previous"
    NEXT = "next"


class NavigationOutcome(str, enum.Enum):
    """What a navigation event did.

    RULES:
    - moved: owner event, page index changed
    - unchanged: owner event at a boundary (first/last page)
    - not_owner: someone else clicked; session untouched
    - expired: no live session under that id
    """

    MOVED = "moved"
    UNCHANGED = "unchanged"
    NOT_OWNER = "not_owner"
    EXPIRED = "expired"


@dataclass(frozen=True)
class NavigationResult:
    outcome: NavigationOutcome
    session: Optional[PaginationSession] = None

    @property
    def accepted(self) -> bool:
        return self.outcome in (NavigationOutcome.MOVED, NavigationOutcome.UNCHANGED)


class SessionRegistry:
    """Thread-safe map of session id → PaginationSession with idle timeout.

    WHY: slack-bolt delivers button clicks on a worker pool and expiry
    timers fire on their own threads, so session state needs one owner
    that serializes access.

    RULES:
    - timeout_s is the idle window (60 s by default)
    - clock and timer_factory are injectable for tests
    - on_expire may be set after construction (the bot wires it)
    """

    def __init__(
        self,
        timeout_s: float = SESSION_TIMEOUT_S,
        on_expire: Optional[ExpireCallback] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.timeout_s = timeout_s
        self.on_expire = on_expire
        self._clock = clock
        self._timer_factory = timer_factory
        self._sessions: Dict[str, PaginationSession] = {}
        self._timers: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, session_id: str, session: PaginationSession) -> PaginationSession:
        """Register a freshly rendered session and start its idle timer.

        RULES:
        - Raises ValueError if session_id is already live
        - Sets session.expires_at to now + timeout_s
        """
        with self._lock:
            if session_id in self._sessions:
                raise ValueError("Session {} is already open".format(session_id))
            session.expires_at = self._clock() + self.timeout_s
            self._sessions[session_id] = session
            self._arm_timer(session_id)

        logger.info(
            "Opened session %s for user %s (%d items, %d pages)",
            session_id, session.owner_id, len(session.items), session.total_pages,
        )
        return session

    def get(self, session_id: str) -> Optional[PaginationSession]:
        """Return a copy of the live session, or None."""
        with self._lock:
            session = self._sessions.get(session_id)
            return dataclasses.replace(session) if session else None

    def navigate(
        self,
        session_id: str,
        actor_id: str,
        direction: Direction,
    ) -> NavigationResult:
        """Apply one navigation event.

        HOW: Under the lock, checks that the session is live and owned by
        actor_id, applies the move, pushes the deadline forward and
        re-arms the timer. An overdue session found here is expired on the
        spot instead of waiting for its timer.
        """
        overdue = False
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return NavigationResult(NavigationOutcome.EXPIRED)

            now = self._clock()
            if session.expires_at <= now:
                overdue = True
            elif actor_id != session.owner_id:
                logger.info(
                    "Rejected navigation on %s by non-owner %s", session_id, actor_id
                )
                return NavigationResult(
                    NavigationOutcome.NOT_OWNER, dataclasses.replace(session)
                )
            else:
                if direction == Direction.PREVIOUS:
                    moved = session.previous()
                else:
                    moved = session.next_page()
                session.expires_at = now + self.timeout_s
                self._arm_timer(session_id)
                outcome = NavigationOutcome.MOVED if moved else NavigationOutcome.UNCHANGED
                return NavigationResult(outcome, dataclasses.replace(session))

        if overdue:
            self.expire(session_id)
        return NavigationResult(NavigationOutcome.EXPIRED)

    def expire(self, session_id: str) -> Optional[PaginationSession]:
        """Remove a session and notify on_expire. No-op for unknown ids."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
            timer = self._timers.pop(session_id, None)

        if timer is not None:
            timer.cancel()
        if session is None:
            return None

        logger.info("Expired session %s", session_id)
        if self.on_expire is not None:
            try:
                self.on_expire(session_id, session)
            except Exception:
                logger.exception("Expiry callback failed for session %s", session_id)
        return session

    def sweep(self) -> int:
        """Expire every overdue session. Returns how many were expired."""
        now = self._clock()
        with self._lock:
            overdue = [
                sid for sid, session in self._sessions.items()
                if session.expires_at <= now
            ]
        for sid in overdue:
            self.expire(sid)
        return len(overdue)

    def close_all(self) -> int:
        """Expire every live session (shutdown path)."""
        with self._lock:
            ids: List[str] = list(self._sessions)
        for sid in ids:
            self.expire(sid)
        return len(ids)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm_timer(self, session_id: str, delay: Optional[float] = None) -> None:
        """(Re)start the one-shot idle timer. Caller holds self._lock."""
        old = self._timers.pop(session_id, None)
        if old is not None:
            old.cancel()
        timer = self._timer_factory(
            self.timeout_s if delay is None else delay,
            self._on_timer,
            args=(session_id,),
        )
        timer.daemon = True
        timer.start()
        self._timers[session_id] = timer

    def _on_timer(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            remaining = session.expires_at - self._clock()
            if remaining > 0:
                self._arm_timer(session_id, delay=remaining)
                return
        self.expire(session_id)
