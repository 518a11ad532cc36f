"""/zipline subcommand handlers and their dispatch table.

WHY: Each subcommand is a small, independent piece of behaviour (store a
token, list uploads, show stats...). A table from subcommand name to
handler keeps them separately testable and keeps bot.py down to event
plumbing and error handling.

HOW: BotServices bundles the injected collaborators (stores, session
registry, error reporter, Zipline client factory). CommandContext carries
one invocation (user, channel, arguments, the respond callable and the
Slack WebClient). dispatch() looks the subcommand up in SUBCOMMANDS and
calls the handler, which replies through ctx.reply().

RULES:
- Handlers raise; the error boundary lives in bot.py
- ValidationError messages are user-facing and shown as-is
- Every reply to the invoker is ephemeral; only the listing is public
- Commands that talk to Zipline require a stored token
"""

from __future__ import annotations

import logging
import platform
import shlex
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from zipline_bot.api.client import RemoteError, ZiplineClient
from zipline_bot.api.models import ServiceStats, UploadResult
from zipline_bot.config import ZIPLINE_BASE_URL, mask_token
from zipline_bot.core.pagination import paginate, render_page
from zipline_bot.core.sessions import SessionRegistry
from zipline_bot.slack.alerts import ErrorReporter
from zipline_bot.slack.messages import (
    MSG_LOGGED_OUT,
    MSG_NEED_TOKEN,
    MSG_NO_INVITE,
    MSG_NO_UPLOADS,
    MSG_SETTINGS_RESET,
    MSG_SETTINGS_SAVED,
    MSG_TOKEN_SAVED,
    build_help_blocks,
    build_profile_text,
    build_settings_text,
    build_stats_blocks,
    build_upload_list_blocks,
    format_elapsed,
    help_text,
)
from zipline_bot.store import CredentialStore, SettingsStore

logger = logging.getLogger(__name__)

SETTING_KEYS = ("expiry", "compression")


class ValidationError(Exception):
    """A missing precondition or bad argument; the message is shown to the user."""


# ---------------------------------------------------------------------------
# Collaborators and invocation context
# ---------------------------------------------------------------------------


@dataclass
class BotServices:
    """Collaborators shared by all handlers, injected at app creation.

    RULES:
    - client_factory(token) must return an unopened ZiplineClient;
      None means ZiplineClient(token, base_url=base_url)
    - started_at feeds the uptime shown by /zipline stats
    """

    credentials: CredentialStore
    settings: SettingsStore
    sessions: SessionRegistry
    reporter: ErrorReporter
    base_url: str = ZIPLINE_BASE_URL
    client_factory: Optional[Callable[[Optional[str]], ZiplineClient]] = None
    install_url: str = ""
    support_url: str = ""
    github_url: str = ""
    started_at: float = field(default_factory=time.time)

    def zipline(self, token: Optional[str]) -> ZiplineClient:
        if self.client_factory is not None:
            return self.client_factory(token)
        return ZiplineClient(token, base_url=self.base_url)


@dataclass
class CommandContext:
    """One /zipline invocation."""

    user_id: str
    channel_id: str
    args: List[str]
    respond: Callable[..., Any]
    client: Any

    def reply(self, text: str = "", blocks: Optional[List[Dict[str, Any]]] = None) -> None:
        self.respond(text=text, blocks=blocks, response_type="ephemeral")


def parse_command_text(text: str) -> Tuple[str, List[str]]:
    """Split "/zipline" text into (subcommand, args).

    RULES:
    - Subcommand is lower-cased; empty text gives ("", [])
    - Shell-style quoting is honoured; unbalanced quotes fall back to
      whitespace splitting
    """
    try:
        parts = shlex.split(text or "")
    except ValueError:
        parts = (text or "").split()
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


def make_session_id(channel: str, ts: str) -> str:
    return "{}:{}".format(channel, ts)


def split_session_id(session_id: str) -> Tuple[str, str]:
    channel, _, ts = session_id.partition(":")
    return channel, ts


def _require_token(services: BotServices, user_id: str) -> str:
    token = services.credentials.get(user_id)
    if not token:
        raise ValidationError(MSG_NEED_TOKEN)
    return token


# ---------------------------------------------------------------------------
# Account commands
# ---------------------------------------------------------------------------


def cmd_settoken(services: BotServices, ctx: CommandContext) -> None:
    if len(ctx.args) != 1 or not ctx.args[0].strip():
        raise ValidationError("Usage: `/zipline settoken <token>`")
    token = ctx.args[0].strip()
    services.credentials.set(ctx.user_id, token)
    ctx.reply(MSG_TOKEN_SAVED)


def cmd_logout(services: BotServices, ctx: CommandContext) -> None:
    services.credentials.delete(ctx.user_id)
    ctx.reply(MSG_LOGGED_OUT)


def cmd_me(services: BotServices, ctx: CommandContext) -> None:
    token = _require_token(services, ctx.user_id)
    with services.zipline(token) as zipline:
        profile = zipline.get_user_profile()
    ctx.reply(build_profile_text(profile))


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


def cmd_list(services: BotServices, ctx: CommandContext) -> None:
    """Post the paginated upload listing and open its session.

    HOW: Fetches every upload, renders page 1, posts it into the channel
    (so it can be edited later) and registers the session under
    "<channel>:<ts>" of the posted message.

    RULES:
    - No uploads → ephemeral "No uploads found.", no session
    - The session is opened only after the message exists
    """
    token = _require_token(services, ctx.user_id)
    with services.zipline(token) as zipline:
        uploads = zipline.fetch_all()

    session = paginate(uploads, ctx.user_id)
    if session is None:
        ctx.reply(MSG_NO_UPLOADS)
        return

    view = render_page(session, services.base_url)
    resp = ctx.client.chat_postMessage(
        channel=ctx.channel_id,
        blocks=build_upload_list_blocks(view),
        text="Uploads of <@{}> ({})".format(ctx.user_id, view.footer),
    )
    session_id = make_session_id(resp.get("channel") or ctx.channel_id, resp["ts"])
    services.sessions.open(session_id, session)


def relay_upload(
    services: BotServices,
    user_id: str,
    token: str,
    source_url: str,
    filename: str,
    source_headers: Optional[Dict[str, str]] = None,
) -> UploadResult:
    """Upload a Slack-hosted file to Zipline with the user's stored upload settings.

    RULES:
    - source_url comes from Slack's files.info, never from user text
    """
    settings = services.settings.get(user_id)
    logger.info(
        "Relaying %s for user %s (token %s)", filename, user_id, mask_token(token)
    )
    with services.zipline(token) as zipline:
        return zipline.upload_from_url(
            source_url, filename, settings, source_headers=source_headers,
        )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def cmd_settings(services: BotServices, ctx: CommandContext) -> None:
    """Show, update or reset the user's upload defaults.

    RULES:
    - No arguments: show the current settings
    - "reset": delete the stored entry
    - key=value pairs update only the named fields; "key=" clears one
    """
    if not ctx.args:
        ctx.reply(build_settings_text(services.settings.get(ctx.user_id)))
        return

    if [a.lower() for a in ctx.args] == ["reset"]:
        services.settings.delete(ctx.user_id)
        ctx.reply(MSG_SETTINGS_RESET)
        return

    updates = parse_settings_args(ctx.args)
    current = services.settings.get(ctx.user_id)
    stored = services.settings.set(ctx.user_id, replace(current, **updates))
    ctx.reply("{}\n{}".format(MSG_SETTINGS_SAVED, build_settings_text(stored)))


def parse_settings_args(args: List[str]) -> Dict[str, str]:
    updates = {}  # type: Dict[str, str]
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip().lower()
        if not sep or key not in SETTING_KEYS:
            raise ValidationError(
                "Unknown setting `{}`. Use `expiry=<value>` and/or "
                "`compression=<value>`, or `reset`.".format(arg)
            )
        updates[key] = value
    return updates


# ---------------------------------------------------------------------------
# Informational commands
# ---------------------------------------------------------------------------


def cmd_stats(services: BotServices, ctx: CommandContext) -> None:
    """Zipline instance stats (best effort) plus bot host details."""
    stats = None  # type: Optional[ServiceStats]
    try:
        with services.zipline(None) as zipline:
            stats = zipline.get_service_stats()
    except (RemoteError, httpx.HTTPError, ValueError) as exc:
        logger.warning("Zipline stats unavailable: %s", exc)

    host = {
        "Host OS": "{} {}".format(platform.system(), platform.release()).strip(),
        "Python": platform.python_version(),
        "Bot uptime": format_elapsed(time.time() - services.started_at),
        "Open listings": str(len(services.sessions)),
    }
    ctx.reply("Zipline statistics", blocks=build_stats_blocks(stats, host))


def cmd_invite(services: BotServices, ctx: CommandContext) -> None:
    if not services.install_url:
        ctx.reply(MSG_NO_INVITE)
        return
    ctx.reply(":robot_face: Add me to your workspace:\n{}".format(services.install_url))


def cmd_about(services: BotServices, ctx: CommandContext) -> None:
    ctx.reply(
        help_text(),
        blocks=build_help_blocks(services.support_url, services.github_url),
    )


Handler = Callable[[BotServices, CommandContext], None]

SUBCOMMANDS = {
    "settoken": cmd_settoken,
    "logout": cmd_logout,
    "me": cmd_me,
    "list": cmd_list,
    "settings": cmd_settings,
    "stats": cmd_stats,
    "invite": cmd_invite,
    "about": cmd_about,
    "help": cmd_about,
    "": cmd_about,
}  # type: Dict[str, Handler]


def dispatch(services: BotServices, ctx: CommandContext, subcommand: str) -> None:
    """Run the handler for subcommand; unknown names get the help text."""
    handler = SUBCOMMANDS.get(subcommand)
    if handler is None:
        ctx.reply(
            "Unknown subcommand `{}`.\n{}".format(subcommand, help_text()),
        )
        return
    handler(services, ctx)
