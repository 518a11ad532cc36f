"""Message texts and Block Kit builders for the Zipline Slack bot.

WHY: The bot sends a handful of structured messages: the paginated
upload listing with its navigation buttons, the profile and stats
summaries, the help text, and short confirmations. Centralizing them
keeps bot.py and commands.py focused on control flow.

HOW: Each builder returns a list of Block Kit block dicts (or a plain
mrkdwn string) ready for respond(), chat_postMessage() or chat_update().
The listing builder consumes the platform-neutral PageView from
core.pagination.

RULES:
- All builders return list[dict] (Block Kit blocks) or str
- action_id values must match the handler registrations in bot.py
- Slack buttons cannot be disabled, so unavailable moves are omitted
- User-supplied text (file names) is escaped for mrkdwn
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from zipline_bot.api.models import ServiceStats, UserProfile
from zipline_bot.core.pagination import UNKNOWN, PageView, UploadLine
from zipline_bot.store.settings import UserUploadSettings

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Action IDs, must match app.action() registrations in bot.py
ACTION_PAGE_PREV = "uploads_page_prev"
ACTION_PAGE_NEXT = "uploads_page_next"
ACTION_LINK_SUPPORT = "about_support_link"
ACTION_LINK_GITHUB = "about_github_link"

COMMAND = "/zipline"

MSG_TOKEN_SAVED = ":closed_lock_with_key: Token saved!"
MSG_LOGGED_OUT = ":door: You have been logged out."
MSG_NEED_TOKEN = ":exclamation: Please set your token first with `/zipline settoken <token>`."
MSG_NO_UPLOADS = "No uploads found."
MSG_SETTINGS_SAVED = ":hammer_and_wrench: Settings saved."
MSG_SETTINGS_RESET = ":hammer_and_wrench: Settings reset to the server defaults."
MSG_GENERIC_ERROR = ":x: Something went wrong. Please try again later."
MSG_NOT_OWNER = "Only <@{owner}> can turn these pages."
MSG_EXPIRED = "This listing has expired. Run `/zipline list` again."
MSG_NO_INVITE = "No install link is configured for this bot."
MSG_UPLOAD_HINT = ":outbox_tray: To upload, share a file with me in a DM."

# (usage, description) shown by /zipline help
COMMAND_HELP = [
    ("settoken <token>", ":closed_lock_with_key: Link your Zipline API token"),
    ("logout", ":door: Forget your token"),
    ("me", ":bust_in_silhouette: Show your Zipline account"),
    ("list", ":open_file_folder: Browse your uploads (posted in the channel, visible to everyone there)"),
    ("settings [expiry=<v>] [compression=<v>]", ":gear: Show or change your upload defaults"),
    ("settings reset", ":gear: Clear your upload defaults"),
    ("stats", ":bar_chart: Show server statistics"),
    ("invite", ":robot_face: Show the install link"),
    ("about", ":bulb: Show this help"),
]


# ---------------------------------------------------------------------------
# Upload listing
# ---------------------------------------------------------------------------


def build_upload_list_blocks(
    view: PageView,
    interactive: bool = True,
) -> List[Dict[str, Any]]:
    """Build the Block Kit blocks for one page of the upload listing.

    WHY: The listing message is edited in place on every page turn and
    once more on expiry, always from the same builder.

    HOW: Header, one mrkdwn section with a bullet per upload, a context
    footer with "Page X of Y", and (when interactive) an actions block
    with the previous/next buttons that are currently possible.

    RULES:
    - interactive=False drops the actions block (expired listing)
    - No actions block when there is only one page
    """
    blocks = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Your uploads"},
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": "\n".join(format_upload_line(line) for line in view.lines),
            },
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": view.footer}],
        },
    ]  # type: List[Dict[str, Any]]

    if interactive and view.interactive:
        buttons = []
        if view.has_previous:
            buttons.append(_nav_button(":arrow_left: Back", ACTION_PAGE_PREV, "previous"))
        if view.has_next:
            buttons.append(_nav_button("Next :arrow_right:", ACTION_PAGE_NEXT, "next"))
        blocks.append({"type": "actions", "elements": buttons})

    return blocks


def _nav_button(label: str, action_id: str, value: str) -> Dict[str, Any]:
    return {
        "type": "button",
        "text": {"type": "plain_text", "text": label, "emoji": True},
        "style": "primary",
        "action_id": action_id,
        "value": value,
    }


def format_upload_line(line: UploadLine) -> str:
    """One bullet: linked name, size, relative creation time."""
    return "• <{}|{}> — {} — Created: {}".format(
        line.url,
        escape_mrkdwn(line.name),
        line.size,
        format_relative_time(line.created_epoch),
    )


def format_relative_time(epoch: Optional[int]) -> str:
    """Slack date token rendered as "3 days ago" in each reader's client.

    RULES:
    - None → "unknown"
    - The fallback text (old clients, notifications) is the UTC date
    """
    if epoch is None:
        return UNKNOWN
    fallback = datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return "<!date^{}^{{ago}}|{}>".format(epoch, fallback)


def escape_mrkdwn(text: str) -> str:
    """Escape the three characters Slack treats as control sequences."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ---------------------------------------------------------------------------
# Account, stats, settings
# ---------------------------------------------------------------------------


def build_profile_text(profile: UserProfile) -> str:
    """Username, role and storage quota, one per line."""
    used = profile.quota_used if profile.quota_used is not None else 0
    maximum = profile.quota_max if profile.quota_max not in (None, "", 0) else "∞"
    return "*Username:* {}\n*Role:* {}\n*Storage:* {}/{}".format(
        escape_mrkdwn(profile.username), profile.role, used, maximum,
    )


def build_stats_blocks(
    stats: Optional[ServiceStats],
    host: Dict[str, str],
) -> List[Dict[str, Any]]:
    """Build the stats message: Zipline instance stats plus bot host info.

    RULES:
    - stats None means the Zipline call failed → "Stats unavailable"
    - host is an ordered label → value dict
    """
    if stats is None:
        service_text = "_Stats unavailable._"
    else:
        service_text = "\n".join([
            "*Users:* {}".format(_or_unknown(stats.users)),
            "*Files:* {}".format(_or_unknown(stats.files)),
            "*Storage used:* {}".format(_or_unknown(stats.size)),
        ])

    host_text = "\n".join("*{}:* {}".format(label, value) for label, value in host.items())

    return [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "Zipline statistics"},
        },
        {"type": "section", "text": {"type": "mrkdwn", "text": service_text}},
        {"type": "divider"},
        {"type": "section", "text": {"type": "mrkdwn", "text": host_text}},
    ]


def _or_unknown(value: Any) -> str:
    return UNKNOWN if value is None else str(value)


def build_settings_text(settings: UserUploadSettings) -> str:
    """Current upload defaults, with "server default" for unset fields."""
    return "*Upload settings*\n*Expiry:* {}\n*Compression:* {}".format(
        settings.expiry or "_server default_",
        settings.compression or "_server default_",
    )


def build_upload_result_text(links: List[str]) -> str:
    if not links:
        return ":white_check_mark: Upload finished, but Zipline returned no links."
    return ":white_check_mark: Upload successful:\n{}".format("\n".join(links))


# ---------------------------------------------------------------------------
# Help
# ---------------------------------------------------------------------------


def build_help_blocks(
    support_url: str = "",
    github_url: str = "",
) -> List[Dict[str, Any]]:
    """Command overview with optional Support / GitHub link buttons."""
    lines = [
        "`{} {}` {}".format(COMMAND, usage, description)
        for usage, description in COMMAND_HELP
    ]
    blocks = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": ":bulb: *About this bot*\n\n{}\n\n{}".format(
                    "\n".join(lines), MSG_UPLOAD_HINT,
                ),
            },
        },
    ]  # type: List[Dict[str, Any]]

    links = []
    if support_url:
        links.append(_link_button(":sos: Support", support_url, ACTION_LINK_SUPPORT))
    if github_url:
        links.append(_link_button(":octocat: GitHub", github_url, ACTION_LINK_GITHUB))
    if links:
        blocks.append({"type": "actions", "elements": links})

    return blocks


def _link_button(label: str, url: str, action_id: str) -> Dict[str, Any]:
    return {
        "type": "button",
        "text": {"type": "plain_text", "text": label, "emoji": True},
        "url": url,
        "action_id": action_id,
    }


def help_text() -> str:
    """Plain-text fallback for the help blocks."""
    lines = [
        "{} {} — {}".format(COMMAND, usage, description)
        for usage, description in COMMAND_HELP
    ]
    lines.append(MSG_UPLOAD_HINT)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_elapsed(seconds: float) -> str:
    """Format seconds into a human-readable duration string.

    RULES:
    - Under 60s: "Xs"
    - 60s+: "Xm Ys"
    - Over 1h: "Xh Xm Ys"
    - Over 1d: "Xd Xh Xm"
    """
    total = int(seconds)
    if total < 60:
        return "{}s".format(total)

    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    if days > 0:
        return "{}d {}h {}m".format(days, hours, minutes)
    if hours > 0:
        return "{}h {}m {}s".format(hours, minutes, secs)

    return "{}m {}s".format(minutes, secs)
