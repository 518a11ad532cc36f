"""Slack bot: slash command, listing navigation, and file relay handlers.

WHY: This module is the glue between Slack events and the rest of the
package. It turns /zipline invocations into subcommand dispatches, button
clicks into session navigation, and files shared with the bot into
Zipline uploads. It is also the error boundary for all of them.

HOW: Uses slack-bolt with Socket Mode (no public URL needed). ZiplineBot
holds the injected BotServices and exposes one method per Slack listener;
create_app() registers those bound methods on a bolt App. Listing expiry
is driven by the SessionRegistry, which calls back into freeze_listing()
to strip the navigation buttons.

RULES:
- ack() FIRST in every command/action listener
- Handler exceptions are reported (log + webhook) and the user only ever
  sees the generic failure notice; ValidationError text is shown as-is
- Navigation from non-owners gets an ephemeral notice, nothing else
- Shared files are relayed only from DMs with the bot or UPLOAD_CHANNEL_ID
- The Slack bot token is sent to Slack's file CDN only, never to Zipline
- Runnable as: python -m zipline_bot
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from zipline_bot.config import (
    ERROR_WEBHOOK_URL,
    GITHUB_URL,
    SETTINGS_FILE,
    SLACK_INSTALL_URL,
    SUPPORT_URL,
    TOKENS_FILE,
    UPLOAD_CHANNEL_ID,
    ZIPLINE_BASE_URL,
    load_slack_tokens,
)
from zipline_bot.core.pagination import PaginationSession, render_page
from zipline_bot.core.sessions import Direction, NavigationOutcome, SessionRegistry
from zipline_bot.slack.alerts import ErrorReporter
from zipline_bot.slack.commands import (
    BotServices,
    CommandContext,
    ValidationError,
    dispatch,
    make_session_id,
    parse_command_text,
    relay_upload,
    split_session_id,
)
from zipline_bot.slack.messages import (
    ACTION_LINK_GITHUB,
    ACTION_LINK_SUPPORT,
    ACTION_PAGE_NEXT,
    ACTION_PAGE_PREV,
    COMMAND,
    MSG_EXPIRED,
    MSG_GENERIC_ERROR,
    MSG_NEED_TOKEN,
    MSG_NOT_OWNER,
    build_upload_list_blocks,
    build_upload_result_text,
)
from zipline_bot.store import CredentialStore, SettingsStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Listener host
# ---------------------------------------------------------------------------


class ZiplineBot:
    """Slack listeners bound to one set of BotServices.

    WHY: Bolt listeners receive only Slack objects; binding them as
    methods gives every handler access to the injected stores and
    registry without module-level state.

    RULES:
    - client is the WebClient used outside listener calls (expiry edits)
    - Constructing a ZiplineBot wires services.sessions.on_expire
    """

    def __init__(self, services: BotServices, client: Any = None) -> None:
        self.services = services
        self.client = client
        services.sessions.on_expire = self.freeze_listing

    # ------------------------------------------------------------------
    # Slash command
    # ------------------------------------------------------------------

    def handle_command(self, ack: Any, command: Dict[str, Any], respond: Any, client: Any) -> None:
        """Handle /zipline <subcommand> [args].

        RULES:
        - ack() FIRST, before any processing
        - Overdue listings are swept on every invocation
        - ValidationError → its message; anything else → generic notice
        """
        ack()

        self.services.sessions.sweep()

        subcommand, args = parse_command_text(command.get("text", ""))
        ctx = CommandContext(
            user_id=command.get("user_id", ""),
            channel_id=command.get("channel_id", ""),
            args=args,
            respond=respond,
            client=client,
        )

        try:
            dispatch(self.services, ctx, subcommand)
        except ValidationError as exc:
            _safe_reply(ctx, str(exc))
        except Exception as exc:
            self.services.reporter.report(
                exc, "{} {} (user {})".format(COMMAND, subcommand or "about", ctx.user_id)
            )
            _safe_reply(ctx, MSG_GENERIC_ERROR)

    # ------------------------------------------------------------------
    # Listing navigation
    # ------------------------------------------------------------------

    def handle_page_prev(self, ack: Any, body: Dict[str, Any], client: Any) -> None:
        """Back button on an upload listing."""
        ack()
        self._navigate(body, client, Direction.PREVIOUS)

    def handle_page_next(self, ack: Any, body: Dict[str, Any], client: Any) -> None:
        """Next button on an upload listing."""
        ack()
        self._navigate(body, client, Direction.NEXT)

    def _navigate(self, body: Dict[str, Any], client: Any, direction: Direction) -> None:
        """Apply one button click to the listing's session and re-render.

        HOW: The session id is "<channel>:<message ts>" of the clicked
        message. Accepted clicks edit the message in place; rejected ones
        answer the clicker with an ephemeral notice.

        RULES:
        - not_owner → ephemeral notice, no edit
        - expired/unknown → ephemeral notice and the buttons are stripped
          (covers listings that outlived a bot restart)
        """
        user_id = body.get("user", {}).get("id", "")
        channel = body.get("channel", {}).get("id", "")
        message = body.get("message", {})
        ts = message.get("ts", "")
        session_id = make_session_id(channel, ts)

        try:
            result = self.services.sessions.navigate(session_id, user_id, direction)

            if result.outcome == NavigationOutcome.NOT_OWNER:
                client.chat_postEphemeral(
                    channel=channel,
                    user=user_id,
                    text=MSG_NOT_OWNER.format(owner=result.session.owner_id),
                )
                return

            if result.outcome == NavigationOutcome.EXPIRED:
                client.chat_postEphemeral(channel=channel, user=user_id, text=MSG_EXPIRED)
                blocks = message.get("blocks") or []
                if any(b.get("type") == "actions" for b in blocks):
                    client.chat_update(
                        channel=channel,
                        ts=ts,
                        blocks=_without_actions(blocks),
                        text=message.get("text", "Your uploads"),
                    )
                return

            view = render_page(result.session, self.services.base_url)
            client.chat_update(
                channel=channel,
                ts=ts,
                blocks=build_upload_list_blocks(view),
                text="Your uploads ({})".format(view.footer),
            )
        except Exception as exc:
            self.services.reporter.report(
                exc, "listing navigation {} (user {})".format(session_id, user_id)
            )
            try:
                client.chat_postEphemeral(channel=channel, user=user_id, text=MSG_GENERIC_ERROR)
            except Exception:
                logger.exception("Failed to post navigation error notice")

    def freeze_listing(self, session_id: str, session: PaginationSession) -> None:
        """Expiry callback: re-render the current page without buttons."""
        if self.client is None:
            logger.warning("No Slack client to freeze listing %s", session_id)
            return
        channel, ts = split_session_id(session_id)
        view = render_page(session, self.services.base_url)
        try:
            self.client.chat_update(
                channel=channel,
                ts=ts,
                blocks=build_upload_list_blocks(view, interactive=False),
                text="Your uploads ({})".format(view.footer),
            )
        except Exception:
            logger.exception("Failed to freeze listing %s", session_id)

    def handle_link_click(self, ack: Any) -> None:
        """Acknowledge Support/GitHub link buttons (no-op beyond ack).

        WHY: Slack sends an action payload even for URL buttons and shows
        a warning unless it is acknowledged.
        """
        ack()

    # ------------------------------------------------------------------
    # File relay
    # ------------------------------------------------------------------

    def handle_file_shared(self, event: Dict[str, Any], client: Any) -> None:
        """Relay a file shared with the bot to the sharer's Zipline account.

        RULES:
        - Only DMs with the bot (channel id "D…") or UPLOAD_CHANNEL_ID
        - No stored token → ephemeral hint, nothing uploaded
        - Download uses url_private with the bot token (Slack auth)
        - Result or failure goes back as an ephemeral message
        """
        file_id = event.get("file_id", "")
        channel_id = event.get("channel_id", "")
        user_id = event.get("user_id", "")

        if not _is_relay_channel(channel_id):
            return

        token = self.services.credentials.get(user_id)
        if not token:
            _safe_ephemeral(client, channel_id, user_id, MSG_NEED_TOKEN)
            return

        try:
            file_data = client.files_info(file=file_id).get("file", {})
            filename = file_data.get("name") or "upload"
            url = file_data.get("url_private_download") or file_data.get("url_private")
            if not url:
                raise ValidationError("Could not get a download link for that file.")

            result = relay_upload(
                self.services,
                user_id,
                token,
                url,
                filename,
                source_headers={"Authorization": "Bearer {}".format(client.token)},
            )
            _safe_ephemeral(
                client, channel_id, user_id,
                build_upload_result_text(result.links(self.services.base_url)),
            )
        except ValidationError as exc:
            _safe_ephemeral(client, channel_id, user_id, str(exc))
        except Exception as exc:
            self.services.reporter.report(
                exc, "file relay {} (user {})".format(file_id, user_id)
            )
            _safe_ephemeral(client, channel_id, user_id, MSG_GENERIC_ERROR)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_relay_channel(channel_id: str) -> bool:
    if not channel_id:
        return False
    return channel_id.startswith("D") or channel_id == UPLOAD_CHANNEL_ID


def _without_actions(blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [b for b in blocks if b.get("type") != "actions"]


def _safe_reply(ctx: CommandContext, text: str) -> None:
    try:
        ctx.reply(text)
    except Exception:
        logger.exception("Failed to reply to %s", ctx.user_id)


def _safe_ephemeral(client: Any, channel: str, user: str, text: str) -> None:
    try:
        client.chat_postEphemeral(channel=channel, user=user, text=text)
    except Exception:
        logger.exception("Failed to post ephemeral message to %s", user)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


def build_services() -> BotServices:
    """Build the production BotServices from config."""
    return BotServices(
        credentials=CredentialStore(TOKENS_FILE),
        settings=SettingsStore(SETTINGS_FILE),
        sessions=SessionRegistry(),
        reporter=ErrorReporter(ERROR_WEBHOOK_URL),
        base_url=ZIPLINE_BASE_URL,
        install_url=SLACK_INSTALL_URL,
        support_url=SUPPORT_URL,
        github_url=GITHUB_URL,
    )


def create_app(
    bot_token: Optional[str] = None,
    services: Optional[BotServices] = None,
) -> App:
    """Create and configure the Slack Bolt app with all handlers.

    WHY: Factory function allows tests and main() to inject the token and
    services, and avoids module-level side effects.

    RULES:
    - services defaults to build_services() (files from config)
    - All handlers are registered before returning
    """
    app = App(token=bot_token)
    bot = ZiplineBot(services or build_services(), client=app.client)

    app.command(COMMAND)(bot.handle_command)
    app.action(ACTION_PAGE_PREV)(bot.handle_page_prev)
    app.action(ACTION_PAGE_NEXT)(bot.handle_page_next)
    app.action(ACTION_LINK_SUPPORT)(bot.handle_link_click)
    app.action(ACTION_LINK_GITHUB)(bot.handle_link_click)
    app.event("file_shared")(bot.handle_file_shared)

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Start the Slack bot in Socket Mode.

    RULES:
    - Requires SLACK_BOT_TOKEN and SLACK_APP_TOKEN environment variables
    - Blocks on SocketModeHandler.start()
    - Open listings are frozen on the way out
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    bot_token, app_token = load_slack_tokens()
    services = build_services()
    app = create_app(bot_token=bot_token, services=services)

    logger.info("Starting Zipline bot in Socket Mode...")
    logger.info("Zipline base URL: %s", services.base_url)
    if UPLOAD_CHANNEL_ID:
        logger.info("Relaying shared files from DMs and channel %s", UPLOAD_CHANNEL_ID)
    else:
        logger.info("Relaying shared files from DMs only")
    if not services.reporter.has_webhook:
        logger.info("No ERROR_WEBHOOK_URL set; errors are only logged")

    handler = SocketModeHandler(app, app_token)
    try:
        handler.start()
    finally:
        closed = services.sessions.close_all()
        if closed:
            logger.info("Froze %d open listing(s) on shutdown", closed)


if __name__ == "__main__":
    main()
