"""Error reporting: log with context and relay to an alert webhook.

WHY: Failures inside command handlers are turned into a generic notice
for the user, so the real cause must reach the operators some other way.
Logging covers the console; an optional Slack incoming webhook pushes the
same error into an ops channel.

HOW: ErrorReporter.report() logs the exception with its traceback and,
when a webhook URL is configured, sends a short text alert through
slack_sdk's WebhookClient.

RULES:
- report() never raises; a failing webhook is logged and ignored
- Alerts carry the exception type, message and context, never tokens
- Without a webhook URL the reporter only logs
"""

from __future__ import annotations

import logging
import traceback
from typing import Optional

from slack_sdk.webhook import WebhookClient

logger = logging.getLogger(__name__)

_MAX_TRACE_CHARS = 2500


class ErrorReporter:
    """Logs handler errors and optionally relays them to a webhook."""

    def __init__(
        self,
        webhook_url: str = "",
        webhook: Optional[WebhookClient] = None,
    ) -> None:
        if webhook is None and webhook_url:
            webhook = WebhookClient(webhook_url)
        self._webhook = webhook

    @property
    def has_webhook(self) -> bool:
        return self._webhook is not None

    def report(self, exc: BaseException, context: str) -> None:
        """Record exc raised while handling context (e.g. "/zipline list")."""
        logger.error("Error in %s: %s", context, exc, exc_info=exc)

        if self._webhook is None:
            return

        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        if len(trace) > _MAX_TRACE_CHARS:
            trace = "…" + trace[-_MAX_TRACE_CHARS:]

        try:
            resp = self._webhook.send(
                text=":x: Error in {}\n```{}```".format(context, trace),
            )
            if resp.status_code != 200:
                logger.warning(
                    "Alert webhook answered %s: %s", resp.status_code, resp.body
                )
        except Exception:
            logger.exception("Failed to send alert webhook")
