"""Error reporting and the audit log.

Errors from platform calls are funneled through :class:`ErrorReporter` rather
than raised to the command that triggered them. Audit lines ("who did what in
which ticket") go to a dedicated logger that ``main.setup_logging`` points at
``logs/tickets.log``.
"""

import logging
import platform
import traceback
from datetime import UTC, datetime
from enum import Enum

import discord

from discord_ticket_bot.config import Settings

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("discord_ticket_bot.audit")

_CODE_BLOCK_LIMIT = 1900


class ErrorKind(str, Enum):
    """Category attached to a reported error."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    UNHANDLED_REJECTION = "UNHANDLED_REJECTION"
    UNCAUGHT_EXCEPTION = "UNCAUGHT_EXCEPTION"


def log_message(message: str) -> None:
    """Append a line to the audit log."""
    audit_logger.info(message)


class ErrorReporter:
    """Records errors to the audit log or a designated Discord channel. Never raises."""

    def __init__(self, settings: Settings, client: discord.Client | None = None) -> None:
        """Initialize the reporter.

        Args:
            settings: Application settings (error channel, bot version).
            client: Client used to resolve the error channel, if errors go to Discord.
        """
        self.settings = settings
        self.client = client

    def format(self, kind: ErrorKind, error: BaseException, context: str | None = None) -> str:
        """Build the text block written for an error."""
        now = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S %Z")
        stack = "".join(traceback.format_exception(error)).rstrip()
        header = (
            f"[{now}] -> [Bot v{self.settings.bot_version}] "
            f"[Python {platform.python_version()}] [Type: {kind.value}]"
        )
        text = f"{header}\n\n{stack}"
        if context:
            text += f"\n\n[Error Context] -> {context}"
        return text

    async def report(self, kind: ErrorKind, error: BaseException, context: str | None = None) -> None:
        """Record an error.

        Args:
            kind: Error category.
            error: The exception being reported.
            context: Short human-readable description of what was being attempted.
        """
        text = self.format(kind, error, context)

        channel_id = self.settings.logs_file_channel_id
        if self.settings.logs_file_to_channel and channel_id and self.client is not None:
            try:
                channel = self.client.get_channel(channel_id) or await self.client.fetch_channel(channel_id)
                await channel.send(f"```\n{text[-_CODE_BLOCK_LIMIT:]}\n```")
            except discord.HTTPException:
                logger.exception("Failed to post error report to channel %d", channel_id)
            else:
                return

        audit_logger.error(text)
