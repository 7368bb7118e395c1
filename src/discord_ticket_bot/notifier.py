"""Guarded message delivery to channels, users and the configured log channels."""

import logging
from typing import Any

import discord

from discord_ticket_bot.config import Settings
from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.reporting import ErrorKind, ErrorReporter

logger = logging.getLogger(__name__)

LOG_CHANNEL_CONTEXT = "[Logging Error]: please make sure to at least configure your default log channel"


class Notifier:
    """Sends messages without letting delivery failures escape.

    Every failure is handed to the :class:`ErrorReporter` and the send
    returns ``None``, so one failed post never stops the rest of a workflow.
    """

    def __init__(self, settings: Settings, lookup: PlatformLookup, reporter: ErrorReporter) -> None:
        """Initialize the notifier."""
        self.settings = settings
        self.lookup = lookup
        self.reporter = reporter

    async def send(
        self,
        target: discord.abc.Messageable,
        context: str,
        **kwargs: Any,
    ) -> discord.Message | None:
        """Send to a channel or user, reporting failure with ``context``."""
        try:
            return await target.send(**kwargs)
        except discord.HTTPException as error:
            await self.reporter.report(ErrorKind.ERROR, error, context)
            return None

    async def send_log(self, log_type: str, **kwargs: Any) -> discord.Message | None:
        """Post to the log channel for ``log_type`` if its toggle is on.

        Args:
            log_type: Name of the entry in ``Settings.logs`` / ``Settings.toggle_logs``.
            **kwargs: Passed to ``send`` (``embed``, ``content``, ``file``...).
        """
        if not getattr(self.settings.toggle_logs, log_type, True):
            return None

        channel_id = self.settings.logs.resolve(log_type)
        channel = await self.lookup.get_channel(channel_id)
        if channel is None:
            logger.warning("No log channel available for %s (configured ID: %s)", log_type, channel_id)
            return None
        return await self.send(channel, LOG_CHANNEL_CONTEXT, **kwargs)
