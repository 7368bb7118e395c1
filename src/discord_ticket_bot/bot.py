"""Discord client hosting the ticket workflows."""

import logging
import sys
from pathlib import Path
from typing import Any

import discord
from discord.ext import tasks

from discord_ticket_bot.actions import TicketActions
from discord_ticket_bot.alert import AlertWorkflow
from discord_ticket_bot.config import Settings
from discord_ticket_bot.history import HistoryReader
from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.notifier import Notifier
from discord_ticket_bot.reporting import ErrorKind, ErrorReporter
from discord_ticket_bot.store import KeyValueStore
from discord_ticket_bot.tickets import TicketRepository
from discord_ticket_bot.transcript import TranscriptService

logger = logging.getLogger(__name__)


class TicketBot(discord.Client):
    """Discord client that owns the ticket stores and workflows.

    Collaborators are built once here and handed to each other explicitly.
    """

    def __init__(self, settings: Settings, db_path: str | Path = "data/tickets.sqlite") -> None:
        """Initialize the bot with settings and its database file."""
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.members = True

        super().__init__(intents=intents)

        self.settings = settings

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.repository = TicketRepository(
            tickets=KeyValueStore(db_path, "tickets"),
            blacklist=KeyValueStore(db_path, "blacklist"),
            main=KeyValueStore(db_path, "main"),
        )
        self.reporter = ErrorReporter(settings, self)
        self.lookup = PlatformLookup(self, settings.guild_id, self.reporter)
        self.notifier = Notifier(settings, self.lookup, self.reporter)
        self.reader = HistoryReader()
        self.transcripts = TranscriptService(settings, self.reader, self.repository, self.lookup)
        self.actions = TicketActions(
            settings,
            self.repository,
            self.lookup,
            self.notifier,
            self.transcripts,
            self.reporter,
        )
        self.alerts = AlertWorkflow(
            self,
            settings,
            self.repository,
            self.lookup,
            self.notifier,
            self.actions,
            self.reporter,
        )

        self.clean_blacklist.change_interval(minutes=settings.blacklist_clean_interval_minutes)

    async def setup_hook(self) -> None:
        """Start background tasks once the client is logged in."""
        self.clean_blacklist.start()

    async def on_ready(self) -> None:
        """Called when the bot is ready."""
        logger.info("Bot is ready. Logged in as %s", self.user)
        if self.settings.guild_id and self.get_guild(self.settings.guild_id) is None:
            logger.warning("Configured guild %d is not available to the bot", self.settings.guild_id)

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        """Report errors that escape an event handler."""
        error = sys.exception()
        if error is None:
            return
        logger.error("Unhandled error in %s", event_method, exc_info=error)
        await self.reporter.report(ErrorKind.UNCAUGHT_EXCEPTION, error, f"event handler {event_method}")

    @tasks.loop(minutes=5)
    async def clean_blacklist(self) -> None:
        """Periodically drop expired blacklist entries."""
        removed = await self.repository.clean_blacklist(self.lookup, self.settings.roles_on_blacklist)
        if removed:
            logger.info("Removed %d expired blacklist entries", len(removed))

    @clean_blacklist.before_loop
    async def _before_clean_blacklist(self) -> None:
        await self.wait_until_ready()
