"""Ticket lifecycle actions: close, delete, reopen and manual transcripts."""

import logging
import time
from enum import Enum

import discord
import logfire

from discord_ticket_bot.config import EmbedConfig, EmbedFooter, Settings
from discord_ticket_bot.embeds import build_embed, replace_description
from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.notifier import Notifier
from discord_ticket_bot.reporting import ErrorKind, ErrorReporter, log_message
from discord_ticket_bot.templates import sanitize_input
from discord_ticket_bot.tickets import TicketRepository, TicketStatus
from discord_ticket_bot.transcript import TranscriptArtifact, TranscriptService

logger = logging.getLogger(__name__)

AUTOMATION = "Automation"

CLOSE_EMBED_DEFAULTS = EmbedConfig(
    color="#FF2400",
    title="Ticket Closed",
    description="This ticket was closed by {user}.",
    timestamp=True,
)
REOPEN_EMBED_DEFAULTS = EmbedConfig(
    color="#2FF200",
    title="Ticket Re-Opened",
    description="This ticket has been re-opened by {user}.",
    timestamp=True,
)
DELETE_LOG_DEFAULTS = EmbedConfig(color="#FF0000", title="Ticket Logs | Ticket Deleted", timestamp=True)
CLOSE_LOG_DEFAULTS = EmbedConfig(color="#FF2400", title="Ticket Logs | Ticket Closed", timestamp=True)
TRANSCRIPT_EMBED_DEFAULTS = EmbedConfig(
    color="#2FF200",
    title="Ticket Transcript",
    description="Saved by {user}",
    timestamp=True,
)


class ReopenResult(str, Enum):
    """Outcome of a reopen request."""

    NOT_A_TICKET = "not_a_ticket"
    ALREADY_OPEN = "already_open"
    REOPENED = "reopened"


def _actor(user: discord.abc.User | None) -> tuple[str, str]:
    """Return (mention, tag) for whoever performed an action."""
    if user is None:
        return AUTOMATION, AUTOMATION
    return user.mention, str(user)


class TicketActions:
    """Performs state changes on ticket channels."""

    def __init__(
        self,
        settings: Settings,
        repository: TicketRepository,
        lookup: PlatformLookup,
        notifier: Notifier,
        transcripts: TranscriptService,
        reporter: ErrorReporter,
    ) -> None:
        """Initialize the actions with their collaborators."""
        self.settings = settings
        self.repository = repository
        self.lookup = lookup
        self.notifier = notifier
        self.transcripts = transcripts
        self.reporter = reporter

    async def close(self, channel_id: int, closed_by: discord.abc.User | None = None) -> bool:
        """Close an open ticket.

        Returns:
            Whether the ticket was closed. Missing or already closed tickets are left alone.
        """
        if await self.repository.get_status(channel_id) is not TicketStatus.OPEN:
            return False
        channel = await self.lookup.get_channel(channel_id)
        if channel is None:
            return False

        mention, tag = _actor(closed_by)
        await self.repository.set_field(channel_id, "status", TicketStatus.CLOSED.value)
        await self.repository.set_field(channel_id, "close_time", int(time.time()))

        embed = replace_description(
            build_embed(self.settings.embed("close_embed"), CLOSE_EMBED_DEFAULTS),
            {"user": mention},
        )
        await self.notifier.send(channel, f"failed to send close notice to #{channel.name}", embed=embed)

        if self.settings.closed_category_id is not None:
            category = await self.lookup.get_channel(self.settings.closed_category_id)
            if isinstance(category, discord.CategoryChannel):
                try:
                    await channel.edit(category=category)
                except discord.HTTPException as error:
                    await self.reporter.report(
                        ErrorKind.ERROR,
                        error,
                        f"failed to move #{channel.name} to the closed category",
                    )

        log_embed = build_embed(self.settings.embed("log_close_embed"), CLOSE_LOG_DEFAULTS)
        log_embed.add_field(name="• Closed By", value=f"> {mention}\n> {sanitize_input(tag)}")
        log_embed.add_field(name="• Ticket", value=f"> #{sanitize_input(channel.name)}")
        await self.notifier.send_log("ticket_close", embed=log_embed)

        log_message(f"{tag} closed the ticket #{channel.name}")
        return True

    async def delete(self, channel_id: int, deleted_by: discord.abc.User | None = None) -> bool:
        """Archive a ticket's transcript, forget it and delete its channel.

        Returns:
            Whether the ticket existed and was deleted.
        """
        if not await self.repository.exists(channel_id):
            return False
        channel = await self.lookup.get_channel(channel_id)
        if channel is None:
            await self.repository.remove(channel_id)
            return False

        mention, tag = _actor(deleted_by)
        with logfire.span("delete ticket #{channel}", channel=channel.name):
            transcript = await self.transcripts.build(channel, deleted_by=tag if deleted_by else None)

            log_embed = build_embed(self.settings.embed("log_delete_embed"), DELETE_LOG_DEFAULTS)
            log_embed.add_field(name="• Deleted By", value=f"> {mention}\n> {sanitize_input(tag)}")
            log_embed.add_field(name="• Ticket", value=f"> #{sanitize_input(channel.name)}")
            log_embed.add_field(name="• Messages", value=f"> {transcript.total_message_count}")
            await self.notifier.send_log("ticket_delete", embed=log_embed, file=transcript.to_file())

            await self.repository.remove(channel_id)
            try:
                await channel.delete(reason=f"Ticket deleted by {tag}")
            except discord.HTTPException as error:
                await self.reporter.report(ErrorKind.ERROR, error, f"failed to delete channel #{channel.name}")

        log_message(f"{tag} deleted the ticket #{channel.name}")
        return True

    async def reopen(self, channel_id: int, reopened_by: discord.abc.User) -> ReopenResult:
        """Re-open a closed ticket."""
        status = await self.repository.get_status(channel_id)
        if status is None:
            return ReopenResult.NOT_A_TICKET
        if status is TicketStatus.OPEN:
            return ReopenResult.ALREADY_OPEN

        await self.repository.set_field(channel_id, "status", TicketStatus.OPEN.value)
        channel = await self.lookup.get_channel(channel_id)
        if channel is not None:
            embed = replace_description(
                build_embed(self.settings.embed("reopen_embed"), REOPEN_EMBED_DEFAULTS),
                {"user": reopened_by.mention},
            )
            await self.notifier.send(channel, f"failed to send reopen notice to #{channel.name}", embed=embed)
            log_message(f"{reopened_by} re-opened the ticket #{channel.name}")
        return ReopenResult.REOPENED

    async def save_transcript(self, channel: discord.TextChannel, staff: discord.abc.User) -> TranscriptArtifact:
        """Build a transcript on request and post it to the transcripts log channel."""
        transcript = await self.transcripts.build(channel, deleted_by=str(staff))
        creator = await self.lookup.get_user(await self.repository.get_field(channel.id, "user_id"))
        creator_tag = str(creator) if creator else "Unknown"
        creation_time = await self.repository.get_field(channel.id, "creation_time")

        defaults = TRANSCRIPT_EMBED_DEFAULTS.model_copy(update={"footer": EmbedFooter(text=creator_tag)})
        embed = replace_description(
            build_embed(self.settings.embed("transcript_embed"), defaults),
            {"user": staff.mention},
        )
        embed.add_field(
            name="Ticket Creator",
            value=f"<@!{creator.id}>\n{sanitize_input(creator_tag)}" if creator else creator_tag,
            inline=True,
        )
        embed.add_field(name="Ticket Name", value=f"<#{channel.id}>\n{sanitize_input(channel.name)}", inline=True)
        embed.add_field(
            name="Category",
            value=str(await self.repository.get_field(channel.id, "ticket_type")),
            inline=True,
        )
        if creation_time:
            embed.add_field(name="Creation Time", value=f"<t:{creation_time}:F>")

        await self.notifier.send_log("transcripts", embed=embed, file=transcript.to_file())
        log_message(
            f"{staff} manually saved the transcript of ticket #{channel.name} which was created by {creator_tag}",
        )
        return transcript
