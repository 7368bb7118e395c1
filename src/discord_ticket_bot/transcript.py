"""Ticket transcripts: flat text and HTML renderings of a channel's history."""

import html
import io
import logging
from collections.abc import Sequence
from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo

import discord
import logfire
from pydantic import BaseModel, ConfigDict

from discord_ticket_bot.config import Settings, TranscriptType
from discord_ticket_bot.history import EmbedSummary, HistoryReader, MessageRecord
from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.templates import render_template
from discord_ticket_bot.tickets import TicketRepository

logger = logging.getLogger(__name__)

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp")

_HTML_STYLE = (
    "body{background:#2f3136;color:#ddd;font-family:Segoe UI,Arial,sans-serif;margin:0;padding:24px}"
    ".card{background:#1e1f22;border:1px solid #3a3c41;border-radius:10px;padding:14px;margin-bottom:14px}"
    ".meta{border-collapse:collapse;width:100%}"
    ".meta th{background:#232428;color:#aaa;text-align:left;padding:6px 10px;width:180px}"
    ".meta td{padding:6px 10px}"
    ".msg{display:flex;gap:10px;margin:10px 0}"
    ".avatar{width:38px;height:38px;border-radius:50%;flex:0 0 38px}"
    ".bubble{background:#1e1f22;border:1px solid #2a2c30;border-radius:10px;padding:8px 12px;flex:1}"
    ".author{font-weight:600;color:#fff;margin-right:8px}"
    ".time{color:#8a8e95;font-size:12px}"
    ".content{white-space:pre-wrap}"
    ".attach img{max-width:400px;display:block;margin-top:6px}"
    ".embed{margin-top:8px;border-left:4px solid #5865F2;background:#111214;border-radius:8px;padding:8px 10px}"
    ".etitle{font-weight:600}.fname{font-weight:600}"
)


class TranscriptContext(BaseModel):
    """Ticket details printed in a transcript header."""

    model_config = ConfigDict(frozen=True)

    guild_name: str
    channel_name: str
    category_name: str
    creator_tag: str
    deleted_by_tag: str
    claimed_by_tag: str | None = None


class TranscriptArtifact(BaseModel):
    """A finished transcript, ready to be sent as an attachment."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    header: str
    lines: tuple[str, ...]
    total_message_count: int
    format: TranscriptType = TranscriptType.TXT

    def render(self) -> str:
        """Return the full transcript document."""
        if self.format is TranscriptType.HTML:
            return "".join([self.header, *self.lines, "</body></html>"])
        return "\n".join([self.header, *self.lines, f"\nTotal messages: {self.total_message_count}"])

    def to_file(self) -> discord.File:
        """Wrap the transcript in a Discord attachment."""
        return discord.File(io.BytesIO(self.render().encode("utf-8")), filename=self.file_name)


def resolve_timezone(name: str) -> tzinfo:
    """Return the timezone used for transcript timestamps."""
    if name.upper() == "UTC":
        return UTC
    return ZoneInfo(name)


def resolve_file_name(
    template: str,
    channel_name: str,
    transcript_type: TranscriptType,
    *,
    username: str | None = None,
    display_name: str | None = None,
) -> str:
    """Fill in the transcript file name template and append the file extension.

    ``{username}`` and ``{displayName}`` are only substituted when the ticket
    creator is known; ``{displayName}`` falls back to the username.
    """
    values: dict[str, object] = {"channelName": channel_name}
    if username is not None:
        values["username"] = username
        values["displayName"] = display_name or username
    suffix = ".html" if transcript_type is TranscriptType.HTML else ".txt"
    return render_template(template, values) + suffix


def format_timestamp(moment: datetime, tz: tzinfo) -> str:
    """Format a message time like ``10/19/2026, 3:04:05 PM``."""
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {meridiem}"


def flatten_embed(embed: EmbedSummary) -> str:
    """Render an embed as plain text, leaving out empty sections."""
    sections = []
    if embed.title:
        sections.append(f"Embed Title: {embed.title}")
    if embed.description:
        sections.append(f"Embed Description: {embed.description}")
    sections.extend(f"{field.name} : {field.value}" for field in embed.fields)
    return "\n".join(sections).strip()


def format_message_line(message: MessageRecord, tz: tzinfo) -> str:
    """Render one message as a transcript line, naming the author by username."""
    segments = [
        message.text_content,
        "\n".join(message.attachment_urls),
        "\n".join(text for text in (flatten_embed(embed) for embed in message.embed_summaries) if text),
    ]
    body = " ".join(segment for segment in segments if segment)
    author = message.author_name or message.author_display_name
    return f"[{format_timestamp(message.created_at, tz)}] {author}: {body}"


def build_header(context: TranscriptContext) -> str:
    """Return the header block of a text transcript."""
    return (
        f"Server: {context.guild_name}\n"
        f"Ticket: #{context.channel_name}\n"
        f"Category: {context.category_name}\n"
        f"Ticket Author: {context.creator_tag}\n"
        f"Deleted By: {context.deleted_by_tag}\n"
        f"Claimed By: {context.claimed_by_tag or 'None'}\n"
    )


def serialize_flat(
    messages: Sequence[MessageRecord],
    context: TranscriptContext,
    file_name: str,
    tz: tzinfo = UTC,
) -> TranscriptArtifact:
    """Build a text transcript.

    Args:
        messages: Messages in fetch order (newest first), as returned by
            :meth:`HistoryReader.fetch_all`.
        context: Ticket details for the header.
        file_name: Attachment file name.
        tz: Timezone used to print message times.

    Returns:
        The transcript, oldest message first.
    """
    lines = tuple(format_message_line(message, tz) for message in reversed(messages))
    return TranscriptArtifact(
        file_name=file_name,
        header=build_header(context),
        lines=lines,
        total_message_count=len(messages),
        format=TranscriptType.TXT,
    )


def _html_attachment(url: str, *, inline_images: bool) -> str:
    escaped = html.escape(url)
    if inline_images and url.lower().split("?", 1)[0].endswith(_IMAGE_SUFFIXES):
        return f"<img src='{escaped}'/>"
    return f"<a href='{escaped}' target='_blank'>{escaped}</a>"


def _html_embed(embed: EmbedSummary) -> str:
    parts = []
    if embed.title:
        parts.append(f"<div class='etitle'>{html.escape(embed.title)}</div>")
    if embed.description:
        parts.append(f"<div class='edesc'>{html.escape(embed.description).replace(chr(10), '<br>')}</div>")
    for field in embed.fields:
        parts.append(
            f"<div class='efield'><div class='fname'>{html.escape(field.name)}</div>"
            f"<div class='fvalue'>{html.escape(field.value).replace(chr(10), '<br>')}</div></div>"
        )
    return f"<div class='embed'>{''.join(parts)}</div>"


def _html_message(message: MessageRecord, tz: tzinfo, *, inline_images: bool) -> str:
    avatar = (
        f"<img class='avatar' src='{html.escape(message.author_avatar_url)}'/>" if message.author_avatar_url else ""
    )
    content = f"<div class='content'>{html.escape(message.text_content)}</div>" if message.text_content else ""
    attachments = "".join(_html_attachment(url, inline_images=inline_images) for url in message.attachment_urls)
    attach_html = f"<div class='attach'>{attachments}</div>" if attachments else ""
    embeds = "".join(_html_embed(embed) for embed in message.embed_summaries)
    return (
        f"<div class='msg'>{avatar}<div class='bubble'>"
        f"<span class='author'>{html.escape(message.author_display_name)}</span>"
        f"<span class='time'>{html.escape(format_timestamp(message.created_at, tz))}</span>"
        f"{content}{embeds}{attach_html}</div></div>"
    )


def serialize_html(
    messages: Sequence[MessageRecord],
    context: TranscriptContext,
    file_name: str,
    tz: tzinfo = UTC,
    *,
    inline_images: bool = True,
) -> TranscriptArtifact:
    """Build an HTML transcript. Takes messages newest first, like :func:`serialize_flat`."""
    rows = [
        ("Server", context.guild_name),
        ("Ticket", f"#{context.channel_name}"),
        ("Category", context.category_name),
        ("Ticket Author", context.creator_tag),
        ("Deleted By", context.deleted_by_tag),
        ("Claimed By", context.claimed_by_tag or "None"),
        ("Total messages", str(len(messages))),
    ]
    table = "".join(f"<tr><th>{name}</th><td>{html.escape(value)}</td></tr>" for name, value in rows)
    header = (
        "<!DOCTYPE html><html><head><meta charset='UTF-8'>"
        f"<title>{html.escape(context.channel_name)}</title><style>{_HTML_STYLE}</style></head><body>"
        f"<div class='card'><table class='meta'>{table}</table></div>"
    )
    lines = tuple(_html_message(message, tz, inline_images=inline_images) for message in reversed(messages))
    return TranscriptArtifact(
        file_name=file_name,
        header=header,
        lines=lines,
        total_message_count=len(messages),
        format=TranscriptType.HTML,
    )


def serialize(
    messages: Sequence[MessageRecord],
    context: TranscriptContext,
    transcript_type: TranscriptType,
    file_name: str,
    tz: tzinfo = UTC,
    *,
    inline_images: bool = True,
) -> TranscriptArtifact:
    """Build a transcript in the requested format."""
    if transcript_type is TranscriptType.HTML:
        return serialize_html(messages, context, file_name, tz, inline_images=inline_images)
    return serialize_flat(messages, context, file_name, tz)


class TranscriptService:
    """Builds transcripts for ticket channels."""

    def __init__(
        self,
        settings: Settings,
        reader: HistoryReader,
        repository: TicketRepository,
        lookup: PlatformLookup,
    ) -> None:
        """Initialize the service with its collaborators."""
        self.settings = settings
        self.reader = reader
        self.repository = repository
        self.lookup = lookup

    async def build(
        self,
        channel: discord.TextChannel,
        *,
        deleted_by: str | None = None,
        transcript_type: TranscriptType | None = None,
    ) -> TranscriptArtifact:
        """Read a ticket channel and build its transcript.

        Args:
            channel: The ticket channel.
            deleted_by: Tag of whoever triggered the transcript; defaults to the bot.
            transcript_type: Output format; defaults to the configured one.
        """
        transcript_type = transcript_type or self.settings.transcript_type

        with logfire.span("build transcript for #{channel}", channel=channel.name):
            messages = await self.reader.fetch_all(channel)

            creator = await self.lookup.get_user(await self.repository.get_field(channel.id, "user_id"))
            claim_user_id = await self.repository.get_field(channel.id, "claim_user")
            claimer = await self.lookup.get_user(claim_user_id) if claim_user_id else None
            category = await self.repository.get_field(channel.id, "ticket_type")

            display_name = None
            if creator is not None:
                member = await self.lookup.get_member(creator.id)
                display_name = member.display_name if member else creator.name

            bot_user = self.lookup.client.user
            context = TranscriptContext(
                guild_name=channel.guild.name,
                channel_name=channel.name,
                category_name=str(category),
                creator_tag=str(creator) if creator else "Unknown",
                deleted_by_tag=deleted_by or (str(bot_user) if bot_user else "Automation"),
                claimed_by_tag=str(claimer) if claimer else None,
            )
            file_name = resolve_file_name(
                self.settings.transcript_name,
                channel.name,
                transcript_type,
                username=creator.name if creator else None,
                display_name=display_name,
            )

        logger.info("Built %s transcript of #%s (%d messages)", transcript_type.value, channel.name, len(messages))
        return serialize(
            messages,
            context,
            transcript_type,
            file_name,
            resolve_timezone(self.settings.transcript_timezone),
            inline_images=self.settings.transcript_images,
        )
