"""Paginated reading of a channel's message history."""

import logging
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Protocol

import discord
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class EmbedField(BaseModel):
    """A name/value pair of an embed."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class EmbedSummary(BaseModel):
    """Flattened view of a rich embed."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    fields: tuple[EmbedField, ...] = ()

    @classmethod
    def from_embed(cls, embed: discord.Embed) -> "EmbedSummary":
        """Summarise a Discord embed."""
        return cls(
            title=embed.title or None,
            description=embed.description or None,
            fields=tuple(EmbedField(name=field.name or "", value=field.value or "") for field in embed.fields),
        )


class MessageRecord(BaseModel):
    """Immutable snapshot of a Discord message."""

    model_config = ConfigDict(frozen=True)

    id: int
    author_id: int
    author_display_name: str
    author_name: str | None = None
    author_bot: bool = False
    author_avatar_url: str | None = None
    created_at: datetime
    text_content: str = ""
    attachment_urls: tuple[str, ...] = ()
    embed_summaries: tuple[EmbedSummary, ...] = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageRecord":
        """Snapshot a Discord message."""
        avatar = message.author.display_avatar
        return cls(
            id=message.id,
            author_id=message.author.id,
            author_display_name=message.author.display_name,
            author_name=message.author.name,
            author_bot=message.author.bot,
            author_avatar_url=avatar.url if avatar else None,
            created_at=message.created_at,
            text_content=message.content or "",
            attachment_urls=tuple(attachment.proxy_url for attachment in message.attachments),
            embed_summaries=tuple(EmbedSummary.from_embed(embed) for embed in message.embeds),
        )


class HistoryChannel(Protocol):
    """The part of a Discord messageable channel the reader needs."""

    def history(
        self,
        *,
        limit: int | None = ...,
        before: discord.abc.Snowflake | None = ...,
    ) -> AsyncIterator[discord.Message]:
        """Iterate messages newest first."""
        ...


MessagePredicate = Callable[[MessageRecord], bool]


class HistoryReader:
    """Reads channel history backward in fixed-size pages.

    Each page asks for messages strictly older than the oldest message of the
    previous page. Reading stops at the first page shorter than the page size,
    so a channel holding an exact multiple of the page size costs one extra,
    empty fetch.
    """

    def __init__(self, page_size: int = PAGE_SIZE) -> None:
        """Initialize the reader."""
        self.page_size = page_size

    async def fetch_page(self, channel: HistoryChannel, before: int | None = None) -> list[MessageRecord]:
        """Fetch one page of messages older than ``before``, newest first."""
        cursor = discord.Object(id=before) if before is not None else None
        history = channel.history(limit=self.page_size, before=cursor)
        return [MessageRecord.from_message(message) async for message in history]

    async def iter_pages(self, channel: HistoryChannel) -> AsyncIterator[list[MessageRecord]]:
        """Yield pages newest to oldest until the history is exhausted."""
        before: int | None = None
        while True:
            page = await self.fetch_page(channel, before)
            yield page
            if len(page) < self.page_size:
                return
            before = page[-1].id

    async def fetch_all(
        self,
        channel: HistoryChannel,
        stop: MessagePredicate | None = None,
    ) -> list[MessageRecord]:
        """Return every message of a channel, newest first.

        Args:
            channel: Channel to read.
            stop: Optional predicate; reading ends after the first page that
                contains a matching message. Pages are scanned newest first,
                so this finds the most recent match, not the oldest one.

        Returns:
            All fetched messages. Its length is the total count over all pages.
        """
        messages: list[MessageRecord] = []
        pages = 0
        async for page in self.iter_pages(channel):
            pages += 1
            messages.extend(page)
            if stop is not None and any(stop(message) for message in page):
                break

        logger.debug("Fetched %d messages in %d pages", len(messages), pages)
        return messages

    async def find_latest(self, channel: HistoryChannel, predicate: MessagePredicate) -> MessageRecord | None:
        """Return the newest message matching ``predicate``, reading only as far as needed."""
        async for page in self.iter_pages(channel):
            for message in page:
                if predicate(message):
                    return message
        return None

    async def find_earliest(self, channel: HistoryChannel, predicate: MessagePredicate) -> MessageRecord | None:
        """Return the oldest message matching ``predicate``. Always reads the whole history."""
        earliest = None
        for message in await self.fetch_all(channel):
            if predicate(message):
                earliest = message
        return earliest

    async def count_messages(self, channel: HistoryChannel) -> int:
        """Count every message in a channel."""
        total = 0
        async for page in self.iter_pages(channel):
            total += len(page)
        return total

    async def last_user_message_at(self, channel: HistoryChannel, user_id: int) -> datetime | None:
        """Return when a user last posted in a channel."""
        message = await self.find_latest(channel, lambda m: m.author_id == user_id)
        return message.created_at if message else None

    async def last_channel_message_at(self, channel: HistoryChannel, *, ignore_bots: bool = False) -> datetime | None:
        """Return when anyone (optionally excluding bots) last posted in a channel."""
        message = await self.find_latest(channel, lambda m: not (ignore_bots and m.author_bot))
        return message.created_at if message else None
