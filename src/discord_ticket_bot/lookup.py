"""Cache-then-fetch lookups of Discord users, members, roles and channels."""

import logging

import discord

from discord_ticket_bot.reporting import ErrorKind, ErrorReporter

logger = logging.getLogger(__name__)


class PlatformLookup:
    """Resolves Discord entities by ID.

    Each lookup tries the client cache first and falls back to an API fetch.
    A failed fetch is reported and yields ``None``; callers must handle the
    absent result.
    """

    def __init__(self, client: discord.Client, guild_id: int | None, reporter: ErrorReporter) -> None:
        """Initialize the lookup helper."""
        self.client = client
        self.guild_id = guild_id
        self.reporter = reporter

    @property
    def guild(self) -> discord.Guild | None:
        """The guild the bot serves, from cache."""
        if self.guild_id is None:
            return None
        return self.client.get_guild(self.guild_id)

    async def get_user(self, user_id: int | None) -> discord.User | None:
        """Resolve a user by ID."""
        if user_id is None:
            return None
        user = self.client.get_user(user_id)
        if user is not None:
            return user
        try:
            return await self.client.fetch_user(user_id)
        except discord.HTTPException as error:
            await self.reporter.report(ErrorKind.ERROR, error, f"error fetching user with ID {user_id}")
            return None

    async def get_member(self, user_id: int | None) -> discord.Member | None:
        """Resolve a member of the served guild by user ID."""
        guild = self.guild
        if guild is None or user_id is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException as error:
            await self.reporter.report(ErrorKind.ERROR, error, f"error fetching member with ID {user_id}")
            return None

    async def get_role(self, role_id: int) -> discord.Role | None:
        """Resolve a role of the served guild by ID."""
        guild = self.guild
        if guild is None:
            return None
        role = guild.get_role(role_id)
        if role is not None:
            return role
        try:
            roles = await guild.fetch_roles()
        except discord.HTTPException as error:
            await self.reporter.report(ErrorKind.ERROR, error, f"error fetching role with ID {role_id}")
            return None
        return discord.utils.get(roles, id=role_id)

    async def get_channel(self, channel_id: int | None) -> discord.abc.GuildChannel | discord.Thread | None:
        """Resolve a channel by ID."""
        if channel_id is None:
            return None
        channel = self.client.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.client.fetch_channel(channel_id)
        except discord.HTTPException as error:
            await self.reporter.report(ErrorKind.ERROR, error, f"error fetching channel with ID {channel_id}")
            return None
