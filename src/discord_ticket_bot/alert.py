"""Alert a user in a ticket and act if they stay silent.

The flow posts a notification with a countdown, starts a :class:`BoundedWait`
for the user's reply in the background, records the alert in the log channel
and audit log, and finally tries to DM the user. Each send is guarded
separately, so a failure in one never prevents the others.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import partial

import discord
import logfire

from discord_ticket_bot.actions import TicketActions
from discord_ticket_bot.config import AutoAction, EmbedConfig, EmbedFooter, Settings
from discord_ticket_bot.embeds import build_embed, replace_description
from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.notifier import Notifier
from discord_ticket_bot.reporting import ErrorKind, ErrorReporter, log_message
from discord_ticket_bot.templates import sanitize_input, timestamp_token
from discord_ticket_bot.tickets import TicketRepository
from discord_ticket_bot.waiter import BoundedWait, EventWaiter, WaitOutcome

logger = logging.getLogger(__name__)

DEFAULT_ALERT_SECONDS = 120

ALERT_EMBED_DEFAULTS = EmbedConfig(
    color="#2FF200",
    title="Ticket Close Notification",
    description="This ticket will be closed soon if no response has been received.",
    timestamp=True,
)
ALERT_REPLY_EMBED_DEFAULTS = EmbedConfig(
    color="#2FF200",
    title="Alert Reply Notification",
    description="The user replied to the alert and seems to be available.",
    timestamp=True,
)
ALERT_DM_EMBED_DEFAULTS = EmbedConfig(
    color="#FF0000",
    title="Ticket Close Notification",
    description="Your ticket **#{ticketName}** in **{server}** will be closed soon if no response has been received.",
)
LOG_ALERT_EMBED_DEFAULTS = EmbedConfig(color="#FF2400", title="Ticket Logs | Ticket Alert", timestamp=True)
DM_ERROR_EMBED_DEFAULTS = EmbedConfig(
    color="#FF0000",
    title="DMs Disabled",
    description=(
        "The bot could not DM **{user} ({user.tag})** because their DMs were closed.\n"
        "Please enable `Allow Direct Messages` in this server to receive further information from the bot!"
    ),
    timestamp=True,
)


@dataclass
class AlertHandle:
    """What an alert leaves running after :meth:`AlertWorkflow.alert` returns."""

    notification: discord.Message | None = None
    wait: BoundedWait | None = None
    task: "asyncio.Task[WaitOutcome] | None" = None

    async def outcome(self) -> WaitOutcome | None:
        """Wait for the reply window to end. ``None`` when reply tracking is disabled."""
        if self.task is None:
            return None
        return await self.task

    def cancel(self) -> bool:
        """Stop waiting for a reply. No auto action runs afterwards."""
        return self.wait.cancel() if self.wait is not None else False


class AlertWorkflow:
    """Sends ticket alerts and applies the configured auto action on silence."""

    def __init__(
        self,
        client: EventWaiter,
        settings: Settings,
        repository: TicketRepository,
        lookup: PlatformLookup,
        notifier: Notifier,
        actions: TicketActions,
        reporter: ErrorReporter,
    ) -> None:
        """Initialize the workflow with its collaborators."""
        self.client = client
        self.settings = settings
        self.repository = repository
        self.lookup = lookup
        self.notifier = notifier
        self.actions = actions
        self.reporter = reporter
        self._pending: set[asyncio.Task[WaitOutcome]] = set()

    def resolve_timeout(self, seconds: int | None = None) -> int:
        """Return the reply window: explicit value, then configuration, then the default."""
        return seconds or self.settings.alert_reply.time or DEFAULT_ALERT_SECONDS

    async def alert(
        self,
        channel: discord.TextChannel,
        staff: discord.abc.User,
        user: discord.abc.User,
        seconds: int | None = None,
        *,
        now: datetime | None = None,
    ) -> AlertHandle:
        """Alert ``user`` in a ticket channel on behalf of ``staff``.

        Args:
            channel: The ticket channel.
            staff: Who sent the alert.
            user: Who is being alerted.
            seconds: Reply window; defaults to the configured time.
            now: Current time, used for the countdown shown in the notification.

        Returns:
            A handle on the background reply wait.
        """
        timeout = self.resolve_timeout(seconds)
        expires_at = (now or discord.utils.utcnow()) + timedelta(seconds=timeout)

        with logfire.span("alert {user} in #{channel}", user=str(user), channel=channel.name):
            embed = replace_description(
                build_embed(self.settings.embed("alert_embed"), ALERT_EMBED_DEFAULTS),
                {"time": timestamp_token(expires_at, "R")},
            )
            notification = await self.notifier.send(
                channel,
                f"[Alert Error]: failed to send the alert notification in #{channel.name}",
                embed=embed,
            )
            if notification is not None:
                await self.notifier.send(channel, f"[Alert Error]: failed to ping {user}", content=user.mention)

            handle = AlertHandle(notification=notification)
            if self.settings.alert_reply.enabled:
                handle.wait = BoundedWait(
                    self.client,
                    channel.id,
                    user.id,
                    timeout,
                    on_satisfied=partial(self._on_reply, channel, notification),
                    on_expired=partial(self._on_expired, channel.id),
                )
                handle.task = handle.wait.start()
                self._pending.add(handle.task)
                handle.task.add_done_callback(self._wait_done)

            await self._log_alert(channel, staff, user, timeout)
            log_message(f"{staff} sent an alert to {user} in the ticket #{channel.name}")

            if self.settings.alert_dm.enabled:
                await self._dm_user(channel, user)

        return handle

    async def _on_reply(
        self,
        channel: discord.TextChannel,
        notification: discord.Message | None,
        responder_id: int,
    ) -> None:
        try:
            await self._acknowledge_reply(channel, notification, responder_id)
        except Exception as error:
            await self.reporter.report(
                ErrorKind.UNHANDLED_REJECTION,
                error,
                f"[Alert Error]: failed to handle the reply in #{channel.name}",
            )

    async def _acknowledge_reply(
        self,
        channel: discord.TextChannel,
        notification: discord.Message | None,
        responder_id: int,
    ) -> None:
        if notification is not None:
            try:
                await notification.delete()
            except discord.HTTPException as error:
                await self.reporter.report(ErrorKind.ERROR, error, f"failed to remove the alert in #{channel.name}")

        embed = build_embed(self.settings.embed("alert_reply_embed"), ALERT_REPLY_EMBED_DEFAULTS)
        await self.notifier.send(channel, f"[Alert Error]: failed to post reply notice in #{channel.name}", embed=embed)
        logger.info("User %d answered the alert in #%s", responder_id, channel.name)

    async def _on_expired(self, channel_id: int) -> None:
        action = self.settings.alert_reply.auto_action
        if action is AutoAction.NONE:
            return
        try:
            if not await self.repository.exists(channel_id):
                logger.debug("Ticket %d is gone, skipping auto %s", channel_id, action.value)
                return

            logger.info("No reply to alert in ticket %d, auto %s", channel_id, action.value)
            if action is AutoAction.CLOSE:
                await self.actions.close(channel_id)
            elif action is AutoAction.DELETE:
                await self.actions.delete(channel_id)
        except Exception as error:
            await self.reporter.report(
                ErrorKind.UNHANDLED_REJECTION,
                error,
                f"[Alert Error]: auto {action.value} of ticket {channel_id} failed",
            )

    def _wait_done(self, task: "asyncio.Task[WaitOutcome]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Alert follow-up failed", exc_info=error)

    async def _log_alert(
        self,
        channel: discord.TextChannel,
        staff: discord.abc.User,
        user: discord.abc.User,
        timeout: int,
    ) -> None:
        creator = await self.lookup.get_user(await self.repository.get_field(channel.id, "user_id"))
        ticket_type = await self.repository.get_field(channel.id, "ticket_type")

        defaults = LOG_ALERT_EMBED_DEFAULTS.model_copy(update={"footer": EmbedFooter(text=str(staff))})
        embed = build_embed(self.settings.embed("log_alert_embed"), defaults)
        embed.add_field(name="• Alert Sent By", value=f"> {staff.mention}\n> {sanitize_input(str(staff))}")
        embed.add_field(name="• Alert Sent To", value=f"> {user.mention}\n> {sanitize_input(str(user))}")
        if creator is not None:
            embed.add_field(name="• Ticket Creator", value=f"> {creator.mention}\n> {sanitize_input(str(creator))}")
        embed.add_field(name="• Ticket", value=f"> #{sanitize_input(channel.name)}\n> {ticket_type}")
        embed.add_field(name="• Time", value=f"> {timeout} seconds")

        await self.notifier.send_log("ticket_alert", embed=embed)

    async def _dm_user(self, channel: discord.TextChannel, user: discord.abc.User) -> None:
        wants_dm = await self.repository.get_user_preference(
            user.id,
            "alert",
            default=self.settings.default_dm_preference,
        )
        if not wants_dm:
            return

        embed = replace_description(
            build_embed(self.settings.embed("alert_dm_embed"), ALERT_DM_EMBED_DEFAULTS),
            {"ticketName": channel.name, "server": channel.guild.name},
        )
        try:
            await user.send(embed=embed)
        except discord.HTTPException as error:
            await self.reporter.report(
                ErrorKind.ERROR,
                error,
                f"[Alert Error]: failed to DM {user} because their DMs were closed.",
            )
            await self._post_dm_error(user)

    async def _post_dm_error(self, user: discord.abc.User) -> None:
        defaults = DM_ERROR_EMBED_DEFAULTS.model_copy(update={"footer": EmbedFooter(text=str(user))})
        embed = replace_description(
            build_embed(self.settings.embed("dm_error_embed"), defaults),
            {"user.tag": sanitize_input(str(user)), "user": user.mention},
        )
        content = user.mention if self.settings.dm_error.ping_user else None
        await self.notifier.send_log("dm_errors", embed=embed, content=content)
        log_message(f"The bot could not DM {user} because their DMs were closed")
