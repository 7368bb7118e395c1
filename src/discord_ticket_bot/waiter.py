"""Wait a bounded time for a reply from one user, then act on the outcome.

A :class:`BoundedWait` moves from ``WAITING`` to exactly one terminal state:
``SATISFIED`` when the target user posts in the channel before the deadline,
``EXPIRED`` when the deadline passes first, or ``CANCELLED`` when the caller
cancels it. Only the first qualifying message is considered, and at most one
of the two callbacks ever runs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import discord

logger = logging.getLogger(__name__)


class WaitState(str, Enum):
    """State of a bounded wait."""

    WAITING = "waiting"
    SATISFIED = "satisfied"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Replied:
    """The target user replied in time."""

    responder_id: int


@dataclass(frozen=True)
class TimedOut:
    """No reply arrived before the deadline."""


WaitOutcome = Replied | TimedOut


class EventWaiter(Protocol):
    """Anything that can wait for a gateway event, like ``discord.Client``."""

    async def wait_for(
        self,
        event: str,
        /,
        *,
        check: Callable[..., bool] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Wait for the next event matching ``check``."""
        ...


class BoundedWait:
    """Listen in one channel for a single message from one user."""

    def __init__(
        self,
        client: EventWaiter,
        channel_id: int,
        target_author_id: int,
        timeout_seconds: float,
        on_satisfied: Callable[[int], Awaitable[None]],
        on_expired: Callable[[], Awaitable[None]],
    ) -> None:
        """Initialize the wait.

        Args:
            client: Source of gateway ``message`` events.
            channel_id: Channel to listen in.
            target_author_id: Only messages from this user count.
            timeout_seconds: How long to wait.
            on_satisfied: Called with the responder's ID when a reply arrives.
            on_expired: Called when the deadline passes without a reply.
        """
        self.client = client
        self.channel_id = channel_id
        self.target_author_id = target_author_id
        self.timeout_seconds = timeout_seconds
        self.on_satisfied = on_satisfied
        self.on_expired = on_expired
        self.state = WaitState.WAITING
        self._started = False
        self._task: asyncio.Task[WaitOutcome] | None = None

    def _check(self, message: discord.Message) -> bool:
        return message.channel.id == self.channel_id and message.author.id == self.target_author_id

    async def run(self) -> WaitOutcome:
        """Wait for the reply and fire the matching callback.

        Raises:
            RuntimeError: If this wait has already been started.
        """
        if self._started:
            msg = "BoundedWait can only be run once"
            raise RuntimeError(msg)
        self._started = True

        try:
            message = await self.client.wait_for("message", check=self._check, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self.state = WaitState.EXPIRED
            logger.debug(
                "No reply from %d in channel %d after %ss",
                self.target_author_id,
                self.channel_id,
                self.timeout_seconds,
            )
            await self.on_expired()
            return TimedOut()
        except asyncio.CancelledError:
            self.state = WaitState.CANCELLED
            logger.debug("Wait for %d in channel %d cancelled", self.target_author_id, self.channel_id)
            raise

        self.state = WaitState.SATISFIED
        logger.debug("User %d replied in channel %d", message.author.id, self.channel_id)
        await self.on_satisfied(message.author.id)
        return Replied(responder_id=message.author.id)

    def start(self) -> "asyncio.Task[WaitOutcome]":
        """Run the wait in the background and return its task."""
        self._task = asyncio.create_task(self.run(), name=f"bounded-wait-{self.channel_id}-{self.target_author_id}")
        return self._task

    def cancel(self) -> bool:
        """Stop a background wait before it reaches an outcome.

        Returns:
            Whether a pending wait was cancelled. Neither callback fires afterwards.
        """
        if self._task is None or self._task.done() or self.state is not WaitState.WAITING:
            return False
        return self._task.cancel()
