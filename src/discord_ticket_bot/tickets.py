"""Ticket, blacklist and preference records kept in the key-value stores."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import discord

from discord_ticket_bot.lookup import PlatformLookup
from discord_ticket_bot.store import KeyValueStore
from discord_ticket_bot.templates import parse_duration

logger = logging.getLogger(__name__)

TICKET_CREATORS_KEY = "ticket_creators"
PERMANENT = "permanent"


class TicketStatus(str, Enum):
    """Lifecycle state of a ticket."""

    OPEN = "Open"
    CLOSED = "Closed"


@dataclass
class TicketSummary:
    """A ticket as listed for a user."""

    channel_id: int
    status: TicketStatus
    ticket_type: str | None
    creation_time: int


@dataclass
class UserTickets:
    """A user's tickets split by status, newest first."""

    open: list[TicketSummary] = field(default_factory=list)
    closed: list[TicketSummary] = field(default_factory=list)


class TicketRepository:
    """Accessors for the stores backing tickets, blacklist and global stats."""

    def __init__(self, tickets: KeyValueStore, blacklist: KeyValueStore, main: KeyValueStore) -> None:
        """Initialize the repository with its three stores."""
        self.tickets = tickets
        self.blacklist = blacklist
        self.main = main

    # Tickets

    async def create_ticket(
        self,
        channel_id: int,
        user_id: int,
        ticket_type: str,
        *,
        button: str | None = None,
        creation_time: int | None = None,
    ) -> dict[str, Any]:
        """Record a new open ticket and count it against its creator."""
        record = {
            "user_id": user_id,
            "ticket_type": ticket_type,
            "button": button,
            "status": TicketStatus.OPEN.value,
            "creation_time": creation_time if creation_time is not None else int(time.time()),
            "claim_user": None,
        }
        await self.tickets.set(channel_id, record)
        await self.add_ticket_creator(user_id)
        return record

    async def exists(self, channel_id: int) -> bool:
        """Return whether a channel is a tracked ticket."""
        return await self.tickets.has(channel_id)

    async def get_field(self, channel_id: int, name: str) -> Any:
        """Read one field of a ticket record."""
        return await self.tickets.get(f"{channel_id}.{name}")

    async def set_field(self, channel_id: int, name: str, value: Any) -> None:
        """Write one field of a ticket record."""
        await self.tickets.set(f"{channel_id}.{name}", value)

    async def get_status(self, channel_id: int) -> TicketStatus | None:
        """Return a ticket's status, or ``None`` if the channel is not a ticket."""
        status = await self.get_field(channel_id, "status")
        return TicketStatus(status) if status else None

    async def remove(self, channel_id: int) -> bool:
        """Forget a ticket."""
        return await self.tickets.delete(channel_id)

    async def list_user_tickets(self, user_id: int) -> UserTickets:
        """Return a user's open and closed tickets, each sorted newest first."""
        result = UserTickets()
        for entry in await self.tickets.all():
            value = entry.value
            if not isinstance(value, dict) or value.get("user_id") != user_id:
                continue
            summary = TicketSummary(
                channel_id=int(entry.id),
                status=TicketStatus(value.get("status", TicketStatus.OPEN.value)),
                ticket_type=value.get("ticket_type"),
                creation_time=int(value.get("creation_time") or 0),
            )
            target = result.open if summary.status is TicketStatus.OPEN else result.closed
            target.append(summary)

        result.open.sort(key=lambda ticket: ticket.creation_time, reverse=True)
        result.closed.sort(key=lambda ticket: ticket.creation_time, reverse=True)
        return result

    async def get_first_closed_ticket(self, user_id: int) -> int | None:
        """Return the earliest-stored closed ticket of a user."""
        for entry in await self.tickets.all():
            value = entry.value
            if not isinstance(value, dict) or value.get("user_id") != user_id:
                continue
            if value.get("status") == TicketStatus.CLOSED.value:
                return int(entry.id)
        return None

    # Creator statistics

    async def add_ticket_creator(self, user_id: int) -> int:
        """Increment a user's created-ticket count and return the new count.

        This is a read-modify-write of one shared list without locking.
        """
        creators: list[dict[str, int]] = await self.main.get(TICKET_CREATORS_KEY) or []
        for creator in creators:
            if creator["user_id"] == user_id:
                creator["tickets_created"] += 1
                count = creator["tickets_created"]
                break
        else:
            creators.append({"user_id": user_id, "tickets_created": 1})
            count = 1
        await self.main.set(TICKET_CREATORS_KEY, creators)
        return count

    # Preferences

    async def get_user_preference(self, user_id: int, kind: str, *, default: bool) -> bool:
        """Return whether a user accepts DMs of a kind, falling back to ``default``."""
        preference = await self.blacklist.get(f"userPreference-{user_id}")
        if not isinstance(preference, dict) or preference.get(kind) is None:
            return default
        return bool(preference[kind])

    async def set_user_preference(self, user_id: int, kind: str, *, enabled: bool) -> None:
        """Store a user's DM preference for a kind."""
        await self.blacklist.set(f"userPreference-{user_id}.{kind}", enabled)

    # Blacklist

    async def blacklist_user(self, user_id: int, reason: str, duration: str = PERMANENT) -> None:
        """Blacklist a user from creating tickets."""
        await self.blacklist.set(f"user-{user_id}", _blacklist_entry(reason, duration))

    async def blacklist_role(self, role_id: int, reason: str, duration: str = PERMANENT) -> None:
        """Blacklist every member of a role from creating tickets."""
        await self.blacklist.set(f"role-{role_id}", _blacklist_entry(reason, duration))

    async def clean_blacklist(
        self,
        lookup: PlatformLookup,
        roles_on_blacklist: list[int],
        *,
        now_ms: int | None = None,
    ) -> list[str]:
        """Drop expired blacklist entries.

        Expired users also lose the configured blacklist roles. A failed role
        removal is logged and does not stop the sweep.

        Returns:
            The store keys that were removed.
        """
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        removed: list[str] = []

        for entry in await self.blacklist.all():
            kind, _, target = entry.id.partition("-")
            if kind not in ("user", "role") or not isinstance(entry.value, dict):
                continue
            if not is_blacklist_expired(entry.value.get("timestamp", 0), entry.value.get("duration"), now_ms=now_ms):
                continue

            await self.blacklist.delete(entry.id)
            removed.append(entry.id)
            logger.info("Blacklist entry %s expired", entry.id)

            if kind == "user":
                await _remove_blacklist_roles(lookup, int(target), roles_on_blacklist)

        return removed


def _blacklist_entry(reason: str, duration: str) -> dict[str, Any]:
    return {"reason": reason, "duration": duration, "timestamp": int(time.time() * 1000)}


def is_blacklist_expired(timestamp_ms: int, duration: str | None, *, now_ms: int | None = None) -> bool:
    """Return whether a blacklist entry created at ``timestamp_ms`` has run out.

    Permanent and duration-less entries never expire.
    """
    if duration is None or duration == PERMANENT:
        return False
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    expires_at = timestamp_ms + int(parse_duration(duration).total_seconds() * 1000)
    return now_ms >= expires_at


async def _remove_blacklist_roles(lookup: PlatformLookup, user_id: int, role_ids: list[int]) -> None:
    if not role_ids:
        return
    member = await lookup.get_member(user_id)
    if member is None:
        return
    for role_id in role_ids:
        role = await lookup.get_role(role_id)
        if role is None:
            logger.error("Role with ID %d not found", role_id)
            continue
        try:
            await member.remove_roles(role, reason="Blacklist expired")
        except discord.HTTPException:
            logger.exception("Error removing role %d from user %d", role_id, user_id)
