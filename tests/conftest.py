"""Shared fixtures for the ticket bot tests."""

from pathlib import Path

import pytest

from discord_ticket_bot.store import KeyValueStore
from discord_ticket_bot.tickets import TicketRepository


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio, which discord.py requires."""
    return "asyncio"


@pytest.fixture
def repository(tmp_path: Path) -> TicketRepository:
    """Create a repository whose three stores share a temporary database."""
    db = tmp_path / "tickets.sqlite"
    return TicketRepository(
        tickets=KeyValueStore(db, "tickets"),
        blacklist=KeyValueStore(db, "blacklist"),
        main=KeyValueStore(db, "main"),
    )
