"""Tests for ticket lifecycle actions."""

import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from fakes import FakeUser, http_error

from discord_ticket_bot.actions import ReopenResult, TicketActions
from discord_ticket_bot.config import LogChannels, LogToggles, Settings
from discord_ticket_bot.notifier import Notifier
from discord_ticket_bot.store import KeyValueStore
from discord_ticket_bot.tickets import TicketRepository, TicketStatus
from discord_ticket_bot.transcript import TranscriptArtifact

pytestmark = pytest.mark.anyio

CHANNEL_ID = 555
LOG_CHANNEL_ID = 1
CLOSED_CATEGORY_ID = 900
CREATED_AT = 1_700_000_000


class Harness:
    """Wires TicketActions to a temporary database and mocked Discord objects."""

    def __init__(self, db_path: Path, settings: Settings) -> None:
        self.settings = settings
        self.repository = TicketRepository(
            tickets=KeyValueStore(db_path, "tickets"),
            blacklist=KeyValueStore(db_path, "blacklist"),
            main=KeyValueStore(db_path, "main"),
        )
        self.staff = FakeUser(20, "staffer")
        self.creator = FakeUser(10, "alice")

        self.channel = MagicMock()
        self.channel.id = CHANNEL_ID
        self.channel.name = "ticket-alice"
        self.channel.send = AsyncMock()
        self.channel.edit = AsyncMock()
        self.channel.delete = AsyncMock()

        self.log_channel = MagicMock()
        self.log_channel.send = AsyncMock()
        self.category = MagicMock(spec=discord.CategoryChannel)

        self.channels: dict[int, object] = {
            CHANNEL_ID: self.channel,
            LOG_CHANNEL_ID: self.log_channel,
            CLOSED_CATEGORY_ID: self.category,
        }

        async def get_channel(channel_id: int | None) -> object | None:
            return self.channels.get(channel_id)

        self.lookup = MagicMock()
        self.lookup.get_channel = AsyncMock(side_effect=get_channel)
        self.lookup.get_user = AsyncMock(return_value=self.creator)

        self.reporter = MagicMock()
        self.reporter.report = AsyncMock()

        self.transcript = TranscriptArtifact(
            file_name="ticket-alice-transcript.txt",
            header="Server: Test Server\n",
            lines=("[1/1/2026, 12:00:00 PM] alice: hello",),
            total_message_count=1,
        )
        self.transcripts = MagicMock()
        self.transcripts.build = AsyncMock(return_value=self.transcript)

        self.actions = TicketActions(
            settings,
            self.repository,
            self.lookup,
            Notifier(settings, self.lookup, self.reporter),
            self.transcripts,
            self.reporter,
        )

    async def open_ticket(self) -> None:
        await self.repository.create_ticket(CHANNEL_ID, self.creator.id, "Support", creation_time=CREATED_AT)

    def log_embed(self) -> discord.Embed:
        return self.log_channel.send.await_args.kwargs["embed"]


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    """Create a harness with a default log channel and a closed category."""
    settings = Settings(
        discord_token="test",
        logs=LogChannels(default=LOG_CHANNEL_ID),
        closed_category_id=CLOSED_CATEGORY_ID,
    )
    return Harness(tmp_path / "tickets.sqlite", settings)


class TestClose:
    """Tests for closing tickets."""

    async def test_close_open_ticket(self, harness: Harness, caplog: pytest.LogCaptureFixture) -> None:
        """Test closing updates the record, notifies, moves and logs."""
        await harness.open_ticket()

        with caplog.at_level(logging.INFO, logger="discord_ticket_bot.audit"):
            closed = await harness.actions.close(CHANNEL_ID, harness.staff)

        assert closed is True
        assert await harness.repository.get_status(CHANNEL_ID) is TicketStatus.CLOSED
        assert await harness.repository.get_field(CHANNEL_ID, "close_time") is not None

        notice = harness.channel.send.await_args.kwargs["embed"]
        assert notice.title == "Ticket Closed"
        assert notice.description == "This ticket was closed by <@20>."
        harness.channel.edit.assert_awaited_once_with(category=harness.category)

        assert harness.log_embed().title == "Ticket Logs | Ticket Closed"
        assert "staffer closed the ticket #ticket-alice" in caplog.text

    async def test_close_by_automation(self, harness: Harness) -> None:
        """Test an unattended close is attributed to automation."""
        await harness.open_ticket()

        await harness.actions.close(CHANNEL_ID)

        notice = harness.channel.send.await_args.kwargs["embed"]
        assert notice.description == "This ticket was closed by Automation."

    async def test_close_already_closed(self, harness: Harness) -> None:
        """Test closed tickets are left alone."""
        await harness.open_ticket()
        await harness.repository.set_field(CHANNEL_ID, "status", TicketStatus.CLOSED.value)

        assert await harness.actions.close(CHANNEL_ID, harness.staff) is False
        harness.channel.send.assert_not_called()

    async def test_close_unknown_ticket(self, harness: Harness) -> None:
        """Test channels without a record are not closed."""
        assert await harness.actions.close(CHANNEL_ID, harness.staff) is False

    async def test_close_without_category(self, tmp_path: Path) -> None:
        """Test tickets stay in place when no closed category is configured."""
        harness = Harness(tmp_path / "db.sqlite", Settings(discord_token="test", logs=LogChannels(default=1)))
        await harness.open_ticket()

        assert await harness.actions.close(CHANNEL_ID, harness.staff) is True
        harness.channel.edit.assert_not_called()

    async def test_move_failure_is_reported(self, harness: Harness) -> None:
        """Test a failed move is reported and the close still completes."""
        await harness.open_ticket()
        harness.channel.edit.side_effect = http_error()

        assert await harness.actions.close(CHANNEL_ID, harness.staff) is True
        harness.reporter.report.assert_awaited_once()
        harness.log_channel.send.assert_awaited_once()

    async def test_close_log_toggle_off(self, tmp_path: Path) -> None:
        """Test the log post is skipped when its toggle is off."""
        settings = Settings(
            discord_token="test",
            logs=LogChannels(default=LOG_CHANNEL_ID),
            toggle_logs=LogToggles(ticket_close=False),
        )
        harness = Harness(tmp_path / "db.sqlite", settings)
        await harness.open_ticket()

        await harness.actions.close(CHANNEL_ID, harness.staff)

        harness.log_channel.send.assert_not_called()


class TestDelete:
    """Tests for deleting tickets."""

    async def test_delete_archives_and_removes(self, harness: Harness, caplog: pytest.LogCaptureFixture) -> None:
        """Test deleting posts the transcript, forgets the ticket and deletes the channel."""
        await harness.open_ticket()

        with caplog.at_level(logging.INFO, logger="discord_ticket_bot.audit"):
            deleted = await harness.actions.delete(CHANNEL_ID, harness.staff)

        assert deleted is True
        harness.transcripts.build.assert_awaited_once_with(harness.channel, deleted_by="staffer")
        kwargs = harness.log_channel.send.await_args.kwargs
        assert kwargs["embed"].title == "Ticket Logs | Ticket Deleted"
        assert kwargs["file"].filename == "ticket-alice-transcript.txt"
        assert await harness.repository.exists(CHANNEL_ID) is False
        harness.channel.delete.assert_awaited_once()
        assert "staffer deleted the ticket #ticket-alice" in caplog.text

    async def test_delete_by_automation(self, harness: Harness) -> None:
        """Test automation deletes let the transcript pick its own deleter."""
        await harness.open_ticket()

        await harness.actions.delete(CHANNEL_ID)

        harness.transcripts.build.assert_awaited_once_with(harness.channel, deleted_by=None)

    async def test_delete_missing_channel_forgets_record(self, harness: Harness) -> None:
        """Test a record whose channel is gone is cleaned up."""
        await harness.open_ticket()
        del harness.channels[CHANNEL_ID]

        assert await harness.actions.delete(CHANNEL_ID, harness.staff) is False
        assert await harness.repository.exists(CHANNEL_ID) is False
        harness.transcripts.build.assert_not_called()

    async def test_delete_unknown_ticket(self, harness: Harness) -> None:
        """Test non-ticket channels are never deleted."""
        assert await harness.actions.delete(CHANNEL_ID, harness.staff) is False
        harness.channel.delete.assert_not_called()

    async def test_channel_delete_failure_is_reported(self, harness: Harness) -> None:
        """Test a failed channel deletion is reported."""
        await harness.open_ticket()
        harness.channel.delete.side_effect = http_error(discord.NotFound, 404)

        assert await harness.actions.delete(CHANNEL_ID, harness.staff) is True
        harness.reporter.report.assert_awaited_once()


class TestReopen:
    """Tests for re-opening tickets."""

    async def test_not_a_ticket(self, harness: Harness) -> None:
        """Test unknown channels cannot be re-opened."""
        assert await harness.actions.reopen(CHANNEL_ID, harness.staff) is ReopenResult.NOT_A_TICKET

    async def test_already_open(self, harness: Harness) -> None:
        """Test open tickets are reported as such."""
        await harness.open_ticket()

        assert await harness.actions.reopen(CHANNEL_ID, harness.staff) is ReopenResult.ALREADY_OPEN
        harness.channel.send.assert_not_called()

    async def test_reopen_closed(self, harness: Harness) -> None:
        """Test a closed ticket is re-opened with a notice."""
        await harness.open_ticket()
        await harness.actions.close(CHANNEL_ID, harness.staff)

        result = await harness.actions.reopen(CHANNEL_ID, harness.staff)

        assert result is ReopenResult.REOPENED
        assert await harness.repository.get_status(CHANNEL_ID) is TicketStatus.OPEN
        notice = harness.channel.send.await_args.kwargs["embed"]
        assert notice.description == "This ticket has been re-opened by <@20>."


class TestSaveTranscript:
    """Tests for manually saved transcripts."""

    async def test_posts_to_transcript_log(self, harness: Harness, caplog: pytest.LogCaptureFixture) -> None:
        """Test the transcript and its summary are posted."""
        await harness.open_ticket()

        with caplog.at_level(logging.INFO, logger="discord_ticket_bot.audit"):
            transcript = await harness.actions.save_transcript(harness.channel, harness.staff)

        assert transcript is harness.transcript
        harness.transcripts.build.assert_awaited_once_with(harness.channel, deleted_by="staffer")

        kwargs = harness.log_channel.send.await_args.kwargs
        embed = kwargs["embed"]
        assert embed.title == "Ticket Transcript"
        assert embed.description == "Saved by <@20>"
        assert embed.footer.text == "alice"
        fields = {field.name: field.value for field in embed.fields}
        assert fields["Ticket Creator"] == "<@!10>\nalice"
        assert fields["Category"] == "Support"
        assert fields["Creation Time"] == f"<t:{CREATED_AT}:F>"
        assert kwargs["file"].filename == "ticket-alice-transcript.txt"

        assert (
            "staffer manually saved the transcript of ticket #ticket-alice which was created by alice" in caplog.text
        )

    async def test_unknown_creator(self, harness: Harness) -> None:
        """Test a creator that cannot be resolved is shown as unknown."""
        await harness.open_ticket()
        harness.lookup.get_user.return_value = None

        await harness.actions.save_transcript(harness.channel, harness.staff)

        embed = harness.log_channel.send.await_args.kwargs["embed"]
        fields = {field.name: field.value for field in embed.fields}
        assert fields["Ticket Creator"] == "Unknown"
