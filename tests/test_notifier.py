"""Tests for guarded message delivery."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import http_error

from discord_ticket_bot.config import LogChannels, LogToggles, Settings
from discord_ticket_bot.notifier import LOG_CHANNEL_CONTEXT, Notifier

pytestmark = pytest.mark.anyio


def _notifier(settings: Settings, channel: object | None) -> tuple[Notifier, MagicMock, MagicMock]:
    lookup = MagicMock()
    lookup.get_channel = AsyncMock(return_value=channel)
    reporter = MagicMock()
    reporter.report = AsyncMock()
    return Notifier(settings, lookup, reporter), lookup, reporter


class TestSend:
    """Tests for Notifier.send."""

    async def test_send_returns_message(self) -> None:
        """Test successful sends return the message."""
        notifier, _, _ = _notifier(Settings(discord_token="test"), None)
        target = MagicMock()
        target.send = AsyncMock(return_value="message")

        assert await notifier.send(target, "ctx", content="hi") == "message"
        target.send.assert_awaited_once_with(content="hi")

    async def test_send_failure_is_reported(self) -> None:
        """Test failures are reported with their context and yield None."""
        notifier, _, reporter = _notifier(Settings(discord_token="test"), None)
        target = MagicMock()
        target.send = AsyncMock(side_effect=http_error())

        assert await notifier.send(target, "sending close notice", content="hi") is None
        assert reporter.report.await_args.args[2] == "sending close notice"


class TestSendLog:
    """Tests for Notifier.send_log."""

    async def test_falls_back_to_default_channel(self) -> None:
        """Test log types without their own channel use the default."""
        channel = MagicMock()
        channel.send = AsyncMock()
        notifier, lookup, _ = _notifier(Settings(discord_token="test", logs=LogChannels(default=1)), channel)

        await notifier.send_log("ticket_close", content="closed")

        lookup.get_channel.assert_awaited_once_with(1)
        channel.send.assert_awaited_once_with(content="closed")

    async def test_specific_channel_wins(self) -> None:
        """Test a configured per-type channel is preferred."""
        channel = MagicMock()
        channel.send = AsyncMock()
        settings = Settings(discord_token="test", logs=LogChannels(default=1, ticket_alert=2))
        notifier, lookup, _ = _notifier(settings, channel)

        await notifier.send_log("ticket_alert", content="alert")

        lookup.get_channel.assert_awaited_once_with(2)

    async def test_toggle_off_skips(self) -> None:
        """Test disabled log types are never posted."""
        settings = Settings(
            discord_token="test",
            logs=LogChannels(default=1),
            toggle_logs=LogToggles(ticket_delete=False),
        )
        notifier, lookup, _ = _notifier(settings, MagicMock())

        assert await notifier.send_log("ticket_delete", content="deleted") is None
        lookup.get_channel.assert_not_called()

    async def test_missing_channel_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test an unresolved log channel is logged and skipped."""
        notifier, _, reporter = _notifier(Settings(discord_token="test"), None)

        assert await notifier.send_log("transcripts", content="x") is None
        assert "No log channel available for transcripts" in caplog.text
        reporter.report.assert_not_called()

    async def test_log_post_failure_context(self) -> None:
        """Test log post failures point at the log channel configuration."""
        channel = MagicMock()
        channel.send = AsyncMock(side_effect=http_error())
        notifier, _, reporter = _notifier(Settings(discord_token="test", logs=LogChannels(default=1)), channel)

        await notifier.send_log("ticket_close", content="closed")

        assert reporter.report.await_args.args[2] == LOG_CHANNEL_CONTEXT
