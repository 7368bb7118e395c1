"""discord-ticket-bot package.

Discord support-ticket bot: ticket alerts with automatic follow-up actions,
transcripts of ticket conversations, and blacklist/preference bookkeeping.
"""

from discord_ticket_bot.actions import ReopenResult, TicketActions
from discord_ticket_bot.alert import AlertHandle, AlertWorkflow
from discord_ticket_bot.bot import TicketBot
from discord_ticket_bot.config import AutoAction, Settings, TranscriptType, get_settings
from discord_ticket_bot.history import EmbedSummary, HistoryReader, MessageRecord
from discord_ticket_bot.reporting import ErrorKind, ErrorReporter
from discord_ticket_bot.store import KeyValueStore
from discord_ticket_bot.tickets import TicketRepository, TicketStatus
from discord_ticket_bot.transcript import TranscriptArtifact, TranscriptContext, TranscriptService, serialize
from discord_ticket_bot.waiter import BoundedWait, Replied, TimedOut, WaitOutcome, WaitState

__all__: list[str] = [
    "AlertHandle",
    "AlertWorkflow",
    "AutoAction",
    "BoundedWait",
    "EmbedSummary",
    "ErrorKind",
    "ErrorReporter",
    "HistoryReader",
    "KeyValueStore",
    "MessageRecord",
    "ReopenResult",
    "Replied",
    "Settings",
    "TicketActions",
    "TicketBot",
    "TicketRepository",
    "TicketStatus",
    "TimedOut",
    "TranscriptArtifact",
    "TranscriptContext",
    "TranscriptService",
    "TranscriptType",
    "WaitOutcome",
    "WaitState",
    "get_settings",
    "serialize",
]
