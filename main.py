"""Main entry point for discord-ticket-bot."""

import asyncio
import logging
import os
import sys
from pathlib import Path

from discord_ticket_bot.bot import TicketBot
from discord_ticket_bot.config import AutoAction, Settings, get_settings
from discord_ticket_bot.instrumentation import configure_instrumentation


def setup_logging() -> None:
    """Configure logging for the application."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_dir / "bot.log"),
        ],
    )

    # Audit trail of ticket activity and error reports
    audit_handler = logging.FileHandler(log_dir / "tickets.log")
    audit_handler.setFormatter(
        logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s\n", datefmt="%Y-%m-%d %H:%M:%S"),
    )
    logging.getLogger("discord_ticket_bot.audit").addHandler(audit_handler)

    # Reduce noise from discord.py
    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("discord.http").setLevel(logging.WARNING)


def validate_settings(settings: Settings, logger: logging.Logger) -> None:
    """Log startup warnings for incomplete configuration."""
    if not settings.discord_token:
        logger.warning("DISCORD_TOKEN not set - the bot cannot log in")
    if settings.guild_id is None:
        logger.warning("GUILD_ID not set - member and role lookups are disabled")

    if settings.alert_reply.enabled:
        logger.info(
            "Alert replies tracked for %d seconds, auto action: %s",
            settings.alert_reply.time,
            settings.alert_reply.auto_action.value,
        )
        if settings.alert_reply.auto_action is AutoAction.CLOSE and settings.closed_category_id is None:
            logger.info("CLOSED_CATEGORY_ID not set - auto-closed tickets stay in their category")
    else:
        logger.info("Alert reply tracking disabled")


async def run_bot() -> None:
    """Run the Discord bot."""
    settings = get_settings()
    bot = TicketBot(settings)

    async with bot:
        await bot.start(settings.discord_token)


def main() -> None:
    """Run the application."""
    setup_logging()
    logger = logging.getLogger(__name__)

    # Load settings and configure instrumentation before anything else
    settings = get_settings()

    # Set OTEL endpoint from settings (must be set before logfire.configure)
    if settings.otel_enabled:
        os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", settings.otel_exporter_endpoint)

    configure_instrumentation(settings)
    validate_settings(settings, logger)

    logger.info("Starting Discord Ticket Bot...")

    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
