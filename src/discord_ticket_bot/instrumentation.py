"""OpenTelemetry instrumentation using Logfire SDK with local backend."""

import logging

import logfire

from discord_ticket_bot.config import Settings

logger = logging.getLogger(__name__)


def configure_instrumentation(settings: Settings) -> None:
    """Configure Logfire instrumentation with a local OTel backend.

    This uses the Logfire SDK but sends data to a local OpenTelemetry collector
    instead of the Logfire cloud service. The OTEL_EXPORTER_OTLP_ENDPOINT
    environment variable (set from settings.otel_exporter_endpoint in main.py)
    controls where traces are sent.

    Transcript and alert workflows open ``logfire.span``s; those are no-ops
    until this has run.

    Args:
        settings: Application settings containing instrumentation configuration.
    """
    if not settings.otel_enabled:
        logger.debug("OpenTelemetry instrumentation disabled")
        return

    # Configure Logfire to NOT send to Logfire cloud
    logfire.configure(
        send_to_logfire=False,
        service_name="discord-ticket-bot",
    )

    # discord.py talks to the REST API through aiohttp
    if settings.otel_instrument_aiohttp:
        logfire.instrument_aiohttp_client()

    logger.info(
        "OpenTelemetry instrumentation enabled, exporting to %s",
        settings.otel_exporter_endpoint,
    )
