"""Configuration for the Discord Ticket Bot."""

import logging
import os
from enum import Enum
from typing import Self

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_FILE = "config.json"


class AutoAction(str, Enum):
    """Action taken on a ticket when an alert goes unanswered."""

    CLOSE = "close"
    DELETE = "delete"
    NONE = "none"


class TranscriptType(str, Enum):
    """Output format for ticket transcripts."""

    HTML = "HTML"
    TXT = "TXT"


class EmbedAuthor(BaseModel):
    """Author block of a configured embed."""

    name: str | None = None
    url: str | None = None
    icon_url: str | None = None


class EmbedFooter(BaseModel):
    """Footer block of a configured embed."""

    text: str | None = None
    icon_url: str | None = None


class EmbedConfig(BaseModel):
    """Embed values read from configuration.

    ``None`` means "not configured, use the default" while an empty string
    means "configured to be left out".
    """

    color: str | None = None
    title: str | None = None
    description: str | None = None
    url: str | None = None
    image: str | None = None
    thumbnail: str | None = None
    timestamp: bool | None = None
    author: EmbedAuthor = Field(default_factory=EmbedAuthor)
    footer: EmbedFooter = Field(default_factory=EmbedFooter)


class LogChannels(BaseModel):
    """Channel IDs that receive log posts. Unset entries fall back to ``default``."""

    default: int | None = None
    transcripts: int | None = None
    ticket_alert: int | None = None
    ticket_close: int | None = None
    ticket_delete: int | None = None
    dm_errors: int | None = None

    def resolve(self, name: str) -> int | None:
        """Return the channel ID for a log type, falling back to the default channel."""
        return getattr(self, name, None) or self.default


class LogToggles(BaseModel):
    """Switches for log-channel posts."""

    ticket_alert: bool = True
    ticket_close: bool = True
    ticket_delete: bool = True
    dm_errors: bool = True


class AlertReplyConfig(BaseModel):
    """Behaviour of the wait that follows an alert."""

    enabled: bool = True
    time: int = Field(default=120, gt=0, description="Seconds to wait for a reply")
    auto_action: AutoAction = AutoAction.NONE


class AlertDMConfig(BaseModel):
    """Direct message sent to an alerted user."""

    enabled: bool = True


class DMErrorConfig(BaseModel):
    """Fallback notice posted when a direct message cannot be delivered."""

    ping_user: bool = False


class Settings(BaseSettings):
    """Application settings loaded from the environment and ``config.json``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Discord
    discord_token: str = Field(default="", description="Discord bot token")
    guild_id: int | None = Field(default=None, description="Guild the bot serves")
    bot_version: str = Field(default="1.0.0", description="Version reported in error logs")

    # Ticket categories
    closed_category_id: int | None = Field(
        default=None,
        description="Category closed tickets are moved to (unset = stay in place)",
    )

    # Logging
    logs: LogChannels = Field(default_factory=LogChannels)
    toggle_logs: LogToggles = Field(default_factory=LogToggles)
    logs_file_to_channel: bool = Field(
        default=False,
        description="Post error reports to a channel instead of the log file",
    )
    logs_file_channel_id: int | None = None

    # Alerts
    alert_reply: AlertReplyConfig = Field(default_factory=AlertReplyConfig)
    alert_dm: AlertDMConfig = Field(default_factory=AlertDMConfig)
    dm_error: DMErrorConfig = Field(default_factory=DMErrorConfig)
    default_dm_preference: bool = Field(
        default=True,
        description="Whether users receive DMs when they never set a preference",
    )

    # Transcripts
    transcript_type: TranscriptType = TranscriptType.HTML
    transcript_images: bool = True
    transcript_name: str = "{channelName}-transcript"
    transcript_timezone: str = Field(
        default="UTC",
        description="IANA timezone used for timestamps in text transcripts",
    )

    # Blacklist
    roles_on_blacklist: list[int] = Field(default_factory=list)
    blacklist_clean_interval_minutes: int = Field(default=5, gt=0)

    # Embeds
    embeds: dict[str, EmbedConfig] = Field(default_factory=dict)

    # OpenTelemetry
    otel_enabled: bool = Field(default=False, description="Enable OpenTelemetry instrumentation")
    otel_exporter_endpoint: str = Field(
        default="http://localhost:4318",
        description="OTLP exporter endpoint",
    )
    otel_instrument_aiohttp: bool = Field(
        default=False,
        description="Instrument the aiohttp client used by discord.py",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Layer ``config.json`` below the environment and ``.env``."""
        config_file = os.environ.get("TICKET_BOT_CONFIG", _DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=config_file),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _warn_missing_log_channel(self) -> Self:
        """Warn when log posts are enabled but no channel can receive them."""
        enabled = [name for name, on in self.toggle_logs.model_dump().items() if on]
        missing = [name for name in enabled if self.logs.resolve(name) is None]
        if missing:
            logger.warning(
                "Log toggles enabled without a log channel (set logs.default): %s",
                ", ".join(missing),
            )
        return self

    def embed(self, name: str) -> EmbedConfig | None:
        """Return the configured overrides for an embed, if any."""
        return self.embeds.get(name)


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
