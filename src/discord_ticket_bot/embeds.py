"""Build Discord embeds from configured values layered over defaults."""

import discord

from discord_ticket_bot.config import EmbedAuthor, EmbedConfig, EmbedFooter
from discord_ticket_bot.templates import render_template

DEFAULT_COLOR = "#2FF200"


def _pick(configured: str | None, default: str | None) -> str | None:
    """Choose a configured value over a default; an empty string disables the value."""
    if configured == "":
        return None
    return configured or default or None


def build_embed(configured: EmbedConfig | None, defaults: EmbedConfig) -> discord.Embed:
    """Create an embed from operator configuration with code-supplied defaults.

    Args:
        configured: Values from ``Settings.embeds`` for this embed, if any.
        defaults: Values used wherever the configuration is silent.

    Returns:
        The assembled embed.
    """
    configured = configured or EmbedConfig()

    color = _pick(configured.color, defaults.color) or DEFAULT_COLOR
    embed = discord.Embed(
        color=discord.Color.from_str(color),
        title=_pick(configured.title, defaults.title),
        description=_pick(configured.description, defaults.description),
        url=_pick(configured.url, defaults.url),
    )

    image = _pick(configured.image, defaults.image)
    if image:
        embed.set_image(url=image)
    thumbnail = _pick(configured.thumbnail, defaults.thumbnail)
    if thumbnail:
        embed.set_thumbnail(url=thumbnail)

    if configured.timestamp is True or (configured.timestamp is None and defaults.timestamp):
        embed.timestamp = discord.utils.utcnow()

    _apply_author(embed, configured.author, defaults.author)
    _apply_footer(embed, configured.footer, defaults.footer)
    return embed


def _apply_author(embed: discord.Embed, configured: EmbedAuthor, defaults: EmbedAuthor) -> None:
    name = _pick(configured.name, defaults.name)
    if not name:
        return
    embed.set_author(
        name=name,
        url=_pick(configured.url, defaults.url),
        icon_url=_pick(configured.icon_url, defaults.icon_url),
    )


def _apply_footer(embed: discord.Embed, configured: EmbedFooter, defaults: EmbedFooter) -> None:
    text = _pick(configured.text, defaults.text)
    if not text:
        return
    embed.set_footer(text=text, icon_url=_pick(configured.icon_url, defaults.icon_url))


def replace_description(embed: discord.Embed, values: dict[str, object]) -> discord.Embed:
    """Substitute placeholders in an embed's description in place."""
    if embed.description:
        embed.description = render_template(embed.description, values)
    return embed
