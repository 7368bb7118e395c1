"""Placeholder substitution and small text helpers for messages and embeds."""

import re
from collections.abc import Mapping
from datetime import datetime, timedelta

_MARKDOWN_CHARACTERS = re.compile(r"([_*`~|\-])")

_DURATION_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}
_DURATION_PATTERN = re.compile(r"^\s*(\d+)")


def render_template(template: str, values: Mapping[str, object]) -> str:
    """Replace ``{placeholder}`` tokens in a template.

    Substitution is a literal string replace of every occurrence, applied in
    the order of ``values``. Templates come from the operator's configuration,
    so no escaping is done on the template itself.

    Args:
        template: Template text such as ``"{channelName}-transcript"``.
        values: Placeholder names (without braces) mapped to replacement values.

    Returns:
        The rendered string.
    """
    rendered = template
    for placeholder, value in values.items():
        rendered = rendered.replace(f"{{{placeholder}}}", str(value))
    return rendered


def sanitize_input(text: str) -> str:
    """Escape Discord markdown formatting characters."""
    return _MARKDOWN_CHARACTERS.sub(r"\\\1", text)


def timestamp_token(moment: datetime, style: str = "R") -> str:
    """Return a Discord timestamp token (``<t:unix:style>``) for a moment."""
    return f"<t:{int(moment.timestamp())}:{style}>"


def parse_duration(duration: str | None) -> timedelta:
    """Parse a short duration such as ``"30m"`` or ``"2d"``.

    Unknown units, missing numbers and empty input all yield a zero duration.
    """
    if not duration:
        return timedelta(0)
    match = _DURATION_PATTERN.match(duration)
    unit = _DURATION_UNITS.get(duration.strip()[-1:])
    if match is None or unit is None:
        return timedelta(0)
    return int(match.group(1)) * unit

