"""format_number — locale-aware number formatting.

Validation failures are returned as ``isError`` results, never raised.
Checks run in order: type of *number*, finiteness, digit count, type of
*locale*, then the locale shape (``ll`` / ``lll`` with an optional
``-CC`` region).
"""

from __future__ import annotations

import json
import math
import re
from typing import TYPE_CHECKING, Any

from babel import Locale, UnknownLocaleError
from babel.numbers import format_decimal

from switchboard.protocol.models import ProgressToken, ToolDefinition, ToolResult

if TYPE_CHECKING:
    from switchboard.protocol.server import MCPServer

MAX_DIGITS = 15
DEFAULT_LOCALE = "en-US"
LOCALE_PATTERN = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")

DEFINITION = ToolDefinition(
    name="format_number",
    description="Format a number according to a specific locale (IETF BCP 47 format like en-US, de-DE)",
    input_schema={
        "type": "object",
        "properties": {
            "number": {
                "type": "number",
                "description": f"Number to format (1-{MAX_DIGITS} digits, positive or negative)",
            },
            "locale": {
                "type": "string",
                "description": "Locale in IETF BCP 47 format (e.g., en-US, de-DE, fr-FR)",
                "default": DEFAULT_LOCALE,
            },
        },
        "required": ["number"],
    },
)


def count_digits(number: int | float) -> int:
    """Digits in the integer part of *number* (``0`` counts as one)."""
    magnitude = abs(number)
    if isinstance(number, int):
        return len(str(magnitude))
    if magnitude < 1:
        return 1
    return math.floor(math.log10(magnitude)) + 1


async def format_number(arguments: dict[str, Any], progress_token: ProgressToken | None = None) -> ToolResult:
    number = arguments.get("number")
    locale = arguments.get("locale", DEFAULT_LOCALE)

    if isinstance(number, bool) or not isinstance(number, (int, float)):
        return ToolResult.error("Error: number must be a number")
    if isinstance(number, float) and not math.isfinite(number):
        return ToolResult.error("Error: number must be finite")
    if count_digits(number) > MAX_DIGITS:
        return ToolResult.error(f"Error: Number must have at most {MAX_DIGITS} digits")
    if not isinstance(locale, str):
        return ToolResult.error("Error: locale must be a string")
    if not LOCALE_PATTERN.match(locale):
        return ToolResult.error("Error: Locale must be in IETF BCP 47 format (e.g., en-US, de-DE)")

    try:
        formatted = format_decimal(number, locale=Locale.parse(locale, sep="-"))
    except (UnknownLocaleError, ValueError) as exc:
        return ToolResult.error(f"Error: {exc}")

    payload = {"formatted": formatted, "number": number, "locale": locale}
    return ToolResult.from_text(json.dumps(payload, indent=2))


def register(server: MCPServer) -> None:
    server.register(DEFINITION, format_number)
