"""Local tools served by every switchboard instance."""

from switchboard.controller.tools import format_number, health

LOCAL_TOOLS = (health, format_number)

__all__ = ["LOCAL_TOOLS", "format_number", "health"]
