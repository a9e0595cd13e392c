"""ToolRegistry — name-to-handler map backing ``tools/list`` and ``tools/call``."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from switchboard.protocol.errors import ErrorCode, McpError, ToolHandlerError
from switchboard.protocol.models import ProgressToken, ToolDefinition, ToolResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any], Union[ProgressToken, None]], Awaitable[Union[ToolResult, dict[str, Any]]]]
ToolCleanup = Callable[[], Awaitable[None]]


@dataclass
class ToolRegistration:
    """A registered tool: its definition, handler and optional cleanup."""

    definition: ToolDefinition
    handler: ToolHandler
    cleanup: ToolCleanup | None = None


class ToolRegistry:
    """In-memory tool table keyed by tool name, in insertion order.

    Registering an existing name overwrites it (last write wins) and runs the
    replaced entry's cleanup.  Cleanups run in the background; failures are
    logged, never raised.

    Usage::

        registry = ToolRegistry(on_list_changed=server.emit_tool_list_changed)
        registry.register(ToolDefinition(name="health"), handler)
        result = await registry.call("health", {})
    """

    def __init__(self, on_list_changed: Callable[[], None] | None = None) -> None:
        self._tools: dict[str, ToolRegistration] = {}
        self._on_list_changed = on_list_changed
        self._cleanup_tasks: set[asyncio.Task[None]] = set()

    def set_list_changed_listener(self, listener: Callable[[], None] | None) -> None:
        self._on_list_changed = listener

    def register(
        self,
        definition: ToolDefinition,
        handler: ToolHandler,
        cleanup: ToolCleanup | None = None,
    ) -> None:
        """Insert or overwrite the tool named ``definition.name``."""
        if not definition.name:
            msg = "Tool name must not be empty"
            raise ValueError(msg)
        existing = self._tools.pop(definition.name, None)
        if existing is not None:
            self._schedule_cleanup(definition.name, existing)
        self._tools[definition.name] = ToolRegistration(definition, handler, cleanup)

    def unregister(self, name: str) -> bool:
        """Remove *name*; returns whether anything was removed."""
        existing = self._tools.pop(name, None)
        if existing is None:
            return False
        self._schedule_cleanup(name, existing)
        if self._on_list_changed is not None:
            self._on_list_changed()
        return True

    def get(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def list(self) -> list[ToolDefinition]:
        """Return all definitions in insertion order."""
        return [reg.definition for reg in self._tools.values()]

    def get_by_prefix(self, prefix: str) -> list[ToolDefinition]:
        """Return definitions named ``"{prefix}:..."`` (tools proxied from *prefix*)."""
        search = f"{prefix}:"
        return [reg.definition for name, reg in self._tools.items() if name.startswith(search)]

    def names(self) -> list[str]:
        return list(self._tools)

    async def call(
        self,
        name: str,
        arguments: dict[str, Any],
        progress_token: ProgressToken | None = None,
    ) -> ToolResult:
        """Invoke the handler registered under *name*.

        Raises:
            McpError: ``METHOD_NOT_FOUND`` when no tool has that name.
            ToolHandlerError: The handler raised instead of returning.
        """
        registration = self._tools.get(name)
        if registration is None:
            raise McpError(f"Tool not found: {name}", ErrorCode.METHOD_NOT_FOUND)

        try:
            result = await registration.handler(arguments, progress_token)
        except Exception as exc:
            raise ToolHandlerError(name, exc) from exc

        if isinstance(result, ToolResult):
            return result
        return ToolResult.model_validate(result)

    async def wait_cleanups(self) -> None:
        """Wait for background cleanups scheduled so far."""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Run every cleanup and empty the registry."""
        registrations = list(self._tools.items())
        self._tools.clear()
        await asyncio.gather(*(self._run_cleanup(name, reg) for name, reg in registrations))
        await self.wait_cleanups()

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def _schedule_cleanup(self, name: str, registration: ToolRegistration) -> None:
        if registration.cleanup is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_cleanup(name, registration))
            return
        task = loop.create_task(self._run_cleanup(name, registration))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    @staticmethod
    async def _run_cleanup(name: str, registration: ToolRegistration) -> None:
        if registration.cleanup is None:
            return
        try:
            await registration.cleanup()
        except Exception:
            logger.exception("Error cleaning up tool %s", name)
