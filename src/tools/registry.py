"""Tool registry — central catalog for all tools."""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.errors import ErrorCode, StructuredError
from src.tools.base import ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class ToolDef:
    """Internal representation of a registered tool."""

    name: str
    description: str
    category: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None


class ToolRegistry:
    """Central registry for all tools.

    Register async handlers with the decorator::

        @registry.tool(
            name="calendar_list_calendars",
            description="List all calendars",
            category="google_calendar",
        )
        async def list_calendars() -> ToolResult:
            ...
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        category: str,
        params_model: type[ToolParams] | None = None,
    ) -> Callable:
        """Decorator to register an async function as a tool."""

        def decorator(fn: Callable[..., Awaitable[ToolResult]]) -> Callable:
            if not inspect.iscoroutinefunction(fn):
                msg = f"Tool handler '{name}' must be an async function"
                raise TypeError(msg)

            self._tools[name] = ToolDef(
                name=name,
                description=description,
                category=category,
                handler=fn,
                params_model=params_model,
            )
            return fn

        return decorator

    def get(self, name: str) -> ToolDef | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        """All registered tool names."""
        return list(self._tools.keys())

    def get_schemas(self) -> list[dict[str, Any]]:
        """Generate tool schemas (name, description, input_schema) for every tool."""
        return [self._tool_schema(t) for t in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name with the given arguments.

        Arguments are validated against the params_model first; a
        validation failure is reported as ``VALIDATION_ERROR`` before the
        handler (and therefore any guardrail check) runs.
        """
        tool_def = self._tools.get(name)
        if tool_def is None:
            return ToolResult(
                error=StructuredError(ErrorCode.VALIDATION_ERROR, f"Unknown tool: {name}")
            )

        logger.info("Tool '%s' called with %s", name, arguments)
        t0 = time.monotonic()

        try:
            if tool_def.params_model is not None:
                params = tool_def.params_model(**arguments)
                kwargs = params.model_dump()
            else:
                # Parameterless tool; stray arguments are ignored like extra params fields
                if arguments:
                    logger.debug("Tool '%s' ignoring arguments %s", name, sorted(arguments))
                kwargs = {}
        except ValidationError as exc:
            logger.warning("Tool '%s' rejected invalid arguments: %s", name, exc)
            return ToolResult(
                error=StructuredError(ErrorCode.VALIDATION_ERROR, _describe_validation(exc))
            )

        try:
            result = await tool_def.handler(**kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - t0
            logger.exception("Tool '%s' failed in %.2fs", name, elapsed)
            return ToolResult(error=StructuredError(ErrorCode.API_ERROR, str(exc) or "Unknown error"))

        elapsed = time.monotonic() - t0
        if result.success:
            logger.info("Tool '%s' succeeded in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' returned error in %.2fs: %s", name, elapsed, result.error)
        return result

    @staticmethod
    def _tool_schema(tool_def: ToolDef) -> dict[str, Any]:
        """Build a single tool schema dict."""
        if tool_def.params_model is not None:
            input_schema = tool_def.params_model.model_json_schema()
        else:
            input_schema = {"type": "object", "properties": {}}

        return {
            "name": tool_def.name,
            "description": tool_def.description,
            "input_schema": input_schema,
        }


def _describe_validation(exc: ValidationError) -> str:
    """One line per invalid field, e.g. ``date: String should match pattern ...``."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


# Global registry — import this from anywhere to register or look up tools.
registry = ToolRegistry()
