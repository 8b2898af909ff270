"""Base types for the tool-calling framework."""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from src.errors import StructuredError


@dataclass
class ToolResult:
    """Result of a tool execution.

    Every tool returns one of these. The transport serializes it into the
    text content returned to the agent: the payload on success, the
    structured ``{error, code, message}`` object on failure.
    """

    data: Any = None
    error: StructuredError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """Serialize for the tool result text content."""
        if self.error:
            return json.dumps(self.error.to_dict(), indent=2)
        return json.dumps(self.data if self.data is not None else {}, indent=2)


class ToolParams(BaseModel):
    """Base class for tool parameter models.

    Subclass with Field() definitions. The JSON schema is auto-generated
    via model_json_schema() for the tool listing.
    """
