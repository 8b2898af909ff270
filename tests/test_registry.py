"""Tests for the tool registry."""

import pytest
from pydantic import Field

from src.errors import ErrorCode
from src.tools.base import ToolParams, ToolResult
from src.tools.registry import ToolRegistry

# -- Fixtures ----------------------------------------------------------------


@pytest.fixture
def reg() -> ToolRegistry:
    """Fresh registry for each test."""
    return ToolRegistry()


# -- Decorator registration --------------------------------------------------


def test_register_via_decorator(reg: ToolRegistry) -> None:
    @reg.tool(name="ping", description="Ping", category="test")
    async def ping() -> ToolResult:
        return ToolResult(data={"pong": True})

    assert "ping" in reg.tool_names
    assert reg.get("ping") is not None
    assert reg.get("ping").category == "test"


def test_decorator_rejects_sync_function(reg: ToolRegistry) -> None:
    with pytest.raises(TypeError, match="must be an async function"):

        @reg.tool(name="bad", description="Bad", category="test")
        def bad() -> ToolResult:
            return ToolResult()


# -- Schema generation -------------------------------------------------------


def test_get_schemas_no_params(reg: ToolRegistry) -> None:
    @reg.tool(name="simple", description="Simple tool", category="test")
    async def simple() -> ToolResult:
        return ToolResult()

    schemas = reg.get_schemas()
    assert len(schemas) == 1
    assert schemas[0]["name"] == "simple"
    assert schemas[0]["input_schema"] == {"type": "object", "properties": {}}


def test_get_schemas_with_params(reg: ToolRegistry) -> None:
    class Params(ToolParams):
        query: str = Field(description="Search query")
        limit: int = Field(default=10, description="Max results")

    @reg.tool(name="search", description="Search things", category="test", params_model=Params)
    async def search(query: str, limit: int = 10) -> ToolResult:
        return ToolResult()

    schema = reg.get_schemas()[0]["input_schema"]
    assert schema["properties"]["query"]["type"] == "string"
    assert schema["properties"]["limit"]["type"] == "integer"
    assert schema["required"] == ["query"]


# -- Execution ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_execute_with_params(reg: ToolRegistry) -> None:
    class AddParams(ToolParams):
        a: int = Field(description="First number")
        b: int = Field(description="Second number")

    @reg.tool(name="add", description="Add", category="test", params_model=AddParams)
    async def add(a: int, b: int) -> ToolResult:
        return ToolResult(data={"sum": a + b})

    result = await reg.execute("add", {"a": 3, "b": 7})
    assert result.success
    assert result.data["sum"] == 10


@pytest.mark.asyncio
async def test_execute_unknown_tool(reg: ToolRegistry) -> None:
    result = await reg.execute("nonexistent", {})
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert "Unknown tool" in result.error.message


@pytest.mark.asyncio
async def test_invalid_params_never_reach_handler(reg: ToolRegistry) -> None:
    calls = []

    class Params(ToolParams):
        count: int = Field(description="A number")

    @reg.tool(name="strict", description="Strict", category="test", params_model=Params)
    async def strict(count: int) -> ToolResult:
        calls.append(count)
        return ToolResult(data={"count": count})

    result = await reg.execute("strict", {"count": "not_a_number"})
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.message.startswith("count:")
    assert calls == []


@pytest.mark.asyncio
async def test_execute_handler_exception(reg: ToolRegistry) -> None:
    @reg.tool(name="boom", description="Boom", category="test")
    async def boom() -> ToolResult:
        msg = "kaboom"
        raise RuntimeError(msg)

    result = await reg.execute("boom", {})
    assert result.error.code == ErrorCode.API_ERROR
    assert result.error.message == "kaboom"


@pytest.mark.asyncio
async def test_parameterless_tool_ignores_stray_arguments(reg: ToolRegistry) -> None:
    @reg.tool(name="ping", description="Ping", category="test")
    async def ping() -> ToolResult:
        return ToolResult(data={"pong": True})

    result = await reg.execute("ping", {"unexpected": 1})
    assert result.success
    assert result.data == {"pong": True}


@pytest.mark.asyncio
async def test_list_calendars_with_stray_arguments(fake_google) -> None:
    from src.tools import registry

    result = await registry.execute("calendar_list_calendars", {"calendar_id": "primary"})
    assert result.success
    assert result.data["count"] == 2


# -- Global registry ---------------------------------------------------------


def test_all_google_tools_registered() -> None:
    from src.tools import registry

    assert set(registry.tool_names) == {
        "calendar_list_calendars",
        "calendar_list_events",
        "calendar_get_event",
        "calendar_create_event",
        "calendar_update_event",
        "calendar_delete_event",
        "tasks_list_tasklists",
        "tasks_list",
        "tasks_get",
        "tasks_create",
        "tasks_update",
        "tasks_delete",
        "tasks_complete",
        "tasks_move",
        "gmail_list_messages",
        "gmail_get_message",
        "gmail_get_attachment",
        "gmail_modify_message",
        "gmail_list_labels",
        "gmail_create_label",
        "gmail_send_message",
    }


@pytest.mark.asyncio
async def test_bad_date_rejected_before_guardrails(fake_google, guardrails) -> None:
    from src.tools import registry

    result = await registry.execute(
        "calendar_create_event",
        {"title": "A", "date": "15/01/2099", "start_time": "09:00", "end_time": "10:00"},
    )
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert "date" in result.error.message
    assert fake_google.calls == []
    assert guardrails.get_write_count() == 0


@pytest.mark.asyncio
async def test_send_without_approval_flag_rejected(fake_google, guardrails) -> None:
    from src.tools import registry

    result = await registry.execute(
        "gmail_send_message", {"to": "a@b.com", "subject": "s", "body": "b"}
    )
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert fake_google.sent == []


@pytest.mark.asyncio
async def test_execute_end_to_end(fake_google, guardrails) -> None:
    from src.tools import registry

    result = await registry.execute("tasks_list", {"task_list_id": "@default"})
    assert result.success
    assert result.data["count"] == 1
