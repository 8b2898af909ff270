"""Google Tasks tools — list, get, create, update, delete, complete, and move tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from src import runtime
from src.audit import AuditEntry
from src.integrations.google_auth import get_auth
from src.tools.base import ToolParams, ToolResult
from src.tools.guarded import guarded, record_audit
from src.tools.registry import registry

if TYPE_CHECKING:
    from src.audit import AuditLogger
    from src.guardrails import GuardrailContext

logger = logging.getLogger(__name__)

_CATEGORY = "google_tasks"
_SERVICE = "tasks"

DEFAULT_TASK_LIST = "@default"

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _auth():  # noqa: ANN202
    return get_auth()


def _guardrails() -> GuardrailContext:
    return runtime.get_guardrails()


def _audit() -> AuditLogger:
    return runtime.get_audit_logger()


def _to_rfc3339(day: str) -> str:
    """The Tasks API only stores the date part of ``due``; send it as midnight UTC."""
    return f"{day}T00:00:00.000Z"


def _format_task(task: dict) -> dict:
    due = task.get("due")
    return {
        "id": task.get("id"),
        "title": task.get("title") or "(no title)",
        "status": task.get("status"),
        "due": due[:10] if due else None,
        "notes": task.get("notes"),
        "updated": task.get("updated"),
    }


# -- tasks_list_tasklists ----------------------------------------------------


@registry.tool(
    name="tasks_list_tasklists",
    description="List all task lists.",
    category=_CATEGORY,
)
@guarded
async def list_task_lists() -> ToolResult:
    service = _auth().tasks()

    result = await asyncio.to_thread(lambda: service.tasklists().list().execute())

    lists = [{"id": tl["id"], "title": tl.get("title", "")} for tl in result.get("items", [])]
    return ToolResult(data={"task_lists": lists, "count": len(lists)})


# -- tasks_list --------------------------------------------------------------


class ListTasksParams(ToolParams):
    task_list_id: str = Field(
        default=DEFAULT_TASK_LIST, description="Task list ID. Defaults to the default list"
    )
    show_completed: bool = Field(default=False, description="Include completed tasks")
    max_results: int = Field(default=100, ge=1, le=100, description="Max tasks to return")


@registry.tool(
    name="tasks_list",
    description="List tasks in a given task list.",
    category=_CATEGORY,
    params_model=ListTasksParams,
)
@guarded
async def list_tasks(
    task_list_id: str = DEFAULT_TASK_LIST,
    show_completed: bool = False,
    max_results: int = 100,
) -> ToolResult:
    service = _auth().tasks()

    result = await asyncio.to_thread(
        lambda: service.tasks()
        .list(
            tasklist=task_list_id,
            showCompleted=show_completed,
            showHidden=show_completed,
            maxResults=max_results,
        )
        .execute()
    )

    tasks = [_format_task(t) for t in result.get("items", [])]
    return ToolResult(data={"tasks": tasks, "count": len(tasks)})


# -- tasks_get ---------------------------------------------------------------


class GetTaskParams(ToolParams):
    task_list_id: str = Field(description="Task list ID")
    task_id: str = Field(description="Google task ID")


@registry.tool(
    name="tasks_get",
    description="Get full details of a single task.",
    category=_CATEGORY,
    params_model=GetTaskParams,
)
@guarded
async def get_task(task_list_id: str, task_id: str) -> ToolResult:
    service = _auth().tasks()

    task = await asyncio.to_thread(
        lambda: service.tasks().get(tasklist=task_list_id, task=task_id).execute()
    )

    return ToolResult(data=_format_task(task))


# -- tasks_create ------------------------------------------------------------


class CreateTaskParams(ToolParams):
    task_list_id: str = Field(
        default=DEFAULT_TASK_LIST, description="Task list ID. Defaults to the default list"
    )
    title: str = Field(description="Task title")
    due: str | None = Field(default=None, pattern=_DATE_PATTERN, description="Due date in YYYY-MM-DD")
    notes: str | None = Field(default=None, description="Task notes")


@registry.tool(
    name="tasks_create",
    description="Create a new task.",
    category=_CATEGORY,
    params_model=CreateTaskParams,
)
@guarded
async def create_task(
    title: str,
    task_list_id: str = DEFAULT_TASK_LIST,
    due: str | None = None,
    notes: str | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_task_list(task_list_id)

    body: dict[str, Any] = {"title": title}
    if due:
        body["due"] = _to_rfc3339(due)
    if notes:
        body["notes"] = notes

    service = _auth().tasks()
    task = await asyncio.to_thread(
        lambda: service.tasks().insert(tasklist=task_list_id, body=body).execute()
    )

    guardrails.increment_write_counter(1)
    logger.info("Created task: %s", task.get("id"))

    await record_audit(
        _audit(),
        AuditEntry(operation="create", service=_SERVICE, title=title, remote_id=task.get("id", "")),
    )

    return ToolResult(data=_format_task(task))


# -- tasks_update ------------------------------------------------------------


class UpdateTaskParams(ToolParams):
    task_list_id: str = Field(description="Task list ID")
    task_id: str = Field(description="Google task ID")
    title: str | None = Field(default=None, description="New title")
    due: str | None = Field(
        default=None, pattern=_DATE_PATTERN, description="New due date in YYYY-MM-DD"
    )
    notes: str | None = Field(default=None, description="New notes")
    status: Literal["needsAction", "completed"] | None = Field(
        default=None, description="Task status"
    )


@registry.tool(
    name="tasks_update",
    description="Update an existing task. Only specified fields are changed.",
    category=_CATEGORY,
    params_model=UpdateTaskParams,
)
@guarded
async def update_task(
    task_list_id: str,
    task_id: str,
    title: str | None = None,
    due: str | None = None,
    notes: str | None = None,
    status: str | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_task_list(task_list_id)

    service = _auth().tasks()

    # Fetch existing task so the audit entry has a title even for partial updates
    existing = await asyncio.to_thread(
        lambda: service.tasks().get(tasklist=task_list_id, task=task_id).execute()
    )

    patch: dict[str, Any] = {}
    changes: dict[str, Any] = {}
    if title is not None:
        patch["title"] = title
        changes["title"] = title
    if due is not None:
        patch["due"] = _to_rfc3339(due)
        changes["due"] = due
    if notes is not None:
        patch["notes"] = notes
        changes["notes"] = notes
    if status is not None:
        patch["status"] = status
        changes["status"] = status

    updated = await asyncio.to_thread(
        lambda: service.tasks().patch(tasklist=task_list_id, task=task_id, body=patch).execute()
    )

    guardrails.increment_write_counter(1)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="update",
            service=_SERVICE,
            title=updated.get("title") or title or existing.get("title", ""),
            remote_id=updated.get("id", task_id),
            changes=changes,
        ),
    )

    return ToolResult(data=_format_task(updated))


# -- tasks_delete ------------------------------------------------------------


class DeleteTaskParams(ToolParams):
    task_list_id: str = Field(description="Task list ID")
    task_id: str = Field(description="Google task ID")


@registry.tool(
    name="tasks_delete",
    description="Delete a single task.",
    category=_CATEGORY,
    params_model=DeleteTaskParams,
)
@guarded
async def delete_task(task_list_id: str, task_id: str) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_task_list(task_list_id)

    service = _auth().tasks()

    existing = await asyncio.to_thread(
        lambda: service.tasks().get(tasklist=task_list_id, task=task_id).execute()
    )
    await asyncio.to_thread(
        lambda: service.tasks().delete(tasklist=task_list_id, task=task_id).execute()
    )

    guardrails.increment_write_counter(1)
    title = existing.get("title") or "(no title)"

    await record_audit(
        _audit(),
        AuditEntry(operation="delete", service=_SERVICE, title=title, remote_id=task_id),
    )

    return ToolResult(data={"deleted": True, "task_id": task_id, "deleted_title": title})


# -- tasks_complete ----------------------------------------------------------


class CompleteTaskParams(ToolParams):
    task_list_id: str = Field(description="Task list ID")
    task_id: str = Field(description="Google task ID")


@registry.tool(
    name="tasks_complete",
    description="Mark a task as completed.",
    category=_CATEGORY,
    params_model=CompleteTaskParams,
)
@guarded
async def complete_task(task_list_id: str, task_id: str) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_task_list(task_list_id)

    service = _auth().tasks()
    task = await asyncio.to_thread(
        lambda: service.tasks()
        .patch(tasklist=task_list_id, task=task_id, body={"status": "completed"})
        .execute()
    )

    guardrails.increment_write_counter(1)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="complete",
            service=_SERVICE,
            title=task.get("title") or "(no title)",
            remote_id=task.get("id", task_id),
        ),
    )

    return ToolResult(data={
        "id": task.get("id", task_id),
        "title": task.get("title"),
        "status": "completed",
    })


# -- tasks_move --------------------------------------------------------------


class MoveTaskParams(ToolParams):
    source_list_id: str = Field(description="Source task list ID")
    task_id: str = Field(description="Google task ID")
    destination_list_id: str = Field(description="Destination task list ID")


@registry.tool(
    name="tasks_move",
    description=(
        "Move a task to a different list. Counts as two writes "
        "(create in the destination, delete from the source)."
    ),
    category=_CATEGORY,
    params_model=MoveTaskParams,
)
@guarded
async def move_task(source_list_id: str, task_id: str, destination_list_id: str) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(2)
    guardrails.check_protected_task_list(source_list_id)
    guardrails.check_protected_task_list(destination_list_id)

    service = _auth().tasks()

    task = await asyncio.to_thread(
        lambda: service.tasks().get(tasklist=source_list_id, task=task_id).execute()
    )

    body = {
        key: task[key] for key in ("title", "notes", "due", "status") if task.get(key) is not None
    }
    created = await asyncio.to_thread(
        lambda: service.tasks().insert(tasklist=destination_list_id, body=body).execute()
    )

    await asyncio.to_thread(
        lambda: service.tasks().delete(tasklist=source_list_id, task=task_id).execute()
    )

    guardrails.increment_write_counter(2)
    logger.info("Moved task %s from %s to %s", task_id, source_list_id, destination_list_id)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="create",
            service=_SERVICE,
            title=task.get("title") or "(no title)",
            remote_id=created.get("id", ""),
            changes={"movedFrom": source_list_id, "movedTo": destination_list_id},
        ),
    )

    return ToolResult(data={
        "id": created.get("id"),
        "title": created.get("title"),
        "new_list_id": destination_list_id,
    })
