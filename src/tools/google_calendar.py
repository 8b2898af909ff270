"""Google Calendar tools — list calendars, list/get/create/update/delete events."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date as date_cls
from datetime import datetime, time
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from pydantic import Field

from src import runtime
from src.audit import AuditEntry
from src.config import settings
from src.errors import InvalidInputError
from src.integrations.google_auth import get_auth
from src.tools.base import ToolParams, ToolResult
from src.tools.guarded import guarded, record_audit
from src.tools.registry import registry

if TYPE_CHECKING:
    from src.audit import AuditLogger
    from src.guardrails import GuardrailContext

logger = logging.getLogger(__name__)

_CATEGORY = "google_calendar"
_SERVICE = "calendar"

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
_TIME_PATTERN = r"^\d{2}:\d{2}$"
_TIME_RE = re.compile(r"T(\d{2}:\d{2})")


def _auth():  # noqa: ANN202
    return get_auth()


def _guardrails() -> GuardrailContext:
    return runtime.get_guardrails()


def _audit() -> AuditLogger:
    return runtime.get_audit_logger()


def _extract_date(value: str | None) -> str | None:
    return value[:10] if value else None


def _extract_time(value: str | None) -> str | None:
    if not value:
        return None
    match = _TIME_RE.search(value)
    return match.group(1) if match else None


def _format_event(event: dict) -> dict:
    """Normalise a Calendar API event into a consistent dict."""
    start = event.get("start", {})
    end = event.get("end", {})
    is_all_day = bool(start.get("date"))

    attendees = [
        {
            "email": a.get("email", ""),
            "name": a.get("displayName"),
            "status": a.get("responseStatus"),
        }
        for a in event.get("attendees", [])
    ]

    return {
        "id": event["id"],
        "title": event.get("summary", "(no title)"),
        "date": start.get("date") if is_all_day else _extract_date(start.get("dateTime")),
        "start_time": None if is_all_day else _extract_time(start.get("dateTime")),
        "end_time": None if is_all_day else _extract_time(end.get("dateTime")),
        "location": event.get("location", ""),
        "description": event.get("description", ""),
        "is_all_day": is_all_day,
        "is_recurring": bool(event.get("recurringEventId") or event.get("recurrence")),
        "attendees": attendees,
    }


def _day_bounds(start_day: str, end_day: str, timezone: str) -> tuple[str, str]:
    """RFC 3339 bounds covering *start_day* 00:00 to the end of *end_day* in *timezone*."""
    tz = ZoneInfo(timezone)
    time_min = datetime.combine(date_cls.fromisoformat(start_day), time.min, tzinfo=tz)
    time_max = datetime.combine(date_cls.fromisoformat(end_day), time.max, tzinfo=tz)
    return time_min.isoformat(), time_max.isoformat()


def _event_end(event: dict) -> str | None:
    end = event.get("end", {})
    return end.get("dateTime") or end.get("date")


# -- calendar_list_calendars -------------------------------------------------


@registry.tool(
    name="calendar_list_calendars",
    description="List all calendars the user has access to.",
    category=_CATEGORY,
)
@guarded
async def list_calendars() -> ToolResult:
    service = _auth().calendar()

    result = await asyncio.to_thread(lambda: service.calendarList().list().execute())

    calendars = [
        {
            "id": c["id"],
            "name": c.get("summary", ""),
            "primary": c.get("primary", False),
            "access_role": c.get("accessRole", ""),
        }
        for c in result.get("items", [])
    ]
    return ToolResult(data={"calendars": calendars, "count": len(calendars)})


# -- calendar_list_events ----------------------------------------------------


class ListEventsParams(ToolParams):
    calendar_id: str = Field(default="primary", description="Calendar ID. Defaults to primary")
    date: str | None = Field(
        default=None, pattern=_DATE_PATTERN, description="Single date in YYYY-MM-DD format"
    )
    start_date: str | None = Field(
        default=None, pattern=_DATE_PATTERN, description="Range start in YYYY-MM-DD"
    )
    end_date: str | None = Field(
        default=None, pattern=_DATE_PATTERN, description="Range end in YYYY-MM-DD"
    )
    max_results: int = Field(default=50, ge=1, le=250, description="Max events to return")


@registry.tool(
    name="calendar_list_events",
    description="List calendar events for a single date or a date range.",
    category=_CATEGORY,
    params_model=ListEventsParams,
)
@guarded
async def list_events(
    calendar_id: str = "primary",
    date: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    max_results: int = 50,
) -> ToolResult:
    if date:
        start_day, end_day = date, date
    elif start_date and end_date:
        start_day, end_day = start_date, end_date
    else:
        msg = "Provide either 'date' or both 'start_date' and 'end_date'"
        raise InvalidInputError(msg)

    timezone = settings.timezone
    time_min, time_max = _day_bounds(start_day, end_day, timezone)
    service = _auth().calendar()

    result = await asyncio.to_thread(
        lambda: service.events()
        .list(
            calendarId=calendar_id,
            timeMin=time_min,
            timeMax=time_max,
            timeZone=timezone,
            singleEvents=True,
            orderBy="startTime",
            maxResults=max_results,
        )
        .execute()
    )

    events = [_format_event(e) for e in result.get("items", [])]
    return ToolResult(data={"events": events, "count": len(events)})


# -- calendar_get_event ------------------------------------------------------


class GetEventParams(ToolParams):
    calendar_id: str = Field(default="primary", description="Calendar ID. Defaults to primary")
    event_id: str = Field(description="Google event ID")


@registry.tool(
    name="calendar_get_event",
    description="Get full details of a single calendar event.",
    category=_CATEGORY,
    params_model=GetEventParams,
)
@guarded
async def get_event(event_id: str, calendar_id: str = "primary") -> ToolResult:
    service = _auth().calendar()

    event = await asyncio.to_thread(
        lambda: service.events()
        .get(calendarId=calendar_id, eventId=event_id, timeZone=settings.timezone)
        .execute()
    )

    return ToolResult(data=_format_event(event))


# -- calendar_create_event ---------------------------------------------------


class CreateEventParams(ToolParams):
    calendar_id: str = Field(default="primary", description="Calendar ID. Defaults to primary")
    title: str = Field(description="Event title")
    date: str = Field(pattern=_DATE_PATTERN, description="Date in YYYY-MM-DD")
    start_time: str = Field(pattern=_TIME_PATTERN, description="Start time in HH:MM (24h)")
    end_time: str = Field(pattern=_TIME_PATTERN, description="End time in HH:MM (24h)")
    location: str | None = Field(default=None, description="Event location")
    description: str | None = Field(default=None, description="Event description")


@registry.tool(
    name="calendar_create_event",
    description="Create a new calendar event.",
    category=_CATEGORY,
    params_model=CreateEventParams,
)
@guarded
async def create_event(
    title: str,
    date: str,
    start_time: str,
    end_time: str,
    calendar_id: str = "primary",
    location: str | None = None,
    description: str | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_calendar(calendar_id)

    timezone = settings.timezone
    body: dict[str, Any] = {
        "summary": title,
        "start": {"dateTime": f"{date}T{start_time}:00", "timeZone": timezone},
        "end": {"dateTime": f"{date}T{end_time}:00", "timeZone": timezone},
    }
    if location:
        body["location"] = location
    if description:
        body["description"] = description

    service = _auth().calendar()
    event = await asyncio.to_thread(
        lambda: service.events().insert(calendarId=calendar_id, body=body).execute()
    )

    guardrails.increment_write_counter(1)
    logger.info("Created event: %s", event["id"])

    await record_audit(
        _audit(),
        AuditEntry(operation="create", service=_SERVICE, title=title, remote_id=event["id"]),
    )

    return ToolResult(data={
        "id": event["id"],
        "title": event.get("summary", title),
        "start_time": _extract_time(event.get("start", {}).get("dateTime")),
        "end_time": _extract_time(event.get("end", {}).get("dateTime")),
    })


# -- calendar_update_event ---------------------------------------------------


class UpdateEventParams(ToolParams):
    calendar_id: str = Field(default="primary", description="Calendar ID. Defaults to primary")
    event_id: str = Field(description="Google event ID")
    title: str | None = Field(default=None, description="New title")
    date: str | None = Field(default=None, pattern=_DATE_PATTERN, description="New date in YYYY-MM-DD")
    start_time: str | None = Field(
        default=None, pattern=_TIME_PATTERN, description="New start time in HH:MM"
    )
    end_time: str | None = Field(
        default=None, pattern=_TIME_PATTERN, description="New end time in HH:MM"
    )
    location: str | None = Field(default=None, description="New location")
    description: str | None = Field(default=None, description="New description")


@registry.tool(
    name="calendar_update_event",
    description="Update an existing calendar event. Only specified fields are changed.",
    category=_CATEGORY,
    params_model=UpdateEventParams,
)
@guarded
async def update_event(
    event_id: str,
    calendar_id: str = "primary",
    title: str | None = None,
    date: str | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
    location: str | None = None,
    description: str | None = None,
) -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_calendar(calendar_id)

    service = _auth().calendar()

    # Fetch existing event for the past-event check and time merging
    existing = await asyncio.to_thread(
        lambda: service.events().get(calendarId=calendar_id, eventId=event_id).execute()
    )

    ended = _event_end(existing)
    if ended:
        guardrails.check_past_event_protection(ended)

    timezone = settings.timezone
    patch: dict[str, Any] = {}
    changes: dict[str, Any] = {}

    if title is not None:
        patch["summary"] = title
        changes["title"] = title

    existing_start = existing.get("start", {}).get("dateTime")
    existing_end = existing.get("end", {}).get("dateTime")

    if date is not None or start_time is not None:
        day = date or _extract_date(existing_start) or ""
        at = start_time or _extract_time(existing_start) or "00:00"
        patch["start"] = {"dateTime": f"{day}T{at}:00", "timeZone": timezone}
        if date is not None:
            changes["date"] = date
        if start_time is not None:
            changes["start_time"] = start_time

    if date is not None or end_time is not None:
        day = date or _extract_date(existing_end) or ""
        at = end_time or _extract_time(existing_end) or "00:00"
        patch["end"] = {"dateTime": f"{day}T{at}:00", "timeZone": timezone}
        if end_time is not None:
            changes["end_time"] = end_time

    if location is not None:
        patch["location"] = location
        changes["location"] = location
    if description is not None:
        patch["description"] = description
        changes["description"] = description

    updated = await asyncio.to_thread(
        lambda: service.events()
        .patch(calendarId=calendar_id, eventId=event_id, body=patch)
        .execute()
    )

    guardrails.increment_write_counter(1)

    await record_audit(
        _audit(),
        AuditEntry(
            operation="update",
            service=_SERVICE,
            title=updated.get("summary") or title or existing.get("summary", ""),
            remote_id=updated.get("id", event_id),
            changes=changes,
        ),
    )

    return ToolResult(data={
        "id": updated.get("id", event_id),
        "title": updated.get("summary", ""),
        "start_time": _extract_time(updated.get("start", {}).get("dateTime")),
        "end_time": _extract_time(updated.get("end", {}).get("dateTime")),
    })


# -- calendar_delete_event ---------------------------------------------------


class DeleteEventParams(ToolParams):
    calendar_id: str = Field(default="primary", description="Calendar ID. Defaults to primary")
    event_id: str = Field(description="Google event ID")


@registry.tool(
    name="calendar_delete_event",
    description=(
        "Delete a single calendar event. Deleting a whole recurring series "
        "may be blocked by policy; delete individual instances instead."
    ),
    category=_CATEGORY,
    params_model=DeleteEventParams,
)
@guarded
async def delete_event(event_id: str, calendar_id: str = "primary") -> ToolResult:
    guardrails = _guardrails()
    guardrails.check_write_limit(1)
    guardrails.check_protected_calendar(calendar_id)

    service = _auth().calendar()

    existing = await asyncio.to_thread(
        lambda: service.events().get(calendarId=calendar_id, eventId=event_id).execute()
    )

    ended = _event_end(existing)
    if ended:
        guardrails.check_past_event_protection(ended)
    guardrails.check_recurring_series_delete(existing)

    await asyncio.to_thread(
        lambda: service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
    )

    guardrails.increment_write_counter(1)
    title = existing.get("summary", "(no title)")

    await record_audit(
        _audit(),
        AuditEntry(operation="delete", service=_SERVICE, title=title, remote_id=event_id),
    )

    return ToolResult(data={"deleted": True, "event_id": event_id, "deleted_title": title})
