"""In-memory stand-ins for the Calendar, Tasks and Gmail API services.

Served instead of the real APIs when ``GOOGLE_MCP_TEST_MODE=true`` so the
guardrails and handlers can be exercised without Google credentials. The
fakes follow the googleapiclient call shape
(``service.events().get(...).execute()``) and keep their state in memory
for the lifetime of the process. Every ``execute()`` is recorded in
``FakeGoogleAuth.calls`` so tests can assert which remote calls happened.
"""

from __future__ import annotations

import base64
import copy
import itertools
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from googleapiclient.errors import HttpError


class _Response(dict):
    """Minimal stand-in for ``httplib2.Response`` as consumed by ``HttpError``."""

    def __init__(self, status: int, reason: str) -> None:
        super().__init__(status=str(status))
        self.status = status
        self.reason = reason


def http_error(status: int, message: str) -> HttpError:
    """Build an ``HttpError`` the way googleapiclient raises it."""
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(_Response(status, message), content)


class _Request:
    """A deferred API call; nothing happens until ``execute()``."""

    def __init__(self, calls: list[str], name: str, fn: Callable[[], Any]) -> None:
        self._calls = calls
        self._name = name
        self._fn = fn

    def execute(self) -> Any:
        self._calls.append(self._name)
        return self._fn()


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode()


class FakeGoogleAuth:
    """Shared fake state plus ``calendar()`` / ``tasks()`` / ``gmail()`` builders."""

    _instance: FakeGoogleAuth | None = None

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._ids = itertools.count(1)
        self.calendars: list[dict[str, Any]] = []
        self.events: dict[str, dict[str, dict[str, Any]]] = {}
        self.task_lists: list[dict[str, Any]] = []
        self.tasks_by_list: dict[str, dict[str, dict[str, Any]]] = {}
        self.messages: dict[str, dict[str, Any]] = {}
        self.attachments: dict[tuple[str, str], dict[str, Any]] = {}
        self.labels: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []
        self._seed()

    @classmethod
    def get(cls) -> FakeGoogleAuth:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        cls._instance = None

    def next_id(self, prefix: str) -> str:
        return f"{prefix}_mock_{next(self._ids)}"

    def request(self, name: str, fn: Callable[[], Any]) -> _Request:
        return _Request(self.calls, name, fn)

    def calendar(self) -> _FakeCalendar:
        return _FakeCalendar(self)

    def tasks(self) -> _FakeTasks:
        return _FakeTasks(self)

    def gmail(self) -> _FakeGmail:
        return _FakeGmail(self)

    # -- seed data -------------------------------------------------------------

    def _seed(self) -> None:
        now = datetime.now(UTC).replace(minute=0, second=0, microsecond=0)
        old = now - timedelta(days=30)

        self.calendars = [
            {"id": "primary", "summary": "Primary Calendar", "primary": True, "accessRole": "owner"},
            {"id": "work@example.com", "summary": "Work Calendar", "accessRole": "writer"},
        ]
        self.events = {
            "primary": {
                "evt_standup": {
                    "id": "evt_standup",
                    "summary": "Morning Standup",
                    "start": {"dateTime": now.isoformat()},
                    "end": {"dateTime": (now + timedelta(minutes=30)).isoformat()},
                    "location": "Room A",
                },
                "evt_series": {
                    "id": "evt_series",
                    "summary": "Weekly Review",
                    "start": {"dateTime": now.isoformat()},
                    "end": {"dateTime": (now + timedelta(hours=1)).isoformat()},
                    "recurrence": ["RRULE:FREQ=WEEKLY;BYDAY=MO"],
                },
                "evt_old": {
                    "id": "evt_old",
                    "summary": "Last Month Retro",
                    "start": {"dateTime": old.isoformat()},
                    "end": {"dateTime": (old + timedelta(hours=1)).isoformat()},
                },
            },
            "work@example.com": {},
        }

        self.task_lists = [
            {"id": "@default", "title": "My Tasks"},
            {"id": "list_work", "title": "Work"},
        ]
        self.tasks_by_list = {
            "@default": {
                "task_groceries": {
                    "id": "task_groceries",
                    "title": "Buy groceries",
                    "status": "needsAction",
                    "due": "2026-02-14T00:00:00.000Z",
                    "notes": "Milk, eggs",
                },
            },
            "list_work": {},
        }

        self.labels = [
            {"id": "INBOX", "name": "INBOX", "type": "system"},
            {"id": "UNREAD", "name": "UNREAD", "type": "system"},
            {"id": "TRASH", "name": "TRASH", "type": "system"},
            {"id": "Label_100", "name": "Receipts", "type": "user"},
        ]
        self.messages = {
            "msg_plain": _message(
                "msg_plain", "Lunch?", "alice@example.com",
                {"mimeType": "text/plain", "body": {"data": _b64("Are you free at noon?")}},
            ),
            "msg_invoice": _message(
                "msg_invoice", "Invoice", "billing@example.com",
                {
                    "mimeType": "multipart/mixed",
                    "parts": [
                        {"mimeType": "text/plain", "body": {"data": _b64("Invoice attached.")}},
                        {
                            "mimeType": "application/pdf",
                            "filename": "invoice.pdf",
                            "body": {"attachmentId": "att_pdf", "size": 2048},
                        },
                        {
                            "mimeType": "application/x-msdownload",
                            "filename": "setup.exe",
                            "body": {"attachmentId": "att_exe", "size": 4096},
                        },
                    ],
                },
            ),
        }
        self.attachments = {
            ("msg_invoice", "att_pdf"): {"data": _b64("%PDF-1.4"), "size": 2048},
            ("msg_invoice", "att_exe"): {"data": _b64("MZ"), "size": 4096},
        }


def _message(msg_id: str, subject: str, sender: str, payload: dict[str, Any]) -> dict[str, Any]:
    payload = dict(payload)
    payload["headers"] = [
        {"name": "From", "value": sender},
        {"name": "To", "value": "me@example.com"},
        {"name": "Subject", "value": subject},
        {"name": "Date", "value": "Fri, 13 Feb 2026 09:00:00 +0000"},
        {"name": "Message-ID", "value": f"<{msg_id}@example.com>"},
    ]
    return {
        "id": msg_id,
        "threadId": f"thread_{msg_id}",
        "snippet": subject,
        "labelIds": ["INBOX", "UNREAD"],
        "payload": payload,
    }


# -- Calendar ---------------------------------------------------------------


class _FakeCalendar:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def calendarList(self) -> _FakeCalendar:  # noqa: N802
        return self

    def events(self) -> _FakeCalendar:
        return self

    def _event(self, calendarId: str, eventId: str) -> dict[str, Any]:  # noqa: N803
        event = self._s.events.get(calendarId, {}).get(eventId)
        if event is None:
            raise http_error(404, f"Event {eventId} not found")
        return event

    def list(self, calendarId: str | None = None, **kwargs: Any) -> _Request:  # noqa: N803
        if calendarId is None:
            return self._s.request("calendarList.list", lambda: {"items": list(self._s.calendars)})

        def run() -> dict[str, Any]:
            day_min = str(kwargs.get("timeMin", ""))[:10]
            day_max = str(kwargs.get("timeMax", "9999"))[:10]
            items = []
            for event in self._s.events.get(calendarId, {}).values():
                start = event["start"].get("dateTime", event["start"].get("date", ""))
                if day_min <= start[:10] <= day_max:
                    items.append(copy.deepcopy(event))
            return {"items": items[: kwargs.get("maxResults", 250)]}

        return self._s.request("events.list", run)

    def get(self, calendarId: str, eventId: str, **_: Any) -> _Request:  # noqa: N803
        return self._s.request(
            "events.get", lambda: copy.deepcopy(self._event(calendarId, eventId))
        )

    def insert(self, calendarId: str, body: dict[str, Any]) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            event = {**copy.deepcopy(body), "id": self._s.next_id("evt")}
            self._s.events.setdefault(calendarId, {})[event["id"]] = event
            return copy.deepcopy(event)

        return self._s.request("events.insert", run)

    def patch(self, calendarId: str, eventId: str, body: dict[str, Any]) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            event = self._event(calendarId, eventId)
            event.update(copy.deepcopy(body))
            return copy.deepcopy(event)

        return self._s.request("events.patch", run)

    def delete(self, calendarId: str, eventId: str) -> _Request:  # noqa: N803
        def run() -> str:
            self._event(calendarId, eventId)
            del self._s.events[calendarId][eventId]
            return ""

        return self._s.request("events.delete", run)


# -- Tasks ------------------------------------------------------------------


class _FakeTasks:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def tasklists(self) -> _FakeTaskLists:
        return _FakeTaskLists(self._s)

    def tasks(self) -> _FakeTasks:
        return self

    def _task(self, tasklist: str, task: str) -> dict[str, Any]:
        found = self._s.tasks_by_list.get(tasklist, {}).get(task)
        if found is None:
            raise http_error(404, f"Task {task} not found")
        return found

    def list(self, tasklist: str, showCompleted: bool = True, **kwargs: Any) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            items = [
                copy.deepcopy(t)
                for t in self._s.tasks_by_list.get(tasklist, {}).values()
                if showCompleted or t.get("status") != "completed"
            ]
            return {"items": items[: kwargs.get("maxResults", 100)]}

        return self._s.request("tasks.list", run)

    def get(self, tasklist: str, task: str) -> _Request:
        return self._s.request("tasks.get", lambda: copy.deepcopy(self._task(tasklist, task)))

    def insert(self, tasklist: str, body: dict[str, Any]) -> _Request:
        def run() -> dict[str, Any]:
            if tasklist not in self._s.tasks_by_list:
                raise http_error(404, f"Task list {tasklist} not found")
            created = {"status": "needsAction", **copy.deepcopy(body), "id": self._s.next_id("task")}
            self._s.tasks_by_list[tasklist][created["id"]] = created
            return copy.deepcopy(created)

        return self._s.request("tasks.insert", run)

    def patch(self, tasklist: str, task: str, body: dict[str, Any]) -> _Request:
        def run() -> dict[str, Any]:
            found = self._task(tasklist, task)
            found.update(copy.deepcopy(body))
            return copy.deepcopy(found)

        return self._s.request("tasks.patch", run)

    def delete(self, tasklist: str, task: str) -> _Request:
        def run() -> str:
            self._task(tasklist, task)
            del self._s.tasks_by_list[tasklist][task]
            return ""

        return self._s.request("tasks.delete", run)


class _FakeTaskLists:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def list(self, **_: Any) -> _Request:
        return self._s.request("tasklists.list", lambda: {"items": list(self._s.task_lists)})


# -- Gmail ------------------------------------------------------------------


class _FakeGmail:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def users(self) -> _FakeGmail:
        return self

    def messages(self) -> _FakeMessages:
        return _FakeMessages(self._s)

    def labels(self) -> _FakeLabels:
        return _FakeLabels(self._s)


class _FakeMessages:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def _message(self, msg_id: str) -> dict[str, Any]:
        found = self._s.messages.get(msg_id)
        if found is None:
            raise http_error(404, f"Message {msg_id} not found")
        return found

    def attachments(self) -> _FakeMessages:
        return self

    def list(self, userId: str, maxResults: int = 100, **kwargs: Any) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            wanted = set(kwargs.get("labelIds") or [])
            stubs = [
                {"id": m["id"], "threadId": m["threadId"]}
                for m in self._s.messages.values()
                if wanted <= set(m.get("labelIds", []))
            ]
            return {"messages": stubs[:maxResults], "resultSizeEstimate": len(stubs)}

        return self._s.request("messages.list", run)

    def get(
        self,
        userId: str,  # noqa: N803
        id: str | None = None,  # noqa: A002
        messageId: str | None = None,  # noqa: N803
        **kwargs: Any,
    ) -> _Request:
        if messageId is not None:
            # users().messages().attachments().get(...)
            def attachment() -> dict[str, Any]:
                found = self._s.attachments.get((messageId, id or ""))
                if found is None:
                    raise http_error(404, f"Attachment {id} not found")
                return dict(found)

            return self._s.request("attachments.get", attachment)

        return self._s.request("messages.get", lambda: copy.deepcopy(self._message(id or "")))

    def modify(self, userId: str, id: str, body: dict[str, Any]) -> _Request:  # noqa: N803, A002
        def run() -> dict[str, Any]:
            msg = self._message(id)
            labels = [lbl for lbl in msg["labelIds"] if lbl not in body.get("removeLabelIds", [])]
            labels += [lbl for lbl in body.get("addLabelIds", []) if lbl not in labels]
            msg["labelIds"] = labels
            return {"id": id, "threadId": msg["threadId"], "labelIds": list(labels)}

        return self._s.request("messages.modify", run)

    def send(self, userId: str, body: dict[str, Any]) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            sent_id = self._s.next_id("msg")
            thread_id = body.get("threadId") or f"thread_{sent_id}"
            self._s.sent.append({"id": sent_id, **body})
            return {"id": sent_id, "threadId": thread_id, "labelIds": ["SENT"]}

        return self._s.request("messages.send", run)


class _FakeLabels:
    def __init__(self, state: FakeGoogleAuth) -> None:
        self._s = state

    def list(self, userId: str) -> _Request:  # noqa: N803
        return self._s.request("labels.list", lambda: {"labels": list(self._s.labels)})

    def create(self, userId: str, body: dict[str, Any]) -> _Request:  # noqa: N803
        def run() -> dict[str, Any]:
            label = {"id": self._s.next_id("Label"), "name": body["name"], "type": "user"}
            self._s.labels.append(label)
            return dict(label)

        return self._s.request("labels.create", run)
