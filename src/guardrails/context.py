"""Admission control for mutating operations.

``GuardrailContext`` keeps the day-scoped write budgets in memory and
exposes two kinds of methods:

* ``check_*``: pure pre-flight checks. They raise ``GuardrailError`` on
  rejection and never change state.
* ``increment_*``: the counter commit, called only after the guarded remote
  call has succeeded.

Handlers run on a single asyncio event loop and only the remote call itself
is pushed to a worker thread, so counters are never touched concurrently and
no lock is taken. Two operations dispatched together can both pass a check
before either commits; the budget is advisory under concurrency. A remote
call still pending when the process exits is abandoned without a commit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from src.errors import ErrorCode, GuardrailError, InvalidInputError
from src.guardrails.policy import PolicyConfig, load_policy

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_instant(value: str | datetime) -> datetime:
    """Parse an ISO 8601 instant or date. Naive values are read as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value)
        except (TypeError, ValueError) as exc:
            msg = f"Unrecognised event end time: {value!r}"
            raise InvalidInputError(msg) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class GuardrailContext:
    """Day-scoped write budgets plus the static policy they are checked against."""

    def __init__(
        self,
        config: PolicyConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._clock = clock
        self._write_count = 0
        self._mail_send_count = 0
        self._mail_modify_count = 0
        self._counters_date = self._today()

    @property
    def config(self) -> PolicyConfig:
        return self._config

    # -- day rollover ---------------------------------------------------------

    def _today(self) -> date:
        return self._clock().astimezone(UTC).date()

    def _ensure_date_current(self) -> None:
        """Reset every counter when the UTC day has changed."""
        today = self._today()
        if today != self._counters_date:
            logger.info(
                "UTC day changed (%s -> %s), resetting write counters",
                self._counters_date,
                today,
            )
            self._write_count = 0
            self._mail_send_count = 0
            self._mail_modify_count = 0
            self._counters_date = today

    # -- budget checks --------------------------------------------------------

    def check_write_limit(self, cost: int = 1) -> None:
        """Reject when *cost* more writes would exceed the daily write limit.

        Multi-step operations (a task move is insert + delete) pass their
        full cost so the budget is checked once for the whole operation.
        """
        self._ensure_date_current()
        limit = self._config.daily_write_limit
        if self._write_count + cost > limit:
            msg = (
                f"Daily write limit reached ({self._write_count}/{limit}). "
                "No more write operations allowed today."
            )
            raise GuardrailError(ErrorCode.DAILY_LIMIT_REACHED, msg)

    def check_mail_send_limit(self, cost: int = 1) -> None:
        self._ensure_date_current()
        limit = self._config.mail_policy.daily_send_limit
        if self._mail_send_count + cost > limit:
            msg = (
                f"Daily email send limit reached ({self._mail_send_count}/{limit}). "
                "No more emails can be sent today."
            )
            raise GuardrailError(ErrorCode.SEND_LIMIT_REACHED, msg)

    def check_mail_modify_limit(self, cost: int = 1) -> None:
        self._ensure_date_current()
        limit = self._config.mail_policy.daily_modify_limit
        if self._mail_modify_count + cost > limit:
            msg = (
                f"Daily email modify limit reached ({self._mail_modify_count}/{limit}). "
                "No more label changes allowed today."
            )
            raise GuardrailError(ErrorCode.DAILY_LIMIT_REACHED, msg)

    # -- resource checks ------------------------------------------------------

    def check_protected_calendar(self, calendar_id: str) -> None:
        self._ensure_date_current()
        if calendar_id in self._config.protected_calendars:
            msg = f"Calendar '{calendar_id}' is protected and cannot be modified."
            raise GuardrailError(ErrorCode.PROTECTED_RESOURCE, msg)

    def check_protected_task_list(self, task_list_id: str) -> None:
        self._ensure_date_current()
        if task_list_id in self._config.protected_task_lists:
            msg = f"Task list '{task_list_id}' is protected and cannot be modified."
            raise GuardrailError(ErrorCode.PROTECTED_RESOURCE, msg)

    def check_past_event_protection(self, event_end: str | datetime) -> None:
        """Reject edits to events that ended ``past_event_protection_days`` or more ago.

        The boundary is inclusive: an event that ended exactly N days ago is
        already protected.
        """
        self._ensure_date_current()
        ended = _parse_instant(event_end)
        elapsed_days = (self._clock() - ended).total_seconds() / _SECONDS_PER_DAY
        days = self._config.past_event_protection_days
        if elapsed_days >= days:
            msg = f"Cannot modify event that ended more than {days} days ago."
            raise GuardrailError(ErrorCode.PAST_EVENT_PROTECTED, msg)

    def check_recurring_series_delete(self, event: Mapping[str, Any]) -> None:
        """Reject deleting a recurring series master unless policy allows it.

        A series master carries recurrence rules and has no
        ``recurringEventId``; a single instance points at its master and is
        always deletable.
        """
        self._ensure_date_current()
        if self._config.allow_recurring_series_delete:
            return
        is_series_master = bool(event.get("recurrence")) and not event.get("recurringEventId")
        if is_series_master:
            msg = (
                "Cannot delete a recurring event series. "
                "Only individual instances can be deleted."
            )
            raise GuardrailError(ErrorCode.RECURRING_SERIES_BLOCKED, msg)

    def check_attachment_size(self, size_bytes: int) -> None:
        self._ensure_date_current()
        limit = self._config.mail_policy.max_attachment_size_bytes
        if size_bytes > limit:
            msg = f"Attachment too large: {size_bytes} bytes (max {limit})."
            raise GuardrailError(ErrorCode.ATTACHMENT_TOO_LARGE, msg)

    def check_attachment_type(self, mime_type: str) -> None:
        self._ensure_date_current()
        if mime_type in self._config.mail_policy.blocked_attachment_types:
            msg = f"Attachment type '{mime_type}' is blocked by policy."
            raise GuardrailError(ErrorCode.BLOCKED_ATTACHMENT_TYPE, msg)

    def check_send_approval(self, approved: bool) -> None:
        self._ensure_date_current()
        if self._config.mail_policy.require_approval_for_send and not approved:
            msg = "Sending email requires explicit approval (require_approval must be true)."
            raise GuardrailError(ErrorCode.VALIDATION_ERROR, msg)

    # -- counter commits ------------------------------------------------------

    def increment_write_counter(self, cost: int = 1) -> None:
        self._ensure_date_current()
        self._write_count += cost

    def increment_mail_send_counter(self, cost: int = 1) -> None:
        self._ensure_date_current()
        self._mail_send_count += cost

    def increment_mail_modify_counter(self, cost: int = 1) -> None:
        self._ensure_date_current()
        self._mail_modify_count += cost

    # -- introspection --------------------------------------------------------

    def get_write_count(self) -> int:
        return self._write_count

    def get_mail_send_count(self) -> int:
        return self._mail_send_count

    def get_mail_modify_count(self) -> int:
        return self._mail_modify_count


def load_guardrails(path: Path | str) -> GuardrailContext:
    """Build a context from a policy document. Propagates load failures."""
    return GuardrailContext(load_policy(path))
