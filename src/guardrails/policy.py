"""Policy configuration loaded once at process start."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BLOCKED_ATTACHMENT_TYPES = frozenset({
    "application/x-executable",
    "application/x-msdos-program",
    "application/x-msdownload",
    "application/x-dosexec",
})

_BYTES_PER_MB = 1024 * 1024


class _PolicyModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class MailPolicy(_PolicyModel):
    """Limits that apply only to Gmail operations."""

    daily_send_limit: int = Field(default=5, ge=0, alias="dailySendLimit")
    daily_modify_limit: int = Field(default=100, ge=0, alias="dailyModifyLimit")
    max_attachment_size_mb: float = Field(default=25, ge=0, alias="maxAttachmentSizeMB")
    blocked_attachment_types: frozenset[str] = Field(
        default=DEFAULT_BLOCKED_ATTACHMENT_TYPES, alias="blockedAttachmentTypes"
    )
    require_approval_for_send: bool = Field(default=True, alias="requireApprovalForSend")

    @property
    def max_attachment_size_bytes(self) -> int:
        return int(self.max_attachment_size_mb * _BYTES_PER_MB)


class PolicyConfig(_PolicyModel):
    """Static organizational policy.

    Mirrors the JSON document on disk (camelCase keys). Every field has a
    default, so ``PolicyConfig()`` is the policy the host falls back to when
    no document can be loaded.
    """

    daily_write_limit: int = Field(default=50, ge=0, alias="dailyWriteLimit")
    past_event_protection_days: int = Field(default=7, ge=0, alias="pastEventProtectionDays")
    protected_calendars: frozenset[str] = Field(default=frozenset(), alias="protectedCalendars")
    protected_task_lists: frozenset[str] = Field(default=frozenset(), alias="protectedTaskLists")
    allow_recurring_series_delete: bool = Field(
        default=False, alias="allowRecurringSeriesDelete"
    )
    mail: MailPolicy | None = None

    @property
    def mail_policy(self) -> MailPolicy:
        """The mail sub-policy, or the defaults when the document has none."""
        return self.mail if self.mail is not None else MailPolicy()


def load_policy(path: Path | str) -> PolicyConfig:
    """Read and validate a policy document.

    Raises ``FileNotFoundError`` when the file is missing, ``ValueError``
    (``json.JSONDecodeError`` or ``pydantic.ValidationError``) when it is
    unparseable. The caller decides whether that is fatal.
    """
    raw = Path(path).read_text(encoding="utf-8")
    return PolicyConfig.model_validate(json.loads(raw))
