"""Append-only audit trail of completed mutations.

One JSON file per calendar month (``operations_YYYY-MM.json``) holding
``{"month": ..., "entries": [...]}``. The trail is advisory, not a ledger of
record: unreadable month files are replaced rather than repaired, and
concurrent writers to the same month race with last-write-wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

AUDIT_SOURCE = "mcp"

Operation = Literal["create", "update", "delete", "complete"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class AuditEntry:
    """Record of one mutation, built right after the remote call succeeds.

    Attributes:
        operation: ``create``, ``update``, ``delete`` or ``complete``.
        service: Resource family acted on (``calendar``, ``tasks``, ``gmail``).
        title: Human-readable subject of the change.
        remote_id: Identifier returned by the Google API.
        changes: Field name → new value, only for partial updates.
        timestamp: ISO 8601 instant; decides which month file is written.
        source: Tag identifying the calling system.
    """

    operation: Operation
    service: str
    title: str
    remote_id: str
    changes: dict[str, Any] | None = None
    timestamp: str = field(default_factory=_now_iso)
    source: str = AUDIT_SOURCE

    @property
    def month(self) -> str:
        return self.timestamp[:7]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "operation": self.operation,
            "service": self.service,
            "title": self.title,
            "remoteId": self.remote_id,
        }
        if self.changes is not None:
            data["changes"] = self.changes
        data["timestamp"] = self.timestamp
        data["source"] = self.source
        return data


@runtime_checkable
class AuditLogger(Protocol):
    """Protocol that every audit sink must satisfy."""

    async def log(self, entry: AuditEntry) -> None:
        """Persist *entry*."""
        ...


class FileAuditLogger:
    """Writes entries to monthly JSON files under *directory*.

    File I/O is synchronous: each write is a small read-merge-rewrite of one
    local file, and running it inline keeps every ``log`` call atomic with
    respect to other coroutines on the loop.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = directory

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, month: str) -> Path:
        return self._dir / f"operations_{month}.json"

    async def log(self, entry: AuditEntry) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        month = entry.month
        path = self.path_for(month)

        entries = self._read_entries(path)
        entries.append(entry.to_dict())
        path.write_text(
            json.dumps({"month": month, "entries": entries}, indent=2),
            encoding="utf-8",
        )

    @staticmethod
    def _read_entries(path: Path) -> list[dict[str, Any]]:
        """Existing entries for a month, or ``[]`` if the file is missing or unusable."""
        try:
            existing = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError):
            logger.warning("Audit file %s is unreadable, starting it over", path)
            return []

        if not isinstance(existing, dict) or not isinstance(existing.get("entries"), list):
            logger.warning("Audit file %s has an unexpected shape, starting it over", path)
            return []
        return existing["entries"]


class NoOpAuditLogger:
    """Used when no audit directory is configured."""

    async def log(self, entry: AuditEntry) -> None:
        return None


def create_audit_logger(directory: Path | None) -> AuditLogger:
    """File-backed logger for *directory*, or a no-op when it is ``None``."""
    if directory is None:
        return NoOpAuditLogger()
    return FileAuditLogger(directory)
