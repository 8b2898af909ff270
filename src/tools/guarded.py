"""Handler boundary: turn failures into structured tool errors.

Every Google tool handler follows the same sequence::

    guardrail checks -> remote call -> counter commit -> audit entry

A rejected check or a failed remote call ends the sequence and comes back
as a ``ToolResult`` error; the audit write can never fail the operation.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from googleapiclient.errors import HttpError

from src.errors import GuardrailError, OperationError, api_error
from src.tools.base import ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.audit import AuditEntry, AuditLogger

logger = logging.getLogger(__name__)


def guarded(
    fn: Callable[..., Awaitable[ToolResult]],
) -> Callable[..., Awaitable[ToolResult]]:
    """Convert guardrail, validation and Google API errors into ``ToolResult`` errors.

    Anything else propagates to ``ToolRegistry.execute``, which logs it and
    reports a generic API error.
    """

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs) -> ToolResult:  # noqa: ANN002, ANN003
        try:
            return await fn(*args, **kwargs)
        except GuardrailError as exc:
            logger.info("Guardrail blocked '%s': %s %s", fn.__name__, exc.code, exc.message)
            return ToolResult(error=exc.to_structured())
        except OperationError as exc:
            logger.warning("'%s' failed: %s %s", fn.__name__, exc.code, exc.message)
            return ToolResult(error=exc.to_structured())
        except HttpError as exc:
            status = exc.resp.status
            logger.warning("Google API error in '%s' (HTTP %s): %s", fn.__name__, status, exc.reason)
            return ToolResult(error=api_error(status, exc.reason or f"HTTP {status}"))

    return wrapper


async def record_audit(audit: AuditLogger, entry: AuditEntry) -> None:
    """Write *entry*, logging and suppressing any failure."""
    try:
        await audit.log(entry)
    except Exception:
        logger.exception(
            "Failed to write audit entry for %s %s '%s'",
            entry.service,
            entry.operation,
            entry.title,
        )
