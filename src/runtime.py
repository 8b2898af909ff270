"""Process-wide guardrail and audit instances used by the tool handlers."""

from __future__ import annotations

import logging

from src.audit import AuditLogger, create_audit_logger
from src.config import settings
from src.guardrails import GuardrailContext, PolicyConfig, load_guardrails

logger = logging.getLogger(__name__)

_guardrails: GuardrailContext | None = None
_audit: AuditLogger | None = None


def get_guardrails() -> GuardrailContext:
    """Return the shared ``GuardrailContext``, loading the policy on first use.

    A missing or invalid policy document is logged and replaced by the
    default policy so the server still starts with conservative limits.
    """
    global _guardrails
    if _guardrails is None:
        try:
            _guardrails = load_guardrails(settings.guardrails_path)
            logger.info("Loaded guardrail policy from %s", settings.guardrails_path)
        except (OSError, ValueError):
            logger.exception(
                "Failed to load guardrail policy from %s, using defaults",
                settings.guardrails_path,
            )
            _guardrails = GuardrailContext(PolicyConfig())
    return _guardrails


def get_audit_logger() -> AuditLogger:
    """Return the shared audit logger (a no-op when no directory is configured)."""
    global _audit
    if _audit is None:
        _audit = create_audit_logger(settings.audit_log_dir)
        if settings.audit_log_dir is None:
            logger.info("GOOGLE_MCP_AUDIT_LOG_DIR is not set, audit logging disabled")
    return _audit


def _reset() -> None:
    """Drop the shared instances (for tests)."""
    global _guardrails, _audit
    _guardrails = None
    _audit = None
