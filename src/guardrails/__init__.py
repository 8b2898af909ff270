"""Policy gate for mutating Google operations."""

from src.guardrails.context import GuardrailContext, load_guardrails
from src.guardrails.policy import MailPolicy, PolicyConfig, load_policy

__all__ = [
    "GuardrailContext",
    "MailPolicy",
    "PolicyConfig",
    "load_guardrails",
    "load_policy",
]
