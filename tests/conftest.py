"""Shared test fixtures."""

import pytest

from src import runtime
from src.audit import FileAuditLogger, NoOpAuditLogger
from src.guardrails import GuardrailContext, PolicyConfig
from src.integrations.fake_google import FakeGoogleAuth
from src.integrations.google_auth import GoogleAuthManager


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Start every test with fresh guardrails, audit logger and auth."""
    runtime._reset()
    GoogleAuthManager._reset()
    FakeGoogleAuth._reset()
    yield
    runtime._reset()
    GoogleAuthManager._reset()
    FakeGoogleAuth._reset()


@pytest.fixture
def use_policy():
    """Install a GuardrailContext built from the given policy fields."""

    def _install(**fields) -> GuardrailContext:
        ctx = GuardrailContext(PolicyConfig(**fields))
        runtime._guardrails = ctx
        return ctx

    return _install


@pytest.fixture
def guardrails(use_policy) -> GuardrailContext:
    """Default policy installed as the shared context."""
    return use_policy()


@pytest.fixture
def audit_dir(tmp_path):
    """Route audit entries to a temporary directory."""
    path = tmp_path / "audit"
    runtime._audit = FileAuditLogger(path)
    return path


@pytest.fixture
def no_audit():
    runtime._audit = NoOpAuditLogger()


@pytest.fixture
def fake_google(monkeypatch) -> FakeGoogleAuth:
    """Serve the in-memory Google APIs to every tool handler."""
    monkeypatch.setattr("src.config.settings.test_mode", True)
    return FakeGoogleAuth.get()
