"""Google OAuth2 credentials and API service builders."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from src.config import settings
from src.errors import AuthMissingError

if TYPE_CHECKING:
    from src.integrations.fake_google import FakeGoogleAuth

logger = logging.getLogger(__name__)


class GoogleAuthManager:
    """Authorized-user credentials and API service builder.

    Singleton accessed via ``GoogleAuthManager.get()``. Pass an explicit
    *token_path* for test isolation.
    """

    _instance: GoogleAuthManager | None = None

    SCOPES = [
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/tasks",
        "https://www.googleapis.com/auth/gmail.modify",
    ]

    def __init__(self, token_path: Path | None = None) -> None:
        self._token_path = token_path or settings.token_path
        self._credentials: Credentials | None = None

    @classmethod
    def get(cls) -> GoogleAuthManager:
        """Return the shared manager, creating it lazily."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Clear the singleton (for tests)."""
        cls._instance = None

    @property
    def enabled(self) -> bool:
        """True if the token file exists on disk."""
        return self._token_path.exists()

    # -- credential management ------------------------------------------------

    def _load_credentials(self) -> Credentials:
        """Load credentials from the token file, refreshing if expired."""
        if not self._token_path.exists():
            msg = (
                f"Google token file not found at {self._token_path}. "
                "Run `python scripts/google_auth.py` to authenticate."
            )
            raise AuthMissingError(msg)

        creds = Credentials.from_authorized_user_file(str(self._token_path), self.SCOPES)

        if creds.expired and creds.refresh_token:
            logger.info("Refreshing expired Google credentials")
            creds.refresh(Request())
            self._token_path.write_text(creds.to_json(), encoding="utf-8")
            logger.info("Google credentials refreshed and saved to %s", self._token_path)

        return creds

    def _get_credentials(self) -> Credentials:
        """Return cached credentials, loading/refreshing as needed."""
        if self._credentials is None or (
            self._credentials.expired and self._credentials.refresh_token
        ):
            self._credentials = self._load_credentials()
        return self._credentials

    # -- service builders -----------------------------------------------------

    def calendar(self):  # noqa: ANN201
        """Build a Calendar API service."""
        return build("calendar", "v3", credentials=self._get_credentials())

    def tasks(self):  # noqa: ANN201
        """Build a Tasks API service."""
        return build("tasks", "v1", credentials=self._get_credentials())

    def gmail(self):  # noqa: ANN201
        """Build a Gmail API service."""
        return build("gmail", "v1", credentials=self._get_credentials())


def get_auth() -> GoogleAuthManager | FakeGoogleAuth:
    """Service source for the tool handlers: real Google, or the fake in test mode."""
    if settings.test_mode:
        from src.integrations.fake_google import FakeGoogleAuth

        return FakeGoogleAuth.get()
    return GoogleAuthManager.get()
