"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Server configuration. Every value comes from a ``GOOGLE_MCP_*`` variable."""

    # Timezone used when building event start/end times and listing days
    timezone: str = Field(default="UTC")

    # Google OAuth client secrets (used only by scripts/google_auth.py)
    credentials_path: Path = Field(default=Path("credentials.json"))

    # Authorized-user token written by scripts/google_auth.py
    token_path: Path = Field(default=Path("auth_tokens/google_auth_token.json"))

    # Audit trail; unset disables audit logging
    audit_log_dir: Path | None = Field(default=None)

    # Guardrail policy document
    guardrails_path: Path = Field(default=Path("guardrails.json"))

    # Serve in-memory fake Google APIs instead of the real ones
    test_mode: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_MCP_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
