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
    """CodeCache chat configuration. All values come from environment variables."""

    # Completion provider
    completion_provider: str = Field(default="gemini")
    max_output_tokens: int = Field(default=4096)
    model_timeout_seconds: float = Field(default=60.0)

    # Gemini
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_api_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")

    # Anthropic
    anthropic_api_key: str = Field(default="")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")

    # Database
    database_path: Path = Field(default=Path("data/codecache.db"))

    # Retrieval context
    snippet_context_limit: int = Field(default=5)
    assistant_name: str = Field(default="CodeCache AI")

    # HTTP
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=8080)

    # Identity is resolved upstream and forwarded in this header
    user_id_header: str = Field(default="X-User-Id")
    allowed_user_ids: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

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

    def get_allowed_user_ids(self) -> set[str]:
        """Parse ALLOWED_USER_IDS into a set of user identifiers."""
        if not self.allowed_user_ids.strip():
            return set()
        return {uid.strip() for uid in self.allowed_user_ids.split(",") if uid.strip()}


settings = Settings()
