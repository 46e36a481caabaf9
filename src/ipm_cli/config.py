"""Configuration loaded from INKDROP_* environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api.inkdrop.app"


class Settings(BaseSettings):
    """CLI settings loaded from environment variables.

    Every field is read from ``INKDROP_<FIELD>``, e.g. ``INKDROP_ACCESS_KEY_ID``.
    """

    model_config = SettingsConfigDict(
        env_prefix="INKDROP_",
        case_sensitive=False,
    )

    # Credential override (both must be set to take effect)
    access_key_id: str | None = None
    secret_access_key: str | None = None

    # Passed through to the package manager backend
    api_url: str = DEFAULT_API_URL
    version: str | None = None

    # Backend reference as "module:factory"; falls back to installed entry points
    ipm_backend: str | None = None

    ipm_log_level: str = "WARNING"

    @property
    def has_credential_override(self) -> bool:
        """Check if both credential environment variables are set."""
        return bool(self.access_key_id and self.secret_access_key)


def load_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
