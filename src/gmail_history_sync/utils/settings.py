from typing import Literal

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..sync.models import SyncTarget


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class Settings(BaseSettings):
    GENAI_API_KEY: str
    OAUTH_CLIENT_ID: str
    OAUTH_CLIENT_SECRET: str
    GMAIL_REFRESH_TOKEN: str
    GMAIL_USER_ID: str = "me"
    CONFIG_COLLECTION: str = "function_config"
    CONFIG_DOC_ID: str = "gmail_sync"
    RESULTS_COLLECTION: str = "service_calls"
    CURSOR_BACKEND: Literal["firestore", "file"] = "firestore"
    CURSOR_PATH: str = ".last_history.json"
    GENAI_MODEL: str = "gpt-4o-mini"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def sync_target(self) -> SyncTarget:
        return SyncTarget(
            collection=self.CONFIG_COLLECTION,
            document=self.CONFIG_DOC_ID,
            user_id=self.GMAIL_USER_ID,
        )


def load_settings(**overrides) -> Settings:
    """
    Build Settings from env/.env. Missing or blank secrets are reported
    together in one ConfigError.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        missing = [
            str(e["loc"][0]) for e in exc.errors() if e.get("type") == "missing"
        ]
        if missing:
            raise ConfigError(
                "FATAL STARTUP ERROR: Missing required environment variables: "
                + ", ".join(missing)
            ) from exc
        raise ConfigError(f"FATAL STARTUP ERROR: Invalid configuration: {exc}") from exc

    blank = [
        name
        for name in ("GENAI_API_KEY", "OAUTH_CLIENT_ID", "OAUTH_CLIENT_SECRET", "GMAIL_REFRESH_TOKEN")
        if not getattr(settings, name).strip()
    ]
    if blank:
        raise ConfigError(
            "FATAL STARTUP ERROR: Missing required environment variables: "
            + ", ".join(blank)
        )
    return settings
