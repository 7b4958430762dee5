"""Application settings for backend runtime and tests."""

from __future__ import annotations

from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    tierhub_app_env: str = "dev"
    tierhub_app_host: str = "127.0.0.1"
    tierhub_app_port: int = Field(default=3000, ge=1)
    tierhub_log_level: str = "INFO"

    tierhub_sqlite_path: str = "data/tierlist.db"
    tierhub_public_dir: str = "public"
    tierhub_cors_allow_origins: str = "*"

    tierhub_ws_heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    tierhub_ws_pong_timeout_seconds: float = Field(default=10.0, gt=0)
    tierhub_ws_max_missed_pongs: int = Field(default=2, ge=1)

    # Deleting a whole tierlist is a product policy, off unless explicitly enabled.
    tierhub_allow_tierlist_delete: bool = False

    @model_validator(mode="after")
    def validate_heartbeat_window(self) -> "Settings":
        """Ensure a pong can arrive before the next ping is due."""
        if self.tierhub_ws_pong_timeout_seconds >= self.tierhub_ws_heartbeat_interval_seconds:
            raise ValueError(
                "TIERHUB_WS_PONG_TIMEOUT_SECONDS must be less than "
                "TIERHUB_WS_HEARTBEAT_INTERVAL_SECONDS"
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.tierhub_cors_allow_origins.split(",") if origin.strip()]


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
