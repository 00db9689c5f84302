import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

from staydesk.domain.entities.resource_kind import ResourceKind

_config_logger = logging.getLogger(__name__)

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "StayDesk Console API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    cors_origins: list[str] = ["http://localhost:5173"]

    # Upstream booking API
    api_base_url: str = "https://airbnbnew.cybersoft.edu.vn/api"
    service_token: str = ""
    service_token_header: str = "TokenCybersoft"
    access_token_header: str = "token"
    http_timeout: float = 30.0

    # Local persistence (fallback records + login state)
    database_url: str = "sqlite:///data/staydesk.db"

    # Fallback behaviour
    fallback_enabled: bool = True
    allow_local_overrides: bool = False
    local_id_floor: int = 999000

    # Collection cache staleness, in seconds
    stale_time_user: float = 30.0
    stale_time_room: float = 120.0
    stale_time_location: float = 60.0
    stale_time_booking: float = 0.0

    # Page size used to pull a whole collection in one request
    list_page_size: int = 10000
    default_page_size: int = 10

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine — SQL queries
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_gateway: str = "INFO"          # upstream resource gateways
    log_level_mutations: str = "INFO"        # MutationCoordinator pipeline

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        if not self.service_token:
            _config_logger.warning(
                "SERVICE_TOKEN is not configured; upstream calls will likely be rejected"
            )

    def stale_time_for(self, kind: ResourceKind) -> float:
        """Staleness threshold (seconds) for a resource kind's snapshots."""
        return float(getattr(self, f"stale_time_{kind.value}"))


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
