"""Logging setup for the staydesk backend.

Two of the categories below are specific to this service:

* ``log_level_gateway`` covers the REST gateway. At INFO it reports how
  many records each list call returned and every completed write; at
  WARNING it reports each candidate path that failed or answered with an
  unusable body before the next one was tried.
* ``log_level_mutations`` covers the write path. The coordinator logs one
  colored line per stage through ``MutationLogger("MutationCoordinator")`` and the
  fallback repository logs each local create, replace and delete, so a
  single write can be followed from request to stored local edit.

The remaining categories only exist to quiet third-party libraries
(SQLAlchemy, aiosqlite, httpx and uvicorn) independently of the root level.

``setup_logging()`` is called once from the FastAPI lifespan.
"""

import logging
import sys

from staydesk.config import get_settings


# Settings field -> loggers whose level it sets.

_CATEGORY_MAP: dict[str, list[str]] = {
    "log_level_sql": [
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "aiosqlite",
    ],
    "log_level_http": [
        "httpx",
        "httpcore",
    ],
    "log_level_uvicorn": [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
    ],
    "log_level_gateway": [
        "staydesk.infrastructure.gateway",
    ],
    "log_level_mutations": [
        "MutationCoordinator",
        "staydesk.application.services.mutation_coordinator",
        "staydesk.infrastructure.database.repositories.fallback_repository",
    ],
}


def setup_logging() -> None:
    """Set the root level, then override it per category from Settings."""
    settings = get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    _ensure_handler(root)

    levels = {}
    for settings_field, logger_names in _CATEGORY_MAP.items():
        levels[settings_field] = getattr(settings, settings_field, "INFO")
        for name in logger_names:
            logging.getLogger(name).setLevel(_parse_level(levels[settings_field]))

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s %s",
        settings.log_level,
        " ".join(f"{field.removeprefix('log_level_')}={level}" for field, level in levels.items()),
    )


def _ensure_handler(root: logging.Logger) -> None:
    # uvicorn installs its own handler; bare test runs and scripts do not.
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)-8s %(name)s: %(message)s"))
    root.addHandler(handler)


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    numeric = getattr(logging, raw.upper(), None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO
