"""Unit tests for application settings configuration."""

from pathlib import Path

import pytest

from staydesk.config import Settings
from staydesk.domain.entities import ResourceKind


def test_settings_uses_backend_env_file_independent_of_cwd():
    """Settings should always include backend/.env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_backend_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_backend_env in normalized
    assert str(Path(".env")) in normalized


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (ResourceKind.USER, 30.0),
        (ResourceKind.ROOM, 120.0),
        (ResourceKind.LOCATION, 60.0),
        (ResourceKind.BOOKING, 0.0),
    ],
)
def test_default_stale_times(kind, expected):
    settings = Settings(_env_file=None, service_token="test-token")

    assert settings.stale_time_for(kind) == expected


def test_stale_time_is_read_from_environment(monkeypatch):
    monkeypatch.setenv("STALE_TIME_ROOM", "5")

    settings = Settings(_env_file=None, service_token="test-token")

    assert settings.stale_time_for(ResourceKind.ROOM) == 5.0
