"""Tests for settings"""

import pytest
from pydantic import ValidationError

from dataroom_access.core.config import Settings


class TestSettings:
    """Test settings defaults and validation"""

    def test_defaults(self):
        settings = Settings()
        assert settings.quiescence_seconds == 2.0
        assert settings.flush_on_teardown is True

    def test_production_forces_json_logs(self):
        settings = Settings(environment="production", log_format="console")
        assert settings.log_format == "json"
        assert settings.is_production

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("DATAROOM_ACCESS_QUIESCENCE_SECONDS", "0.5")
        monkeypatch.setenv("DATAROOM_ACCESS_TEAM_ID", "team-7")

        settings = Settings()
        assert settings.quiescence_seconds == 0.5
        assert settings.team_id == "team-7"

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(quiescence_seconds=0)
