"""Tests for application settings."""

from gsos.core.config import Settings, get_settings


class TestSettings:

    def test_defaults(self, settings):
        assert settings.audit_retention_days == 2555
        assert settings.rate_limit_login == 5
        assert settings.rate_limit_login_window_ms == 15 * 60 * 1000
        assert settings.rate_limit_api == 100
        assert settings.rate_limit_api_window_ms == 60 * 1000
        assert settings.audit_store == "memory"
        assert settings.rate_limit_backend == "memory"
        assert settings.redacted_resource_placeholder == "[REDACTED_STUDENT_RESOURCE]"
        assert settings.request_validation_enabled is True
        assert settings.max_request_size_bytes == 10 * 1024 * 1024

    def test_sync_classifications_list(self):
        settings = Settings(_env_file=None, audit_sync_classifications=" Restricted, ,confidential ")
        assert settings.audit_sync_classifications_list == ["restricted", "confidential"]

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_LOGIN", "3")
        monkeypatch.setenv("AUDIT_STORE", "database")
        settings = Settings(_env_file=None)
        assert settings.rate_limit_login == 3
        assert settings.audit_store == "database"

    def test_unknown_env_vars_ignored(self, monkeypatch):
        monkeypatch.setenv("SOMETHING_UNRELATED", "1")
        Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
