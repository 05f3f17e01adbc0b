"""
Configuration Tests

Validates environment-driven settings:
1. Defaults apply when variables are unset or empty
2. SAP_TIMEOUT is given in milliseconds and stored in seconds
3. Malformed numbers and unknown run modes raise ConfigurationError
4. Live mode requires connection credentials; a missing client only warns
5. .env files are loaded without overriding the process environment
"""

import os

import pytest
from pydantic import ValidationError

from core.config import Settings, load_env_file, load_settings, validate_settings
from core.errors import ConfigurationError

LIVE_ENV = {
    "MIGRATION_MODE": "live",
    "SAP_BASE_URL": "https://sap.example.com",
    "SAP_USERNAME": "RFC_USER",
    "SAP_PASSWORD": "secret",
    "SAP_CLIENT": "100",
}


class TestLoadSettings:
    """Environment parsing."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings.migration_mode == "mock"
        assert settings.migration_batch_size == 500
        assert settings.sap_timeout == 30.0
        assert settings.sap_retries == 3
        assert settings.conn_env_prefix == "SAP_CONN_"
        assert settings.sap_base_url is None
        assert not settings.json_logs

    def test_empty_values_fall_back(self):
        settings = load_settings({"MIGRATION_BATCH_SIZE": "", "LOG_FORMAT": ""})
        assert settings.migration_batch_size == 500
        assert settings.log_format == "human"

    def test_timeout_in_milliseconds(self):
        assert load_settings({"SAP_TIMEOUT": "45000"}).sap_timeout == 45.0

    def test_overrides(self):
        settings = load_settings({"MIGRATION_MODE": "LIVE", "LOG_FORMAT": "json", "CHECKPOINT_DIR": "/tmp/cp"})
        assert settings.migration_mode == "live"
        assert settings.json_logs
        assert settings.checkpoint_dir == "/tmp/cp"

    def test_bad_integer(self):
        with pytest.raises(ConfigurationError) as exc:
            load_settings({"MIGRATION_CONCURRENCY": "five"})
        assert exc.value.details["variable"] == "MIGRATION_CONCURRENCY"
        assert exc.value.code == "ERR_CONFIG"

    def test_bad_mode(self):
        with pytest.raises(ConfigurationError):
            load_settings({"MIGRATION_MODE": "replay"})

    def test_frozen(self):
        settings = load_settings({})
        with pytest.raises(ValidationError):
            settings.migration_mode = "live"
        assert isinstance(settings, Settings)


class TestValidateSettings:
    """Run-mode checks."""

    def test_mock_needs_nothing(self):
        assert validate_settings(load_settings({})) == []

    def test_live_missing_credentials(self):
        with pytest.raises(ConfigurationError) as exc:
            validate_settings(load_settings({"SAP_BASE_URL": "https://sap.example.com"}), mode="live")
        assert exc.value.details["missing"] == ["SAP_USERNAME", "SAP_PASSWORD"]

    def test_live_complete(self):
        assert validate_settings(load_settings(LIVE_ENV)) == []

    def test_missing_client_warns(self):
        env = {k: v for k, v in LIVE_ENV.items() if k != "SAP_CLIENT"}
        warnings = validate_settings(load_settings(env))
        assert len(warnings) == 1
        assert "SAP_CLIENT" in warnings[0]

    def test_non_positive_sizes(self):
        with pytest.raises(ConfigurationError):
            validate_settings(load_settings({"MIGRATION_BATCH_SIZE": "0"}))
        with pytest.raises(ConfigurationError):
            validate_settings(load_settings({"EXTRACTION_CONCURRENCY": "-1"}))


class TestEnvFile:
    """python-dotenv loading."""

    def test_missing_file(self, tmp_path):
        assert load_env_file(tmp_path / "absent.env") is False

    def test_existing_variables_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ERPF_TEST_KEEP", "process")
        monkeypatch.delenv("ERPF_TEST_NEW", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("ERPF_TEST_KEEP=file\nERPF_TEST_NEW=file\n")

        try:
            assert load_env_file(env_file)
            assert os.environ["ERPF_TEST_KEEP"] == "process"
            assert os.environ["ERPF_TEST_NEW"] == "file"
        finally:
            os.environ.pop("ERPF_TEST_NEW", None)

    def test_settings_from_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APP_NAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("APP_NAME=forensics-test\n")

        try:
            assert load_settings(env_file=env_file).app_name == "forensics-test"
        finally:
            os.environ.pop("APP_NAME", None)
