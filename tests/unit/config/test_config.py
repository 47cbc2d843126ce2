"""Unit tests for config.py: AppConfig and load_config()."""

import os
from unittest.mock import patch

import pytest

from vault_storage.config import AppConfig, load_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# Minimal set of required environment variables for load_config()
_REQUIRED_ENV = {
    "VS_GOOGLE_CLIENT_ID": "test-client-id.apps.googleusercontent.com",
    "VS_GOOGLE_CLIENT_SECRET": "test-secret",
    "VS_GOOGLE_API_KEY": "test-api-key",
}


def _config(**overrides: object) -> AppConfig:
    return AppConfig(
        google_client_id="cid",
        google_client_secret="cs",
        google_api_key="key",
        **overrides,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# AppConfig tests
# ---------------------------------------------------------------------------


class TestAppConfig:
    def test_defaults(self) -> None:
        config = _config()
        assert config.app_folder_name == "Zoabi Nexus Vault Website"
        assert config.token_safety_margin_seconds == 60
        assert config.upload_chunk_bytes == 262144
        assert config.migration_delay_seconds == 0.3
        assert config.migration_log_limit == 200
        assert config.migration_max_attempts == 1
        assert config.migration_backoff_seconds == 0.0

    def test_defaults_can_be_overridden(self) -> None:
        config = _config(app_folder_name="Other Vault", migration_max_attempts=3)
        assert config.app_folder_name == "Other Vault"
        assert config.migration_max_attempts == 3

    def test_is_frozen(self) -> None:
        config = _config()
        with pytest.raises(AttributeError):
            config.app_folder_name = "x"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# load_config tests
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_reads_required_values_from_env(self) -> None:
        with patch.dict(os.environ, _REQUIRED_ENV, clear=True):
            config = load_config()
        assert config.google_client_id == "test-client-id.apps.googleusercontent.com"
        assert config.google_client_secret == "test-secret"
        assert config.google_api_key == "test-api-key"

    def test_uses_defaults_when_optional_values_absent(self) -> None:
        with patch.dict(os.environ, _REQUIRED_ENV, clear=True):
            config = load_config()
        assert config.app_folder_name == "Zoabi Nexus Vault Website"
        assert config.migration_delay_seconds == 0.3

    def test_reads_optional_values_from_env(self) -> None:
        env = {
            **_REQUIRED_ENV,
            "VS_APP_FOLDER_NAME": "Team Vault",
            "VS_TOKEN_SAFETY_MARGIN_SECONDS": "30",
            "VS_UPLOAD_CHUNK_BYTES": "1024",
            "VS_MIGRATION_DELAY_SECONDS": "1.5",
            "VS_MIGRATION_LOG_LIMIT": "50",
            "VS_MIGRATION_MAX_ATTEMPTS": "4",
            "VS_MIGRATION_BACKOFF_SECONDS": "2",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config()
        assert config.app_folder_name == "Team Vault"
        assert config.token_safety_margin_seconds == 30
        assert config.upload_chunk_bytes == 1024
        assert config.migration_delay_seconds == 1.5
        assert config.migration_log_limit == 50
        assert config.migration_max_attempts == 4
        assert config.migration_backoff_seconds == 2.0

    @pytest.mark.parametrize(
        "missing", ["VS_GOOGLE_CLIENT_ID", "VS_GOOGLE_CLIENT_SECRET", "VS_GOOGLE_API_KEY"]
    )
    def test_raises_key_error_when_required_value_missing(self, missing: str) -> None:
        env = {k: v for k, v in _REQUIRED_ENV.items() if k != missing}
        with patch.dict(os.environ, env, clear=True), pytest.raises(KeyError):
            load_config()
