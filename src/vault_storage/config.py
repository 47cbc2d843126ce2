"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Tuning constants
    have sensible defaults but can be overridden via environment variables.
    """

    # Required, no defaults
    google_client_id: str
    google_client_secret: str
    google_api_key: str

    # Tuning constants
    app_folder_name: str = "Zoabi Nexus Vault Website"
    token_safety_margin_seconds: int = 60
    upload_chunk_bytes: int = 256 * 1024
    migration_delay_seconds: float = 0.3
    migration_log_limit: int = 200
    migration_max_attempts: int = 1
    migration_backoff_seconds: float = 0.0


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Required environment variables:
        VS_GOOGLE_CLIENT_ID: OAuth client ID of the installed application.
        VS_GOOGLE_CLIENT_SECRET: OAuth client secret of the installed application.
        VS_GOOGLE_API_KEY: Browser API key used as the Picker developer key.

    Optional environment variables (with defaults):
        VS_APP_FOLDER_NAME: Name of the app-owned root folder in Drive.
        VS_TOKEN_SAFETY_MARGIN_SECONDS: Seconds cut from the token lifetime (default: 60).
        VS_UPLOAD_CHUNK_BYTES: Upload body slice size (default: 262144).
        VS_MIGRATION_DELAY_SECONDS: Fixed pause between migrated items (default: 0.3).
        VS_MIGRATION_LOG_LIMIT: Number of log entries kept in a snapshot (default: 200).
        VS_MIGRATION_MAX_ATTEMPTS: Attempts per item, 1 disables retry (default: 1).
        VS_MIGRATION_BACKOFF_SECONDS: Pause between attempts of one item (default: 0).

    Returns:
        Configured AppConfig instance.
    """
    return AppConfig(
        google_client_id=os.environ["VS_GOOGLE_CLIENT_ID"],
        google_client_secret=os.environ["VS_GOOGLE_CLIENT_SECRET"],
        google_api_key=os.environ["VS_GOOGLE_API_KEY"],
        app_folder_name=os.environ.get("VS_APP_FOLDER_NAME", "Zoabi Nexus Vault Website"),
        token_safety_margin_seconds=int(os.environ.get("VS_TOKEN_SAFETY_MARGIN_SECONDS", "60")),
        upload_chunk_bytes=int(os.environ.get("VS_UPLOAD_CHUNK_BYTES", "262144")),
        migration_delay_seconds=float(os.environ.get("VS_MIGRATION_DELAY_SECONDS", "0.3")),
        migration_log_limit=int(os.environ.get("VS_MIGRATION_LOG_LIMIT", "200")),
        migration_max_attempts=int(os.environ.get("VS_MIGRATION_MAX_ATTEMPTS", "1")),
        migration_backoff_seconds=float(os.environ.get("VS_MIGRATION_BACKOFF_SECONDS", "0")),
    )
