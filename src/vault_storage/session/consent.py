"""Interactive OAuth consent for the Drive API."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from google_auth_oauthlib.flow import InstalledAppFlow

from vault_storage.errors import AuthError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.readonly",
]
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class ConsentFlow(Protocol):
    """Blocks until the user grants or refuses access.

    Implementations return the provider's token response, which must carry
    ``access_token`` and ``expires_in`` (seconds), or raise AuthError.
    """

    def request_token(self) -> dict[str, Any]: ...


class OAuthConsentFlow:
    """Consent through the installed-app flow in the user's browser."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        scopes: list[str] | None = None,
    ) -> None:
        self._client_config = {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }
        self._scopes = scopes or DRIVE_SCOPES

    def request_token(self) -> dict[str, Any]:
        """Open the consent screen and wait for the redirect.

        Returns:
            Raw token response (``access_token``, ``expires_in``, ...).

        Raises:
            AuthError: If the user refuses consent or the exchange fails.
        """
        flow = InstalledAppFlow.from_client_config(self._client_config, scopes=self._scopes)
        try:
            flow.run_local_server(port=0, prompt="consent", open_browser=True)
        except Exception as exc:
            logger.error("[request_token] consent flow failed; error:%s", exc)
            raise AuthError(f"Google sign-in failed: {exc}") from exc
        return dict(flow.oauth2session.token)
