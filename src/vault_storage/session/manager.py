"""Credential lifecycle: interactive sign-in, expiry checks and sign-out."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from vault_storage.errors import AuthError
from vault_storage.session.consent import ConsentFlow, OAuthConsentFlow
from vault_storage.session.store import Credential

if TYPE_CHECKING:
    from vault_storage.config import AppConfig
    from vault_storage.context import StorageContext

logger = logging.getLogger(__name__)

REVOKE_URL = "https://oauth2.googleapis.com/revoke"
DEFAULT_SAFETY_MARGIN_SECONDS = 60


class SessionManager:
    """Owns the Drive credential stored in a StorageContext.

    The declared token lifetime is a ceiling, so every stored credential
    expires ``safety_margin_seconds`` before the provider says it will.
    """

    def __init__(
        self,
        context: StorageContext,
        consent_flow: ConsentFlow,
        safety_margin_seconds: int = DEFAULT_SAFETY_MARGIN_SECONDS,
    ) -> None:
        self._ctx = context
        self._consent = consent_flow
        self._safety_margin_seconds = safety_margin_seconds
        self._lock = threading.Lock()
        self._pending: Future[Credential] | None = None

    def load_token(self) -> Credential | None:
        """Return the cached credential, purging it if it has expired.

        Never touches the network.
        """
        credential = self._ctx.credentials.get()
        if credential is None:
            return None
        if credential.is_expired(self._ctx.now_ms()):
            logger.info(
                "[load_token] cached token expired; purging; expired_at:%d",
                credential.expires_at_epoch_ms,
            )
            self._ctx.credentials.clear()
            return None
        return credential

    def is_signed_in(self) -> bool:
        return self.load_token() is not None

    def sign_in(self) -> Credential:
        """Run the interactive consent flow unless a valid token is cached.

        Concurrent callers share a single pending attempt: only the first one
        opens the consent screen, the others wait for its outcome and receive
        the same credential or the same error.

        Returns:
            The stored credential.

        Raises:
            AuthError: If consent is refused or fails.
        """
        cached = self.load_token()
        if cached is not None:
            return cached

        with self._lock:
            pending = self._pending
            owner = pending is None
            if pending is None:
                # A sign-in may have finished since the unlocked check.
                cached = self.load_token()
                if cached is not None:
                    return cached
                pending = Future()
                self._pending = pending

        if not owner:
            logger.info("[sign_in] sign-in already in progress; waiting for it")
            return pending.result()

        try:
            credential = self._run_consent()
        except BaseException as exc:
            pending.set_exception(exc)
            raise
        else:
            pending.set_result(credential)
            return credential
        finally:
            with self._lock:
                self._pending = None

    def ensure_token(self) -> Credential:
        """Return a valid credential. May perform interactive auth."""
        return self.load_token() or self.sign_in()

    def sign_out(self) -> None:
        """Revoke the credential with the provider, then purge local state.

        Revocation is best-effort; the local purge always happens.
        """
        credential = self.load_token()
        if credential is not None:
            try:
                self._revoke(credential.access_token)
            except Exception:
                logger.warning("[sign_out] token revocation failed; purging anyway", exc_info=True)
        self._ctx.reset()
        logger.info("[sign_out] local session cleared")

    def _run_consent(self) -> Credential:
        try:
            token = self._consent.request_token()
        except AuthError:
            raise
        except Exception as exc:
            logger.error("[sign_in] consent flow raised; error:%s", exc)
            raise AuthError(f"Google sign-in failed: {exc}") from exc

        access_token = token.get("access_token")
        if not access_token:
            error = token.get("error", "no access_token in response")
            logger.error("[sign_in] consent returned no token; error:%s", error)
            raise AuthError(f"Google sign-in failed: {error}")

        lifetime = int(token.get("expires_in") or 0)
        if lifetime <= self._safety_margin_seconds:
            logger.error(
                "[sign_in] token lifetime too short; lifetime_s:%d;margin_s:%d",
                lifetime,
                self._safety_margin_seconds,
            )
            raise AuthError(f"Google sign-in returned a token valid for only {lifetime}s")
        expires_at = self._ctx.now_ms() + (lifetime - self._safety_margin_seconds) * 1000
        credential = Credential(access_token=str(access_token), expires_at_epoch_ms=expires_at)
        self._ctx.credentials.put(credential)
        logger.info(
            "[sign_in] stored credential; lifetime_s:%d;expires_at:%d", lifetime, expires_at
        )
        return credential

    @staticmethod
    def _revoke(access_token: str) -> None:
        body = urllib_parse.urlencode({"token": access_token}).encode("ascii")
        req = urllib_request.Request(
            REVOKE_URL,
            data=body,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            method="POST",
        )
        with urllib_request.urlopen(req) as resp:
            resp.read()


def session_manager_from_config(context: StorageContext, config: AppConfig) -> SessionManager:
    """Construct a SessionManager using the browser consent flow.

    Args:
        context: Shared storage context holding the credential slot.
        config: Application configuration instance.

    Returns:
        Configured SessionManager instance.
    """
    consent = OAuthConsentFlow(
        client_id=config.google_client_id,
        client_secret=config.google_client_secret,
    )
    return SessionManager(
        context=context,
        consent_flow=consent,
        safety_margin_seconds=config.token_safety_margin_seconds,
    )
