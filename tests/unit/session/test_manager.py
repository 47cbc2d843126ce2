"""Unit tests for session/manager.py: credential lifecycle."""

import threading
from typing import Any
from unittest.mock import MagicMock, patch
from urllib.error import URLError

import pytest

from vault_storage.context import StorageContext
from vault_storage.errors import AuthError
from vault_storage.session.manager import REVOKE_URL, SessionManager
from vault_storage.session.store import Credential

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self, now_ms: int = 1_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class _FakeConsent:
    def __init__(self, token: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.token = token if token is not None else {"access_token": "tok-1", "expires_in": 3600}
        self.error = error
        self.calls = 0

    def request_token(self) -> dict[str, Any]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


def _make_manager(
    consent: _FakeConsent | None = None,
    now_ms: int = 1_000_000,
) -> tuple[SessionManager, StorageContext, _FakeConsent, _Clock]:
    clock = _Clock(now_ms)
    context = StorageContext(clock=clock)
    consent = consent or _FakeConsent()
    manager = SessionManager(context=context, consent_flow=consent, safety_margin_seconds=60)
    return manager, context, consent, clock


def _mock_response() -> MagicMock:
    mock_response = MagicMock()
    mock_response.read.return_value = b""
    mock_response.__enter__ = lambda s: s
    mock_response.__exit__ = MagicMock(return_value=False)
    return mock_response


# ---------------------------------------------------------------------------
# sign_in tests
# ---------------------------------------------------------------------------


class TestSignIn:
    def test_stores_credential_with_safety_margin(self) -> None:
        manager, context, _, _ = _make_manager(now_ms=1_000_000)

        credential = manager.sign_in()

        assert credential.access_token == "tok-1"
        assert credential.expires_at_epoch_ms == 1_000_000 + (3600 - 60) * 1000
        assert context.credentials.get() == credential

    def test_returns_cached_credential_without_consent(self) -> None:
        manager, context, consent, _ = _make_manager()
        cached = Credential(access_token="cached", expires_at_epoch_ms=5_000_000)
        context.credentials.put(cached)

        assert manager.sign_in() == cached
        assert consent.calls == 0

    def test_raises_auth_error_and_stores_nothing_on_refusal(self) -> None:
        manager, context, _, _ = _make_manager(_FakeConsent(error=AuthError("access_denied")))

        with pytest.raises(AuthError, match="access_denied"):
            manager.sign_in()
        assert context.credentials.get() is None

    def test_wraps_unexpected_consent_error(self) -> None:
        manager, context, _, _ = _make_manager(_FakeConsent(error=RuntimeError("boom")))

        with pytest.raises(AuthError, match="boom"):
            manager.sign_in()
        assert context.credentials.get() is None

    def test_raises_auth_error_when_response_has_no_token(self) -> None:
        consent = _FakeConsent(token={"error": "invalid_grant"})
        manager, context, _, _ = _make_manager(consent)

        with pytest.raises(AuthError, match="invalid_grant"):
            manager.sign_in()
        assert context.credentials.get() is None

    def test_concurrent_callers_share_one_consent(self) -> None:
        entered = threading.Event()
        release = threading.Event()

        class _BlockingConsent(_FakeConsent):
            def request_token(self) -> dict[str, Any]:
                self.calls += 1
                entered.set()
                release.wait(timeout=5)
                return self.token

        consent = _BlockingConsent()
        manager, _, _, _ = _make_manager(consent)
        results: list[Credential] = []

        first = threading.Thread(target=lambda: results.append(manager.sign_in()))
        first.start()
        assert entered.wait(timeout=5)
        second = threading.Thread(target=lambda: results.append(manager.sign_in()))
        second.start()
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert consent.calls == 1
        assert len(results) == 2
        assert results[0] == results[1]

    def test_late_caller_reuses_credential_stored_while_it_waited(self) -> None:
        manager, _, consent, _ = _make_manager()
        at_lock = threading.Event()
        open_lock = threading.Event()
        inner_lock = manager._lock

        class _GatedLock:
            """Holds the "late" thread after its unlocked token check."""

            def __enter__(self) -> bool:
                if threading.current_thread().name == "late":
                    at_lock.set()
                    open_lock.wait(timeout=5)
                return inner_lock.__enter__()

            def __exit__(self, *exc: object) -> None:
                inner_lock.__exit__(*exc)  # type: ignore[arg-type]

        manager._lock = _GatedLock()  # type: ignore[assignment]
        results: list[Credential] = []
        late = threading.Thread(target=lambda: results.append(manager.sign_in()), name="late")
        late.start()
        assert at_lock.wait(timeout=5)

        first = manager.sign_in()
        open_lock.set()
        late.join(timeout=5)

        assert consent.calls == 1
        assert results == [first]

    def test_rejects_token_shorter_than_safety_margin(self) -> None:
        consent = _FakeConsent(token={"access_token": "tok-1", "expires_in": 45})
        manager, context, _, _ = _make_manager(consent)

        with pytest.raises(AuthError, match="45s"):
            manager.sign_in()
        assert context.credentials.get() is None

    def test_rejects_token_without_lifetime(self) -> None:
        manager, context, _, _ = _make_manager(_FakeConsent(token={"access_token": "tok-1"}))

        with pytest.raises(AuthError):
            manager.sign_in()
        assert context.credentials.get() is None


# ---------------------------------------------------------------------------
# load_token / ensure_token tests
# ---------------------------------------------------------------------------


class TestLoadToken:
    def test_returns_none_when_nothing_cached(self) -> None:
        manager, _, _, _ = _make_manager()
        assert manager.load_token() is None
        assert manager.is_signed_in() is False

    def test_returns_valid_credential(self) -> None:
        manager, context, _, _ = _make_manager(now_ms=1_000)
        credential = Credential(access_token="t", expires_at_epoch_ms=1_000)
        context.credentials.put(credential)

        assert manager.load_token() == credential
        assert manager.is_signed_in() is True

    def test_purges_expired_credential(self) -> None:
        manager, context, _, _ = _make_manager(now_ms=2_000)
        context.credentials.put(Credential(access_token="old", expires_at_epoch_ms=1_999))

        assert manager.load_token() is None
        assert context.credentials.get() is None

    def test_expired_token_triggers_exactly_one_sign_in(self) -> None:
        manager, context, consent, _ = _make_manager(now_ms=2_000)
        context.credentials.put(Credential(access_token="old", expires_at_epoch_ms=1_000))

        first = manager.ensure_token()
        second = manager.ensure_token()

        assert consent.calls == 1
        assert first.access_token == "tok-1"
        assert second == first

    def test_token_expires_as_clock_advances(self) -> None:
        manager, _, consent, clock = _make_manager(now_ms=0)
        credential = manager.sign_in()

        clock.now_ms = credential.expires_at_epoch_ms + 1
        assert manager.load_token() is None

        manager.ensure_token()
        assert consent.calls == 2


# ---------------------------------------------------------------------------
# sign_out tests
# ---------------------------------------------------------------------------


class TestSignOut:
    def test_revokes_and_purges(self) -> None:
        manager, context, _, _ = _make_manager()
        manager.sign_in()
        context.containers[("Vault", None)] = "folder-1"

        with patch("vault_storage.session.manager.urllib_request.urlopen") as mock_urlopen:
            mock_urlopen.return_value = _mock_response()
            manager.sign_out()

        req = mock_urlopen.call_args[0][0]
        assert req.full_url == REVOKE_URL
        assert req.data == b"token=tok-1"
        assert context.credentials.get() is None
        assert context.containers == {}

    def test_purges_even_when_revocation_fails(self) -> None:
        manager, context, _, _ = _make_manager()
        manager.sign_in()

        with patch(
            "vault_storage.session.manager.urllib_request.urlopen",
            side_effect=URLError("offline"),
        ):
            manager.sign_out()

        assert context.credentials.get() is None

    def test_skips_revocation_without_credential(self) -> None:
        manager, _, _, _ = _make_manager()

        with patch("vault_storage.session.manager.urllib_request.urlopen") as mock_urlopen:
            manager.sign_out()

        mock_urlopen.assert_not_called()
