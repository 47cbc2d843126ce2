"""Error taxonomy shared by every storage component."""

from __future__ import annotations


class StorageError(Exception):
    """Base class for all storage errors."""


class AuthError(StorageError):
    """Raised when consent is denied or no credential can be obtained."""


class ProviderError(StorageError):
    """Raised when a remote provider returns a non-2xx response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Provider error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class NotFoundError(ProviderError):
    """Raised when a referenced object is deleted or trashed."""

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(status_code, message)


class TransferError(StorageError):
    """Raised on a network-level failure during upload or download."""
