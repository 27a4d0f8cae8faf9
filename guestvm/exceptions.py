"""Custom exceptions for guestvm."""

from __future__ import annotations


class GuestVMError(RuntimeError):
    """Raised on unrecoverable configuration or provisioning errors."""


class ConfigurationError(GuestVMError):
    """Unsupported guest, malformed profile table or invalid request."""


class FetchError(GuestVMError):
    """Network failure or non-2xx response while fetching an artifact."""


class IntegrityError(GuestVMError):
    """Downloaded artifact does not match its pinned SHA-256 digest."""

    def __init__(self, url: str, expected: str, actual: str) -> None:
        super().__init__(f"Checksum mismatch for {url}: expected {expected}, got {actual}")
        self.url = url
        self.expected = expected
        self.actual = actual


class FilesystemConflictError(GuestVMError):
    """Target path is a file, or an existing build the user chose to keep."""


class ToolingMissingError(GuestVMError):
    """A required host tool is absent and could not be installed."""

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(f"{message} ({hint})" if hint else message)
        self.hint = hint


class InternalInvariantError(AssertionError):
    """A guest profile selected no provisioning strategy; a registry defect."""
