"""
Error taxonomy for the live sheet catalog.

Fetch-level errors (SourceError and subclasses) say whether they are
transient so callers can decide to keep serving a stale snapshot.
Parse-level errors never leave the row parser.
"""
from typing import Iterable, Optional


class LiveSyncError(RuntimeError):
    """Base class for every error raised by livesync."""


class NotConfigured(LiveSyncError):
    """Required configuration is absent or still holds a placeholder value."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing or invalid configuration: " + ", ".join(self.missing)
        )


class SourceError(LiveSyncError):
    """The spreadsheet data source failed."""

    transient = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SourceUnavailable(SourceError):
    """Network timeout, 5xx, rate-limit or other non-2xx answer."""

    transient = True


class SourceAuthError(SourceError):
    """Credentials were rejected or could not be loaded."""

    transient = False


class SheetNotFound(SourceError):
    """The spreadsheet, sheet tab or range does not exist."""

    transient = False


class ParseRowError(LiveSyncError):
    """A single sheet row could not be turned into a record."""

    def __init__(self, row_number: int, reason: str):
        self.row_number = row_number
        self.reason = reason
        super().__init__(f"row {row_number}: {reason}")


class RefreshFailed(LiveSyncError):
    """A cache refresh could not complete. The previous snapshot is kept."""

    def __init__(self, cause: SourceError, has_stale: bool = False):
        self.cause = cause
        self.has_stale = has_stale
        super().__init__(f"Catalog refresh failed: {cause}")

    @property
    def transient(self) -> bool:
        return getattr(self.cause, "transient", True)


class NotFound(LiveSyncError):
    """No product or variant matched the lookup. An expected outcome."""
