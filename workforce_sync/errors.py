"""Exception taxonomy for sync runs.

Fetch and parse errors abort a whole run and end up on the Import Log as
``failed``. Per-record problems never raise out of the upsert pipelines.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for run-level sync failures."""


class FetchError(SyncError):
    """Raised when a source payload could not be retrieved."""


class SourceNotFound(FetchError):
    """Local source file does not exist."""


class FetchTimeout(FetchError):
    def __init__(self, timeout: float):
        super().__init__('Request timed out')
        self.timeout = timeout


class TransportError(FetchError):
    """Connection-level failure (refused, DNS, reset)."""


class Non2xxStatus(FetchError):
    def __init__(self, status_code: int, reason: str = ''):
        message = f'HTTP {status_code}: {reason}' if reason else f'HTTP {status_code}'
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class MalformedPayload(SyncError):
    """Payload is not valid JSON or CSV."""


class StoreUnavailable(SyncError):
    """Database stayed unreachable after all retry attempts."""


class SourceConfigError(ValueError):
    """Invalid data source definition."""
