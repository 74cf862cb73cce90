"""Failure taxonomy for a scan.

Connectors raise these; each is recovered at the smallest enclosing scope
(a catalog page, one orderbook side, one pair, one upsert). A scan that finds
no matching pairs is not an error and has no exception type.
"""

from __future__ import annotations

from typing import Optional


class ArbScanError(Exception):
    """Base class for every error raised inside the scanner."""


class UpstreamUnavailable(ArbScanError):
    """Non-success HTTP status, timeout or transport failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(ArbScanError):
    """Upstream body could not be decoded or had an unexpected shape."""


class ParseError(MalformedResponse):
    """A single upstream record could not be turned into a model."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


class StaleData(ArbScanError):
    """An orderbook snapshot is older than the staleness window."""

    def __init__(self, age_seconds: float, threshold_seconds: float):
        super().__init__(f"snapshot age {age_seconds:.0f}s exceeds {threshold_seconds:.0f}s")
        self.age_seconds = age_seconds
        self.threshold_seconds = threshold_seconds


class PersistenceFailure(ArbScanError):
    """Writing an opportunity to the external store failed."""
