"""Error taxonomy for the search core."""
from __future__ import annotations

from typing import Optional


class LocationError(RuntimeError):
    DENIED = "denied"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Location {reason}")
        self.reason = reason


class ReferenceLookupError(RuntimeError):
    """Direct lookup failed; callers fall back to universal search."""

    NOT_FOUND = "not_found"
    TRANSPORT_FAILURE = "transport_failure"

    def __init__(self, reason: str, reference_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Reference lookup {reason} for {reference_id}")
        self.reason = reason
        self.reference_id = reference_id


class SearchError(RuntimeError):
    """Universal search failed; terminal for the current query."""

    TRANSPORT_FAILURE = "transport_failure"
    SERVER_ERROR = "server_error"

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Search {reason}")
        self.reason = reason


class ClassificationDefect(ValueError):
    def __init__(self, result_id: Optional[str], result_type: object) -> None:
        super().__init__(f"Unrecognized resultType {result_type!r} on result {result_id!r}")
        self.result_id = result_id
        self.result_type = result_type
