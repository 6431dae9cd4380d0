"""Error taxonomy for the triage pipeline."""

from __future__ import annotations

from enum import Enum


class TriageError(Exception):
    """Base class for triage failures."""


class MalformedPayload(TriageError):
    """A raw event could not be decoded into the expected envelope."""

    def __init__(self, message: str, *, stage: str = "envelope") -> None:
        super().__init__(message)
        self.stage = stage  # "envelope" | "raw" | "content"


class CollaboratorUnavailable(TriageError):
    """An external system failed (network, auth, timeout)."""

    def __init__(self, collaborator: str, message: str) -> None:
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator


class ValidationError(TriageError, ValueError):
    """Batch or configuration input is invalid; raised before any I/O."""


class TicketCreationFailed(TriageError):
    """The issue tracker refused or failed to create a ticket."""


class TrackerErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    @classmethod
    def from_status(cls, status: int | None) -> TrackerErrorKind:
        """Map an HTTP status from a tracker API response.

        For ``IssueTracker`` implementations to use when raising ``TrackerError``;
        no tracker client ships in this package.
        """
        return {
            401: cls.UNAUTHORIZED,
            403: cls.FORBIDDEN,
            404: cls.NOT_FOUND,
        }.get(status or 0, cls.UNKNOWN)


class TrackerError(CollaboratorUnavailable):
    """Issue-tracker failure classified by kind."""

    def __init__(self, kind: TrackerErrorKind, message: str) -> None:
        super().__init__("issue_tracker", f"{kind.value}: {message}")
        self.kind = kind
