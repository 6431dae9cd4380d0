from __future__ import annotations

import pytest

from mcp_error_triage_server.core.errors import (
    CollaboratorUnavailable,
    TrackerError,
    TrackerErrorKind,
    ValidationError,
)
from mcp_error_triage_server.core.result import Err, Ok, unwrap_or_else


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (401, TrackerErrorKind.UNAUTHORIZED),
        (403, TrackerErrorKind.FORBIDDEN),
        (404, TrackerErrorKind.NOT_FOUND),
        (500, TrackerErrorKind.UNKNOWN),
        (None, TrackerErrorKind.UNKNOWN),
    ],
)
def test_tracker_error_kind_from_status(status, kind: TrackerErrorKind) -> None:
    assert TrackerErrorKind.from_status(status) is kind


def test_tracker_error_is_a_collaborator_failure() -> None:
    err = TrackerError(TrackerErrorKind.NOT_FOUND, "project OPS does not exist")
    assert isinstance(err, CollaboratorUnavailable)
    assert err.collaborator == "issue_tracker"
    assert err.kind is TrackerErrorKind.NOT_FOUND


def test_validation_error_is_a_value_error() -> None:
    assert issubclass(ValidationError, ValueError)


def test_unwrap_or_else() -> None:
    assert unwrap_or_else(Ok(3), lambda e: 0) == 3
    assert unwrap_or_else(Err(RuntimeError("x")), lambda e: str(e)) == "x"
