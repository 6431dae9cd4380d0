from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

import pytest

from mcp_error_triage_server.core.models import Commit

DOTNET_EXCEPTION = "\n".join(
    [
        "System.InvalidOperationException (0x80004005): 'Sequence contains no elements'",
        "   at System.Linq.ThrowHelper.ThrowNoElementsException()",
        "   at Acme.Users.UserService.<GetUserAsync>d__4.MoveNext() in C:\\src\\Acme.Users\\UserService.cs:line 42",
        "   at Acme.Users.UsersController.Get(Int32 id) in /app/src/UsersController.cs:line 17",
        "   at Acme.Users.UserApiClient.Fetch(String path)",
        "   at Acme.Internal.Helpers.Format(String s)",
    ]
)


@pytest.fixture
def dotnet_exception() -> str:
    return DOTNET_EXCEPTION


@pytest.fixture
def splunk_event() -> Callable[..., dict[str, Any]]:
    """Build a Splunk-style record whose _raw holds a structured log event."""

    def _build(
        exception_text: str = DOTNET_EXCEPTION,
        *,
        time: str = "2025-06-01T10:00:00.000+00:00",
        application: str = "users-api",
        environment: str = "prod",
        template: str = "[UserService] Failed to load user {UserId}",
        source_context: str = "Acme.Users.UserService",
    ) -> dict[str, Any]:
        inner = {
            "@t": time,
            "@mt": template,
            "@x": exception_text,
            "SourceContext": source_context,
        }
        return {
            "_time": time,
            "Application": application,
            "Environment": environment,
            "_raw": json.dumps(inner),
        }

    return _build


@pytest.fixture
def make_commit() -> Callable[..., Commit]:
    def _make(
        hash: str,
        message: str,
        files: tuple[str, ...] = (),
        *,
        date: datetime | None = None,
        author: str = "dev@example.com",
    ) -> Commit:
        return Commit(hash=hash, message=message, author=author, date=date, changed_files=files)

    return _make
