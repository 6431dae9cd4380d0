from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from mcp_error_triage_server.core.models import Commit
from mcp_error_triage_server.tools.triage import (
    error_signature_impl,
    extract_error_keywords_impl,
    parse_error_event_impl,
    triage_error_impl,
)

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=UTC)


class StubSourceControl:
    def __init__(self, commits: list[Commit]) -> None:
        self.commits = commits

    async def commits_since(self, repo, since):
        return self.commits

    async def pull_request_for(self, repo, commit_hash):
        return None


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("ERROR_TRIAGE_REPOSITORY", "ERROR_TRIAGE_LOOKBACK_DAYS", "ERROR_TRIAGE_MAX_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.asyncio
async def test_triage_error_impl_returns_ticket_payload_without_creating_it() -> None:
    source = StubSourceControl(
        [
            Commit(
                hash="aaaaaaa1111111",
                message="Fix null check in getUserById",
                author="dev@example.com",
                date=datetime(2025, 6, 10, 8, 0, tzinfo=UTC),
                changed_files=("src/UserService.cs",),
            )
        ]
    )

    out = await triage_error_impl(
        error_message="NullPointerException in UserService.getUserById() at line 45",
        service_name="users-api",
        environment="prod",
        repository="acme/users",
        source_control=source,
        now=NOW,
    )

    assert out["totalGroups"] == 1
    assert out["processed"] == 1
    group = out["groups"][0]
    assert group["status"] == "analyzed"
    assert "ticketKey" not in group
    triage = group["triage"]
    assert triage["ticket"]["summary"].startswith("[Auto-Triage] users-api (prod): NullPointerException")
    suspect = triage["suspectedCommits"][0]
    assert suspect["commit"]["hash"] == "aaaaaaa1111111"
    assert suspect["rollbackRisk"] == "MEDIUM"
    assert "recent_timing" in suspect["keyFactors"]


@pytest.mark.asyncio
async def test_triage_error_impl_groups_events() -> None:
    events = [
        {"_time": "2025-06-10T10:00:00Z", "message": "Order 1234567 not found", "Application": "orders"},
        {"_time": "2025-06-10T10:05:00Z", "message": "Order 7654321 not found", "Application": "orders"},
        {"_time": "2025-06-10T10:06:00Z", "message": "Disk full", "Application": "orders"},
    ]

    out = await triage_error_impl(events=events, now=NOW)

    assert out["totalEvents"] == 3
    assert [g["errorCount"] for g in out["groups"]] == [2, 1]
    assert out["groups"][0]["triage"]["firstSeen"] == "2025-06-10T10:00:00+00:00"


@pytest.mark.asyncio
async def test_triage_error_impl_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        await triage_error_impl(now=NOW)
    with pytest.raises(ValueError):
        await triage_error_impl(error_message="boom", lookback_days=45, now=NOW)
    with pytest.raises(ValueError):
        await triage_error_impl(error_message="boom", repository="not a repo", now=NOW)


@pytest.mark.asyncio
async def test_parse_error_event_impl_returns_camel_case(splunk_event) -> None:
    out = await parse_error_event_impl(payload=json.dumps(splunk_event()))

    assert out["exceptionType"] == "System.InvalidOperationException"
    assert out["stackTrace"][0] == {"file": "UserService.cs", "method": "GetUserAsync", "line": 42}
    assert out["searchKeywords"]["context"] == ["InvalidOperationException", "UserService"]


@pytest.mark.asyncio
async def test_parse_error_event_impl_malformed_payload() -> None:
    with pytest.raises(ValueError, match="raw"):
        await parse_error_event_impl(payload=json.dumps({"_raw": "{nope"}))


def test_error_signature_impl() -> None:
    out = error_signature_impl(messages=["User id=1 missing", "User id=2 missing", "Disk full"])
    assert out["groups"] == [
        {"signature": "USER NUMERIC_ID MISSING", "count": 2},
        {"signature": "DISK FULL", "count": 1},
    ]
    with pytest.raises(ValueError):
        error_signature_impl(messages=[])


def test_extract_error_keywords_impl() -> None:
    out = extract_error_keywords_impl(text="NullPointerException in UserService.getUserById()")
    assert "UserService" in out["keywords"]
    assert out["keywords"] == sorted(out["keywords"])
    assert out["category"] == "null_reference"
