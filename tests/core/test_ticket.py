from __future__ import annotations

from datetime import UTC, datetime

from mcp_error_triage_server.core.models import (
    Commit,
    DeploymentInfo,
    RollbackRisk,
    ScoredCommit,
    TriageData,
)
from mcp_error_triage_server.core.ticket import SUMMARY_MAX_LEN, build_ticket_description, build_ticket_summary


def _data(**overrides) -> TriageData:
    fields = dict(
        error_signature="NULLPOINTEREXCEPTION IN USERSERVICE.GETUSERBYID() AT LINE NUMBER",
        error_count=3,
        error_message="NullPointerException in UserService.getUserById() at line 45",
        first_seen=datetime(2025, 6, 1, 10, 0, tzinfo=UTC),
        suspected_commits=(),
        service_name="users-api",
        environment="prod",
    )
    fields.update(overrides)
    return TriageData(**fields)


def test_summary_prefix_and_first_line() -> None:
    summary = build_ticket_summary(_data(error_message="Boom\n   at Foo.Bar()"))
    assert summary == "[Auto-Triage] users-api (prod): Boom"


def test_summary_is_truncated() -> None:
    summary = build_ticket_summary(_data(error_message="x" * 500))
    assert len(summary) == SUMMARY_MAX_LEN
    assert summary.endswith("...")


def test_description_lists_suspected_commits_and_deployment() -> None:
    commit = Commit(
        hash="aaaaaaa1111111",
        message="Fix null check in getUserById\n\nlong body",
        author="dev@example.com",
        date=None,
        pull_request_url="https://github.com/acme/users/pull/7",
    )
    data = _data(
        suspected_commits=(
            ScoredCommit(
                commit=commit,
                relevance_score=74,
                reasoning="exact file match (UserService.cs)",
                rollback_risk=RollbackRisk.MEDIUM,
            ),
        ),
        deployment_info=DeploymentInfo(commit_hash="deadbeef", version="1.4.2"),
    )

    text = build_ticket_description(data)

    assert "| 1 | `aaaaaaa1` | Fix null check in getUserById | dev@example.com | 74 | MEDIUM |" in text
    assert "[PR](https://github.com/acme/users/pull/7)" in text
    assert "- `aaaaaaa1`: exact file match (UserService.cs)" in text
    assert "**Version:** 1.4.2" in text
    assert "**Occurrences:** 3" in text


def test_description_without_commits() -> None:
    text = build_ticket_description(_data())
    assert "No candidate commits matched this error." in text
    assert "## Deployment" not in text
