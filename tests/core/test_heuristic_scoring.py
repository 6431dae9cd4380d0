from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from mcp_error_triage_server.core.models import ErrorContext, RollbackRisk
from mcp_error_triage_server.core.scoring import ErrorCategory, classify_error, rank_commits, score_commit

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=UTC)
NPE = ErrorContext(
    error_text="NullPointerException in UserService.getUserById() at line 45",
    exception_type="NullPointerException",
)
KEYWORDS = {"UserService", "getUserById", "null"}


def test_file_and_message_match_outranks_unrelated_commit(make_commit) -> None:
    payment = make_commit("bbbbbbb2", "Update payment retry logic", ("src/PaymentService.cs",))
    user = make_commit("aaaaaaa1", "Fix null check in getUserById", ("src/UserService.cs",))

    ranked = rank_commits([payment, user], KEYWORDS, NPE, now=NOW)

    assert [s.commit.hash for s in ranked] == ["aaaaaaa1", "bbbbbbb2"]
    assert ranked[0].relevance_score > ranked[1].relevance_score
    assert ranked[1].relevance_score == 0
    assert ranked[1].reasoning == "No matching signals"


def test_key_factors_and_reasoning_name_fired_signals(make_commit) -> None:
    user = make_commit("aaaaaaa1", "Fix null check in getUserById", ("src/UserService.cs",))
    scored = score_commit(user, KEYWORDS, NPE, now=NOW)

    assert scored.key_factors == ("file_overlap", "message_match", "category_keywords", "fix_intent")
    assert "exact file match (UserService.cs)" in scored.reasoning
    assert scored.rollback_risk is RollbackRisk.MEDIUM


def test_scoring_is_deterministic(make_commit) -> None:
    commits = [
        make_commit("c1", "Refactor auth middleware", ("Auth/TokenHandler.cs",), date=NOW - timedelta(days=2)),
        make_commit("c2", "Fix null check in getUserById", ("src/UserService.cs",)),
    ]
    first = rank_commits(commits, KEYWORDS, NPE, now=NOW)
    second = rank_commits(commits, KEYWORDS, NPE, now=NOW)
    assert first == second


def test_adding_matching_file_never_lowers_score(make_commit) -> None:
    before = make_commit("c1", "Tidy up", ("README.md",))
    after = make_commit("c1", "Tidy up", ("README.md", "src/UserService.cs"))
    assert (
        score_commit(after, KEYWORDS, NPE, now=NOW).relevance_score
        >= score_commit(before, KEYWORDS, NPE, now=NOW).relevance_score
    )


def test_ties_keep_input_order(make_commit) -> None:
    commits = [make_commit(h, "Bump version") for h in ("c1", "c2", "c3")]
    ranked = rank_commits(commits, KEYWORDS, NPE, now=NOW)
    assert [s.commit.hash for s in ranked] == ["c1", "c2", "c3"]


@pytest.mark.parametrize(
    ("age", "points"),
    [
        (timedelta(hours=12), 6),
        (timedelta(days=2), 4),
        (timedelta(days=5), 2),
        (timedelta(days=10), 0),
    ],
)
def test_recency_points(make_commit, age: timedelta, points: float) -> None:
    commit = make_commit("c1", "Bump version", date=NOW - age)
    scored = score_commit(commit, {"UserService"}, ErrorContext(error_text="boom"), now=NOW)
    assert scored.relevance_score == points


def test_risky_change_sets_high_rollback_risk(make_commit) -> None:
    commit = make_commit("c1", "Refactor auth middleware pipeline")
    scored = score_commit(commit, set(), ErrorContext(error_text="boom"), now=NOW)
    assert scored.rollback_risk is RollbackRisk.HIGH
    assert "risky_change" in scored.key_factors


def test_unrelated_commit_has_low_rollback_risk(make_commit) -> None:
    scored = score_commit(make_commit("c1", "Bump version"), KEYWORDS, NPE, now=NOW)
    assert scored.rollback_risk is RollbackRisk.LOW
    assert scored.key_factors == ()


def test_shared_error_terms(make_commit) -> None:
    commit = make_commit("c1", "Improve error logging on crash")
    ctx = ErrorContext(error_text="Unhandled error caused a crash")
    scored = score_commit(commit, set(), ctx, now=NOW)
    assert "shared_terms" in scored.key_factors
    assert scored.relevance_score == 4


@pytest.mark.parametrize(
    ("text", "category"),
    [
        ("401 Unauthorized: token expired", ErrorCategory.AUTHENTICATION),
        ("Object reference not set to an instance of an object", ErrorCategory.NULL_REFERENCE),
        ("Connection refused by upstream", ErrorCategory.CONNECTION),
        ("Invalid input for field email", ErrorCategory.VALIDATION),
        ("Something went wrong", ErrorCategory.GENERAL),
    ],
)
def test_classify_error(text: str, category: ErrorCategory) -> None:
    assert classify_error(ErrorContext(error_text=text)) is category
