from __future__ import annotations

from datetime import UTC, datetime

import pytest

from mcp_error_triage_server.core.completion import client as completion_client
from mcp_error_triage_server.core.completion import (
    CommitAnalysisResponse,
    CompletionConfig,
    CompletionRequest,
    DiagnosticExtraction,
    complete_json,
    redact_text,
)
from mcp_error_triage_server.core.errors import CollaboratorUnavailable
from mcp_error_triage_server.core.models import ErrorContext, RollbackRisk, StackFrame
from mcp_error_triage_server.core.parsing import parse_event_with_completion
from mcp_error_triage_server.core.result import Err, Ok
from mcp_error_triage_server.core.scoring import FALLBACK_SCORE, rank_commits_with_completion

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=UTC)
NO_RETRY = CompletionConfig(max_retries=1)


def _unavailable(request, response_model, *, cfg):
    raise CollaboratorUnavailable("completion", "service down")


def test_redact_text_hides_credentials_and_addresses() -> None:
    text = "user bob@example.com from 10.1.2.3 sent Bearer abc.def.ghi"
    redacted = redact_text(text)
    assert "bob@example.com" not in redacted
    assert "10.1.2.3" not in redacted


@pytest.mark.asyncio
async def test_complete_json_returns_err_without_api_key(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    result = await complete_json(
        CompletionRequest(system_prompt="s", user_prompt="u"),
        CommitAnalysisResponse,
        cfg=NO_RETRY,
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, CollaboratorUnavailable)


@pytest.mark.asyncio
async def test_complete_json_redacts_prompt(monkeypatch) -> None:
    captured: dict[str, str] = {}

    def fake_call(request, response_model, *, cfg):
        captured["prompt"] = request.user_prompt
        return CommitAnalysisResponse()

    monkeypatch.setattr(completion_client, "_call_gemini_json", fake_call)

    result = await complete_json(
        CompletionRequest(system_prompt="s", user_prompt="contact ops@example.com"),
        CommitAnalysisResponse,
    )

    assert isinstance(result, Ok)
    assert "ops@example.com" not in captured["prompt"]


@pytest.mark.asyncio
async def test_completion_scoring_matches_hash_prefixes(monkeypatch, make_commit) -> None:
    commits = [
        make_commit("aaaaaaa1111111", "Update payment retry logic", ("PaymentService.cs",)),
        make_commit("bbbbbbb2222222", "Fix null check in getUserById", ("UserService.cs",)),
    ]

    def fake_call(request, response_model, *, cfg):
        assert "bbbbbbb2" in request.user_prompt
        return CommitAnalysisResponse.model_validate(
            {
                "analysis": [
                    {
                        "commitHash": "aaaaaaa1",
                        "relevanceScore": 10,
                        "reasoning": "unrelated",
                        "rollbackRisk": "LOW",
                    },
                    {
                        "commitHash": "bbbbbbb2",
                        "relevanceScore": 92,
                        "reasoning": "touches the failing method",
                        "rollbackRisk": "MEDIUM",
                        "keyFactors": ["file_overlap"],
                    },
                    {
                        "commitHash": "ccccccc3",
                        "relevanceScore": 99,
                        "reasoning": "not a candidate",
                        "rollbackRisk": "HIGH",
                    },
                ],
                "summary": "UserService change is the likely cause",
            }
        )

    monkeypatch.setattr(completion_client, "_call_gemini_json", fake_call)

    ranked = await rank_commits_with_completion(
        commits,
        {"UserService", "getUserById"},
        ErrorContext(error_text="NullPointerException in UserService.getUserById()"),
        now=NOW,
    )

    assert [s.commit.hash for s in ranked] == ["bbbbbbb2222222", "aaaaaaa1111111"]
    assert ranked[0].relevance_score == 92
    assert ranked[0].rollback_risk is RollbackRisk.MEDIUM
    assert ranked[0].key_factors == ("file_overlap",)


@pytest.mark.asyncio
async def test_completion_scoring_falls_back_to_heuristics(monkeypatch, make_commit) -> None:
    monkeypatch.setattr(completion_client, "_call_gemini_json", _unavailable)
    commits = [
        make_commit("aaaaaaa1111111", "Update payment retry logic", ("PaymentService.cs",)),
        make_commit("bbbbbbb2222222", "Fix null check in getUserById", ("UserService.cs",)),
    ]

    ranked = await rank_commits_with_completion(
        commits,
        {"UserService", "getUserById", "null"},
        ErrorContext(error_text="NullPointerException in UserService.getUserById()"),
        now=NOW,
    )

    assert [s.commit.hash for s in ranked] == ["bbbbbbb2222222"]
    assert ranked[0].relevance_score == FALLBACK_SCORE
    assert ranked[0].reasoning.startswith("Fallback analysis")


@pytest.mark.asyncio
async def test_completion_scoring_without_commits_skips_the_service(monkeypatch) -> None:
    def fail_if_called(request, response_model, *, cfg):
        raise AssertionError("completion service should not be called")

    monkeypatch.setattr(completion_client, "_call_gemini_json", fail_if_called)
    assert await rank_commits_with_completion([], {"x"}, ErrorContext(error_text="boom")) == []


@pytest.mark.asyncio
async def test_completion_parsing_uses_service_result(monkeypatch, splunk_event) -> None:
    def fake_call(request, response_model, *, cfg):
        assert response_model is DiagnosticExtraction
        return DiagnosticExtraction.model_validate(
            {
                "exceptionType": "System.InvalidOperationException",
                "errorMessage": "Sequence contains no elements",
                "stackTrace": [{"file": "UserService.cs", "method": "GetUserAsync", "line": 42}],
            }
        )

    monkeypatch.setattr(completion_client, "_call_gemini_json", fake_call)

    record = await parse_event_with_completion(splunk_event())

    assert record.stack_trace == (StackFrame(file="UserService.cs", method="GetUserAsync", line=42),)
    assert record.search_keywords.files == ("UserService.cs",)
    assert record.service_name == "users-api"


@pytest.mark.asyncio
async def test_completion_parsing_falls_back_to_deterministic_parser(monkeypatch, splunk_event) -> None:
    monkeypatch.setattr(completion_client, "_call_gemini_json", _unavailable)

    record = await parse_event_with_completion(splunk_event())

    assert record.exception_type == "System.InvalidOperationException"
    assert len(record.stack_trace) == 3


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.slept: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


def _always_fails(calls: list[int]):
    def call():
        calls.append(1)
        raise RuntimeError("503 from model")

    return call


def test_retries_stop_when_time_budget_is_spent() -> None:
    calls: list[int] = []
    clock = _FakeClock()

    with pytest.raises(CollaboratorUnavailable, match="after 2 attempts"):
        completion_client._with_retries(
            _always_fails(calls),
            CompletionConfig(max_retries=5, budget_s=1.5),
            sleep=clock.sleep,
            clock=clock,
        )

    assert len(calls) == 2
    assert clock.slept == [1]


def test_retries_without_budget_use_every_attempt() -> None:
    calls: list[int] = []
    clock = _FakeClock()

    with pytest.raises(CollaboratorUnavailable, match="after 3 attempts"):
        completion_client._with_retries(
            _always_fails(calls),
            CompletionConfig(max_retries=3),
            sleep=clock.sleep,
            clock=clock,
        )

    assert len(calls) == 3
    assert clock.slept == [1, 2]


def test_retries_return_first_success() -> None:
    results = iter([RuntimeError("flaky"), "ok"])

    def call():
        item = next(results)
        if isinstance(item, Exception):
            raise item
        return item

    clock = _FakeClock()
    assert completion_client._with_retries(call, CompletionConfig(budget_s=10), sleep=clock.sleep, clock=clock) == "ok"
