"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from mcp_error_triage_server.core.collaborators import SourceControl
from mcp_error_triage_server.core.config import TriageConfig, resolve_triage_config
from mcp_error_triage_server.core.errors import MalformedPayload
from mcp_error_triage_server.core.keywords import extract_keywords
from mcp_error_triage_server.core.models import (
    DiagnosticRecord,
    ErrorContext,
    GroupOutcome,
    ScoredCommit,
    TriageData,
    TriageSummary,
)
from mcp_error_triage_server.core.orchestrator import TriageOrchestrator
from mcp_error_triage_server.core.parsing import parse_event, parse_event_with_completion
from mcp_error_triage_server.core.scoring import classify_error
from mcp_error_triage_server.core.signature import normalize
from mcp_error_triage_server.core.state import JsonlStateStore, NullStateStore
from mcp_error_triage_server.core.ticket import build_ticket_description, build_ticket_summary
from mcp_error_triage_server.integrations.github import GitHubSourceControl

MAX_EVENTS = 5000


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def record_to_dict(record: DiagnosticRecord) -> dict[str, Any]:
    """Convert a DiagnosticRecord into the camelCase JSON shape."""
    return {
        "serviceName": record.service_name,
        "environment": record.environment,
        "timestamp": _iso(record.timestamp),
        "exceptionType": record.exception_type,
        "errorMessage": record.error_message,
        "stackTrace": [{"file": f.file, "method": f.method, "line": f.line} for f in record.stack_trace],
        "searchKeywords": {
            "files": list(record.search_keywords.files),
            "methods": list(record.search_keywords.methods),
            "context": list(record.search_keywords.context),
        },
    }


def scored_to_dict(s: ScoredCommit) -> dict[str, Any]:
    c = s.commit
    return {
        "commit": {
            "hash": c.hash,
            "message": c.message,
            "author": c.author,
            "date": _iso(c.date),
            "changedFiles": list(c.changed_files),
            "pullRequestUrl": c.pull_request_url,
        },
        "relevanceScore": s.relevance_score,
        "reasoning": s.reasoning,
        "rollbackRisk": s.rollback_risk.value if s.rollback_risk else None,
        "keyFactors": list(s.key_factors),
    }


def triage_data_to_dict(data: TriageData) -> dict[str, Any]:
    d = data.deployment_info
    return {
        "errorSignature": data.error_signature,
        "errorCount": data.error_count,
        "errorMessage": data.error_message,
        "firstSeen": _iso(data.first_seen),
        "serviceName": data.service_name,
        "environment": data.environment,
        "suspectedCommits": [scored_to_dict(s) for s in data.suspected_commits],
        "deploymentInfo": None
        if d is None
        else {
            "commitHash": d.commit_hash,
            "deployedAt": _iso(d.deployed_at),
            "version": d.version,
            "environment": d.environment,
        },
        "ticket": {
            "summary": build_ticket_summary(data),
            "description": build_ticket_description(data),
        },
    }


def _outcome_to_dict(o: GroupOutcome) -> dict[str, Any]:
    out: dict[str, Any] = {
        "signature": o.signature,
        "status": o.status.value,
        "errorCount": o.error_count,
    }
    if o.triage_data is not None:
        out["triage"] = triage_data_to_dict(o.triage_data)
    if o.ticket_key:
        out["ticketKey"] = o.ticket_key
        out["ticketUrl"] = o.ticket_url
    if o.error:
        out["error"] = o.error
    return out


def summary_to_dict(summary: TriageSummary) -> dict[str, Any]:
    return {
        "totalGroups": summary.total_groups,
        "processed": summary.processed,
        "skippedDuplicates": summary.skipped_duplicates,
        "failed": summary.failed,
        "totalEvents": summary.total_events,
        "groups": [_outcome_to_dict(o) for o in summary.outcomes],
    }


def _events_from_args(
    *,
    events: Sequence[Mapping[str, Any]] | None,
    error_message: str | None,
    service_name: str | None,
    environment: str | None,
    now: datetime,
) -> list[Mapping[str, Any]]:
    if events and error_message:
        raise ValueError("Pass either events or error_message, not both.")
    if error_message:
        return [
            {
                "time": now.isoformat(),
                "message": error_message,
                "serviceName": service_name,
                "environment": environment,
            }
        ]
    if not events:
        raise ValueError("events must be a non-empty list (or pass error_message).")
    if len(events) > MAX_EVENTS:
        raise ValueError(f"At most {MAX_EVENTS} events can be triaged per call.")
    return list(events)


async def triage_error_impl(
    *,
    events: Sequence[Mapping[str, Any]] | None = None,
    error_message: str | None = None,
    service_name: str | None = None,
    environment: str | None = None,
    repository: str | None = None,
    lookback_days: int | None = None,
    state_file: str | None = None,
    use_completion: bool = False,
    source_control: SourceControl | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Implementation for the `triage_error` MCP tool.

    Runs analysis only: ticket payloads are rendered and returned, nothing is
    created in an issue tracker and no dedup state is written.
    """
    now = now or datetime.now(UTC)
    batch = _events_from_args(
        events=events,
        error_message=error_message,
        service_name=service_name,
        environment=environment,
        now=now,
    )

    cfg = resolve_triage_config(TriageConfig(create_tickets=False))
    overrides: dict[str, Any] = {"use_completion_scoring": use_completion}
    if repository is not None:
        overrides["repository"] = repository
    if lookback_days is not None:
        overrides["lookback_days"] = lookback_days
    cfg = replace(cfg, **overrides)

    owned_client: GitHubSourceControl | None = None
    if source_control is None and cfg.repository:
        owned_client = GitHubSourceControl()
        source_control = owned_client

    orchestrator = TriageOrchestrator(
        cfg,
        state_store=JsonlStateStore(state_file) if state_file else NullStateStore(),
        source_control=source_control,
        now=now,
    )
    try:
        summary = await orchestrator.run(batch)
    finally:
        if owned_client is not None:
            await owned_client.aclose()
    return summary_to_dict(summary)


async def parse_error_event_impl(
    *,
    payload: str | Mapping[str, Any],
    use_completion: bool = False,
) -> dict[str, Any]:
    """Implementation for the `parse_error_event` MCP tool."""
    try:
        if use_completion:
            record = await parse_event_with_completion(payload)
        else:
            record = parse_event(payload)
    except MalformedPayload as e:
        raise ValueError(f"Malformed event payload ({e.stage}): {e}") from e
    return record_to_dict(record)


def error_signature_impl(*, messages: Sequence[str]) -> dict[str, Any]:
    """Implementation for the `error_signature` MCP tool."""
    if not messages:
        raise ValueError("messages must be a non-empty list")
    signatures = [normalize(m) for m in messages]
    counts = Counter(signatures)
    return {
        "signatures": [{"message": m, "signature": s} for m, s in zip(messages, signatures)],
        "groups": [{"signature": s, "count": n} for s, n in counts.items()],
    }


def extract_error_keywords_impl(*, text: str) -> dict[str, Any]:
    """Implementation for the `extract_error_keywords` MCP tool."""
    if not text or not text.strip():
        raise ValueError("text must be non-empty")
    return {
        "keywords": sorted(extract_keywords(text)),
        "category": classify_error(ErrorContext(error_text=text)).value,
    }
