"""Core data models for error triage."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .time_window import coerce_dt

_TIME_KEYS = ("time", "_time", "timestamp", "@t")
_MESSAGE_KEYS = ("message", "msg", "error")
_SERVICE_KEYS = ("serviceName", "service_name", "Application", "service")
_ENV_KEYS = ("environment", "Environment", "env")


def _first(obj: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for k in keys:
        if obj.get(k) not in (None, ""):
            return obj[k]
    return None


class RollbackRisk(str, Enum):
    """How disruptive reverting a commit is expected to be."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True, slots=True)
class LogEvent:
    """One observed error occurrence, as delivered by the log platform."""

    time: datetime | None
    message: str
    source: str | None = None
    service_name: str | None = None
    environment: str | None = None
    level: str | None = None

    @classmethod
    def from_mapping(cls, obj: Mapping[str, Any]) -> LogEvent:
        """Build an event from a log-platform record (Splunk-style keys accepted)."""
        msg = _first(obj, _MESSAGE_KEYS)
        return cls(
            time=coerce_dt(_first(obj, _TIME_KEYS)),
            message=str(msg) if msg is not None else "",
            source=obj.get("source"),
            service_name=_first(obj, _SERVICE_KEYS),
            environment=_first(obj, _ENV_KEYS),
            level=obj.get("level"),
        )


@dataclass(frozen=True, slots=True)
class StackFrame:
    file: str
    method: str
    line: int | None = None


@dataclass(frozen=True, slots=True)
class SearchKeywords:
    files: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    context: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DiagnosticRecord:
    """Structured form of one parsed exception event."""

    service_name: str | None
    environment: str | None
    timestamp: datetime | None
    error_message: str
    exception_type: str
    stack_trace: tuple[StackFrame, ...] = ()
    search_keywords: SearchKeywords = field(default_factory=SearchKeywords)

    def search_text(self) -> str:
        """Flatten the record into free text for keyword extraction."""
        parts = [self.error_message, self.exception_type]
        parts.extend(f.rsplit(".", 1)[0] if "." in f else f for f in self.search_keywords.files)
        parts.extend(self.search_keywords.methods)
        parts.extend(self.search_keywords.context)
        return " ".join(p for p in parts if p)


@dataclass(frozen=True, slots=True)
class Commit:
    hash: str
    message: str
    author: str
    date: datetime | None
    changed_files: tuple[str, ...] = ()
    pull_request_url: str | None = None

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True, slots=True)
class ScoredCommit:
    commit: Commit
    relevance_score: float
    reasoning: str
    rollback_risk: RollbackRisk | None = None
    key_factors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DeploymentInfo:
    commit_hash: str
    deployed_at: datetime | None = None
    version: str | None = None
    environment: str | None = None


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Error text the scorer classifies and compares commits against."""

    error_text: str
    exception_type: str | None = None

    @classmethod
    def from_record(cls, record: DiagnosticRecord) -> ErrorContext:
        return cls(error_text=record.error_message, exception_type=record.exception_type)


@dataclass(frozen=True, slots=True)
class TriageData:
    """Per-group payload handed to ticket rendering."""

    error_signature: str
    error_count: int
    error_message: str
    first_seen: datetime | None
    suspected_commits: tuple[ScoredCommit, ...]
    service_name: str
    environment: str
    deployment_info: DeploymentInfo | None = None


@dataclass(frozen=True, slots=True)
class ProcessingRecord:
    """Dedup-state entry written once per newly ticketed signature."""

    error_signature: str
    ticket_key: str
    recorded_at: datetime
    service_name: str | None = None
    environment: str | None = None
    error_count: int | None = None
    first_seen: datetime | None = None


class GroupStatus(str, Enum):
    CREATED = "created"
    ANALYZED = "analyzed"  # payload built, tickets disabled
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GroupOutcome:
    signature: str
    status: GroupStatus
    error_count: int
    triage_data: TriageData | None = None
    ticket_key: str | None = None
    ticket_url: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class TriageSummary:
    total_groups: int
    processed: int
    skipped_duplicates: int
    failed: int
    total_events: int
    outcomes: tuple[GroupOutcome, ...] = ()
