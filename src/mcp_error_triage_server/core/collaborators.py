"""Interfaces for the external systems the orchestrator depends on."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .models import Commit, DeploymentInfo, ProcessingRecord


@dataclass(frozen=True, slots=True)
class TicketRef:
    issue_key: str
    issue_url: str | None = None


class IssueTracker(Protocol):
    async def create_ticket(
        self,
        summary: str,
        description: str,
        project_key: str | None = None,
        issue_type: str = "Bug",
    ) -> TicketRef:
        """Create a ticket; raise TrackerError on auth/permission/not-found failures."""
        ...


class SourceControl(Protocol):
    async def commits_since(self, repo: str, since: datetime) -> list[Commit]:
        """Commits newer than `since`; an empty list when the host refuses access."""
        ...

    async def pull_request_for(self, repo: str, commit_hash: str) -> str | None: ...


class DeploymentRegistry(Protocol):
    async def deployed_commit_at(
        self,
        service_name: str,
        environment: str,
        timestamp: datetime,
    ) -> DeploymentInfo | None: ...


class StateStore(Protocol):
    """Dedup state: which signatures already produced a ticket."""

    async def is_processed(self, signature: str) -> bool: ...

    async def mark_processed(self, record: ProcessingRecord) -> None: ...

    async def history(self, signature: str, lookback_days: int = 30) -> list[ProcessingRecord]: ...
