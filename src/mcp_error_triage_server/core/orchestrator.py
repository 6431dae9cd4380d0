"""End-to-end triage workflow.

Group -> per group (CheckDedup -> GatherContext -> Score -> BuildPayload ->
CreateTicket -> MarkProcessed) -> Summarize.

Groups are independent once partitioned; they run under a bounded semaphore
and one group's failure never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, TypeVar

from .collaborators import DeploymentRegistry, IssueTracker, SourceControl, StateStore
from .completion.models import CompletionConfig
from .config import MAX_LOOKBACK_DAYS, MIN_LOOKBACK_DAYS, REPOSITORY_RE, DedupFailurePolicy, TriageConfig
from .errors import MalformedPayload, TicketCreationFailed, ValidationError
from .keywords import extract_keywords
from .models import (
    Commit,
    DeploymentInfo,
    DiagnosticRecord,
    ErrorContext,
    GroupOutcome,
    GroupStatus,
    LogEvent,
    ProcessingRecord,
    ScoredCommit,
    TriageData,
    TriageSummary,
)
from .parsing import ExceptionParser
from .scoring import fallback_scores, rank_commits, rank_commits_with_completion
from .signature import group_by_signature
from .state import NullStateStore
from .ticket import build_ticket_description, build_ticket_summary
from .time_window import lookback_start

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_SERVICE = "unknown-service"
UNKNOWN_ENVIRONMENT = "unknown-environment"


def coerce_events(events: Iterable[LogEvent | Mapping[str, Any]]) -> list[LogEvent]:
    return [e if isinstance(e, LogEvent) else LogEvent.from_mapping(e) for e in events]


def validate_batch(events: Sequence[LogEvent], cfg: TriageConfig) -> None:
    """Pre-flight checks; raises ValidationError before any I/O happens."""
    if not events:
        raise ValidationError("events must be a non-empty list")
    for i, e in enumerate(events):
        if e.time is None:
            raise ValidationError(f"event {i} has no usable time")
        if not e.message or not e.message.strip():
            raise ValidationError(f"event {i} has no message")
    if cfg.repository is not None and not REPOSITORY_RE.match(cfg.repository):
        raise ValidationError(f"repository must look like owner/name, got {cfg.repository!r}")
    if not MIN_LOOKBACK_DAYS <= cfg.lookback_days <= MAX_LOOKBACK_DAYS:
        raise ValidationError(
            f"lookback_days must be between {MIN_LOOKBACK_DAYS} and {MAX_LOOKBACK_DAYS}"
        )


@dataclass(frozen=True, slots=True)
class _ErrorEvidence:
    """What a group's representative event tells the scorer."""

    error_message: str
    keywords: frozenset[str]
    context: ErrorContext
    record: DiagnosticRecord | None = None


class TriageOrchestrator:
    def __init__(
        self,
        config: TriageConfig | None = None,
        *,
        state_store: StateStore | None = None,
        source_control: SourceControl | None = None,
        deployments: DeploymentRegistry | None = None,
        tracker: IssueTracker | None = None,
        parser: ExceptionParser | None = None,
        completion_cfg: CompletionConfig | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config or TriageConfig()
        if self.config.create_tickets and tracker is None:
            raise ValidationError("an issue tracker is required when create_tickets is enabled")
        self.state_store: StateStore = state_store or NullStateStore()
        self.source_control = source_control
        self.deployments = deployments
        self.tracker = tracker
        self.parser = parser or ExceptionParser()
        self.completion_cfg = completion_cfg
        self._fixed_now = now

    def _now(self) -> datetime:
        return self._fixed_now or datetime.now(UTC)

    async def _call(self, aw: Awaitable[T]) -> T:
        return await asyncio.wait_for(aw, timeout=self.config.call_timeout_s)

    async def run(self, events: Iterable[LogEvent | Mapping[str, Any]]) -> TriageSummary:
        batch = coerce_events(events)
        validate_batch(batch, self.config)

        groups = group_by_signature(batch)
        logger.info("Triage batch: %s events in %s groups", len(batch), len(groups))

        sem = asyncio.Semaphore(self.config.max_concurrent_groups)

        async def guarded(signature: str, group: list[LogEvent]) -> GroupOutcome:
            async with sem:
                try:
                    return await self._process_group(signature, group)
                except Exception as exc:
                    logger.exception("Triage failed for group %s", signature)
                    return GroupOutcome(
                        signature=signature,
                        status=GroupStatus.FAILED,
                        error_count=len(group),
                        error=str(exc),
                    )

        outcomes = await asyncio.gather(*(guarded(sig, grp) for sig, grp in groups.items()))

        summary = TriageSummary(
            total_groups=len(groups),
            processed=sum(
                o.status in (GroupStatus.CREATED, GroupStatus.ANALYZED) for o in outcomes
            ),
            skipped_duplicates=sum(o.status is GroupStatus.SKIPPED_DUPLICATE for o in outcomes),
            failed=sum(o.status is GroupStatus.FAILED for o in outcomes),
            total_events=len(batch),
            outcomes=tuple(outcomes),
        )
        logger.info(
            "Triage done: %s groups, %s processed, %s duplicates, %s failed",
            summary.total_groups,
            summary.processed,
            summary.skipped_duplicates,
            summary.failed,
        )
        return summary

    async def _already_processed(self, signature: str) -> bool:
        try:
            return await self._call(self.state_store.is_processed(signature))
        except Exception as exc:
            skip = self.config.dedup_failure_policy is DedupFailurePolicy.SKIP
            logger.warning(
                "Dedup lookup failed for %s (%s); treating as %s",
                signature,
                exc,
                "already processed" if skip else "new",
            )
            return skip

    def _evidence(self, event: LogEvent) -> _ErrorEvidence:
        record: DiagnosticRecord | None = None
        if event.message.lstrip().startswith("{"):
            try:
                record = self.parser.parse(event.message)
            except MalformedPayload as exc:
                logger.warning("Could not parse event payload (%s stage): %s", exc.stage, exc)

        if record is None:
            return _ErrorEvidence(
                error_message=event.message,
                keywords=frozenset(extract_keywords(event.message)),
                context=ErrorContext(error_text=event.message),
            )

        kws = extract_keywords(record.search_text())
        kws.update(record.search_keywords.files)
        kws.update(record.search_keywords.methods)
        return _ErrorEvidence(
            error_message=record.error_message,
            keywords=frozenset(kws),
            context=ErrorContext.from_record(record),
            record=record,
        )

    async def _fetch_deployment(
        self,
        service: str,
        environment: str,
        at: datetime | None,
    ) -> DeploymentInfo | None:
        if self.deployments is None or at is None:
            return None
        try:
            return await self._call(self.deployments.deployed_commit_at(service, environment, at))
        except Exception as exc:
            logger.warning("Deployment lookup failed for %s/%s: %s", service, environment, exc)
            return None

    async def _fetch_commits(self) -> list[Commit]:
        repo = self.config.repository
        if self.source_control is None or not repo:
            return []
        since = lookback_start(self.config.lookback_days, now=self._now())
        try:
            return list(await self._call(self.source_control.commits_since(repo, since)))
        except Exception as exc:
            logger.warning("Commit fetch failed for %s: %s", repo, exc)
            return []

    def _completion_cfg(self) -> CompletionConfig:
        # The worker thread outlives a timed-out wait; cap its retries to the same window.
        cfg = self.completion_cfg or CompletionConfig()
        if cfg.budget_s is None:
            cfg = replace(cfg, budget_s=self.config.call_timeout_s)
        return cfg

    async def _score(self, commits: list[Commit], ev: _ErrorEvidence) -> list[ScoredCommit]:
        if not commits:
            return []
        now = self._now()
        if self.config.use_completion_scoring:
            try:
                ranked = await self._call(
                    rank_commits_with_completion(
                        commits,
                        ev.keywords,
                        ev.context,
                        record=ev.record,
                        cfg=self._completion_cfg(),
                        now=now,
                    )
                )
            except TimeoutError:
                logger.warning("Completion scoring timed out; using heuristic fallback")
                ranked = fallback_scores(commits, ev.keywords, ev.context, now=now)
        else:
            ranked = rank_commits(commits, ev.keywords, ev.context, now=now)
        return [s for s in ranked if s.relevance_score > 0][: self.config.max_suspected_commits]

    async def _process_group(self, signature: str, events: list[LogEvent]) -> GroupOutcome:
        count = len(events)
        if await self._already_processed(signature):
            logger.info("Skipping %s: already triaged", signature)
            return GroupOutcome(signature=signature, status=GroupStatus.SKIPPED_DUPLICATE, error_count=count)

        ev = self._evidence(events[0])
        first_seen = min((e.time for e in events if e.time is not None), default=None)
        record = ev.record
        service = next(
            (e.service_name for e in events if e.service_name),
            (record.service_name if record else None) or UNKNOWN_SERVICE,
        )
        environment = next(
            (e.environment for e in events if e.environment),
            (record.environment if record else None) or UNKNOWN_ENVIRONMENT,
        )

        deployment, commits = await asyncio.gather(
            self._fetch_deployment(service, environment, first_seen),
            self._fetch_commits(),
        )
        suspects = await self._score(commits, ev)

        data = TriageData(
            error_signature=signature,
            error_count=count,
            error_message=ev.error_message,
            first_seen=first_seen,
            suspected_commits=tuple(suspects),
            service_name=service,
            environment=environment,
            deployment_info=deployment,
        )
        if not self.config.create_tickets:
            logger.info("Analyzed %s (%s events, %s suspects)", signature, count, len(suspects))
            return GroupOutcome(
                signature=signature,
                status=GroupStatus.ANALYZED,
                error_count=count,
                triage_data=data,
            )

        tracker = self.tracker
        if tracker is None:
            raise ValidationError("an issue tracker is required when create_tickets is enabled")
        try:
            ref = await self._call(
                tracker.create_ticket(
                    build_ticket_summary(data),
                    build_ticket_description(data),
                    self.config.project_key,
                    self.config.issue_type,
                )
            )
        except Exception as exc:
            err = TicketCreationFailed(f"ticket creation failed for {signature}: {exc}")
            logger.warning("%s", err)
            return GroupOutcome(
                signature=signature,
                status=GroupStatus.FAILED,
                error_count=count,
                triage_data=data,
                error=str(err),
            )

        entry = ProcessingRecord(
            error_signature=signature,
            ticket_key=ref.issue_key,
            recorded_at=self._now(),
            service_name=service,
            environment=environment,
            error_count=count,
            first_seen=first_seen,
        )
        try:
            await self._call(self.state_store.mark_processed(entry))
        except Exception as exc:
            # Ticket stays; a later run may open a duplicate.
            logger.warning("Ticket %s created but state write failed for %s: %s", ref.issue_key, signature, exc)

        logger.info("Created %s for %s (%s events)", ref.issue_key, signature, count)
        return GroupOutcome(
            signature=signature,
            status=GroupStatus.CREATED,
            error_count=count,
            triage_data=data,
            ticket_key=ref.issue_key,
            ticket_url=ref.issue_url,
        )
