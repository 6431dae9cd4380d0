"""Completion-service commit scoring with heuristic fallback."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from ..completion.client import complete_json
from ..completion.models import CommitAnalysisResponse, CompletionConfig
from ..completion.prompt import build_commit_analysis_request, format_error_context
from ..models import Commit, DiagnosticRecord, ErrorContext, RollbackRisk, ScoredCommit
from ..result import Err, Ok, Result, unwrap_or_else
from .heuristic import rank_commits

logger = logging.getLogger(__name__)

FALLBACK_SCORE = 50.0
HASH_PREFIX_LEN = 7


def _lookup(commits: Sequence[Commit], commit_hash: str) -> Commit | None:
    prefix = commit_hash.strip().lower()[:HASH_PREFIX_LEN]
    if len(prefix) < HASH_PREFIX_LEN:
        return None
    for c in commits:
        if c.hash.lower().startswith(prefix):
            return c
    return None


async def score_with_completion(
    commits: Sequence[Commit],
    context: ErrorContext,
    *,
    record: DiagnosticRecord | None = None,
    cfg: CompletionConfig | None = None,
    now: datetime | None = None,
) -> Result[list[ScoredCommit]]:
    """Primary strategy: one completion call scoring every commit."""
    cfg = cfg or CompletionConfig()
    now = now or datetime.now(UTC)
    candidates = list(commits)[: cfg.max_prompt_commits]
    request = build_commit_analysis_request(
        format_error_context(context, record),
        candidates,
        now=now,
    )
    result = await complete_json(request, CommitAnalysisResponse, cfg=cfg)
    if isinstance(result, Err):
        return result

    scored: list[ScoredCommit] = []
    seen: set[str] = set()
    for item in result.value.analysis:
        commit = _lookup(candidates, item.commit_hash)
        if commit is None:
            logger.debug("Dropping assessment for unknown commit %s", item.commit_hash)
            continue
        if commit.hash in seen:
            continue
        seen.add(commit.hash)
        scored.append(
            ScoredCommit(
                commit=commit,
                relevance_score=float(item.relevance_score),
                reasoning=item.reasoning,
                rollback_risk=RollbackRisk(item.rollback_risk),
                key_factors=tuple(item.key_factors),
            )
        )
    return Ok(sorted(scored, key=lambda s: s.relevance_score, reverse=True))


def fallback_scores(
    commits: Sequence[Commit],
    keywords: Iterable[str],
    context: ErrorContext,
    *,
    now: datetime | None = None,
) -> list[ScoredCommit]:
    """Heuristic candidates with a fixed moderate score.

    Ordering comes from the heuristic ranking; the score itself is flattened
    so downstream consumers can tell fallback output apart.
    """
    ranked = rank_commits(commits, keywords, context, now=now)
    return [
        ScoredCommit(
            commit=s.commit,
            relevance_score=FALLBACK_SCORE,
            reasoning=f"Fallback analysis - completion service unavailable; {s.reasoning}",
            rollback_risk=s.rollback_risk,
            key_factors=s.key_factors,
        )
        for s in ranked
        if s.relevance_score > 0
    ]


async def rank_commits_with_completion(
    commits: Iterable[Commit],
    keywords: Iterable[str],
    context: ErrorContext,
    *,
    record: DiagnosticRecord | None = None,
    cfg: CompletionConfig | None = None,
    now: datetime | None = None,
) -> list[ScoredCommit]:
    """Score via the completion service; never raises on service failure."""
    commits = list(commits)
    keywords = frozenset(keywords)
    if not commits:
        return []

    def fallback(err: Exception) -> list[ScoredCommit]:
        logger.warning("Completion scoring unavailable, using heuristic fallback: %s", err)
        return fallback_scores(commits, keywords, context, now=now)

    result = await score_with_completion(commits, context, record=record, cfg=cfg, now=now)
    return unwrap_or_else(result, fallback)
