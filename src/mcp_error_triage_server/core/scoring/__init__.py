"""Commit relevance scoring."""

from __future__ import annotations

from .ai import FALLBACK_SCORE, fallback_scores, rank_commits_with_completion
from .categories import CATEGORY_KEYWORDS, ErrorCategory, classify_error
from .heuristic import DEFAULT_WEIGHTS, ScoreWeights, rank_commits, score_commit

__all__ = [
    "CATEGORY_KEYWORDS",
    "DEFAULT_WEIGHTS",
    "FALLBACK_SCORE",
    "ErrorCategory",
    "ScoreWeights",
    "classify_error",
    "fallback_scores",
    "rank_commits",
    "rank_commits_with_completion",
    "score_commit",
]
