"""Heuristic commit relevance scoring.

Explainable and additive: every signal adds fixed points, nothing is
subtracted or normalized. Scores are a relative ranking, not a probability.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..keywords import is_source_file_name
from ..models import Commit, ErrorContext, RollbackRisk, ScoredCommit
from ..time_window import age_in_days
from .categories import CATEGORY_KEYWORDS, ErrorCategory, classify_error

_I = re.IGNORECASE

RISK_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("refactor", re.compile(r"\brefactor", _I)),
    ("rewrite", re.compile(r"\brewr(ite|ote|itten)\b", _I)),
    ("breaking change", re.compile(r"\bbreaking[\s-]change|\bBREAKING\b", _I)),
    ("auth/security", re.compile(r"\b(auth\w*|security|permissions?)\b", _I)),
    ("middleware", re.compile(r"\bmiddleware\b", _I)),
    ("pipeline", re.compile(r"\bpipeline\b", _I)),
)

FIX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bfix(es|ed)?\b", _I),
    re.compile(r"\bresolve(s|d)?\b", _I),
    re.compile(r"\bpatch(es|ed)?\b", _I),
    re.compile(r"\bcorrect(s|ed)?\b", _I),
    re.compile(r"\baddress(es|ed)?\b", _I),
    re.compile(r"\bhandle(s|d)?\b", _I),
)

SHARED_ERROR_TERMS: tuple[str, ...] = ("error", "exception", "fail", "bug", "issue", "problem", "crash")

_TYPE_NAME_RE = re.compile(r"^[A-Z][A-Za-z0-9_]{2,}$")
_METHOD_RE = re.compile(r"^[a-z_][a-z0-9_]*[A-Z]\w*$")


@dataclass(frozen=True, slots=True)
class ScoreWeights:
    file_exact: float = 25
    file_partial: float = 12
    file_path: float = 5
    message: float = 10
    method_message: float = 15
    title: float = 5
    category_keyword: float = 3
    risky_change: float = 8
    fix_intent: float = 3
    shared_term: float = 2
    recent_1d: float = 6
    recent_3d: float = 4
    recent_7d: float = 2


DEFAULT_WEIGHTS = ScoreWeights()


@dataclass(slots=True)
class _Tally:
    points: float = 0
    reasons: list[str] = field(default_factory=list)
    factors: list[str] = field(default_factory=list)

    def add(self, points: float, factor: str, reason: str) -> None:
        if points <= 0:
            return
        self.points += points
        self.reasons.append(reason)
        if factor not in self.factors:
            self.factors.append(factor)


def looks_like_file_ref(keyword: str) -> bool:
    """A source file name, or a bare type name that usually maps to one."""
    return is_source_file_name(keyword) or bool(_TYPE_NAME_RE.match(keyword))


def looks_like_method(keyword: str) -> bool:
    return "(" in keyword or bool(_METHOD_RE.match(keyword))


def _stem(name: str) -> str:
    base = re.split(r"[\\/]", name)[-1]
    return base.split(".")[0].lower()


def _join(items: Iterable[str]) -> str:
    return ", ".join(dict.fromkeys(items))


def _score_files(commit: Commit, keywords: Sequence[str], w: ScoreWeights, tally: _Tally) -> None:
    file_refs = [(k, _stem(k)) for k in keywords if looks_like_file_ref(k)]
    exact: list[str] = []
    partial: list[str] = []
    in_path: list[str] = []
    points = 0.0

    for path in commit.changed_files:
        stem = _stem(path)
        base = re.split(r"[\\/]", path)[-1]
        for _, kw_stem in file_refs:
            if not kw_stem or not stem:
                continue
            if kw_stem == stem:
                points += w.file_exact
                exact.append(base)
            elif len(stem) >= 3 and len(kw_stem) >= 3 and (kw_stem in stem or stem in kw_stem):
                points += w.file_partial
                partial.append(base)

        lower_path = path.lower()
        for kw in keywords:
            if kw.lower() in lower_path:
                points += w.file_path
                in_path.append(kw)

    details = []
    if exact:
        details.append(f"exact file match ({_join(exact)})")
    if partial:
        details.append(f"partial file match ({_join(partial)})")
    if in_path:
        details.append(f"keywords in file paths ({_join(in_path)})")
    tally.add(points, "file_overlap", "; ".join(details))


def _score_message(commit: Commit, keywords: Sequence[str], w: ScoreWeights, tally: _Tally) -> None:
    message = commit.message.lower()
    title = commit.title.lower()
    hits: list[str] = []
    points = 0.0
    for kw in keywords:
        kl = kw.lower()
        if kl not in message:
            continue
        points += w.method_message if looks_like_method(kw) else w.message
        if kl in title:
            points += w.title
        hits.append(kw)
    if hits:
        tally.add(points, "message_match", f"commit message mentions {_join(hits)}")


def _score_category(commit_text: str, category: ErrorCategory, w: ScoreWeights, tally: _Tally) -> None:
    hits = [k for k in CATEGORY_KEYWORDS[category] if k in commit_text]
    if hits:
        tally.add(
            w.category_keyword * len(hits),
            "category_keywords",
            f"{category.value} keywords ({_join(hits)})",
        )


def _score_patterns(commit: Commit, w: ScoreWeights, tally: _Tally) -> bool:
    risky = [name for name, pattern in RISK_PATTERNS if pattern.search(commit.message)]
    if risky:
        tally.add(w.risky_change, "risky_change", f"risky change ({_join(risky)})")
    if any(p.search(commit.message) for p in FIX_PATTERNS):
        tally.add(w.fix_intent, "fix_intent", "fix-intent message")
    return bool(risky)


def _score_shared_terms(commit_text: str, error_text: str, w: ScoreWeights, tally: _Tally) -> None:
    shared = [t for t in SHARED_ERROR_TERMS if t in commit_text and t in error_text]
    if shared:
        tally.add(w.shared_term * len(shared), "shared_terms", f"shared error terms ({_join(shared)})")


def _score_recency(commit: Commit, now: datetime, w: ScoreWeights, tally: _Tally) -> None:
    if commit.date is None:
        return
    days = age_in_days(commit.date, now=now)
    if days <= 1:
        tally.add(w.recent_1d, "recent_timing", "committed within 1 day")
    elif days <= 3:
        tally.add(w.recent_3d, "recent_timing", "committed within 3 days")
    elif days <= 7:
        tally.add(w.recent_7d, "recent_timing", "committed within 7 days")


def score_commit(
    commit: Commit,
    keywords: Iterable[str],
    context: ErrorContext,
    *,
    now: datetime | None = None,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    category: ErrorCategory | None = None,
) -> ScoredCommit:
    """Score one commit against the error keywords and context."""
    now = now or datetime.now(UTC)
    kws = sorted(set(keywords))
    category = category or classify_error(context)
    commit_text = f"{commit.message} {' '.join(commit.changed_files)}".lower()
    error_text = f"{context.exception_type or ''} {context.error_text}".lower()

    tally = _Tally()
    _score_files(commit, kws, weights, tally)
    _score_message(commit, kws, weights, tally)
    _score_category(commit_text, category, weights, tally)
    risky = _score_patterns(commit, weights, tally)
    _score_shared_terms(commit_text, error_text, weights, tally)
    _score_recency(commit, now, weights, tally)

    if risky:
        risk = RollbackRisk.HIGH
    elif "file_overlap" in tally.factors:
        risk = RollbackRisk.MEDIUM
    else:
        risk = RollbackRisk.LOW

    return ScoredCommit(
        commit=commit,
        relevance_score=tally.points,
        reasoning="; ".join(tally.reasons) or "No matching signals",
        rollback_risk=risk,
        key_factors=tuple(tally.factors),
    )


def rank_commits(
    commits: Iterable[Commit],
    keywords: Iterable[str],
    context: ErrorContext,
    *,
    now: datetime | None = None,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> list[ScoredCommit]:
    """Score all commits, highest first; ties keep input order."""
    now = now or datetime.now(UTC)
    kws = frozenset(keywords)
    category = classify_error(context)
    scored = [score_commit(c, kws, context, now=now, weights=weights, category=category) for c in commits]
    return sorted(scored, key=lambda s: s.relevance_score, reverse=True)
