"""Triage configuration and environment overrides."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from enum import Enum

REPOSITORY_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
MIN_LOOKBACK_DAYS = 1
MAX_LOOKBACK_DAYS = 30


class DedupFailurePolicy(str, Enum):
    """What to do when the dedup lookup itself fails."""

    SKIP = "skip"  # treat as already processed
    PROCESS = "process"  # treat as new


@dataclass(frozen=True, slots=True)
class TriageConfig:
    repository: str | None = None
    lookback_days: int = 7
    project_key: str | None = None
    issue_type: str = "Bug"
    create_tickets: bool = True
    dedup_failure_policy: DedupFailurePolicy = DedupFailurePolicy.SKIP
    max_concurrent_groups: int = 1
    call_timeout_s: float = 30.0
    max_suspected_commits: int = 5
    use_completion_scoring: bool = False


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_int(name: str, *, lo: int, hi: int | None = None) -> int | None:
    raw = _env(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < lo or (hi is not None and value > hi):
        bound = f"between {lo} and {hi}" if hi is not None else f">= {lo}"
        raise ValueError(f"{name} must be {bound}")
    return value


def resolve_triage_config(cfg: TriageConfig | None = None) -> TriageConfig:
    """Return config with optional env overrides applied."""
    if cfg is None:
        cfg = TriageConfig()
    changes: dict[str, object] = {}

    repo = _env("ERROR_TRIAGE_REPOSITORY")
    if repo is not None:
        if not REPOSITORY_RE.match(repo):
            raise ValueError("ERROR_TRIAGE_REPOSITORY must look like owner/name")
        changes["repository"] = repo

    lookback = _env_int("ERROR_TRIAGE_LOOKBACK_DAYS", lo=MIN_LOOKBACK_DAYS, hi=MAX_LOOKBACK_DAYS)
    if lookback is not None:
        changes["lookback_days"] = lookback

    project = _env("ERROR_TRIAGE_PROJECT_KEY")
    if project is not None:
        changes["project_key"] = project

    policy = _env("ERROR_TRIAGE_DEDUP_ON_FAILURE")
    if policy is not None:
        try:
            changes["dedup_failure_policy"] = DedupFailurePolicy(policy.lower())
        except ValueError as exc:
            raise ValueError("ERROR_TRIAGE_DEDUP_ON_FAILURE must be 'skip' or 'process'") from exc

    concurrency = _env_int("ERROR_TRIAGE_MAX_CONCURRENCY", lo=1)
    if concurrency is not None:
        changes["max_concurrent_groups"] = concurrency

    timeout = _env("ERROR_TRIAGE_CALL_TIMEOUT")
    if timeout is not None:
        try:
            value = float(timeout)
        except ValueError as exc:
            raise ValueError("ERROR_TRIAGE_CALL_TIMEOUT must be a number") from exc
        if value <= 0:
            raise ValueError("ERROR_TRIAGE_CALL_TIMEOUT must be > 0")
        changes["call_timeout_s"] = value

    if not changes:
        return cfg
    return replace(cfg, **changes)
