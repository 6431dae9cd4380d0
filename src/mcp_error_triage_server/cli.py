from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from mcp_error_triage_server.core.config import (
    MAX_LOOKBACK_DAYS,
    MIN_LOOKBACK_DAYS,
    DedupFailurePolicy,
    TriageConfig,
    resolve_triage_config,
)
from mcp_error_triage_server.core.errors import ValidationError
from mcp_error_triage_server.core.orchestrator import TriageOrchestrator
from mcp_error_triage_server.core.state import JsonlStateStore, NullStateStore
from mcp_error_triage_server.integrations.github import GitHubSourceControl
from mcp_error_triage_server.tools.triage import summary_to_dict


def _lookback(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError("lookback days must be an integer") from e
    if not MIN_LOOKBACK_DAYS <= value <= MAX_LOOKBACK_DAYS:
        raise argparse.ArgumentTypeError(
            f"lookback days must be between {MIN_LOOKBACK_DAYS} and {MAX_LOOKBACK_DAYS}"
        )
    return value


def load_events(path: Path) -> list[dict[str, Any]]:
    """Read events from a JSON array, an {"events": [...]} object, or JSON lines."""
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    if isinstance(data, dict):
        data = data.get("events", data.get("results", []))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of events")
    return data


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    cfg = resolve_triage_config(TriageConfig(create_tickets=False))
    overrides: dict[str, Any] = {}
    if args.repo:
        overrides["repository"] = args.repo
    if args.lookback_days is not None:
        overrides["lookback_days"] = args.lookback_days
    if args.dedup_on_failure:
        overrides["dedup_failure_policy"] = DedupFailurePolicy(args.dedup_on_failure)
    if args.use_completion:
        overrides["use_completion_scoring"] = True
    if overrides:
        cfg = replace(cfg, **overrides)

    state = JsonlStateStore(args.state_file) if args.state_file else NullStateStore()
    if args.prune_days is not None and isinstance(state, JsonlStateStore):
        await state.prune(args.prune_days)

    github = GitHubSourceControl() if cfg.repository else None
    try:
        summary = await TriageOrchestrator(cfg, state_store=state, source_control=github).run(
            load_events(Path(args.events_path))
        )
    finally:
        if github is not None:
            await github.aclose()
    return summary_to_dict(summary)


def main() -> None:
    p = argparse.ArgumentParser(description="Group production errors and rank suspected commits.")
    p.add_argument("events_path", help="JSON file of error events")
    p.add_argument("--repo", default=None, help="GitHub repository as owner/name")
    p.add_argument("--lookback-days", type=_lookback, default=None, help="Commit lookback (1-30, default 7)")
    p.add_argument("--state-file", default=None, help="JSON-lines dedup state file")
    p.add_argument("--prune-days", type=int, default=None, help="Drop state records older than N days first")
    p.add_argument(
        "--dedup-on-failure",
        choices=[p.value for p in DedupFailurePolicy],
        default=None,
        help="When the dedup lookup fails: skip the group (default) or process it",
    )
    p.add_argument("--use-completion", action="store_true", help="Score commits with the completion service")
    p.add_argument("--json", action="store_true", help="Print the full summary as JSON")
    args = p.parse_args()

    try:
        result = asyncio.run(_run(args))
    except (ValidationError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    if args.json:
        print(json.dumps(result, indent=2))
        return

    for g in result["groups"]:
        suspects = (g.get("triage") or {}).get("suspectedCommits", [])
        top = suspects[0]["commit"]["hash"][:8] if suspects else "-"
        print(f"[{g['status']}] x{g['errorCount']} top={top} {g['signature'][:120]}")
    print(
        f"groups={result['totalGroups']} processed={result['processed']} "
        f"duplicates={result['skippedDuplicates']} failed={result['failed']} "
        f"events={result['totalEvents']}"
    )


if __name__ == "__main__":
    main()
