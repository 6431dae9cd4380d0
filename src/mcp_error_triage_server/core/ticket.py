"""Ticket text rendering."""

from __future__ import annotations

from .models import ScoredCommit, TriageData

SUMMARY_MAX_LEN = 255
SUMMARY_PREFIX = "[Auto-Triage]"


def build_ticket_summary(data: TriageData) -> str:
    first_line = data.error_message.strip().split("\n", 1)[0] or data.error_signature
    summary = f"{SUMMARY_PREFIX} {data.service_name} ({data.environment}): {first_line}"
    if len(summary) > SUMMARY_MAX_LEN:
        summary = summary[: SUMMARY_MAX_LEN - 3].rstrip() + "..."
    return summary


def _commit_row(rank: int, s: ScoredCommit) -> str:
    c = s.commit
    risk = s.rollback_risk.value if s.rollback_risk else "-"
    title = c.title.replace("|", "\\|")
    pr = f"[PR]({c.pull_request_url})" if c.pull_request_url else "-"
    return (
        f"| {rank} | `{c.hash[:8]}` | {title} | {c.author} | "
        f"{s.relevance_score:.0f} | {risk} | {pr} |"
    )


def build_ticket_description(data: TriageData) -> str:
    """Render the markdown body of a triage ticket."""
    first_seen = data.first_seen.isoformat() if data.first_seen else "unknown"
    lines = [
        "## Error",
        "",
        f"- **Service:** {data.service_name}",
        f"- **Environment:** {data.environment}",
        f"- **Occurrences:** {data.error_count}",
        f"- **First seen:** {first_seen}",
        f"- **Signature:** `{data.error_signature}`",
        "",
        "```",
        data.error_message,
        "```",
        "",
    ]

    d = data.deployment_info
    if d is not None:
        lines += [
            "## Deployment",
            "",
            f"- **Commit:** `{d.commit_hash}`",
            f"- **Version:** {d.version or '-'}",
            f"- **Deployed at:** {d.deployed_at.isoformat() if d.deployed_at else '-'}",
            "",
        ]

    lines += ["## Suspected commits", ""]
    if not data.suspected_commits:
        lines.append("No candidate commits matched this error.")
    else:
        lines += [
            "| # | Commit | Message | Author | Score | Rollback risk | PR |",
            "|---|---|---|---|---|---|---|",
        ]
        lines += [_commit_row(i, s) for i, s in enumerate(data.suspected_commits, start=1)]
        lines.append("")
        lines += [f"- `{s.commit.hash[:8]}`: {s.reasoning}" for s in data.suspected_commits]

    lines += [
        "",
        "_Scores rank commits by heuristic relevance; they are not proof of causation._",
    ]
    return "\n".join(lines)
