"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def triage_production_error(
        error_message: str,
        service_name: str = "",
        environment: str = "",
        repository: str = "",
        lookback_days: int = 7,
    ) -> list[dict[str, Any]]:
        """Build a prompt for triaging one production error against recent commits."""
        call_lines = ["- error_message: (the error below)"]
        if service_name:
            call_lines.append(f"- service_name: {service_name}")
        if environment:
            call_lines.append(f"- environment: {environment}")
        if repository:
            call_lines.append(f"- repository: {repository}")
        call_lines.append(f"- lookback_days: {lookback_days}")
        call_block = "\n".join(call_lines)
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior incident triage assistant for backend services. "
                    "Relate production errors to recent code changes using tool output only. "
                    "Relevance scores are heuristics, not proof; say so when evidence is thin."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Triage this production error using triage_error. Follow this workflow:\n"
                    "- Call triage_error once with the parameters below.\n"
                    "- If the error text is a raw JSON log event, you may call "
                    "parse_error_event first to inspect the stack trace.\n"
                    "- If no suspected commits are returned, state that clearly and suggest "
                    "widening lookback_days (max 30) or checking the repository name.\n"
                    "- Do not invent commits, files or authors.\n\n"
                    "Call triage_error with:\n"
                    f"{call_block}\n\n"
                    "Return this structure:\n"
                    "1) Error summary (signature, count, first seen)\n"
                    "2) Top suspected commits (hash, score, rollback risk, reasoning)\n"
                    "3) Recommendation: rollback, hotfix, or investigate further\n"
                    "4) Draft ticket (use the returned ticket summary and description)\n\n"
                    f"ERROR:\n{error_message}\n"
                ),
            },
        ]
