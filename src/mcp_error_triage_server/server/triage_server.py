"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: triage a batch of error events, parse one event, compute signatures
- Prompts: a guided production-error triage conversation

Run locally (stdio):
    python -m mcp_error_triage_server.server.triage_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_error_triage_server.prompts.registry import register_prompts
from mcp_error_triage_server.tools.triage import (
    error_signature_impl,
    extract_error_keywords_impl,
    parse_error_event_impl,
    triage_error_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure logging on stderr; stdout carries the stdio transport."""
    level_name = os.getenv("ERROR_TRIAGE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("error-triage", json_response=True)

register_prompts(mcp)


@mcp.tool()
async def triage_error(
    events: list[dict[str, Any]] | None = None,
    error_message: str | None = None,
    service_name: str | None = None,
    environment: str | None = None,
    repository: str | None = None,
    lookback_days: int | None = None,
    use_completion: bool = False,
) -> dict[str, Any]:
    """Group error events by signature and rank suspected commits per group.

    Parameters
    ----------
    events:
        Error events, each with a time and a message (Splunk-style `_time`,
        `Application` and `Environment` keys are accepted).
    error_message:
        A single error message or exception text, instead of events.
    service_name/environment:
        Used with error_message.
    repository:
        GitHub repository as owner/name. Without it no commits are fetched.
    lookback_days:
        How far back to fetch commits (1-30, default 7).
    use_completion:
        Score commits with the completion service (falls back to heuristics).

    Returns
    -------
    dict:
        Batch summary with one entry per signature group, including the
        rendered ticket summary and description. No ticket is created.
    """
    return await triage_error_impl(
        events=events,
        error_message=error_message,
        service_name=service_name,
        environment=environment,
        repository=repository,
        lookback_days=lookback_days,
        use_completion=use_completion,
    )


@mcp.tool()
async def parse_error_event(payload: str, use_completion: bool = False) -> dict[str, Any]:
    """Parse a raw log event (JSON envelope with an exception) into a diagnostic record."""
    return await parse_error_event_impl(payload=payload, use_completion=use_completion)


@mcp.tool()
def error_signature(messages: list[str]) -> dict[str, Any]:
    """Return the normalized grouping signature of each message."""
    return error_signature_impl(messages=messages)


@mcp.tool()
def extract_error_keywords(text: str) -> dict[str, Any]:
    """Return code-search keywords and the error category for free error text."""
    return extract_error_keywords_impl(text=text)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
