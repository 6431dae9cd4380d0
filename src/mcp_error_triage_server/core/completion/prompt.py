"""Prompt construction for completion-service strategies."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..models import Commit, DiagnosticRecord, ErrorContext
from ..time_window import age_in_days
from .models import CompletionRequest

PARSE_SYSTEM_PROMPT = (
    "You are a precise parser for .NET and JVM exception logs. "
    "Return ONLY valid JSON that matches the provided schema."
)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a code analysis engine. Your purpose is to determine the relevance "
    "of software commits to a given production error."
)


def build_parse_request(
    exception_text: str,
    *,
    message_template: str = "",
    source_context: str | None = None,
) -> CompletionRequest:
    """Build the extraction prompt for one exception."""
    user = (
        "Extract structured diagnostics from this exception.\n"
        "Rules:\n"
        "- exceptionType is the text of the first line before the first colon.\n"
        "- errorMessage is the rest of the first line, without surrounding quotes.\n"
        "- stackTrace lists application frames in the order they appear; "
        "skip System.* and Microsoft.* framework frames.\n"
        "- For async or lambda frames use the method name inside angle brackets.\n"
        "- line is null when the frame has no line number.\n"
        "- searchKeywords.files and .methods are the unique files/methods of stackTrace.\n"
        "- searchKeywords.context holds the short exception type name, the last segment "
        "of the source context, and any [XyzService] tag from the message template.\n\n"
        f"SOURCE CONTEXT: {source_context or '-'}\n"
        f"MESSAGE TEMPLATE: {message_template or '-'}\n"
        f"EXCEPTION:\n{exception_text}\n"
    )
    return CompletionRequest(system_prompt=PARSE_SYSTEM_PROMPT, user_prompt=user)


def format_error_context(context: ErrorContext, record: DiagnosticRecord | None = None) -> str:
    lines = [
        f"Error Type: {context.exception_type or '-'}",
        f"Error Message: {context.error_text}",
    ]
    if record is not None:
        lines = [
            f"Service: {record.service_name or '-'}",
            f"Environment: {record.environment or '-'}",
            *lines,
            f"Key Files in Stack Trace: {', '.join(f.file for f in record.stack_trace[:5])}",
            f"Key Methods in Stack Trace: {', '.join(f.method for f in record.stack_trace[:5])}",
            f"Error Timestamp: {record.timestamp.isoformat() if record.timestamp else '-'}",
            f"Context Keywords: {', '.join(record.search_keywords.context)}",
        ]
    return "\n".join(lines)


def format_commits(commits: Sequence[Commit], *, now: datetime) -> str:
    blocks: list[str] = []
    for i, c in enumerate(commits, start=1):
        age = f"{int(age_in_days(c.date, now=now))} days ago" if c.date else "unknown"
        blocks.append(
            f"{i}. Commit: {c.hash[:8]}\n"
            f"   Message: {c.title}\n"
            f"   Author: {c.author}\n"
            f"   Age: {age}\n"
            f"   Files Changed: {', '.join(c.changed_files) or 'N/A'}\n"
            f"   Pull Request: {c.pull_request_url or 'N/A'}"
        )
    return "\n\n".join(blocks)


def build_commit_analysis_request(
    context_text: str,
    commits: Sequence[Commit],
    *,
    now: datetime,
) -> CompletionRequest:
    """Build the commit relevance prompt."""
    user = (
        f"ERROR CONTEXT:\n{context_text}\n\n"
        f"RECENT COMMITS TO ANALYZE:\n{format_commits(commits, now=now)}\n\n"
        "Analyze EACH commit against the error context:\n"
        "1. File Overlap: files in the commit vs files in the stack trace.\n"
        "2. Functional Relevance: is the change semantically related to the failure?\n"
        "3. Timing: how close was the commit to the error's first appearance?\n"
        "4. Change Risk: refactor, dependency change, logic overhaul.\n\n"
        "Return ONLY valid JSON matching the schema. relevanceScore is an integer 0-100; "
        "rollbackRisk is HIGH, MEDIUM or LOW; keyFactors are short codes such as "
        "file_overlap or recent_timing. Use the 8-character commit hash shown above."
    )
    return CompletionRequest(system_prompt=ANALYSIS_SYSTEM_PROMPT, user_prompt=user)
