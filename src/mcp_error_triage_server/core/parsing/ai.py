"""Completion-service parsing strategy with deterministic fallback."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..completion.client import complete_json
from ..completion.models import CompletionConfig, DiagnosticExtraction
from ..completion.prompt import build_parse_request
from ..models import DiagnosticRecord, SearchKeywords, StackFrame
from ..result import Err, Ok, Result, unwrap_or_else
from .envelope import RawEnvelope, decode_envelope
from .exception import ExceptionParser

logger = logging.getLogger(__name__)


def _to_record(env: RawEnvelope, ext: DiagnosticExtraction) -> DiagnosticRecord:
    frames = tuple(StackFrame(file=f.file, method=f.method, line=f.line) for f in ext.stack_trace)
    return DiagnosticRecord(
        service_name=env.service_name,
        environment=env.environment,
        timestamp=env.timestamp,
        error_message=ext.error_message,
        exception_type=ext.exception_type,
        stack_trace=frames,
        search_keywords=SearchKeywords(
            files=tuple(dict.fromkeys(ext.search_keywords.files or [f.file for f in frames])),
            methods=tuple(dict.fromkeys(ext.search_keywords.methods or [f.method for f in frames])),
            context=tuple(dict.fromkeys(ext.search_keywords.context)),
        ),
    )


async def extract_with_completion(
    env: RawEnvelope,
    *,
    cfg: CompletionConfig | None = None,
) -> Result[DiagnosticRecord]:
    """Primary strategy: ask the completion service for the record."""
    request = build_parse_request(
        env.exception_text,
        message_template=env.message_template,
        source_context=env.source_context,
    )
    result = await complete_json(request, DiagnosticExtraction, cfg=cfg)
    if isinstance(result, Err):
        return result
    if not result.value.exception_type:
        return Err(ValueError("completion returned an empty exceptionType"))
    return Ok(_to_record(env, result.value))


async def parse_event_with_completion(
    payload: str | bytes | Mapping[str, Any],
    *,
    cfg: CompletionConfig | None = None,
    parser: ExceptionParser | None = None,
) -> DiagnosticRecord:
    """Parse via the completion service, falling back to the deterministic parser.

    Envelope errors still raise MalformedPayload: neither strategy can run
    without the decoded payload.
    """
    env = decode_envelope(payload)
    parser = parser or ExceptionParser()

    def fallback(err: Exception) -> DiagnosticRecord:
        logger.warning("Completion parsing unavailable, using deterministic parser: %s", err)
        return parser.parse_envelope(env)

    return unwrap_or_else(await extract_with_completion(env, cfg=cfg), fallback)
