"""Completion-service access.

Sends a system/user prompt pair to Gemini and validates the JSON reply
against a pydantic schema. Callers get a Result, never an exception.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel

from ..errors import CollaboratorUnavailable
from ..result import Err, Ok, Result
from .models import CompletionConfig, CompletionRequest
from .redaction import redact_text

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _call_gemini_json(
    request: CompletionRequest,
    response_model: type[M],
    *,
    cfg: CompletionConfig,
) -> M:
    """Call Gemini and validate the response against the schema."""
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise CollaboratorUnavailable("completion", "Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")

    try:
        from google import genai
    except ImportError as e:  # pragma: no cover
        raise CollaboratorUnavailable(
            "completion",
            "google-genai is required for completion strategies. Install with: pip install '.[ai]'",
        ) from e

    client = genai.Client(api_key=api_key)
    schema = response_model.model_json_schema()

    def attempt() -> M:
        resp = client.models.generate_content(
            model=cfg.model,
            contents=request.user_prompt,
            config={
                "system_instruction": request.system_prompt,
                "response_mime_type": "application/json",
                "response_json_schema": schema,
                "temperature": cfg.temperature,
            },
        )
        return response_model.model_validate_json(resp.text)

    return _with_retries(attempt, cfg)


def _with_retries(
    call: Callable[[], M],
    cfg: CompletionConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> M:
    """Retry with exponential backoff, stopping early when ``cfg.budget_s`` would be exceeded.

    Runs in a worker thread that an awaiting ``wait_for`` cannot cancel, so the
    budget is what stops it after the caller has given up.
    """
    deadline = clock() + cfg.budget_s if cfg.budget_s is not None else None
    last_err: Exception | None = None
    attempts = 0
    for attempts in range(1, cfg.max_retries + 1):
        try:
            return call()
        except Exception as e:
            last_err = e
            if attempts >= cfg.max_retries:
                break
            sleep_s = min(8, 2 ** (attempts - 1))
            if deadline is not None and clock() + sleep_s >= deadline:
                logger.warning("Gemini call failed (attempt %s); time budget spent: %s", attempts, e)
                break
            logger.warning("Gemini call failed (attempt %s/%s): %s", attempts, cfg.max_retries, e)
            sleep(sleep_s)

    raise CollaboratorUnavailable(
        "completion", f"Gemini call failed after {attempts} attempts: {last_err}"
    ) from last_err


async def complete_json(
    request: CompletionRequest,
    response_model: type[M],
    *,
    cfg: CompletionConfig | None = None,
) -> Result[M]:
    """Run the completion call off the event loop; failures become Err."""
    if cfg is None:
        cfg = CompletionConfig()
    if cfg.redact:
        request = CompletionRequest(
            system_prompt=request.system_prompt,
            user_prompt=redact_text(request.user_prompt),
        )

    try:
        value = await asyncio.to_thread(_call_gemini_json, request, response_model, cfg=cfg)
    except Exception as e:
        logger.warning("Completion request failed: %s", e)
        return Err(e)
    return Ok(value)
