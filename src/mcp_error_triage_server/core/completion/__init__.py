"""Completion-service package."""

from __future__ import annotations

from .client import complete_json
from .models import (
    CommitAnalysisResponse,
    CommitAssessment,
    CompletionConfig,
    CompletionRequest,
    DiagnosticExtraction,
)
from .redaction import redact_text

__all__ = [
    "CommitAnalysisResponse",
    "CommitAssessment",
    "CompletionConfig",
    "CompletionRequest",
    "DiagnosticExtraction",
    "complete_json",
    "redact_text",
]
