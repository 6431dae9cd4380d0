"""Completion-service response schemas and configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FrameExtraction(_CamelModel):
    file: str
    method: str
    line: int | None = None


class KeywordExtraction(_CamelModel):
    files: list[str] = Field(default_factory=list)
    methods: list[str] = Field(default_factory=list)
    context: list[str] = Field(default_factory=list)


class DiagnosticExtraction(_CamelModel):
    """Target schema for completion-based exception parsing."""

    exception_type: str = Field(alias="exceptionType", description="Fully-qualified exception type.")
    error_message: str = Field(alias="errorMessage", description="Exception message without the type prefix.")
    stack_trace: list[FrameExtraction] = Field(
        default_factory=list,
        alias="stackTrace",
        description="Application frames in trace order.",
    )
    search_keywords: KeywordExtraction = Field(
        default_factory=KeywordExtraction,
        alias="searchKeywords",
    )


class CommitAssessment(_CamelModel):
    commit_hash: str = Field(alias="commitHash")
    relevance_score: int = Field(ge=0, le=100, alias="relevanceScore")
    reasoning: str = Field(description="Brief technical reasoning for the score.")
    rollback_risk: Literal["HIGH", "MEDIUM", "LOW"] = Field(alias="rollbackRisk")
    key_factors: list[str] = Field(default_factory=list, alias="keyFactors")


class CommitAnalysisResponse(_CamelModel):
    analysis: list[CommitAssessment] = Field(default_factory=list)
    summary: str = ""


@dataclass(frozen=True, slots=True)
class CompletionConfig:
    model: str = "gemini-2.5-flash-lite"
    temperature: float = 0.1
    max_retries: int = 3
    redact: bool = True
    max_prompt_commits: int = 50
    # Overall seconds for all attempts; no retry starts once it is spent.
    budget_s: float | None = None


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    system_prompt: str
    user_prompt: str
