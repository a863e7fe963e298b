"""Pydantic request/response schemas for the shortlisting API."""

from typing import Any, Literal

from pydantic import BaseModel, Field


# ── Requests ───────────────────────────────────────────────────────────────

class WorkspaceRequest(BaseModel):
    workspace_id: str | None = None


class ShortlistRequest(WorkspaceRequest):
    query: str = Field(min_length=1)
    method: Literal["vector", "chat", "hybrid"] | None = None
    top_k: int | None = Field(default=None, ge=1, le=100)
    filters: dict[str, Any] = {}
    include_analysis: bool | None = None


class AnalyzeRequest(WorkspaceRequest):
    query: str = Field(min_length=1)


class ValidateRequest(WorkspaceRequest):
    query: str


class CreateSessionRequest(WorkspaceRequest):
    name: str | None = None


class SessionSearchBody(WorkspaceRequest):
    message: str = Field(min_length=1)
    top_k: int = Field(default=10, ge=1, le=100)
    auto_optimize: bool = True
    cache_results: bool = True
    filters: dict[str, Any] = {}


class FollowUpBody(WorkspaceRequest):
    question: str = Field(min_length=1)


class JobDescriptionSearchBody(WorkspaceRequest):
    top_k: int = Field(default=10, ge=1, le=100)
    filters: dict[str, Any] = {}


class MessageBody(WorkspaceRequest):
    message: str = Field(min_length=1)
    top_k: int = Field(default=10, ge=1, le=100)


class ClearWorkspaceRequest(BaseModel):
    workspace_id: str


# ── Responses ──────────────────────────────────────────────────────────────

class ValidationResponse(BaseModel):
    is_valid: bool
    score: float
    suggestions: list[str]
    confidence: float
    workspace_id: str


class MetricsResponse(BaseModel):
    metrics: dict[str, Any]
    insights: dict[str, Any]
    diagnostics: dict[str, int]
    workspace_id: str
