"""Pydantic schemas for every request and response body of the recruitment backend."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


# ── Requests ───────────────────────────────────────────────────────────────

class SearchRequest(BaseModel):
    query: str
    top_k: int = 10
    filters: dict[str, Any] = {}


class ChatSearchRequest(BaseModel):
    message: str
    top_k: int = 10
    filters: dict[str, Any] = {}


class SessionSearchRequest(BaseModel):
    message: str
    top_k: int = 10
    filters: dict[str, Any] = {}


class FollowUpContext(BaseModel):
    last_search: str | None = None
    candidates: list[str] = []


# ── Resumes ────────────────────────────────────────────────────────────────

class ExperienceEntry(BaseModel):
    description: str = ""
    extracted: bool = False


class ExtractedInfo(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] = []
    experience: list[ExperienceEntry] = []
    education: list[ExperienceEntry] = []
    summary: str | None = None

    @field_validator("experience", "education", mode="before")
    @classmethod
    def _accept_plain_strings(cls, value):
        if value is None:
            return []
        return [{"description": v} if isinstance(v, str) else v for v in value]

    @field_validator("skills", mode="before")
    @classmethod
    def _skills_or_empty(cls, value):
        return value or []


class SearchMatch(BaseModel):
    id: str
    file_name: str = ""
    score: float
    extracted_info: ExtractedInfo = Field(default_factory=ExtractedInfo)
    relevant_text: str | None = None

    @field_validator("extracted_info", mode="before")
    @classmethod
    def _info_or_empty(cls, value):
        return value or {}


class UploadResponse(BaseModel):
    message: str = ""
    uploaded_files: list[str] = []
    failed_files: list[str] = []
    errors: list[str] = []
    total_files: int = 0
    success: bool = True


class Resume(BaseModel):
    id: str
    file_name: str = ""
    file_type: str | None = None
    file_size: int | None = None
    upload_timestamp: datetime | None = None
    processed: bool = False
    extracted_info: ExtractedInfo | None = None
    has_vectors: bool = False
    vector_count: int = 0


class ResumeList(BaseModel):
    resumes: list[Resume] = []
    pagination: dict[str, Any] = {}
    summary: dict[str, Any] = {}


class DeleteResponse(BaseModel):
    message: str = ""
    success: bool = True
    resume_id: str | None = None
    session_id: str | None = None


class HealthStatus(BaseModel):
    status: str
    app_name: str | None = None
    version: str | None = None


# ── Search ─────────────────────────────────────────────────────────────────

class ConversationFlow(BaseModel):
    next_suggestions: list[str] = []
    follow_up_questions: list[str] = []
    refinement_options: list[str] = []
    flow_type: str | None = None


class QuickAction(BaseModel):
    label: str
    action: str
    target: str | None = None
    query: str | None = None


class ResponseMetadata(BaseModel):
    response_type: str | None = None
    confidence_level: str | None = None
    search_quality: dict[str, Any] = {}
    timestamp: str | None = None


class SearchResponse(BaseModel):
    query: str = ""
    matches: list[SearchMatch]
    total_results: int
    processing_time: float = 0.0
    success: bool = True


class ChatSearchResponse(BaseModel):
    message: str = ""
    response: str | None = None
    matches: list[SearchMatch]
    total_results: int
    processing_time: float = 0.0
    suggestions: list[str] = []
    session_id: str | None = None
    ui_components: dict[str, Any] | None = None
    conversation_flow: ConversationFlow | None = None
    quick_actions: list[QuickAction] = []
    response_metadata: ResponseMetadata | None = None


# ── Query analysis ─────────────────────────────────────────────────────────

class QueryIntent(BaseModel):
    type: str | None = None
    role: str | None = None
    skills_mentioned: list[str] = []
    experience_level: str | None = None
    technologies: list[str] = []


class QueryQuality(BaseModel):
    score: float
    level: str | None = None
    completeness: float | None = None


class IntelligenceAnalysis(BaseModel):
    query_type: str | None = None
    intent_confidence: float = 0.0
    technical_depth: str | None = None
    semantic_keywords: list[str] = []
    extracted_keywords: list[str] = []
    suggestions: list[str] = []


class QueryAnalysis(BaseModel):
    original_query: str = ""
    intent: QueryIntent = Field(default_factory=QueryIntent)
    keywords: list[str] = []
    suggestions: list[str] = []
    enhanced_query: str | None = None
    query_quality: QueryQuality | None = None
    optimization_tips: list[str] = []
    intelligence_analysis: IntelligenceAnalysis | None = None

    @field_validator("intent", mode="before")
    @classmethod
    def _intent_or_empty(cls, value):
        return value or {}


class EnhancedAlternative(BaseModel):
    query: str = ""
    improvement: str | None = None
    expected_improvement: str | None = None


class QueryOptimization(BaseModel):
    original_query: str = ""
    enhanced_alternatives: list[EnhancedAlternative] = []
    optimization_suggestions: list[str] = []
    optimization_tips: list[str] = []
    success: bool = True


# ── Chat sessions ──────────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    id: str
    type: str
    content: str
    timestamp: datetime | None = None
    metadata: dict[str, Any] | None = None


class ChatSession(BaseModel):
    id: str
    title: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    messages: list[ChatMessage] = []
    context: dict[str, Any] = {}
    is_active: bool = True


class SessionEnvelope(BaseModel):
    session: ChatSession
    success: bool = True
    message: str = ""


class SessionList(BaseModel):
    sessions: list[ChatSession] = []
    total: int = 0
    success: bool = True


class SessionSearchResponse(BaseModel):
    message: str = ""
    query: str = ""
    original_message: str = ""
    matches: list[SearchMatch]
    total_results: int
    success: bool = True
    session_id: str | None = None
    ui_components: dict[str, Any] | None = None
    conversation_flow: ConversationFlow | None = None
    quick_actions: list[QuickAction] = []
    response_metadata: ResponseMetadata | None = None


class FollowUpResponse(BaseModel):
    session_id: str | None = None
    question: str = ""
    answer: str = ""
    ui_components: dict[str, Any] | None = None
    conversation_flow: ConversationFlow | None = None
    quick_actions: list[QuickAction] = []
    response_metadata: ResponseMetadata | None = None
    success: bool = True


# ── Job descriptions ───────────────────────────────────────────────────────

class JDUploadResponse(BaseModel):
    message: str = ""
    job_description_id: str
    file_name: str = ""
    session_id: str
    extracted_text: str = ""
    success: bool = True


class JDSearchRequest(BaseModel):
    session_id: str
    top_k: int = 10
    filters: dict[str, Any] = {}


class JDSearchResponse(BaseModel):
    session_id: str
    job_description_id: str | None = None
    job_description_text: str = ""
    matches: list[SearchMatch]
    total_results: int
    processing_time: float = 0.0
    search_results_stored: bool = False
    success: bool = True


class JDFollowUpResponse(BaseModel):
    session_id: str | None = None
    question: str = ""
    answer: str
    candidates_analyzed: int = 0
    jd_filename: str | None = None
    success: bool = True


class JDSearchResults(BaseModel):
    jd_id: str
    jd_text: str = ""
    jd_filename: str = ""
    matches: list[SearchMatch]
    total_matches: int
    search_timestamp: datetime | None = None


class JDSearchResultsResponse(BaseModel):
    session_id: str
    search_results: JDSearchResults
    success: bool = True
