"""
Conversation session manager for recruitment chat.

Holds a local mirror of one backend chat session plus everything derived
from it client-side: search history, a bounded query cache and running
metrics, and the job description attached to the session, if any. Instances
are independent; build one per tab / user / test.
"""

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

from .api_client import ResumeApiClient, ResumeFile
from .cache import QueryCache, make_cache_key
from .config import QUERY_CACHE_SIZE, SEARCH_HISTORY_LIMIT
from .diagnostics import OPTIMIZATION_FAILED, STALE_RESULT_DISCARDED, Diagnostics
from .errors import SessionError
from .query_analysis import (
    QueryAnalyzer,
    QueryValidation,
    blend_quality_score,
    confidence_to_score,
    extract_skills_from_query,
)
from .schemas import (
    ChatSearchRequest,
    ChatSearchResponse,
    ChatSession,
    FollowUpContext,
    FollowUpResponse,
    JDFollowUpResponse,
    JDSearchRequest,
    JDSearchResponse,
    JDSearchResultsResponse,
    JDUploadResponse,
    QueryAnalysis,
    QueryOptimization,
    SearchMatch,
    SessionList,
    SessionSearchRequest,
    SessionSearchResponse,
)

logger = logging.getLogger(__name__)

FOLLOW_UP_CONTEXT_SIZE = 3
RECENT_SKILL_WINDOW = 5

FOLLOW_UP_PHRASES = [
    "why were these selected",
    "what are their strengths",
    "compare these candidates",
    "what are their experience levels",
    "what are their technical skills",
    "why is",
    "who has the most",
    "which candidate",
]

PRIORITY_SKILLS = ["Python", "JavaScript", "React", "Node.js", "AWS", "Docker", "Kubernetes"]
MAX_DISPLAY_SKILLS = 8

MATCH_GRADES = [(0.95, "A+"), (0.85, "A"), (0.75, "B+"), (0.65, "B"), (0.55, "C+")]

BASE_CONVERSATION_STARTERS = [
    {
        "title": "Python + AI Experts",
        "query": "Find senior Python developers with machine learning and AI experience",
        "description": "ML/AI specialists with Python expertise",
    },
    {
        "title": "Full-Stack React Leaders",
        "query": "Search for senior React developers with full-stack and leadership experience",
        "description": "React experts with team leadership skills",
    },
    {
        "title": "Cloud Architecture Specialists",
        "query": "Find cloud architects with AWS, Azure, or GCP experience",
        "description": "Senior cloud infrastructure experts",
    },
    {
        "title": "Mobile App Developers",
        "query": "Search for mobile developers with React Native or Flutter experience",
        "description": "Cross-platform mobile specialists",
    },
]


@dataclass
class SearchHistoryEntry:
    query: str
    results: list[SearchMatch]
    timestamp: datetime
    ui_components: dict[str, Any] | None = None
    conversation_flow: Any = None
    quick_actions: list[Any] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionMetrics:
    total_searches: int = 0
    total_candidates_found: int = 0
    average_response_time: float = 0.0  # ms
    query_quality_score: float = 0.0
    most_searched_skills: list[str] = field(default_factory=list)
    session_duration: float = 0.0  # seconds


@dataclass
class SearchInsights:
    total_searches: int = 0
    unique_queries: int = 0
    average_results_per_search: float = 0.0
    top_skills_searched: list[str] = field(default_factory=list)
    search_efficiency: float = 0.0
    time_range: tuple[datetime, datetime] | None = None


def calculate_match_grade(score: float) -> str:
    for threshold, grade in MATCH_GRADES:
        if score >= threshold:
            return grade
    return "C"


def prioritize_skills(skills: list[str]) -> list[str]:
    def is_priority(skill: str) -> bool:
        return any(p.lower() in skill.lower() for p in PRIORITY_SKILLS)

    ordered = [s for s in skills if is_priority(s)] + [s for s in skills if not is_priority(s)]
    return ordered[:MAX_DISPLAY_SKILLS]


def experience_level_from_summary(summary: str) -> str:
    summary = summary.lower()
    if any(w in summary for w in ("lead", "principal", "architect")):
        return "Lead"
    if "senior" in summary or "sr." in summary:
        return "Senior"
    if "junior" in summary or "jr." in summary:
        return "Junior"
    return "Mid"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    # Naive backend timestamps are UTC
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _top_skills(queries: list[str], limit: int) -> list[str]:
    counts = Counter(skill for q in queries for skill in extract_skills_from_query(q))
    return [skill for skill, _ in counts.most_common(limit)]


def is_follow_up_question(message: str) -> bool:
    lowered = message.lower()
    return any(phrase in lowered for phrase in FOLLOW_UP_PHRASES)


class ChatSessionManager:
    def __init__(
        self,
        client: ResumeApiClient,
        *,
        analyzer: QueryAnalyzer | None = None,
        diagnostics: Diagnostics | None = None,
        cache_size: int = QUERY_CACHE_SIZE,
        history_limit: int = SEARCH_HISTORY_LIMIT,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.client = client
        self.diagnostics = diagnostics or Diagnostics()
        self.analyzer = analyzer or QueryAnalyzer(client, self.diagnostics)
        self._clock = clock

        self._session: ChatSession | None = None
        self._history: deque[SearchHistoryEntry] = deque(maxlen=history_limit)
        self._cache: QueryCache[SessionSearchResponse] = QueryCache(cache_size)
        self._metrics = SessionMetrics()
        self._started_at = clock()
        self._job_description: JDUploadResponse | None = None

    # ── Session lifecycle ──────────────────────────────────────────────────

    @property
    def current_session(self) -> ChatSession | None:
        return self._session

    @property
    def job_description(self) -> JDUploadResponse | None:
        return self._job_description

    def _require_session(self) -> ChatSession:
        if self._session is None:
            raise SessionError("No active session")
        return self._session

    def _still_active(self, session: ChatSession, operation: str) -> bool:
        """False (and recorded) when another session was created or loaded mid-call."""
        if self._session is session:
            return True
        self.diagnostics.record(
            STALE_RESULT_DISCARDED,
            f"Session changed during {operation}, result not recorded",
            session_id=session.id,
            current_session=self._session.id if self._session else None,
        )
        return False

    async def create_session(self, name: str | None = None, user_id: str = "anonymous") -> ChatSession:
        envelope = await self.client.create_session(name or self._generate_session_name(), user_id)
        if not envelope.success:
            raise SessionError("Failed to create session")

        self._session = envelope.session
        self._history.clear()
        self._cache.clear()
        self._job_description = None
        self._reset_metrics()
        logger.info("Created session %s (%s)", envelope.session.id, envelope.session.title)
        return envelope.session

    async def load_session(self, session_id: str) -> ChatSession:
        envelope = await self.client.get_session(session_id)
        if not envelope.success:
            raise SessionError("Failed to load session")

        self._session = envelope.session
        self._cache.clear()
        self._job_description = None
        self._restore_session_context()
        logger.info("Loaded session %s with %d messages", session_id, len(envelope.session.messages))
        return envelope.session

    async def switch_session(self, session_id: str) -> ChatSession:
        return await self.load_session(session_id)

    async def list_sessions(self, limit: int = 50, skip: int = 0, active_only: bool = True) -> SessionList:
        return await self.client.list_sessions(limit=limit, skip=skip, active_only=active_only)

    async def delete_session(self, session_id: str) -> None:
        await self.client.delete_session(session_id)
        if self._session is not None and self._session.id == session_id:
            self._session = None
            self._history.clear()
            self._cache.clear()
            self._job_description = None

    def _restore_session_context(self) -> None:
        self._history.clear()
        for message in self._session.messages:
            if message.type == "user":
                self._history.append(SearchHistoryEntry(
                    query=message.content,
                    results=[],
                    timestamp=_as_utc(message.timestamp) if message.timestamp else _utcnow(),
                    metadata={"restored": True},
                ))

        context = self._session.context
        if context.get("jd_uploaded") and context.get("jd_id"):
            self._job_description = JDUploadResponse(
                job_description_id=context["jd_id"],
                file_name=context.get("jd_filename") or "",
                session_id=self._session.id,
            )

    # ── Search ─────────────────────────────────────────────────────────────

    async def intelligent_search(
        self,
        message: str,
        top_k: int = 10,
        auto_optimize: bool = True,
        cache_results: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> SessionSearchResponse:
        session = self._require_session()
        t0 = self._clock()

        cache_key = make_cache_key(message, top_k, filters)
        if cache_results:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info("Returning cached results for %r", message)
                return cached

        optimized = message
        if auto_optimize:
            optimized = await self._optimized_message(message)

        try:
            response = await self.client.search_in_session(
                session.id,
                SessionSearchRequest(message=optimized, top_k=top_k, filters=filters or {}),
            )
        except Exception as e:
            logger.error("Intelligent search failed: %s", e)
            raise

        response_time = (self._clock() - t0) * 1000
        if not self._still_active(session, "search"):
            return response

        self._add_to_history(SearchHistoryEntry(
            query=message,
            results=list(response.matches),
            timestamp=_utcnow(),
            ui_components=response.ui_components,
            conversation_flow=response.conversation_flow,
            quick_actions=list(response.quick_actions),
            metadata={
                "response_time": response_time,
                "optimized": optimized != message,
                "original_query": message,
                "optimized_query": optimized,
            },
        ))
        self._update_metrics(response, response_time)

        if cache_results:
            self._cache.set(cache_key, response)
        return response

    async def _optimized_message(self, message: str) -> str:
        try:
            optimization = await self.analyzer.optimize(message)
        except Exception as e:
            self.diagnostics.record(OPTIMIZATION_FAILED, "Query optimization failed, using original", e)
            return message

        for alternative in optimization.enhanced_alternatives:
            if alternative.query.strip():
                logger.info("Query optimized: %r -> %r", message, alternative.query)
                return alternative.query
        return message

    async def standalone_search(self, request: ChatSearchRequest) -> ChatSearchResponse:
        """Chat search outside any session; still counts towards metrics."""
        t0 = self._clock()
        try:
            response = await self.client.chat_search(request)
        except Exception as e:
            logger.error("Standalone search failed: %s", e)
            raise
        self._update_metrics(response, (self._clock() - t0) * 1000)
        return response

    async def ask_follow_up(self, question: str) -> FollowUpResponse:
        session = self._require_session()
        context = self._build_follow_up_context()

        response = await self.client.ask_follow_up(session.id, question, context)
        if not self._still_active(session, "follow-up"):
            return response

        self._add_to_history(SearchHistoryEntry(
            query=f"Follow-up: {question}",
            results=[],
            timestamp=_utcnow(),
            metadata={"type": "follow_up", "context": context.model_dump()},
        ))
        return response

    def _build_follow_up_context(self) -> FollowUpContext:
        recent = list(self._history)[-FOLLOW_UP_CONTEXT_SIZE:]
        return FollowUpContext(
            last_search=recent[-1].query if recent else None,
            candidates=[
                r.extracted_info.name or r.file_name
                for entry in recent
                for r in entry.results
            ],
        )

    # ── Job descriptions ───────────────────────────────────────────────────

    @property
    def has_job_description(self) -> bool:
        return self._job_description is not None

    async def upload_job_description(self, file: ResumeFile) -> JDUploadResponse:
        """Attach a job description file to the active session."""
        session = self._require_session()
        response = await self.client.upload_job_description(session.id, file)
        if not self._still_active(session, "job description upload"):
            return response
        self._job_description = response
        logger.info("Job description %s attached to session %s", response.file_name, session.id)
        return response

    async def search_with_job_description(
        self, top_k: int = 10, filters: dict[str, Any] | None = None
    ) -> JDSearchResponse:
        session = self._require_session()
        t0 = self._clock()
        try:
            response = await self.client.search_with_job_description(
                JDSearchRequest(session_id=session.id, top_k=top_k, filters=filters or {})
            )
        except Exception as e:
            logger.error("Job description search failed: %s", e)
            raise

        response_time = (self._clock() - t0) * 1000
        if not self._still_active(session, "job description search"):
            return response

        label = self._job_description.file_name if self._job_description else response.job_description_id
        self._add_to_history(SearchHistoryEntry(
            query=f"Job description: {label or 'uploaded file'}",
            results=list(response.matches),
            timestamp=_utcnow(),
            metadata={
                "type": "job_description",
                "job_description_id": response.job_description_id,
                "response_time": response_time,
            },
        ))
        self._update_metrics(response, response_time)
        return response

    async def ask_jd_follow_up(self, question: str) -> JDFollowUpResponse:
        session = self._require_session()
        response = await self.client.ask_jd_follow_up(session.id, question)
        if not self._still_active(session, "job description follow-up"):
            return response

        self._add_to_history(SearchHistoryEntry(
            query=f"Follow-up: {question}",
            results=[],
            timestamp=_utcnow(),
            metadata={"type": "jd_follow_up", "candidates_analyzed": response.candidates_analyzed},
        ))
        return response

    async def get_jd_search_results(self) -> JDSearchResultsResponse:
        session = self._require_session()
        return await self.client.get_jd_search_results(session.id)

    async def delete_job_description(self) -> None:
        session = self._require_session()
        await self.client.delete_job_description(session.id)
        if self._session is session:
            self._job_description = None

    async def send_message(self, message: str, top_k: int = 10):
        """Route one chat message the way the recruiter chat does.

        Questions about earlier results go to a follow-up endpoint; anything
        else is a search. Sessions with a job description use the JD variants.
        """
        self._require_session()
        if is_follow_up_question(message) and self._history:
            if self.has_job_description:
                return await self.ask_jd_follow_up(message)
            return await self.ask_follow_up(message)
        if self.has_job_description:
            return await self.search_with_job_description(top_k=top_k)
        return await self.intelligent_search(message, top_k=top_k)

    # ── Query analysis ─────────────────────────────────────────────────────

    async def analyze_query(self, message: str) -> QueryAnalysis:
        return await self.analyzer.analyze(message)

    async def optimize_query(self, query: str) -> QueryOptimization:
        return await self.analyzer.optimize(query)

    async def validate_query_realtime(self, query: str) -> QueryValidation:
        return await self.analyzer.validate_realtime(query)

    # ── History & metrics ──────────────────────────────────────────────────

    def _add_to_history(self, entry: SearchHistoryEntry) -> None:
        # deque(maxlen) evicts the oldest entry once the cap is reached
        self._history.append(entry)

    def _update_metrics(
        self,
        response: SessionSearchResponse | ChatSearchResponse | JDSearchResponse,
        response_time: float,
    ) -> None:
        m = self._metrics
        m.total_searches += 1
        m.total_candidates_found += response.total_results
        m.average_response_time = (
            m.average_response_time * (m.total_searches - 1) + response_time
        ) / m.total_searches

        metadata = getattr(response, "response_metadata", None)
        if metadata is not None and metadata.confidence_level:
            m.query_quality_score = blend_quality_score(
                m.query_quality_score, confidence_to_score(metadata.confidence_level)
            )
        m.most_searched_skills = self._recently_searched_skills()

    def _reset_metrics(self) -> None:
        self._metrics = SessionMetrics()
        self._started_at = self._clock()

    def _recently_searched_skills(self) -> list[str]:
        recent = [e.query for e in list(self._history)[-RECENT_SKILL_WINDOW:]]
        return _top_skills(recent, RECENT_SKILL_WINDOW)

    def get_session_metrics(self) -> SessionMetrics:
        return replace(
            self._metrics,
            most_searched_skills=list(self._metrics.most_searched_skills),
            session_duration=self._clock() - self._started_at,
        )

    def get_search_history(self) -> list[SearchHistoryEntry]:
        return list(self._history)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def get_search_insights(self) -> SearchInsights:
        history = list(self._history)
        if not history:
            return SearchInsights()

        unique_queries = len({h.query.lower() for h in history})
        average_results = sum(len(h.results) for h in history) / len(history)
        timestamps = [h.timestamp for h in history]

        return SearchInsights(
            total_searches=len(history),
            unique_queries=unique_queries,
            average_results_per_search=average_results,
            top_skills_searched=_top_skills([h.query for h in history], 10),
            search_efficiency=average_results / max(unique_queries, 1),
            time_range=(min(timestamps), max(timestamps)),
        )

    # ── UI helpers ─────────────────────────────────────────────────────────

    def generate_conversation_starters(self) -> list[dict[str, str]]:
        starters = [dict(s) for s in BASE_CONVERSATION_STARTERS]
        recent_skills = self._recently_searched_skills()
        if recent_skills:
            starters.insert(0, {
                "title": f"More {recent_skills[0]} Experts",
                "query": f"Find more professionals with {', '.join(recent_skills[:3])} experience",
                "description": f"Continue searching in {recent_skills[0]} domain",
            })
        return starters

    def process_candidate_cards(self, cards: list[dict[str, Any]]) -> list[dict[str, Any]]:
        processed = []
        for card in cards:
            name = card.get("name")
            processed.append({
                **card,
                "formatted_skills": prioritize_skills(card.get("skills") or []),
                "match_grade": calculate_match_grade(card.get("score") or 0.0),
                "experience_level": experience_level_from_summary(card.get("experience_summary") or ""),
                "contactable": bool(name) and "resume" not in name and "cv" not in name,
            })
        return processed

    @staticmethod
    def _generate_session_name() -> str:
        return f"Recruitment Search - {datetime.now().strftime('%b %d, %I:%M %p')}"
