"""
Adapter over the backend's query analysis and optimization endpoints.

Most of this is pass-through. The local pieces are the real-time validation
fast path (no round trip for very short input), confidence bucketing, and the
skill keyword scan used for session insights.
"""

import logging
from dataclasses import dataclass, field

from .api_client import ResumeApiClient
from .diagnostics import VALIDATION_FAILED, Diagnostics
from .schemas import QueryAnalysis, QueryOptimization

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3
VALIDITY_THRESHOLD = 0.6

CONFIDENCE_SCORES = {"low": 0.3, "medium": 0.6, "high": 0.9}
DEFAULT_CONFIDENCE_SCORE = 0.5

COMMON_SKILLS = [
    "Python", "JavaScript", "React", "Node.js", "Java", "C++", "C#",
    "PHP", "Ruby", "Go", "Rust", "TypeScript", "Swift", "Kotlin",
    "AWS", "Azure", "GCP", "Docker", "Kubernetes", "Jenkins",
    "MongoDB", "PostgreSQL", "MySQL", "Redis", "Elasticsearch",
    "Django", "Flask", "Express", "Spring", "Rails",
    "Machine Learning", "AI", "Deep Learning", "Data Science",
    "DevOps", "CI/CD", "Microservices", "API", "REST", "GraphQL",
]


@dataclass
class QueryValidation:
    is_valid: bool
    score: float
    suggestions: list[str] = field(default_factory=list)
    confidence: float = 0.0


def confidence_to_score(level: str | None) -> float:
    return CONFIDENCE_SCORES.get((level or "").lower(), DEFAULT_CONFIDENCE_SCORE)


def blend_quality_score(current: float, sample: float) -> float:
    """Two-point moving average: each new sample weighs as much as all history."""
    return (current + sample) / 2


def extract_skills_from_query(query: str) -> list[str]:
    lowered = query.lower()
    return [s for s in COMMON_SKILLS if s.lower() in lowered]


class QueryAnalyzer:
    def __init__(self, client: ResumeApiClient, diagnostics: Diagnostics | None = None):
        self.client = client
        self.diagnostics = diagnostics or Diagnostics()

    async def analyze(self, message: str) -> QueryAnalysis:
        try:
            return await self.client.analyze_query(message)
        except Exception:
            logger.error("Query analysis failed for %r", message[:80])
            raise

    async def optimize(self, query: str) -> QueryOptimization:
        try:
            return await self.client.optimize_query(query)
        except Exception:
            logger.error("Query optimization failed for %r", query[:80])
            raise

    async def validate_realtime(self, query: str) -> QueryValidation:
        """Score a query as the user types. Never raises."""
        if len(query) < MIN_QUERY_LENGTH:
            return QueryValidation(
                is_valid=False,
                score=0.0,
                suggestions=[f"Type at least {MIN_QUERY_LENGTH} characters"],
                confidence=0.0,
            )

        try:
            analysis = await self.analyze(query)
            if analysis.query_quality is None:
                raise ValueError("analysis response carries no query_quality")
        except Exception as e:
            self.diagnostics.record(VALIDATION_FAILED, "Real-time validation unavailable", e, query=query)
            # The UI must never block on analysis errors
            return QueryValidation(is_valid=True, score=0.5, suggestions=[], confidence=0.5)

        score = analysis.query_quality.score
        confidence = (
            analysis.intelligence_analysis.intent_confidence
            if analysis.intelligence_analysis
            else 0.0
        )
        return QueryValidation(
            is_valid=score >= VALIDITY_THRESHOLD,
            score=score,
            suggestions=list(analysis.optimization_tips),
            confidence=confidence,
        )
