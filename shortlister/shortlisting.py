"""
Candidate shortlisting over the backend's search endpoints.

Three strategies:
  - vector: embedding similarity search, optionally on an analyzer-enhanced query
  - chat:   RAG search that also returns a natural-language summary
  - hybrid: vector + chat issued concurrently, merged by weighted score;
            falls back to vector-only if either side fails
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .api_client import ResumeApiClient
from .candidates import Candidate, format_candidates, to_candidate
from .diagnostics import ANALYSIS_FAILED, HYBRID_FALLBACK, Diagnostics
from .errors import ShortlistingError
from .ranking import HybridPolicy, combine_and_rank
from .schemas import ChatSearchRequest, QueryAnalysis, SearchRequest

logger = logging.getLogger(__name__)

METHODS = ("vector", "chat", "hybrid")


@dataclass(frozen=True)
class AnalysisSummary:
    intent: dict[str, Any]
    keywords: list[str]
    suggestions: list[str]
    enhanced_query: str | None

    @classmethod
    def from_analysis(cls, analysis: QueryAnalysis) -> "AnalysisSummary":
        return cls(
            intent=analysis.intent.model_dump(),
            keywords=list(analysis.keywords),
            suggestions=list(analysis.suggestions),
            enhanced_query=analysis.enhanced_query,
        )


@dataclass(frozen=True)
class ShortlistingResult:
    candidates: list[Candidate]
    total_results: int
    processing_time: float  # seconds
    query: str
    method: str
    analysis: AnalysisSummary | None = None
    summary: str | None = None


@dataclass(frozen=True)
class JobAnalysis:
    original_query: str
    intent: dict[str, Any]
    extracted_skills: list[str]
    suggestions: list[str]
    enhanced_query: str | None
    recommended_search_terms: list[str]


@dataclass
class JobRequirement:
    title: str
    description: str
    required_skills: list[str]
    experience_level: str
    preferred_skills: list[str] = field(default_factory=list)
    location: str | None = None
    salary: str | None = None

    def to_job_description(self) -> str:
        lines = [
            f"Position: {self.title}",
            "",
            f"Description: {self.description}",
            "",
            f"Required Skills: {', '.join(self.required_skills)}",
        ]
        if self.preferred_skills:
            lines.append(f"Preferred Skills: {', '.join(self.preferred_skills)}")
        lines.append("")
        lines.append(f"Experience Level: {self.experience_level}")
        if self.location:
            lines.append(f"Location: {self.location}")
        if self.salary:
            lines.append(f"Salary: {self.salary}")
        return "\n".join(lines).strip()


def _unique(items) -> list[str]:
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


class ShortlistingService:
    def __init__(
        self,
        client: ResumeApiClient,
        policy: HybridPolicy | None = None,
        diagnostics: Diagnostics | None = None,
    ):
        self.client = client
        self.policy = policy or HybridPolicy()
        self.diagnostics = diagnostics or Diagnostics()

    async def shortlist_candidates(
        self,
        job_description: str,
        method: str = "hybrid",
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
    ) -> ShortlistingResult:
        filters = filters or {}
        logger.info("Shortlisting with method=%s top_k=%d: %r", method, top_k, job_description[:100])

        try:
            if method == "vector":
                return await self.vector_shortlisting(job_description, top_k, filters, include_analysis)
            if method == "chat":
                return await self.chat_shortlisting(job_description, top_k, filters, include_analysis)
            return await self.hybrid_shortlisting(job_description, top_k, filters, include_analysis)
        except Exception as e:
            logger.error("Shortlisting failed: %s", e)
            raise ShortlistingError(f"Shortlisting failed: {e}") from e

    async def _optional_analysis(self, query: str, include_analysis: bool) -> QueryAnalysis | None:
        if not include_analysis:
            return None
        try:
            return await self.client.analyze_query(query)
        except Exception as e:
            self.diagnostics.record(ANALYSIS_FAILED, "Analysis failed, continuing without", e, query=query[:100])
            return None

    async def vector_shortlisting(
        self,
        query: str,
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
        *,
        analysis: QueryAnalysis | None = None,
    ) -> ShortlistingResult:
        t0 = time.perf_counter()
        if analysis is None:
            analysis = await self._optional_analysis(query, include_analysis)

        search_query = (analysis.enhanced_query if analysis else None) or query
        response = await self.client.search(
            SearchRequest(query=search_query, top_k=top_k, filters=filters or {})
        )

        return ShortlistingResult(
            candidates=format_candidates(response.matches),
            total_results=response.total_results,
            processing_time=time.perf_counter() - t0,
            query=query,
            method="vector",
            analysis=AnalysisSummary.from_analysis(analysis) if analysis else None,
        )

    async def chat_shortlisting(
        self,
        message: str,
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
    ) -> ShortlistingResult:
        t0 = time.perf_counter()
        analysis = await self._optional_analysis(message, include_analysis)

        response = await self.client.chat_search(
            ChatSearchRequest(message=message, top_k=top_k, filters=filters or {})
        )

        return ShortlistingResult(
            candidates=format_candidates(response.matches),
            total_results=response.total_results,
            processing_time=time.perf_counter() - t0,
            query=message,
            method="chat",
            analysis=AnalysisSummary.from_analysis(analysis) if analysis else None,
            summary=response.response,
        )

    async def hybrid_shortlisting(
        self,
        job_description: str,
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
    ) -> ShortlistingResult:
        t0 = time.perf_counter()
        filters = filters or {}
        analysis = await self._optional_analysis(job_description, include_analysis)
        vector_query = (analysis.enhanced_query if analysis else None) or job_description

        # Both sides must settle before merging; no partial merge on first arrival
        vector_res, chat_res = await asyncio.gather(
            self.client.search(SearchRequest(
                query=vector_query,
                top_k=self.policy.vector_top_k(top_k),
                filters=filters,
            )),
            self.client.chat_search(ChatSearchRequest(
                message=job_description,
                top_k=self.policy.chat_top_k(top_k),
                filters=filters,
            )),
            return_exceptions=True,
        )

        failure = next((r for r in (vector_res, chat_res) if isinstance(r, BaseException)), None)
        if failure is not None:
            if not isinstance(failure, Exception):
                raise failure
            self.diagnostics.record(
                HYBRID_FALLBACK, "Hybrid search failed, falling back to vector search", failure
            )
            return await self.vector_shortlisting(
                job_description, top_k, filters, include_analysis, analysis=analysis
            )

        ranked = combine_and_rank(vector_res.matches, chat_res.matches, top_k, self.policy)

        return ShortlistingResult(
            candidates=[to_candidate(r.match, r.combined_score) for r in ranked],
            total_results=max(vector_res.total_results, chat_res.total_results),
            processing_time=time.perf_counter() - t0,
            query=job_description,
            method="hybrid",
            analysis=AnalysisSummary.from_analysis(analysis) if analysis else None,
            summary=chat_res.response,
        )

    async def analyze_job_requirements(self, job_description: str) -> JobAnalysis:
        logger.info("Analyzing job requirements")
        analysis = await self.client.analyze_query(job_description)
        return JobAnalysis(
            original_query=analysis.original_query or job_description,
            intent=analysis.intent.model_dump(),
            extracted_skills=list(analysis.keywords),
            suggestions=list(analysis.suggestions),
            enhanced_query=analysis.enhanced_query,
            recommended_search_terms=_unique(
                analysis.keywords
                + analysis.intent.skills_mentioned
                + analysis.intent.technologies
            ),
        )

    async def shortlist_for_job_role(
        self,
        requirement: JobRequirement,
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
    ) -> ShortlistingResult:
        logger.info("Shortlisting for role: %s", requirement.title)
        role_filters = {
            **(filters or {}),
            "experience_level": requirement.experience_level,
            "required_skills": requirement.required_skills,
        }
        return await self.shortlist_candidates(
            requirement.to_job_description(),
            method="hybrid",
            top_k=top_k,
            filters=role_filters,
            include_analysis=include_analysis,
        )

    async def batch_shortlisting(
        self,
        job_descriptions: list[str],
        method: str = "hybrid",
        top_k: int = 5,
        filters: dict[str, Any] | None = None,
        include_analysis: bool = True,
    ) -> list[ShortlistingResult]:
        """Shortlist several jobs concurrently; failed jobs are logged and dropped."""
        logger.info("Batch shortlisting %d jobs", len(job_descriptions))
        outcomes = await asyncio.gather(
            *(
                self.shortlist_candidates(jd, method, top_k, filters, include_analysis)
                for jd in job_descriptions
            ),
            return_exceptions=True,
        )

        results = []
        for i, outcome in enumerate(outcomes, start=1):
            if isinstance(outcome, Exception):
                logger.error("Batch job %d failed: %s", i, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results
