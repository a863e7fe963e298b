"""
Stateful front for ShortlistingService, for UIs that render from a state object.

Every shortlisting call takes a fresh request id. When it resolves, its result
(or error) is applied only if that id is still the current one; otherwise it
is dropped. Nothing aborts the underlying HTTP request, only its effect.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable

from .candidates import Candidate
from .diagnostics import STALE_RESULT_DISCARDED, Diagnostics
from .shortlisting import (
    METHODS,
    JobAnalysis,
    JobRequirement,
    ShortlistingResult,
    ShortlistingService,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShortlistingState:
    is_loading: bool = False
    is_analyzing: bool = False
    results: ShortlistingResult | None = None
    analysis: Any = None
    error: str | None = None
    progress: int = 0
    last_query: str | None = None
    method: str | None = None


StateListener = Callable[[ShortlistingState], None]


class ShortlistingController:
    def __init__(
        self,
        service: ShortlistingService,
        *,
        auto_analyze: bool = True,
        default_method: str = "hybrid",
        default_top_k: int = 10,
        diagnostics: Diagnostics | None = None,
    ):
        if default_method not in METHODS:
            raise ValueError(f"Unknown shortlisting method: {default_method}")
        self.service = service
        self.auto_analyze = auto_analyze
        self.default_method = default_method
        self.default_top_k = default_top_k
        self.diagnostics = diagnostics or service.diagnostics

        self._state = ShortlistingState()
        self._listeners: list[StateListener] = []
        self._request_ids = itertools.count(1)
        self._current_request: int | None = None

    # ── State ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> ShortlistingState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener failed")

    def _begin_request(self) -> int:
        request_id = next(self._request_ids)
        self._current_request = request_id
        return request_id

    def _is_current(self, request_id: int) -> bool:
        return self._current_request == request_id

    def _discard(self, request_id: int, outcome: str) -> None:
        self.diagnostics.record(
            STALE_RESULT_DISCARDED,
            "Newer request in progress, discarding stale " + outcome,
            request_id=request_id,
            current_request=self._current_request,
        )

    def _abandon(self, request_id: int) -> None:
        # A newer request keeps its own loading state
        if self._is_current(request_id):
            self._current_request = None
            self._set_state(is_loading=False, is_analyzing=False, progress=0)

    # ── Primary operations ─────────────────────────────────────────────────

    async def shortlist_candidates(
        self,
        job_description: str,
        method: str | None = None,
        top_k: int | None = None,
        filters: dict[str, Any] | None = None,
        include_analysis: bool | None = None,
    ) -> ShortlistingResult | None:
        """Run a shortlist; returns None when a newer call superseded this one."""
        request_id = self._begin_request()
        method = method or self.default_method
        include_analysis = self.auto_analyze if include_analysis is None else include_analysis

        self._set_state(
            is_loading=True,
            is_analyzing=include_analysis,
            error=None,
            progress=20 if include_analysis else 0,
            last_query=job_description,
            method=method,
        )
        self._set_state(progress=50, is_analyzing=False)

        try:
            results = await self.service.shortlist_candidates(
                job_description,
                method=method,
                top_k=top_k or self.default_top_k,
                filters=filters,
                include_analysis=include_analysis,
            )
        except asyncio.CancelledError:
            self._abandon(request_id)
            raise
        except Exception as e:
            if not self._is_current(request_id):
                self._discard(request_id, "error")
                return None
            self._set_state(
                is_loading=False, is_analyzing=False, error=str(e), progress=0, results=None
            )
            raise

        if not self._is_current(request_id):
            self._discard(request_id, "result")
            return None

        self._set_state(
            is_loading=False,
            is_analyzing=False,
            results=results,
            analysis=results.analysis,
            progress=100,
            error=None,
        )
        return results

    async def analyze_job_requirements(self, job_description: str) -> JobAnalysis:
        self._set_state(is_analyzing=True, error=None)
        try:
            analysis = await self.service.analyze_job_requirements(job_description)
        except asyncio.CancelledError:
            self._set_state(is_analyzing=False)
            raise
        except Exception as e:
            self._set_state(is_analyzing=False, error=str(e))
            raise
        self._set_state(is_analyzing=False, analysis=analysis, error=None)
        return analysis

    async def shortlist_for_job_role(
        self,
        requirement: JobRequirement,
        top_k: int | None = None,
        filters: dict[str, Any] | None = None,
    ) -> ShortlistingResult | None:
        request_id = self._begin_request()
        self._set_state(
            is_loading=True,
            error=None,
            progress=30,
            last_query=requirement.title,
            method="hybrid",
        )

        try:
            results = await self.service.shortlist_for_job_role(
                requirement, top_k=top_k or self.default_top_k, filters=filters
            )
        except asyncio.CancelledError:
            self._abandon(request_id)
            raise
        except Exception as e:
            if not self._is_current(request_id):
                self._discard(request_id, "error")
                return None
            self._set_state(is_loading=False, error=str(e), progress=0, results=None)
            raise

        if not self._is_current(request_id):
            self._discard(request_id, "result")
            return None

        self._set_state(
            is_loading=False,
            results=results,
            analysis=results.analysis,
            progress=100,
            error=None,
        )
        return results

    async def vector_search(self, query: str, top_k: int | None = None) -> ShortlistingResult | None:
        return await self.shortlist_candidates(query, method="vector", top_k=top_k, include_analysis=False)

    async def chat_search(self, message: str, top_k: int | None = None) -> ShortlistingResult | None:
        return await self.shortlist_candidates(message, method="chat", top_k=top_k, include_analysis=True)

    async def change_method(self, method: str) -> ShortlistingResult | None:
        """Re-run the last query with a different strategy."""
        if not self._state.last_query:
            raise ValueError("No previous query to re-run")
        return await self.shortlist_candidates(
            self._state.last_query,
            method=method,
            top_k=self.default_top_k,
            include_analysis=self.auto_analyze,
        )

    def clear_results(self) -> None:
        self._current_request = None
        self._state = ShortlistingState()
        self._set_state()

    def cancel_operation(self) -> None:
        self._current_request = None
        self._set_state(is_loading=False, is_analyzing=False, progress=0)

    # ── Derived views ──────────────────────────────────────────────────────

    @property
    def has_results(self) -> bool:
        return self._state.results is not None

    @property
    def candidate_count(self) -> int:
        return len(self._state.results.candidates) if self._state.results else 0

    @property
    def is_working(self) -> bool:
        return self._state.is_loading or self._state.is_analyzing

    @property
    def can_retry(self) -> bool:
        return bool(self._state.error and self._state.last_query)

    def get_top_candidates(self, count: int = 5) -> list[Candidate]:
        if not self._state.results:
            return []
        return self._state.results.candidates[:count]

    def get_candidates_by_score(self, min_score: float = 0.5) -> list[Candidate]:
        if not self._state.results:
            return []
        return [c for c in self._state.results.candidates if c.score >= min_score]

    def get_candidates_by_skills(self, required_skills: list[str]) -> list[Candidate]:
        if not self._state.results:
            return []
        wanted = [s.lower() for s in required_skills]
        return [
            c for c in self._state.results.candidates
            if any(w in skill.lower() for w in wanted for skill in c.skills)
        ]
