import asyncio

import pytest
from conftest import FakeApiClient, make_match

from shortlister.candidates import determine_experience_level, to_candidate
from shortlister.diagnostics import ANALYSIS_FAILED, HYBRID_FALLBACK, Diagnostics
from shortlister.errors import ApiError, ShortlistingError
from shortlister.schemas import (
    ChatSearchResponse,
    ExtractedInfo,
    QueryAnalysis,
    SearchResponse,
)
from shortlister.shortlisting import JobRequirement, ShortlistingService


@pytest.fixture
def client():
    client = FakeApiClient()
    client.analysis = QueryAnalysis.model_validate({
        "original_query": "python dev",
        "intent": {"skills_mentioned": ["Python"], "technologies": ["Django", "Python"]},
        "keywords": ["python", "developer"],
        "enhanced_query": "senior python developer django",
    })
    client.search_response = SearchResponse(
        matches=[make_match("a", 0.9, name="Alice"), make_match("b", 0.5, name="Bob")],
        total_results=12,
    )
    client.chat_response = ChatSearchResponse(
        matches=[make_match("a", 0.8, name="Alice"), make_match("c", 0.7, name="Cara")],
        total_results=4,
        response="Alice looks strongest.",
    )
    return client


def test_vector_uses_enhanced_query(client):
    service = ShortlistingService(client)
    result = asyncio.run(service.shortlist_candidates("python dev", method="vector", top_k=10))

    (request,) = client.args_of("search")[0]
    assert request.query == "senior python developer django"
    assert request.top_k == 10
    assert result.method == "vector"
    assert result.query == "python dev"
    assert result.total_results == 12
    assert [c.name for c in result.candidates] == ["Alice", "Bob"]
    assert result.analysis.keywords == ["python", "developer"]


def test_vector_without_analysis_uses_literal_query(client):
    service = ShortlistingService(client)
    result = asyncio.run(service.vector_shortlisting("python dev", include_analysis=False))

    assert client.count("analyze_query") == 0
    assert client.args_of("search")[0][0].query == "python dev"
    assert result.analysis is None


def test_analysis_failure_degrades_and_is_recorded(client):
    client.failures["analyze_query"] = ApiError("analysis down", status_code=500)
    diagnostics = Diagnostics()
    service = ShortlistingService(client, diagnostics=diagnostics)

    result = asyncio.run(service.shortlist_candidates("python dev", method="vector"))

    assert result.analysis is None
    assert client.args_of("search")[0][0].query == "python dev"
    (event,) = diagnostics.events(ANALYSIS_FAILED)
    assert event.error == "analysis down"


def test_chat_returns_backend_summary(client):
    service = ShortlistingService(client)
    result = asyncio.run(service.shortlist_candidates("python dev", method="chat", top_k=3))

    (request,) = client.args_of("chat_search")[0]
    assert request.message == "python dev"
    assert request.top_k == 3
    assert result.method == "chat"
    assert result.summary == "Alice looks strongest."


def test_hybrid_merges_with_split_top_k(client):
    service = ShortlistingService(client)
    result = asyncio.run(service.shortlist_candidates("python dev", method="hybrid", top_k=10))

    assert client.args_of("search")[0][0].top_k == 7
    assert client.args_of("search")[0][0].query == "senior python developer django"
    assert client.args_of("chat_search")[0][0].top_k == 5
    assert client.args_of("chat_search")[0][0].message == "python dev"
    assert client.count("analyze_query") == 1

    assert result.method == "hybrid"
    assert [c.id for c in result.candidates] == ["a", "b", "c"]
    assert result.candidates[0].combined_score == pytest.approx(0.9 * 0.6 + 0.8 * 0.4)
    assert result.total_results == 12
    assert result.summary == "Alice looks strongest."


def test_hybrid_issues_both_searches_concurrently(client):
    chat_started = None

    async def search(request):
        # Deadlocks unless chat_search is already in flight
        await asyncio.wait_for(chat_started.wait(), timeout=1)
        return client.search_response

    async def chat_search(request):
        chat_started.set()
        return client.chat_response

    client.search = search
    client.chat_search = chat_search

    async def scenario():
        nonlocal chat_started
        chat_started = asyncio.Event()
        return await ShortlistingService(client).hybrid_shortlisting("python dev", include_analysis=False)

    result = asyncio.run(scenario())
    assert result.method == "hybrid"


def test_hybrid_falls_back_to_vector_when_chat_fails(client):
    client.failures["chat_search"] = ApiError("chat backend down", status_code=503)
    diagnostics = Diagnostics()
    service = ShortlistingService(client, diagnostics=diagnostics)

    result = asyncio.run(service.shortlist_candidates("python dev", method="hybrid", top_k=10))

    assert result.method == "vector"
    assert result.total_results == 12
    assert [c.id for c in result.candidates] == ["a", "b"]
    assert all(c.combined_score is None for c in result.candidates)
    # the fallback reuses the analysis instead of asking again
    assert client.count("analyze_query") == 1
    assert client.args_of("search")[-1][0].top_k == 10
    assert len(diagnostics.events(HYBRID_FALLBACK)) == 1


def test_empty_result_is_valid(client):
    client.search_response = SearchResponse(matches=[], total_results=0)
    client.chat_response = ChatSearchResponse(matches=[], total_results=0)
    service = ShortlistingService(client)

    result = asyncio.run(service.shortlist_candidates("cobol mainframe wizard", include_analysis=False))

    assert result.candidates == []
    assert result.total_results == 0
    assert result.method == "hybrid"


def test_primary_failure_is_wrapped(client):
    client.failures["search"] = ApiError("index offline", status_code=500)
    service = ShortlistingService(client)

    with pytest.raises(ShortlistingError, match="Shortlisting failed: index offline"):
        asyncio.run(service.shortlist_candidates("python dev", method="vector"))


def test_analyze_job_requirements_dedupes_search_terms(client):
    service = ShortlistingService(client)
    analysis = asyncio.run(service.analyze_job_requirements("python dev"))

    assert analysis.extracted_skills == ["python", "developer"]
    assert analysis.recommended_search_terms == ["python", "developer", "Python", "Django"]
    assert analysis.enhanced_query == "senior python developer django"


def test_analyze_job_requirements_propagates_errors(client):
    client.failures["analyze_query"] = ApiError("analysis down")
    with pytest.raises(ApiError):
        asyncio.run(ShortlistingService(client).analyze_job_requirements("python dev"))


def test_shortlist_for_job_role_adds_filters(client):
    requirement = JobRequirement(
        title="Backend Engineer",
        description="Build APIs",
        required_skills=["Python", "PostgreSQL"],
        experience_level="senior",
        location="Remote",
    )
    service = ShortlistingService(client)
    result = asyncio.run(service.shortlist_for_job_role(requirement, top_k=4, filters={"location": "EU"}))

    filters = client.args_of("search")[0][0].filters
    assert filters == {
        "location": "EU",
        "experience_level": "senior",
        "required_skills": ["Python", "PostgreSQL"],
    }
    assert result.method == "hybrid"
    assert result.query.startswith("Position: Backend Engineer")
    assert "Location: Remote" in result.query


def test_batch_drops_failed_jobs(client):
    service = ShortlistingService(client)
    original_search = client.search

    async def flaky_search(request):
        if "broken" in request.query:
            raise ApiError("bad query")
        return await original_search(request)

    client.search = flaky_search
    results = asyncio.run(service.batch_shortlisting(
        ["python dev", "broken job", "react dev"], method="vector", include_analysis=False
    ))

    assert [r.query for r in results] == ["python dev", "react dev"]


@pytest.mark.parametrize(
    "info, expected",
    [
        ({"summary": "Senior engineer"}, "senior"),
        ({"experience": ["a", "b", "c", "d"]}, "senior"),
        ({"summary": "Engineering manager"}, "lead"),
        ({"experience": ["a", "b"]}, "mid"),
        ({}, "junior"),
    ],
)
def test_determine_experience_level(info, expected):
    assert determine_experience_level(ExtractedInfo.model_validate(info)) == expected


def test_to_candidate_defaults_name_and_limits_matching_skills():
    match = make_match("x", 0.4, skills=["Go", "Rust", "C", "Zig", "Nim", "Odin"])
    candidate = to_candidate(match)

    assert candidate.name == "Unknown"
    assert candidate.matching_skills == ["Go", "Rust", "C", "Zig", "Nim"]
    assert candidate.experience_level == "junior"
