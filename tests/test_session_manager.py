import asyncio
from datetime import datetime

import pytest
from conftest import make_match

from shortlister.api_client import ResumeFile
from shortlister.diagnostics import OPTIMIZATION_FAILED, STALE_RESULT_DISCARDED, Diagnostics
from shortlister.errors import ApiError, SessionError, UploadError
from shortlister.schemas import (
    ChatMessage,
    ChatSearchRequest,
    ChatSearchResponse,
    ChatSession,
    FollowUpResponse,
    JDFollowUpResponse,
    JDSearchResponse,
    QueryOptimization,
    ResponseMetadata,
    SessionSearchResponse,
)
from shortlister.session_manager import (
    ChatSessionManager,
    calculate_match_grade,
    experience_level_from_summary,
    is_follow_up_question,
    prioritize_skills,
)


@pytest.fixture
def manager(fake_client, clock):
    return ChatSessionManager(fake_client, clock=clock)


def started(manager):
    asyncio.run(manager.create_session("Backend hiring"))
    return manager


def test_search_without_session_fails(manager):
    with pytest.raises(SessionError, match="No active session"):
        asyncio.run(manager.intelligent_search("python"))
    with pytest.raises(SessionError, match="No active session"):
        asyncio.run(manager.ask_follow_up("who is best?"))


def test_create_session_failure_raises(manager, fake_client):
    fake_client.session_success = False
    with pytest.raises(SessionError, match="Failed to create session"):
        asyncio.run(manager.create_session())
    assert manager.current_session is None


def test_single_search_without_optimization(manager, fake_client):
    started(manager)
    fake_client.session_response = SessionSearchResponse(
        matches=[make_match("a", 0.9, name="Alice")], total_results=1
    )

    asyncio.run(manager.intelligent_search("Find Python developers", auto_optimize=False))

    calls = fake_client.args_of("search_in_session")
    assert len(calls) == 1
    session_id, request = calls[0]
    assert session_id == "session-1"
    assert request.message == "Find Python developers"
    assert fake_client.count("optimize_query") == 0

    history = manager.get_search_history()
    assert len(history) == 1
    assert history[0].metadata["optimized"] is False
    metrics = manager.get_session_metrics()
    assert metrics.total_searches == 1
    assert metrics.total_candidates_found == 1
    assert metrics.most_searched_skills == ["Python"]


def test_repeated_query_is_served_from_cache(manager, fake_client):
    started(manager)
    first = asyncio.run(manager.intelligent_search("Python devs", auto_optimize=False))
    second = asyncio.run(manager.intelligent_search("python DEVS", auto_optimize=False))

    assert second is first
    assert fake_client.count("search_in_session") == 1
    assert manager.cache_size == 1
    assert len(manager.get_search_history()) == 1


def test_cache_key_includes_top_k_and_filters(manager, fake_client):
    started(manager)
    asyncio.run(manager.intelligent_search("python", auto_optimize=False))
    asyncio.run(manager.intelligent_search("python", top_k=5, auto_optimize=False))
    asyncio.run(manager.intelligent_search("python", auto_optimize=False, filters={"location": "Berlin"}))
    asyncio.run(manager.intelligent_search("python", auto_optimize=False, filters={"location": "Berlin"}))

    assert fake_client.count("search_in_session") == 3


def test_cache_can_be_bypassed(manager, fake_client):
    started(manager)
    asyncio.run(manager.intelligent_search("python", auto_optimize=False, cache_results=False))
    asyncio.run(manager.intelligent_search("python", auto_optimize=False, cache_results=False))

    assert fake_client.count("search_in_session") == 2
    assert manager.cache_size == 0


def test_cache_evicts_least_recently_used(fake_client, clock):
    manager = started(ChatSessionManager(fake_client, clock=clock, cache_size=2))
    for query in ["alpha", "beta", "alpha", "gamma"]:
        asyncio.run(manager.intelligent_search(query, auto_optimize=False))
    assert fake_client.count("search_in_session") == 3

    asyncio.run(manager.intelligent_search("alpha", auto_optimize=False))
    assert fake_client.count("search_in_session") == 3
    asyncio.run(manager.intelligent_search("beta", auto_optimize=False))
    assert fake_client.count("search_in_session") == 4


def test_history_keeps_most_recent_fifty(manager):
    started(manager)
    for i in range(60):
        asyncio.run(manager.intelligent_search(f"query {i}", auto_optimize=False, cache_results=False))

    history = manager.get_search_history()
    assert len(history) == 50
    assert history[0].query == "query 10"
    assert history[-1].query == "query 59"
    assert manager.get_session_metrics().total_searches == 60


def test_average_response_time(manager, fake_client):
    started(manager)
    fake_client.latencies_ms = [100, 200, 300]
    for query in ["one", "two", "three"]:
        asyncio.run(manager.intelligent_search(query, auto_optimize=False))

    assert manager.get_session_metrics().average_response_time == pytest.approx(200)
    assert manager.get_search_history()[0].metadata["response_time"] == pytest.approx(100)


def test_quality_score_blends_confidence(manager, fake_client):
    started(manager)
    fake_client.session_response = SessionSearchResponse(
        matches=[], total_results=0, response_metadata=ResponseMetadata(confidence_level="high")
    )
    asyncio.run(manager.intelligent_search("first", auto_optimize=False))
    assert manager.get_session_metrics().query_quality_score == pytest.approx(0.45)

    fake_client.session_response = SessionSearchResponse(
        matches=[], total_results=0, response_metadata=ResponseMetadata(confidence_level="low")
    )
    asyncio.run(manager.intelligent_search("second", auto_optimize=False))
    assert manager.get_session_metrics().query_quality_score == pytest.approx(0.375)


def test_optimized_query_replaces_message(manager, fake_client):
    started(manager)
    fake_client.optimization = QueryOptimization.model_validate({
        "enhanced_alternatives": [{"query": "  "}, {"query": "Senior Python engineers with Django"}],
    })

    asyncio.run(manager.intelligent_search("python people"))

    assert fake_client.args_of("search_in_session")[0][1].message == "Senior Python engineers with Django"
    entry = manager.get_search_history()[0]
    assert entry.query == "python people"
    assert entry.metadata["optimized"] is True
    assert entry.metadata["optimized_query"] == "Senior Python engineers with Django"


def test_optimization_failure_keeps_original(fake_client, clock):
    diagnostics = Diagnostics()
    manager = started(ChatSessionManager(fake_client, clock=clock, diagnostics=diagnostics))
    fake_client.failures["optimize_query"] = ApiError("optimizer down", status_code=500)

    asyncio.run(manager.intelligent_search("python people"))

    assert fake_client.args_of("search_in_session")[0][1].message == "python people"
    assert len(diagnostics.events(OPTIMIZATION_FAILED)) == 1


def test_search_failure_propagates(manager, fake_client):
    started(manager)
    fake_client.failures["search_in_session"] = ApiError("Session not found", status_code=404)

    with pytest.raises(ApiError, match="Session not found"):
        asyncio.run(manager.intelligent_search("python", auto_optimize=False))
    assert manager.get_search_history() == []
    assert manager.cache_size == 0


def test_follow_up_uses_last_three_searches(manager, fake_client):
    started(manager)
    for i in range(4):
        fake_client.session_response = SessionSearchResponse(
            matches=[make_match(f"r{i}", 0.8, name=f"Candidate {i}")], total_results=1
        )
        asyncio.run(manager.intelligent_search(f"search {i}", auto_optimize=False))

    response = asyncio.run(manager.ask_follow_up("Who has the most experience?"))

    _, question, context = fake_client.args_of("ask_follow_up")[0]
    assert question == "Who has the most experience?"
    assert context.last_search == "search 3"
    assert context.candidates == ["Candidate 1", "Candidate 2", "Candidate 3"]
    assert response.answer == "Alice has the most Python experience."

    entry = manager.get_search_history()[-1]
    assert entry.query == "Follow-up: Who has the most experience?"
    assert entry.metadata["type"] == "follow_up"


def test_create_session_resets_state(manager, fake_client):
    started(manager)
    asyncio.run(manager.intelligent_search("python", auto_optimize=False))

    asyncio.run(manager.create_session("Another search"))

    assert manager.get_search_history() == []
    assert manager.cache_size == 0
    assert manager.get_session_metrics().total_searches == 0
    assert fake_client.args_of("create_session")[-1] == ("Another search", "anonymous")


def test_load_session_restores_user_messages(manager, fake_client):
    started(manager)
    asyncio.run(manager.intelligent_search("python", auto_optimize=False))
    fake_client.session = ChatSession(
        id="session-2",
        title="Earlier search",
        messages=[
            ChatMessage(id="m1", type="user", content="React developers", timestamp=datetime(2024, 5, 1, 9, 30)),
            ChatMessage(id="m2", type="assistant", content="Found 3 candidates"),
            ChatMessage(id="m3", type="user", content="Only senior ones"),
        ],
    )

    session = asyncio.run(manager.load_session("session-2"))

    assert session.id == "session-2"
    assert manager.current_session.id == "session-2"
    assert manager.cache_size == 0
    history = manager.get_search_history()
    assert [h.query for h in history] == ["React developers", "Only senior ones"]
    assert all(h.metadata == {"restored": True} for h in history)
    assert history[0].timestamp.tzinfo is not None


def test_load_session_failure_raises(manager, fake_client):
    fake_client.session_success = False
    with pytest.raises(SessionError, match="Failed to load session"):
        asyncio.run(manager.load_session("gone"))


def test_result_for_replaced_session_is_not_recorded(manager, fake_client):
    started(manager)
    release = {}
    original_search = fake_client.search_in_session

    async def slow_search(session_id, request):
        await release["gate"].wait()
        return await original_search(session_id, request)

    fake_client.search_in_session = slow_search
    fake_client.session_response = SessionSearchResponse(
        matches=[make_match("a", 0.9, name="Alice")], total_results=1
    )

    async def scenario():
        release["gate"] = asyncio.Event()
        search = asyncio.create_task(manager.intelligent_search("python", auto_optimize=False))
        await asyncio.sleep(0)
        fake_client.session = ChatSession(id="session-2", title="Other search")
        await manager.load_session("session-2")
        release["gate"].set()
        return await search

    response = asyncio.run(scenario())

    assert response.total_results == 1
    assert manager.current_session.id == "session-2"
    assert manager.get_search_history() == []
    assert manager.cache_size == 0
    assert manager.get_session_metrics().total_searches == 0
    events = manager.diagnostics.events(STALE_RESULT_DISCARDED)
    assert len(events) == 1
    assert events[0].context["session_id"] == "session-1"

    asyncio.run(manager.intelligent_search("python", auto_optimize=False))
    assert fake_client.args_of("search_in_session")[-1][0] == "session-2"
    assert fake_client.count("search_in_session") == 2


def test_deleting_active_session_clears_it(manager, fake_client):
    started(manager)
    asyncio.run(manager.delete_session("session-1"))

    assert manager.current_session is None
    with pytest.raises(SessionError):
        asyncio.run(manager.intelligent_search("python"))


def test_standalone_search_counts_towards_metrics(manager, fake_client):
    fake_client.chat_response = ChatSearchResponse(matches=[], total_results=4)
    asyncio.run(manager.standalone_search(ChatSearchRequest(message="go developers")))

    metrics = manager.get_session_metrics()
    assert metrics.total_searches == 1
    assert metrics.total_candidates_found == 4
    assert manager.get_search_history() == []


def test_job_description_requires_session(manager, fake_client):
    with pytest.raises(SessionError, match="No active session"):
        asyncio.run(manager.upload_job_description(ResumeFile("role.pdf", b"%PDF")))
    assert fake_client.calls == []


def test_job_description_upload_rejects_unsupported_type(manager, fake_client):
    started(manager)
    with pytest.raises(UploadError):
        asyncio.run(manager.upload_job_description(ResumeFile("role.docx", b"x")))
    assert manager.has_job_description is False


def test_job_description_search_records_history_and_metrics(manager, fake_client):
    started(manager)
    asyncio.run(manager.upload_job_description(ResumeFile("backend_role.pdf", b"%PDF")))
    fake_client.jd_search_response = JDSearchResponse(
        session_id="session-1",
        job_description_id="jd-1",
        matches=[make_match("a", 0.9, name="Alice"), make_match("b", 0.6, name="Bob")],
        total_results=2,
    )

    response = asyncio.run(manager.search_with_job_description(top_k=5))

    assert response.total_results == 2
    request = fake_client.args_of("search_with_job_description")[0][0]
    assert (request.session_id, request.top_k, request.filters) == ("session-1", 5, {})
    entry = manager.get_search_history()[-1]
    assert entry.query == "Job description: backend_role.pdf"
    assert entry.metadata["type"] == "job_description"
    assert [r.id for r in entry.results] == ["a", "b"]
    metrics = manager.get_session_metrics()
    assert metrics.total_searches == 1
    assert metrics.total_candidates_found == 2


def test_job_description_follow_up_and_delete(manager, fake_client):
    started(manager)
    asyncio.run(manager.upload_job_description(ResumeFile("backend_role.txt", b"Senior backend engineer")))

    answer = asyncio.run(manager.ask_jd_follow_up("Who knows Kafka?"))
    results = asyncio.run(manager.get_jd_search_results())
    asyncio.run(manager.delete_job_description())

    assert answer.answer == "Alice matches the job description best."
    assert fake_client.args_of("ask_jd_follow_up") == [("session-1", "Who knows Kafka?")]
    assert manager.get_search_history()[-1].metadata == {"type": "jd_follow_up", "candidates_analyzed": 3}
    assert results.search_results.jd_id == "jd-1"
    assert fake_client.args_of("delete_job_description") == [("session-1",)]
    assert manager.has_job_description is False


def test_new_session_drops_job_description(manager, fake_client):
    started(manager)
    asyncio.run(manager.upload_job_description(ResumeFile("backend_role.pdf", b"%PDF")))
    asyncio.run(manager.create_session("Another role"))
    assert manager.job_description is None


def test_load_session_restores_job_description(manager, fake_client):
    fake_client.session = ChatSession(
        id="session-3",
        context={"jd_uploaded": True, "jd_id": "jd-9", "jd_filename": "data_role.pdf"},
    )
    asyncio.run(manager.load_session("session-3"))

    assert manager.job_description.job_description_id == "jd-9"
    assert manager.job_description.file_name == "data_role.pdf"


def test_follow_up_phrases():
    assert is_follow_up_question("Which candidate knows Go?")
    assert is_follow_up_question("Compare these candidates please")
    assert not is_follow_up_question("Senior Python developers in Berlin")


def test_send_message_routes_by_content(manager, fake_client):
    started(manager)

    # Nothing to follow up on yet, so this is a search
    asyncio.run(manager.send_message("Which candidate knows Go?"))
    assert fake_client.count("search_in_session") == 1

    follow_up = asyncio.run(manager.send_message("Which candidate knows Go?"))
    assert isinstance(follow_up, FollowUpResponse)

    asyncio.run(manager.upload_job_description(ResumeFile("backend_role.pdf", b"%PDF")))
    found = asyncio.run(manager.send_message("find matches for this role", top_k=4))
    assert isinstance(found, JDSearchResponse)
    assert fake_client.args_of("search_with_job_description")[0][0].top_k == 4

    jd_answer = asyncio.run(manager.send_message("Why is Alice ranked first?"))
    assert isinstance(jd_answer, JDFollowUpResponse)
    assert fake_client.count("ask_follow_up") == 1


def test_short_query_validation_skips_network(manager, fake_client):
    validation = asyncio.run(manager.validate_query_realtime("Py"))

    assert validation.is_valid is False
    assert validation.score == 0.0
    assert validation.suggestions == ["Type at least 3 characters"]
    assert fake_client.calls == []


def test_session_duration_uses_clock(manager, clock):
    clock.advance(42.0)
    assert manager.get_session_metrics().session_duration == pytest.approx(42.0)


def test_search_insights_and_starters(manager, fake_client):
    started(manager)
    fake_client.session_response = SessionSearchResponse(
        matches=[make_match("a", 0.9), make_match("b", 0.7)], total_results=2
    )
    asyncio.run(manager.intelligent_search("Python and Docker engineers", auto_optimize=False))
    asyncio.run(manager.intelligent_search("python and docker engineers", auto_optimize=False, top_k=3))

    insights = manager.get_search_insights()
    assert insights.total_searches == 2
    assert insights.unique_queries == 1
    assert insights.average_results_per_search == 2
    assert insights.search_efficiency == 2
    assert set(insights.top_skills_searched) == {"Python", "Docker"}

    starters = manager.generate_conversation_starters()
    assert len(starters) == 5
    assert starters[0]["title"] in ("More Python Experts", "More Docker Experts")


def test_empty_insights(manager):
    insights = manager.get_search_insights()
    assert insights.total_searches == 0
    assert insights.time_range is None
    assert len(manager.generate_conversation_starters()) == 4


def test_candidate_card_helpers(manager):
    (card,) = manager.process_candidate_cards([{
        "name": "alice",
        "score": 0.87,
        "skills": ["Figma", "Docker", "Python"],
        "experience_summary": "Senior platform engineer",
    }])

    assert card["formatted_skills"] == ["Docker", "Python", "Figma"]
    assert card["match_grade"] == "A"
    assert card["experience_level"] == "Senior"
    assert card["contactable"] is True

    assert calculate_match_grade(0.1) == "C"
    assert experience_level_from_summary("Principal architect") == "Lead"
    assert len(prioritize_skills([f"skill{i}" for i in range(12)])) == 8
