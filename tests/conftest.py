"""Shared fakes for the shortlister tests."""

import pytest

from shortlister.api_client import validate_job_description_file, validate_upload_files
from shortlister.config import Settings
from shortlister.errors import UploadError
from shortlister.schemas import (
    ChatSearchResponse,
    ChatSession,
    DeleteResponse,
    FollowUpResponse,
    JDFollowUpResponse,
    JDSearchResponse,
    JDSearchResults,
    JDSearchResultsResponse,
    JDUploadResponse,
    QueryAnalysis,
    QueryOptimization,
    SearchMatch,
    SearchResponse,
    SessionEnvelope,
    SessionList,
    SessionSearchResponse,
    UploadResponse,
)


def make_match(match_id: str, score: float, name: str | None = None, skills=None, **info) -> SearchMatch:
    return SearchMatch.model_validate({
        "id": match_id,
        "file_name": f"{match_id}.pdf",
        "score": score,
        "extracted_info": {"name": name, "skills": skills or [], **info},
    })


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeApiClient:
    """In-memory stand-in for ResumeApiClient that records every call."""

    def __init__(self, clock: FakeClock | None = None):
        self.settings = Settings()
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, Exception] = {}
        self.clock = clock
        self.latencies_ms: list[float] = []

        self.search_response = SearchResponse(matches=[], total_results=0)
        self.chat_response = ChatSearchResponse(matches=[], total_results=0)
        self.analysis = QueryAnalysis()
        self.optimization = QueryOptimization()
        self.session = ChatSession(id="session-1", title="Test session")
        self.session_success = True
        self.session_response = SessionSearchResponse(matches=[], total_results=0)
        self.follow_up_response = FollowUpResponse(answer="Alice has the most Python experience.")
        self.jd_search_response = JDSearchResponse(
            session_id="session-1", job_description_id="jd-1", matches=[], total_results=0
        )
        self.jd_follow_up_response = JDFollowUpResponse(
            answer="Alice matches the job description best.", candidates_analyzed=3
        )
        self.jd_results = JDSearchResultsResponse(
            session_id="session-1",
            search_results=JDSearchResults(jd_id="jd-1", matches=[], total_matches=0),
        )

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def args_of(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    async def health_check(self) -> bool:
        self._record("health_check")
        return True

    async def upload(self, files):
        errors = validate_upload_files(files, self.settings)
        if errors:
            raise UploadError(errors)
        self._record("upload", files)
        return UploadResponse(uploaded_files=[f.name for f in files], total_files=len(files))

    async def search(self, request):
        self._record("search", request)
        return self.search_response

    async def chat_search(self, request):
        self._record("chat_search", request)
        return self.chat_response

    async def analyze_query(self, message):
        self._record("analyze_query", message)
        return self.analysis

    async def optimize_query(self, query):
        self._record("optimize_query", query)
        return self.optimization

    async def create_session(self, name=None, user_id="anonymous"):
        self._record("create_session", name, user_id)
        return SessionEnvelope(session=self.session, success=self.session_success)

    async def get_session(self, session_id):
        self._record("get_session", session_id)
        return SessionEnvelope(session=self.session, success=self.session_success)

    async def list_sessions(self, limit=50, skip=0, active_only=True):
        self._record("list_sessions", limit, skip, active_only)
        return SessionList(sessions=[self.session], total=1)

    async def delete_session(self, session_id):
        self._record("delete_session", session_id)
        return DeleteResponse(session_id=session_id)

    async def search_in_session(self, session_id, request):
        self._record("search_in_session", session_id, request)
        if self.clock is not None and self.latencies_ms:
            self.clock.advance(self.latencies_ms.pop(0) / 1000)
        return self.session_response

    async def ask_follow_up(self, session_id, question, context=None):
        self._record("ask_follow_up", session_id, question, context)
        return self.follow_up_response

    async def upload_job_description(self, session_id, file):
        errors = validate_job_description_file(file, self.settings)
        if errors:
            raise UploadError(errors)
        self._record("upload_job_description", session_id, file)
        return JDUploadResponse(
            job_description_id="jd-1", file_name=file.name, session_id=session_id
        )

    async def search_with_job_description(self, request):
        self._record("search_with_job_description", request)
        return self.jd_search_response

    async def ask_jd_follow_up(self, session_id, question):
        self._record("ask_jd_follow_up", session_id, question)
        return self.jd_follow_up_response

    async def get_jd_search_results(self, session_id):
        self._record("get_jd_search_results", session_id)
        return self.jd_results

    async def delete_job_description(self, session_id):
        self._record("delete_job_description", session_id)
        return DeleteResponse(session_id=session_id)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client(clock):
    return FakeApiClient(clock)
