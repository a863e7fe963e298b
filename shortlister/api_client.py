"""
Async HTTP client for the recruitment backend.

Wraps httpx.AsyncClient. Every response body is parsed into its pydantic
schema at this boundary, so downstream code never has to guess at field
presence. Uploads are validated locally before anything is sent.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import Settings
from .errors import ApiError, UnexpectedResponseError, UploadError
from .schemas import (
    ChatSearchRequest,
    ChatSearchResponse,
    DeleteResponse,
    FollowUpContext,
    FollowUpResponse,
    HealthStatus,
    JDFollowUpResponse,
    JDSearchRequest,
    JDSearchResponse,
    JDSearchResultsResponse,
    JDUploadResponse,
    QueryAnalysis,
    QueryOptimization,
    Resume,
    ResumeList,
    SearchRequest,
    SearchResponse,
    SessionEnvelope,
    SessionList,
    SessionSearchRequest,
    SessionSearchResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class ResumeFile:
    """A resume about to be uploaded: a file name plus its raw bytes."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: str | Path) -> "ResumeFile":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


def format_file_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / (1024 ** i), 2)
    return f"{value:g} {units[i]}"


def validate_upload_files(files: Sequence[ResumeFile], settings: Settings) -> list[str]:
    """Return every problem found with the selection (empty list = OK)."""
    limits = settings.upload
    if not files:
        return ["No files selected for upload"]

    errors: list[str] = []
    if len(files) > limits.max_files:
        errors.append(f"Too many files selected ({len(files)}). Maximum: {limits.max_files}")

    allowed = ", ".join(ext.lstrip(".").upper() for ext in limits.allowed_extensions)
    max_label = format_file_size(limits.max_file_size_bytes).replace(" ", "")

    for i, f in enumerate(files, start=1):
        ext = Path(f.name).suffix.lower()
        if ext not in limits.allowed_extensions:
            errors.append(f"File {i} ({f.name}): Unsupported file type. Allowed: {allowed}")
        if f.size > limits.max_file_size_bytes:
            errors.append(
                f"File {i} ({f.name}): File too large ({format_file_size(f.size)}). Maximum: {max_label}"
            )
        if f.size == 0:
            errors.append(f"File {i} ({f.name}): File is empty")
    return errors


def validate_job_description_file(file: ResumeFile, settings: Settings) -> list[str]:
    limits = settings.upload
    allowed = ", ".join(ext.lstrip(".").upper() for ext in limits.job_description_extensions)
    errors: list[str] = []
    if Path(file.name).suffix.lower() not in limits.job_description_extensions:
        errors.append(f"{file.name}: Unsupported job description type. Allowed: {allowed}")
    if file.size > limits.max_file_size_bytes:
        errors.append(f"{file.name}: File too large ({format_file_size(file.size)})")
    if file.size == 0:
        errors.append(f"{file.name}: File is empty")
    return errors


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail")
        if isinstance(detail, list):
            # FastAPI validation errors: [{"loc": [...], "msg": "...", ...}]
            detail = "; ".join(
                str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail
            )
        if detail:
            return str(detail)
    return f"Request failed with status {response.status_code}"


class ResumeApiClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or Settings.from_env()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.settings.api_root,
            timeout=httpx.Timeout(self.settings.request_timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "ResumeApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ── Plumbing ───────────────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        # Relative to base_url, which already carries the /api/v1 prefix.
        return path.lstrip("/")

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, self._url(path), **kwargs)
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(f"Failed to reach backend at {self.settings.api_base_url}: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error("%s %s -> %d: %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        return response

    async def _request(self, model: type[ModelT], method: str, path: str, **kwargs) -> ModelT:
        response = await self._send(method, path, **kwargs)
        try:
            data: Any = response.json()
        except ValueError as e:
            raise UnexpectedResponseError(
                f"Unexpected response shape from {path}: body is not JSON",
                status_code=response.status_code,
            ) from e
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UnexpectedResponseError(
                f"Unexpected response shape from {path}: {e.error_count()} field error(s)",
                status_code=response.status_code,
            ) from e

    # ── Health ─────────────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        try:
            response = await self._http.get(
                self._url("/health/"), timeout=self.settings.health_timeout
            )
        except httpx.HTTPError as e:
            logger.warning("Backend health check failed: %s", e)
            return False
        return response.is_success

    async def get_health_status(self) -> HealthStatus:
        return await self._request(HealthStatus, "GET", "/health/")

    # ── Resumes ────────────────────────────────────────────────────────────

    async def upload(self, files: Sequence[ResumeFile]) -> UploadResponse:
        errors = validate_upload_files(files, self.settings)
        if errors:
            raise UploadError(errors)

        multipart = [("files", (f.name, f.content, f.content_type)) for f in files]
        logger.info("Uploading %d resume file(s)", len(files))
        result = await self._request(UploadResponse, "POST", "/resumes/upload", files=multipart)
        logger.info(
            "Upload completed: %d/%d files processed", len(result.uploaded_files), result.total_files
        )
        return result

    async def list_resumes(self, skip: int = 0, limit: int = 50) -> ResumeList:
        params = {"skip": skip, "limit": min(limit, self.settings.max_list_limit)}
        return await self._request(ResumeList, "GET", "/resumes/", params=params)

    async def get_resume(self, resume_id: str) -> Resume:
        return await self._request(Resume, "GET", f"/resumes/{resume_id}")

    async def delete_resume(self, resume_id: str) -> DeleteResponse:
        return await self._request(DeleteResponse, "DELETE", f"/resumes/{resume_id}")

    # ── Search ─────────────────────────────────────────────────────────────

    async def search(self, request: SearchRequest) -> SearchResponse:
        return await self._request(
            SearchResponse, "POST", "/resumes/search", json=request.model_dump()
        )

    async def chat_search(self, request: ChatSearchRequest) -> ChatSearchResponse:
        return await self._request(
            ChatSearchResponse, "POST", "/chat/search", json=request.model_dump()
        )

    async def analyze_query(self, message: str) -> QueryAnalysis:
        return await self._request(
            QueryAnalysis, "POST", "/chat/analyze", json={"message": message}
        )

    async def optimize_query(self, query: str) -> QueryOptimization:
        return await self._request(
            QueryOptimization, "POST", "/chat/optimize-query", params={"query": query}
        )

    # ── Chat sessions ──────────────────────────────────────────────────────

    async def create_session(self, name: str | None = None, user_id: str = "anonymous") -> SessionEnvelope:
        return await self._request(
            SessionEnvelope, "POST", "/chat/sessions", json={"user_id": user_id, "name": name}
        )

    async def get_session(self, session_id: str) -> SessionEnvelope:
        return await self._request(SessionEnvelope, "GET", f"/chat/sessions/{session_id}")

    async def list_sessions(self, limit: int = 50, skip: int = 0, active_only: bool = True) -> SessionList:
        params = {"limit": limit, "skip": skip, "active_only": str(active_only).lower()}
        return await self._request(SessionList, "GET", "/chat/sessions", params=params)

    async def delete_session(self, session_id: str) -> DeleteResponse:
        return await self._request(DeleteResponse, "DELETE", f"/chat/sessions/{session_id}")

    async def search_in_session(self, session_id: str, request: SessionSearchRequest) -> SessionSearchResponse:
        return await self._request(
            SessionSearchResponse,
            "POST",
            f"/chat/sessions/{session_id}/search",
            json=request.model_dump(),
        )

    async def ask_follow_up(
        self, session_id: str, question: str, context: FollowUpContext | None = None
    ) -> FollowUpResponse:
        payload = {
            "question": question,
            "context": context.model_dump() if context else {},
        }
        return await self._request(
            FollowUpResponse, "POST", f"/chat/sessions/{session_id}/followup", json=payload
        )

    # ── Job descriptions ───────────────────────────────────────────────────

    async def upload_job_description(self, session_id: str, file: ResumeFile) -> JDUploadResponse:
        errors = validate_job_description_file(file, self.settings)
        if errors:
            raise UploadError(errors)

        logger.info("Uploading job description %s to session %s", file.name, session_id)
        return await self._request(
            JDUploadResponse,
            "POST",
            "/jd/upload",
            data={"session_id": session_id},
            files={"file": (file.name, file.content, file.content_type)},
        )

    async def search_with_job_description(self, request: JDSearchRequest) -> JDSearchResponse:
        return await self._request(JDSearchResponse, "POST", "/jd/search", json=request.model_dump())

    async def ask_jd_follow_up(self, session_id: str, question: str) -> JDFollowUpResponse:
        return await self._request(
            JDFollowUpResponse,
            "POST",
            "/jd/followup",
            json={"session_id": session_id, "question": question},
        )

    async def get_jd_search_results(self, session_id: str) -> JDSearchResultsResponse:
        return await self._request(JDSearchResultsResponse, "GET", f"/jd/session/{session_id}/results")

    async def delete_job_description(self, session_id: str) -> DeleteResponse:
        # The backend's body for this route carries nothing we use
        await self._send("DELETE", f"/jd/session/{session_id}")
        return DeleteResponse(message="Job description deleted successfully", session_id=session_id)
