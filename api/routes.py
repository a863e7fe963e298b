"""API routes exposing shortlisting and chat sessions to the browser."""

import logging
import time
from collections import defaultdict
from dataclasses import asdict

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from shortlister.api_client import ResumeFile

from .models import (
    AnalyzeRequest,
    ClearWorkspaceRequest,
    CreateSessionRequest,
    FollowUpBody,
    JobDescriptionSearchBody,
    MessageBody,
    MetricsResponse,
    SessionSearchBody,
    ShortlistRequest,
    ValidateRequest,
    ValidationResponse,
    WorkspaceRequest,
)
from .session_store import WorkspaceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Simple per-IP rate limiter: each request can fan out to several backend calls
_RATE_LIMIT = 60
_RATE_WINDOW = 60.0
_request_log: dict[str, list[float]] = defaultdict(list)


def _check_rate_limit(request: Request) -> None:
    client_ip = request.client.host if request.client else "unknown"
    now = time.time()
    _request_log[client_ip] = [t for t in _request_log[client_ip] if now - t < _RATE_WINDOW]
    if len(_request_log[client_ip]) >= _RATE_LIMIT:
        raise HTTPException(status_code=429, detail="Rate limit exceeded. Try again shortly.")
    _request_log[client_ip].append(now)


def _store(request: Request) -> WorkspaceStore:
    return request.app.state.store


@router.post("/shortlist")
async def shortlist(req: ShortlistRequest, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)

    t0 = time.perf_counter()
    result = await workspace.shortlisting.shortlist_candidates(
        req.query,
        method=req.method,
        top_k=req.top_k,
        filters=req.filters,
        include_analysis=req.include_analysis,
    )
    if result is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer shortlisting request")

    logger.info(
        "shortlist workspace=%s method=%s candidates=%d total=%.0fms",
        workspace.id[:8], result.method, len(result.candidates), (time.perf_counter() - t0) * 1000,
    )
    return {**asdict(result), "workspace_id": workspace.id}


@router.post("/analyze")
async def analyze(req: AnalyzeRequest, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    analysis = await workspace.shortlisting.analyze_job_requirements(req.query)
    return {**asdict(analysis), "workspace_id": workspace.id}


@router.post("/validate", response_model=ValidationResponse)
async def validate(req: ValidateRequest, request: Request):
    workspace = _store(request).get_or_create(req.workspace_id)
    validation = await workspace.manager.validate_query_realtime(req.query)
    return ValidationResponse(**asdict(validation), workspace_id=workspace.id)


@router.post("/sessions")
async def create_session(req: CreateSessionRequest, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    session = await workspace.manager.create_session(req.name)
    return {"session": session.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/sessions/{session_id}/load")
async def load_session(session_id: str, request: Request, req: WorkspaceRequest | None = None):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id if req else None)
    session = await workspace.manager.load_session(session_id)
    return {
        "session": session.model_dump(mode="json"),
        "history_size": len(workspace.manager.get_search_history()),
        "workspace_id": workspace.id,
    }


@router.post("/search")
async def search(req: SessionSearchBody, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    response = await workspace.manager.intelligent_search(
        req.message,
        top_k=req.top_k,
        auto_optimize=req.auto_optimize,
        cache_results=req.cache_results,
        filters=req.filters,
    )
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/followup")
async def follow_up(req: FollowUpBody, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    response = await workspace.manager.ask_follow_up(req.question)
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/message")
async def message(req: MessageBody, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    response = await workspace.manager.send_message(req.message, top_k=req.top_k)
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/jd/upload")
async def upload_job_description(
    request: Request,
    file: UploadFile = File(...),
    workspace_id: str | None = Form(None),
):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(workspace_id)
    job_description = ResumeFile(
        name=file.filename or "job_description",
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )
    response = await workspace.manager.upload_job_description(job_description)
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/jd/search")
async def search_with_job_description(req: JobDescriptionSearchBody, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    response = await workspace.manager.search_with_job_description(top_k=req.top_k, filters=req.filters)
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.post("/jd/followup")
async def job_description_follow_up(req: FollowUpBody, request: Request):
    _check_rate_limit(request)
    workspace = _store(request).get_or_create(req.workspace_id)
    response = await workspace.manager.ask_jd_follow_up(req.question)
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.get("/jd/results")
async def job_description_results(workspace_id: str, request: Request):
    workspace = _store(request).get_or_create(workspace_id)
    response = await workspace.manager.get_jd_search_results()
    return {**response.model_dump(mode="json"), "workspace_id": workspace.id}


@router.delete("/jd")
async def delete_job_description(workspace_id: str, request: Request):
    workspace = _store(request).get_or_create(workspace_id)
    await workspace.manager.delete_job_description()
    return {"status": "deleted", "workspace_id": workspace.id}


@router.get("/metrics", response_model=MetricsResponse)
def metrics(workspace_id: str, request: Request):
    workspace = _store(request).get_or_create(workspace_id)
    return MetricsResponse(
        metrics=asdict(workspace.manager.get_session_metrics()),
        insights=asdict(workspace.manager.get_search_insights()),
        diagnostics=workspace.diagnostics.summary(),
        workspace_id=workspace.id,
    )


@router.post("/upload")
async def upload(request: Request, files: list[UploadFile] = File(...)):
    _check_rate_limit(request)
    resumes = [
        ResumeFile(
            name=f.filename or "upload",
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        )
        for f in files
    ]
    result = await request.app.state.client.upload(resumes)
    return result.model_dump()


@router.post("/workspace/clear")
def clear_workspace(req: ClearWorkspaceRequest, request: Request):
    _store(request).clear(req.workspace_id)
    return {"status": "cleared"}


@router.get("/health")
async def health(request: Request):
    backend_ok = await request.app.state.client.health_check()
    return {
        "status": "ready" if backend_ok else "degraded",
        "backend": backend_ok,
        "workspaces": len(_store(request)),
    }
