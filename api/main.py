"""FastAPI application for the candidate shortlisting API."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

load_dotenv()

from shortlister.api_client import ResumeApiClient
from shortlister.config import Settings
from shortlister.errors import ApiError, SessionError, ShortlistingError, UploadError

from .routes import router
from .session_store import WorkspaceStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    client = getattr(app.state, "client", None) or ResumeApiClient(settings)
    app.state.client = client
    app.state.store = WorkspaceStore(client, cache_size=settings.cache_size)
    logger.info("Ready, proxying recruitment backend at %s", settings.api_root)
    try:
        yield
    finally:
        await client.aclose()
        app.state.client = None


app = FastAPI(title="Candidate Shortlisting API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ApiError)
@app.exception_handler(ShortlistingError)
async def backend_error_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=502, content={"detail": str(exc)})
