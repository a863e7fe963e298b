"""
Runtime settings for the shortlisting client.

Everything here can be overridden through environment variables. Entry
points call load_dotenv() before building Settings, so a local .env works too.
"""

import os
from dataclasses import dataclass, field

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_API_PREFIX = "/api/v1"

REQUEST_TIMEOUT_SECONDS = 30.0
HEALTH_TIMEOUT_SECONDS = 5.0

MAX_FILE_SIZE_MB = 10
MAX_FILES = 10
ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt")
JOB_DESCRIPTION_EXTENSIONS = (".pdf", ".txt")

QUERY_CACHE_SIZE = 100
SEARCH_HISTORY_LIMIT = 50

PAGE_SIZE = 25
MAX_LIST_LIMIT = 100


@dataclass(frozen=True)
class UploadLimits:
    max_file_size_bytes: int = MAX_FILE_SIZE_MB * 1024 * 1024
    max_files: int = MAX_FILES
    allowed_extensions: tuple[str, ...] = ALLOWED_EXTENSIONS
    job_description_extensions: tuple[str, ...] = JOB_DESCRIPTION_EXTENSIONS


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_URL
    api_prefix: str = DEFAULT_API_PREFIX
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    health_timeout: float = HEALTH_TIMEOUT_SECONDS
    upload: UploadLimits = field(default_factory=UploadLimits)
    cache_size: int = QUERY_CACHE_SIZE
    page_size: int = PAGE_SIZE
    max_list_limit: int = MAX_LIST_LIMIT

    @property
    def api_root(self) -> str:
        return self.api_base_url.rstrip("/") + "/" + self.api_prefix.strip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        max_mb = _env_float("SHORTLISTER_MAX_FILE_MB", MAX_FILE_SIZE_MB)
        return cls(
            api_base_url=os.environ.get("SHORTLISTER_API_URL", DEFAULT_API_URL),
            api_prefix=os.environ.get("SHORTLISTER_API_PREFIX", DEFAULT_API_PREFIX),
            request_timeout=_env_float("SHORTLISTER_TIMEOUT", REQUEST_TIMEOUT_SECONDS),
            health_timeout=_env_float("SHORTLISTER_HEALTH_TIMEOUT", HEALTH_TIMEOUT_SECONDS),
            upload=UploadLimits(
                max_file_size_bytes=int(max_mb * 1024 * 1024),
                max_files=_env_int("SHORTLISTER_MAX_FILES", MAX_FILES),
            ),
            cache_size=_env_int("SHORTLISTER_CACHE_SIZE", QUERY_CACHE_SIZE),
            page_size=_env_int("SHORTLISTER_PAGE_SIZE", PAGE_SIZE),
        )


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return float(default)
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a whole number, got {raw!r}") from None
