"""Upload state tracking for resume batches."""

from dataclasses import dataclass, replace
from typing import Sequence

from .api_client import ResumeApiClient, ResumeFile
from .schemas import UploadResponse


@dataclass(frozen=True)
class UploadState:
    is_uploading: bool = False
    progress: int = 0
    error: str | None = None
    result: UploadResponse | None = None


class UploadController:
    def __init__(self, client: ResumeApiClient):
        self.client = client
        self.state = UploadState()

    async def upload_resumes(self, files: Sequence[ResumeFile]) -> UploadResponse:
        self.state = UploadState(is_uploading=True)
        try:
            result = await self.client.upload(files)
        except Exception as e:
            self.state = UploadState(error=str(e))
            raise
        self.state = UploadState(progress=100, result=result)
        return result

    def reset(self) -> None:
        self.state = UploadState()

    def clear_error(self) -> None:
        self.state = replace(self.state, error=None)


def upload_status_message(result: UploadResponse | None) -> str:
    if result is None:
        return ""
    ok = len(result.uploaded_files)
    failed = len(result.failed_files)
    total = result.total_files or ok + failed

    if failed == 0:
        return f"Successfully uploaded {ok} resume{'s' if ok != 1 else ''}"
    if ok > 0:
        return f"Uploaded {ok}/{total} resumes. {failed} failed."
    return f"Upload failed. {failed} file{'s' if failed != 1 else ''} could not be processed."


def upload_progress_text(state: UploadState) -> str:
    if not state.is_uploading:
        return ""
    if state.progress < 30:
        return "Preparing files for upload..."
    if state.progress < 60:
        return "Uploading to server..."
    if state.progress < 90:
        return "Processing and extracting data..."
    return "Creating vector embeddings..."
