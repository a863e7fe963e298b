"""In-memory store of per-browser workspaces (session manager + shortlisting state)."""

import time
import uuid
from dataclasses import dataclass, field

from shortlister.api_client import ResumeApiClient
from shortlister.controller import ShortlistingController
from shortlister.diagnostics import Diagnostics
from shortlister.session_manager import ChatSessionManager
from shortlister.shortlisting import ShortlistingService

WORKSPACE_TTL_SECONDS = 30 * 60  # 30 minutes


@dataclass
class Workspace:
    id: str
    manager: ChatSessionManager
    shortlisting: ShortlistingController
    diagnostics: Diagnostics
    last_accessed: float = field(default_factory=time.time)


class WorkspaceStore:
    def __init__(self, client: ResumeApiClient, cache_size: int = 100):
        self.client = client
        self.cache_size = cache_size
        self._workspaces: dict[str, Workspace] = {}

    def _build(self, workspace_id: str) -> Workspace:
        diagnostics = Diagnostics()
        service = ShortlistingService(self.client, diagnostics=diagnostics)
        return Workspace(
            id=workspace_id,
            manager=ChatSessionManager(
                self.client, diagnostics=diagnostics, cache_size=self.cache_size
            ),
            shortlisting=ShortlistingController(service, diagnostics=diagnostics),
            diagnostics=diagnostics,
        )

    def get_or_create(self, workspace_id: str | None) -> Workspace:
        self._cleanup_expired()

        if workspace_id and workspace_id in self._workspaces:
            workspace = self._workspaces[workspace_id]
            workspace.last_accessed = time.time()
            return workspace

        new_id = workspace_id or str(uuid.uuid4())
        workspace = self._build(new_id)
        self._workspaces[new_id] = workspace
        return workspace

    def clear(self, workspace_id: str) -> None:
        self._workspaces.pop(workspace_id, None)

    def __len__(self) -> int:
        return len(self._workspaces)

    def _cleanup_expired(self) -> None:
        now = time.time()
        expired = [
            wid for wid, w in self._workspaces.items()
            if now - w.last_accessed > WORKSPACE_TTL_SECONDS
        ]
        for wid in expired:
            del self._workspaces[wid]
