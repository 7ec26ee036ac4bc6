import asyncio
import logging
from typing import Callable, Dict, Optional

from services.chat_service import ChatService
from services.session_manager import StudySessionManager
from services.transcript_buffer import TranscriptBuffer

logger = logging.getLogger(__name__)


class StudyWorkspace:
    """Everything one signed-in user works with: session manager, chat, voice transcript"""

    def __init__(self, manager: StudySessionManager, chat: ChatService):
        self.manager = manager
        self.chat = chat
        self.transcript = TranscriptBuffer()


class WorkspaceRegistry:
    """Creates one workspace per owner on first use and loads its history"""

    def __init__(
        self,
        store,
        agent_factory: Callable[[], object],
        tick_interval: Optional[float] = 1.0,
    ):
        self.store = store
        self.agent_factory = agent_factory
        self.tick_interval = tick_interval
        self._agent = None
        self._workspaces: Dict[str, StudyWorkspace] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def agent(self):
        if self._agent is None:
            self._agent = self.agent_factory()
        return self._agent

    async def get(self, owner_id: str) -> StudyWorkspace:
        workspace = self._workspaces.get(owner_id)
        if workspace is not None:
            return workspace

        # One lock per owner: a slow first load only holds up that owner
        async with self._locks.setdefault(owner_id, asyncio.Lock()):
            workspace = self._workspaces.get(owner_id)
            if workspace is None:
                manager = StudySessionManager(owner_id, self.store, tick_interval=self.tick_interval)
                await manager.load_history()
                workspace = StudyWorkspace(manager, ChatService(self.agent, manager))
                self._workspaces[owner_id] = workspace
                logger.info(f"Opened workspace for {owner_id} with {len(manager.history)} past sessions")
            return workspace

    async def close(self) -> None:
        for workspace in self._workspaces.values():
            workspace.manager.close()
            await workspace.manager.drain()
        self._workspaces.clear()
        self._locks.clear()
