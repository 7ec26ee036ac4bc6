from datetime import date, datetime
from typing import List, Optional
from uuid import uuid4

import pytest
from langchain_core.messages import AIMessage

from db.history_repository import HistoryStoreError
from models.plan_models import StudySession, StudySessionCreate
from services.session_manager import StudySessionManager

TODAY = date(2024, 5, 15)

PLAN_TEXT = """Here is your plan.

📅 **Daily Study Plan — Wednesday**
------------------------------------
🕒 **Total Study Time:** 3 hours
📈 **Strategy:** Hardest subject first while focus is fresh.

📚 **Subjects:**
1️⃣ **Physics** — 45 min — Kinematics
2️⃣ **Chemistry** — 1.5 hours — Organic reactions
3️⃣ **History** — 30 min

☕ **Breaks:**
- Short break after each session.
- Long break after 2-3 sessions.

💡 **Study Tip:**
- Use active recall after each block.

💬 **Motivation:**
- Small steps every day.
"""


def make_session(day: date, subject: str = "Math", hours: float = 1.0, completed: bool = True) -> StudySession:
    return StudySession(
        id=uuid4().hex,
        user_id="owner-1",
        subject=subject,
        duration=hours,
        date=day,
        completed=completed,
        created_at=datetime.combine(day, datetime.min.time()),
    )


class FakeHistoryStore:
    """In-memory stand-in for HistoryRepository"""

    def __init__(self, sessions: Optional[List[StudySession]] = None, fail: bool = False, missing_table: bool = False):
        self.sessions = list(sessions or [])
        self.fail = fail
        self.missing_table = missing_table
        self.inserted: List[StudySessionCreate] = []

    async def insert_session(self, owner_id: str, session: StudySessionCreate) -> StudySession:
        if self.fail:
            raise HistoryStoreError("connection refused", missing_table=self.missing_table)
        self.inserted.append(session)
        record = StudySession(
            id=uuid4().hex,
            user_id=owner_id,
            created_at=datetime.now(),
            **session.model_dump(),
        )
        self.sessions.insert(0, record)
        return record

    async def list_sessions(self, owner_id: str) -> List[StudySession]:
        if self.fail:
            raise HistoryStoreError('relation "study_sessions" does not exist', missing_table=self.missing_table)
        return list(self.sessions)


class FakeAgent:
    """Replays scripted model replies; an Exception in the script is raised instead"""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.sent: List[str] = []
        self.tool_results: List[tuple] = []

    def start_conversation(self):
        return []

    async def send_message(self, conversation, message: str) -> AIMessage:
        self.sent.append(message)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        conversation.append(response)
        return response

    def record_tool_result(self, conversation, tool_call_id: str, result: str) -> None:
        self.tool_results.append((tool_call_id, result))


def tool_call_reply(args: dict, name: str = "logStudySession") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": "call-1"}])


@pytest.fixture
def store():
    return FakeHistoryStore()


@pytest.fixture
def manager(store):
    return StudySessionManager("owner-1", store, tick_interval=None, today=lambda: TODAY)
