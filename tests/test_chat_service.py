from datetime import date

from langchain_core.messages import AIMessage

from services.chat_service import GENERIC_ERROR_REPLY, GREETING, MISSING_DETAILS_REPLY, ChatService
from services.session_manager import StudySessionManager

from tests.conftest import PLAN_TEXT, TODAY, FakeAgent, FakeHistoryStore, tool_call_reply


def make_chat(responses, store=None):
    manager = StudySessionManager("owner-1", store or FakeHistoryStore(), tick_interval=None, today=lambda: TODAY)
    agent = FakeAgent(responses)
    return ChatService(agent, manager), agent, manager


def test_conversation_opens_with_greeting():
    chat, _, _ = make_chat([])

    assert [m.text for m in chat.messages] == [GREETING]
    assert chat.messages[0].role == "model"


async def test_blank_message_is_ignored():
    chat, agent, _ = make_chat([])

    assert await chat.handle_message("   ") == []
    assert agent.sent == []
    assert len(chat.messages) == 1


async def test_plan_reply_updates_the_plan():
    chat, _, manager = make_chat([AIMessage(content=PLAN_TEXT)])

    replies = await chat.handle_message("Plan my day: physics, chemistry, history. 3 hours.")

    assert [r.text for r in replies] == [PLAN_TEXT]
    assert [m.role for m in chat.messages] == ["model", "user", "model"]
    assert [s.subject for s in manager.plan.subjects] == ["Physics", "Chemistry", "History"]


async def test_plain_reply_leaves_plan_alone():
    chat, _, manager = make_chat([AIMessage(content=PLAN_TEXT), AIMessage(content="Keep going!")])
    await chat.handle_message("plan please")
    plan = manager.plan

    await chat.handle_message("thanks")

    assert manager.plan is plan


async def test_log_tool_call_records_minutes_as_hours():
    store = FakeHistoryStore()
    chat, agent, manager = make_chat(
        [tool_call_reply({"subject": "Math", "duration": 45, "date": "2024-05-14"})], store=store
    )

    replies = await chat.handle_message("I just studied math for 45 minutes")

    assert replies[0].text == "Great work! I've logged a 45-minute session for **Math** in your tracker."
    assert store.inserted[0].duration == 0.75
    assert store.inserted[0].date == date(2024, 5, 14)
    assert manager.history[0].subject == "Math"
    assert agent.tool_results == [("call-1", "Session logged.")]


async def test_log_tool_call_defaults_to_today():
    store = FakeHistoryStore()
    chat, _, _ = make_chat([tool_call_reply({"subject": "Art", "duration": 30})], store=store)

    await chat.handle_message("did 30 min of art")

    assert store.inserted[0].date == TODAY


async def test_log_tool_call_with_missing_details_logs_nothing():
    store = FakeHistoryStore()
    chat, _, _ = make_chat(
        [tool_call_reply({"subject": "Math"}), tool_call_reply({"subject": "Math", "duration": "an hour"})],
        store=store,
    )

    first = await chat.handle_message("studied math")
    second = await chat.handle_message("studied math for an hour")

    assert first[0].text == MISSING_DETAILS_REPLY
    assert second[0].text == MISSING_DETAILS_REPLY
    assert store.inserted == []


async def test_log_tool_call_with_bad_date_logs_nothing():
    store = FakeHistoryStore()
    chat, _, _ = make_chat([tool_call_reply({"subject": "Math", "duration": 20, "date": "yesterday"})], store=store)

    replies = await chat.handle_message("studied math yesterday")

    assert replies[0].text == MISSING_DETAILS_REPLY
    assert store.inserted == []


async def test_store_failure_is_reported_in_chat():
    chat, _, manager = make_chat(
        [tool_call_reply({"subject": "Math", "duration": 45})], store=FakeHistoryStore(fail=True)
    )

    replies = await chat.handle_message("I just studied math for 45 minutes")

    assert replies[0].text.startswith("I tried to log your session, but a database error occurred:")
    assert manager.history == []


async def test_unknown_tool_is_ignored():
    chat, agent, _ = make_chat([tool_call_reply({"query": "x"}, name="searchWeb")])

    assert await chat.handle_message("search something") == []
    assert agent.tool_results == [("call-1", "Unknown tool.")]


async def test_agent_failure_yields_apology():
    chat, _, _ = make_chat([RuntimeError("quota exceeded")])

    replies = await chat.handle_message("hello")

    assert [r.text for r in replies] == [GENERIC_ERROR_REPLY]
    assert chat.messages[-1].text == GENERIC_ERROR_REPLY


async def test_negative_duration_is_rejected_and_answered():
    store = FakeHistoryStore()
    chat, agent, _ = make_chat([tool_call_reply({"subject": "Math", "duration": -30})], store=store)

    replies = await chat.handle_message("studied math for minus thirty minutes")

    assert replies[0].text == MISSING_DETAILS_REPLY
    assert store.inserted == []
    assert agent.tool_results == [("call-1", "Missing or invalid details.")]


async def test_unexpected_tool_failure_still_records_a_result(monkeypatch):
    chat, agent, manager = make_chat(
        [tool_call_reply({"subject": "Math", "duration": 30}), AIMessage(content="Still here.")]
    )

    async def broken_log_session(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(manager, "log_session", broken_log_session)

    replies = await chat.handle_message("studied math for 30 minutes")

    assert [r.text for r in replies] == [GENERIC_ERROR_REPLY]
    assert agent.tool_results == [("call-1", "Tool call failed.")]

    follow_up = await chat.handle_message("thanks")
    assert [r.text for r in follow_up] == ["Still here."]
