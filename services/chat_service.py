import logging
import time
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from db.history_repository import HistoryStoreError
from models.chat_models import ChatMessage, LogStudySessionArgs
from services.session_manager import StudySessionManager

logger = logging.getLogger(__name__)

GREETING = "Welcome to FocusFlow. How can I help you optimize your study session today?"
MISSING_DETAILS_REPLY = (
    "I couldn't log that session because some details were missing. "
    "Please make sure to specify both the subject and duration."
)
GENERIC_ERROR_REPLY = "Sorry, I encountered an error. Please try again."
LOG_TOOL_NAME = "logStudySession"


def _reply_text(response) -> str:
    if isinstance(response.content, str):
        return response.content
    return "".join(
        part if isinstance(part, str) else part.get("text", "")
        for part in response.content
    )


def _format_minutes(minutes: float) -> str:
    return str(int(minutes)) if float(minutes).is_integer() else str(minutes)


class ChatService:
    """Runs one user's conversation with the coach and applies its replies"""

    def __init__(self, agent, manager: StudySessionManager):
        self.agent = agent
        self.manager = manager
        self.conversation = agent.start_conversation()
        self.messages: List[ChatMessage] = [ChatMessage(role="model", text=GREETING)]

    def _reply(self, text: str) -> ChatMessage:
        message = ChatMessage(role="model", text=text)
        self.messages.append(message)
        return message

    async def handle_message(self, text: str) -> List[ChatMessage]:
        """
        Send a user message and return the coach messages it produced.

        Blank input is ignored. Failures never escape: the user gets an
        apology and the conversation stays usable.
        """
        if not text or not text.strip():
            return []

        self.messages.append(ChatMessage(role="user", text=text))
        replies: List[ChatMessage] = []
        start_time = time.time()

        try:
            response = await self.agent.send_message(self.conversation, text)
            logger.info(
                f"Coach replied for {self.manager.owner_id} in {(time.time() - start_time) * 1000:.2f}ms"
            )

            if response.tool_calls:
                for tool_call in response.tool_calls:
                    try:
                        reply = await self._handle_tool_call(tool_call)
                    except Exception as e:
                        # Every tool call needs a result or the next turn is rejected
                        logger.error(f"Error handling tool call {tool_call.get('name')}: {e}", exc_info=True)
                        self.agent.record_tool_result(self.conversation, tool_call.get("id"), "Tool call failed.")
                        reply = self._reply(GENERIC_ERROR_REPLY)
                    if reply:
                        replies.append(reply)
            else:
                response_text = _reply_text(response)
                replies.append(self._reply(response_text))
                self.manager.apply_chat_response(response_text)
        except Exception as e:
            logger.error(f"Error sending message: {e}", exc_info=True)
            replies.append(self._reply(GENERIC_ERROR_REPLY))

        return replies

    async def _handle_tool_call(self, tool_call: dict) -> Optional[ChatMessage]:
        if tool_call.get("name") != LOG_TOOL_NAME:
            logger.warning(f"Ignoring unknown tool call: {tool_call.get('name')}")
            self.agent.record_tool_result(self.conversation, tool_call.get("id"), "Unknown tool.")
            return None

        try:
            args = LogStudySessionArgs(**(tool_call.get("args") or {}))
            session_date = date.fromisoformat(args.date) if args.date else None
        except (ValidationError, ValueError) as e:
            logger.warning(f"Rejected logStudySession arguments {tool_call.get('args')}: {e}")
            self.agent.record_tool_result(self.conversation, tool_call.get("id"), "Missing or invalid details.")
            return self._reply(MISSING_DETAILS_REPLY)

        try:
            await self.manager.log_session(
                args.subject,
                args.duration / 60,  # the tool speaks minutes, history stores hours
                completed=True,
                on=session_date,
            )
        except HistoryStoreError as e:
            logger.error(f"Error logging session from chat: {e}")
            self.agent.record_tool_result(self.conversation, tool_call.get("id"), f"Database error: {e}")
            return self._reply(f"I tried to log your session, but a database error occurred: {e}")

        self.agent.record_tool_result(self.conversation, tool_call.get("id"), "Session logged.")
        return self._reply(
            f"Great work! I've logged a {_format_minutes(args.duration)}-minute session "
            f"for **{args.subject}** in your tracker."
        )
