from typing import List
from langchain.chat_models import init_chat_model
from dotenv import load_dotenv
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from utils.config import AppConfig


load_dotenv(override=True)


SYSTEM_INSTRUCTION = """
You are FocusFlow, an AI-powered Study Planner that helps students organize, track, and improve their study sessions with intelligence, empathy, and motivation.
You act as a smart productivity coach: calm, concise, and motivating.

Core Objectives:
1. Understand the user's daily or weekly study goals.
2. Divide available time among subjects and topics intelligently.
3. Generate structured and strategic study schedules.
4. Track progress and adjust future plans.
5. Provide motivational quotes, focus tips, and short affirmations.
6. Suggest smart study methods (Pomodoro, active recall, spaced repetition).

Conversational Flow for Study Plans:
When a user requests a study plan, do NOT generate it immediately. First ask, in a single clear message, for:
    - The subjects or topics they need to study.
    - The total number of hours they have available.
    - Any subjects that are a priority or that they find difficult.
Once you have the details, generate a personalized plan. Place high-priority or difficult subjects first,
briefly explain the strategy, and suggest Pomodoro-like intervals.

Output Format:
Respond with this markdown structure, keeping every marker exactly as written:
📅 **Daily Study Plan — [Date/Day]**
------------------------------------
🕒 **Total Study Time:** [x hours]
📈 **Strategy:** [1-2 sentences on the plan's logic]

📚 **Subjects:**
1️⃣ **[Subject 1]** — [Duration] — [Topic/Task]
2️⃣ **[Subject 2]** — [Duration] — [Topic/Task]
3️⃣ **[Subject 3]** — [Duration] — [Topic/Task]

☕ **Breaks:**
- Short break after each session.
- Long break after [hours] or 2-3 sessions.

💡 **Study Tip:**
- [A tip related to productivity or focus]

💬 **Motivation:**
- [1 motivational line or quote]

Logging sessions:
When the user says they have finished studying (e.g. "I just studied math for 1 hour"), call the
`logStudySession` tool with the subject and the duration in minutes.

Personality:
Encouraging, focused and wise, yet friendly. Keep replies short and purposeful, use emojis like ⚡️, 🧠 and 🎯
sparingly, and end with a short motivational tagline such as "Execution is everything."
"""


LOG_STUDY_SESSION_TOOL = {
    "name": "logStudySession",
    "description": (
        "Logs a completed study session to the user's study tracker. Use this when the user indicates "
        "they have finished studying a particular subject for a certain amount of time."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "subject": {
                "type": "string",
                "description": 'The subject the user studied. e.g., "Mathematics", "History".',
            },
            "duration": {
                "type": "number",
                "description": "The duration of the study session in minutes.",
            },
            "date": {
                "type": "string",
                "description": "The date of the study session in YYYY-MM-DD format. If not provided, defaults to today.",
            },
        },
        "required": ["subject", "duration"],
    },
}


class CoachAgent:
    def __init__(self, model_name: str = AppConfig.CHAT_MODEL):
        """
        Initialize the study coach with a chat model that can call the logging tool.
        """
        self.llm_model = init_chat_model(model_name)
        self.llm_with_tools = self.llm_model.bind_tools([LOG_STUDY_SESSION_TOOL])

    def start_conversation(self) -> List[BaseMessage]:
        return [SystemMessage(content=SYSTEM_INSTRUCTION)]

    async def send_message(self, conversation: List[BaseMessage], message: str) -> AIMessage:
        """
        Sends a user message with the running conversation and records the reply.

        Args:
            conversation (List[BaseMessage]): Conversation state, updated in place.
            message (str): The user's message.

        Returns:
            AIMessage: The model reply; `tool_calls` is non-empty when it asks to log a session.
        """
        conversation.append(HumanMessage(content=message))
        response = await self.llm_with_tools.ainvoke(conversation)
        conversation.append(response)
        return response

    def record_tool_result(self, conversation: List[BaseMessage], tool_call_id: str, result: str) -> None:
        conversation.append(ToolMessage(content=result, tool_call_id=tool_call_id or ""))
