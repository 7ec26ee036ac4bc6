from typing import List
from langchain.chat_models import init_chat_model
from dotenv import load_dotenv
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import PydanticOutputParser

from models.plan_models import StudyPlan
from utils.config import AppConfig


load_dotenv(override=True)


class PlannerAgent:
    def __init__(self, model_name: str = AppConfig.PLANNER_MODEL):
        """
        Initialize the Planner Agent with a language model.
        """
        self.llm_model = init_chat_model(model_name)

    async def generate_study_plan(
        self,
        subjects: List[str],
        available_hours: float,
        priorities: List[str] = None,
    ) -> StudyPlan:
        """
        Returns a schema-constrained daily study plan instead of markdown.

        Args:
            subjects (List[str]): Subjects or topics to study
            available_hours (float): Total hours available for the session
            priorities (List[str]): Subjects that are a priority or feel difficult

        Returns:
            StudyPlan: Subjects in execution order with durations like "45 min"
        """
        parser = PydanticOutputParser(pydantic_object=StudyPlan)
        format_instructions = parser.get_format_instructions()
        escaped_format_instructions = format_instructions.replace("{", "{{").replace("}", "}}")

        prompt_template = ChatPromptTemplate.from_messages([
            ("system",
             "You are FocusFlow, an expert study planner who builds strategic daily schedules. "
             "Place priority and difficult subjects first, while focus is highest."),
            ("human",
             "Create a daily study plan for these subjects: {subjects}.\n\n"
             "Requirements:\n"
             "- Total available time: {available_hours} hours\n"
             "- Priority or difficult subjects: {priorities}\n"
             "- Express every duration in minutes, e.g. \"45 min\"\n"
             "- Give one focus tip and one motivational line\n"
             "- Leave every `completed` flag false\n\n"
             f"Format your response according to this schema:\n{escaped_format_instructions}")
        ])

        chain = prompt_template | self.llm_model | parser
        plan = await chain.ainvoke({
            "subjects": ", ".join(subjects),
            "available_hours": available_hours,
            "priorities": ", ".join(priorities or []) or "none",
        })
        for entry in plan.subjects:
            entry.completed = False
        return plan
