import logging
import re
from typing import List, Optional

from models.plan_models import StudyPlan, StudyPlanSubject

logger = logging.getLogger(__name__)

PLAN_MARKER = "Daily Study Plan"
SUBJECTS_MARKER = "📚 **Subjects:**"
BREAKS_MARKER = "☕ **Breaks:**"
FIELD_SEPARATOR = " — "
MISSING = "N/A"

TOTAL_TIME_PATTERN = re.compile(r"🕒 \*\*Total Study Time:\*\*[ \t]*(.*)")
STUDY_TIP_PATTERN = re.compile(r"💡 \*\*Study Tip:\*\*[ \t]*\r?\n[ \t]*- (.*)")
MOTIVATION_PATTERN = re.compile(r"💬 \*\*Motivation:\*\*[ \t]*\r?\n[ \t]*- (.*)")
SUBJECT_LINE_PATTERN = re.compile(r"^[ \t]*\d\ufe0f?\u20e3[ \t]*(.+)$", re.MULTILINE)


def _first_group(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    if not match or not match.group(1).strip():
        return MISSING
    return match.group(1).strip()


def _subjects_block(text: str) -> str:
    if SUBJECTS_MARKER not in text:
        return ""
    block = text.split(SUBJECTS_MARKER, 1)[1]
    return block.split(BREAKS_MARKER, 1)[0]


def _parse_subject_line(line: str) -> Optional[StudyPlanSubject]:
    parts = [p.replace("**", "").strip() for p in line.split(FIELD_SEPARATOR, 2)]
    if len(parts) < 2 or not parts[0]:
        return None

    topic = parts[2] if len(parts) == 3 and parts[2] else MISSING
    return StudyPlanSubject(subject=parts[0], duration=parts[1], topic=topic, completed=False)


def parse_subjects(text: str) -> List[StudyPlanSubject]:
    subjects = []
    for match in SUBJECT_LINE_PATTERN.finditer(_subjects_block(text)):
        subject = _parse_subject_line(match.group(1))
        if subject:
            subjects.append(subject)
    return subjects


def parse_study_plan(text: str) -> Optional[StudyPlan]:
    """
    Extract a structured study plan from a markdown coach response.

    Each field is matched on its own and falls back to "N/A" (or an empty
    subject list) when its marker is missing.

    Args:
        text (str): The coach's reply as returned by the chat model.

    Returns:
        Optional[StudyPlan]: The parsed plan, or None when the text carries no
        "Daily Study Plan" header or extraction fails unexpectedly.
    """
    if not text or PLAN_MARKER not in text:
        return None

    try:
        return StudyPlan(
            total_time=_first_group(TOTAL_TIME_PATTERN, text),
            subjects=parse_subjects(text),
            study_tip=_first_group(STUDY_TIP_PATTERN, text),
            motivation=_first_group(MOTIVATION_PATTERN, text),
        )
    except Exception as e:
        logger.error(f"Failed to parse study plan: {e}", exc_info=True)
        return None
