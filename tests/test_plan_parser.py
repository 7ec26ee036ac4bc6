from services.plan_parser import parse_study_plan, parse_subjects

from tests.conftest import PLAN_TEXT


def test_text_without_plan_marker_is_not_a_plan():
    assert parse_study_plan("Sure! Which subjects do you need to cover today?") is None
    assert parse_study_plan("") is None


def test_full_plan_is_extracted():
    plan = parse_study_plan(PLAN_TEXT)

    assert plan.total_time == "3 hours"
    assert plan.study_tip == "Use active recall after each block."
    assert plan.motivation == "Small steps every day."


def test_subjects_keep_order_and_start_incomplete():
    plan = parse_study_plan(PLAN_TEXT)

    assert [s.subject for s in plan.subjects] == ["Physics", "Chemistry", "History"]
    assert [s.duration for s in plan.subjects] == ["45 min", "1.5 hours", "30 min"]
    assert all(not s.completed for s in plan.subjects)


def test_missing_topic_defaults_to_na():
    plan = parse_study_plan(PLAN_TEXT)

    assert plan.subjects[0].topic == "Kinematics"
    assert plan.subjects[2].topic == "N/A"


def test_missing_sections_fall_back_to_na():
    text = "📅 **Daily Study Plan — Monday**\nNo details yet."
    plan = parse_study_plan(text)

    assert plan is not None
    assert plan.total_time == "N/A"
    assert plan.study_tip == "N/A"
    assert plan.motivation == "N/A"
    assert plan.subjects == []


def test_lines_after_breaks_are_not_subjects():
    text = (
        "📅 **Daily Study Plan — Friday**\n"
        "📚 **Subjects:**\n"
        "1️⃣ **Biology** — 20 min — Cells\n"
        "☕ **Breaks:**\n"
        "2️⃣ **Not a subject** — 5 min — Stretch\n"
    )

    subjects = parse_subjects(text)

    assert len(subjects) == 1
    assert subjects[0].subject == "Biology"


def test_subject_line_without_duration_is_skipped():
    text = (
        "📅 **Daily Study Plan — Friday**\n"
        "📚 **Subjects:**\n"
        "1️⃣ **Biology**\n"
        "2️⃣ **Art** — 40 min — Sketching\n"
    )

    subjects = parse_subjects(text)

    assert [s.subject for s in subjects] == ["Art"]
