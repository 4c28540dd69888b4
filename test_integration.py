"""
Integration test: seed -> take exam -> save result -> leaderboard, analytics, export.
Runs against the in-memory Supabase stand-in and a scripted AI capability.
"""
import logging
from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeCapability, make_question
from examprep.aggregation import build_leaderboard, category_stats
from examprep.ai_flows import analyze_performance, build_performance_input
from examprep.export import format_result_report
from examprep.errors import ValidationError
from examprep.models import Exam, Section, UserProfile
from examprep.sample_data import SBI_PO_ID, SSC_CGL_ID, sample_data
from examprep.scoring import ExamSession, score_exam

logger = logging.getLogger(__name__)

START = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)


def take_exam(database, exam_id, user_id, pick, minutes):
    """Answer every item with pick(correct_index, n_options) and submit after `minutes`."""
    exam = database.get_exam(exam_id)
    session = ExamSession(exam, database.get_questions_for_exam(exam_id), user_id, started_at=START)
    for q in session.questions:
        if q.is_reading_comprehension:
            for sub in q.sub_questions:
                choice = pick(sub.correct_option_index, len(sub.options))
                if choice is not None:
                    session.select(q.id, choice, sub.id)
        else:
            choice = pick(q.correct_option_index, len(q.options))
            if choice is not None:
                session.select(q.id, choice)
    result = session.submit(START + timedelta(minutes=minutes))
    result_id = database.save_exam_result(result)
    logger.info(f"{user_id} scored {result.score} on {exam.name} ({result_id})")
    return result_id


def test_mock_exam_workflow(database):
    database.seed(*sample_data())
    for uid, name in (("asha", "Asha"), ("bilal", "Bilal")):
        database.ensure_user(UserProfile(id=uid, name=name))

    right = lambda correct, n: correct
    wrong = lambda correct, n: (correct + 1) % n
    skip = lambda correct, n: None

    asha_sbi = take_exam(database, SBI_PO_ID, "asha", right, 12)
    take_exam(database, SSC_CGL_ID, "asha", wrong, 20)
    take_exam(database, SBI_PO_ID, "bilal", skip, 5)

    # SBI PO: 8 items, 1 mark each, all correct
    stored = database.get_exam_result(asha_sbi)
    assert stored.score == 8
    assert stored.qualified is True
    assert all(s.qualified for s in stored.section_results)
    assert stored.auto_submitted is False

    # SSC: 4 wrong at -0.5, and the 15 minute clock ran out
    asha_results = database.get_results_for_user("asha")
    ssc = next(r for r in asha_results if r.exam_id == SSC_CGL_ID)
    assert ssc.score == -2
    assert ssc.qualified is False
    assert ssc.auto_submitted is True
    assert ssc.time_taken == 15 * 60

    results = database.get_results()
    profiles = database.get_user_profiles(r.user_id for r in results)
    board = build_leaderboard(results, profiles)
    assert [(e.name, e.total_points, e.exams_taken) for e in board] == [("Asha", 6, 2), ("Bilal", 0, 1)]

    banking = category_stats(results, "Banking")
    assert banking.average_score == 4
    assert banking.highest_score_exam_name == "SBI PO Prelims Mock 1"
    assert category_stats(results, "Railway").has_data is False

    report = format_result_report(stored, database.get_questions_for_exam(SBI_PO_ID), database.get_exam(SBI_PO_ID))
    assert "Score: 8 / 8 (100%)" in report
    assert "Result: Qualified" in report

    capability = FakeCapability({"suggestedTopics": ["Polity", "Geography"], "analysisSummary": "Revise GA."})
    analysis = analyze_performance(build_performance_input(ssc, test_type="Sectional"), capability)
    assert analysis.suggested_topics == ["Polity", "Geography"]
    assert "Weaknesses (topics answered poorly): Analogy, Geography, Number Series, Polity" in capability.prompts[0]


def test_exam_with_incomplete_question_set_cannot_start(database):
    exam = Exam(
        id="exam-half",
        name="Half Built",
        category="SSC",
        status="published",
        duration_min=10,
        sections=[Section(id="eng", name="English", questions_count=2)],
    )
    database.add_exam(exam)
    database.add_question(exam.id, make_question("q1", "eng"))

    with pytest.raises(ValidationError):
        ExamSession(database.get_exam(exam.id), database.get_questions_for_exam(exam.id), "asha", started_at=START)

    database.add_question(exam.id, make_question("q2", "eng"))
    session = ExamSession(database.get_exam(exam.id), database.get_questions_for_exam(exam.id), "asha", started_at=START)
    session.select("q1", 0)
    assert session.submit(START + timedelta(minutes=3)).score == 1


def test_declared_marks_count_comprehension_once(database):
    database.seed(*sample_data())
    exam = database.get_exam(SBI_PO_ID)
    questions = database.get_questions_for_exam(SBI_PO_ID)

    result = score_exam(exam, questions, {}, 0, "asha")

    # 7 declared questions, one of them a passage with 2 graded sub-questions
    assert (exam.total_questions, exam.total_marks) == (7, 7)
    assert (result.total_questions, result.max_score) == (8, 8)
