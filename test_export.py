"""Plain-text result reports and question papers."""
from datetime import datetime, timezone
from dataclasses import replace

from examprep.export import format_question_paper, format_result_report, paper_filename, result_filename
from examprep.models import Exam
from examprep.scoring import score_exam


def test_result_report(two_section_exam):
    exam, questions = two_section_exam
    questions = [replace(q, explanation="Think again.") if q.id == "a1" else q for q in questions]
    submitted = datetime(2026, 4, 2, 10, 30, tzinfo=timezone.utc)
    result = score_exam(exam, questions, {"a0": 0, "a1": 3}, 754, "u1", submitted_at=submitted)

    report = format_result_report(result, questions, exam)

    assert report.startswith("Exam: Banking Mock\nCategory: Banking\nSubmitted: 2026-04-02 10:30 UTC\n")
    assert "Score: 0.75 / 10 (7.5%)" in report
    assert "Accuracy: 50%" in report
    assert "Time Taken: 12m 34s" in report
    assert "  Section A: 0.75/5 | attempted 2/5 | accuracy 50% | Not qualified" in report
    assert "Question 2:\nQuestion a1\nYour Answer: (d) Option 3\nCorrect Answer: (b) Option 1\nStatus: Incorrect (-0.25)\n" in report
    assert "Explanation: Think again." in report
    assert "Status: Unanswered (0)" in report
    assert result_filename(result) == "Banking_Mock_Result.txt"


def test_result_report_hides_explanations_when_disabled(two_section_exam):
    exam, questions = two_section_exam
    exam = replace(exam, show_explanations=False)
    questions = [replace(q, explanation="Hidden reasoning") for q in questions]
    result = score_exam(exam, questions, {}, 60, "u1")
    assert "Hidden reasoning" not in format_result_report(result, questions, exam)


def test_result_report_reading_comprehension(rc_exam):
    exam, questions = rc_exam
    result = score_exam(exam, questions, {"rc1": {"rc1-a": 0}}, 60, "u1")
    report = format_result_report(result, questions, exam)
    assert "Passage: A short passage." in report
    assert "  Sub-Question 1: First?\n  Your Answer: (a) x\n  Correct Answer: (a) x\n  Status: Correct (+2)\n" in report
    assert "  Sub-Question 2: Second?\n  Your Answer: Not answered\n" in report


def test_question_paper(rc_exam):
    exam, questions = rc_exam
    paper = format_question_paper(exam, questions)
    assert paper.startswith("Exam: English Practice\nCategory: SSC\nTotal Questions: 2\nDuration: 10 minutes\n")
    assert "  (a) Option 0\n  (b) Option 1\n" in paper
    assert "    (c) z\n" in paper
    assert "Correct Answer" not in paper

    with_answers = format_question_paper(exam, questions, with_answers=True)
    assert "Correct Answer: (b) Option 1" in with_answers
    assert "  Correct Answer: (c) z" in with_answers


def test_paper_filename():
    exam = Exam(id="x", name="SBI PO Mock 1", category="Banking")
    assert paper_filename(exam) == "SBI_PO_Mock_1_Questions.txt"
    assert paper_filename(exam, with_answers=True) == "SBI_PO_Mock_1_Questions_with_answers.txt"
