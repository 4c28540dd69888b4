"""Plain-text downloads: a learner's result report and an exam's question paper."""
from datetime import timezone
from typing import Dict, List, Optional, Sequence

from examprep.models import Exam, ExamResult, Question, QuestionOutcome, STATUS_CORRECT, STATUS_INCORRECT
from examprep.scoring import IMPLICIT_SECTION_ID

RULE = "-" * 50 + "\n"
STATUS_LABELS = {STATUS_CORRECT: "Correct", STATUS_INCORRECT: "Incorrect"}


def option_letter(index: int) -> str:
    return chr(ord("a") + index)


def _format_option(options: List[str], index: Optional[int]) -> str:
    if index is None:
        return "Not answered"
    text = options[index] if 0 <= index < len(options) else "?"
    return f"({option_letter(index)}) {text}"


def _format_time(seconds: int) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def _format_marks(value: float) -> str:
    return f"{value:+g}" if value else "0"


def format_result_report(result: ExamResult, questions: Sequence[Question], exam: Optional[Exam] = None) -> str:
    """
    Text report of one result: summary, section breakdown and, question by question,
    the learner's answer against the correct one.
    """
    show_explanations = exam.show_explanations if exam else True
    content = f"Exam: {result.exam_name}\n"
    content += f"Category: {result.exam_category}\n"
    if result.submitted_at:
        content += f"Submitted: {result.submitted_at.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}\n"
    content += RULE
    content += f"Score: {result.score:g} / {result.max_score:g} ({result.percentage:g}%)\n"
    content += f"Accuracy: {result.accuracy:g}%\n"
    content += f"Time Taken: {_format_time(result.time_taken)}\n"
    content += (
        f"Questions: {result.total_questions} | Correct: {result.correct_answers} | "
        f"Incorrect: {result.incorrect_answers} | Unanswered: {result.unanswered_questions}\n"
    )
    if result.cutoff is not None:
        content += f"Cut-off: {result.cutoff:g} | Result: {'Qualified' if result.qualified else 'Not qualified'}\n"
    sections = [s for s in result.section_results if s.section_id != IMPLICIT_SECTION_ID]
    if sections:
        content += "\nSections:\n"
        for s in sections:
            status = "Qualified" if s.qualified else "Not qualified"
            content += (
                f"  {s.section_name}: {s.score:g}/{s.max_score:g} | attempted {s.attempted}/{s.total_questions} | "
                f"accuracy {s.accuracy:g}% | {status}\n"
            )
    content += "\n" + RULE + "\n"

    outcomes: Dict[tuple, QuestionOutcome] = {(o.question_id, o.sub_question_id): o for o in result.question_outcomes}
    for index, question in enumerate(questions, start=1):
        content += f"Question {index}:\n"
        if question.is_reading_comprehension:
            content += f"Passage: {question.passage or 'N/A'}\n\n"
            for sub_index, sub in enumerate(question.sub_questions, start=1):
                outcome = outcomes.get((question.id, sub.id))
                content += f"  Sub-Question {sub_index}: {sub.question_text}\n"
                content += _outcome_lines(outcome, sub.options, sub.correct_option_index, "  ")
                if show_explanations and sub.explanation:
                    content += f"  Explanation: {sub.explanation}\n"
                content += "\n"
        else:
            content += f"{question.question_text}\n"
            outcome = outcomes.get((question.id, None))
            content += _outcome_lines(outcome, question.options, question.correct_option_index, "")
            if show_explanations and question.explanation:
                content += f"Explanation: {question.explanation}\n"
        content += "\n" + RULE + "\n"
    return content


def _outcome_lines(outcome: Optional[QuestionOutcome], options: List[str], correct: int, indent: str) -> str:
    selected = outcome.selected_option if outcome else None
    status = STATUS_LABELS.get(outcome.status, "Unanswered") if outcome else "Unanswered"
    marks = _format_marks(outcome.marks_awarded) if outcome else "0"
    lines = f"{indent}Your Answer: {_format_option(options, selected)}\n"
    lines += f"{indent}Correct Answer: {_format_option(options, correct)}\n"
    lines += f"{indent}Status: {status} ({marks})\n"
    return lines


def format_question_paper(exam: Exam, questions: Sequence[Question], with_answers: bool = False) -> str:
    """Printable question paper, optionally with answers and explanations."""
    content = f"Exam: {exam.name}\n"
    content += f"Category: {exam.category}\n"
    content += f"Total Questions: {exam.total_questions or len(questions)}\n"
    content += f"Duration: {exam.duration_min} minutes\n"
    content += RULE + "\n"

    for index, question in enumerate(questions, start=1):
        content += f"Question {index}:\n"
        if question.is_reading_comprehension:
            content += f"Passage: {question.passage or 'N/A'}\n\n"
            for sub_index, sub in enumerate(question.sub_questions, start=1):
                content += f"  Sub-Question {sub_index}: {sub.question_text}\n"
                for i, opt in enumerate(sub.options):
                    content += f"    ({option_letter(i)}) {opt}\n"
                if with_answers:
                    content += f"  Correct Answer: {_format_option(sub.options, sub.correct_option_index)}\n"
                    if sub.explanation:
                        content += f"  Explanation: {sub.explanation}\n"
                content += "\n"
        else:
            content += f"{question.question_text}\n\n"
            for i, opt in enumerate(question.options):
                content += f"  ({option_letter(i)}) {opt}\n"
            if with_answers:
                content += f"\nCorrect Answer: {_format_option(question.options, question.correct_option_index)}\n"
                if question.explanation:
                    content += f"Explanation: {question.explanation}\n"
        content += "\n" + RULE + "\n"
    return content


def paper_filename(exam: Exam, with_answers: bool = False) -> str:
    suffix = "_with_answers" if with_answers else ""
    return f"{exam.name.replace(' ', '_')}_Questions{suffix}.txt"


def result_filename(result: ExamResult) -> str:
    return f"{result.exam_name.replace(' ', '_')}_Result.txt"
