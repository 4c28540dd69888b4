"""
Exam scoring: classifies every answer, applies marks and negative marking per section,
and evaluates sectional and overall cut-offs. Also holds the in-memory attempt session
(answer state + timer) that feeds the scorer on submission.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from examprep.errors import ValidationError
from examprep.models import (
    Exam,
    ExamResult,
    Question,
    QuestionOutcome,
    Section,
    SectionResult,
    STATUS_CORRECT,
    STATUS_INCORRECT,
    STATUS_UNANSWERED,
)

logger = logging.getLogger(__name__)

# Exams saved without sections are scored as one section with no cut-off
IMPLICIT_SECTION_ID = "__all__"

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def _pct(part: Decimal, whole: Decimal) -> float:
    """part / whole * 100 rounded to 2 places; 0 when whole is 0."""
    if whole == 0:
        return 0.0
    return float(round(part / whole * HUNDRED, 2))


def _is_option_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class _Tally:
    """Running counts for one section."""

    items: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    score: Decimal = ZERO
    max_score: Decimal = ZERO

    @property
    def attempted(self) -> int:
        return self.correct + self.incorrect

    def add(self, outcome: QuestionOutcome, marks: Decimal) -> None:
        self.items += 1
        self.max_score += marks
        self.score += _dec(outcome.marks_awarded)
        if outcome.status == STATUS_CORRECT:
            self.correct += 1
        elif outcome.status == STATUS_INCORRECT:
            self.incorrect += 1
        else:
            self.unanswered += 1


def _resolve_sections(exam: Exam, questions: Sequence[Question]) -> List[Tuple[Section, List[Question]]]:
    """Pair every section with its questions, in exam order, validating the declared counts."""
    if not exam.sections:
        implicit = Section(id=IMPLICIT_SECTION_ID, name="All Questions", questions_count=len(questions))
        return [(implicit, list(questions))]

    grouped: Dict[str, List[Question]] = {s.id: [] for s in exam.sections}
    for q in questions:
        if q.section_id not in grouped:
            raise ValidationError(f"Question {q.id} belongs to unknown section {q.section_id!r}")
        grouped[q.section_id].append(q)

    for section in exam.sections:
        found = len(grouped[section.id])
        if found != section.questions_count:
            raise ValidationError(
                f"Section {section.name!r} declares {section.questions_count} questions but {found} were supplied"
            )
    return [(s, grouped[s.id]) for s in exam.sections]


def validate_question_set(exam: Exam, questions: Sequence[Question]) -> List[Tuple[Section, List[Question]]]:
    """
    Check that a question set can be scored against the exam: unique ids, every
    question in a declared section and every section holding its declared count.

    Returns:
        (section, questions) pairs in exam order

    Raises:
        ValidationError: the question set does not match the exam
    """
    ids = [q.id for q in questions]
    if len(set(ids)) != len(ids):
        raise ValidationError("Question list contains duplicate ids")
    return _resolve_sections(exam, questions)


def _normalize_answers(questions: Sequence[Question], answers: Mapping) -> Dict[str, Any]:
    """
    Map answer keys (question id, or 0-based position in the question list) to question ids.
    Unknown keys fail the whole computation; None values mean unanswered and are dropped.
    """
    by_id = {q.id: q for q in questions}
    normalized: Dict[str, Any] = {}
    for key, value in answers.items():
        if _is_option_index(key):
            if not 0 <= key < len(questions):
                raise ValidationError(f"Answer references question index {key}, outside 0..{len(questions) - 1}")
            qid = questions[key].id
        elif isinstance(key, str) and key in by_id:
            qid = key
        else:
            raise ValidationError(f"Answer references unknown question {key!r}")
        if qid in normalized:
            raise ValidationError(f"Question {qid} answered more than once")
        if value is not None:
            normalized[qid] = dict(value) if isinstance(value, Mapping) else value
    return normalized


def _grade_choice(options: List[str], correct: int, selected: Any, where: str) -> str:
    if selected is None:
        return STATUS_UNANSWERED
    if not _is_option_index(selected) or not 0 <= selected < len(options):
        raise ValidationError(f"Invalid option {selected!r} for {where}")
    return STATUS_CORRECT if selected == correct else STATUS_INCORRECT


def _grade_question(
    question: Question, answer: Any, marks: Decimal, negative: Decimal, section_id: str
) -> List[QuestionOutcome]:
    """Grade one question into one outcome (standard) or one per sub-question (RC)."""

    def outcome(status: str, correct: int, selected: Optional[int], sub_id: Optional[str] = None) -> QuestionOutcome:
        if status == STATUS_CORRECT:
            awarded = marks
        elif status == STATUS_INCORRECT:
            awarded = -negative
        else:
            awarded = ZERO
        return QuestionOutcome(
            question_id=question.id,
            sub_question_id=sub_id,
            section_id=section_id,
            subject=question.subject,
            topic=question.topic,
            selected_option=selected,
            correct_option=correct,
            status=status,
            marks_awarded=float(awarded),
        )

    if not question.is_reading_comprehension:
        status = _grade_choice(question.options, question.correct_option_index, answer, f"question {question.id}")
        return [outcome(status, question.correct_option_index, answer)]

    if answer is None:
        answer = {}
    if not isinstance(answer, Mapping):
        raise ValidationError(f"Reading comprehension question {question.id} expects a sub-question answer map")
    known = {s.id for s in question.sub_questions}
    unknown = [k for k in answer if k not in known]
    if unknown:
        raise ValidationError(f"Question {question.id}: unknown sub-questions {sorted(map(str, unknown))}")

    outcomes = []
    for sub in question.sub_questions:
        selected = answer.get(sub.id)
        status = _grade_choice(sub.options, sub.correct_option_index, selected, f"sub-question {sub.id}")
        outcomes.append(outcome(status, sub.correct_option_index, selected, sub.id))
    return outcomes


def score_exam(
    exam: Exam,
    questions: Sequence[Question],
    answers: Mapping,
    time_taken: int,
    user_id: str,
    submitted_at: Optional[datetime] = None,
    auto_submitted: bool = False,
) -> ExamResult:
    """
    Score a finished attempt.

    Args:
        exam: Exam definition (sections, negative marking, cut-offs)
        questions: Ordered questions, each tagged with its section_id
        answers: {question_id or index: option index | {sub_question_id: option index}}
        time_taken: Elapsed seconds
        user_id: Owner of the result
        submitted_at: Submission timestamp (the store stamps it when omitted)
        auto_submitted: True when the timer ran out

    Returns:
        A complete ExamResult. Pure: the same input always yields an equal result.

    Raises:
        ValidationError: unknown question/sub-question, malformed answer,
            section count mismatch or negative time. No partial result is produced.
    """
    if time_taken < 0:
        raise ValidationError("time_taken cannot be negative")

    sections = validate_question_set(exam, questions)
    normalized = _normalize_answers(questions, answers)
    exam_negative = _dec(exam.negative_mark_per_wrong)

    section_results: List[SectionResult] = []
    outcomes: List[QuestionOutcome] = []
    totals = _Tally()
    for section, section_questions in sections:
        negative = _dec(section.negative_mark) if section.negative_mark is not None else exam_negative
        tally = _Tally()
        for q in section_questions:
            marks = _dec(q.marks if q.marks is not None else section.marks_per_question)
            for graded in _grade_question(q, normalized.get(q.id), marks, negative, section.id):
                tally.add(graded, marks)
                totals.add(graded, marks)
                outcomes.append(graded)

        qualified = section.cutoff_marks is None or tally.score >= _dec(section.cutoff_marks)
        section_results.append(
            SectionResult(
                section_id=section.id,
                section_name=section.name,
                total_questions=tally.items,
                attempted=tally.attempted,
                correct=tally.correct,
                incorrect=tally.incorrect,
                unattempted=tally.unanswered,
                score=float(tally.score),
                max_score=float(tally.max_score),
                accuracy=_pct(Decimal(tally.correct), Decimal(tally.attempted)),
                qualified=qualified,
            )
        )

    # Sum of exact section subtotals
    total_score = sum((_dec(s.score) for s in section_results), ZERO)
    overall_qualified = exam.cutoff is None or total_score >= _dec(exam.cutoff)

    result = ExamResult(
        user_id=user_id,
        exam_id=exam.id,
        exam_name=exam.name,
        exam_category=exam.category,
        score=float(total_score),
        max_score=float(totals.max_score),
        percentage=_pct(total_score, totals.max_score),
        time_taken=int(time_taken),
        total_questions=totals.items,
        attempted_questions=totals.attempted,
        correct_answers=totals.correct,
        incorrect_answers=totals.incorrect,
        unanswered_questions=totals.unanswered,
        accuracy=_pct(Decimal(totals.correct), Decimal(totals.attempted)),
        qualified=overall_qualified,
        cutoff=exam.cutoff,
        section_results=tuple(section_results),
        question_outcomes=tuple(outcomes),
        answers=normalized,
        auto_submitted=auto_submitted,
        submitted_at=submitted_at,
    )
    logger.info(
        f"Scored exam {exam.id} for {user_id}: {result.score}/{result.max_score}, "
        f"accuracy={result.accuracy}%, qualified={result.qualified}"
    )
    return result


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExamSession:
    """Client-held state of one attempt: selected answers and the countdown timer."""

    def __init__(self, exam: Exam, questions: Sequence[Question], user_id: str, started_at: Optional[datetime] = None):
        """
        Initialize an attempt.

        Args:
            exam: Exam being taken
            questions: Ordered questions for the exam
            user_id: Test-taker, passed explicitly (no ambient session)
            started_at: Start of the clock (defaults to now, UTC)

        Raises:
            ValidationError: the question set does not match the exam sections
        """
        validate_question_set(exam, questions)
        self.exam = exam
        self.questions = list(questions)
        self.user_id = user_id
        self.started_at = started_at or _utcnow()
        self.answers: Dict[str, Any] = {}
        self.current_index = 0
        self.result: Optional[ExamResult] = None
        self._by_id = {q.id: q for q in self.questions}

    @property
    def time_limit_seconds(self) -> int:
        return self.exam.duration_min * 60

    @property
    def submitted(self) -> bool:
        return self.result is not None

    def _question(self, question_id: str) -> Question:
        question = self._by_id.get(question_id)
        if question is None:
            raise ValidationError(f"Question {question_id} is not part of this exam")
        return question

    def select(self, question_id: str, option_index: int, sub_question_id: Optional[str] = None) -> None:
        """Record the learner's choice, replacing any earlier choice for the same item."""
        if self.submitted:
            raise ValidationError("Exam already submitted")
        question = self._question(question_id)
        if question.is_reading_comprehension:
            sub = question.get_sub_question(sub_question_id) if sub_question_id else None
            if sub is None:
                raise ValidationError(f"Unknown sub-question {sub_question_id!r} for question {question_id}")
            if not _is_option_index(option_index) or not 0 <= option_index < len(sub.options):
                raise ValidationError(f"Invalid option {option_index!r} for sub-question {sub.id}")
            self.answers.setdefault(question_id, {})[sub.id] = option_index
        else:
            if not _is_option_index(option_index) or not 0 <= option_index < len(question.options):
                raise ValidationError(f"Invalid option {option_index!r} for question {question_id}")
            self.answers[question_id] = option_index

    def clear(self, question_id: str, sub_question_id: Optional[str] = None) -> None:
        """Remove a choice so the item counts as unanswered."""
        if self.submitted:
            raise ValidationError("Exam already submitted")
        self._question(question_id)
        if sub_question_id is None:
            self.answers.pop(question_id, None)
            return
        sub_answers = self.answers.get(question_id)
        if isinstance(sub_answers, dict):
            sub_answers.pop(sub_question_id, None)
            if not sub_answers:
                self.answers.pop(question_id)

    def answered_count(self) -> int:
        return len(self.answers)

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or _utcnow()
        return max(0, int((now - self.started_at).total_seconds()))

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        return max(0, self.time_limit_seconds - self.elapsed_seconds(now))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining_seconds(now) <= 0

    def submit(self, now: Optional[datetime] = None) -> ExamResult:
        """
        Finalize the attempt and score it.

        Time taken is capped at the exam duration; the result is flagged
        auto_submitted when the clock had already run out.
        """
        if self.submitted:
            raise ValidationError("Exam already submitted")
        now = now or _utcnow()
        expired = self.is_expired(now)
        time_taken = min(self.elapsed_seconds(now), self.time_limit_seconds)
        self.result = score_exam(
            self.exam,
            self.questions,
            self.answers,
            time_taken,
            self.user_id,
            submitted_at=now,
            auto_submitted=expired,
        )
        return self.result

    def get_summary(self, now: Optional[datetime] = None) -> Dict:
        """Real-time progress for display during the exam."""
        return {
            "exam_id": self.exam.id,
            "total_questions": len(self.questions),
            "questions_answered": self.answered_count(),
            "questions_skipped": len(self.questions) - self.answered_count(),
            "time_elapsed_sec": self.elapsed_seconds(now),
            "time_remaining_sec": self.remaining_seconds(now),
        }
