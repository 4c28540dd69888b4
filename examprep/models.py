"""
Data contracts for exams, questions and results.
Rows in Supabase use snake_case columns; each model converts to and from its row.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from examprep.errors import ValidationError

QUESTION_STANDARD = "Standard"
QUESTION_RC = "Reading Comprehension"
QUESTION_TYPES = (QUESTION_STANDARD, QUESTION_RC)

DIFFICULTIES = ("easy", "medium", "hard")
EXAM_TYPES = ("Prelims", "Mains", "Mock Test", "Practice", "Custom")
EXAM_STATUSES = ("published", "draft", "archived")

STATUS_CORRECT = "correct"
STATUS_INCORRECT = "incorrect"
STATUS_UNANSWERED = "unanswered"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Accept a datetime or an ISO string (Supabase returns 'Z'-suffixed timestamps)."""
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}")
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


@dataclass
class Section:
    id: str
    name: str
    questions_count: int
    marks_per_question: float = 1.0
    cutoff_marks: Optional[float] = None
    negative_mark: Optional[float] = None  # overrides Exam.negative_mark_per_wrong
    time_limit_min: Optional[int] = None
    instructions: Optional[str] = None

    @property
    def max_marks(self) -> float:
        return self.questions_count * self.marks_per_question

    @classmethod
    def from_row(cls, row: Dict) -> "Section":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or str(row["id"]),
            questions_count=int(row.get("questions_count", 0)),
            marks_per_question=float(row["marks_per_question"]) if row.get("marks_per_question") is not None else 1.0,
            cutoff_marks=_opt_float(row.get("cutoff_marks")),
            negative_mark=_opt_float(row.get("negative_mark")),
            time_limit_min=row.get("time_limit_min"),
            instructions=row.get("instructions"),
        )

    def to_row(self) -> Dict:
        return asdict(self)


@dataclass
class Exam:
    id: str
    name: str
    category: str
    sections: List[Section] = field(default_factory=list)
    sub_category: List[str] = field(default_factory=list)
    exam_type: str = "Mock Test"
    status: str = "draft"
    duration_min: int = 60
    negative_mark_per_wrong: float = 0.0
    cutoff: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    show_explanations: bool = True
    created_at: Optional[datetime] = None

    @property
    def total_questions(self) -> int:
        """Declared question count. A reading comprehension question counts once here
        but each of its sub-questions is graded, so a result can hold more items."""
        return sum(s.questions_count for s in self.sections)

    @property
    def total_marks(self) -> float:
        """Declared marks (questions_count x marks_per_question). The scored max_score
        also counts reading comprehension sub-questions and per-question marks."""
        return sum(s.max_marks for s in self.sections)

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    def get_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)

    def is_open(self, now: datetime) -> bool:
        """True when ``now`` falls inside the scheduling window (no window = always open)."""
        if self.start_time and now < self.start_time:
            return False
        if self.end_time and now > self.end_time:
            return False
        return True

    @classmethod
    def from_row(cls, row: Dict) -> "Exam":
        sub_category = row.get("sub_category") or []
        if isinstance(sub_category, str):
            sub_category = [sub_category]
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            category=row.get("category", ""),
            sections=[Section.from_row(s) for s in (row.get("sections") or [])],
            sub_category=list(sub_category),
            exam_type=row.get("exam_type") or "Mock Test",
            status=row.get("status") or "draft",
            duration_min=int(row.get("duration_min") or 0),
            negative_mark_per_wrong=float(row.get("negative_mark_per_wrong") or 0),
            cutoff=_opt_float(row.get("cutoff")),
            start_time=parse_datetime(row.get("start_time")),
            end_time=parse_datetime(row.get("end_time")),
            show_explanations=bool(row.get("show_explanations", True)),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_row(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "sections": [s.to_row() for s in self.sections],
            "sub_category": list(self.sub_category),
            "exam_type": self.exam_type,
            "status": self.status,
            "duration_min": self.duration_min,
            "negative_mark_per_wrong": self.negative_mark_per_wrong,
            "cutoff": self.cutoff,
            "start_time": format_datetime(self.start_time),
            "end_time": format_datetime(self.end_time),
            "show_explanations": self.show_explanations,
            "total_questions": self.total_questions,
            "total_marks": self.total_marks,
            "created_at": format_datetime(self.created_at),
        }


def validate_exam_definition(exam: Exam) -> None:
    """Raise ValidationError for an exam that cannot be saved or scored."""
    if not exam.name.strip():
        raise ValidationError("Exam name is required")
    if not exam.category.strip():
        raise ValidationError("Exam category is required")
    if exam.duration_min <= 0:
        raise ValidationError("Exam duration must be positive")
    if exam.negative_mark_per_wrong < 0:
        raise ValidationError("Negative mark cannot be negative")
    if exam.cutoff is not None and exam.cutoff < 0:
        raise ValidationError("Cut-off cannot be negative")
    if exam.exam_type not in EXAM_TYPES:
        raise ValidationError(f"Unknown exam type: {exam.exam_type}")
    if exam.status not in EXAM_STATUSES:
        raise ValidationError(f"Unknown exam status: {exam.status}")
    seen = set()
    for section in exam.sections:
        if section.id in seen:
            raise ValidationError(f"Duplicate section id: {section.id}")
        seen.add(section.id)
        if section.questions_count < 0 or section.marks_per_question < 0:
            raise ValidationError(f"Section {section.name}: counts and marks must be non-negative")
        if section.negative_mark is not None and section.negative_mark < 0:
            raise ValidationError(f"Section {section.name}: negative mark cannot be negative")
    if exam.start_time and exam.end_time and exam.end_time <= exam.start_time:
        raise ValidationError("Exam end time must be after start time")


@dataclass
class SubQuestion:
    id: str
    question_text: str
    options: List[str]
    correct_option_index: int
    explanation: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "SubQuestion":
        return cls(
            id=str(row["id"]),
            question_text=row.get("question_text", ""),
            options=_option_texts(row.get("options")),
            correct_option_index=int(row.get("correct_option_index", 0)),
            explanation=row.get("explanation"),
        )

    def to_row(self) -> Dict:
        return asdict(self)


def _option_texts(options: Any) -> List[str]:
    """Options may be stored as plain strings or as {'text': ...} objects."""
    out = []
    for opt in options or []:
        out.append(opt.get("text", "") if isinstance(opt, dict) else str(opt))
    return out


@dataclass
class Question:
    id: str
    question_text: str
    options: List[str] = field(default_factory=list)
    correct_option_index: int = 0
    exam_id: Optional[str] = None
    section_id: Optional[str] = None
    position: int = 0
    question_type: str = QUESTION_STANDARD
    passage: Optional[str] = None
    sub_questions: List[SubQuestion] = field(default_factory=list)
    subject: str = "General"
    topic: str = ""
    difficulty: str = "medium"
    explanation: Optional[str] = None
    marks: Optional[float] = None  # None -> section marks_per_question
    created_at: Optional[datetime] = None

    @property
    def is_reading_comprehension(self) -> bool:
        return self.question_type == QUESTION_RC

    def get_sub_question(self, sub_id: str) -> Optional[SubQuestion]:
        return next((s for s in self.sub_questions if s.id == sub_id), None)

    @classmethod
    def from_row(cls, row: Dict) -> "Question":
        return cls(
            id=str(row["id"]),
            question_text=row.get("question_text") or "",
            options=_option_texts(row.get("options")),
            correct_option_index=int(row.get("correct_option_index") or 0),
            exam_id=row.get("exam_id"),
            section_id=row.get("section_id"),
            position=int(row.get("position") or 0),
            question_type=row.get("question_type") or QUESTION_STANDARD,
            passage=row.get("passage"),
            sub_questions=[SubQuestion.from_row(s) for s in (row.get("sub_questions") or [])],
            subject=row.get("subject") or "General",
            topic=row.get("topic") or "",
            difficulty=row.get("difficulty") or "medium",
            explanation=row.get("explanation"),
            marks=_opt_float(row.get("marks")),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_row(self) -> Dict:
        row = asdict(self)
        row["sub_questions"] = [s.to_row() for s in self.sub_questions]
        row["created_at"] = format_datetime(self.created_at)
        return row


@dataclass(frozen=True)
class QuestionOutcome:
    """Grading of one item: a standard question, or one reading-comprehension sub-question."""

    question_id: str
    status: str
    marks_awarded: float
    correct_option: int
    selected_option: Optional[int] = None
    sub_question_id: Optional[str] = None
    section_id: Optional[str] = None
    subject: str = "General"
    topic: str = ""

    @classmethod
    def from_row(cls, row: Dict) -> "QuestionOutcome":
        return cls(**row)

    def to_row(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class SectionResult:
    section_id: str
    section_name: str
    total_questions: int
    attempted: int
    correct: int
    incorrect: int
    unattempted: int
    score: float
    max_score: float
    accuracy: float
    qualified: bool

    @classmethod
    def from_row(cls, row: Dict) -> "SectionResult":
        return cls(**row)

    def to_row(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ExamResult:
    user_id: str
    exam_id: str
    exam_name: str
    exam_category: str
    score: float
    max_score: float
    percentage: float
    time_taken: int
    total_questions: int
    attempted_questions: int
    correct_answers: int
    incorrect_answers: int
    unanswered_questions: int
    accuracy: float
    qualified: bool
    cutoff: Optional[float] = None
    section_results: tuple = ()
    question_outcomes: tuple = ()
    answers: Dict[str, Any] = field(default_factory=dict)
    auto_submitted: bool = False
    submitted_at: Optional[datetime] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "ExamResult":
        return cls(
            id=row.get("id"),
            user_id=str(row["user_id"]),
            exam_id=str(row["exam_id"]),
            exam_name=row.get("exam_name", ""),
            exam_category=row.get("exam_category", ""),
            score=float(row.get("score", 0)),
            max_score=float(row.get("max_score", 0)),
            percentage=float(row.get("percentage", 0)),
            time_taken=int(row.get("time_taken", 0)),
            total_questions=int(row.get("total_questions", 0)),
            attempted_questions=int(row.get("attempted_questions", 0)),
            correct_answers=int(row.get("correct_answers", 0)),
            incorrect_answers=int(row.get("incorrect_answers", 0)),
            unanswered_questions=int(row.get("unanswered_questions", 0)),
            accuracy=float(row.get("accuracy", 0)),
            qualified=bool(row.get("qualified", False)),
            cutoff=_opt_float(row.get("cutoff")),
            section_results=tuple(SectionResult.from_row(s) for s in row.get("section_results") or []),
            question_outcomes=tuple(QuestionOutcome.from_row(o) for o in row.get("question_outcomes") or []),
            answers=dict(row.get("answers") or {}),
            auto_submitted=bool(row.get("auto_submitted", False)),
            submitted_at=parse_datetime(row.get("submitted_at")),
        )

    def to_row(self) -> Dict:
        row = {
            "user_id": self.user_id,
            "exam_id": self.exam_id,
            "exam_name": self.exam_name,
            "exam_category": self.exam_category,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "time_taken": self.time_taken,
            "total_questions": self.total_questions,
            "attempted_questions": self.attempted_questions,
            "correct_answers": self.correct_answers,
            "incorrect_answers": self.incorrect_answers,
            "unanswered_questions": self.unanswered_questions,
            "accuracy": self.accuracy,
            "qualified": self.qualified,
            "cutoff": self.cutoff,
            "section_results": [s.to_row() for s in self.section_results],
            "question_outcomes": [o.to_row() for o in self.question_outcomes],
            "answers": dict(self.answers),
            "auto_submitted": self.auto_submitted,
            "submitted_at": format_datetime(self.submitted_at),
        }
        if self.id is not None:
            row["id"] = self.id
        return row


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    name: str
    exams_taken: int
    total_points: float
    rank: int = 0
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class CategoryStats:
    category: str
    result_count: int
    average_score: float
    highest_score: float
    highest_score_exam_name: str
    has_data: bool


@dataclass
class UserProfile:
    id: str
    name: str
    email: str = ""
    photo_url: Optional[str] = None
    registration_date: Optional[datetime] = None
    status: str = "active"

    @classmethod
    def from_row(cls, row: Dict) -> "UserProfile":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or str(row["id"]),
            email=row.get("email") or "",
            photo_url=row.get("photo_url"),
            registration_date=parse_datetime(row.get("registration_date")),
            status=row.get("status") or "active",
        )

    def to_row(self) -> Dict:
        row = asdict(self)
        row["registration_date"] = format_datetime(self.registration_date)
        return row
