"""
Database operations for ExamPrep AI.
Handles Supabase access for exams, questions, results (append-only) and users.
"""
import logging
import os
from datetime import datetime, timezone
from dataclasses import replace
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from dotenv import load_dotenv
from supabase import create_client, Client

from examprep.aggregation import exam_count_by_category
from examprep.errors import NotFoundError, PersistenceError
from examprep.models import Exam, ExamResult, Question, UserProfile, validate_exam_definition

logger = logging.getLogger(__name__)

load_dotenv()

EXAMS = "exams"
QUESTIONS = "questions"
RESULTS = "results"
USERS = "users"
USER_PREFERENCES = "user_preferences"


def create_client_from_env() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


class DatabaseClient:
    """Wrapper around a Supabase client with ExamPrep-specific operations."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client or create_client_from_env()

    def _execute(self, action: str, query) -> List[Dict]:
        """Run a query; driver errors are logged and surfaced as PersistenceError."""
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Failed {action}") from e
        return response.data or []

    def _upsert_chunked(self, table: str, rows: List[Dict], chunk_size: int = 200) -> int:
        """Upsert in chunks, deduped by id so no chunk conflicts with itself."""
        by_id = {r["id"]: r for r in rows}
        rows = list(by_id.values())
        n_chunks = (len(rows) + chunk_size - 1) // chunk_size
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i : i + chunk_size]
            logger.info("Upserting %s chunk %d/%d (%d rows)", table, i // chunk_size + 1, n_chunks, len(chunk))
            self._execute(f"upserting {table}", self.client.table(table).upsert(chunk, on_conflict="id"))
        return len(rows)

    # ============= Exams =============

    def get_exam(self, exam_id: str) -> Exam:
        rows = self._execute(
            f"fetching exam {exam_id}",
            self.client.table(EXAMS).select("*").eq("id", exam_id).limit(1),
        )
        if not rows:
            raise NotFoundError(f"Exam {exam_id} not found")
        return Exam.from_row(rows[0])

    def list_exams(self, category: Optional[str] = None) -> List[Exam]:
        """All exams (any status), sorted by name. Admin listing."""
        query = self.client.table(EXAMS).select("*")
        if category:
            query = query.eq("category", category)
        exams = [Exam.from_row(r) for r in self._execute("listing exams", query)]
        return sorted(exams, key=lambda e: e.name)

    def list_published_exams(self, category: Optional[str] = None, sub_category: Optional[str] = None) -> List[Exam]:
        """Published exams filtered by category and/or sub-category tag, sorted by name."""
        query = self.client.table(EXAMS).select("*").eq("status", "published")
        if category:
            query = query.eq("category", category)
        exams = [Exam.from_row(r) for r in self._execute("listing published exams", query)]
        if sub_category:
            exams = [e for e in exams if sub_category in e.sub_category]
        return sorted(exams, key=lambda e: e.name)

    def get_exam_categories(self) -> Dict[str, int]:
        """Returns {category: number of published exams}."""
        return exam_count_by_category(self.list_published_exams())

    def add_exam(self, exam: Exam) -> str:
        validate_exam_definition(exam)
        row = exam.to_row()
        row["created_at"] = row["created_at"] or datetime.now(timezone.utc).isoformat()
        self._execute(f"adding exam {exam.name}", self.client.table(EXAMS).insert(row))
        logger.info(f"Added exam {exam.id} ({exam.name})")
        return exam.id

    # ============= Questions =============

    def get_questions_for_exam(self, exam_id: str) -> List[Question]:
        rows = self._execute(
            f"fetching questions for exam {exam_id}",
            self.client.table(QUESTIONS).select("*").eq("exam_id", exam_id).order("position").order("created_at"),
        )
        questions = [Question.from_row(r) for r in rows]
        return sorted(questions, key=lambda q: (q.position, q.created_at or datetime.min.replace(tzinfo=timezone.utc)))

    def _question_row(self, exam_id: str, question: Question, position: int) -> Dict:
        row = replace(question, exam_id=exam_id, position=position).to_row()
        row["created_at"] = row["created_at"] or datetime.now(timezone.utc).isoformat()
        return row

    def add_question(self, exam_id: str, question: Question) -> str:
        """Append a question to the end of the exam."""
        position = len(self.get_questions_for_exam(exam_id))
        self._execute(
            f"adding question to exam {exam_id}",
            self.client.table(QUESTIONS).insert(self._question_row(exam_id, question, position)),
        )
        return question.id

    def add_questions(self, exam_id: str, questions: Iterable[Question], chunk_size: int = 200) -> int:
        """Bulk-append questions (importer, AI generator)."""
        start = len(self.get_questions_for_exam(exam_id))
        rows = [self._question_row(exam_id, q, start + i) for i, q in enumerate(questions)]
        if not rows:
            return 0
        total = self._upsert_chunked(QUESTIONS, rows, chunk_size)
        logger.info(f"Total questions added to {exam_id}: {total}")
        return total

    def update_question(self, exam_id: str, question: Question) -> None:
        row = question.to_row()
        for key in ("id", "exam_id", "position", "created_at"):
            row.pop(key, None)
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = self._execute(
            f"updating question {question.id}",
            self.client.table(QUESTIONS).update(row).eq("id", question.id).eq("exam_id", exam_id),
        )
        if not rows:
            raise NotFoundError(f"Question {question.id} not found in exam {exam_id}")

    def delete_questions_for_exam(self, exam_id: str) -> None:
        """Remove an exam's question set (importer --replace)."""
        self._execute(f"deleting questions for exam {exam_id}", self.client.table(QUESTIONS).delete().eq("exam_id", exam_id))

    # ============= Results (append-only) =============

    def save_exam_result(self, result: ExamResult) -> str:
        """
        Store a scored attempt. Results are written once and never updated.

        Returns:
            The new result id

        Raises:
            PersistenceError: the write failed or nothing was stored
        """
        result_id = result.id or str(uuid4())
        row = replace(result, id=result_id, submitted_at=result.submitted_at or datetime.now(timezone.utc)).to_row()
        rows = self._execute(f"saving result for exam {result.exam_id}", self.client.table(RESULTS).insert(row))
        if not rows:
            logger.error(f"Result for exam {result.exam_id} was not stored")
            raise PersistenceError("Result was not stored")
        logger.info(f"Saved result {result_id}: user={result.user_id} exam={result.exam_id} score={result.score}")
        return str(rows[0].get("id", result_id))

    def get_exam_result(self, result_id: str) -> ExamResult:
        rows = self._execute(
            f"fetching result {result_id}",
            self.client.table(RESULTS).select("*").eq("id", result_id).limit(1),
        )
        if not rows:
            raise NotFoundError(f"Result {result_id} not found")
        return ExamResult.from_row(rows[0])

    def get_results_for_user(self, user_id: str) -> List[ExamResult]:
        """User's results, newest first."""
        rows = self._execute(
            f"fetching results for user {user_id}",
            self.client.table(RESULTS).select("*").eq("user_id", user_id),
        )
        results = [ExamResult.from_row(r) for r in rows]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(results, key=lambda r: r.submitted_at or epoch, reverse=True)

    def get_results_for_exam(self, exam_id: str) -> List[ExamResult]:
        rows = self._execute(
            f"fetching results for exam {exam_id}",
            self.client.table(RESULTS).select("*").eq("exam_id", exam_id),
        )
        return [ExamResult.from_row(r) for r in rows]

    def get_results(self, category: Optional[str] = None, page_size: int = 1000) -> List[ExamResult]:
        """All results (optionally one category), fetched in pages."""
        all_rows = []
        offset = 0
        while True:
            query = self.client.table(RESULTS).select("*")
            if category:
                query = query.eq("exam_category", category)
            data = self._execute("fetching results", query.range(offset, offset + page_size - 1))
            all_rows.extend(data)
            if len(data) < page_size:
                break
            offset += page_size
        return [ExamResult.from_row(r) for r in all_rows]

    # ============= Users =============

    def get_users(self) -> List[UserProfile]:
        rows = self._execute("fetching users", self.client.table(USERS).select("*"))
        return sorted((UserProfile.from_row(r) for r in rows), key=lambda u: u.name)

    def get_user_profiles(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = self._execute("fetching user profiles", self.client.table(USERS).select("*").in_("id", ids))
        return {str(r["id"]): UserProfile.from_row(r) for r in rows}

    def ensure_user(self, profile: UserProfile) -> UserProfile:
        """Create the user row on first sign-in; return the stored profile."""
        rows = self._execute(f"fetching user {profile.id}", self.client.table(USERS).select("*").eq("id", profile.id).limit(1))
        if rows:
            return UserProfile.from_row(rows[0])
        row = profile.to_row()
        row["registration_date"] = row["registration_date"] or datetime.now(timezone.utc).isoformat()
        self._execute(f"creating user {profile.id}", self.client.table(USERS).insert(row))
        logger.info(f"Created user {profile.id}")
        return UserProfile.from_row(row)

    def get_user_preferences(self, user_id: str) -> List[str]:
        rows = self._execute(
            f"fetching preferences for {user_id}",
            self.client.table(USER_PREFERENCES).select("*").eq("user_id", user_id).limit(1),
        )
        return list(rows[0].get("interested_categories") or []) if rows else []

    def update_user_preferences(self, user_id: str, interested_categories: List[str]) -> None:
        row = {"user_id": user_id, "interested_categories": list(interested_categories)}
        self._execute(
            f"updating preferences for {user_id}",
            self.client.table(USER_PREFERENCES).upsert(row, on_conflict="user_id"),
        )

    # ============= Seeding =============

    def seed(self, exams: List[Exam], questions_by_exam: Dict[str, List[Question]]) -> Dict[str, int]:
        """Load sample exams and their questions (idempotent: rows are upserted by id)."""
        now = datetime.now(timezone.utc).isoformat()
        exam_rows = []
        for exam in exams:
            row = exam.to_row()
            row["created_at"] = row["created_at"] or now
            exam_rows.append(row)
        question_rows = []
        for exam_id, questions in questions_by_exam.items():
            for position, question in enumerate(questions):
                question_rows.append(self._question_row(exam_id, question, position))
        counts = {
            "exams": self._upsert_chunked(EXAMS, exam_rows),
            "questions": self._upsert_chunked(QUESTIONS, question_rows),
        }
        logger.info(f"Seeded {counts['exams']} exams and {counts['questions']} questions")
        return counts
