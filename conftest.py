"""Shared fixtures: an in-memory Supabase stand-in, a scripted AI capability, and sample exams."""
import json
from collections import defaultdict

import pytest

from examprep.database import DatabaseClient
from examprep.models import Exam, Question, Section, SubQuestion, QUESTION_RC


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Chainable subset of the postgrest query builder used by DatabaseClient."""

    def __init__(self, backend: "FakeSupabase", table: str):
        self.backend = backend
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.on_conflict = "id"
        self.filters = []
        self.orders = []
        self.max_rows = None
        self.window = None

    def select(self, *columns, **kwargs):
        self.op = "select"
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict="id"):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.backend.calls.append((self.table_name, self.op))
        if self.backend.fail_on and (self.table_name, self.op) in self.backend.fail_on:
            raise RuntimeError("connection reset by peer")
        rows = self.backend.tables[self.table_name]

        if self.op == "select":
            out = [r for r in rows if self._matches(r)]
            for column, desc in reversed(self.orders):
                out.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if self.window:
                out = out[self.window[0] : self.window[1] + 1]
            if self.max_rows is not None:
                out = out[: self.max_rows]
            return FakeResponse(_copy(out))

        if self.op == "insert":
            new = self.payload if isinstance(self.payload, list) else [self.payload]
            new = _copy(new)
            rows.extend(new)
            return FakeResponse([] if self.backend.empty_inserts else _copy(new))

        if self.op == "upsert":
            new = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k for k in self.on_conflict.split(",")]
            for row in _copy(new):
                existing = next((r for r in rows if all(r.get(k) == row.get(k) for k in keys)), None)
                if existing is None:
                    rows.append(row)
                else:
                    existing.update(row)
            return FakeResponse(_copy(new))

        if self.op == "update":
            changed = [r for r in rows if self._matches(r)]
            for r in changed:
                r.update(_copy(self.payload))
            return FakeResponse(_copy(changed))

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.backend.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(_copy(removed))

        raise AssertionError(f"unsupported op {self.op}")


def _copy(data):
    # Stored rows go through JSON, as they would over the wire
    return json.loads(json.dumps(data))


class FakeSupabase:
    def __init__(self):
        self.tables = defaultdict(list)
        self.calls = []
        self.fail_on = set()
        self.empty_inserts = False

    def table(self, name):
        return FakeQuery(self, name)


class FakeCapability:
    """AICapability returning scripted JSON (or raising) and recording prompts."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def database(fake_supabase):
    return DatabaseClient(fake_supabase)


def make_question(qid, section_id=None, correct=0, n_options=4, **kwargs):
    return Question(
        id=qid,
        section_id=section_id,
        question_text=f"Question {qid}",
        options=[f"Option {i}" for i in range(n_options)],
        correct_option_index=correct,
        **kwargs,
    )


@pytest.fixture
def two_section_exam():
    """Two sections of 5 one-mark questions, section A cut-off 3, -0.25 per wrong answer."""
    exam = Exam(
        id="exam-1",
        name="Banking Mock",
        category="Banking",
        status="published",
        duration_min=30,
        negative_mark_per_wrong=0.25,
        sections=[
            Section(id="A", name="Section A", questions_count=5, cutoff_marks=3),
            Section(id="B", name="Section B", questions_count=5),
        ],
    )
    questions = [make_question(f"a{i}", "A", correct=i % 4, subject="Reasoning", topic=f"topic-a{i}") for i in range(5)]
    questions += [make_question(f"b{i}", "B", correct=(i + 1) % 4, subject="English", topic=f"topic-b{i}") for i in range(5)]
    return exam, questions


@pytest.fixture
def rc_exam():
    """One section: a standard question plus a reading-comprehension question with two sub-questions."""
    exam = Exam(
        id="exam-rc",
        name="English Practice",
        category="SSC",
        status="published",
        duration_min=10,
        negative_mark_per_wrong=0.5,
        sections=[Section(id="eng", name="English", questions_count=2, marks_per_question=2)],
    )
    questions = [
        make_question("s1", "eng", correct=1, subject="English", topic="Grammar"),
        Question(
            id="rc1",
            section_id="eng",
            question_type=QUESTION_RC,
            question_text="Read the passage.",
            passage="A short passage.",
            subject="English",
            topic="Comprehension",
            sub_questions=[
                SubQuestion(id="rc1-a", question_text="First?", options=["x", "y", "z"], correct_option_index=0),
                SubQuestion(id="rc1-b", question_text="Second?", options=["x", "y", "z"], correct_option_index=2),
            ],
        ),
    ]
    return exam, questions
