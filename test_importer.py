"""JSONL importer and schema/seed CLI."""
import json

import pytest

from conftest import make_question
from examprep.errors import NotFoundError
from examprep.models import Exam
from importer import load_and_transform, parse_line, question_id_for, run_import
from init_db import SCHEMA_SQL, schema_statements, seed_sample_data


def line(**fields):
    base = {
        "question_id": "ev-1",
        "question_text": "<p>What is <b>2 + 2</b>?</p>",
        "options": ["3", "4", "<i>5</i>", "6"],
        "correct_option": 1,
        "topic": "Arithmetic",
        "subject": "Quant",
        "explanation": ["Add the numbers.", "2 + 2 = 4."],
    }
    base.update(fields)
    return json.dumps(base)


def test_parse_line_cleans_and_maps_fields():
    question = parse_line(line(difficulty="HARD", section_id="quant"), "exam-1")
    assert question.question_text == "What is\n2 + 2\n?"
    assert question.options == ["3", "4", "5", "6"]
    assert question.correct_option_index == 1
    assert question.subject == "Quant"
    assert question.topic == "Arithmetic"
    assert question.difficulty == "hard"
    assert question.section_id == "quant"
    assert question.exam_id == "exam-1"
    assert question.explanation == "Add the numbers. 2 + 2 = 4."
    assert question.id == question_id_for("exam-1", "ev-1")


def test_parse_line_ids_are_stable_per_exam():
    assert parse_line(line(), "exam-1").id == parse_line(line(), "exam-1").id
    assert parse_line(line(), "exam-1").id != parse_line(line(), "exam-2").id


@pytest.mark.parametrize("raw", [
    "",
    "not json",
    "[1, 2]",
    line(question_text="", text=""),
    line(options=["only one"]),
    line(options="a,b,c"),
    line(correct_option=4),
    line(correct_option=-1),
    line(correct_option="1"),
])
def test_parse_line_skips_invalid(raw):
    assert parse_line(raw, "exam-1") is None


def test_parse_line_defaults():
    question = parse_line(json.dumps({"text": "Plain?", "options": ["a", "b"]}), "exam-1")
    assert question.subject == "General"
    assert question.difficulty == "medium"
    assert question.explanation is None
    assert question.correct_option_index == 0


def test_run_import(tmp_path, database):
    path = tmp_path / "dump.jsonl"
    path.write_text("\n".join([line(), "garbage", line(question_id="ev-2", question_text="Second?")]) + "\n", encoding="utf-8")
    assert len(list(load_and_transform(path, "exam-1"))) == 2

    assert run_import(path, "exam-1", dry_run=True) == 2
    with pytest.raises(NotFoundError):
        run_import(path, "exam-1", database=database)

    database.add_exam(Exam(id="exam-1", name="Imported", category="SSC"))
    database.add_question("exam-1", make_question("manual"))
    assert run_import(path, "exam-1", database=database) == 2
    assert [q.id for q in database.get_questions_for_exam("exam-1")][0] == "manual"

    assert run_import(path, "exam-1", replace=True, database=database) == 2
    stored = database.get_questions_for_exam("exam-1")
    assert [q.question_text for q in stored] == ["What is\n2 + 2\n?", "Second?"]


def test_run_import_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        run_import(tmp_path / "missing.jsonl", "exam-1")


def test_schema_covers_tables():
    statements = schema_statements()
    tables = [s.split("(")[0].split()[-1] for s in statements if s.startswith("CREATE TABLE")]
    assert tables == ["exams", "questions", "results", "users", "user_preferences"]
    assert all(not s.startswith("--") for s in statements)
    assert SCHEMA_SQL.count("CREATE INDEX") == len(statements) - len(tables)


def test_schema_comments_do_not_split_statements(monkeypatch):
    monkeypatch.setattr("init_db.SCHEMA_SQL", "-- notes; more notes\nCREATE TABLE a (id TEXT);\n-- b; c\nCREATE INDEX i ON a(id);\n")
    assert schema_statements() == ["CREATE TABLE a (id TEXT)", "CREATE INDEX i ON a(id)"]


def test_seed_sample_data(database):
    assert seed_sample_data(database) == {"exams": 3, "questions": 13}
    assert database.get_exam_categories() == {"Banking": 1, "Daily Quiz": 1, "SSC": 1}
