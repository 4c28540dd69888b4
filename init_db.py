"""Initialize Supabase database schema for ExamPrep AI, optionally loading sample exams."""
import argparse
import logging

# SQL schema
SCHEMA_SQL = """
-- Exams (sections, marking scheme and cut-offs stored with the exam)
CREATE TABLE IF NOT EXISTS exams (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    category VARCHAR(50) NOT NULL,
    sub_category JSONB DEFAULT '[]',
    exam_type VARCHAR(20) DEFAULT 'Mock Test',
    status VARCHAR(20) DEFAULT 'draft',
    sections JSONB DEFAULT '[]',
    duration_min INT NOT NULL CHECK (duration_min > 0),
    negative_mark_per_wrong DECIMAL(5,2) DEFAULT 0 CHECK (negative_mark_per_wrong >= 0),
    cutoff DECIMAL(7,2),
    total_questions INT DEFAULT 0,
    total_marks DECIMAL(7,2) DEFAULT 0,
    start_time TIMESTAMPTZ,
    end_time TIMESTAMPTZ,
    show_explanations BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- Question Bank (one row per question, reading comprehension sub-questions inline)
CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    exam_id TEXT NOT NULL REFERENCES exams(id) ON DELETE CASCADE,
    section_id TEXT,
    position INT DEFAULT 0,
    question_type VARCHAR(30) DEFAULT 'Standard',
    question_text TEXT NOT NULL,
    passage TEXT,
    options JSONB DEFAULT '[]',
    correct_option_index INT DEFAULT 0,
    sub_questions JSONB DEFAULT '[]',
    subject VARCHAR(100) DEFAULT 'General',
    topic VARCHAR(100),
    difficulty VARCHAR(10) DEFAULT 'medium',
    explanation TEXT,
    marks DECIMAL(5,2),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ
);

-- Results (append-only: one row per submitted attempt)
CREATE TABLE IF NOT EXISTS results (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    exam_id TEXT NOT NULL REFERENCES exams(id),
    exam_name TEXT,
    exam_category VARCHAR(50),
    score DECIMAL(7,2) NOT NULL,
    max_score DECIMAL(7,2),
    percentage DECIMAL(5,2),
    time_taken INT DEFAULT 0,
    total_questions INT,
    attempted_questions INT,
    correct_answers INT,
    incorrect_answers INT,
    unanswered_questions INT,
    accuracy DECIMAL(5,2),
    cutoff DECIMAL(7,2),
    qualified BOOLEAN,
    section_results JSONB DEFAULT '[]',
    question_outcomes JSONB DEFAULT '[]',
    answers JSONB DEFAULT '{}',
    auto_submitted BOOLEAN DEFAULT FALSE,
    submitted_at TIMESTAMPTZ DEFAULT NOW()
);

-- Users
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT,
    email TEXT,
    photo_url TEXT,
    registration_date TIMESTAMPTZ DEFAULT NOW(),
    status VARCHAR(20) DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS user_preferences (
    user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    interested_categories JSONB DEFAULT '[]'
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_exams_category ON exams(category);
CREATE INDEX IF NOT EXISTS idx_questions_exam_id ON questions(exam_id);
CREATE INDEX IF NOT EXISTS idx_results_user_id ON results(user_id);
CREATE INDEX IF NOT EXISTS idx_results_exam_id ON results(exam_id);
CREATE INDEX IF NOT EXISTS idx_results_exam_category ON results(exam_category);
"""


def schema_statements() -> list[str]:
    """Schema split into individual statements (comments dropped)."""
    sql = "\n".join(l for l in SCHEMA_SQL.splitlines() if not l.strip().startswith("--"))
    statements = []
    for chunk in sql.split(";"):
        lines = [l for l in chunk.splitlines() if l.strip()]
        if lines:
            statements.append("\n".join(lines))
    return statements


def seed_sample_data(database=None) -> dict:
    from examprep.sample_data import sample_data

    if database is None:
        from db import get_database_uncached

        database = get_database_uncached()
    exams, questions_by_exam = sample_data()
    return database.seed(exams, questions_by_exam)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print the ExamPrep AI schema and optionally seed sample exams.")
    parser.add_argument("--seed", action="store_true", help="Load sample exams and questions into Supabase")
    args = parser.parse_args(argv)

    print("Initializing Supabase schema...")
    for i, stmt in enumerate(schema_statements(), 1):
        print(f"Statement {i}: {stmt.splitlines()[0][:60]}...")
    print("\nNote: Due to Supabase client limitations, run this SQL in Supabase SQL Editor:")
    print(SCHEMA_SQL)

    if args.seed:
        counts = seed_sample_data()
        print(f"\n✓ Seeded {counts['exams']} exams and {counts['questions']} questions")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    main()
