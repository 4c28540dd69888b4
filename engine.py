"""Exam defaults shared by the UI, importer and sample data. No UI."""
# Banking-style marking: correct +1, wrong -0.25, skipped 0

DEFAULT_MARKS_PER_QUESTION = 1.0
DEFAULT_NEGATIVE_MARK = 0.25
DEFAULT_DURATION_MINUTES = 60
DEFAULT_GENERATED_QUESTIONS = 20
MAX_OPTIONS = 10
OPTION_LABELS = "ABCDEFGHIJ"
LEADERBOARD_SIZE = 50

EXAM_CATEGORIES = [
    "Banking",
    "SSC",
    "Railway",
    "UPSC",
    "JEE",
    "NEET",
    "CAT",
    "CLAT",
    "Daily Quiz",
    "Previous Year Paper",
]
