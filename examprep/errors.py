"""Error taxonomy shared by scoring, the store and the AI flows."""


class ExamPrepError(Exception):
    """Base class for all ExamPrep AI errors."""


class ValidationError(ExamPrepError):
    """Malformed or inconsistent input (e.g. an answer for an unknown question)."""


class NotFoundError(ExamPrepError):
    """A referenced exam, question set or result does not exist."""


class AIGenerationFailed(ExamPrepError):
    """The generative model returned no usable output or the call failed."""


class PersistenceError(ExamPrepError):
    """A read or write against the exam/result store failed."""
