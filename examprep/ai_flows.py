"""
Generative-AI flows: performance analysis, custom mock exam generation and
free-text question parsing.

Each flow validates its input against a strict schema, renders a prompt, asks an
AICapability for JSON, and validates the JSON against the output schema. Every
failure on the model side surfaces as AIGenerationFailed; invalid input from the
caller surfaces as ValidationError.
"""
import json
import logging
import os
import re
from typing import Any, Dict, List, Literal, Optional, Protocol, Type, TypeVar, Union
from uuid import uuid4

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from engine import MAX_OPTIONS
from examprep.aggregation import topic_strengths_weaknesses
from examprep.errors import AIGenerationFailed, ValidationError
from examprep.models import ExamResult, Question, QUESTION_STANDARD
from examprep.text_utils import clean_question_text

logger = logging.getLogger(__name__)

load_dotenv()

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_TIMEOUT = 60

Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["Standard", "Reading Comprehension"]

M = TypeVar("M", bound=BaseModel)


class _InputSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class _OutputSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# --- Performance analysis ---

class PerformanceAnalysisInput(_InputSchema):
    exam_category: str = Field(..., min_length=1, description="Exam category, e.g. Banking")
    test_type: str = Field(..., min_length=1, description="Full-length mock, sectional, topic-wise ...")
    score: float
    time_spent: float = Field(..., ge=0, description="Minutes spent on the test")
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)


class PerformanceAnalysisOutput(_OutputSchema):
    suggested_topics: List[str] = Field(..., description="Top 3-5 topics to focus on")
    analysis_summary: str = Field(..., min_length=1)


# --- Custom mock exam ---

class GenerateCustomMockExamInput(_InputSchema):
    section: str = Field(..., min_length=1, description="Section, e.g. Quantitative Aptitude")
    topic: Optional[str] = None
    difficulty: Difficulty
    number_of_questions: int = Field(20, ge=1, le=100)


class GeneratedQuestion(_OutputSchema):
    question_text: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2, max_length=MAX_OPTIONS)
    correct_option_index: int = Field(..., ge=0)
    subject: str
    topic: str
    difficulty: Difficulty
    explanation: Optional[str] = None
    marks: float = Field(1, ge=0)
    question_type: QuestionType = "Standard"

    @model_validator(mode="after")
    def _answer_in_range(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex is outside the options list")
        return self


class GenerateCustomMockExamOutput(_OutputSchema):
    questions: List[GeneratedQuestion]


# --- Question parsing ---

class ParseQuestionInput(_InputSchema):
    raw_question_text: str = Field(..., min_length=1)


class ParsedOption(_OutputSchema):
    text: str


class ParsedQuestionOutput(_OutputSchema):
    question_text: str = Field(..., min_length=1)
    options: List[ParsedOption] = Field(..., min_length=2, max_length=MAX_OPTIONS)
    correct_option_index: int = Field(..., ge=0)
    subject: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    explanation: Optional[str] = None

    @model_validator(mode="after")
    def _answer_in_range(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correctOptionIndex is outside the options list")
        return self


# --- Capability ---

class AICapability(Protocol):
    def generate(self, prompt: str) -> Dict[str, Any]:
        """Return the model's answer to ``prompt`` as a decoded JSON object."""
        ...


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class GeminiClient:
    """Calls the Gemini generateContent REST endpoint in JSON response mode."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.4,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.model = model or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
        self.timeout = timeout or float(os.getenv("AI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT))
        self.temperature = temperature
        self.session = session or requests.Session()

    def generate(self, prompt: str) -> Dict[str, Any]:
        if not self.api_key:
            raise AIGenerationFailed("GEMINI_API_KEY is not set")
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json", "temperature": self.temperature},
        }
        try:
            response = self.session.post(
                GEMINI_URL.format(model=self.model),
                headers={"x-goog-api-key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise AIGenerationFailed(f"Gemini request failed: {e}") from e

        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIGenerationFailed("Gemini returned no candidates") from e
        try:
            data = json.loads(_FENCE.sub("", text.strip()))
        except json.JSONDecodeError as e:
            raise AIGenerationFailed(f"Gemini returned malformed JSON: {e}") from e
        if not isinstance(data, dict):
            raise AIGenerationFailed("Gemini returned JSON that is not an object")
        return data


_default_capability: Optional[AICapability] = None


def get_capability() -> AICapability:
    """Get or create the process-wide Gemini client."""
    global _default_capability
    if _default_capability is None:
        _default_capability = GeminiClient()
    return _default_capability


# --- Prompts ---

PERFORMANCE_PROMPT = """You analyse practice-test performance for competitive exam aspirants.
Be encouraging but direct, and give targeted, actionable advice.

Exam category: {exam_category}
Test type: {test_type}
Score: {score}
Time spent: {time_spent} minutes
Strengths (topics answered well): {strengths}
Weaknesses (topics answered poorly): {weaknesses}

1. Pick the 3-5 topics from the weaknesses that will lift the score the most.
2. Write a 2-3 sentence summary: acknowledge the effort, name one strength,
   and explain why the suggested topics are the best next step.
"""

GENERATE_EXAM_PROMPT = """You write multiple-choice questions for competitive exams.
Generate {number_of_questions} questions.

Section: {section}
{topic_line}Difficulty: {difficulty}

Every question needs questionText, options (array of strings), correctOptionIndex
(0-based index into options), subject, topic, difficulty, explanation and marks.
The subject of every question must be "{section}". Topics must belong to the section
and, when a focus topic is given, to that topic.
"""

PARSE_QUESTION_PROMPT = """You convert unstructured text into a structured multiple-choice question.
The text contains the question, its options (numbered, lettered or plain lines), the
correct answer ("Answer: C", "Correct: 2", "Ans: Option A" ...), and optionally an
explanation, subject, topic and difficulty.

Work out the 0-based correctOptionIndex against the options array you produce.

Text:
'''
{raw_question_text}
'''
"""


def _with_schema(prompt: str, output_model: Type[BaseModel]) -> str:
    schema = json.dumps(output_model.model_json_schema(by_alias=True))
    return f"{prompt}\nRespond with a single JSON object matching this JSON schema, and nothing else:\n{schema}\n"


def _validate_input(model: Type[M], data: Union[M, Dict]) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except SchemaError as e:
        raise ValidationError(f"Invalid {model.__name__}: {e}") from e


def _run_flow(name: str, capability: AICapability, prompt: str, output_model: Type[M]) -> M:
    """Call the model and validate its JSON; any failure becomes AIGenerationFailed."""
    try:
        raw = capability.generate(_with_schema(prompt, output_model))
    except AIGenerationFailed as e:
        logger.error(f"{name}: {e}")
        raise
    except Exception as e:
        logger.error(f"{name}: provider error: {e}")
        raise AIGenerationFailed(f"{name} failed: {e}") from e
    try:
        return output_model.model_validate(raw)
    except SchemaError as e:
        logger.error(f"{name}: output failed schema validation: {e}")
        raise AIGenerationFailed(f"{name} returned output that does not match the schema") from e


def analyze_performance(
    data: Union[PerformanceAnalysisInput, Dict], capability: Optional[AICapability] = None
) -> PerformanceAnalysisOutput:
    """Suggest focus topics and a short summary for a finished test."""
    data = _validate_input(PerformanceAnalysisInput, data)
    prompt = PERFORMANCE_PROMPT.format(
        exam_category=data.exam_category,
        test_type=data.test_type,
        score=data.score,
        time_spent=data.time_spent,
        strengths=", ".join(data.strengths) or "None identified",
        weaknesses=", ".join(data.weaknesses) or "None identified",
    )
    return _run_flow("analyze_performance", capability or get_capability(), prompt, PerformanceAnalysisOutput)


def generate_custom_mock_exam(
    data: Union[GenerateCustomMockExamInput, Dict], capability: Optional[AICapability] = None
) -> List[GeneratedQuestion]:
    """Generate questions for one section; an empty list counts as a failure."""
    data = _validate_input(GenerateCustomMockExamInput, data)
    prompt = GENERATE_EXAM_PROMPT.format(
        number_of_questions=data.number_of_questions,
        section=data.section,
        topic_line=f"Focus topic: {data.topic}\n" if data.topic else "",
        difficulty=data.difficulty,
    )
    output = _run_flow("generate_custom_mock_exam", capability or get_capability(), prompt, GenerateCustomMockExamOutput)
    if not output.questions:
        logger.error("generate_custom_mock_exam: model returned no questions")
        raise AIGenerationFailed("AI failed to generate questions")
    return output.questions


def parse_question_from_text(
    data: Union[ParseQuestionInput, Dict], capability: Optional[AICapability] = None
) -> ParsedQuestionOutput:
    """Structure pasted question text; HTML pasted from a web page is reduced to text first."""
    data = _validate_input(ParseQuestionInput, data)
    text = clean_question_text(data.raw_question_text)
    if not text:
        raise ValidationError("Question text is empty after cleaning")
    prompt = PARSE_QUESTION_PROMPT.format(raw_question_text=text)
    return _run_flow("parse_question_from_text", capability or get_capability(), prompt, ParsedQuestionOutput)


def build_performance_input(result: ExamResult, test_type: str = "Full-length mock") -> PerformanceAnalysisInput:
    """Analysis input for the learner's latest result."""
    strengths, weaknesses = topic_strengths_weaknesses(result)
    return PerformanceAnalysisInput(
        exam_category=result.exam_category or "General",
        test_type=test_type,
        score=result.score,
        time_spent=round(result.time_taken / 60),
        strengths=strengths,
        weaknesses=weaknesses,
    )


def generated_to_question(
    generated: Union[GeneratedQuestion, ParsedQuestionOutput],
    exam_id: str,
    section_id: Optional[str] = None,
    position: int = 0,
    default_subject: str = "General",
) -> Question:
    """Turn a generated or parsed question into a question-bank entry."""
    options = [o.text if isinstance(o, ParsedOption) else o for o in generated.options]
    marks = getattr(generated, "marks", None)
    return Question(
        id=str(uuid4()),
        exam_id=exam_id,
        section_id=section_id,
        position=position,
        question_type=QUESTION_STANDARD,
        question_text=generated.question_text,
        options=options,
        correct_option_index=generated.correct_option_index,
        subject=generated.subject or default_subject,
        topic=generated.topic or "",
        difficulty=generated.difficulty or "medium",
        explanation=generated.explanation,
        marks=float(marks) if marks is not None else None,
    )
