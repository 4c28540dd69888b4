"""AI flows against a scripted capability, and the Gemini client against a fake HTTP session."""
import pytest
import requests

from conftest import FakeCapability
from examprep.ai_flows import (
    GeminiClient,
    GenerateCustomMockExamInput,
    analyze_performance,
    build_performance_input,
    generate_custom_mock_exam,
    generated_to_question,
    parse_question_from_text,
)
from examprep.errors import AIGenerationFailed, ValidationError
from examprep.scoring import score_exam

ANALYSIS_INPUT = {
    "examCategory": "Banking",
    "testType": "Full-length mock",
    "score": 62.5,
    "timeSpent": 55,
    "strengths": ["Percentage"],
    "weaknesses": ["Puzzles", "Data Interpretation"],
}

GENERATED = {
    "questionText": "What is 10% of 50?",
    "options": ["5", "10", "15", "20"],
    "correctOptionIndex": 0,
    "subject": "Quantitative Aptitude",
    "topic": "Percentage",
    "difficulty": "easy",
    "explanation": "50 x 0.1 = 5",
    "marks": 1,
}


def test_analyze_performance():
    capability = FakeCapability({"suggestedTopics": ["Puzzles", "Data Interpretation"], "analysisSummary": "Good effort."})
    output = analyze_performance(ANALYSIS_INPUT, capability)
    assert output.suggested_topics == ["Puzzles", "Data Interpretation"]
    assert output.analysis_summary == "Good effort."
    prompt = capability.prompts[0]
    assert "Banking" in prompt
    assert "Puzzles, Data Interpretation" in prompt
    assert "suggestedTopics" in prompt


def test_analyze_performance_rejects_bad_input():
    capability = FakeCapability({})
    with pytest.raises(ValidationError):
        analyze_performance({**ANALYSIS_INPUT, "timeSpent": -1}, capability)
    with pytest.raises(ValidationError):
        analyze_performance({k: v for k, v in ANALYSIS_INPUT.items() if k != "score"}, capability)
    assert capability.prompts == []


def test_schema_mismatch_is_generation_failure():
    capability = FakeCapability({"analysisSummary": "Missing topics"})
    with pytest.raises(AIGenerationFailed):
        analyze_performance(ANALYSIS_INPUT, capability)


def test_provider_errors_are_generation_failures():
    with pytest.raises(AIGenerationFailed):
        analyze_performance(ANALYSIS_INPUT, FakeCapability(error=RuntimeError("quota exceeded")))
    with pytest.raises(AIGenerationFailed):
        analyze_performance(ANALYSIS_INPUT, FakeCapability(error=AIGenerationFailed("timeout")))


def test_generate_custom_mock_exam():
    capability = FakeCapability({"questions": [GENERATED, {**GENERATED, "questionText": "Second", "correctOptionIndex": 3}]})
    questions = generate_custom_mock_exam(
        {"section": "Quantitative Aptitude", "topic": "Percentage", "difficulty": "easy", "numberOfQuestions": 2},
        capability,
    )
    assert [q.question_text for q in questions] == ["What is 10% of 50?", "Second"]
    assert "Generate 2 questions" in capability.prompts[0]
    assert "Focus topic: Percentage" in capability.prompts[0]


def test_generate_input_bounds():
    assert GenerateCustomMockExamInput(section="Reasoning", difficulty="hard").number_of_questions == 20
    capability = FakeCapability({"questions": [GENERATED]})
    for bad in (
        {"section": "Reasoning", "difficulty": "hard", "numberOfQuestions": 0},
        {"section": "Reasoning", "difficulty": "hard", "numberOfQuestions": 101},
        {"section": "Reasoning", "difficulty": "extreme"},
        {"section": "", "difficulty": "hard"},
        {"section": "Reasoning", "difficulty": "hard", "language": "Hindi"},
    ):
        with pytest.raises(ValidationError):
            generate_custom_mock_exam(bad, capability)
    assert capability.prompts == []


def test_generate_empty_or_invalid_output_fails():
    request = {"section": "Reasoning", "difficulty": "medium"}
    with pytest.raises(AIGenerationFailed):
        generate_custom_mock_exam(request, FakeCapability({"questions": []}))
    with pytest.raises(AIGenerationFailed):
        generate_custom_mock_exam(request, FakeCapability({"questions": [{**GENERATED, "correctOptionIndex": 4}]}))
    too_many = [str(i) for i in range(11)]
    with pytest.raises(AIGenerationFailed):
        generate_custom_mock_exam(request, FakeCapability({"questions": [{**GENERATED, "options": too_many}]}))


def test_parse_question_cleans_html():
    capability = FakeCapability(
        {
            "questionText": "Capital of India?",
            "options": [{"text": "Mumbai"}, {"text": "New Delhi"}, {"text": "Kolkata"}],
            "correctOptionIndex": 1,
            "subject": "General Awareness",
        }
    )
    raw = "<p><b>Capital of India?</b></p><ol><li>Mumbai</li><li>New Delhi</li><li>Kolkata</li></ol><p>Ans: B</p>"

    parsed = parse_question_from_text({"rawQuestionText": raw}, capability)

    assert parsed.correct_option_index == 1
    assert "<b>" not in capability.prompts[0]
    assert "New Delhi" in capability.prompts[0]

    question = generated_to_question(parsed, "exam-1", section_id="ga", position=4)
    assert question.options == ["Mumbai", "New Delhi", "Kolkata"]
    assert question.correct_option_index == 1
    assert question.subject == "General Awareness"
    assert question.difficulty == "medium"
    assert question.marks is None
    assert (question.exam_id, question.section_id, question.position) == ("exam-1", "ga", 4)


def test_parse_question_rejects_markup_only_input():
    capability = FakeCapability({})
    with pytest.raises(ValidationError):
        parse_question_from_text({"rawQuestionText": "<div> </div>"}, capability)


def test_parse_question_rejects_more_than_ten_options():
    capability = FakeCapability(
        {"questionText": "Pick one", "options": [{"text": str(i)} for i in range(11)], "correctOptionIndex": 0}
    )
    with pytest.raises(AIGenerationFailed):
        parse_question_from_text({"rawQuestionText": "Pick one"}, capability)
    assert capability.prompts == []


def test_build_performance_input(two_section_exam):
    exam, questions = two_section_exam
    result = score_exam(exam, questions, {"a0": 0, "a1": 0}, 1500, "u1")
    data = build_performance_input(result)
    assert data.exam_category == "Banking"
    assert data.score == 0.75
    assert data.time_spent == 25
    assert data.strengths == ["topic-a0"]
    assert data.weaknesses == ["topic-a1"]


# --- Gemini client ---

class FakeHTTPResponse:
    def __init__(self, body=None, status=200):
        self.body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.body is None:
            raise ValueError("no JSON")
        return self.body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_gemini_client_decodes_json():
    session = FakeSession(FakeHTTPResponse(gemini_body('```json\n{"analysisSummary": "ok", "suggestedTopics": []}\n```')))
    client = GeminiClient(api_key="key", model="gemini-test", timeout=5, session=session)

    data = client.generate("prompt")

    assert data == {"analysisSummary": "ok", "suggestedTopics": []}
    url, kwargs = session.requests[0]
    assert "gemini-test:generateContent" in url
    assert kwargs["headers"] == {"x-goog-api-key": "key"}
    assert kwargs["timeout"] == 5
    assert kwargs["json"]["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.parametrize("session", [
    FakeSession(FakeHTTPResponse(status=500)),
    FakeSession(error=requests.Timeout("timed out")),
    FakeSession(FakeHTTPResponse(body=None)),
    FakeSession(FakeHTTPResponse({"candidates": []})),
    FakeSession(FakeHTTPResponse(gemini_body("not json"))),
    FakeSession(FakeHTTPResponse(gemini_body("[1, 2]"))),
])
def test_gemini_client_failures(session):
    client = GeminiClient(api_key="key", session=session)
    with pytest.raises(AIGenerationFailed):
        client.generate("prompt")


def test_gemini_client_requires_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    client = GeminiClient(session=FakeSession())
    with pytest.raises(AIGenerationFailed):
        client.generate("prompt")
