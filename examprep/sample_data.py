"""Sample exams and questions loaded by `init_db.py --seed`."""
from typing import Dict, List, Tuple

from examprep.models import QUESTION_RC, Exam, Question, Section, SubQuestion

SBI_PO_ID = "sample-sbi-po-prelims"
SSC_CGL_ID = "sample-ssc-cgl-tier1"
DAILY_QUIZ_ID = "sample-daily-quiz"


def _exams() -> List[Exam]:
    return [
        Exam(
            id=SBI_PO_ID,
            name="SBI PO Prelims Mock 1",
            category="Banking",
            sub_category=["SBI PO"],
            exam_type="Prelims",
            status="published",
            duration_min=20,
            negative_mark_per_wrong=0.25,
            cutoff=2.0,
            sections=[
                Section(id="english", name="English Language", questions_count=2, cutoff_marks=1.0),
                Section(id="quant", name="Quantitative Aptitude", questions_count=3, cutoff_marks=1.0),
                Section(id="reasoning", name="Reasoning Ability", questions_count=2, cutoff_marks=0.5),
            ],
        ),
        Exam(
            id=SSC_CGL_ID,
            name="SSC CGL Tier 1 Mock",
            category="SSC",
            sub_category=["SSC CGL"],
            exam_type="Mock Test",
            status="published",
            duration_min=15,
            negative_mark_per_wrong=0.5,
            cutoff=3.0,
            sections=[
                Section(id="gi", name="General Intelligence", questions_count=2, marks_per_question=2.0),
                Section(id="ga", name="General Awareness", questions_count=2, marks_per_question=2.0),
            ],
        ),
        Exam(
            id=DAILY_QUIZ_ID,
            name="Daily Current Affairs Quiz",
            category="Daily Quiz",
            exam_type="Practice",
            status="published",
            duration_min=5,
            show_explanations=True,
        ),
    ]


def _questions() -> Dict[str, List[Question]]:
    sbi = [
        Question(
            id="sbi-q1",
            section_id="english",
            question_text="Choose the word most similar in meaning to 'ABUNDANT'.",
            options=["Scarce", "Plentiful", "Rare", "Meagre"],
            correct_option_index=1,
            subject="English",
            topic="Synonyms",
            difficulty="easy",
            explanation="Abundant means existing in large quantities, i.e. plentiful.",
        ),
        Question(
            id="sbi-q2",
            section_id="english",
            question_type=QUESTION_RC,
            question_text="Read the passage and answer the questions that follow.",
            passage=(
                "Digital payments have grown rapidly in India over the last decade. "
                "The spread of low-cost smartphones and the Unified Payments Interface "
                "made it possible for small merchants to accept payments without card terminals."
            ),
            subject="English",
            topic="Reading Comprehension",
            sub_questions=[
                SubQuestion(
                    id="sbi-q2-a",
                    question_text="What allowed small merchants to accept payments without card terminals?",
                    options=["Cash deposits", "UPI and smartphones", "Cheques", "Bank drafts"],
                    correct_option_index=1,
                ),
                SubQuestion(
                    id="sbi-q2-b",
                    question_text="The passage mainly discusses:",
                    options=["Growth of digital payments", "Inflation", "Farm loans", "Stock markets"],
                    correct_option_index=0,
                ),
            ],
        ),
        Question(
            id="sbi-q3",
            section_id="quant",
            question_text="What is 15% of 240?",
            options=["24", "30", "36", "40"],
            correct_option_index=2,
            subject="Quantitative Aptitude",
            topic="Percentage",
            explanation="240 x 0.15 = 36.",
        ),
        Question(
            id="sbi-q4",
            section_id="quant",
            question_text="A train covers 180 km in 3 hours. What is its speed in km/h?",
            options=["50", "60", "70", "90"],
            correct_option_index=1,
            subject="Quantitative Aptitude",
            topic="Speed and Distance",
            difficulty="easy",
        ),
        Question(
            id="sbi-q5",
            section_id="quant",
            question_text="Simple interest on Rs. 5000 at 8% per annum for 2 years is:",
            options=["Rs. 400", "Rs. 800", "Rs. 850", "Rs. 1000"],
            correct_option_index=1,
            subject="Quantitative Aptitude",
            topic="Simple Interest",
        ),
        Question(
            id="sbi-q6",
            section_id="reasoning",
            question_text="Find the odd one out: 3, 5, 7, 9, 11",
            options=["3", "5", "9", "11"],
            correct_option_index=2,
            subject="Reasoning",
            topic="Classification",
            explanation="9 is the only number in the list that is not prime.",
        ),
        Question(
            id="sbi-q7",
            section_id="reasoning",
            question_text="If CAT is coded as DBU, how is DOG coded?",
            options=["EPH", "EPI", "FPH", "DPH"],
            correct_option_index=0,
            subject="Reasoning",
            topic="Coding-Decoding",
            difficulty="hard",
        ),
    ]
    ssc = [
        Question(
            id="ssc-q1",
            section_id="gi",
            question_text="Complete the series: 2, 6, 12, 20, ?",
            options=["28", "30", "32", "36"],
            correct_option_index=1,
            subject="General Intelligence",
            topic="Number Series",
        ),
        Question(
            id="ssc-q2",
            section_id="gi",
            question_text="Book is to Author as Statue is to:",
            options=["Sculptor", "Painter", "Mason", "Carpenter"],
            correct_option_index=0,
            subject="General Intelligence",
            topic="Analogy",
            difficulty="easy",
        ),
        Question(
            id="ssc-q3",
            section_id="ga",
            question_text="Which article of the Indian Constitution abolishes untouchability?",
            options=["Article 14", "Article 17", "Article 21", "Article 32"],
            correct_option_index=1,
            subject="General Awareness",
            topic="Polity",
        ),
        Question(
            id="ssc-q4",
            section_id="ga",
            question_text="The Tropic of Cancer does NOT pass through which state?",
            options=["Gujarat", "Rajasthan", "Odisha", "Tripura"],
            correct_option_index=2,
            subject="General Awareness",
            topic="Geography",
            difficulty="hard",
        ),
    ]
    quiz = [
        Question(
            id="quiz-q1",
            question_text="Which organisation publishes the World Economic Outlook?",
            options=["World Bank", "IMF", "WTO", "UNDP"],
            correct_option_index=1,
            subject="Current Affairs",
            topic="Economy",
        ),
        Question(
            id="quiz-q2",
            question_text="The Reserve Bank of India was established in:",
            options=["1935", "1947", "1949", "1969"],
            correct_option_index=0,
            subject="Current Affairs",
            topic="Banking Awareness",
            explanation="RBI was set up on 1 April 1935 under the RBI Act, 1934.",
        ),
    ]
    return {SBI_PO_ID: sbi, SSC_CGL_ID: ssc, DAILY_QUIZ_ID: quiz}


def sample_data() -> Tuple[List[Exam], Dict[str, List[Question]]]:
    """Fresh copies each call, so callers may mutate them."""
    return _exams(), _questions()
