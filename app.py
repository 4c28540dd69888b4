"""ExamPrep AI: multi-page mock exam platform."""
import sys
from pathlib import Path
from datetime import datetime, timezone

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_database
from engine import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_GENERATED_QUESTIONS,
    DEFAULT_NEGATIVE_MARK,
    EXAM_CATEGORIES,
    LEADERBOARD_SIZE,
    OPTION_LABELS,
)
from examprep.aggregation import build_leaderboard, category_stats, subject_performance, user_summary
from examprep.ai_flows import (
    analyze_performance,
    build_performance_input,
    generate_custom_mock_exam,
    generated_to_question,
    parse_question_from_text,
)
from examprep.errors import AIGenerationFailed, ExamPrepError, NotFoundError, PersistenceError, ValidationError
from examprep.export import format_question_paper, format_result_report, paper_filename, result_filename
from examprep.models import DIFFICULTIES, EXAM_TYPES, Exam, Question, Section, UserProfile
from examprep.sample_data import sample_data
from examprep.scoring import ExamSession

PAGES = ["Dashboard", "Mock Test", "Results", "Analytics", "Leaderboard", "Admin"]

st.set_page_config(page_title="ExamPrep AI", layout="wide")
st.sidebar.title("ExamPrep AI")
# Allow URL to open a specific page (e.g. after "Start")
default_page = st.query_params.get("page", "Dashboard")
if default_page not in PAGES:
    default_page = "Dashboard"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")

# Current user is passed explicitly into every store call
user_id = st.sidebar.text_input("User ID", key="user_id").strip()
user_name = st.sidebar.text_input("Display name", key="user_name").strip()


def go_to(target: str):
    st.query_params["page"] = target
    st.rerun()


def require_user():
    if not user_id:
        st.info("Enter your user ID in the sidebar to continue.")
        st.stop()
    if st.session_state.get("ensured_user") != user_id:
        get_database().ensure_user(UserProfile(id=user_id, name=user_name or user_id))
        st.session_state["ensured_user"] = user_id


@st.cache_data(ttl=300)
def load_question_paper(exam_id: str, with_answers: bool) -> str:
    database = get_database()
    exam = database.get_exam(exam_id)
    return format_question_paper(exam, database.get_questions_for_exam(exam_id), with_answers=with_answers)


def render_choice(label: str, options: list, selected, key: str):
    """Radio for one item; returns the chosen option index or None."""
    return st.radio(
        label,
        list(range(len(options))),
        index=selected,
        format_func=lambda i: f"{OPTION_LABELS[i]}. {options[i]}",
        key=key,
    )


def submit_session(session: ExamSession, now: datetime):
    try:
        session.submit(now)
    except ValidationError as e:
        st.error(f"This attempt could not be scored. {e}")
        st.stop()


# ----- Dashboard -----
if page == "Dashboard":
    st.header("Dashboard")
    try:
        database = get_database()
        counts = database.get_exam_categories()
        cols = st.columns(4)
        for i, (category, n) in enumerate(counts.items()):
            cols[i % 4].metric(category, n)

        if user_id:
            preferred = database.get_user_preferences(user_id)
            interested = st.multiselect("Interested categories", EXAM_CATEGORIES, default=[c for c in preferred if c in EXAM_CATEGORIES])
            if st.button("Save preferences"):
                database.update_user_preferences(user_id, interested)
                st.success("Preferences saved.")

        st.subheader("Exams")
        col1, col2 = st.columns(2)
        with col1:
            category = st.selectbox("Category", ["All"] + EXAM_CATEGORIES)
        exams = database.list_published_exams(None if category == "All" else category)
        sub_categories = sorted({s for e in exams for s in e.sub_category})
        with col2:
            sub_category = st.selectbox("Sub-category", ["All"] + sub_categories)
        if sub_category != "All":
            exams = [e for e in exams if sub_category in e.sub_category]

        if not exams:
            st.info("No published exams in this category yet.")
        now = datetime.now(timezone.utc)
        for exam in exams:
            with st.expander(f"{exam.name} · {exam.category} · {exam.duration_min} min"):
                st.caption(
                    f"{exam.exam_type} · {exam.total_questions or 'All'} questions · "
                    f"-{exam.negative_mark_per_wrong:g} per wrong answer"
                    + (f" · cut-off {exam.cutoff:g}" if exam.cutoff is not None else "")
                )
                for section in exam.sections:
                    st.write(f"- {section.name}: {section.questions_count} questions × {section.marks_per_question:g} marks")
                c1, c2, c3 = st.columns(3)
                with c1:
                    if not exam.is_open(now):
                        st.warning("Not open right now")
                    elif st.button("Start", key=f"start_{exam.id}", type="primary"):
                        st.session_state["selected_exam_id"] = exam.id
                        st.session_state.pop("exam_session", None)
                        go_to("Mock Test")
                with c2:
                    st.download_button(
                        "Question paper",
                        load_question_paper(exam.id, False),
                        file_name=paper_filename(exam),
                        mime="text/plain",
                        key=f"paper_{exam.id}",
                    )
                with c3:
                    if exam.show_explanations:
                        st.download_button(
                            "With answers",
                            load_question_paper(exam.id, True),
                            file_name=paper_filename(exam, with_answers=True),
                            mime="text/plain",
                            key=f"paper_ans_{exam.id}",
                        )
    except ExamPrepError as e:
        st.error(f"Could not load exams. Check DB and .env (SUPABASE_URL, SUPABASE_KEY). {e}")

# ----- Mock Test -----
elif page == "Mock Test":
    st.header("Mock Test")
    require_user()
    database = get_database()

    session = st.session_state.get("exam_session")
    if session is None or session.user_id != user_id:
        exams = database.list_published_exams()
        if not exams:
            st.warning("No published exams. Ask an admin to add one.")
            st.stop()
        ids = [e.id for e in exams]
        selected = st.session_state.get("selected_exam_id")
        exam = st.selectbox(
            "Exam",
            exams,
            index=ids.index(selected) if selected in ids else 0,
            format_func=lambda e: f"{e.name} ({e.category})",
        )
        st.caption(f"{exam.duration_min} minutes · Wrong answer -{exam.negative_mark_per_wrong:g} · Skip 0")
        if st.button("Start exam", type="primary"):
            now = datetime.now(timezone.utc)
            if not exam.is_open(now):
                st.error("This exam is not open right now.")
                st.stop()
            questions = database.get_questions_for_exam(exam.id)
            if not questions:
                st.warning("This exam has no questions yet.")
                st.stop()
            # Drop radio state left over from a previous attempt
            for key in [k for k in st.session_state if str(k).startswith("ans_")]:
                del st.session_state[key]
            try:
                st.session_state["exam_session"] = ExamSession(exam, questions, user_id, started_at=now)
            except ValidationError as e:
                st.error(f"This exam is not ready to take yet. {e}")
                st.stop()
            st.session_state.pop("saved_result_id", None)
            st.rerun()
        st.stop()

    exam = session.exam
    now = datetime.now(timezone.utc)

    if session.submitted:
        # Result is only shown once it has been stored
        if not st.session_state.get("saved_result_id"):
            try:
                st.session_state["saved_result_id"] = database.save_exam_result(session.result)
            except PersistenceError as e:
                st.error(f"Your submission could not be saved. {e}")
                if st.button("Retry saving"):
                    st.rerun()
                st.stop()
        st.success("Exam submitted." + (" Time ran out, so it was submitted automatically." if session.result.auto_submitted else ""))
        st.session_state["last_result_id"] = st.session_state["saved_result_id"]
        col1, col2 = st.columns(2)
        with col1:
            if st.button("View result", type="primary"):
                st.session_state.pop("exam_session", None)
                go_to("Results")
        with col2:
            if st.button("Take another exam"):
                st.session_state.pop("exam_session", None)
                st.rerun()
        st.stop()

    # Auto-submit when time runs out
    if session.is_expired(now):
        submit_session(session, now)
        st.rerun()

    m, s = divmod(session.remaining_seconds(now), 60)
    st.sidebar.metric("Time left", f"{m}:{s:02d}")
    n = len(session.questions)
    st.sidebar.progress(session.answered_count() / n if n else 0)
    st.sidebar.caption(f"{session.answered_count()}/{n} answered")
    st.subheader(exam.name)

    groups = [(s.name, [q for q in session.questions if q.section_id == s.id]) for s in exam.sections]
    if not groups:
        groups = [("All Questions", session.questions)]
    numbering = {q.id: i for i, q in enumerate(session.questions, 1)}

    for tab, (section_name, section_questions) in zip(st.tabs([g[0] for g in groups]), groups):
        with tab:
            for q in section_questions:
                st.markdown(f"**Question {numbering[q.id]}.** {q.question_text}")
                answer = session.answers.get(q.id)
                if q.is_reading_comprehension:
                    st.info(q.passage or "")
                    for sub_index, sub in enumerate(q.sub_questions, 1):
                        current = (answer or {}).get(sub.id)
                        choice = render_choice(f"{sub_index}. {sub.question_text}", sub.options, current, f"ans_{q.id}_{sub.id}")
                        if choice != current:
                            if choice is None:
                                session.clear(q.id, sub.id)
                            else:
                                session.select(q.id, choice, sub.id)
                else:
                    choice = render_choice("Choose one:", q.options, answer, f"ans_{q.id}")
                    if choice != answer:
                        if choice is None:
                            session.clear(q.id)
                        else:
                            session.select(q.id, choice)
                if answer is not None and st.button("Clear answer", key=f"clear_{q.id}"):
                    session.clear(q.id)
                    st.session_state.pop(f"ans_{q.id}", None)
                    for sub in q.sub_questions:
                        st.session_state.pop(f"ans_{q.id}_{sub.id}", None)
                    st.rerun()
                st.divider()

    if st.button("Submit exam", type="primary"):
        submit_session(session, datetime.now(timezone.utc))
        st.rerun()

# ----- Results -----
elif page == "Results":
    st.header("Results")
    require_user()
    database = get_database()
    try:
        results = database.get_results_for_user(user_id)
    except PersistenceError as e:
        st.error(f"Could not load results: {e}")
        st.stop()
    if not results:
        st.info("You have not taken any exams yet.")
        st.stop()

    ids = [r.id for r in results]
    last_id = st.session_state.get("last_result_id")
    result = st.selectbox(
        "Attempt",
        results,
        index=ids.index(last_id) if last_id in ids else 0,
        format_func=lambda r: f"{r.exam_name} · {r.submitted_at:%Y-%m-%d %H:%M} · {r.score:g}/{r.max_score:g}",
    )
    try:
        exam = database.get_exam(result.exam_id)
        questions = database.get_questions_for_exam(result.exam_id)
    except NotFoundError:
        exam, questions = None, []

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Score", f"{result.score:g} / {result.max_score:g}")
    col2.metric("Percentage", f"{result.percentage:g}%")
    col3.metric("Accuracy", f"{result.accuracy:g}%")
    col4.metric("Time", f"{result.time_taken // 60}m {result.time_taken % 60}s")
    if result.cutoff is not None:
        if result.qualified:
            st.success(f"Qualified (cut-off {result.cutoff:g})")
        else:
            st.error(f"Not qualified (cut-off {result.cutoff:g})")

    if exam and exam.sections:
        st.subheader("Sections")
        st.dataframe(
            [
                {
                    "Section": s.section_name,
                    "Score": s.score,
                    "Max": s.max_score,
                    "Attempted": s.attempted,
                    "Correct": s.correct,
                    "Incorrect": s.incorrect,
                    "Accuracy %": s.accuracy,
                    "Qualified": s.qualified,
                }
                for s in result.section_results
            ],
            use_container_width=True,
        )

    report = format_result_report(result, questions, exam)
    st.download_button("Download report", report, file_name=result_filename(result), mime="text/plain")
    with st.expander("Question-wise breakdown"):
        st.text(report)

# ----- Analytics -----
elif page == "Analytics":
    st.header("Analytics")
    require_user()
    database = get_database()
    try:
        results = database.get_results_for_user(user_id)
    except PersistenceError as e:
        st.error(f"Could not load results: {e}")
        st.stop()
    summary = user_summary(results)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Exams taken", summary["total_exams"])
    col2.metric("Average score", summary["avg_score"])
    col3.metric("Average accuracy", f"{summary['avg_accuracy']}%")
    col4.metric("Time practised", f"{summary['total_time'] // 60} min")

    if results:
        st.subheader("Score trend")
        st.line_chart({"score": [r.score for r in reversed(results)]})
        st.subheader("Subject performance")
        st.dataframe(subject_performance(results), use_container_width=True)

        st.subheader("AI performance analysis")
        latest = results[0]
        st.caption(f"Based on your latest attempt: {latest.exam_name}")
        if st.button("Analyze my performance", type="primary"):
            with st.spinner("Analyzing..."):
                try:
                    st.session_state["analysis"] = analyze_performance(build_performance_input(latest))
                except AIGenerationFailed as e:
                    st.error(f"The analysis could not be generated. Please try again. ({e})")
        analysis = st.session_state.get("analysis")
        if analysis:
            st.info(analysis.analysis_summary)
            st.write("**Focus on:**")
            for topic in analysis.suggested_topics:
                st.write(f"- {topic}")
    else:
        st.info("Take an exam to see your analytics.")

# ----- Leaderboard -----
elif page == "Leaderboard":
    st.header("Leaderboard")
    database = get_database()
    try:
        results = database.get_results()
        profiles = database.get_user_profiles(r.user_id for r in results)
        entries = build_leaderboard(results, profiles, limit=LEADERBOARD_SIZE)
    except PersistenceError as e:
        st.error(f"Could not load the leaderboard: {e}")
        st.stop()

    if not entries:
        st.info("No results yet. Be the first!")
    st.dataframe(
        [
            {"Rank": e.rank, "Name": e.name, "Exams taken": e.exams_taken, "Total points": round(e.total_points, 2)}
            for e in entries
        ],
        use_container_width=True,
        hide_index=True,
    )

    st.subheader("Category stats")
    cols = st.columns(3)
    for i, category in enumerate(EXAM_CATEGORIES):
        stats = category_stats(results, category)
        with cols[i % 3]:
            st.markdown(f"**{category}**")
            if stats.has_data:
                st.write(f"Average score: {stats.average_score:g} ({stats.result_count} attempts)")
                st.write(f"Highest: {stats.highest_score:g} in {stats.highest_score_exam_name}")
            else:
                st.caption("No attempts yet")

# ----- Admin -----
elif page == "Admin":
    st.header("Admin")
    database = get_database()
    tab_exam, tab_question, tab_parse, tab_generate, tab_seed = st.tabs(
        ["Add exam", "Add question", "Parse question", "Generate questions", "Sample data"]
    )

    with tab_exam:
        with st.form("add_exam"):
            name = st.text_input("Exam name")
            category = st.selectbox("Category", EXAM_CATEGORIES)
            sub_category = st.text_input("Sub-categories (comma separated)")
            exam_type = st.selectbox("Exam type", EXAM_TYPES)
            status = st.selectbox("Status", ["draft", "published", "archived"])
            duration = st.number_input("Duration (minutes)", min_value=1, value=DEFAULT_DURATION_MINUTES)
            negative = st.number_input("Negative mark per wrong answer", min_value=0.0, value=DEFAULT_NEGATIVE_MARK, step=0.05)
            cutoff = st.number_input("Overall cut-off (0 = none)", min_value=0.0, value=0.0)
            sections_text = st.text_area(
                "Sections, one per line: name | questions | marks per question | cut-off",
                placeholder="English Language | 30 | 1 | 8\nQuantitative Aptitude | 35 | 1 | 9",
            )
            show_explanations = st.checkbox("Show explanations after the exam", value=True)
            if st.form_submit_button("Add exam"):
                try:
                    sections = []
                    for i, line in enumerate(l for l in sections_text.splitlines() if l.strip()):
                        parts = [p.strip() for p in line.split("|")]
                        sections.append(
                            Section(
                                id=f"s{i + 1}",
                                name=parts[0],
                                questions_count=int(parts[1]),
                                marks_per_question=float(parts[2]) if len(parts) > 2 and parts[2] else 1.0,
                                cutoff_marks=float(parts[3]) if len(parts) > 3 and parts[3] else None,
                            )
                        )
                    exam = Exam(
                        id=name.strip().lower().replace(" ", "-") + f"-{int(datetime.now(timezone.utc).timestamp())}",
                        name=name.strip(),
                        category=category,
                        sub_category=[s.strip() for s in sub_category.split(",") if s.strip()],
                        exam_type=exam_type,
                        status=status,
                        duration_min=int(duration),
                        negative_mark_per_wrong=negative,
                        cutoff=cutoff or None,
                        sections=sections,
                        show_explanations=show_explanations,
                    )
                    database.add_exam(exam)
                    st.success(f"Added exam {exam.name}")
                except (ValueError, IndexError) as e:
                    st.error(f"Could not read sections: {e}")
                except ExamPrepError as e:
                    st.error(str(e))

    all_exams = database.list_exams()

    def pick_exam(key: str):
        if not all_exams:
            st.info("Add an exam first.")
            return None, None
        exam = st.selectbox("Exam", all_exams, format_func=lambda e: f"{e.name} [{e.status}]", key=f"{key}_exam")
        section = None
        if exam.sections:
            section = st.selectbox("Section", exam.sections, format_func=lambda s: s.name, key=f"{key}_section")
        return exam, section

    with tab_question:
        exam, section = pick_exam("manual")
        if exam:
            with st.form("add_question"):
                text = st.text_area("Question text")
                options_text = st.text_area("Options, one per line")
                correct = st.number_input("Correct option (1-based)", min_value=1, value=1)
                subject = st.text_input("Subject", value=section.name if section else "General")
                topic = st.text_input("Topic")
                difficulty = st.selectbox("Difficulty", DIFFICULTIES, index=1)
                explanation = st.text_area("Explanation")
                if st.form_submit_button("Add question"):
                    options = [o.strip() for o in options_text.splitlines() if o.strip()]
                    if not text.strip() or len(options) < 2 or correct > len(options):
                        st.error("Enter the question, at least two options and a valid correct option.")
                    else:
                        question = Question(
                            id=f"{exam.id}-{int(datetime.now(timezone.utc).timestamp() * 1000)}",
                            question_text=text.strip(),
                            options=options,
                            correct_option_index=int(correct) - 1,
                            section_id=section.id if section else None,
                            subject=subject or "General",
                            topic=topic,
                            difficulty=difficulty,
                            explanation=explanation or None,
                        )
                        try:
                            database.add_question(exam.id, question)
                            load_question_paper.clear()
                            st.success("Question added.")
                        except PersistenceError as e:
                            st.error(str(e))

    with tab_parse:
        exam, section = pick_exam("parse")
        raw = st.text_area("Paste a question (plain text or HTML)", height=200)
        if st.button("Parse with AI") and raw.strip():
            with st.spinner("Parsing..."):
                try:
                    st.session_state["parsed_question"] = parse_question_from_text({"raw_question_text": raw})
                except (AIGenerationFailed, ValidationError) as e:
                    st.error(f"Could not parse the question. Please try again. ({e})")
        parsed = st.session_state.get("parsed_question")
        if parsed:
            st.write(f"**{parsed.question_text}**")
            for i, opt in enumerate(parsed.options):
                marker = "✓" if i == parsed.correct_option_index else "○"
                st.write(f"{marker} {OPTION_LABELS[i]}. {opt.text}")
            if parsed.explanation:
                st.caption(parsed.explanation)
            if exam and st.button("Save to exam"):
                question = generated_to_question(parsed, exam.id, section.id if section else None, default_subject=section.name if section else "General")
                try:
                    database.add_question(exam.id, question)
                except PersistenceError as e:
                    st.error(str(e))
                else:
                    load_question_paper.clear()
                    st.session_state.pop("parsed_question")
                    st.success("Question saved.")

    with tab_generate:
        exam, section = pick_exam("generate")
        gen_section = st.text_input("Section", value=section.name if section else "")
        gen_topic = st.text_input("Topic (optional)")
        gen_difficulty = st.selectbox("Difficulty", DIFFICULTIES, index=1, key="gen_difficulty")
        gen_count = st.number_input("Number of questions", min_value=1, max_value=100, value=DEFAULT_GENERATED_QUESTIONS)
        if st.button("Generate", type="primary"):
            with st.spinner("Generating..."):
                try:
                    st.session_state["generated_questions"] = generate_custom_mock_exam(
                        {
                            "section": gen_section,
                            "topic": gen_topic or None,
                            "difficulty": gen_difficulty,
                            "numberOfQuestions": int(gen_count),
                        }
                    )
                except ValidationError as e:
                    st.error(str(e))
                except AIGenerationFailed as e:
                    st.error(f"Question generation failed. Please try again. ({e})")
        generated = st.session_state.get("generated_questions") or []
        for i, g in enumerate(generated, 1):
            st.write(f"{i}. {g.question_text} (answer: {OPTION_LABELS[g.correct_option_index]})")
        if generated and exam and st.button("Add all to exam"):
            questions = [
                generated_to_question(g, exam.id, section.id if section else None, default_subject=gen_section)
                for g in generated
            ]
            try:
                total = database.add_questions(exam.id, questions)
            except PersistenceError as e:
                st.error(str(e))
            else:
                load_question_paper.clear()
                st.session_state.pop("generated_questions")
                st.success(f"Added {total} questions to {exam.name}.")

    with tab_seed:
        st.write("Load sample Banking, SSC and Daily Quiz exams (safe to run more than once).")
        if st.button("Load sample data"):
            try:
                counts = database.seed(*sample_data())
                load_question_paper.clear()
                st.success(f"Seeded {counts['exams']} exams and {counts['questions']} questions.")
            except PersistenceError as e:
                st.error(str(e))
