"""RRB Mock Test: Streamlit front end over MockTestService."""
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from mocktest.config import Settings, configure_logging
from mocktest.errors import InsufficientQuestions, PatternValidationError, QuestionValidationError
from mocktest.models import DIFFICULTIES
from mocktest.scoring import lag_analysis
from mocktest.service import MockTestService, build_service

PAGES = ["Dashboard", "Mock Test", "Analytics", "Question Bank"]
OPTION_LABELS = "ABCDEFGHIJ"


@st.cache_resource
def get_service() -> MockTestService:
    settings = Settings.from_env()
    configure_logging(settings)
    return build_service(settings)


st.set_page_config(page_title="RRB Mock Test", layout="wide")
st.sidebar.title("RRB Mock Test")
default_page = st.query_params.get("page", "Dashboard")
if default_page not in PAGES:
    default_page = "Dashboard"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")

service = get_service()
service.analytics.maybe_autosave()

# ----- Dashboard -----
if page == "Dashboard":
    st.header("Dashboard")
    stats = service.bank.statistics()
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total questions", stats["total"])
    with col2:
        st.metric("Subjects", len(stats["by_subject"]))
    with col3:
        st.metric("Tests taken", len(service.results))
    if stats["by_subject"]:
        st.bar_chart(stats["by_subject"])
    if st.button("Start Mock Test", type="primary", use_container_width=True):
        st.query_params["page"] = "Mock Test"
        st.rerun()

# ----- Mock Test -----
elif page == "Mock Test":
    st.header("Mock Test")
    test_session = st.session_state.get("test_session")
    last_result = st.session_state.get("last_result")

    if last_result is not None:
        st.success("Test submitted.")
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Score", f"{last_result.score:.1f}%")
        with col2:
            st.metric("Marks", f"{last_result.raw_score:.2f} / {last_result.total_questions}")
        with col3:
            st.metric("Grade", last_result.grade)
        st.write("Passed" if last_result.passed else "Below passing percentage")
        weak = lag_analysis(last_result)["weak_areas"]
        if weak:
            st.subheader("Weakest subjects")
            for subject, s in weak:
                st.write(f"- {subject}: {s['correct']}/{s['total']} ({s['accuracy_percent']:.0f}%)")
        if st.button("Start a new test"):
            st.session_state["last_result"] = None
            st.rerun()
        st.stop()

    if test_session is None:
        names = service.catalog.names()
        name = st.selectbox("Exam pattern", names, format_func=lambda n: service.pattern(n).name)
        pattern = service.pattern(name)
        st.caption(
            f"{pattern.total_questions} MCQs · {pattern.time_limit_minutes:g} minutes · "
            f"Correct +{pattern.marking_scheme.positive:g}, Wrong -{pattern.marking_scheme.negative:g}, "
            f"Skip {pattern.marking_scheme.unanswered:g}"
        )
        subject = None
        if pattern.type == "subject_wise":
            subject = st.selectbox("Subject", service.bank.subjects())
        chapters = None
        if pattern.type == "chapter_wise":
            chapters = st.multiselect("Chapters", service.bank.chapters()) or None
        if st.button("Start exam"):
            try:
                instance = service.generate_test(name, subject=subject, chapters=chapters)
                st.session_state["test_session"] = service.start_session(instance, pattern)
                st.rerun()
            except PatternValidationError as e:
                for err in e.errors:
                    st.error(err)
            except InsufficientQuestions as e:
                st.warning(str(e))
        st.stop()

    items = test_session.instance.items
    n = len(items)
    remaining_sec = int(test_session.time_remaining())
    m, s = divmod(remaining_sec, 60)
    st.sidebar.metric("Time left", f"{m}:{s:02d}")
    summary = test_session.get_session_summary()
    st.sidebar.progress(summary["questions_answered"] / n if n else 0)
    st.sidebar.caption(f"Question {summary['questions_answered']}/{n} answered")
    if test_session.warning_due():
        st.sidebar.warning("Less than the warning time left")

    item = test_session.get_current_question()
    idx = test_session.current_question_idx
    st.subheader(f"Question {idx + 1} of {n} · {item.subject}")
    st.write(item.text)

    # 0 = Skip, 1..N = A, B, C, ...
    opt_indices = [None] + list(range(len(item.options)))
    opt_labels = ["(Skip)"] + [f"{OPTION_LABELS[i]}. {o}" for i, o in enumerate(item.options)]
    current = test_session.answers.get(item.question_id)
    choice_in_ui = st.radio(
        "Choose one:",
        range(len(opt_indices)),
        format_func=lambda i: opt_labels[i],
        key=f"q_{test_session.session_id}_{idx}",
        index=opt_indices.index(current) if current in opt_indices else 0,
    )
    if opt_indices[choice_in_ui] != current:
        feedback = test_session.submit_answer(item.question_id, opt_indices[choice_in_ui])
        if "is_correct" in feedback:
            if feedback["is_correct"]:
                st.success("Correct!")
            else:
                st.error(f"Incorrect. The correct answer is {OPTION_LABELS[feedback['correct_index']]}.")

    col1, col2, col3, col4 = st.columns([1, 1, 1, 2])
    with col1:
        if st.button("Previous") and test_session.previous_question():
            st.rerun()
    with col2:
        if st.button("Next") and test_session.next_question():
            st.rerun()
    with col3:
        if test_session.pattern.allow_bookmark and st.button("Bookmark"):
            test_session.toggle_bookmark(item.question_id)
    with col4:
        if st.button("Submit exam"):
            st.session_state["last_result"] = service.finish(test_session)
            st.session_state["test_session"] = None
            st.rerun()

    # Auto-submit when time runs out
    if test_session.is_expired() and test_session.pattern.auto_submit:
        st.session_state["last_result"] = service.finish(test_session)
        st.session_state["test_session"] = None
        st.rerun()

# ----- Analytics -----
elif page == "Analytics":
    st.header("Analytics")
    report = service.analytics.report()
    overview = report["overview"]
    if overview is None:
        st.info("No tests taken yet.")
        st.stop()
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Tests", overview["total_tests"])
    with col2:
        st.metric("Average score", f"{overview['average_score']:.1f}%")
    with col3:
        st.metric("Best score", f"{overview['best_score']:.1f}%")

    timing = report["time_analysis"]
    if timing:
        st.caption(f"Average {timing['average_time_per_question']:.0f}s per question")
        st.bar_chart(timing["timing_distribution"])

    progress = report["progress_analysis"]
    if progress:
        st.caption(f"Trend: {progress['current_trend']} · improvement {progress['improvement']:+.1f}")
        st.line_chart([p["score"] for p in service.analytics.state["progress_tracking"]])

    st.subheader("Subjects")
    for subject, perf in report["subject_analysis"].items():
        st.write(f"- {subject}: avg {perf['average_score']:.1f}%, best {perf['best_score']:.1f}% over {perf['total_tests']} tests")

    st.subheader("Recommendations")
    for rec in report["recommendations"]:
        (st.warning if rec["priority"] == "high" else st.info)(rec["message"])

    col1, col2, col3 = st.columns(3)
    with col1:
        st.download_button("Export CSV", service.analytics.export("csv"), file_name="mocktest_history.csv")
    with col2:
        st.download_button("Export JSON", service.analytics.export("json"), file_name="mocktest_analytics.json")
    with col3:
        if st.button("Clear analytics"):
            service.analytics.clear()
            st.rerun()

# ----- Question Bank -----
elif page == "Question Bank":
    st.header("Question Bank")
    subjects = service.bank.subjects()
    col1, col2, col3 = st.columns(3)
    with col1:
        subject = st.selectbox("Subject", ["All"] + subjects)
    with col2:
        difficulty = st.selectbox("Difficulty", ["All"] + list(DIFFICULTIES))
    with col3:
        search = st.text_input("Search")
    questions = service.bank.get_questions(
        subject=None if subject == "All" else subject,
        difficulty=None if difficulty == "All" else difficulty,
        search=search or None,
    )
    st.caption(f"{len(questions)} questions")
    for q in questions[:100]:
        with st.expander(f"[{q.subject} · {q.difficulty}] {q.text[:80]}"):
            for i, o in enumerate(q.options):
                st.write(f"{'✓' if i == q.correct_index else '○'} {OPTION_LABELS[i]}. {o}")
            if st.button("Delete", key=f"del_{q.id}"):
                service.bank.delete_question(q.id)
                st.rerun()

    st.subheader("Add question")
    with st.form("add_question"):
        text = st.text_area("Question")
        new_subject = st.text_input("Subject")
        chapter = st.text_input("Chapter")
        new_difficulty = st.selectbox("Difficulty", list(DIFFICULTIES), index=1)
        options = [st.text_input(f"Option {OPTION_LABELS[i]}") for i in range(4)]
        correct = st.selectbox("Correct option", range(4), format_func=lambda i: OPTION_LABELS[i])
        if st.form_submit_button("Add"):
            try:
                service.bank.add_question({
                    "text": text,
                    "subject": new_subject,
                    "chapter": chapter or None,
                    "difficulty": new_difficulty,
                    "options": [o for o in options if o],
                    "correct_index": correct,
                })
                st.success("Question added")
            except QuestionValidationError as e:
                for err in e.errors:
                    st.error(err)
