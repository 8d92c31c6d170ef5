"""
Streamlit AI Interview Simulator (web app phase)

Flow: setup -> MCQ screening -> adaptive interview -> report.
- Every mutation goes through InterviewSession; this file renders and forwards clicks
- Countdowns are deadline based and re-checked on each autorefresh rerun
- Camera preview and answer recording are separate WebRTC components
"""

from __future__ import annotations

import asyncio
import base64
import threading
from typing import Any, Coroutine, List, TypeVar

import streamlit as st
from streamlit_autorefresh import st_autorefresh
from streamlit_webrtc import WebRtcMode, webrtc_streamer

from interview_sim.config import get_openai_client, settings, setup_logging
from interview_sim.errors import SetupValidationError
from interview_sim.export import clip_downloads, render_transcript
from interview_sim.gateway import EvaluationGateway
from interview_sim.mcq import McqScreening
from interview_sim.media import CameraState, MediaCaptureController
from interview_sim.models import ExperienceLevel, MCQResult, UserContext
from interview_sim.router import View, select_view
from interview_sim.session import InterviewSession
from interview_sim.webrtc import RTC_CONFIG, WebRtcBackend

T = TypeVar("T")

logger = setup_logging()


# --------------------------
# Async bridge
# --------------------------
@st.cache_resource
def _event_loop() -> asyncio.AbstractEventLoop:
    # the AsyncOpenAI client must stay on a single running loop
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="gateway-loop", daemon=True).start()
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run_coroutine_threadsafe(coro, _event_loop()).result()


# --------------------------
# Streamlit config
# --------------------------
st.set_page_config(page_title="AI Interview Simulator", page_icon="🎯", layout="wide")


# --------------------------
# Session state init
# --------------------------
def _init_state() -> None:
    ss = st.session_state
    if "session" not in ss:
        try:
            client = get_openai_client()
        except RuntimeError as e:
            st.error(str(e))
            st.stop()
        media = MediaCaptureController(WebRtcBackend())
        ss.session = InterviewSession(EvaluationGateway(client), media=media)
    ss.setdefault("mcq", None)            # McqScreening for the current MCQ set
    ss.setdefault("mcq_results", None)    # emitted once the quiz finishes

_init_state()


def _session() -> InterviewSession:
    return st.session_state.session


# --------------------------
# UI helpers
# --------------------------
def section_title(title: str, emoji: str = "") -> None:
    st.markdown(f"### {emoji} {title}".strip())


def pill(label: str, value: str) -> None:
    st.markdown(
        f"""
        <div style="display:inline-block;padding:6px 10px;border-radius:999px;
        border:1px solid rgba(255,255,255,0.15);margin-right:8px;margin-bottom:8px;
        background:rgba(255,255,255,0.03);font-size:14px;">
        <b>{label}:</b> {value}
        </div>
        """,
        unsafe_allow_html=True,
    )


def countdown_badge(seconds: int, warn_below: int) -> None:
    color = "#ff6b6b" if seconds < warn_below else "#8ea2ff"
    st.markdown(
        f"""
        <div style="text-align:center;padding:10px 14px;border-radius:16px;border:2px solid {color};
        color:{color};font-family:monospace;font-size:28px;font-weight:800;">
        {seconds}s
        </div>
        """,
        unsafe_allow_html=True,
    )


def _show_last_error() -> None:
    err = _session().last_error
    if err:
        st.error(err)


def _reset_all() -> None:
    _session().reset()
    for k in list(st.session_state.keys()):
        if k != "session":
            del st.session_state[k]


# --------------------------
# Sidebar
# --------------------------
with st.sidebar:
    st.markdown("## 🎯 AI Interview Simulator")
    st.caption(f"LLM: `{settings.model}` | Report: `{settings.report_model}`")

    if st.button("🔁 Reset"):
        _reset_all()
        st.rerun()


# --------------------------
# Setup
# --------------------------
def render_setup() -> None:
    session = _session()
    st.title("🎯 I am an AI Interviewer")
    st.caption("Resume analysis, MCQ screening, an adaptive interview and a scored final report.")

    with st.form("setup_form"):
        c1, c2 = st.columns(2, gap="large")
        with c1:
            role = st.selectbox("Target job role", options=settings.roles, index=0)
        with c2:
            level = st.radio(
                "Experience level",
                options=[lvl.value for lvl in ExperienceLevel],
                index=1,
                horizontal=True,
            )

        c3, c4 = st.columns(2, gap="large")
        with c3:
            resume = st.text_area("Your resume", height=260, placeholder="Paste the text from your resume here...")
            resume_file = st.file_uploader("…or upload a photo of it", type=["png", "jpg", "jpeg", "webp"])
        with c4:
            jd = st.text_area("Job description (JD)", height=260, placeholder="Paste the target Job Description requirements here...")

        submitted = st.form_submit_button(
            "Proceed to MCQ Screening Round →",
            use_container_width=True,
            disabled=session.is_processing,
        )

    if not submitted:
        return

    image_b64 = None
    image_mime = None
    if resume_file is not None:
        image_b64 = base64.b64encode(resume_file.getvalue()).decode("utf-8")
        image_mime = resume_file.type

    try:
        context = UserContext.create(
            role=role,
            experience=ExperienceLevel(level),
            resume=resume,
            job_description=jd,
            resume_image=image_b64,
            resume_image_mime=image_mime,
        )
    except SetupValidationError as e:
        st.error(e.describe({"role": "target role", "resume": "resume (text or image)", "job_description": "job description"}))
        return

    with st.spinner("Initializing interview platform…"):
        run_async(session.start_assessment(context))
    st.session_state.mcq = None
    st.session_state.mcq_results = None
    st.rerun()


# --------------------------
# MCQ screening
# --------------------------
def _on_mcq_finish(results: List[MCQResult]) -> None:
    st.session_state.mcq_results = results


def render_mcq() -> None:
    session = _session()

    if st.session_state.mcq is None:
        quiz = McqScreening(session.mcqs, on_finish=_on_mcq_finish, time_limit=settings.mcq_time_limit)
        st.session_state.mcq = quiz
        quiz.start()
    quiz: McqScreening = st.session_state.mcq

    quiz.poll()

    if quiz.finished:
        results = st.session_state.mcq_results or []
        st.title("✅ Screening round complete")
        st.caption(f"{sum(r.is_correct for r in results)} / {len(results)} correct")
        if not session.is_processing and session.current_question is None and not session.last_error:
            with st.spinner("Preparing your interview…"):
                run_async(session.complete_mcq_screening(results))
            st.rerun()
        _show_last_error()
        if st.button("🔄 Retry starting the interview", type="primary", disabled=session.is_processing):
            run_async(session.complete_mcq_screening(results))
            st.rerun()
        return

    st_autorefresh(interval=1000, key=f"refresh_mcq_{quiz.index}")

    mcq = quiz.current
    top = st.columns([3, 1])
    with top[0]:
        st.progress((quiz.index + 1) / quiz.total, text=f"Question {quiz.index + 1} of {quiz.total}")
    with top[1]:
        countdown_badge(quiz.time_left(), warn_below=10)

    st.markdown(f"## {mcq.question}")

    labels = [f"{chr(65 + i)}. {opt}" for i, opt in enumerate(mcq.options)]
    choice = st.radio(
        "Options",
        options=list(range(len(labels))),
        format_func=lambda i: labels[i],
        index=quiz.selected,
        key=f"mcq_choice_{mcq.id}",
        label_visibility="collapsed",
    )
    if choice is not None:
        quiz.select(choice)

    label = "Finish Screening Round" if quiz.is_last else "Next Question"
    if st.button(label, type="primary", use_container_width=True, disabled=not quiz.can_confirm):
        quiz.confirm()
        st.rerun()
    if st.button("Skip Question", use_container_width=True):
        quiz.skip()
        st.rerun()

    st.caption("Skipped questions are recorded as unattempted and do not contribute to your accuracy score.")


# --------------------------
# Interview page
# --------------------------
def render_media(media: MediaCaptureController, question_id: str) -> None:
    section_title("Camera", "📷")

    if media.camera_state == CameraState.OFF and "camera_initialized" not in st.session_state:
        st.session_state.camera_initialized = True
        media.enable_camera()

    if media.camera_live:
        cam_ctx = webrtc_streamer(
            key=f"cam_{media.camera_generation}",
            mode=WebRtcMode.SENDRECV,
            rtc_configuration=RTC_CONFIG,
            media_stream_constraints={"audio": False, "video": True},
            desired_playing_state=True,
            sendback_audio=False,
        )
        media.watch_camera(bool(cam_ctx.state.playing))
    elif media.camera_error is not None:
        st.warning(f"**{media.camera_error.title}**: {media.camera_error.message}")
    else:
        st.caption("Camera standby")

    cam_label = {
        CameraState.LIVE: "🙈 Privacy Mode",
        CameraState.ERROR: "🔄 Retry Camera",
    }.get(media.camera_state, "📷 Restore Camera")
    if st.button(cam_label, use_container_width=True):
        media.toggle_camera()
        st.rerun()

    section_title("Record answer", "⏺️")
    stream = media.recorder_stream
    if media.is_recording and stream is not None:
        webrtc_streamer(
            key=f"rec_{question_id}",
            mode=WebRtcMode.SENDONLY,
            rtc_configuration=RTC_CONFIG,
            media_stream_constraints=stream.constraints,
            desired_playing_state=True,
            video_processor_factory=stream.video_processor_factory,
            audio_processor_factory=stream.audio_processor_factory,
            async_processing=True,
        )
        level = getattr(stream, "audio_level", 0.0)
        st.progress(min(1.0, level * 4), text="🔴 REC")
    if media.recorder_error is not None:
        st.warning(f"**{media.recorder_error.title}**: {media.recorder_error.message}")

    rec_label = "⏹️ Stop Recording" if media.is_recording else "⏺️ Record Video"
    if st.button(rec_label, use_container_width=True, disabled=_session().is_processing):
        if media.is_recording:
            run_async(_session().stop_recording())
        else:
            media.start_recording()
        st.rerun()


def render_stage_path(session: InterviewSession) -> None:
    section_title("Assessment path", "🧭")
    marks = {"active": "🔵", "completed": "✅", "pending": "⚪"}
    for i, (stage, status) in enumerate(session.stage_progress(), start=1):
        st.markdown(f"{marks[status]} **{i}. {stage.value}**")


def render_coach(session: InterviewSession) -> None:
    with st.expander("⚡ AI Coach", expanded=session.coach_advice is not None):
        st.caption("Struggling with the current question? Get a nudge or a rephrase.")
        if st.button("Get Guidance", use_container_width=True):
            with st.spinner("Thinking…"):
                run_async(session.request_coach_advice())
            st.rerun()
        advice = session.coach_advice
        if advice is not None:
            st.markdown(f"`{advice.type.value}`")
            st.info(f"“{advice.advice}”")


def render_interview() -> None:
    session = _session()
    perf = session.performance
    question = session.current_question

    if question is None:
        # interview finished but the report call failed
        st.title("🏁 Interview complete")
        _show_last_error()
        if st.button("🔄 Retry final report", type="primary", disabled=session.is_processing):
            with st.spinner("Generating final report…"):
                run_async(session.retry_report())
            st.rerun()
        return

    draft_key = f"draft_{question.id}"

    if session.poll_answer_timeout():
        with st.spinner("Time's up, submitting…"):
            run_async(session.submit_draft(st.session_state.get(draft_key, ""), timed_out=True))
        st.rerun()

    st_autorefresh(interval=1000, key=f"refresh_q_{question.id}")

    left, center, right = st.columns([0.9, 2.2, 1], gap="large")

    with left:
        if session.media is not None:
            render_media(session.media, question.id)
        render_stage_path(session)

    with center:
        top = st.columns([1, 1, 1])
        with top[0]:
            pill("Round", question.stage.value)
        with top[1]:
            pill("Level", question.difficulty.value)
        with top[2]:
            countdown_badge(session.answer_time_left(), warn_below=30)

        st.markdown(f"## {question.text}")

        text = st.text_area(
            "Your answer",
            key=draft_key,
            height=260,
            placeholder="Outline your thoughts here...",
            disabled=session.is_processing or session.answer_time_left() == 0,
        )
        st.caption(f"{len(text.split())} words | answered so far: {perf.completed_questions}")

        _show_last_error()

        recording = session.media is not None and session.media.is_recording
        timed_out = session.answer_time_left() == 0
        can_submit = bool(text.strip()) or recording or timed_out
        label = "Retry Submission →" if timed_out else "Finish Round →"
        if st.button(label, type="primary", use_container_width=True,
                     disabled=session.is_processing or not can_submit):
            with st.spinner("Evaluating…"):
                run_async(session.submit_draft(text, timed_out=timed_out))
            st.rerun()

    with right:
        render_coach(session)


# --------------------------
# Report page
# --------------------------
def render_report() -> None:
    session = _session()
    report = session.report
    perf = session.performance

    st.title("🏁 Interview Performance")
    st.caption("Comprehensive evaluation based on resume, screening, and adaptive interview.")

    c1, c2 = st.columns([1, 2], gap="large")
    with c1:
        st.markdown(
            f"""
            <div style="padding:18px;border-radius:20px;background:rgba(0,0,0,0.2);
            border:1px solid rgba(255,255,255,0.12);">
                <div style="font-size:46px;font-weight:800;line-height:1;">
                    {int(round(report.overall_score))} / 100
                </div>
                <div style="opacity:0.8;margin-top:6px;">Weighted score</div>
            </div>
            """,
            unsafe_allow_html=True,
        )
    with c2:
        pill("Hiring Status", report.readiness.value)
        st.markdown(f"### “{report.hiring_indicator}”")

    st.divider()

    section_title("Section scores", "📊")
    st.bar_chart(report.section_scores.as_dict())

    cols = st.columns(3, gap="large")
    for col, (title, items) in zip(
        cols,
        [("Strengths", report.strengths), ("Weak areas", report.weaknesses), ("Suggestions", report.suggestions)],
    ):
        with col:
            section_title(title)
            for item in items:
                st.markdown(f"- {item}")

    if perf.skills_analysis is not None:
        st.divider()
        section_title("Resume skill mapping", "🧾")
        st.bar_chart({m.skill: m.proficiency for m in perf.skills_analysis.mapping})

    st.divider()
    section_title("Transcript", "🧾")
    for i, h in enumerate(perf.history, start=1):
        with st.expander(f"Round {i} ({h.question.stage.value}): {h.question.text}", expanded=(i == 1)):
            st.markdown(f"**Your answer:** {h.answer.text}")
            st.markdown(f"**Score:** {h.answer.score}/10")
            st.markdown(f"**Feedback:** {h.answer.feedback or ''}")

    st.divider()
    section_title("Export", "⬇️")
    st.download_button(
        "Download transcript",
        data=render_transcript(report, perf.history),
        file_name="interview-transcript.txt",
        mime="text/plain",
    )
    for round_no, filename, mime, data in clip_downloads(perf.history):
        st.download_button(f"Download round {round_no} recording", data=data, file_name=filename, mime=mime)

    if st.button("Start a new assessment", type="primary"):
        _reset_all()
        st.rerun()


# --------------------------
# Router
# --------------------------
view = select_view(_session())
if view == View.SETUP:
    render_setup()
elif view == View.MCQ:
    render_mcq()
elif view == View.INTERVIEW:
    render_interview()
elif view == View.REPORT:
    render_report()
