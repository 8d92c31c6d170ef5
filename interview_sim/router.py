# interview_sim/router.py
from __future__ import annotations

from enum import Enum

from interview_sim.session import InterviewSession, Phase


class View(str, Enum):
    SETUP = "setup"
    MCQ = "mcq"
    INTERVIEW = "interview"
    REPORT = "report"


def select_view(session: InterviewSession) -> View:
    """Pick the active screen from session state; never mutates the session."""
    phase = session.phase
    if phase == Phase.MCQ_SCREENING:
        return View.MCQ
    if phase == Phase.ADAPTIVE_INTERVIEW and session.context is not None:
        if session.current_question is not None or session.report_pending:
            return View.INTERVIEW
    if phase == Phase.REPORT and session.report is not None:
        return View.REPORT
    return View.SETUP
