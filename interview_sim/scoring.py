# interview_sim/scoring.py
"""
Section scores forwarded to the report call.

All three are on a 0-100 scale. MCQ accuracy divides by the number of
questions actually asked, not a fixed quiz size.
"""

from __future__ import annotations

from typing import List

from interview_sim.models import HistoryEntry, MCQResult, PerformanceState, SectionScores


def mcq_correct_count(results: List[MCQResult]) -> int:
    return sum(1 for r in results if r.is_correct)


def mcq_accuracy(results: List[MCQResult]) -> float:
    if not results:
        return 0.0
    return round(mcq_correct_count(results) / len(results) * 100, 2)


def total_score(history: List[HistoryEntry]) -> float:
    return sum(h.answer.score or 0 for h in history)


def interview_average(history: List[HistoryEntry]) -> float:
    # unscored answers count as 0, matching the running total
    if not history:
        return 0.0
    return round(total_score(history) / len(history) * 10, 2)


def section_scores(performance: PerformanceState) -> SectionScores:
    analysis = performance.skills_analysis
    return SectionScores(
        resume=analysis.score if analysis else 0.0,
        mcq=mcq_accuracy(performance.mcq_results),
        interview=interview_average(performance.history),
    )
