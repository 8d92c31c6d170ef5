# interview_sim/export.py
"""Downloadable artifacts for the report screen: the transcript and recorded clips."""

from __future__ import annotations

import base64
import binascii
from typing import List, Optional, Tuple

from interview_sim.models import FinalReport, HistoryEntry

SEPARATOR = "-" * 43

_EXTENSIONS = {
    "video/webm": "webm",
    "audio/webm": "webm",
    "video/mp4": "mp4",
    "audio/wav": "wav",
}


def _fmt(value) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_transcript(report: FinalReport, history: List[HistoryEntry]) -> str:
    header = f"INTERVIEW REPORT: {report.readiness.value}\nOverall Score: {_fmt(report.overall_score)}\n\n"
    rounds = []
    for i, h in enumerate(history, start=1):
        rounds.append(
            f"ROUND {i} ({h.question.stage.value})\n"
            f"Question: {h.question.text}\n"
            f"Answer: {h.answer.text}\n"
            f"Score: {_fmt(h.answer.score)}/10\n"
            f"Feedback: {h.answer.feedback or ''}\n"
            f"{SEPARATOR}\n"
        )
    return header + "\n".join(rounds)


def decode_data_uri(data_uri: str) -> Optional[Tuple[str, bytes]]:
    """Split a base64 data URI into (mime type, bytes); None if it is not one."""
    if not data_uri or not data_uri.startswith("data:") or "," not in data_uri:
        return None
    meta, payload = data_uri[5:].split(",", 1)
    if not meta.endswith(";base64"):
        return None
    mime = meta[: -len(";base64")] or "application/octet-stream"
    try:
        return mime, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def clip_downloads(history: List[HistoryEntry]) -> List[Tuple[int, str, str, bytes]]:
    """(round number, file name, mime type, bytes) for every round that has a recording."""
    out = []
    for i, h in enumerate(history, start=1):
        decoded = decode_data_uri(h.answer.media_data or "")
        if decoded is None:
            continue
        mime, data = decoded
        ext = _EXTENSIONS.get(mime.split(";")[0], "bin")
        out.append((i, f"round-{i}.{ext}", mime, data))
    return out
