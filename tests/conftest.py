"""
Shared fixtures: a controllable clock, fake media hardware, and a mocked
chat-completions client.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from interview_sim.media import MediaBackend, MediaStream
from interview_sim.models import (
    MCQ,
    Difficulty,
    ExperienceLevel,
    Question,
    Stage,
    UserContext,
)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeStream(MediaStream):
    def __init__(self, audio, video, on_chunk=None, tail=b""):
        self.audio = audio
        self.video = video
        self.on_chunk = on_chunk
        self.tail = tail
        self.stopped = False

    def stop(self):
        self.stopped = True
        return self.tail


class FakeBackend(MediaBackend):
    """Hands out FakeStreams, or raises `fail_with` when set."""

    def __init__(self, tail=b"webm-tail"):
        self.tail = tail
        self.fail_with = None
        self.streams = []

    def open_stream(self, audio, video, on_chunk=None):
        if self.fail_with is not None:
            raise self.fail_with
        stream = FakeStream(audio, video, on_chunk=on_chunk, tail=self.tail if on_chunk else None)
        self.streams.append(stream)
        return stream


def chat_reply(content):
    """Shape of an openai chat.completions response, as far as the gateway reads it."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_client(*replies):
    """Client whose successive create() calls return (or raise) the given replies."""
    client = MagicMock()
    effects = [r if isinstance(r, BaseException) else chat_reply(r) for r in replies]
    client.chat.completions.create = AsyncMock(side_effect=effects)
    return client


def sent_text(client, call_index=-1):
    """All message text sent on one create() call, joined."""
    messages = client.chat.completions.create.call_args_list[call_index].kwargs["messages"]
    parts = []
    for m in messages:
        content = m["content"]
        if isinstance(content, str):
            parts.append(content)
        else:
            parts.extend(p.get("text", "") for p in content)
    return "\n".join(parts)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def context():
    return UserContext.create(
        role="Software Developer",
        experience=ExperienceLevel.INTERMEDIATE,
        resume="5 years of Python and distributed systems.",
        job_description="Backend engineer, Python, AWS.",
    )


@pytest.fixture
def mcqs():
    return [
        MCQ(id=f"m{i}", question=f"Question {i}?", options=("a", "b", "c", "d"), correct_index=i % 4)
        for i in range(1, 6)
    ]


def make_question(qid="q1", stage=Stage.INTRODUCTION, difficulty=Difficulty.EASY, time_limit=90):
    return Question(
        id=qid,
        text=f"Tell me about {qid}.",
        stage=stage,
        difficulty=difficulty,
        time_limit=time_limit,
    )
