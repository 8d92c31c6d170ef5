from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv
from openai import AsyncOpenAI


def ensure_env_loaded() -> None:

    # Load .env early
    project_root = Path(__file__).resolve().parent.parent  # repo root
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
    else:
        load_dotenv(override=False)


# Load env first so settings reads correct model names
ensure_env_loaded()


# Used when the evaluator omits a usable timeLimit for a question
STAGE_TIME_LIMITS: Dict[str, int] = {
    "INTRODUCTION": 90,
    "TECHNICAL": 150,
    "BEHAVIORAL": 120,
    "SCENARIO": 180,
}


@dataclass(frozen=True)
class Settings:
    model: str
    report_model: str
    request_timeout: float
    mcq_time_limit: int
    mcq_count: int
    log_level: str
    roles: List[str]


def _read_roles() -> List[str]:
    return [
        "Software Developer",
        "Data Analyst",
        "Cybersecurity Analyst",
        "Product Manager",
        "Cloud Engineer",
    ]


settings = Settings(
    model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    report_model=os.getenv("OPENAI_REPORT_MODEL", "gpt-4o"),
    request_timeout=float(os.getenv("GATEWAY_TIMEOUT", "60")),
    mcq_time_limit=int(os.getenv("MCQ_TIME_LIMIT", "45")),
    mcq_count=int(os.getenv("MCQ_COUNT", "5")),
    log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    roles=_read_roles(),
)


def setup_logging(level: str = settings.log_level) -> logging.Logger:
    """Configure root logging once for the app process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # SDK request logs are noisy at INFO
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger("interview_sim")


def get_openai_client() -> AsyncOpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY not found. Put it in a .env file at the repo root:\n"
            "OPENAI_API_KEY=sk-...\n"
        )
    return AsyncOpenAI(api_key=api_key)
