"""Configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env: try package dir then project root
_base = Path(__file__).resolve().parent
for _env_path in (_base / ".env", _base.parent / ".env"):
    if load_dotenv(_env_path):
        break
load_dotenv()  # also allow process env


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# API keys – never hardcode
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
MODEL_NAME: str = os.getenv("MODEL_NAME", "gpt-4o-mini")

# Embeddings: corpus and query vectors must come from the same model
OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSIONS: int = _env_int("EMBEDDING_DIMENSIONS", 1536)

# Corpus artifacts (built offline, loaded read-only)
CORPUS_PATH: str = os.getenv("CORPUS_PATH", str(_base.parent / "data" / "embeddings" / "career-corpus.json"))
CAREERS_PATH: str = os.getenv("CAREERS_PATH", "")

# Per-call timeouts
EXTRACTION_TIMEOUT_SECONDS: float = _env_float("EXTRACTION_TIMEOUT_SECONDS", 30.0)
EMBEDDING_TIMEOUT_SECONDS: float = _env_float("EMBEDDING_TIMEOUT_SECONDS", 20.0)
RANKING_TIMEOUT_SECONDS: float = _env_float("RANKING_TIMEOUT_SECONDS", 20.0)

# Orchestrator retries for extraction/embedding (rate limits, timeouts)
STAGE_MAX_RETRIES: int = _env_int("STAGE_MAX_RETRIES", 1)
STAGE_RETRY_BACKOFF_SECONDS: float = _env_float("STAGE_RETRY_BACKOFF_SECONDS", 1.0)

# Pipeline constants; identical for every request
SEARCH_TOP_K: int = 50
ACCEPTANCE_THRESHOLD: int = 60
ACCEPTED_QUOTA: int = 7
FIELD_WEIGHTS: dict = {"task": 0.5, "narrative": 0.3, "skills": 0.2}

# Input limits
RESUME_MIN_CHARS: int = 50
RESUME_MAX_CHARS: int = 15000
ANSWER_MIN_CHARS: int = 10

# Centralized preference questions (extensible: add new entry per question)
# Prompts, query templates and the UI read from this dict; do not hardcode elsewhere.
PREFERENCE_QUESTIONS: dict = {
    "career_goals": {
        "alias": "question1",
        "label": "Career Goals",
        "prompt": "What are your career goals for the next few years?",
    },
    "skills_to_develop": {
        "alias": "question2",
        "label": "Skills to Develop",
        "prompt": "Which skills would you like to develop?",
    },
    "work_environment": {
        "alias": "question3",
        "label": "Work Environment",
        "prompt": "What kind of work environment do you prefer?",
    },
    "salary_expectations": {
        "alias": "question4",
        "label": "Salary Expectations",
        "prompt": "What are your compensation expectations?",
    },
    "industry_interests": {
        "alias": "question5",
        "label": "Industry Interests",
        "prompt": "Which industries interest you?",
    },
}

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
