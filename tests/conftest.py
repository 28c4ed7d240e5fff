"""Shared fixtures: a fake async OpenAI client and small synthetic corpus artifacts."""

from __future__ import annotations

import json
import re
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import openai
import pytest

from career_compass.corpus.career_corpus import CareerCorpus

DIMS = 8
CAREER_TITLE = re.compile(r"^# CAREER: (.+)$", re.MULTILINE)

RESUME_TEXT = (
    "Jane Doe - Senior Backend Engineer\n"
    "5 years of backend engineering experience building Python and Go services on PostgreSQL "
    "and Kubernetes. Led API design and on-call for payments platform. "
    "BS Computer Science, 2019."
)

ANSWERS = {
    "question1": "Keep growing in technology and solve hard problem solving challenges",
    "question2": "Distributed systems, machine learning and technical leadership",
    "question3": "Remote-friendly, collaborative engineering teams with autonomy",
    "question4": "At least $140,000 per year with equity",
    "question5": "Technology, fintech and problem solving heavy industries",
}

EXTRACTED_RESUME = {
    "skills": ["Python", "Go", "PostgreSQL", "Kubernetes", "API design"],
    "job_titles": ["Senior Backend Engineer", "Backend Engineer"],
    "education": {"level": "bachelors", "fields": ["Computer Science"]},
    "industries": ["Technology", "Finance"],
    "years_experience": 5,
    "confidence": 0.9,
}


def api_request(path: str = "/v1/chat/completions") -> httpx.Request:
    return httpx.Request("POST", f"https://api.openai.com{path}")


def rate_limit_error() -> openai.RateLimitError:
    request = api_request()
    return openai.RateLimitError("rate limited", response=httpx.Response(429, request=request), body=None)


def timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=api_request())


def server_error() -> openai.InternalServerError:
    request = api_request()
    return openai.InternalServerError("upstream exploded", response=httpx.Response(500, request=request), body=None)


def unit_axis_vector(i: int, step: float = 0.05) -> List[float]:
    """Vector whose cosine with e0 strictly decreases as i grows."""
    vec = [0.0] * DIMS
    vec[0] = 1.0
    vec[1] = step * i
    return vec


def axis(k: int) -> List[float]:
    vec = [0.0] * DIMS
    vec[k] = 1.0
    return vec


def career_entry(
    i: int,
    task: Optional[List[float]] = None,
    narrative: Optional[List[float]] = None,
    skills: Optional[List[float]] = None,
    combined: Optional[List[float]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    base = unit_axis_vector(i)
    entry = {
        "slug": f"career-{i:02d}",
        "title": f"Career {i:02d}",
        "category": "Technology",
        "description": f"Synthetic career number {i}.",
        "tasks": ["Design services", "Review code"],
        "technology_skills": ["Python", "SQL"],
        "abilities": ["Deductive Reasoning"],
        "median_pay": 100000 + 1000 * i,
        "ai_resilience": "AI-Resilient",
        "job_zone": 4,
        "typical_education": "Bachelor's degree",
        "task_embedding": task if task is not None else base,
        "narrative_embedding": narrative if narrative is not None else base,
        "skills_embedding": skills if skills is not None else base,
        "combined_embedding": combined if combined is not None else base,
    }
    entry.update(extra)
    return entry


def write_corpus(path: Path, entries: List[Dict[str, Any]], dimensions: Optional[int] = DIMS) -> Path:
    metadata: Dict[str, Any] = {
        "model": "text-embedding-3-small",
        "generated_at": "2026-01-04T00:00:00Z",
        "total_careers": len(entries),
        "weights": {"task": 0.5, "narrative": 0.3, "skills": 0.2},
    }
    if dimensions is not None:
        metadata["dimensions"] = dimensions
    path.write_text(json.dumps({"metadata": metadata, "careers": entries}), encoding="utf-8")
    return path


@pytest.fixture
def corpus_path(tmp_path: Path) -> Path:
    """60 careers whose similarity to the e0 query decreases with their index."""
    return write_corpus(tmp_path / "career-corpus.json", [career_entry(i) for i in range(60)])


@pytest.fixture
def corpus(corpus_path: Path) -> CareerCorpus:
    return CareerCorpus.load(corpus_path)


class FakeChatCompletions:
    def __init__(self, handler: Callable[[Dict[str, Any]], Optional[str]]) -> None:
        self._handler = handler
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        content = self._handler(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeEmbeddings:
    def __init__(self, handler: Callable[[List[str]], List[List[float]]]) -> None:
        self._handler = handler
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        vectors = self._handler(list(kwargs["input"]))
        return SimpleNamespace(data=[SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)])


class FakeOpenAI:
    """Duck-typed stand-in for openai.AsyncOpenAI (chat.completions + embeddings)."""

    def __init__(
        self,
        chat_handler: Callable[[Dict[str, Any]], Optional[str]],
        embed_handler: Optional[Callable[[List[str]], List[List[float]]]] = None,
    ) -> None:
        self.chat = SimpleNamespace(completions=FakeChatCompletions(chat_handler))
        self.embeddings = FakeEmbeddings(embed_handler or (lambda texts: [axis(0) for _ in texts]))

    @property
    def chat_calls(self) -> List[Dict[str, Any]]:
        return self.chat.completions.calls

    async def close(self) -> None:
        return None


def is_extraction_call(kwargs: Dict[str, Any]) -> bool:
    return "resume analyzer" in kwargs["messages"][0]["content"]


def career_title_of(kwargs: Dict[str, Any]) -> str:
    match = CAREER_TITLE.search(kwargs["messages"][1]["content"])
    assert match, "ranking prompt must name the career"
    return match.group(1).strip()


def scoring_json(score: int, reasoning: str = "Your backend experience maps directly to this role.") -> str:
    return json.dumps(
        {
            "match_score": score,
            "reasoning": reasoning,
            "skills_gap": ["Terraform", "Spark", "Go concurrency"],
            "transition_timeline": "6-12 months",
            "disqualifying_factors": None,
        }
    )


def make_chat_handler(
    scores: Callable[[str], Any],
    extraction: Any = None,
) -> Callable[[Dict[str, Any]], Optional[str]]:
    """
    Route extraction and ranking calls. ``scores(title)`` returns an int score, a raw string,
    or an exception instance to raise for that career.
    """

    def handler(kwargs: Dict[str, Any]) -> Optional[str]:
        if is_extraction_call(kwargs):
            value = EXTRACTED_RESUME if extraction is None else extraction
            if isinstance(value, BaseException):
                raise value
            return value if isinstance(value, str) else json.dumps(value)
        value = scores(career_title_of(kwargs))
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, str):
            return value
        return scoring_json(value)

    return handler


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeOpenAI]:
    return FakeOpenAI
