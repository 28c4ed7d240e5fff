"""LLM re-ranking of search candidates with sequential admission control.

Candidates are scored one at a time in similarity order. The loop stops as soon as the
accepted quota is filled, so LLM spend is bounded by how far down the list we have to go.
This is not "score everything, keep the best": a higher-scoring career below the point
where the quota filled is never evaluated.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import openai
from pydantic import BaseModel, Field, ValidationError, field_validator

from career_compass.config import (
    ACCEPTANCE_THRESHOLD,
    ACCEPTED_QUOTA,
    MODEL_NAME,
    PREFERENCE_QUESTIONS,
    RANKING_TIMEOUT_SECONDS,
)
from career_compass.schemas.career import CareerRecord
from career_compass.schemas.match import Candidate, RankedMatch
from career_compass.schemas.profile import UserProfile
from career_compass.utils.helpers import join_or, parse_llm_json
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)

RANKING_SYSTEM_PROMPT = (
    "You are an expert career counselor providing personalized career matching analysis. "
    "Respond only with valid JSON."
)

RANKING_RUBRIC = """# EVALUATION

Rate 0-100 considering:
1. Skills transferability (40%): Do the user's skills translate to this career?
2. Goal alignment (25%): Does this career fulfill their stated goals?
3. Environment fit (15%): Does the work style match their preferences?
4. Financial viability (10%): Does it meet salary expectations?
5. Transition feasibility (10%): Is the education/time realistic for their situation?

Rules:
- match_score < 60 if salary is significantly below expectations
- match_score < 50 if the education gap is very large or skills are completely unrelated
- Boost 5-10 points for AI-resilient or growing careers; reduce 5-10 for high disruption risk
- skills_gap: exactly 3 concrete, learnable skills (e.g. "SQL databases", not "communication")
- reasoning: 2-3 sentences, personal and specific, citing the user's own goals
- transition_timeline: "6-12 months", "2-4 years", "4-6 years" or "6+ years"

Respond with valid JSON:
{
  "match_score": 85,
  "reasoning": "string",
  "skills_gap": ["string", "string", "string"],
  "transition_timeline": "string",
  "disqualifying_factors": null
}"""


class RankStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class RankOutcome:
    """Result of scoring one candidate. FAILED counts as a rejection for admission purposes."""

    slug: str
    status: RankStatus
    match: Optional[RankedMatch] = None
    score: Optional[int] = None
    reason: str = ""


@dataclass
class AdmissionResult:
    accepted: List[RankedMatch] = field(default_factory=list)
    evaluated: int = 0
    failed: int = 0


class ScoringResponse(BaseModel):
    """Schema the scoring LLM must return; anything else is malformed output."""

    match_score: int = Field(..., ge=0, le=100)
    reasoning: str = Field(..., min_length=1)
    skills_gap: List[str] = Field(default_factory=list)
    transition_timeline: str = ""
    disqualifying_factors: Optional[Any] = None

    @field_validator("reasoning", mode="before")
    @classmethod
    def _strip_reasoning(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("skills_gap", mode="before")
    @classmethod
    def _coerce_gap(cls, v: object) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(s).strip() for s in v if s is not None and str(s).strip()]

    @field_validator("transition_timeline", mode="before")
    @classmethod
    def _coerce_timeline(cls, v: object) -> str:
        return "" if v is None else str(v)


def _money(value: Optional[float]) -> str:
    return f"${value:,.0f}/year" if value else "Unknown"


def build_ranking_prompt(career: CareerRecord, profile: UserProfile) -> str:
    """User profile + full career description + evaluation rubric."""
    resume = profile.resume
    answers = profile.answers
    education = resume.education.level.value
    if resume.education.fields:
        education += f" ({', '.join(resume.education.fields)})"
    goal_lines = "\n".join(
        f"{i}. {q['label']}: {getattr(answers, key)}"
        for i, (key, q) in enumerate(PREFERENCE_QUESTIONS.items(), start=1)
    )
    tasks = "\n".join(f"{i}. {t}" for i, t in enumerate(career.tasks[:8], start=1)) or "- No task data available"
    return f"""Rate this career match for the user on a 0-100 scale.

# USER PROFILE

## Resume
- Skills: {join_or(resume.skills, 'None listed')}
- Experience: {resume.experience_years:g} years
- Education: {education}
- Previous Roles: {join_or(resume.job_titles, 'None listed')}
- Industries: {join_or(resume.industries, 'None listed')}

## Career Goals
{goal_lines}

---

# CAREER: {career.title}

Category: {career.category or 'Unknown'}
Median Salary: {_money(career.median_pay)}

Description: {career.description or 'No description available'}

Key Tasks:
{tasks}

Required Skills: {join_or(career.technology_skills, 'General skills')}
Core Abilities: {join_or(career.abilities[:5], 'Various abilities')}
Entry Education: {career.typical_education or 'Unknown'}
Job Zone: {career.job_zone if career.job_zone is not None else 'Unknown'}
AI Resilience: {career.ai_resilience}

Work Reality: {(career.inside_look or 'No detailed work environment data available')[:800]}

---

{RANKING_RUBRIC}"""


def _to_match(career: CareerRecord, scored: ScoringResponse) -> RankedMatch:
    return RankedMatch(
        slug=career.slug,
        match_score=scored.match_score,
        rationale=scored.reasoning,
        title=career.title,
        category=career.category,
        median_pay=career.median_pay,
        ai_resilience=career.ai_resilience,
        job_zone=career.job_zone,
        typical_education=career.typical_education,
        skills_gap=scored.skills_gap,
        transition_timeline=scored.transition_timeline,
    )


async def score_career(
    client: openai.AsyncOpenAI,
    career: CareerRecord,
    profile: UserProfile,
    threshold: int = ACCEPTANCE_THRESHOLD,
    model: str = MODEL_NAME,
    timeout: float = RANKING_TIMEOUT_SECONDS,
) -> RankOutcome:
    """
    Score one career. Never raises for per-candidate problems: timeouts, API errors and
    malformed output come back as FAILED, which the admission loop treats as a rejection.
    """
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": RANKING_SYSTEM_PROMPT},
                    {"role": "user", "content": build_ranking_prompt(career, profile)},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
                max_tokens=600,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Scoring timed out for %s after %ss", career.slug, timeout)
        return RankOutcome(career.slug, RankStatus.FAILED, reason="timeout")
    except openai.OpenAIError as e:
        logger.warning("Scoring call failed for %s: %s", career.slug, e)
        return RankOutcome(career.slug, RankStatus.FAILED, reason=type(e).__name__)
    except Exception as e:
        logger.warning("Scoring call raised %s for %s: %s", type(e).__name__, career.slug, e)
        return RankOutcome(career.slug, RankStatus.FAILED, reason=type(e).__name__)

    try:
        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice and choice.message else None
    except (AttributeError, IndexError, TypeError) as e:
        logger.warning("Scoring response for %s has an unexpected shape: %s", career.slug, e)
        return RankOutcome(career.slug, RankStatus.FAILED, reason="malformed output")
    parsed = parse_llm_json(content if isinstance(content, str) else None)
    if parsed is None:
        logger.warning("Scoring output for %s is not JSON", career.slug)
        return RankOutcome(career.slug, RankStatus.FAILED, reason="malformed output")
    try:
        scored = ScoringResponse(**parsed)
    except ValidationError as e:
        logger.warning("Scoring output for %s failed validation: %s", career.slug, e)
        return RankOutcome(career.slug, RankStatus.FAILED, reason="malformed output")

    if scored.disqualifying_factors:
        return RankOutcome(career.slug, RankStatus.REJECTED, score=scored.match_score, reason="disqualified")
    if scored.match_score < threshold:
        return RankOutcome(career.slug, RankStatus.REJECTED, score=scored.match_score, reason="below threshold")
    return RankOutcome(
        career.slug, RankStatus.ACCEPTED, match=_to_match(career, scored), score=scored.match_score
    )


async def rank_career(
    client: openai.AsyncOpenAI,
    career: CareerRecord,
    profile: UserProfile,
    threshold: int = ACCEPTANCE_THRESHOLD,
) -> Optional[RankedMatch]:
    """RankedMatch if the career scores at or above threshold, else None (rejections are not errors)."""
    outcome = await score_career(client, career, profile, threshold=threshold)
    return outcome.match


async def admit_candidates(
    candidates: Sequence[Candidate],
    evaluate: Callable[[Candidate], Awaitable[RankOutcome]],
    quota: int = ACCEPTED_QUOTA,
) -> AdmissionResult:
    """
    Evaluate candidates strictly in the given order, one awaited call at a time,
    until quota matches are accepted or the list runs out.
    """
    result = AdmissionResult()
    if quota <= 0:
        return result
    for candidate in candidates:
        result.evaluated += 1
        outcome = await evaluate(candidate)
        if outcome.status is RankStatus.FAILED:
            result.failed += 1
        elif outcome.status is RankStatus.ACCEPTED and outcome.match is not None:
            result.accepted.append(outcome.match)
            logger.info(
                "Match #%s: %s (%s%%)", len(result.accepted), outcome.match.title or outcome.slug, outcome.score
            )
        if len(result.accepted) >= quota:
            logger.info("Filled quota of %s matches after evaluating %s careers", quota, result.evaluated)
            break
    return result


def order_matches(matches: Sequence[RankedMatch], quota: int = ACCEPTED_QUOTA) -> List[RankedMatch]:
    """Sort by match score, descending (ties keep evaluation order), truncated to quota."""
    return sorted(matches, key=lambda m: -m.match_score)[:quota]
