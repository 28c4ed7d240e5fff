"""LLM-based extraction of a structured resume profile from plain resume text."""

import asyncio
from typing import Any

import openai
from pydantic import ValidationError

from career_compass.config import EXTRACTION_TIMEOUT_SECONDS, MODEL_NAME, RESUME_MAX_CHARS
from career_compass.errors import ErrorCode, PipelineError, Stage, StageResult, classify_openai_error
from career_compass.schemas.profile import ParsedResume
from career_compass.utils.helpers import parse_llm_json
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)

CV_EXTRACTION_SYSTEM_PROMPT = """You are an expert resume analyzer.
Extract structured data from the resume text below.
Return only valid JSON matching this schema (no markdown, no code block):
{
  "skills": ["string"],
  "job_titles": ["string"],
  "education": {
    "level": "high_school" | "some_college" | "associates" | "bachelors" | "masters" | "doctorate" | "professional_degree",
    "fields": ["string"]
  },
  "industries": ["string"],
  "years_experience": 5,
  "confidence": 0.85
}
- skills: specific, concrete skills (e.g. "Python" not "programming"), most relevant first, max 30.
- job_titles: exact titles of previous positions, most recent first.
- education: highest completed level and field(s) of study.
- industries: standard industry names (e.g. "Technology" not "Tech industry").
- years_experience: total professional experience computed from work history dates, or estimated from career progression.
- confidence: 0.0-1.0 based on how much information was available.
If information is missing, use empty arrays or reasonable defaults rather than null."""


def _failure(message: str) -> StageResult[ParsedResume]:
    return StageResult.failure(PipelineError(ErrorCode.EXTRACTION_FAILED, Stage.EXTRACTION, message))


def _to_profile_fields(parsed: dict[str, Any]) -> dict[str, Any]:
    """Map the LLM JSON keys onto ParsedResume fields."""
    return {
        "skills": parsed.get("skills"),
        "job_titles": parsed.get("job_titles"),
        "education": parsed.get("education"),
        "industries": parsed.get("industries"),
        "experience_years": parsed.get("years_experience", parsed.get("experience_years")),
        "confidence": parsed.get("confidence"),
    }


async def extract_profile(
    client: openai.AsyncOpenAI,
    resume_text: str,
    model: str = MODEL_NAME,
    timeout: float = EXTRACTION_TIMEOUT_SECONDS,
) -> StageResult[ParsedResume]:
    """
    One LLM call turning resume text into a ParsedResume.
    Length validation is the caller's job; text past RESUME_MAX_CHARS is truncated.
    Never falls back to an empty profile: every failure comes back as EXTRACTION_FAILED
    (or RATE_LIMITED) so the run can be aborted.
    """
    content = (resume_text or "").strip()[:RESUME_MAX_CHARS]
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": CV_EXTRACTION_SYSTEM_PROMPT},
                    {"role": "user", "content": f"Resume content:\n\n{content}"},
                ],
                response_format={"type": "json_object"},
                temperature=0.1,
            ),
            timeout=timeout,
        )
    except (openai.OpenAIError, asyncio.TimeoutError) as e:
        error = classify_openai_error(e, Stage.EXTRACTION, ErrorCode.EXTRACTION_FAILED)
        logger.error("Resume extraction call failed: %s", error.message)
        return StageResult.failure(error)
    except Exception as e:
        error = classify_openai_error(e, Stage.EXTRACTION, ErrorCode.EXTRACTION_FAILED)
        logger.error("Resume extraction call raised %s: %s", type(e).__name__, error.message)
        return StageResult.failure(error)

    choices = getattr(response, "choices", None)
    choice = choices[0] if choices else None
    if not choice or not getattr(choice, "message", None) or not choice.message.content:
        logger.error("Resume extraction returned an empty response")
        return _failure("resume extraction returned an empty response")
    parsed = parse_llm_json(choice.message.content)
    if parsed is None:
        logger.error("Resume extraction returned unparsable output")
        return _failure("resume extraction returned malformed output")
    try:
        profile = ParsedResume(**_to_profile_fields(parsed))
    except (ValidationError, TypeError, ValueError) as e:
        logger.error("Resume profile validation failed: %s", e)
        return _failure("resume extraction output did not match the profile schema")

    logger.info(
        "Resume extracted: skills=%s titles=%s years=%s education=%s confidence=%.2f",
        len(profile.skills),
        len(profile.job_titles),
        profile.experience_years,
        profile.education.level.value,
        profile.confidence,
    )
    return StageResult.success(profile)
