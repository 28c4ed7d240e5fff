"""User profile schemas: structured resume extraction plus preference answers."""

import re
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from career_compass.config import ANSWER_MIN_CHARS, PREFERENCE_QUESTIONS, RESUME_MAX_CHARS, RESUME_MIN_CHARS
from career_compass.utils.helpers import dedupe_strings

MAX_SKILLS = 30
MAX_JOB_TITLES = 10
MAX_EDUCATION_FIELDS = 5
MAX_INDUSTRIES = 5
MAX_EXPERIENCE_YEARS = 50.0

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


class EducationLevel(str, Enum):
    HIGH_SCHOOL = "high_school"
    SOME_COLLEGE = "some_college"
    ASSOCIATES = "associates"
    BACHELORS = "bachelors"
    MASTERS = "masters"
    DOCTORATE = "doctorate"
    PROFESSIONAL_DEGREE = "professional_degree"


# Checked in order; first hit wins. Padded with spaces so short tokens ("ms ") match whole words.
_EDUCATION_KEYWORDS = (
    (EducationLevel.DOCTORATE, ("doctor", "phd", "ph.d")),
    (EducationLevel.PROFESSIONAL_DEGREE, ("professional", "j.d", "m.d", " jd ", " md ")),
    (EducationLevel.MASTERS, ("master", "mba", "m.s", "m.a", " ms ", " ma ")),
    (EducationLevel.BACHELORS, ("bachelor", "b.s", "b.a", " bs ", " ba ", "undergraduate")),
    (EducationLevel.ASSOCIATES, ("associate", "a.a", "a.s", " aa ", " as ")),
    (EducationLevel.SOME_COLLEGE, ("some college", "college", "certificate", "certification")),
)


def normalize_education_level(value: object) -> EducationLevel:
    """Map free-text education (or an enum value) onto EducationLevel; default high_school."""
    if isinstance(value, EducationLevel):
        return value
    text = str(value or "").strip().lower()
    if not text:
        return EducationLevel.HIGH_SCHOOL
    try:
        return EducationLevel(text)
    except ValueError:
        pass
    padded = f" {text} "
    for level, keywords in _EDUCATION_KEYWORDS:
        if any(k in padded for k in keywords):
            return level
    return EducationLevel.HIGH_SCHOOL


class Education(BaseModel):
    level: EducationLevel = Field(default=EducationLevel.HIGH_SCHOOL, description="Highest completed level")
    fields: List[str] = Field(default_factory=list, description="Fields of study")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> EducationLevel:
        return normalize_education_level(v)

    @field_validator("fields", mode="before")
    @classmethod
    def _clean_fields(cls, v: object) -> List[str]:
        return dedupe_strings(v if isinstance(v, list) else [], MAX_EDUCATION_FIELDS)


class ParsedResume(BaseModel):
    """Structured resume data extracted by the profile extractor LLM."""

    skills: List[str] = Field(default_factory=list, description="Distinct skills, most relevant first")
    job_titles: List[str] = Field(default_factory=list, description="Previous job titles, most recent first")
    education: Education = Field(default_factory=Education)
    industries: List[str] = Field(default_factory=list, description="Industries worked in")
    experience_years: float = Field(default=0.0, description="Total professional experience in years")
    confidence: float = Field(default=0.5, description="Extraction confidence 0..1")

    @field_validator("education", mode="before")
    @classmethod
    def _coerce_education(cls, v: object) -> object:
        # Some models answer with a bare string ("Bachelor's degree")
        if v is None:
            return {}
        if isinstance(v, str):
            return {"level": v}
        return v

    @field_validator("skills", mode="before")
    @classmethod
    def _clean_skills(cls, v: object) -> List[str]:
        return dedupe_strings(v if isinstance(v, list) else [], MAX_SKILLS)

    @field_validator("job_titles", mode="before")
    @classmethod
    def _clean_titles(cls, v: object) -> List[str]:
        return dedupe_strings(v if isinstance(v, list) else [], MAX_JOB_TITLES)

    @field_validator("industries", mode="before")
    @classmethod
    def _clean_industries(cls, v: object) -> List[str]:
        return dedupe_strings(v if isinstance(v, list) else [], MAX_INDUSTRIES)

    @field_validator("experience_years", mode="before")
    @classmethod
    def _clamp_years(cls, v: object) -> float:
        if v is None or isinstance(v, bool):
            return 0.0
        if isinstance(v, str):
            # "5 years", "10+ yrs"
            match = _LEADING_NUMBER.match(v)
            if match is None:
                raise ValueError(f"experience_years is not a number: {v!r}")
            v = match.group(1)
        return min(max(0.0, float(v)), MAX_EXPERIENCE_YEARS)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: object) -> float:
        if v is None or isinstance(v, bool):
            return 0.5
        return min(max(0.0, float(v)), 1.0)


def _answer_field(key: str) -> object:
    q = PREFERENCE_QUESTIONS[key]
    return Field(..., alias=q["alias"], min_length=ANSWER_MIN_CHARS, description=q["label"])


class PreferenceAnswers(BaseModel):
    """Five free-text preference answers; each validated independently."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    career_goals: str = _answer_field("career_goals")
    skills_to_develop: str = _answer_field("skills_to_develop")
    work_environment: str = _answer_field("work_environment")
    salary_expectations: str = _answer_field("salary_expectations")
    industry_interests: str = _answer_field("industry_interests")


class UserProfile(BaseModel):
    """Request-local profile. Both parts are required, so a partial profile cannot exist."""

    resume: ParsedResume
    answers: PreferenceAnswers


class MatchRequest(BaseModel):
    """Caller request: already-extracted resume text plus the five answers."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    resume_text: str = Field(
        ...,
        alias="resumeText",
        min_length=RESUME_MIN_CHARS,
        max_length=RESUME_MAX_CHARS,
        description="Plain resume text",
    )
    answers: PreferenceAnswers
