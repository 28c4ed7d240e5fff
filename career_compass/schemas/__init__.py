"""Schema exports."""

from .career import EMBEDDING_FIELDS, CareerRecord
from .match import Candidate, MatchResult, PipelineMetadata, ProfileSummary, RankedMatch
from .profile import (
    Education,
    EducationLevel,
    MatchRequest,
    ParsedResume,
    PreferenceAnswers,
    UserProfile,
    normalize_education_level,
)

__all__ = [
    "EMBEDDING_FIELDS",
    "CareerRecord",
    "Candidate",
    "RankedMatch",
    "ProfileSummary",
    "PipelineMetadata",
    "MatchResult",
    "Education",
    "EducationLevel",
    "ParsedResume",
    "PreferenceAnswers",
    "UserProfile",
    "MatchRequest",
    "normalize_education_level",
]
