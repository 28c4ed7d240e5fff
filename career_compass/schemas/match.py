"""Match pipeline output schemas: candidates, ranked matches, run metadata and responses."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serialized with camelCase keys for callers (``model_dump(by_alias=True)``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Candidate(_CamelModel):
    """Vector-search hit; lists of candidates are ordered by similarity, descending."""

    slug: str
    similarity_score: float = Field(..., description="Weighted multi-field cosine similarity")
    task_similarity: float = 0.0
    narrative_similarity: float = 0.0
    skills_similarity: float = 0.0


class RankedMatch(_CamelModel):
    """LLM-scored career recommendation."""

    slug: str
    match_score: int = Field(..., ge=0, le=100)
    rationale: str = Field(..., min_length=1)
    title: str = ""
    category: str = ""
    median_pay: Optional[float] = None
    ai_resilience: str = "Unknown"
    job_zone: Optional[int] = None
    typical_education: str = ""
    skills_gap: List[str] = Field(default_factory=list)
    transition_timeline: str = ""


class ProfileSummary(_CamelModel):
    skills_count: int = 0
    experience_years: float = 0.0
    education_level: str = ""


class PipelineMetadata(_CamelModel):
    """Per-run observability data; never persisted."""

    total_candidates: int = 0
    evaluated_count: int = 0
    final_match_count: int = 0
    failed_evaluations: int = 0
    timings: Dict[str, float] = Field(default_factory=dict, description="Stage name -> milliseconds")
    user_profile: Optional[ProfileSummary] = None


class MatchResult(_CamelModel):
    matches: List[RankedMatch] = Field(default_factory=list)
    metadata: PipelineMetadata = Field(default_factory=PipelineMetadata)

    def to_response(self) -> Dict[str, Any]:
        """Caller contract success body."""
        body = self.model_dump(by_alias=True)
        return {"success": True, **body}
