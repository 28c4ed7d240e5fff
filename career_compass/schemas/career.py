"""Career record schema: one occupation of the corpus with its four embedding vectors."""

from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

EMBEDDING_FIELDS = ("task", "narrative", "skills", "combined")


class CareerRecord(BaseModel):
    """Immutable corpus entry. Vectors are read-only float32 arrays of the corpus dimensionality."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    slug: str = Field(..., min_length=1, description="Unique, stable career identifier")
    title: str = Field(..., description="Career title")
    category: str = Field(default="", description="Career category")
    description: str = Field(default="", description="Short career description")
    tasks: List[str] = Field(default_factory=list, description="Day-to-day tasks")
    technology_skills: List[str] = Field(default_factory=list, description="Tools and technology skills")
    abilities: List[str] = Field(default_factory=list, description="Core abilities")
    inside_look: Optional[str] = Field(default=None, description="Narrative of work culture and environment")
    median_pay: Optional[float] = Field(default=None, description="Median annual salary (display only)")
    ai_resilience: str = Field(default="Unknown", description="AI-resilience label (display only)")
    job_zone: Optional[int] = Field(default=None, description="O*NET job-zone level (display only)")
    typical_education: str = Field(default="", description="Typical entry education")

    task: np.ndarray = Field(..., repr=False)
    narrative: np.ndarray = Field(..., repr=False)
    skills: np.ndarray = Field(..., repr=False)
    combined: np.ndarray = Field(..., repr=False)

    def vector(self, field: str) -> np.ndarray:
        """Return one of the four embedding vectors by field name."""
        if field not in EMBEDDING_FIELDS:
            raise KeyError(f"unknown embedding field: {field}")
        return getattr(self, field)
