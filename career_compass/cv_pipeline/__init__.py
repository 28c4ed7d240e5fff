"""Resume profile extraction (plain text in, ParsedResume out)."""

from career_compass.cv_pipeline.cv_extractor import extract_profile
from career_compass.schemas.profile import ParsedResume

__all__ = ["extract_profile", "ParsedResume"]
