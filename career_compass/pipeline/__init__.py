"""Matching pipeline orchestration and caller contract."""

from career_compass.pipeline.orchestrator import MatchPipeline, error_response

__all__ = ["MatchPipeline", "error_response"]
