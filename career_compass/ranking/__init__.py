"""Ranking: FAISS vector search and LLM re-ranking with admission control."""

from career_compass.ranking.career_ranker import (
    AdmissionResult,
    RankOutcome,
    RankStatus,
    admit_candidates,
    build_ranking_prompt,
    order_matches,
    rank_career,
    score_career,
)
from career_compass.ranking.vector_index import CareerVectorIndex

__all__ = [
    "CareerVectorIndex",
    "AdmissionResult",
    "RankOutcome",
    "RankStatus",
    "admit_candidates",
    "build_ranking_prompt",
    "order_matches",
    "rank_career",
    "score_career",
]
