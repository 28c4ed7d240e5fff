"""FAISS indexes over the career corpus: weighted multi-field cosine similarity search."""

from typing import Dict, List, Mapping, Optional

import faiss
import numpy as np

from career_compass.config import FIELD_WEIGHTS, SEARCH_TOP_K
from career_compass.corpus.career_corpus import CareerCorpus
from career_compass.schemas.match import Candidate
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_FIELDS = ("task", "narrative", "skills")


def _normalize_l2(vectors: np.ndarray) -> np.ndarray:
    """L2-normalize rows so that dot product equals cosine similarity."""
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms = np.where(norms > 0, norms, 1.0)
    return np.ascontiguousarray(vectors.astype(np.float32) / norms)


def _check_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    out = {f: float(weights.get(f, 0.0)) for f in SEARCH_FIELDS}
    if any(w < 0 for w in out.values()):
        raise ValueError(f"field weights must be non-negative: {out}")
    if sum(out.values()) <= 0:
        raise ValueError("at least one field weight must be positive")
    return out


class CareerVectorIndex:
    """
    One FAISS IndexFlatIP per embedding field over L2-normalized vectors (cosine similarity).
    Index position i is corpus record i; records with a zero-norm search vector are masked out.
    The flat index is an exact scan, so results do not depend on an ANN approximation.
    """

    def __init__(self, corpus: CareerCorpus) -> None:
        self._dimension = corpus.dimensions
        self._slugs: List[str] = [r.slug for r in corpus]
        self._positions: Dict[str, int] = {s: i for i, s in enumerate(self._slugs)}
        self._indexes: Dict[str, faiss.IndexFlatIP] = {}
        valid = np.ones(len(self._slugs), dtype=bool)
        for field in SEARCH_FIELDS + ("combined",):
            matrix = np.stack([r.vector(field) for r in corpus]).astype(np.float32)
            nonzero = np.linalg.norm(matrix, axis=1) > 0
            if field in SEARCH_FIELDS:
                valid &= nonzero
            index = faiss.IndexFlatIP(self._dimension)
            index.add(_normalize_l2(matrix))
            self._indexes[field] = index
            if field == "combined":
                self._combined_valid = nonzero
        self._valid = valid
        excluded = int((~valid).sum())
        if excluded:
            logger.warning("Excluding %s careers with zero-norm embeddings from search", excluded)
        logger.info("Built FAISS IndexFlatIP x%s: careers=%s dimension=%s", len(self._indexes), self.size(), self._dimension)

    def size(self) -> int:
        return len(self._slugs)

    def _field_scores(self, field: str, query_vector: np.ndarray) -> np.ndarray:
        """Cosine similarity of query against every record of field, in corpus order."""
        q = np.asarray(query_vector, dtype=np.float32).reshape(1, -1)
        if q.shape[1] != self._dimension:
            raise ValueError(f"{field} query has {q.shape[1]} dimensions, index expects {self._dimension}")
        if not np.all(np.isfinite(q)) or float(np.linalg.norm(q)) == 0.0:
            raise ValueError(f"{field} query vector is zero or non-finite")
        index = self._indexes[field]
        scores, ids = index.search(_normalize_l2(q), index.ntotal)
        out = np.zeros(index.ntotal, dtype=np.float64)
        hit = ids[0] >= 0
        out[ids[0][hit]] = scores[0][hit]
        return out

    def search(
        self,
        task_vector: np.ndarray,
        narrative_vector: np.ndarray,
        skills_vector: np.ndarray,
        top_k: int = SEARCH_TOP_K,
        weights: Optional[Mapping[str, float]] = None,
    ) -> List[Candidate]:
        """
        Weighted sum of per-field cosine similarities (task 0.5, narrative 0.3, skills 0.2 by default).
        Returns at most top_k candidates sorted descending; exact ties keep corpus insertion order.
        """
        w = _check_weights(FIELD_WEIGHTS if weights is None else weights)
        if top_k <= 0 or not self._slugs:
            return []
        sims = {
            "task": self._field_scores("task", task_vector),
            "narrative": self._field_scores("narrative", narrative_vector),
            "skills": self._field_scores("skills", skills_vector),
        }
        combined = w["task"] * sims["task"] + w["narrative"] * sims["narrative"] + w["skills"] * sims["skills"]
        positions = np.flatnonzero(self._valid)
        # Stable sort on the negated score: equal scores stay in insertion order
        order = positions[np.argsort(-combined[positions], kind="stable")][:top_k]
        return [
            Candidate(
                slug=self._slugs[i],
                similarity_score=float(combined[i]),
                task_similarity=float(sims["task"][i]),
                narrative_similarity=float(sims["narrative"][i]),
                skills_similarity=float(sims["skills"][i]),
            )
            for i in order
        ]

    def similar_to(self, slug: str, top_k: int = 10) -> List[Candidate]:
        """Nearest careers to a corpus career by its combined vector, excluding itself."""
        pos = self._positions.get(slug)
        if pos is None:
            raise KeyError(f"unknown career slug: {slug}")
        if top_k <= 0 or not self._combined_valid[pos]:
            return []
        query = self._indexes["combined"].reconstruct(pos)
        scores = self._field_scores("combined", query)
        positions = np.flatnonzero(self._combined_valid)
        positions = positions[positions != pos]
        order = positions[np.argsort(-scores[positions], kind="stable")][:top_k]
        return [Candidate(slug=self._slugs[i], similarity_score=float(scores[i])) for i in order]
