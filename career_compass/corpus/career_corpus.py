"""Career corpus: immutable, versioned set of career records with precomputed embeddings.

Loaded once per process from the artifact produced by the offline embedding job and
shared read-only by every request. Two layouts are accepted:

* ``{"metadata": {...}, "careers": [{slug, title, ..., task_embedding, ...}, ...]}``,
  where list order is corpus insertion order;
* the legacy ``{"metadata": {...}, "embeddings": {slug: {...}}}`` layout, whose display
  details live in a separate careers file keyed by slug.
"""

from __future__ import annotations

import json
import math
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import ValidationError

from career_compass.config import CAREERS_PATH, CORPUS_PATH
from career_compass.errors import CorpusLoadError
from career_compass.schemas.career import EMBEDDING_FIELDS, CareerRecord
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)


class CareerCorpus:
    """Read-only collection of CareerRecord in insertion order."""

    def __init__(
        self,
        records: Sequence[CareerRecord],
        dimensions: int,
        model: str = "",
        generated_at: Optional[str] = None,
    ) -> None:
        self._records: Tuple[CareerRecord, ...] = tuple(records)
        self._by_slug: Dict[str, CareerRecord] = {r.slug: r for r in self._records}
        self._dimensions = dimensions
        self._model = model
        self._generated_at = generated_at

    @property
    def records(self) -> Tuple[CareerRecord, ...]:
        return self._records

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model(self) -> str:
        return self._model

    @property
    def generated_at(self) -> Optional[str]:
        return self._generated_at

    def get(self, slug: str) -> Optional[CareerRecord]:
        """Return the record for slug, or None if the corpus has no such career."""
        return self._by_slug.get(slug)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CareerRecord]:
        return iter(self._records)

    def __contains__(self, slug: object) -> bool:
        return slug in self._by_slug

    @classmethod
    def load(cls, path: str | Path, careers_path: str | Path | None = None) -> "CareerCorpus":
        """Read and validate a corpus artifact. Raises CorpusLoadError on any defect."""
        data = _read_json(Path(path), "corpus artifact")
        if not isinstance(data, dict):
            raise CorpusLoadError(f"Corpus artifact {path} must be a JSON object")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise CorpusLoadError("Corpus metadata must be a JSON object")

        if isinstance(data.get("careers"), list):
            entries = data["careers"]
        elif isinstance(data.get("embeddings"), dict):
            details = _load_details(careers_path) if careers_path else {}
            entries = [{**details.get(slug, {}), **entry, "slug": entry.get("slug") or slug}
                       for slug, entry in data["embeddings"].items()
                       if isinstance(entry, dict)]
            if len(entries) != len(data["embeddings"]):
                raise CorpusLoadError("Every legacy embeddings entry must be a JSON object")
        else:
            raise CorpusLoadError("Corpus artifact has neither a 'careers' list nor an 'embeddings' map")
        if not entries:
            raise CorpusLoadError("Corpus artifact contains no careers")

        dims = _expected_dimensions(metadata, entries[0])
        records: List[CareerRecord] = []
        seen: set[str] = set()
        for position, entry in enumerate(entries):
            record = _build_record(entry, dims, position)
            if record.slug in seen:
                raise CorpusLoadError(f"Duplicate career slug in corpus: {record.slug}")
            seen.add(record.slug)
            records.append(record)

        corpus = cls(
            records,
            dimensions=dims,
            model=str(metadata.get("model") or ""),
            generated_at=metadata.get("generated_at"),
        )
        logger.info(
            "Loaded career corpus: careers=%s dimensions=%s model=%s generated_at=%s",
            len(corpus),
            dims,
            corpus.model or "?",
            corpus.generated_at or "?",
        )
        return corpus


@lru_cache(maxsize=None)
def _load_cached(path: str, careers_path: str) -> CareerCorpus:
    return CareerCorpus.load(path, careers_path or None)


def load_corpus(path: str | None = None, careers_path: str | None = None) -> CareerCorpus:
    """Load the corpus once per (path, careers_path) for the process lifetime."""
    return _load_cached(str(path or CORPUS_PATH), str(careers_path or CAREERS_PATH or ""))


def _read_json(path: Path, what: str) -> Any:
    if not path.is_file():
        raise CorpusLoadError(
            f"{what.capitalize()} not found: {path}. Regenerate it with the offline embedding job."
        )
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except json.JSONDecodeError as e:
        raise CorpusLoadError(f"{what.capitalize()} {path} is not valid JSON: {e}") from e


def _load_details(careers_path: str | Path) -> Dict[str, dict]:
    """Career display details keyed by slug (list of career objects)."""
    raw = _read_json(Path(careers_path), "careers file")
    if not isinstance(raw, list):
        raise CorpusLoadError(f"Careers file {careers_path} must be a JSON list")
    return {c["slug"]: c for c in raw if isinstance(c, dict) and c.get("slug")}


def _expected_dimensions(metadata: dict, first: dict) -> int:
    declared = metadata.get("dimensions")
    if declared is not None:
        if isinstance(declared, bool) or not isinstance(declared, int) or declared <= 0:
            raise CorpusLoadError(f"Corpus metadata has invalid dimensions: {declared!r}")
        return declared
    task = first.get("task_embedding") if isinstance(first, dict) else None
    if not isinstance(task, list) or not task:
        raise CorpusLoadError("Cannot infer corpus dimensionality from the first career")
    return len(task)


def _as_vector(raw: Any, field: str, slug: str, dims: int) -> np.ndarray:
    if not isinstance(raw, list):
        raise CorpusLoadError(f"Career {slug}: {field}_embedding is missing or not a list")
    if len(raw) != dims:
        raise CorpusLoadError(
            f"Career {slug}: {field}_embedding has {len(raw)} dimensions, expected {dims}"
        )
    try:
        vec = np.asarray(raw, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise CorpusLoadError(f"Career {slug}: {field}_embedding is not numeric") from e
    if vec.ndim != 1 or not np.all(np.isfinite(vec)):
        raise CorpusLoadError(f"Career {slug}: {field}_embedding contains non-finite values")
    vec.setflags(write=False)
    return vec


def _fallback_combined(task: np.ndarray, narrative: np.ndarray, skills: np.ndarray) -> np.ndarray:
    """Normalized mean of the three field vectors, for artifacts without a combined vector."""
    parts = []
    for v in (task, narrative, skills):
        n = float(np.linalg.norm(v))
        parts.append(v / n if n > 0 else v)
    mean = np.mean(parts, axis=0).astype(np.float32)
    norm = float(np.linalg.norm(mean))
    out = mean / norm if norm > 0 else mean
    out.setflags(write=False)
    return out


def _nested(entry: dict, *keys: str) -> Any:
    cur: Any = entry
    for k in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(k)
    return cur


def _display_fields(entry: dict) -> dict:
    """Flat display fields, also reading the nested layout of the O*NET careers file."""
    inside_look = entry.get("inside_look")
    if isinstance(inside_look, dict):
        inside_look = inside_look.get("content")
    median_pay = entry.get("median_pay")
    if median_pay is None:
        median_pay = _nested(entry, "wages", "annual", "median")
    education = entry.get("typical_education")
    if education is None:
        education = _nested(entry, "education", "typical_entry_education")
    if isinstance(median_pay, (int, float)) and not isinstance(median_pay, bool) and not math.isfinite(median_pay):
        median_pay = None
    return {
        "title": entry.get("title") or entry.get("slug"),
        "category": entry.get("category") or "",
        "description": entry.get("description") or "",
        "tasks": entry.get("tasks") or [],
        "technology_skills": entry.get("technology_skills") or [],
        "abilities": entry.get("abilities") or [],
        "inside_look": inside_look or None,
        "median_pay": median_pay,
        "ai_resilience": entry.get("ai_resilience") or "Unknown",
        "job_zone": entry.get("job_zone"),
        "typical_education": education or "",
    }


def _build_record(entry: Any, dims: int, position: int) -> CareerRecord:
    if not isinstance(entry, dict):
        raise CorpusLoadError(f"Corpus entry #{position} is not a JSON object")
    slug = entry.get("slug")
    if not isinstance(slug, str) or not slug.strip():
        raise CorpusLoadError(f"Corpus entry #{position} has no slug")
    vectors = {
        field: _as_vector(entry.get(f"{field}_embedding"), field, slug, dims)
        for field in EMBEDDING_FIELDS
        if field != "combined"
    }
    if entry.get("combined_embedding") is not None:
        vectors["combined"] = _as_vector(entry["combined_embedding"], "combined", slug, dims)
    else:
        vectors["combined"] = _fallback_combined(vectors["task"], vectors["narrative"], vectors["skills"])
    try:
        return CareerRecord(slug=slug, **_display_fields(entry), **vectors)
    except ValidationError as e:
        raise CorpusLoadError(f"Career {slug}: invalid display metadata: {e}") from e
