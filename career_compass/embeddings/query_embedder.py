"""Query embedder: three intent texts (task, narrative, skills), one batched call."""

import asyncio
from dataclasses import dataclass
from typing import List

import numpy as np
import openai

from career_compass.config import EMBEDDING_TIMEOUT_SECONDS, PREFERENCE_QUESTIONS
from career_compass.embeddings.embedding_service import EmbeddingService
from career_compass.errors import ErrorCode, PipelineError, Stage, StageResult, classify_openai_error
from career_compass.schemas.profile import ParsedResume, PreferenceAnswers
from career_compass.utils.helpers import join_or
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)


def _label(key: str) -> str:
    return PREFERENCE_QUESTIONS[key]["label"]


@dataclass(frozen=True)
class QueryTexts:
    task: str
    narrative: str
    skills: str

    def as_batch(self) -> List[str]:
        return [self.task, self.narrative, self.skills]


@dataclass(frozen=True)
class QueryEmbeddings:
    task: np.ndarray
    narrative: np.ndarray
    skills: np.ndarray


def build_query_texts(resume: ParsedResume, answers: PreferenceAnswers) -> QueryTexts:
    """Template the profile and answers into the per-field query strings."""
    task = "\n".join(
        [
            f"{_label('career_goals')}: {answers.career_goals}",
            f"{_label('industry_interests')}: {answers.industry_interests}",
            f"Previous Experience: {join_or(resume.job_titles, 'Entry level')}",
            f"{_label('skills_to_develop')}: {answers.skills_to_develop}",
        ]
    )
    narrative = "\n".join(
        [
            f"{_label('work_environment')}: {answers.work_environment}",
            f"{_label('career_goals')}: {answers.career_goals}",
            f"{_label('skills_to_develop')}: {answers.skills_to_develop}",
            f"{_label('salary_expectations')}: {answers.salary_expectations}",
        ]
    )
    if resume.skills:
        skills = ", ".join(resume.skills)
    else:
        skills = f"{answers.skills_to_develop}, general professional skills"
    return QueryTexts(task=task, narrative=narrative, skills=skills)


def _failure(message: str) -> StageResult[QueryEmbeddings]:
    return StageResult.failure(PipelineError(ErrorCode.EMBEDDING_FAILED, Stage.EMBEDDING, message))


async def embed_query(
    service: EmbeddingService,
    resume: ParsedResume,
    answers: PreferenceAnswers,
    expected_dimensions: int,
    timeout: float = EMBEDDING_TIMEOUT_SECONDS,
) -> StageResult[QueryEmbeddings]:
    """
    Embed the query texts in a single batched call.
    Vectors must match the corpus dimensionality and be non-zero; there is no fallback.
    """
    texts = build_query_texts(resume, answers).as_batch()
    try:
        vectors = await asyncio.wait_for(service.batch_embed(texts), timeout=timeout)
    except (openai.OpenAIError, asyncio.TimeoutError) as e:
        error = classify_openai_error(e, Stage.EMBEDDING, ErrorCode.EMBEDDING_FAILED)
        logger.error("Query embedding call failed: %s", error.message)
        return StageResult.failure(error)
    except ValueError as e:
        logger.error("Query embedding response invalid: %s", e)
        return _failure(f"embedding response invalid: {e}")
    except Exception as e:
        # Injected services may raise transport errors outside the OpenAI hierarchy
        error = classify_openai_error(e, Stage.EMBEDDING, ErrorCode.EMBEDDING_FAILED)
        logger.error("Query embedding service error (%s): %s", type(e).__name__, error.message)
        return StageResult.failure(error)

    if len(vectors) != len(texts):
        return _failure(f"expected {len(texts)} query vectors, got {len(vectors)}")
    arrays: List[np.ndarray] = []
    for i, vec in enumerate(vectors):
        try:
            arr = np.asarray(vec, dtype=np.float32)
        except (TypeError, ValueError):
            return _failure(f"query vector #{i} is not numeric")
        if arr.ndim != 1 or arr.shape[0] != expected_dimensions:
            return _failure(
                f"query vector #{i} has shape {arr.shape}, corpus expects {expected_dimensions} dimensions"
            )
        if not np.all(np.isfinite(arr)) or float(np.linalg.norm(arr)) == 0.0:
            return _failure(f"query vector #{i} is zero or non-finite")
        arrays.append(arr)

    logger.info("Query embeddings generated: %s vectors x %s dims", len(arrays), expected_dimensions)
    return StageResult.success(
        QueryEmbeddings(task=arrays[0], narrative=arrays[1], skills=arrays[2])
    )
