"""Career matching orchestrator: validate -> extract -> embed -> search -> rank -> respond."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar, Union

import httpx
import openai
from pydantic import ValidationError

from career_compass.config import (
    ACCEPTED_QUOTA,
    EXTRACTION_TIMEOUT_SECONDS,
    MODEL_NAME,
    OPENAI_API_KEY,
    OPENAI_EMBEDDING_MODEL,
    SEARCH_TOP_K,
    STAGE_MAX_RETRIES,
    STAGE_RETRY_BACKOFF_SECONDS,
)
from career_compass.corpus.career_corpus import CareerCorpus, load_corpus
from career_compass.cv_pipeline.cv_extractor import extract_profile
from career_compass.embeddings.embedding_service import EmbeddingService, OpenAIEmbeddingService
from career_compass.embeddings.query_embedder import embed_query
from career_compass.errors import CorpusLoadError, ErrorCode, PipelineError, Stage, StageResult
from career_compass.ranking.career_ranker import (
    RankOutcome,
    RankStatus,
    admit_candidates,
    order_matches,
    score_career,
)
from career_compass.ranking.vector_index import CareerVectorIndex
from career_compass.schemas.match import Candidate, MatchResult, PipelineMetadata, ProfileSummary
from career_compass.schemas.profile import MatchRequest, PreferenceAnswers, UserProfile
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _validation_error(e: ValidationError) -> PipelineError:
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in e.errors()
    ]
    summary = "; ".join(f"{d['field']}: {d['message']}" for d in details) or "invalid request"
    return PipelineError(ErrorCode.INVALID_INPUT, Stage.VALIDATION, f"Invalid request: {summary}", details=details)


def error_response(error: PipelineError) -> Dict[str, Any]:
    """Caller contract failure body."""
    return {"success": False, "error": error.to_dict()}


class MatchPipeline:
    """
    Runs one matching request end to end. The corpus and its vector index are built once
    and shared by reference; everything else is request-local.
    """

    def __init__(
        self,
        corpus: CareerCorpus,
        client: Optional[openai.AsyncOpenAI] = None,
        index: Optional[CareerVectorIndex] = None,
        embedding_service: Optional[EmbeddingService] = None,
        api_key: str = OPENAI_API_KEY,
        max_retries: int = STAGE_MAX_RETRIES,
        retry_backoff: float = STAGE_RETRY_BACKOFF_SECONDS,
    ) -> None:
        self._corpus = corpus
        self._index = index or CareerVectorIndex(corpus)
        self._client = client
        self._embedding_service = embedding_service
        self._api_key = api_key
        self._max_retries = max(0, max_retries)
        self._retry_backoff = retry_backoff

    @property
    def corpus(self) -> CareerCorpus:
        return self._corpus

    @classmethod
    def from_artifact(
        cls,
        path: Optional[str] = None,
        careers_path: Optional[str] = None,
        **kwargs: Any,
    ) -> "MatchPipeline":
        """
        Pipeline over the process-wide cached corpus. A missing or malformed artifact
        raises PipelineError(INTERNAL_ERROR, corpus): the process cannot serve matches.
        """
        try:
            corpus = load_corpus(path, careers_path)
        except CorpusLoadError as e:
            logger.error("Career corpus unavailable: %s", e)
            raise PipelineError(ErrorCode.INTERNAL_ERROR, Stage.CORPUS, str(e)) from e
        return cls(corpus, **kwargs)

    def _new_client(self) -> openai.AsyncOpenAI:
        # Retries are owned by the orchestrator, not the SDK
        return openai.AsyncOpenAI(
            api_key=self._api_key,
            timeout=httpx.Timeout(EXTRACTION_TIMEOUT_SECONDS, connect=10.0),
            max_retries=0,
        )

    def _check_configuration(self) -> None:
        if self._client is None and not self._api_key:
            raise PipelineError(
                ErrorCode.INTERNAL_ERROR,
                Stage.CONFIGURATION,
                "OPENAI_API_KEY is not set; matching service is misconfigured",
            )
        if self._embedding_service is None and self._corpus.model and self._corpus.model != OPENAI_EMBEDDING_MODEL:
            raise PipelineError(
                ErrorCode.INTERNAL_ERROR,
                Stage.CONFIGURATION,
                f"Corpus was embedded with {self._corpus.model} but queries would use {OPENAI_EMBEDDING_MODEL}",
            )

    async def _with_retry(self, stage: Stage, call: Callable[[], Awaitable[StageResult[T]]]) -> T:
        """Run a stage; retry only retryable failures (rate limit, timeout, connection)."""
        attempt = 0
        while True:
            result = await call()
            error = result.error
            if error is None or not error.retryable or attempt >= self._max_retries:
                return result.unwrap()
            attempt += 1
            delay = self._retry_backoff * attempt
            logger.warning(
                "%s failed (%s), retrying in %.1fs (attempt %s/%s)",
                stage.value,
                error.code.value,
                delay,
                attempt,
                self._max_retries,
            )
            await asyncio.sleep(delay)

    @staticmethod
    def validate(resume_text: Any, answers: Union[Mapping[str, Any], PreferenceAnswers, None]) -> MatchRequest:
        """Validate caller input before any external call; raises INVALID_INPUT."""
        if isinstance(answers, PreferenceAnswers):
            answers = answers.model_dump()
        try:
            return MatchRequest.model_validate({"resumeText": resume_text, "answers": answers})
        except ValidationError as e:
            raise _validation_error(e) from e

    async def run_match(
        self,
        resume_text: str,
        answers: Union[Mapping[str, Any], PreferenceAnswers],
    ) -> MatchResult:
        """
        Full pipeline for one request. Any stage failure raises a stage-tagged PipelineError;
        there is no degraded result. Per-candidate scoring failures only reject that candidate.
        """
        timings: Dict[str, float] = {}
        started = time.perf_counter()
        logger.info("Career match request started")

        request = self.validate(resume_text, answers)
        self._check_configuration()
        client = self._client or self._new_client()
        try:
            t0 = time.perf_counter()
            resume = await self._with_retry(Stage.EXTRACTION, lambda: extract_profile(client, request.resume_text))
            timings["extraction"] = _ms_since(t0)
            profile = UserProfile(resume=resume, answers=request.answers)

            t0 = time.perf_counter()
            service = self._embedding_service or OpenAIEmbeddingService(client, dimensions=self._corpus.dimensions)
            query = await self._with_retry(
                Stage.EMBEDDING,
                lambda: embed_query(service, profile.resume, profile.answers, self._corpus.dimensions),
            )
            timings["embedding"] = _ms_since(t0)

            t0 = time.perf_counter()
            try:
                candidates = self._index.search(query.task, query.narrative, query.skills, top_k=SEARCH_TOP_K)
            except ValueError as e:
                raise PipelineError(ErrorCode.INTERNAL_ERROR, Stage.SEARCH, f"vector search failed: {e}") from e
            timings["search"] = _ms_since(t0)
            logger.info("Vector search returned %s candidates", len(candidates))

            async def evaluate(candidate: Candidate) -> RankOutcome:
                career = self._corpus.get(candidate.slug)
                if career is None:
                    logger.warning("Candidate %s is not in the corpus; skipping", candidate.slug)
                    return RankOutcome(candidate.slug, RankStatus.FAILED, reason="unknown slug")
                return await score_career(client, career, profile, model=MODEL_NAME)

            t0 = time.perf_counter()
            admission = await admit_candidates(candidates, evaluate, quota=ACCEPTED_QUOTA)
            timings["ranking"] = _ms_since(t0)
        finally:
            if client is not self._client:
                await client.close()

        matches = order_matches(admission.accepted, quota=ACCEPTED_QUOTA)
        timings["total"] = _ms_since(started)
        metadata = PipelineMetadata(
            total_candidates=len(candidates),
            evaluated_count=admission.evaluated,
            final_match_count=len(matches),
            failed_evaluations=admission.failed,
            timings=timings,
            user_profile=ProfileSummary(
                skills_count=len(resume.skills),
                experience_years=resume.experience_years,
                education_level=resume.education.level.value,
            ),
        )
        logger.info(
            "Returning %s career recommendations (evaluated=%s failed=%s total_ms=%.0f)",
            len(matches),
            admission.evaluated,
            admission.failed,
            timings["total"],
        )
        return MatchResult(matches=matches, metadata=metadata)

    async def handle(self, payload: Any) -> Dict[str, Any]:
        """
        Caller contract: ``{resumeText, answers}`` in, ``{success: true, matches, metadata}``
        or ``{success: false, error: {code, stage, message}}`` out. Never raises.
        """
        if not isinstance(payload, Mapping):
            payload = {}
        try:
            result = await self.run_match(payload.get("resumeText"), payload.get("answers"))
        except PipelineError as e:
            log = logger.warning if e.code is ErrorCode.INVALID_INPUT else logger.error
            log("Match request failed at %s: %s %s", e.stage.value, e.code.value, e.message)
            return error_response(e)
        except Exception as e:
            logger.exception("Unexpected error in match pipeline: %s", e)
            return error_response(
                PipelineError(ErrorCode.INTERNAL_ERROR, Stage.INTERNAL, "Unexpected internal error")
            )
        return result.to_response()

    def run_match_sync(
        self,
        resume_text: str,
        answers: Union[Mapping[str, Any], PreferenceAnswers],
    ) -> MatchResult:
        """
        Run the pipeline from a sync context (e.g. Streamlit).
        Uses a fresh event loop per call, like the rest of the app.
        """
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.run_match(resume_text, answers))
        finally:
            loop.close()

    def related_careers(self, slug: str, top_k: int = 5) -> List[Candidate]:
        """Careers closest to slug by combined embedding (no LLM call)."""
        return self._index.similar_to(slug, top_k=top_k)


def _ms_since(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000.0, 1)
