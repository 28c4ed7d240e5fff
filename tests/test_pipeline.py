"""End-to-end tests for the matching orchestrator and the caller contract."""

import asyncio
from pathlib import Path
from typing import List

import pytest

from career_compass.corpus.career_corpus import CareerCorpus
from career_compass.embeddings.embedding_service import EmbeddingService
from career_compass.errors import ErrorCode, PipelineError, Stage
from career_compass.pipeline.orchestrator import MatchPipeline

from conftest import (
    ANSWERS,
    EXTRACTED_RESUME,
    RESUME_TEXT,
    FakeOpenAI,
    career_title_of,
    is_extraction_call,
    make_chat_handler,
    rate_limit_error,
    scoring_json,
    server_error,
    timeout_error,
)


def _index_of(title: str) -> int:
    return int(title.split()[1])


def _mixed_scores(title: str) -> int:
    i = _index_of(title)
    return 55 if i % 3 == 0 else 60 + (i * 13 % 40)


def _ranked_titles(client: FakeOpenAI) -> List[str]:
    return [career_title_of(c) for c in client.chat_calls if not is_extraction_call(c)]


def _pipeline(corpus: CareerCorpus, client: FakeOpenAI, **kwargs) -> MatchPipeline:
    kwargs.setdefault("max_retries", 0)
    return MatchPipeline(corpus, client=client, **kwargs)


def test_end_to_end_backend_engineer(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    result = asyncio.run(_pipeline(corpus, client).run_match(RESUME_TEXT, ANSWERS))

    assert len(client.embeddings.calls) == 1
    assert result.metadata.total_candidates == 50
    assert result.metadata.evaluated_count == 11
    assert result.metadata.final_match_count == 7
    assert result.metadata.user_profile.skills_count == len(EXTRACTED_RESUME["skills"])
    assert result.metadata.user_profile.experience_years == 5
    assert [m.match_score for m in result.matches] == [86, 85, 84, 73, 72, 71, 70]
    assert all(m.match_score >= 60 and m.rationale for m in result.matches)
    # ranked strictly in similarity order, stopping once the quota filled
    assert _ranked_titles(client) == [f"Career {i:02d}" for i in range(11)]
    assert set(result.metadata.timings) >= {"extraction", "embedding", "search", "ranking", "total"}


def test_quota_bound_and_descending_order(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(lambda title: 60 + (_index_of(title) * 7 % 41)))
    result = asyncio.run(_pipeline(corpus, client).run_match(RESUME_TEXT, ANSWERS))
    scores = [m.match_score for m in result.matches]
    assert len(scores) == 7
    assert scores == sorted(scores, reverse=True)
    assert result.metadata.evaluated_count == 7


def test_no_accepted_candidates_is_still_success(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(lambda title: 40))
    response = asyncio.run(_pipeline(corpus, client).handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))
    assert response["success"] is True
    assert response["matches"] == []
    assert response["metadata"]["evaluatedCount"] == 50
    assert response["metadata"]["finalMatchCount"] == 0


def test_embedding_failure_aborts_run(corpus: CareerCorpus) -> None:
    def broken(texts):
        raise server_error()

    client = FakeOpenAI(make_chat_handler(_mixed_scores), embed_handler=broken)
    pipeline = _pipeline(corpus, client)

    with pytest.raises(PipelineError) as exc_info:
        asyncio.run(pipeline.run_match(RESUME_TEXT, ANSWERS))
    assert exc_info.value.code is ErrorCode.EMBEDDING_FAILED
    assert exc_info.value.stage is Stage.EMBEDDING
    assert _ranked_titles(client) == []

    response = asyncio.run(pipeline.handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))
    assert response == {
        "success": False,
        "error": {"code": "EMBEDDING_FAILED", "stage": "embedding", "message": exc_info.value.message},
    }
    assert "matches" not in response


def test_single_ranker_timeout_only_rejects_that_candidate(corpus: CareerCorpus) -> None:
    def scores(title: str):
        return timeout_error() if title == "Career 02" else _mixed_scores(title)

    client = FakeOpenAI(make_chat_handler(scores))
    result = asyncio.run(_pipeline(corpus, client).run_match(RESUME_TEXT, ANSWERS))

    assert "career-02" not in {m.slug for m in result.matches}
    assert result.metadata.failed_evaluations == 1
    assert result.metadata.evaluated_count == 12
    assert "Career 03" in _ranked_titles(client)
    assert len(result.matches) == 7


def test_extraction_failure_is_fatal(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores, extraction="not json at all"))
    response = asyncio.run(_pipeline(corpus, client).handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))
    assert response["success"] is False
    assert response["error"]["code"] == "EXTRACTION_FAILED"
    assert len(client.embeddings.calls) == 0


def test_validation_happens_before_any_external_call(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    answers = {**ANSWERS, "question3": "remote"}
    response = asyncio.run(_pipeline(corpus, client).handle({"resumeText": "too short", "answers": answers}))

    assert response["success"] is False
    assert response["error"]["code"] == "INVALID_INPUT"
    assert response["error"]["stage"] == "validation"
    fields = [d["field"] for d in response["error"]["details"]]
    assert any("resumeText" in f or "resume_text" in f for f in fields)
    assert any("question3" in f or "work_environment" in f for f in fields)
    assert client.chat_calls == []
    assert client.embeddings.calls == []


def test_answers_accepted_by_field_name(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    by_name = {
        "career_goals": ANSWERS["question1"],
        "skills_to_develop": ANSWERS["question2"],
        "work_environment": ANSWERS["question3"],
        "salary_expectations": ANSWERS["question4"],
        "industry_interests": ANSWERS["question5"],
    }
    result = asyncio.run(_pipeline(corpus, client).run_match(RESUME_TEXT, by_name))
    assert result.metadata.final_match_count == 7


def test_rate_limit_is_retried_then_succeeds(corpus: CareerCorpus) -> None:
    attempts = {"extraction": 0}
    scoring = make_chat_handler(_mixed_scores)

    def handler(kwargs):
        if is_extraction_call(kwargs):
            attempts["extraction"] += 1
            if attempts["extraction"] == 1:
                raise rate_limit_error()
        return scoring(kwargs)

    client = FakeOpenAI(handler)
    result = asyncio.run(_pipeline(corpus, client, max_retries=1, retry_backoff=0).run_match(RESUME_TEXT, ANSWERS))
    assert attempts["extraction"] == 2
    assert result.metadata.final_match_count == 7


def test_persistent_rate_limit_is_reported(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores, extraction=rate_limit_error()))
    pipeline = _pipeline(corpus, client, max_retries=2, retry_backoff=0)
    response = asyncio.run(pipeline.handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))
    assert response["error"]["code"] == "RATE_LIMITED"
    assert response["error"]["stage"] == "extraction"
    assert len(client.chat_calls) == 3


def test_missing_api_key_is_a_configuration_error(corpus: CareerCorpus) -> None:
    pipeline = MatchPipeline(corpus, api_key="")
    with pytest.raises(PipelineError) as exc_info:
        asyncio.run(pipeline.run_match(RESUME_TEXT, ANSWERS))
    assert exc_info.value.code is ErrorCode.INTERNAL_ERROR
    assert exc_info.value.stage is Stage.CONFIGURATION


def test_response_uses_camel_case_keys(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    response = asyncio.run(_pipeline(corpus, client).handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))
    assert response["success"] is True
    first = response["matches"][0]
    assert {"slug", "matchScore", "rationale", "skillsGap", "medianPay"} <= set(first)
    assert response["metadata"]["totalCandidates"] == 50
    assert response["metadata"]["evaluatedCount"] == 11


def test_handle_rejects_non_object_payload(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    response = asyncio.run(_pipeline(corpus, client).handle(["not", "an", "object"]))
    assert response["success"] is False
    assert response["error"]["code"] == "INVALID_INPUT"


def test_run_match_sync(corpus: CareerCorpus) -> None:
    client = FakeOpenAI(make_chat_handler(lambda title: 90 if title == "Career 04" else 10))
    result = _pipeline(corpus, client).run_match_sync(RESUME_TEXT, ANSWERS)
    assert [m.slug for m in result.matches] == ["career-04"]


def test_scoring_reasoning_is_passed_through(corpus: CareerCorpus) -> None:
    def handler(kwargs):
        if is_extraction_call(kwargs):
            return make_chat_handler(_mixed_scores)(kwargs)
        return scoring_json(88, reasoning="Your API work fits their platform team.")

    client = FakeOpenAI(handler)
    result = asyncio.run(_pipeline(corpus, client).run_match(RESUME_TEXT, ANSWERS))
    assert result.matches[0].rationale == "Your API work fits their platform team."


def test_related_careers(corpus: CareerCorpus) -> None:
    pipeline = _pipeline(corpus, FakeOpenAI(make_chat_handler(_mixed_scores)))
    assert [c.slug for c in pipeline.related_careers("career-00", top_k=3)] == [
        "career-01",
        "career-02",
        "career-03",
    ]


def test_from_artifact_missing_corpus(tmp_path: Path) -> None:
    with pytest.raises(PipelineError) as exc_info:
        MatchPipeline.from_artifact(str(tmp_path / "missing.json"))
    assert exc_info.value.code is ErrorCode.INTERNAL_ERROR
    assert exc_info.value.stage is Stage.CORPUS


def test_generic_error_in_one_scoring_call_only_rejects_that_candidate(corpus: CareerCorpus) -> None:
    def scores(title: str):
        return RuntimeError("connection reset") if title == "Career 02" else _mixed_scores(title)

    client = FakeOpenAI(make_chat_handler(scores))
    response = asyncio.run(_pipeline(corpus, client).handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))

    assert response["success"] is True
    assert len(response["matches"]) == 7
    assert "career-02" not in {m["slug"] for m in response["matches"]}
    assert response["metadata"]["failedEvaluations"] == 1
    assert "Career 03" in _ranked_titles(client)


def test_injected_embedding_service_errors_are_attributed_to_embedding(corpus: CareerCorpus) -> None:
    class DroppedConnection(EmbeddingService):
        async def batch_embed(self, texts):
            raise ConnectionError("connection dropped")

        @property
        def dimension(self) -> int:
            return corpus.dimensions

        @property
        def model(self) -> str:
            return corpus.model

    client = FakeOpenAI(make_chat_handler(_mixed_scores))
    pipeline = _pipeline(corpus, client, embedding_service=DroppedConnection())
    response = asyncio.run(pipeline.handle({"resumeText": RESUME_TEXT, "answers": ANSWERS}))

    assert response["success"] is False
    assert response["error"]["code"] == "EMBEDDING_FAILED"
    assert response["error"]["stage"] == "embedding"
    assert _ranked_titles(client) == []
