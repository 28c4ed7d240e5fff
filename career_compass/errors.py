"""Typed errors and explicit stage results for the matching pipeline."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

import openai

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Error codes exposed to callers."""

    INVALID_INPUT = "INVALID_INPUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class Stage(str, Enum):
    """Pipeline stage a failure is attributed to."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    CORPUS = "corpus"
    EXTRACTION = "extraction"
    EMBEDDING = "embedding"
    SEARCH = "search"
    RANKING = "ranking"
    INTERNAL = "internal"


class PipelineError(Exception):
    """Stage-tagged failure that aborts a matching run."""

    def __init__(
        self,
        code: ErrorCode,
        stage: Stage,
        message: str,
        retryable: bool = False,
        details: Optional[List[dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.stage = stage
        self.message = message
        self.retryable = retryable
        self.details = details or []

    def __repr__(self) -> str:
        return f"PipelineError(code={self.code.value}, stage={self.stage.value}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code.value,
            "stage": self.stage.value,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class CorpusLoadError(Exception):
    """The corpus artifact is missing or malformed; ranking cannot be served."""


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Success value or stage-tagged error returned by every external stage."""

    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PipelineError) -> "StageResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the carried PipelineError."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def classify_openai_error(exc: BaseException, stage: Stage, failure_code: ErrorCode) -> PipelineError:
    """Map an OpenAI SDK (or timeout) exception to a stage-tagged PipelineError."""
    if isinstance(exc, openai.RateLimitError):
        return PipelineError(
            ErrorCode.RATE_LIMITED,
            stage,
            f"{stage.value} service is rate limited; try again shortly",
            retryable=True,
        )
    if isinstance(exc, (openai.APITimeoutError, asyncio.TimeoutError)):
        return PipelineError(failure_code, stage, f"{stage.value} call timed out", retryable=True)
    if isinstance(exc, openai.APIConnectionError):
        return PipelineError(failure_code, stage, f"could not reach {stage.value} service", retryable=True)
    if isinstance(exc, openai.AuthenticationError):
        return PipelineError(
            ErrorCode.INTERNAL_ERROR,
            Stage.CONFIGURATION,
            "OpenAI credentials were rejected; service is misconfigured",
        )
    if isinstance(exc, openai.APIError):
        return PipelineError(failure_code, stage, f"{stage.value} service error: {exc}")
    return PipelineError(failure_code, stage, f"{stage.value} failed: {exc}")
