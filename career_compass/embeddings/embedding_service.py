"""Embedding service: batch_embed via the OpenAI embeddings API."""

from abc import ABC, abstractmethod
from typing import List, Optional

import openai

from career_compass.config import EMBEDDING_DIMENSIONS, OPENAI_EMBEDDING_MODEL
from career_compass.utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingService(ABC):
    """Abstract embedding provider."""

    @abstractmethod
    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts in one call. Returns one vector per text, same order."""
        ...

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Embedding dimension."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identity; must match the corpus model."""
        ...


class OpenAIEmbeddingService(EmbeddingService):
    """OpenAI embeddings API (e.g. text-embedding-3-small)."""

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str = OPENAI_EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
    ) -> None:
        self._client = client
        self._model = model
        self._dimension = dimensions

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model(self) -> str:
        return self._model

    async def batch_embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        cleaned = [t.strip() if t and t.strip() else " " for t in texts]
        resp = await self._client.embeddings.create(
            model=self._model,
            input=cleaned,
            dimensions=self._dimension,
            encoding_format="float",
        )
        by_idx = {d.index: d.embedding for d in resp.data}
        missing: Optional[int] = next((i for i in range(len(cleaned)) if i not in by_idx), None)
        if missing is not None:
            raise ValueError(f"embedding response missing vector for input #{missing}")
        logger.debug("Embedded %s texts with %s", len(cleaned), self._model)
        return [by_idx[i] for i in range(len(cleaned))]
