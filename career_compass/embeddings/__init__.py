"""Embedding layer: OpenAI embedding service and query-side embedder."""

from career_compass.embeddings.embedding_service import EmbeddingService, OpenAIEmbeddingService
from career_compass.embeddings.query_embedder import QueryEmbeddings, QueryTexts, build_query_texts, embed_query

__all__ = [
    "EmbeddingService",
    "OpenAIEmbeddingService",
    "QueryEmbeddings",
    "QueryTexts",
    "build_query_texts",
    "embed_query",
]
