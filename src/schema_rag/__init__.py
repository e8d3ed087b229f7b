"""Chunking and vector retrieval engine for schema-aware RAG.

This package turns uploaded reference documents into searchable chunks and
retrieves the most relevant ones to ground a language-model answer. HTTP
handling, record persistence and the completion call live outside it.

Architecture:
    - chunking: Overlapping character windows with whitespace boundaries
    - embedding: Ollama -> OpenAI -> deterministic hash provider chain
    - similarity: Cosine similarity
    - store: ChromaDB and in-memory vector stores behind one interface
    - retrieval: Query-time ranking with graceful degradation
    - ingestion: Text -> chunks -> stored embeddings
    - models: Pydantic schemas for stored documents and results

Usage:
    >>> from schema_rag import load_config, create_embedder, open_vector_store, Retriever
    >>> config = load_config("default")
    >>> embedder = create_embedder(config.embedding)
    >>> store = await open_vector_store(config.store, embedder)
    >>> result = await Retriever(embedder, store).retrieve("orders columns?", "p1")
"""

__version__ = "0.3.0"

from schema_rag.chunking import Chunk, ChunkingConfig, WindowChunker, chunk_text, split_text
from schema_rag.config import RAGConfig, load_config
from schema_rag.embedding import Embedder, EmbeddingConfig, create_embedder
from schema_rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingProviderError,
    EmptyDocumentError,
    ModelUnavailableError,
    SchemaRAGError,
    VectorStoreError,
)
from schema_rag.ingestion import IngestionPipeline
from schema_rag.models import (
    HealthStatus,
    IngestionResult,
    ProjectStats,
    ProjectSummary,
    RetrievalResult,
    SearchHit,
    StoredDocument,
)
from schema_rag.retrieval import Retriever
from schema_rag.similarity import cosine_similarity
from schema_rag.store import (
    ChromaVectorStore,
    InMemoryVectorStore,
    VectorStore,
    open_vector_store,
)

__all__ = [
    "Chunk",
    "ChunkingConfig",
    "WindowChunker",
    "chunk_text",
    "split_text",
    "RAGConfig",
    "load_config",
    "Embedder",
    "EmbeddingConfig",
    "create_embedder",
    "cosine_similarity",
    "VectorStore",
    "InMemoryVectorStore",
    "ChromaVectorStore",
    "open_vector_store",
    "Retriever",
    "IngestionPipeline",
    "StoredDocument",
    "SearchHit",
    "ProjectStats",
    "ProjectSummary",
    "HealthStatus",
    "RetrievalResult",
    "IngestionResult",
    "SchemaRAGError",
    "ConfigurationError",
    "EmbeddingProviderError",
    "ModelUnavailableError",
    "VectorStoreError",
    "DimensionMismatchError",
    "EmptyDocumentError",
]
