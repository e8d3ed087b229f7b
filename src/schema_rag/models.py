"""Pydantic models for stored documents and retrieval results.

All data leaving the vector store is validated against these schemas.
This ensures fail-fast behavior and type safety throughout the pipeline.
"""

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Store-assigned metadata keys (wire names shared with the external index)
PROJECT_ID_KEY = "projectId"
CHUNK_INDEX_KEY = "chunkIndex"
TIMESTAMP_KEY = "timestamp"


def make_document_id(project_id: str, chunk_index: int, created_ms: int) -> str:
    """Build a document ID of the form ``{project_id}_{chunk_index}_{created_ms}``."""
    return f"{project_id}_{chunk_index}_{created_ms}"


class StoredDocument(BaseModel):
    """A persisted chunk with its embedding.

    Attributes:
        id: Unique ID using format: {project_id}_{chunk_index}_{epoch_millis}
        project_id: Partition key; every query is scoped to one project
        embedding: Embedding vector
        text: Original chunk text, returned verbatim on retrieval
        metadata: Caller metadata plus projectId, chunkIndex and timestamp
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str = Field(min_length=1)
    embedding: list[float] = Field(min_length=1)
    text: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("embedding")
    @classmethod
    def validate_embedding_values(cls, v: list[float]) -> list[float]:
        """Ensure vector contains valid finite floats."""
        for i, val in enumerate(v):
            if not math.isfinite(val):
                raise ValueError(f"Vector contains non-finite value at index {i}: {val}")
        return v

    @property
    def created_at(self) -> datetime | None:
        """Parse the store-assigned timestamp, if present."""
        return parse_timestamp(self.metadata.get(TIMESTAMP_KEY))


class SearchHit(BaseModel):
    """A single search result, best match first in result lists.

    Attributes:
        text: Chunk text
        similarity: Similarity to the query (cosine, higher is better)
        metadata: Stored metadata
        id: Stored document ID
    """

    text: str
    similarity: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class ProjectStats(BaseModel):
    """Statistics for one project partition.

    Attributes:
        project_id: Project identifier
        document_count: Number of stored documents
        last_updated: Latest document timestamp (None for empty projects)
        error: Backend error message when stats could not be read
    """

    project_id: str
    document_count: int = Field(default=0, ge=0)
    last_updated: datetime | None = None
    error: str | None = None


class ProjectSummary(BaseModel):
    """Entry in the list of projects held by a store."""

    project_id: str
    document_count: int = Field(ge=0)


class HealthStatus(BaseModel):
    """Vector store health descriptor.

    Attributes:
        status: "healthy" or "unhealthy"
        backend: Backend type ("in-memory" or "chromadb")
        message: Optional human-readable detail
        project_count: Number of project partitions (in-memory backend)
        document_count: Number of stored documents (external backend)
        url: External index URL (external backend)
        error: Error message when unhealthy
    """

    status: str = Field(pattern="^(healthy|unhealthy)$")
    backend: str | None = None
    message: str | None = None
    project_count: int | None = None
    document_count: int | None = None
    url: str | None = None
    error: str | None = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"


class RetrievalResult(BaseModel):
    """Ranked context for one query.

    Attributes:
        chunks: Search hits, best match first
        has_context: True when at least one chunk was retrieved
    """

    chunks: list[SearchHit] = Field(default_factory=list)
    has_context: bool = False


class IngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    project_id: str
    chunks_stored: int = Field(ge=0)
    backend: str


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (accepting a trailing Z); None if invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
