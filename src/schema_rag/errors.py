"""Exception hierarchy for the retrieval engine.

Errors fall into three groups:

- Configuration errors (missing credentials, invalid settings)
- Transient dependency errors (embedding service or vector index unreachable),
  which callers recover from by degrading to a fallback
- Input validation errors (mismatched vector dimensions, documents that yield
  no chunks), which are always surfaced to the immediate caller
"""

from typing import Any


class SchemaRAGError(Exception):
    """Base exception for all retrieval engine errors.

    Attributes:
        message: Human-readable error description
        context: Optional diagnostic details (provider name, URL, model, ...)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SchemaRAGError):
    """Raised when required configuration (e.g. an API key) is missing or invalid."""


class EmbeddingProviderError(SchemaRAGError):
    """Raised when an embedding provider cannot produce vectors."""


class ModelUnavailableError(EmbeddingProviderError):
    """Raised when the configured embedding model is not served by the provider."""


class VectorStoreError(SchemaRAGError):
    """Raised when the vector store backend fails an operation."""


class DimensionMismatchError(SchemaRAGError, ValueError):
    """Raised when two vectors of different length are compared or stored together."""


class EmptyDocumentError(SchemaRAGError, ValueError):
    """Raised when a document has no text left to index after chunking."""
