"""Vector store management and search operations.

Provides a unified interface over two backends:
- ChromaDB (external similarity index), scoped by a projectId filter
- In-memory partitions, used directly or as the degraded fallback when the
  external index cannot be reached at startup

Stores are constructed explicitly and handed to the ingestion and retrieval
paths; there is no process-wide store handle.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from loguru import logger

from schema_rag.chunking import Chunk
from schema_rag.config import StoreConfig
from schema_rag.embedding import Embedder
from schema_rag.errors import DimensionMismatchError, VectorStoreError
from schema_rag.models import (
    CHUNK_INDEX_KEY,
    PROJECT_ID_KEY,
    TIMESTAMP_KEY,
    HealthStatus,
    ProjectStats,
    ProjectSummary,
    SearchHit,
    StoredDocument,
    make_document_id,
    parse_timestamp,
)
from schema_rag.similarity import cosine_similarity


class VectorStore(ABC):
    """Abstract base class for vector store implementations.

    Chunks passed to ``store`` are embedded one at a time, in order, through
    the injected embedder before being written.
    """

    backend_name = "unknown"

    def __init__(self, embedder: Embedder):
        self.embedder = embedder
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Prepare the backend for use."""
        self._initialized = True

    async def close(self) -> None:
        """Release backend resources."""
        self._initialized = False

    async def __aenter__(self) -> "VectorStore":
        if not self._initialized:
            await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _embed_chunks(
        self,
        project_id: str,
        chunks: Sequence[Chunk],
        shared_metadata: Mapping[str, Any] | None,
    ) -> list[StoredDocument]:
        """Embed chunks sequentially and build the documents to persist."""
        documents: list[StoredDocument] = []
        for chunk in chunks:
            embedding = await self.embedder.embed_single(chunk.text)
            if len(embedding) != self.embedder.dimensions:
                raise DimensionMismatchError(
                    f"Embedding for chunk {chunk.index} has {len(embedding)} dimensions, "
                    f"expected {self.embedder.dimensions}"
                )

            created = datetime.now(UTC)
            metadata: dict[str, Any] = {
                **(shared_metadata or {}),
                **chunk.source_metadata,
                PROJECT_ID_KEY: project_id,
                CHUNK_INDEX_KEY: chunk.index,
                TIMESTAMP_KEY: created.isoformat(),
            }
            documents.append(
                StoredDocument(
                    id=make_document_id(project_id, chunk.index, int(created.timestamp() * 1000)),
                    project_id=project_id,
                    embedding=embedding,
                    text=chunk.text,
                    metadata={k: v for k, v in metadata.items() if v is not None},
                )
            )
        return documents

    @abstractmethod
    async def store(
        self,
        project_id: str,
        chunks: Sequence[Chunk],
        shared_metadata: Mapping[str, Any] | None = None,
    ) -> int:
        """Embed and persist chunks for a project.

        Args:
            project_id: Project partition key
            chunks: Chunks in document order
            shared_metadata: Metadata merged into every stored document

        Returns:
            Number of documents stored

        Raises:
            VectorStoreError: For backend write failures
        """
        ...

    @abstractmethod
    async def search(
        self, project_id: str, query_vector: Sequence[float], top_k: int = 5
    ) -> list[SearchHit]:
        """Return the top_k most similar documents in a project.

        Args:
            project_id: Project partition key
            query_vector: Query embedding
            top_k: Maximum number of hits

        Returns:
            Hits ranked by similarity, best match first (empty for unknown projects)
        """
        ...

    @abstractmethod
    async def stats(self, project_id: str) -> ProjectStats:
        """Get statistics for a project."""
        ...

    @abstractmethod
    async def delete_project(self, project_id: str) -> None:
        """Delete every document stored for a project."""
        ...

    @abstractmethod
    async def list_projects(self) -> list[ProjectSummary]:
        """List projects with their document counts."""
        ...

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Describe backend health. Never raises."""
        ...


class InMemoryVectorStore(VectorStore):
    """Project-partitioned in-process store with exhaustive cosine search.

    Each ``store`` call replaces the project's documents. Search cost is linear
    in the partition size. Concurrent writers to the same project are not
    serialized; the last writer wins.
    """

    backend_name = "in-memory"

    def __init__(self, embedder: Embedder):
        super().__init__(embedder)
        self._documents: dict[str, list[StoredDocument]] = {}

    async def initialize(self) -> None:
        await super().initialize()
        logger.info("In-memory vector store initialized")

    async def store(
        self,
        project_id: str,
        chunks: Sequence[Chunk],
        shared_metadata: Mapping[str, Any] | None = None,
    ) -> int:
        logger.info(f"Storing {len(chunks)} embeddings for project: {project_id}")
        documents = await self._embed_chunks(project_id, chunks, shared_metadata)
        self._documents[project_id] = documents
        logger.info(f"Stored {len(documents)} embeddings for project: {project_id}")
        return len(documents)

    async def search(
        self, project_id: str, query_vector: Sequence[float], top_k: int = 5
    ) -> list[SearchHit]:
        documents = self._documents.get(project_id, [])
        if not documents or top_k <= 0:
            return []

        scored = [(cosine_similarity(query_vector, doc.embedding), doc) for doc in documents]
        # Stable sort: ties keep insertion order
        scored.sort(key=lambda pair: pair[0], reverse=True)

        hits = [
            SearchHit(text=doc.text, similarity=score, metadata=dict(doc.metadata), id=doc.id)
            for score, doc in scored[:top_k]
        ]
        logger.debug(f"Found {len(hits)} similar chunks in project {project_id}")
        return hits

    async def stats(self, project_id: str) -> ProjectStats:
        documents = self._documents.get(project_id, [])
        timestamps = [doc.created_at for doc in documents if doc.created_at is not None]
        return ProjectStats(
            project_id=project_id,
            document_count=len(documents),
            last_updated=max(timestamps) if timestamps else None,
        )

    async def delete_project(self, project_id: str) -> None:
        self._documents.pop(project_id, None)
        logger.info(f"Deleted embeddings for project: {project_id}")

    async def list_projects(self) -> list[ProjectSummary]:
        return [
            ProjectSummary(project_id=project_id, document_count=len(documents))
            for project_id, documents in self._documents.items()
        ]

    async def health_check(self) -> HealthStatus:
        if not self._initialized:
            return HealthStatus(status="unhealthy", message="Vector store not initialized")
        return HealthStatus(
            status="healthy", backend=self.backend_name, project_count=len(self._documents)
        )


class ChromaVectorStore(VectorStore):
    """ChromaDB-backed store.

    All documents share one collection and are partitioned by the ``projectId``
    metadata field. Re-ingesting a project appends; callers wanting replace
    semantics must delete the project first.
    """

    backend_name = "chromadb"

    def __init__(
        self,
        embedder: Embedder,
        url: str = "http://localhost:8000",
        collection_name: str = "schema_embeddings",
        client: Any | None = None,
    ):
        """Initialize ChromaDB store settings.

        Args:
            embedder: Embedder used for stored chunks
            url: Chroma server URL
            collection_name: Collection shared by all projects
            client: Optional pre-built async client (mainly for tests)
        """
        super().__init__(embedder)
        self.url = url
        self.collection_name = collection_name
        self._client = client
        self._collection: Any | None = None

    async def _connect(self) -> Any:
        import chromadb

        parts = urlsplit(self.url)
        ssl = parts.scheme == "https"
        return await chromadb.AsyncHttpClient(
            host=parts.hostname or "localhost",
            port=parts.port or (443 if ssl else 8000),
            ssl=ssl,
        )

    async def _open_collection(self) -> Any:
        from chromadb.errors import ChromaError

        try:
            collection = await self._client.get_collection(
                name=self.collection_name, embedding_function=None
            )
            logger.info(f"Using existing collection: {self.collection_name}")
        except (ChromaError, ValueError):
            collection = await self._client.create_collection(
                name=self.collection_name,
                embedding_function=None,
                metadata={
                    "description": "Database schema embeddings for RAG",
                    "created_at": datetime.now(UTC).isoformat(),
                    "hnsw:space": "cosine",
                },
            )
            logger.info(f"Created new collection: {self.collection_name}")
        return collection

    async def initialize(self) -> None:
        """Connect, probe the server and open the collection.

        Raises:
            VectorStoreError: If the server is unreachable or the collection
                cannot be opened or created
        """
        logger.info(f"Connecting to ChromaDB at {self.url}...")
        try:
            if self._client is None:
                self._client = await self._connect()
            await self._client.heartbeat()
            self._collection = await self._open_collection()
        except Exception as e:
            raise VectorStoreError(
                f"Failed to initialize ChromaDB at {self.url}: {e}", context={"url": self.url}
            ) from e
        await super().initialize()

    async def close(self) -> None:
        self._collection = None
        await super().close()

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise VectorStoreError("ChromaDB store is not initialized")
        return self._collection

    async def store(
        self,
        project_id: str,
        chunks: Sequence[Chunk],
        shared_metadata: Mapping[str, Any] | None = None,
    ) -> int:
        collection = self._require_collection()
        logger.info(f"Storing {len(chunks)} embeddings for project: {project_id}")

        documents = await self._embed_chunks(project_id, chunks, shared_metadata)
        if not documents:
            return 0

        try:
            await collection.add(
                ids=[doc.id for doc in documents],
                embeddings=[doc.embedding for doc in documents],
                documents=[doc.text for doc in documents],
                metadatas=[doc.metadata for doc in documents],
            )
        except Exception as e:
            logger.error(f"Failed to store embeddings for project {project_id}: {e}")
            raise VectorStoreError(
                f"Failed to store embeddings for project {project_id}: {e}",
                context={"project_id": project_id},
            ) from e

        logger.info(f"Stored {len(documents)} embeddings for project: {project_id}")
        return len(documents)

    async def search(
        self, project_id: str, query_vector: Sequence[float], top_k: int = 5
    ) -> list[SearchHit]:
        collection = self._require_collection()
        if top_k <= 0:
            return []

        try:
            results = await collection.query(
                query_embeddings=[list(query_vector)],
                n_results=top_k,
                where={PROJECT_ID_KEY: project_id},
                include=["documents", "distances", "metadatas"],
            )
        except Exception as e:
            raise VectorStoreError(
                f"Search failed for project {project_id}: {e}", context={"project_id": project_id}
            ) from e

        documents = _first_row(results.get("documents"))
        distances = _first_row(results.get("distances"))
        metadatas = _first_row(results.get("metadatas"))
        ids = _first_row(results.get("ids"))

        hits = []
        for i, text in enumerate(documents):
            distance = _at(distances, i)
            # Missing distance is reported as an exact match
            similarity = 1.0 - (distance if distance is not None else 0.0)
            hits.append(
                SearchHit(
                    text=text or "",
                    similarity=similarity,
                    metadata=dict(_at(metadatas, i) or {}),
                    id=_at(ids, i),
                )
            )

        logger.debug(f"Found {len(hits)} similar chunks in project {project_id}")
        return hits

    async def stats(self, project_id: str) -> ProjectStats:
        try:
            collection = self._require_collection()
            results = await collection.get(
                where={PROJECT_ID_KEY: project_id}, include=["metadatas"]
            )
        except Exception as e:
            logger.error(f"Failed to get stats for project {project_id}: {e}")
            return ProjectStats(project_id=project_id, error=str(e))

        timestamps = []
        for meta in results.get("metadatas") or []:
            parsed = parse_timestamp((meta or {}).get(TIMESTAMP_KEY))
            if parsed is not None:
                timestamps.append(parsed)

        return ProjectStats(
            project_id=project_id,
            document_count=len(results.get("ids") or []),
            last_updated=max(timestamps) if timestamps else None,
        )

    async def delete_project(self, project_id: str) -> None:
        collection = self._require_collection()
        try:
            await collection.delete(where={PROJECT_ID_KEY: project_id})
        except Exception as e:
            logger.error(f"Failed to delete embeddings for project {project_id}: {e}")
            raise VectorStoreError(
                f"Failed to delete embeddings for project {project_id}: {e}",
                context={"project_id": project_id},
            ) from e
        logger.info(f"Deleted embeddings for project: {project_id}")

    async def list_projects(self) -> list[ProjectSummary]:
        try:
            collection = self._require_collection()
            results = await collection.get(include=["metadatas"])
        except Exception as e:
            logger.error(f"Failed to list projects: {e}")
            return []

        counts: dict[str, int] = {}
        for meta in results.get("metadatas") or []:
            project_id = (meta or {}).get(PROJECT_ID_KEY)
            if project_id is not None:
                counts[project_id] = counts.get(project_id, 0) + 1

        return [
            ProjectSummary(project_id=project_id, document_count=count)
            for project_id, count in counts.items()
        ]

    async def health_check(self) -> HealthStatus:
        if self._client is None or self._collection is None:
            return HealthStatus(status="unhealthy", message="Vector store not initialized")
        try:
            await self._client.heartbeat()
            count = await self._collection.count()
        except Exception as e:
            return HealthStatus(status="unhealthy", backend=self.backend_name, error=str(e))
        return HealthStatus(
            status="healthy", backend=self.backend_name, url=self.url, document_count=count
        )


def _first_row(value: Any) -> list[Any]:
    """Return the results for the first (only) query of a nested result list."""
    if not value:
        return []
    return list(value[0] or [])


def _at(values: list[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


async def open_vector_store(config: StoreConfig, embedder: Embedder) -> VectorStore:
    """Create and initialize the configured store.

    Falls back to an in-memory store when the external index cannot be
    reached or its collection cannot be opened.

    Args:
        config: Store configuration
        embedder: Embedder used for stored chunks

    Returns:
        An initialized vector store

    Example:
        >>> store = await open_vector_store(StoreConfig(backend="memory"), embedder)
        >>> store.backend_name
        'in-memory'
    """
    if config.backend == "chroma":
        chroma = ChromaVectorStore(embedder, url=config.url, collection_name=config.collection_name)
        try:
            await chroma.initialize()
            return chroma
        except VectorStoreError as e:
            logger.error(f"Failed to initialize vector store: {e}")
            logger.warning("Falling back to in-memory vector store")

    store = InMemoryVectorStore(embedder)
    await store.initialize()
    return store
