"""End-to-end document ingestion workflow.

Combines chunking, embedding, and vector storage.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from schema_rag.chunking import Chunker, ChunkingConfig, WindowChunker
from schema_rag.errors import EmptyDocumentError
from schema_rag.models import IngestionResult
from schema_rag.store import VectorStore


class IngestionPipeline:
    """Indexes extracted document text into a vector store.

    Handles the complete workflow:
    1. Reject documents with no text
    2. Chunk text into overlapping windows
    3. Embed and store chunks (sequentially, in order)
    """

    def __init__(self, store: VectorStore, chunking_config: ChunkingConfig | None = None):
        """Initialize ingestion pipeline.

        Args:
            store: Initialized vector store
            chunking_config: Configuration for text chunking (uses defaults if None)
        """
        self.store = store
        self.chunker: Chunker = WindowChunker(chunking_config or ChunkingConfig())

    async def ingest(
        self,
        project_id: str,
        text: str,
        shared_metadata: Mapping[str, Any] | None = None,
        *,
        replace_existing: bool = False,
    ) -> IngestionResult:
        """Chunk, embed and store one document.

        Args:
            project_id: Project partition key
            text: Extracted plain text of the document
            shared_metadata: Metadata stored with every chunk (filename, fileType, ...)
            replace_existing: Delete the project's documents before storing

        Returns:
            Ingestion result with the number of chunks stored

        Raises:
            EmptyDocumentError: If the text is blank or yields no chunks
            VectorStoreError: If the store fails to persist the chunks
        """
        if not text or not text.strip():
            raise EmptyDocumentError(
                "No text content could be extracted from the document",
                context={"project_id": project_id},
            )

        chunks = self.chunker.chunk(text)
        if not chunks:
            raise EmptyDocumentError(
                "No valid chunks could be created from the document",
                context={"project_id": project_id},
            )

        source = (shared_metadata or {}).get("filename", "document")
        logger.info(f"Created {len(chunks)} text chunks from {source}")

        if replace_existing:
            await self.store.delete_project(project_id)

        stored = await self.store.store(project_id, chunks, shared_metadata)
        return IngestionResult(
            project_id=project_id, chunks_stored=stored, backend=self.store.backend_name
        )
