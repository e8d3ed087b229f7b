"""Query-time retrieval of ranked context chunks.

Retrieval never aborts the calling workflow: any failure while embedding the
query or searching the store yields an empty result, and generation proceeds
without schema context.
"""

from loguru import logger

from schema_rag.embedding import Embedder
from schema_rag.models import RetrievalResult
from schema_rag.store import VectorStore


class Retriever:
    """Embeds a query and returns the best-matching chunks for one project."""

    def __init__(self, embedder: Embedder, store: VectorStore, top_k: int = 5):
        """Initialize retriever.

        Args:
            embedder: Embedder for query text
            store: Initialized vector store
            top_k: Default number of chunks to return
        """
        self.embedder = embedder
        self.store = store
        self.top_k = top_k

    async def retrieve(
        self, query: str, project_id: str, top_k: int | None = None
    ) -> RetrievalResult:
        """Retrieve ranked context for a query.

        Args:
            query: User question
            project_id: Project whose documents are searched
            top_k: Override for the number of chunks

        Returns:
            Ranked chunks and whether any context was found
        """
        limit = self.top_k if top_k is None else top_k
        logger.info(f"Searching for relevant schema context in project {project_id}")

        try:
            query_vector = await self.embedder.embed_single(query)
            hits = await self.store.search(project_id, query_vector, limit)
        except Exception as e:
            logger.warning(f"Failed to retrieve schema context for project {project_id}: {e}")
            return RetrievalResult(chunks=[], has_context=False)

        logger.info(f"Found {len(hits)} relevant schema chunks")
        return RetrievalResult(chunks=hits, has_context=len(hits) > 0)
