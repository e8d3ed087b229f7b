#!/usr/bin/env python
"""Ingest schema documents and query project context from the command line.

Usage:
    python scripts/schema_rag_cli.py ingest schema.sql --project shop
    python scripts/schema_rag_cli.py query "What columns does orders have?" --project shop
    python scripts/schema_rag_cli.py stats shop
    python scripts/schema_rag_cli.py -o store.backend=memory health
"""

import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import click
from loguru import logger

from schema_rag.config import RAGConfig, load_config
from schema_rag.embedding import create_embedder
from schema_rag.errors import SchemaRAGError
from schema_rag.ingestion import IngestionPipeline
from schema_rag.retrieval import Retriever
from schema_rag.store import VectorStore, open_vector_store

# Configure logging
logger.remove()
logger.add(sys.stderr, level="INFO", format="<level>{message}</level>")


@asynccontextmanager
async def open_engine(config: RAGConfig) -> AsyncIterator[VectorStore]:
    """Build the embedder and store from config and release them afterwards."""
    embedder = create_embedder(config.embedding)
    store = await open_vector_store(config.store, embedder)
    try:
        yield store
    finally:
        await store.close()
        await embedder.aclose()


async def ingest(config: RAGConfig, path: Path, project_id: str, replace: bool) -> None:
    text = path.read_text(encoding="utf-8", errors="replace")
    metadata = {"filename": path.name, "fileType": path.suffix.lstrip(".") or "txt"}

    async with open_engine(config) as store:
        pipeline = IngestionPipeline(store, config.chunking)
        result = await pipeline.ingest(project_id, text, metadata, replace_existing=replace)

    logger.success(
        f"Stored {result.chunks_stored} chunks for project {project_id} ({result.backend})"
    )


async def query(config: RAGConfig, question: str, project_id: str, top_k: int | None) -> None:
    async with open_engine(config) as store:
        retriever = Retriever(store.embedder, store, config.retrieval.top_k)
        result = await retriever.retrieve(question, project_id, top_k)

    if not result.has_context:
        logger.warning("No relevant schema context found")
        return

    for i, hit in enumerate(result.chunks, 1):
        source = hit.metadata.get("filename", "unknown")
        logger.info(f"{'=' * 60}")
        logger.info(f"Result {i} (similarity: {hit.similarity:.4f}, source: {source})")
        logger.info(f"{'=' * 60}")
        logger.info(hit.text[:300] + "..." if len(hit.text) > 300 else hit.text)


async def stats(config: RAGConfig, project_id: str) -> None:
    async with open_engine(config) as store:
        project_stats = await store.stats(project_id)

    if project_stats.error:
        logger.error(f"Could not read stats for {project_id}: {project_stats.error}")
        sys.exit(1)
    logger.info(f"Project: {project_stats.project_id}")
    logger.info(f"Documents: {project_stats.document_count}")
    logger.info(f"Last updated: {project_stats.last_updated or 'never'}")


async def delete(config: RAGConfig, project_id: str) -> None:
    async with open_engine(config) as store:
        await store.delete_project(project_id)
    logger.success(f"Deleted embeddings for project {project_id}")


async def projects(config: RAGConfig) -> None:
    async with open_engine(config) as store:
        summaries = await store.list_projects()

    if not summaries:
        logger.warning("No projects stored")
        return
    for summary in summaries:
        logger.info(f"{summary.project_id}: {summary.document_count} documents")


async def health(config: RAGConfig) -> None:
    async with open_engine(config) as store:
        status = await store.health_check()

    detail = status.model_dump(exclude_none=True)
    if status.is_healthy:
        logger.success(f"Vector store healthy: {detail}")
    else:
        logger.error(f"Vector store unhealthy: {detail}")
        sys.exit(1)


def run(coro) -> None:
    try:
        asyncio.run(coro)
    except SchemaRAGError as e:
        logger.error(str(e))
        sys.exit(1)


@click.group()
@click.option(
    "-o",
    "--override",
    "overrides",
    multiple=True,
    help="Hydra config override, e.g. store.backend=memory (repeatable)",
)
@click.pass_context
def cli(ctx: click.Context, overrides: tuple[str, ...]):
    """Schema-aware retrieval engine tools."""
    ctx.obj = load_config("default", overrides=list(overrides))


@cli.command("ingest")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--project", "project_id", required=True, help="Project to index into")
@click.option("--replace", is_flag=True, help="Delete the project's documents first")
@click.pass_obj
def ingest_cmd(config: RAGConfig, path: Path, project_id: str, replace: bool):
    """Chunk, embed and store a text document."""
    run(ingest(config, path, project_id, replace))


@cli.command("query")
@click.argument("question", type=str)
@click.option("--project", "project_id", required=True, help="Project to search")
@click.option("--top-k", type=int, default=None, help="Number of chunks to return")
@click.pass_obj
def query_cmd(config: RAGConfig, question: str, project_id: str, top_k: int | None):
    """Retrieve the most relevant chunks for a question."""
    run(query(config, question, project_id, top_k))


@cli.command("stats")
@click.argument("project_id", type=str)
@click.pass_obj
def stats_cmd(config: RAGConfig, project_id: str):
    """Show document count and last update for a project."""
    run(stats(config, project_id))


@cli.command("delete")
@click.argument("project_id", type=str)
@click.confirmation_option(prompt="Delete all embeddings for this project?")
@click.pass_obj
def delete_cmd(config: RAGConfig, project_id: str):
    """Delete every stored chunk of a project."""
    run(delete(config, project_id))


@cli.command("projects")
@click.pass_obj
def projects_cmd(config: RAGConfig):
    """List stored projects."""
    run(projects(config))


@cli.command("health")
@click.pass_obj
def health_cmd(config: RAGConfig):
    """Check vector store health."""
    run(health(config))


if __name__ == "__main__":
    cli()
