"""Pytest configuration for test discovery, env, and fixtures.

This file ensures that:
- `src/` is importable
- Integration tests can read service settings from `conf/secrets.yml`
- Unit tests share a deterministic embedder and an in-memory store
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure src directory is in path for imports
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from schema_rag.embedding import Embedder, HashEmbedding  # noqa: E402
from schema_rag.store import InMemoryVectorStore  # noqa: E402

TEST_DIMENSIONS = 64


def _load_secrets_into_env() -> None:
    """Load secrets from conf/secrets.yml into environment if not set.

    Only sets variables that are currently unset to avoid overriding user-provided
    environment. This supports running integration tests locally without manual
    export of credentials.
    """
    secrets_path = repo_root / "conf" / "secrets.yml"
    if not secrets_path.exists():
        return

    try:
        import yaml  # type: ignore[import-untyped]
    except Exception:
        return

    try:
        data = yaml.safe_load(secrets_path.read_text()) or {}
    except Exception:
        return

    for env_key in ("OPENAI_API_KEY", "OLLAMA_URL", "OLLAMA_EMBED_MODEL", "CHROMA_URL"):
        if os.environ.get(env_key):
            continue
        value = data.get(env_key)
        if value:
            os.environ[env_key] = str(value)


def pytest_sessionstart(session: object) -> None:
    _load_secrets_into_env()


@pytest.fixture
def hash_embedder() -> Embedder:
    """Offline embedder producing deterministic 64-dimensional vectors."""
    return Embedder([HashEmbedding(TEST_DIMENSIONS)], TEST_DIMENSIONS)


@pytest.fixture
async def memory_store(hash_embedder: Embedder):
    """Initialized in-memory store backed by the hash embedder."""
    store = InMemoryVectorStore(hash_embedder)
    await store.initialize()
    yield store
    await store.close()
