"""Configuration management for the retrieval engine using Hydra.

All configuration is loaded from YAML files in conf/retrieval/.
This module provides typed config objects and validation.
"""

from pathlib import Path

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, field_validator

from schema_rag.chunking import ChunkingConfig
from schema_rag.embedding import EmbeddingConfig


class StoreConfig(BaseModel):
    """Vector store configuration.

    Attributes:
        backend: Store backend ("chroma" or "memory")
        collection_name: Name of the external index collection
        url: URL of the Chroma server
    """

    backend: str = Field(default="chroma", pattern="^(chroma|memory)$")
    collection_name: str = "schema_embeddings"
    url: str = "http://localhost:8000"

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL looks vaguely like a URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must be a valid HTTP(S) URL, got {v!r}")
        return v


class RetrievalSettings(BaseModel):
    """Query-time settings.

    Attributes:
        top_k: Number of context chunks retrieved per query
    """

    top_k: int = Field(default=5, ge=1, le=100)


class RAGConfig(BaseModel):
    """Top-level configuration for the retrieval engine.

    Attributes:
        chunking: Text chunking configuration
        embedding: Embedding provider configuration
        store: Vector store configuration
        retrieval: Query-time configuration
    """

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)


def load_config(
    config_name: str = "default",
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> RAGConfig:
    """Load retrieval configuration from Hydra YAML files.

    Args:
        config_name: Name of config file (without .yaml extension)
        config_path: Path to config directory (defaults to conf/retrieval/)
        overrides: List of config overrides (e.g., ["store.backend=memory"])

    Returns:
        Validated configuration object

    Example:
        >>> config = load_config("default")
        >>> config.embedding.ollama.model
        'nomic-embed-text'

        >>> config = load_config("default", overrides=["embedding.provider=hash"])
        >>> config.embedding.provider
        'hash'
    """
    if config_path is None:
        # Default to conf/retrieval/ relative to repo root
        repo_root = Path(__file__).parent.parent.parent
        config_path = repo_root / "conf" / "retrieval"

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config directory not found: {config_path}\n" f"Create it with: mkdir -p {config_path}"
        )

    with initialize_config_dir(
        config_dir=str(config_path), version_base=None, job_name="schema_rag"
    ):
        cfg: DictConfig = compose(config_name=config_name, overrides=overrides or [])

    # Convert OmegaConf to dict and validate with Pydantic
    config_dict = OmegaConf.to_container(cfg, resolve=True)
    return RAGConfig(**config_dict)  # type: ignore


def create_default_config() -> dict[str, dict[str, object]]:
    """Create a default configuration dictionary for bootstrapping.

    Returns:
        Dictionary suitable for writing to YAML

    Example:
        >>> import yaml
        >>> config = create_default_config()
        >>> with open("conf/retrieval/default.yaml", "w") as f:
        ...     yaml.dump(config, f)
    """
    return {
        "chunking": {
            "chunk_size": 500,
            "overlap": 50,
            "boundary_ratio": 0.7,
        },
        "embedding": {
            "provider": "${oc.env:EMBEDDING_PROVIDER,ollama}",
            "dimensions": "${oc.env:EMBEDDING_DIMENSIONS,'768'}",
            "ollama": {
                "base_url": "${oc.env:OLLAMA_URL,'http://localhost:11434'}",
                "model": "${oc.env:OLLAMA_EMBED_MODEL,nomic-embed-text}",
                "timeout_seconds": 30.0,
                "probe_timeout_seconds": 5.0,
                "request_delay_seconds": 0.1,
            },
            "openai": {
                "model": "text-embedding-3-small",
                "api_key": "${oc.env:OPENAI_API_KEY,null}",
                "max_retries": 3,
                "timeout_seconds": 30.0,
            },
        },
        "store": {
            "backend": "${oc.env:VECTOR_STORE_BACKEND,chroma}",
            "collection_name": "schema_embeddings",
            "url": "${oc.env:CHROMA_URL,'http://localhost:8000'}",
        },
        "retrieval": {
            "top_k": "${oc.env:MAX_CONTEXT_CHUNKS,'5'}",
        },
    }
