"""Character-window text chunking for schema documents.

Splits extracted text into overlapping windows, preferring to end a window on
whitespace when one is available late enough in the window.
All chunking is deterministic: same input + config -> same chunks.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

Scalar = str | int | float | bool


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for text chunking.

    Attributes:
        chunk_size: Window size in characters
        overlap: Number of characters shared by consecutive windows
        boundary_ratio: Earliest point in the window (as a fraction of chunk_size)
            at which a whitespace boundary may replace the hard cut
    """

    chunk_size: int = 500
    overlap: int = 50
    boundary_ratio: float = 0.7

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {self.overlap}")
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be less than chunk_size ({self.chunk_size})"
            )
        if not 0.0 < self.boundary_ratio <= 1.0:
            raise ValueError(f"boundary_ratio must be in (0, 1], got {self.boundary_ratio}")


@dataclass(frozen=True)
class Chunk:
    """A single retrievable unit of text.

    Attributes:
        text: Trimmed chunk text
        index: 0-indexed position within the source document
        source_metadata: Caller-supplied metadata (filename, file type, ...)
    """

    text: str
    index: int
    source_metadata: Mapping[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate chunk properties."""
        if not self.text or not self.text.strip():
            raise ValueError("Chunk text cannot be empty")
        if self.index < 0:
            raise ValueError(f"index must be non-negative, got {self.index}")


class Chunker(Protocol):
    """Protocol for text chunking implementations."""

    def chunk(self, text: str, source_metadata: Mapping[str, Scalar] | None = None) -> list[Chunk]:
        """Split text into overlapping chunks.

        Args:
            text: Input text to chunk
            source_metadata: Metadata attached to every chunk

        Returns:
            List of Chunk objects in order
        """
        ...


def _last_whitespace(text: str, end: int, floor: float) -> int | None:
    """Return the position of the last whitespace at or before end and after floor."""
    pos = end
    while pos > floor:
        if text[pos].isspace():
            return pos
        pos -= 1
    return None


def split_text(
    text: str,
    chunk_size: int = 500,
    overlap: int = 50,
    boundary_ratio: float = 0.7,
) -> list[str]:
    """Split text into overlapping, trimmed windows.

    Args:
        text: Input text
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows
        boundary_ratio: Fraction of the window after which a whitespace boundary
            is accepted

    Returns:
        Non-empty chunk strings in document order

    Example:
        >>> split_text("alpha beta gamma", chunk_size=100)
        ['alpha beta gamma']
    """
    chunks: list[str] = []
    length = len(text)
    start = 0

    while start < length:
        end = start + chunk_size

        if end < length:
            boundary = _last_whitespace(text, end, start + chunk_size * boundary_ratio)
            if boundary is not None:
                end = boundary

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)

        if end >= length:
            break

        # Cursor must advance even if the pulled-back end minus overlap would not
        start = max(end - overlap, start + 1)

    return chunks


class WindowChunker:
    """Overlapping character-window chunker."""

    def __init__(self, config: ChunkingConfig | None = None):
        """Initialize chunker with configuration.

        Args:
            config: Chunking configuration (defaults to 500/50)
        """
        self.config = config or ChunkingConfig()

    def chunk(self, text: str, source_metadata: Mapping[str, Scalar] | None = None) -> list[Chunk]:
        """Split text into numbered Chunk objects.

        Args:
            text: Input text to chunk
            source_metadata: Metadata attached to every chunk

        Returns:
            List of Chunk objects in order (empty for blank text)
        """
        pieces = split_text(
            text,
            chunk_size=self.config.chunk_size,
            overlap=self.config.overlap,
            boundary_ratio=self.config.boundary_ratio,
        )
        metadata = dict(source_metadata or {})
        return [
            Chunk(text=piece, index=idx, source_metadata=metadata)
            for idx, piece in enumerate(pieces)
        ]


def chunk_text(
    text: str,
    chunk_size: int = 500,
    overlap: int = 50,
    source_metadata: Mapping[str, Scalar] | None = None,
) -> list[Chunk]:
    """Convenience function to chunk text with default config.

    Args:
        text: Input text to chunk
        chunk_size: Window size in characters
        overlap: Characters shared by consecutive windows
        source_metadata: Metadata attached to every chunk

    Returns:
        List of Chunk objects

    Example:
        >>> chunks = chunk_text("CREATE TABLE users (id INT);" * 40)
        >>> chunks[0].index
        0
    """
    chunker = WindowChunker(ChunkingConfig(chunk_size=chunk_size, overlap=overlap))
    return chunker.chunk(text, source_metadata)
