"""Unit tests for character-window chunking.

Tests cover:
- Config and Chunk validation
- Edge cases (empty text, short text, text exactly one window long)
- Whitespace boundary pull-back and hard cuts
- Termination, determinism and coverage properties
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from schema_rag.chunking import Chunk, ChunkingConfig, WindowChunker, chunk_text, split_text


class TestChunkingConfig:
    """Tests for ChunkingConfig validation."""

    def test_default_config(self) -> None:
        """Default config should be valid."""
        config = ChunkingConfig()
        assert config.chunk_size == 500
        assert config.overlap == 50
        assert config.boundary_ratio == 0.7

    def test_invalid_chunk_size(self) -> None:
        """Chunk size must be positive."""
        with pytest.raises(ValueError, match="chunk_size must be positive"):
            ChunkingConfig(chunk_size=0)

        with pytest.raises(ValueError, match="chunk_size must be positive"):
            ChunkingConfig(chunk_size=-100)

    def test_invalid_overlap(self) -> None:
        """Overlap must be non-negative and less than chunk_size."""
        with pytest.raises(ValueError, match="overlap must be non-negative"):
            ChunkingConfig(overlap=-1)

        with pytest.raises(ValueError, match="overlap .* must be less than chunk_size"):
            ChunkingConfig(chunk_size=100, overlap=100)

    def test_invalid_boundary_ratio(self) -> None:
        with pytest.raises(ValueError, match="boundary_ratio"):
            ChunkingConfig(boundary_ratio=0.0)

        with pytest.raises(ValueError, match="boundary_ratio"):
            ChunkingConfig(boundary_ratio=1.5)


class TestChunk:
    """Tests for Chunk data class validation."""

    def test_valid_chunk(self) -> None:
        chunk = Chunk(text="users table", index=0, source_metadata={"filename": "schema.sql"})
        assert chunk.text == "users table"
        assert chunk.source_metadata["filename"] == "schema.sql"

    def test_empty_text_raises(self) -> None:
        with pytest.raises(ValueError, match="Chunk text cannot be empty"):
            Chunk(text="   ", index=0)

    def test_negative_index_raises(self) -> None:
        with pytest.raises(ValueError, match="index must be non-negative"):
            Chunk(text="x", index=-1)


class TestSplitText:
    """Tests for the window algorithm."""

    def test_empty_text(self) -> None:
        """Empty or whitespace-only text yields no chunks."""
        assert split_text("") == []
        assert split_text("   \n\t ") == []

    def test_short_text_single_trimmed_chunk(self) -> None:
        assert split_text("  users table  ") == ["users table"]

    def test_text_exactly_one_window(self) -> None:
        """Text of exactly chunk_size characters is a single chunk."""
        assert split_text("a" * 100, chunk_size=100, overlap=10) == ["a" * 100]

    def test_hard_cut_without_whitespace(self) -> None:
        chunks = split_text("x" * 250, chunk_size=100, overlap=10)

        assert [len(c) for c in chunks] == [100, 100, 70]

    def test_pulls_back_to_late_whitespace(self) -> None:
        """A window ends on whitespace found after 70% of the window."""
        text = "a" * 80 + " " + "b" * 100

        chunks = split_text(text, chunk_size=100, overlap=10)

        assert chunks == ["a" * 80, "a" * 10 + " " + "b" * 89, "b" * 21]

    def test_ignores_early_whitespace(self) -> None:
        """Whitespace before 70% of the window does not move the cut."""
        text = "a" * 50 + " " + "b" * 149

        chunks = split_text(text, chunk_size=100, overlap=0)

        assert chunks[0] == "a" * 50 + " " + "b" * 49

    def test_newline_counts_as_boundary(self) -> None:
        text = "a" * 80 + "\n" + "b" * 100

        chunks = split_text(text, chunk_size=100, overlap=10)

        assert chunks[0] == "a" * 80

    def test_consecutive_chunks_overlap(self) -> None:
        chunks = split_text("x" * 250, chunk_size=100, overlap=10)

        assert chunks[0][-10:] == chunks[1][:10]

    def test_large_overlap_terminates(self) -> None:
        """Overlap larger than the pull-back distance still makes progress."""
        text = "word " * 200

        chunks = split_text(text, chunk_size=100, overlap=90)

        assert chunks
        assert all(chunk.strip() == chunk for chunk in chunks)

    def test_deterministic(self) -> None:
        text = "CREATE TABLE users (id INT, name TEXT);\n" * 50
        assert split_text(text) == split_text(text)

    @given(st.text(max_size=600))
    def test_no_empty_chunks(self, text: str) -> None:
        """Every chunk is non-empty and trimmed."""
        for chunk in split_text(text, chunk_size=100, overlap=10):
            assert chunk
            assert chunk == chunk.strip()
            assert chunk in text

    @given(st.text(max_size=600))
    def test_rechunking_a_chunk_is_identity(self, text: str) -> None:
        """Chunking one chunk with the same settings returns exactly that chunk."""
        for chunk in split_text(text, chunk_size=100, overlap=10):
            assert split_text(chunk, chunk_size=100, overlap=10) == [chunk]

    @given(
        st.lists(
            st.text(alphabet="abcdefgh", min_size=1, max_size=10), min_size=1, max_size=60
        )
    )
    def test_every_word_survives_whole(self, words: list[str]) -> None:
        """Short words are never lost or split across all chunks."""
        text = " ".join(words)

        chunks = split_text(text, chunk_size=50, overlap=10)

        for word in words:
            assert any(word in chunk.split() for chunk in chunks)


class TestWindowChunker:
    """Tests for the Chunk-producing chunker."""

    def test_indexes_are_sequential(self) -> None:
        chunker = WindowChunker(ChunkingConfig(chunk_size=100, overlap=10))

        chunks = chunker.chunk("x" * 250)

        assert [c.index for c in chunks] == [0, 1, 2]

    def test_attaches_source_metadata(self) -> None:
        chunker = WindowChunker()

        chunks = chunker.chunk("orders table", {"filename": "orders.sql", "fileType": "sql"})

        assert chunks[0].source_metadata == {"filename": "orders.sql", "fileType": "sql"}

    def test_blank_text_yields_nothing(self) -> None:
        assert WindowChunker().chunk("   ") == []

    def test_chunk_text_convenience(self) -> None:
        chunks = chunk_text("CREATE TABLE users (id INT);" * 40, chunk_size=200, overlap=20)

        assert len(chunks) > 1
        assert chunks[0].index == 0
        assert all(len(c.text) <= 200 for c in chunks)
