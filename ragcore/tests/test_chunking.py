"""
Tests for text chunking.
"""

import pytest

from ragcore.services.chunking import TextChunk, TextChunker


def reassemble(text: str, chunks: list[TextChunk]) -> str:
    return "".join(text[chunk.start_char:chunk.end_char] for chunk in chunks)


SENTENCES = " ".join(f"Sentence {i} ends with a plain word." for i in range(40))

MARKDOWNISH = (
    "Vector databases store embeddings.\n\n"
    "They answer nearest neighbour queries quickly. Filters narrow the candidates.\n"
    "Payload indexes make filters cheap.\n\n\n"
    + SENTENCES
    + "\n\nSupercalifragilisticexpialidocious" * 3
    + "\n"
)


class TestTextChunk:
    """Tests for TextChunk dataclass."""

    def test_repr(self):
        """Test string representation."""
        chunk = TextChunk("Short text", chunk_index=5, start_char=3, end_char=13)
        repr_str = repr(chunk)

        assert "index=5" in repr_str
        assert "span=3:13" in repr_str
        assert "Short text" in repr_str


class TestTextChunker:
    """Tests for the recursive chunker."""

    @pytest.fixture
    def chunker(self):
        return TextChunker(max_chunk_size=60)

    def test_initialization(self):
        """Test defaults."""
        chunker = TextChunker()
        assert chunker.max_chunk_size == 1000
        assert chunker.overlap_size == 0
        assert chunker.language == "en"
        assert chunker._nlp is None  # Lazy loading

    @pytest.mark.parametrize("kwargs", [
        {"max_chunk_size": 0},
        {"max_chunk_size": 10, "overlap_size": 10},
        {"max_chunk_size": 10, "overlap_size": -1},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            TextChunker(**kwargs)

    def test_empty_text(self, chunker):
        assert chunker.chunk_text("") == []
        assert chunker.split_text("") == []

    def test_whitespace_only(self, chunker):
        assert chunker.chunk_text("   \n\n   ") == []

    def test_short_text(self, chunker):
        """Short text becomes one chunk covering the whole input."""
        text = "  This is a short sentence.\n"
        chunks = chunker.chunk_text(text, source_document_id="doc-1")

        assert len(chunks) == 1
        assert chunks[0].text == "This is a short sentence."
        assert chunks[0].start_char == 0
        assert chunks[0].end_char == len(text)
        assert chunks[0].chunk_index == 0
        assert chunks[0].source_document_id == "doc-1"

    @pytest.mark.parametrize("max_size", [20, 60, 200, 1000])
    def test_spans_reconstruct_input(self, max_size):
        """Concatenated spans give back the input exactly, in order."""
        chunker = TextChunker(max_chunk_size=max_size)
        text = "\n  " + MARKDOWNISH + "   "
        chunks = chunker.chunk_text(text)

        assert reassemble(text, chunks) == text
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.end_char == current.start_char

    @pytest.mark.parametrize("max_size", [20, 60, 200])
    def test_chunks_respect_max_size(self, max_size):
        chunker = TextChunker(max_chunk_size=max_size)
        chunks = chunker.chunk_text(MARKDOWNISH)

        assert len(chunks) > 1
        assert all(0 < len(chunk.text) <= max_size for chunk in chunks)
        assert all(chunk.text == chunk.text.strip() for chunk in chunks)

    def test_default_size_splits_long_run(self):
        """A 1200 character run without boundaries is cut at 1000."""
        chunks = TextChunker().chunk_text("A" * 1200)

        assert [len(chunk.text) for chunk in chunks] == [1000, 200]

    def test_prefers_paragraph_boundaries(self):
        first = "First paragraph has some words in it."
        second = "Second paragraph also has words."
        text = f"{first}\n\n{second}"

        chunks = TextChunker(max_chunk_size=50).chunk_text(text)

        assert [chunk.text for chunk in chunks] == [first, second]

    def test_prefers_sentence_boundaries(self, chunker):
        """Inside a paragraph, chunks end at sentence ends."""
        chunks = chunker.chunk_text(SENTENCES)

        assert len(chunks) > 1
        assert all(chunk.text.endswith(".") for chunk in chunks)
        assert chunker._nlp is not None

    def test_long_word_is_cut(self):
        chunks = TextChunker(max_chunk_size=100).chunk_text("x" * 250)
        assert [len(chunk.text) for chunk in chunks] == [100, 100, 50]

    def test_chunk_indices(self, chunker):
        """Test that chunk indices are sequential."""
        chunks = chunker.chunk_text(SENTENCES, start_index=10)

        for i, chunk in enumerate(chunks):
            assert chunk.chunk_index == 10 + i

    def test_split_text_returns_strings(self, chunker):
        texts = chunker.split_text(SENTENCES)
        assert texts == [chunk.text for chunk in chunker.chunk_text(SENTENCES)]

    def test_overlap_prefixes_previous_tail(self):
        chunker = TextChunker(max_chunk_size=20, overlap_size=5)
        text = "aaa bbb ccc.\n\nddd eee fff."

        chunks = chunker.chunk_text(text)

        assert [chunk.text for chunk in chunks] == ["aaa bbb ccc.", "ccc. ddd eee fff."]
        # Spans stay disjoint even though content overlaps
        assert reassemble(text, chunks) == text

    def test_overlap_never_exceeds_max_size(self):
        chunker = TextChunker(max_chunk_size=60, overlap_size=20)
        chunks = chunker.chunk_text(SENTENCES)

        assert all(len(chunk.text) <= 60 for chunk in chunks)
        assert reassemble(SENTENCES, chunks) == SENTENCES
