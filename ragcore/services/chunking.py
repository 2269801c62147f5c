"""
Text chunking for document ingestion.

Splits text recursively at paragraph, line, sentence (spaCy) and word
boundaries, falling back to hard character cuts. Chunk spans tile the
input exactly, so concatenating ``text[start_char:end_char]`` over all
chunks reproduces the input.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import spacy
from spacy.language import Language


logger = logging.getLogger(__name__)

Span = tuple[int, int]


@dataclass
class TextChunk:
    """A chunk of text with its position in the source text."""

    text: str
    chunk_index: int
    start_char: int  # Start character position in source text
    end_char: int    # End character position in source text
    source_document_id: Optional[str] = None

    def __repr__(self):
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"TextChunk(index={self.chunk_index}, span={self.start_char}:{self.end_char}, text='{preview}')"


class TextChunker:
    """
    Recursive boundary-preferring text chunker.

    Prefers paragraph breaks, then line breaks, then sentence boundaries
    detected by a blank spaCy pipeline with a rule-based sentencizer,
    then whitespace, and only cuts inside a word when a single word is
    longer than the maximum chunk size.
    """

    _BOUNDARY_PATTERNS = {
        "paragraph": re.compile(r"\n\s*\n"),
        "line": re.compile(r"\n"),
        "word": re.compile(r"\s+"),
    }
    _LEVELS = ("paragraph", "line", "sentence", "word", "char")

    def __init__(
        self,
        max_chunk_size: int = 1000,
        overlap_size: int = 0,
        language: str = "en",
    ):
        """
        Initialize text chunker.

        Args:
            max_chunk_size: Maximum number of characters per trimmed chunk
            overlap_size: Characters of the previous chunk repeated at the start of the next one
            language: spaCy language code used for sentence segmentation
        """
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        if overlap_size < 0 or overlap_size >= max_chunk_size:
            raise ValueError("overlap_size must be between 0 and max_chunk_size")

        self.max_chunk_size = max_chunk_size
        self.overlap_size = overlap_size
        self.language = language
        self._nlp: Optional[Language] = None

        logger.info(f"Initialized TextChunker (max_size={max_chunk_size}, overlap={overlap_size})")

    def _load_model(self):
        """Lazy load a blank spaCy pipeline with a sentencizer."""
        if self._nlp is None:
            logger.info(f"Loading spaCy sentencizer for language: {self.language}")
            self._nlp = spacy.blank(self.language)
            self._nlp.add_pipe("sentencizer")

    def chunk_text(
        self,
        text: str,
        source_document_id: Optional[str] = None,
        start_index: int = 0,
    ) -> list[TextChunk]:
        """
        Chunk text into bounded segments.

        Args:
            text: Text to chunk
            source_document_id: Optional ID of the document the text belongs to
            start_index: Starting index for chunk numbering

        Returns:
            List of text chunks in source order
        """
        if not text or not text.strip():
            return []

        spans = self._absorb_blank_spans(text, self._split(text, 0, len(text), 0))

        chunks = []
        previous_text = ""
        for start, end in spans:
            chunk_text = text[start:end].strip()
            if self.overlap_size and previous_text:
                chunk_text = self._with_overlap(previous_text, chunk_text)
            chunks.append(TextChunk(
                text=chunk_text,
                chunk_index=start_index + len(chunks),
                start_char=start,
                end_char=end,
                source_document_id=source_document_id,
            ))
            previous_text = text[start:end].strip()

        logger.debug(f"Chunked text of {len(text)} chars into {len(chunks)} chunks")
        return chunks

    def split_text(self, text: str) -> list[str]:
        """Chunk text and return only the chunk contents."""
        return [chunk.text for chunk in self.chunk_text(text)]

    def _trimmed_length(self, text: str, start: int, end: int) -> int:
        return len(text[start:end].strip())

    def _split(self, text: str, start: int, end: int, level: int) -> list[Span]:
        if self._trimmed_length(text, start, end) <= self.max_chunk_size:
            return [(start, end)]

        level_name = self._LEVELS[level]
        if level_name == "char":
            return [
                (pos, min(pos + self.max_chunk_size, end))
                for pos in range(start, end, self.max_chunk_size)
            ]

        pieces = self._pieces(text, start, end, level_name)
        if len(pieces) <= 1:
            return self._split(text, start, end, level + 1)

        spans: list[Span] = []
        current: Optional[Span] = None
        for piece_start, piece_end in pieces:
            if self._trimmed_length(text, piece_start, piece_end) > self.max_chunk_size:
                if current:
                    spans.append(current)
                    current = None
                spans.extend(self._split(text, piece_start, piece_end, level + 1))
            elif current is None:
                current = (piece_start, piece_end)
            elif self._trimmed_length(text, current[0], piece_end) <= self.max_chunk_size:
                current = (current[0], piece_end)
            else:
                spans.append(current)
                current = (piece_start, piece_end)
        if current:
            spans.append(current)
        return spans

    def _pieces(self, text: str, start: int, end: int, level_name: str) -> list[Span]:
        """Cut [start, end) at boundaries of the given level; separators stay with the left piece."""
        if level_name == "sentence":
            self._load_model()
            segment = text[start:end]
            if len(segment) >= self._nlp.max_length:
                self._nlp.max_length = len(segment) + 1
            cuts = [start + sent.start_char for sent in self._nlp(segment).sents][1:]
        else:
            pattern = self._BOUNDARY_PATTERNS[level_name]
            cuts = [start + m.end() for m in pattern.finditer(text[start:end])]

        bounds = [start] + [cut for cut in cuts if start < cut < end] + [end]
        return [(a, b) for a, b in zip(bounds, bounds[1:]) if a < b]

    def _absorb_blank_spans(self, text: str, spans: list[Span]) -> list[Span]:
        """Merge whitespace-only spans into a neighbour so every chunk has content."""
        merged: list[Span] = []
        pending_start: Optional[int] = None
        for start, end in spans:
            if not text[start:end].strip():
                if merged:
                    merged[-1] = (merged[-1][0], end)
                elif pending_start is None:
                    pending_start = start
                continue
            if pending_start is not None:
                start, pending_start = pending_start, None
            merged.append((start, end))
        return merged

    def _with_overlap(self, previous_text: str, chunk_text: str) -> str:
        tail = previous_text[-self.overlap_size:]
        space = tail.find(" ")
        if 0 <= space < len(tail) - 1 and len(tail) < len(previous_text):
            tail = tail[space + 1:]
        candidate = f"{tail} {chunk_text}"
        if len(candidate) <= self.max_chunk_size:
            return candidate
        return chunk_text
