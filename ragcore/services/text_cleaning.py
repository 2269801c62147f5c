"""
Markdown normalisation for ingestion.

Reduces markdown to the plain text an embedding model should see: images,
raw HTML and markup characters are dropped, link and emphasis text is
kept, and block structure survives as blank-line separated paragraphs.
"""

import logging
import re

from markdown_it import MarkdownIt
from markdown_it.token import Token


logger = logging.getLogger(__name__)

_md = MarkdownIt("commonmark").enable("table").enable("strikethrough")

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def _inline_text(children: list[Token]) -> str:
    parts = []
    for child in children:
        if child.type in ("text", "code_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append("\n")
        # image, html_inline and markup open/close tokens carry no ingestible text
    return "".join(parts)


def clean_markdown_for_ingest(text: str) -> str:
    """
    Strip markdown artefacts from text before chunking.

    Args:
        text: Markdown source

    Returns:
        Plain text with paragraphs separated by blank lines
    """
    if not text or not text.strip():
        return ""

    blocks: list[str] = []
    row: list[str] = []
    in_row = False

    for token in _md.parse(text):
        if token.type == "tr_open":
            in_row, row = True, []
        elif token.type == "tr_close":
            in_row = False
            blocks.append(" ".join(cell for cell in row if cell))
        elif token.type == "inline":
            content = _inline_text(token.children or []).strip()
            if in_row:
                row.append(content)
            elif content:
                blocks.append(content)
        elif token.type in ("fence", "code_block"):
            content = token.content.strip("\n")
            if content.strip():
                blocks.append(content)

    cleaned = "\n\n".join(block for block in blocks if block.strip())
    return _EXCESS_BLANK_LINES.sub("\n\n", cleaned)
