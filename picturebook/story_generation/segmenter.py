"""
Utilities for splitting generated prose into illustrated paragraphs.
"""

from __future__ import annotations

import re

# A blank line is any line holding nothing but whitespace.
_BLANK_LINE_PATTERN = re.compile(r"\n\s*\n")


def segment_paragraphs(text: str) -> list[str]:
    """
    Split story text on blank lines into trimmed, non-empty paragraphs.

    Order of appearance is preserved and identical paragraphs are kept. An
    empty list means the story had no usable content; interpreting that is up
    to the caller.
    """
    if not text:
        return []

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs: list[str] = []
    for chunk in _BLANK_LINE_PATTERN.split(normalized):
        cleaned = chunk.strip()
        if cleaned:
            paragraphs.append(cleaned)
    return paragraphs
