"""
Prompt construction utilities for PictureBook illustrations.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PREFIX_CHARS = 100


@dataclass(frozen=True)
class IllustrationRequest:
    """
    Everything needed to illustrate one paragraph of the story.

    Parameters
    ----------
    prompt:
        The book-level prompt the reader typed.
    paragraph:
        Full paragraph text for the page.
    ordinal:
        Zero-based position of the paragraph within the book.
    prefix_chars:
        How much of the paragraph is folded into the image prompt.
    """

    prompt: str
    paragraph: str
    ordinal: int
    prefix_chars: int = DEFAULT_PREFIX_CHARS

    @property
    def image_prompt(self) -> str:
        return build_illustration_prompt(
            self.prompt,
            self.paragraph,
            prefix_chars=self.prefix_chars,
        )


def build_illustration_prompt(
    prompt: str,
    paragraph: str,
    *,
    prefix_chars: int = DEFAULT_PREFIX_CHARS,
) -> str:
    """
    Combine the book prompt with a bounded prefix of the paragraph text.
    """
    if prefix_chars <= 0:
        raise ValueError("prefix_chars must be a positive integer.")

    return f"{prompt}, scene: {paragraph[:prefix_chars]}"
