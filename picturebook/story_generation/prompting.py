"""
Prompt construction utilities for the PictureBook story generation workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from picturebook.common.errors import InvalidInputError

DEFAULT_GENRE = "general"


class StoryLength(str, Enum):
    """Requested story length, which drives the word range and token budget."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @classmethod
    def parse(cls, value: "StoryLength | str | None") -> "StoryLength":
        if value is None:
            return cls.MEDIUM
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise InvalidInputError(
                f"Length must be one of {choices}, received {value!r}."
            ) from exc

    @property
    def word_range(self) -> str:
        return _WORD_RANGES[self]

    @property
    def max_tokens(self) -> int:
        return _MAX_TOKENS[self]


_WORD_RANGES = {
    StoryLength.SHORT: "200-400",
    StoryLength.MEDIUM: "500-800",
    StoryLength.LONG: "1000-1500",
}

_MAX_TOKENS = {
    StoryLength.SHORT: 600,
    StoryLength.MEDIUM: 1200,
    StoryLength.LONG: 2000,
}


@dataclass(frozen=True)
class GenerationRequest:
    """
    Immutable description of one book to generate.
    """

    prompt: str
    genre: str | None = None
    length: StoryLength = StoryLength.MEDIUM

    def __post_init__(self) -> None:
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise InvalidInputError("Prompt is required and must be a non-empty string.")
        if self.genre is not None and not isinstance(self.genre, str):
            raise InvalidInputError("Genre must be a string when provided.")

        object.__setattr__(self, "prompt", self.prompt.strip())
        object.__setattr__(self, "genre", (self.genre or "").strip() or None)
        object.__setattr__(self, "length", StoryLength.parse(self.length))

    @property
    def genre_label(self) -> str:
        return self.genre or DEFAULT_GENRE


@dataclass(frozen=True)
class StoryPrompt:
    """
    Container for the system and user prompts passed to the chat model.
    """

    system: str
    user: str


def build_story_prompt(request: GenerationRequest) -> StoryPrompt:
    """
    Build the prompt pair used to solicit a complete story from the LLM.
    """
    system_prompt = (
        "You are a creative storyteller. "
        f"Generate an engaging {request.genre_label} story based on the user's prompt. "
        f"The story should be {request.length.value} length "
        f"({request.length.word_range} words approximately). "
        "Make it creative, engaging, and well-structured with a clear beginning, middle, and end."
    )
    user_prompt = f"Generate a story based on this prompt: {request.prompt}"

    return StoryPrompt(system=system_prompt, user=user_prompt)
