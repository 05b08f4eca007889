"""
Story Provider producing prose via LiteLLM-compatible models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from picturebook.common import (
    ChatResult,
    CompletionCallable,
    call_chat_completion,
    translate_completion_error,
)
from picturebook.common.config import (
    DEFAULT_APP_TITLE,
    DEFAULT_SITE_URL,
    DEFAULT_STORY_MODEL,
    PictureBookSettings,
)
from picturebook.common.errors import EmptyContentError, NotConfiguredError, UpstreamError

from .prompting import GenerationRequest, StoryLength, StoryPrompt, build_story_prompt


@dataclass(frozen=True)
class StoryResult:
    """Generated prose together with the request hints it was produced for."""

    text: str
    genre: str
    length: StoryLength
    word_count: int

    @classmethod
    def from_text(cls, text: str, request: GenerationRequest) -> "StoryResult":
        cleaned = text.strip()
        return cls(
            text=cleaned,
            genre=request.genre_label,
            length=request.length,
            word_count=len(cleaned.split()),
        )


class StoryGenerator:
    """
    Turns a :class:`GenerationRequest` into story prose with a single chat completion.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_STORY_MODEL,
        site_url: str = DEFAULT_SITE_URL,
        app_title: str = DEFAULT_APP_TITLE,
        temperature: float = 0.8,
        completion_fn: CompletionCallable | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._site_url = site_url
        self._app_title = app_title
        self._temperature = temperature
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion

    @classmethod
    def from_settings(
        cls,
        settings: PictureBookSettings,
        *,
        completion_fn: CompletionCallable | None = None,
    ) -> "StoryGenerator":
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.story_model,
            site_url=settings.site_url,
            app_title=settings.app_title,
            temperature=settings.story_temperature,
            completion_fn=completion_fn,
        )

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._model

    def generate_story(self, request: GenerationRequest, **response_kwargs: Any) -> StoryResult:
        """
        Invoke the configured LLM once and return the story text.

        Raises an ``UpstreamError`` subclass on any failure; there is no retry here.
        """
        if not self._api_key:
            raise NotConfiguredError("Story provider API key not configured.")

        prompt: StoryPrompt = build_story_prompt(request)
        messages = [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ]

        try:
            result: ChatResult = self._completion_fn(
                model=self._model,
                messages=messages,
                temperature=self._temperature,
                max_tokens=request.length.max_tokens,
                api_key=self._api_key,
                extra_headers={
                    "HTTP-Referer": self._site_url,
                    "X-Title": self._app_title,
                },
                **response_kwargs,
            )
        except UpstreamError:
            raise
        except Exception as exc:
            raise translate_completion_error(exc) from exc

        if not result.text or not result.text.strip():
            raise EmptyContentError("No story content generated.")

        return StoryResult.from_text(result.text, request)
