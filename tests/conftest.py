"""Pytest configuration and shared fakes for PictureBook tests."""

import threading
import time

import pytest

from picturebook.common.errors import UnknownUpstreamError, UpstreamError
from picturebook.story_generation import GenerationRequest, StoryResult


class FakeStoryProvider:
    """Returns canned text, or raises the configured error."""

    def __init__(self, text="", error: UpstreamError | None = None):
        self.text = text
        self.error = error
        self.calls: list[GenerationRequest] = []

    def generate_story(self, request: GenerationRequest) -> StoryResult:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return StoryResult.from_text(self.text, request)


class FakeImageProvider:
    """
    Returns ``/generated_images/<n>.jpg`` for each prompt.

    ``fail_on`` holds substrings; a prompt containing one of them fails.
    ``delays`` maps a substring to a sleep in seconds before answering.
    """

    def __init__(self, fail_on=(), delays=None, error_factory=None):
        self.fail_on = tuple(fail_on)
        self.delays = dict(delays or {})
        self.error_factory = error_factory or (lambda: UnknownUpstreamError("boom"))
        self.prompts: list[str] = []
        self.completion_order: list[str] = []
        self._lock = threading.Lock()

    def generate_image(self, prompt: str) -> str:
        with self._lock:
            self.prompts.append(prompt)
            number = len(self.prompts)

        for marker, delay in self.delays.items():
            if marker in prompt:
                time.sleep(delay)

        with self._lock:
            self.completion_order.append(prompt)

        if any(marker in prompt for marker in self.fail_on):
            raise self.error_factory()
        return f"/generated_images/{number}.jpg"


THREE_PARAGRAPH_STORY = (
    "Once upon a time a fox found a key.\n"
    "\n"
    "The key opened a door in the old oak.\n"
    "   \n"
    "Behind the door was a library of acorns."
)


@pytest.fixture
def story_provider():
    return FakeStoryProvider(text=THREE_PARAGRAPH_STORY)


@pytest.fixture
def image_provider():
    return FakeImageProvider()
