"""
Orchestrates the PictureBook pipeline from prompt to story, paragraphs, and illustrations.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

import yaml

from picturebook.ai_generation import IllustrationRequest, ReplicateImageGenerator
from picturebook.ai_generation.prompting import DEFAULT_PREFIX_CHARS
from picturebook.common import PictureBookSettings
from picturebook.common.errors import (
    EmptyContentError,
    ErrorKind,
    PictureBookError,
    UnknownUpstreamError,
    UpstreamError,
)
from picturebook.story_generation import (
    GenerationRequest,
    StoryGenerator,
    StoryLength,
    StoryResult,
    segment_paragraphs,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]


class StoryProvider(Protocol):
    def generate_story(self, request: GenerationRequest) -> StoryResult: ...


class ImageProvider(Protocol):
    def generate_image(self, prompt: str) -> str: ...


class AssemblyState(str, Enum):
    IDLE = "idle"
    GENERATING_STORY = "generating_story"
    SEGMENTING = "segmenting"
    GENERATING_IMAGES = "generating_images"
    ASSEMBLED = "assembled"
    ERRORED = "errored"


@dataclass(frozen=True)
class Page:
    """A paragraph of the story and, when generation succeeded, its illustration."""

    ordinal: int
    text: str
    image_ref: str | None = None
    error: ErrorKind | None = None

    @property
    def degraded(self) -> bool:
        return self.image_ref is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "text": self.text,
            "image_url": self.image_ref,
            "error": self.error.value if self.error is not None else None,
        }


@dataclass(frozen=True)
class Book:
    """Ordered pages for one prompt, one page per paragraph."""

    prompt: str
    story: StoryResult
    pages: tuple[Page, ...]


@dataclass(frozen=True)
class BookResult:
    """Aggregated output of the PictureBook pipeline."""

    book: Book
    degraded_count: int

    @property
    def pages(self) -> tuple[Page, ...]:
        return self.book.pages

    def to_dict(self) -> dict[str, Any]:
        story = self.book.story
        return {
            "prompt": self.book.prompt,
            "genre": story.genre,
            "length": story.length.value,
            "word_count": story.word_count,
            "story": story.text,
            "degraded_count": self.degraded_count,
            "pages": [page.to_dict() for page in self.book.pages],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BookResult":
        if "prompt" not in payload:
            raise ValueError("Book payload must include 'prompt'.")
        if "pages" not in payload:
            raise ValueError("Book payload must include 'pages'.")

        pages: list[Page] = []
        for ordinal, entry in enumerate(payload.get("pages") or []):
            try:
                text = str(entry["text"]).strip()
            except (KeyError, TypeError) as exc:
                raise ValueError(f"Invalid page entry: {entry}") from exc
            if not text:
                raise ValueError(f"Page {ordinal} has no text.")

            image_ref = entry.get("image_url") or None
            raw_error = entry.get("error")
            error = ErrorKind(raw_error) if raw_error else None
            pages.append(Page(ordinal=ordinal, text=text, image_ref=image_ref, error=error))

        story_text = str(payload.get("story") or "\n\n".join(page.text for page in pages))
        story = StoryResult(
            text=story_text,
            genre=str(payload.get("genre") or "general"),
            length=StoryLength.parse(payload.get("length")),
            word_count=int(payload.get("word_count") or len(story_text.split())),
        )
        book = Book(prompt=str(payload["prompt"]), story=story, pages=tuple(pages))
        return cls(book=book, degraded_count=sum(1 for page in pages if page.degraded))

    @classmethod
    def from_yaml(cls, source: str | Path) -> "BookResult":
        path = Path(source)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not isinstance(data, Mapping):
            raise ValueError("Book YAML must deserialize to a mapping.")
        return cls.from_dict(data)


class BookAssembler:
    """
    Drives story generation, segmentation, and concurrent per-paragraph illustration.

    The assembler keeps no per-call state, so one instance can serve concurrent
    ``generate_book`` calls.
    """

    def __init__(
        self,
        *,
        story_generator: StoryProvider,
        image_generator: ImageProvider,
        illustration_prefix_chars: int = DEFAULT_PREFIX_CHARS,
        max_concurrent_images: int | None = None,
    ) -> None:
        if illustration_prefix_chars <= 0:
            raise ValueError("illustration_prefix_chars must be a positive integer.")
        if max_concurrent_images is not None and max_concurrent_images <= 0:
            raise ValueError("max_concurrent_images must be a positive integer when set.")

        self._story_generator = story_generator
        self._image_generator = image_generator
        self._illustration_prefix_chars = illustration_prefix_chars
        self._max_concurrent_images = max_concurrent_images

    def generate_book(
        self,
        prompt: str,
        *,
        genre: str | None = None,
        length: StoryLength | str = StoryLength.MEDIUM,
        progress_callback: ProgressCallback | None = None,
    ) -> BookResult:
        """
        Build a complete book for ``prompt``.

        Raises ``InvalidInputError`` before any upstream call when the prompt is
        unusable, the story provider's ``UpstreamError`` when story generation
        fails, and ``EmptyContentError`` when the story has no paragraphs. Image
        failures never raise; they produce degraded pages.
        """
        self._notify(progress_callback, AssemblyState.IDLE)
        try:
            request = GenerationRequest(prompt=prompt, genre=genre, length=length)
        except PictureBookError:
            self._notify(progress_callback, AssemblyState.ERRORED, stage="validation")
            raise
        return self.assemble(request, progress_callback=progress_callback)

    def assemble(
        self,
        request: GenerationRequest,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> BookResult:
        self._notify(progress_callback, AssemblyState.GENERATING_STORY)
        try:
            story = self._story_generator.generate_story(request)
        except UpstreamError as exc:
            logger.info("Story generation failed (%s): %s", exc.kind.value, exc.message)
            self._notify(
                progress_callback,
                AssemblyState.ERRORED,
                stage="story",
                error=exc.kind.value,
            )
            raise
        except Exception as exc:
            error = UnknownUpstreamError(
                "Failed to generate story.", details={"cause": str(exc)}
            )
            logger.info("Story generation failed unexpectedly: %s", exc)
            self._notify(
                progress_callback,
                AssemblyState.ERRORED,
                stage="story",
                error=error.kind.value,
            )
            raise error from exc

        self._notify(progress_callback, AssemblyState.SEGMENTING, word_count=story.word_count)
        paragraphs = segment_paragraphs(story.text)
        if not paragraphs:
            exc = EmptyContentError("No paragraphs found in the generated story.")
            logger.info("Story for %r had no usable paragraphs.", request.prompt)
            self._notify(
                progress_callback,
                AssemblyState.ERRORED,
                stage="segmenting",
                error=exc.kind.value,
            )
            raise exc

        self._notify(
            progress_callback,
            AssemblyState.GENERATING_IMAGES,
            total_pages=len(paragraphs),
        )
        pages = self._illustrate(request, paragraphs, progress_callback)
        degraded_count = sum(1 for page in pages if page.degraded)

        self._notify(
            progress_callback,
            AssemblyState.ASSEMBLED,
            total_pages=len(pages),
            degraded_count=degraded_count,
        )
        book = Book(prompt=request.prompt, story=story, pages=tuple(pages))
        return BookResult(book=book, degraded_count=degraded_count)

    def _illustrate(
        self,
        request: GenerationRequest,
        paragraphs: Sequence[str],
        progress_callback: ProgressCallback | None,
    ) -> list[Page]:
        illustration_requests = [
            IllustrationRequest(
                prompt=request.prompt,
                paragraph=paragraph,
                ordinal=ordinal,
                prefix_chars=self._illustration_prefix_chars,
            )
            for ordinal, paragraph in enumerate(paragraphs)
        ]
        total = len(illustration_requests)
        slots: list[Page | None] = [None] * total
        max_workers = min(self._max_concurrent_images or total, total)

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="illustrate") as pool:
            futures: dict[Future[Page], int] = {
                pool.submit(self._illustrate_page, item): item.ordinal
                for item in illustration_requests
            }
            for completed, future in enumerate(as_completed(futures), start=1):
                ordinal = futures[future]
                page = future.result()
                slots[ordinal] = page
                self._notify_page(progress_callback, page, completed=completed, total=total)

        return [page for page in slots if page is not None]

    def _illustrate_page(self, item: IllustrationRequest) -> Page:
        try:
            image_ref = self._image_generator.generate_image(item.image_prompt)
        except UpstreamError as exc:
            logger.warning(
                "Failed to generate image for paragraph %d (%s): %s",
                item.ordinal + 1,
                exc.kind.value,
                exc.message,
            )
            return Page(ordinal=item.ordinal, text=item.paragraph, error=exc.kind)
        except Exception:
            logger.warning(
                "Failed to generate image for paragraph %d",
                item.ordinal + 1,
                exc_info=True,
            )
            return Page(ordinal=item.ordinal, text=item.paragraph, error=ErrorKind.UNKNOWN)

        if not image_ref:
            logger.warning("Image provider returned no reference for paragraph %d", item.ordinal + 1)
            return Page(ordinal=item.ordinal, text=item.paragraph, error=ErrorKind.EMPTY_CONTENT)
        return Page(ordinal=item.ordinal, text=item.paragraph, image_ref=image_ref)

    def _notify_page(
        self,
        callback: ProgressCallback | None,
        page: Page,
        *,
        completed: int,
        total: int,
    ) -> None:
        if callback is None:
            return
        stage = "image:failed" if page.degraded else "image:done"
        payload: dict[str, Any] = {
            "ordinal": page.ordinal,
            "completed": completed,
            "total_pages": total,
        }
        if page.error is not None:
            payload["error"] = page.error.value
        callback(stage, payload)

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        state: AssemblyState,
        **payload: Any,
    ) -> None:
        logger.debug("Book assembly state -> %s %s", state.value, payload)
        if callback is not None:
            callback(f"state:{state.value}", payload)


def build_assembler(
    settings: PictureBookSettings,
    *,
    story_generator: StoryProvider | None = None,
    image_generator: ImageProvider | None = None,
) -> BookAssembler:
    """
    Wire the default providers from ``settings`` into a :class:`BookAssembler`.
    """
    return BookAssembler(
        story_generator=story_generator or StoryGenerator.from_settings(settings),
        image_generator=image_generator or ReplicateImageGenerator.from_settings(settings),
        illustration_prefix_chars=settings.illustration_prefix_chars,
        max_concurrent_images=settings.max_concurrent_images,
    )
