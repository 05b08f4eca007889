import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import THREE_PARAGRAPH_STORY, FakeImageProvider, FakeStoryProvider
from picturebook.common import PictureBookSettings
from picturebook.common.errors import (
    EmptyContentError,
    ErrorKind,
    InvalidCredentialError,
    InvalidInputError,
    NotConfiguredError,
    QuotaExceededError,
    UnknownUpstreamError,
)
from picturebook.pipeline import AssemblyState, BookAssembler, BookResult, build_assembler
from picturebook.story_generation import StoryLength


def make_assembler(story_provider, image_provider, **kwargs):
    return BookAssembler(
        story_generator=story_provider,
        image_generator=image_provider,
        **kwargs,
    )


class TestGenerateBook:
    def test_one_page_per_paragraph_in_order(self, story_provider, image_provider):
        result = make_assembler(story_provider, image_provider).generate_book("a fox and a key")

        assert [page.text for page in result.pages] == [
            "Once upon a time a fox found a key.",
            "The key opened a door in the old oak.",
            "Behind the door was a library of acorns.",
        ]
        assert [page.ordinal for page in result.pages] == [0, 1, 2]
        assert all(page.image_ref for page in result.pages)
        assert result.degraded_count == 0
        assert len(story_provider.calls) == 1
        assert len(image_provider.prompts) == 3

    def test_request_hints_reach_story_provider(self, story_provider, image_provider):
        make_assembler(story_provider, image_provider).generate_book(
            "  a fox  ", genre="fable", length="short"
        )

        request = story_provider.calls[0]
        assert request.prompt == "a fox"
        assert request.genre == "fable"
        assert request.length is StoryLength.SHORT

    def test_image_prompt_uses_bounded_paragraph_prefix(self, image_provider):
        long_paragraph = "x" * 300
        provider = FakeStoryProvider(text=long_paragraph)

        make_assembler(provider, image_provider, illustration_prefix_chars=20).generate_book(
            "castle"
        )

        assert image_provider.prompts == ["castle, scene: " + "x" * 20]

    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t", None, 42])
    def test_invalid_prompt_makes_no_upstream_calls(self, prompt, story_provider, image_provider):
        with pytest.raises(InvalidInputError):
            make_assembler(story_provider, image_provider).generate_book(prompt)

        assert story_provider.calls == []
        assert image_provider.prompts == []

    def test_unknown_length_is_invalid_input(self, story_provider, image_provider):
        with pytest.raises(InvalidInputError):
            make_assembler(story_provider, image_provider).generate_book("fox", length="epic")
        assert story_provider.calls == []

    @pytest.mark.parametrize(
        "error",
        [
            QuotaExceededError("slow down"),
            NotConfiguredError("no key"),
            InvalidCredentialError("bad key"),
            EmptyContentError("nothing"),
        ],
    )
    def test_story_failure_is_fatal_and_skips_images(self, error, image_provider):
        provider = FakeStoryProvider(error=error)

        with pytest.raises(type(error)) as exc_info:
            make_assembler(provider, image_provider).generate_book("fox")

        assert exc_info.value.kind is error.kind
        assert image_provider.prompts == []

    def test_quota_error_asks_to_try_again_later(self, image_provider):
        provider = FakeStoryProvider(error=QuotaExceededError("slow down"))

        with pytest.raises(QuotaExceededError) as exc_info:
            make_assembler(provider, image_provider).generate_book("fox")

        assert exc_info.value.retryable
        assert "try again later" in exc_info.value.user_message

    @pytest.mark.parametrize("text", ["\n\n", "   \n  \n\t\n"])
    def test_story_without_paragraphs_is_empty_content(self, text, image_provider):
        provider = FakeStoryProvider(text=text)

        with pytest.raises(EmptyContentError):
            make_assembler(provider, image_provider).generate_book("fox")

        assert image_provider.prompts == []

    def test_single_image_failure_degrades_one_page(self, story_provider):
        images = FakeImageProvider(fail_on=["door in the old oak"])

        result = make_assembler(story_provider, images).generate_book("fox")

        assert len(result.pages) == 3
        assert result.pages[0].image_ref is not None
        assert result.pages[1].image_ref is None
        assert result.pages[1].degraded
        assert result.pages[1].error is ErrorKind.UNKNOWN
        assert result.pages[1].text == "The key opened a door in the old oak."
        assert result.pages[2].image_ref is not None
        assert result.degraded_count == 1

    def test_every_image_failing_still_assembles(self, story_provider):
        images = FakeImageProvider(
            fail_on=["fox"], error_factory=lambda: QuotaExceededError("limit")
        )

        result = make_assembler(story_provider, images).generate_book("fox")

        assert len(result.pages) == 3
        assert result.degraded_count == 3
        assert {page.error for page in result.pages} == {ErrorKind.QUOTA_EXCEEDED}

    def test_untyped_image_exception_degrades_page(self, story_provider):
        images = MagicMock()
        images.generate_image.side_effect = [
            "/generated_images/a.jpg",
            RuntimeError("socket closed"),
            "/generated_images/c.jpg",
        ]

        result = make_assembler(story_provider, images, max_concurrent_images=1).generate_book(
            "fox"
        )

        assert [page.degraded for page in result.pages] == [False, True, False]
        assert result.pages[1].error is ErrorKind.UNKNOWN

    def test_empty_reference_counts_as_degraded(self, story_provider):
        images = MagicMock()
        images.generate_image.return_value = ""

        result = make_assembler(story_provider, images).generate_book("fox")

        assert result.degraded_count == 3

    @pytest.mark.parametrize(
        "delays",
        [
            {"found a key": 0.15, "old oak": 0.08},
            {"old oak": 0.15, "acorns": 0.08},
            {"acorns": 0.15, "found a key": 0.08},
        ],
    )
    def test_page_order_ignores_completion_order(self, story_provider, delays):
        images = FakeImageProvider(delays=delays)

        result = make_assembler(story_provider, images).generate_book("fox")

        assert [page.text for page in result.pages] == [
            "Once upon a time a fox found a key.",
            "The key opened a door in the old oak.",
            "Behind the door was a library of acorns.",
        ]
        slowest = next(iter(delays))
        assert slowest in images.completion_order[-1]

    def test_concurrency_cap_is_respected(self, story_provider):
        active = 0
        peak = 0
        lock = threading.Lock()

        def generate_image(prompt):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with lock:
                active -= 1
            return "/generated_images/x.jpg"

        images = MagicMock()
        images.generate_image.side_effect = generate_image

        make_assembler(story_provider, images, max_concurrent_images=1).generate_book("fox")

        assert peak == 1

    def test_progress_callback_reports_state_transitions(self, story_provider, image_provider):
        events = []

        make_assembler(story_provider, image_provider).generate_book(
            "fox", progress_callback=lambda stage, payload: events.append((stage, payload))
        )

        states = [stage for stage, _ in events if stage.startswith("state:")]
        assert states == [
            f"state:{AssemblyState.IDLE.value}",
            f"state:{AssemblyState.GENERATING_STORY.value}",
            f"state:{AssemblyState.SEGMENTING.value}",
            f"state:{AssemblyState.GENERATING_IMAGES.value}",
            f"state:{AssemblyState.ASSEMBLED.value}",
        ]
        image_events = [payload for stage, payload in events if stage == "image:done"]
        assert sorted(payload["completed"] for payload in image_events) == [1, 2, 3]

    def test_progress_callback_reports_errored_state(self, image_provider):
        events = []
        provider = FakeStoryProvider(error=QuotaExceededError("limit"))

        with pytest.raises(QuotaExceededError):
            make_assembler(provider, image_provider).generate_book(
                "fox", progress_callback=lambda stage, payload: events.append((stage, payload))
            )

        stage, payload = events[-1]
        assert stage == "state:errored"
        assert payload == {"stage": "story", "error": "quota_exceeded"}

    def test_untyped_story_failure_is_unknown_and_reported(self, image_provider):
        events = []
        cause = ConnectionError("socket reset")
        provider = MagicMock()
        provider.generate_story.side_effect = cause

        with pytest.raises(UnknownUpstreamError) as exc_info:
            make_assembler(provider, image_provider).generate_book(
                "fox", progress_callback=lambda stage, payload: events.append((stage, payload))
            )

        assert exc_info.value.__cause__ is cause
        assert exc_info.value.details == {"cause": "socket reset"}
        assert image_provider.prompts == []
        assert events[-1] == ("state:errored", {"stage": "story", "error": "unknown"})


class TestBookResult:
    def test_yaml_round_trip(self, tmp_path, story_provider):
        images = FakeImageProvider(fail_on=["acorns"])
        result = make_assembler(story_provider, images).generate_book("fox", genre="fable")

        path = tmp_path / "book.yaml"
        path.write_text(result.to_yaml(), encoding="utf-8")
        loaded = BookResult.from_yaml(path)

        assert loaded.book.prompt == "fox"
        assert loaded.book.story.genre == "fable"
        assert loaded.book.story.text == THREE_PARAGRAPH_STORY
        assert [page.text for page in loaded.pages] == [page.text for page in result.pages]
        assert [page.image_ref for page in loaded.pages] == [
            page.image_ref for page in result.pages
        ]
        assert loaded.pages[2].error is ErrorKind.UNKNOWN
        assert loaded.degraded_count == 1

    def test_to_dict_exposes_caller_facing_shape(self, story_provider, image_provider):
        result = make_assembler(story_provider, image_provider).generate_book("fox")

        payload = result.to_dict()

        assert payload["degraded_count"] == 0
        assert payload["pages"][0]["text"] == "Once upon a time a fox found a key."
        assert payload["pages"][0]["image_url"].startswith("/generated_images/")

    def test_from_dict_requires_pages(self):
        with pytest.raises(ValueError):
            BookResult.from_dict({"prompt": "fox"})


class TestConstruction:
    def test_rejects_non_positive_prefix(self, story_provider, image_provider):
        with pytest.raises(ValueError):
            make_assembler(story_provider, image_provider, illustration_prefix_chars=0)

    def test_rejects_non_positive_concurrency_cap(self, story_provider, image_provider):
        with pytest.raises(ValueError):
            make_assembler(story_provider, image_provider, max_concurrent_images=0)

    def test_build_assembler_without_credentials_degrades_images(self, tmp_path):
        settings = PictureBookSettings(image_output_dir=str(tmp_path))
        story = FakeStoryProvider(text="One.\n\nTwo.")

        assembler = build_assembler(settings, story_generator=story)
        result = assembler.generate_book("fox")

        assert result.degraded_count == 2
        assert {page.error for page in result.pages} == {ErrorKind.NOT_CONFIGURED}

    def test_build_assembler_without_story_key_is_not_configured(self, tmp_path):
        settings = PictureBookSettings(image_output_dir=str(tmp_path))

        with pytest.raises(NotConfiguredError):
            build_assembler(settings).generate_book("fox")
