"""
CLI to generate an illustrated PictureBook from a single prompt.

Usage:
    python scripts/generate_book.py \
        --prompt "A lighthouse keeper befriends a lost whale" \
        --length short \
        --output book.yaml

Environment variables:
    OPENROUTER_API_KEY   - credential for story generation
    REPLICATE_API_TOKEN  - credential for illustrations
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from picturebook import PictureBookSettings, build_assembler  # noqa: E402
from picturebook.common.errors import IMAGE_UNAVAILABLE_MESSAGE, PictureBookError  # noqa: E402


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for book generation.
    """

    def __init__(self) -> None:
        self._page_bar: tqdm | None = None

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "state:generating_story":
                self._write("[1/3] Generating story...")
            case "state:segmenting":
                word_count = payload.get("word_count")
                summary = f" (~{word_count} words)" if word_count else ""
                self._write(f"[1/3] Story complete{summary}. Splitting into paragraphs...")
            case "state:generating_images":
                total = payload.get("total_pages", 0)
                self._write(f"[2/3] Generating {total} images for each paragraph...")
                self._page_bar = tqdm(total=total, desc="Illustrations", unit="image")
            case "image:done" | "image:failed":
                if self._page_bar is not None:
                    if stage == "image:failed":
                        self._page_bar.set_postfix_str(
                            f"page {payload.get('ordinal', 0) + 1} failed"
                        )
                    self._page_bar.update(1)
            case "state:assembled":
                self.close()
                self._write("[3/3] Book assembled.")
            case "state:errored":
                self.close()

    def close(self) -> None:
        if self._page_bar is not None:
            self._page_bar.close()
            self._page_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate an illustrated story book from a prompt.")
    parser.add_argument("--prompt", required=True, help="What the story should be about.")
    parser.add_argument("--genre", default=None, help="Optional genre hint (default: general).")
    parser.add_argument(
        "--length",
        choices=["short", "medium", "long"],
        default=None,
        help="Story length (default: PICTUREBOOK_STORY_LENGTH or medium).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML/JSON settings file layered over environment variables.",
    )
    parser.add_argument(
        "--output",
        default="picturebook.yaml",
        help="Output YAML file storing the pages and image references.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = (
        PictureBookSettings.from_file(args.config)
        if args.config
        else PictureBookSettings.from_env()
    )
    assembler = build_assembler(settings)
    tracker = ProgressTracker()

    try:
        result = assembler.generate_book(
            args.prompt,
            genre=args.genre,
            length=args.length or settings.default_length,
            progress_callback=tracker,
        )
    except PictureBookError as exc:
        print(f"Error: {exc.user_message}", file=sys.stderr)
        return 1
    finally:
        tracker.close()

    for page in result.pages:
        if page.degraded:
            tqdm.write(f"  Page {page.ordinal + 1}: {IMAGE_UNAVAILABLE_MESSAGE}")

    output_path = Path(args.output)
    output_path.write_text(result.to_yaml(), encoding="utf-8")
    print(
        f"Saved {len(result.pages)} pages to {output_path} "
        f"({result.degraded_count} without images)."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
