"""
Render a PictureBook YAML into a printable PDF.

Usage:
    python scripts/render_book_pdf.py \
        --book picturebook.yaml \
        --image-root public/generated_images \
        --output picturebook.pdf
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on the Python path.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from picturebook import BookPDFBuilder, BookResult  # noqa: E402
from picturebook.pdf_generation.builder import PAGE_SIZES  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert a PictureBook YAML into a storybook PDF."
    )
    parser.add_argument(
        "--book",
        required=True,
        help="Path to the book YAML (output of generate_book.py).",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Destination PDF file path.",
    )
    parser.add_argument(
        "--image-root",
        default="public/generated_images",
        help="Directory holding stored illustrations (default: public/generated_images).",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Optional site URL used to fetch illustrations not found locally.",
    )
    parser.add_argument(
        "--page-size",
        choices=sorted(PAGE_SIZES.keys()),
        default="square",
        help="Page size to render (default: square).",
    )
    parser.add_argument(
        "--margin-mm",
        type=float,
        default=18.0,
        help="Page margin in millimetres (default: 18).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Timeout in seconds for downloading illustration assets (default: 30).",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    result = BookResult.from_yaml(args.book)
    builder = BookPDFBuilder(
        page_size=PAGE_SIZES[args.page_size],
        margin_mm=args.margin_mm,
        image_root=args.image_root,
        base_url=args.base_url,
        request_timeout=args.timeout,
    )
    builder.build(result, args.output)

    print(f"Rendered storybook PDF to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
