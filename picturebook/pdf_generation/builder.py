"""
High-level utilities for rendering assembled PictureBook books into printable PDFs.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional

import requests
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Frame, Paragraph

from picturebook.common.errors import IMAGE_UNAVAILABLE_MESSAGE
from picturebook.pipeline.pipeline import BookResult, Page


@dataclass(frozen=True)
class PageLayoutConfig:
    text_background: colors.Color
    image_background: colors.Color
    cover_background: colors.Color
    placeholder_background: colors.Color
    text_color: colors.Color
    caption_color: colors.Color


DEFAULT_LAYOUT = PageLayoutConfig(
    text_background=colors.HexColor("#FFFDF7"),
    image_background=colors.HexColor("#EEF2FF"),
    cover_background=colors.HexColor("#3B3F8F"),
    placeholder_background=colors.HexColor("#E5E7EB"),
    text_color=colors.HexColor("#1F2937"),
    caption_color=colors.HexColor("#6B7280"),
)


PAGE_SIZES = {
    "a4": A4,
    "letter": LETTER,
    "square": (8 * inch, 8 * inch),
}


class BookPDFBuilder:
    """
    Render an assembled book into a printable PDF.

    The builder creates a cover page with the prompt, then one text page and one
    illustration page per story page. Degraded pages get an "Image unavailable"
    panel in place of the illustration.
    """

    def __init__(
        self,
        *,
        page_size: tuple[float, float] = PAGE_SIZES["square"],
        margin_mm: float = 18.0,
        layout: PageLayoutConfig = DEFAULT_LAYOUT,
        image_root: Path | str | None = None,
        base_url: str | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.page_size = page_size
        self.margin = margin_mm * mm
        self.layout = layout
        self.image_root = Path(image_root) if image_root is not None else None
        self.base_url = base_url.rstrip("/") if base_url else None
        self.request_timeout = request_timeout

        self.title_style = ParagraphStyle(
            name="BookTitle",
            fontName="Helvetica-Bold",
            fontSize=26,
            leading=30,
            alignment=TA_CENTER,
            textColor=colors.white,
            spaceAfter=12,
        )
        self.subtitle_style = ParagraphStyle(
            name="BookSubtitle",
            fontName="Helvetica",
            fontSize=14,
            leading=18,
            alignment=TA_CENTER,
            textColor=colors.white,
        )
        self.body_style = ParagraphStyle(
            name="Body",
            fontName="Helvetica",
            fontSize=16,
            leading=24,
            alignment=TA_JUSTIFY,
            textColor=self.layout.text_color,
        )
        self.placeholder_style = ParagraphStyle(
            name="Placeholder",
            fontName="Helvetica-Oblique",
            fontSize=16,
            leading=20,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )
        self.footer_style = ParagraphStyle(
            name="Footer",
            fontName="Helvetica-Oblique",
            fontSize=10,
            leading=12,
            alignment=TA_CENTER,
            textColor=self.layout.caption_color,
        )

    def build_from_yaml(self, book_path: Path | str, output_path: Path | str) -> None:
        self.build(BookResult.from_yaml(book_path), output_path)

    def build(self, result: BookResult, output_path: Path | str) -> None:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        pdf = canvas.Canvas(str(output_file), pagesize=self.page_size)
        width, height = self.page_size

        self._draw_cover_page(pdf, result, width, height)

        total = len(result.pages)
        for page in result.pages:
            self._draw_text_page(pdf, page, total, width, height)
            self._draw_image_page(pdf, page, width, height)

        pdf.save()

    # ------------------------------------------------------------------ cover rendering

    def _draw_cover_page(
        self,
        pdf: canvas.Canvas,
        result: BookResult,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.cover_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - 2 * self.margin,
            showBoundary=0,
        )

        story = result.book.story
        intro = [
            Paragraph(_escape(result.book.prompt), self.title_style),
            Paragraph(
                f"A {_escape(story.genre)} story in {len(result.pages)} pages",
                self.subtitle_style,
            ),
        ]
        if result.degraded_count:
            intro.append(
                Paragraph(
                    f"{result.degraded_count} illustration(s) could not be generated.",
                    self.subtitle_style,
                )
            )

        frame.addFromList(intro, pdf)
        pdf.showPage()

    # ------------------------------------------------------------------ text pages

    def _draw_text_page(
        self,
        pdf: canvas.Canvas,
        page: Page,
        total: int,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.text_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        frame = Frame(
            self.margin,
            self.margin,
            width - 2 * self.margin,
            height - 2 * self.margin,
            showBoundary=0,
        )
        text = _escape(page.text).replace("\n", "<br/>")
        frame.addFromList([Paragraph(text, self.body_style)], pdf)

        self._draw_footer(pdf, f"Page {page.ordinal + 1} of {total}", width)
        pdf.showPage()

    # ------------------------------------------------------------------ image pages

    def _draw_image_page(
        self,
        pdf: canvas.Canvas,
        page: Page,
        width: float,
        height: float,
    ) -> None:
        pdf.setFillColor(self.layout.image_background)
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        image_reader = self._load_image(page.image_ref) if page.image_ref else None

        if image_reader is not None:
            img_width, img_height = image_reader.getSize()
            scale = min(
                (width - 2 * self.margin) / img_width,
                (height - 2 * self.margin) / img_height,
            )
            draw_width = img_width * scale
            draw_height = img_height * scale
            pdf.drawImage(
                image_reader,
                (width - draw_width) / 2,
                (height - draw_height) / 2,
                draw_width,
                draw_height,
                preserveAspectRatio=True,
                mask="auto",
            )
        else:
            self._draw_placeholder(pdf, width, height)

        self._draw_footer(pdf, f"Illustration for page {page.ordinal + 1}", width)
        pdf.showPage()

    # ------------------------------------------------------------------ helpers

    def _draw_placeholder(self, pdf: canvas.Canvas, width: float, height: float) -> None:
        box_width = width - 4 * self.margin
        box_height = height / 3
        x = (width - box_width) / 2
        y = (height - box_height) / 2

        pdf.saveState()
        pdf.setFillColor(self.layout.placeholder_background)
        pdf.roundRect(x, y, box_width, box_height, 18, stroke=0, fill=1)
        pdf.restoreState()

        frame = Frame(x, y + box_height / 2 - 20, box_width, 40, showBoundary=0)
        frame.addFromList([Paragraph(IMAGE_UNAVAILABLE_MESSAGE, self.placeholder_style)], pdf)

    def _draw_footer(self, pdf: canvas.Canvas, text: str, width: float) -> None:
        footer_frame = Frame(
            self.margin,
            10,
            width - 2 * self.margin,
            20,
            showBoundary=0,
        )
        footer_frame.addFromList([Paragraph(text, self.footer_style)], pdf)

    def _load_image(self, image_ref: str) -> Optional[ImageReader]:
        if image_ref.lower().startswith(("http://", "https://")):
            return self._fetch_image(image_ref)

        if self.image_root is not None:
            candidate = self.image_root / image_ref.rsplit("/", maxsplit=1)[-1]
            if candidate.exists():
                return ImageReader(str(candidate))

        local = Path(image_ref)
        if local.exists():
            return ImageReader(str(local))

        if self.base_url is not None:
            return self._fetch_image(f"{self.base_url}/{image_ref.lstrip('/')}")
        return None

    def _fetch_image(self, url: str) -> Optional[ImageReader]:
        try:
            response = requests.get(url, timeout=self.request_timeout)
            response.raise_for_status()
        except requests.RequestException:
            return None
        return ImageReader(BytesIO(response.content))


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
