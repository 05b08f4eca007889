"""
PictureBook package exposing story generation, book assembly, and PDF tooling.
"""

from .common import PictureBookSettings
from .pdf_generation import BookPDFBuilder
from .pipeline import (
    AssemblyState,
    Book,
    BookAssembler,
    BookResult,
    Page,
    build_assembler,
)

__all__ = [
    "AssemblyState",
    "Book",
    "BookAssembler",
    "BookResult",
    "BookPDFBuilder",
    "Page",
    "PictureBookSettings",
    "build_assembler",
]
