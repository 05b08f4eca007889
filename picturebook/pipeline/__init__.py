"""
End-to-end orchestration for PictureBook story and illustration generation.
"""

from .pipeline import (
    AssemblyState,
    Book,
    BookAssembler,
    BookResult,
    ImageProvider,
    Page,
    ProgressCallback,
    StoryProvider,
    build_assembler,
)

__all__ = [
    "AssemblyState",
    "Book",
    "BookAssembler",
    "BookResult",
    "ImageProvider",
    "Page",
    "ProgressCallback",
    "StoryProvider",
    "build_assembler",
]
