"""
PDF rendering for assembled PictureBook books.
"""

from .builder import PAGE_SIZES, BookPDFBuilder

__all__ = ["BookPDFBuilder", "PAGE_SIZES"]
