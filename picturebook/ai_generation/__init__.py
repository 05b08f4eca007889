"""
AI image generation package for PictureBook.
"""

from .prompting import IllustrationRequest, build_illustration_prompt
from .replicate_service import ReplicateImageGenerator
from .storage import LocalImageStore, build_image_filename

__all__ = [
    "IllustrationRequest",
    "build_illustration_prompt",
    "ReplicateImageGenerator",
    "LocalImageStore",
    "build_image_filename",
]
