"""
Story generation utilities: prompt templates, the story provider, and paragraph segmentation.
"""

from .prompting import GenerationRequest, StoryLength, StoryPrompt, build_story_prompt
from .segmenter import segment_paragraphs
from .story_service import StoryGenerator, StoryResult

__all__ = [
    "GenerationRequest",
    "StoryLength",
    "StoryPrompt",
    "build_story_prompt",
    "segment_paragraphs",
    "StoryGenerator",
    "StoryResult",
]
