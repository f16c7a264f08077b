"""Prompts module - centralized prompt templates for AI services.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import PROMPT_VERSIONS, strip_markdown_code_blocks
    from services.prompts import SCRIPT_SYSTEM_PROMPT_V1, STYLE_ENHANCEMENTS
"""

from services.prompts._base import strip_markdown_code_blocks
from services.prompts.images import (
    DEFAULT_IMAGE_STYLE,
    ORIENTATION_INSTRUCTIONS,
    PORTRAIT_CORRECTION_PROMPT_V1,
    SCENE_IMAGE_PROMPT_V1,
    STYLE_ENHANCEMENTS,
)
from services.prompts.script_generation import (
    DEFAULT_SCRIPT_STYLE,
    MAX_WORDS_PER_SECOND,
    MIN_WORDS_PER_SECOND,
    SCRIPT_SCENE_LINE,
    SCRIPT_STYLE_INSTRUCTIONS,
    SCRIPT_SYSTEM_PROMPT_V1,
    SCRIPT_USER_PROMPT_V1,
)

# Prompt version identifiers, logged with each generation call
# IMPORTANT: Increment these when prompts change
PROMPT_VERSIONS = {
    "generate_script": "v1",
    "generate_scene_image": "v1",
    "correct_portrait_image": "v1",
}

__all__ = [
    # Utilities
    "strip_markdown_code_blocks",
    "PROMPT_VERSIONS",
    # Script generation
    "SCRIPT_STYLE_INSTRUCTIONS",
    "DEFAULT_SCRIPT_STYLE",
    "SCRIPT_SYSTEM_PROMPT_V1",
    "SCRIPT_USER_PROMPT_V1",
    "SCRIPT_SCENE_LINE",
    "MIN_WORDS_PER_SECOND",
    "MAX_WORDS_PER_SECOND",
    # Images
    "STYLE_ENHANCEMENTS",
    "DEFAULT_IMAGE_STYLE",
    "ORIENTATION_INSTRUCTIONS",
    "SCENE_IMAGE_PROMPT_V1",
    "PORTRAIT_CORRECTION_PROMPT_V1",
]
