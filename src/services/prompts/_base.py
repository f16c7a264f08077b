"""Base utilities for prompts module.

Contains shared helper functions used across prompt modules.
"""

import re

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", re.DOTALL)


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code fences from AI response text.

    Models sometimes wrap JSON in ```json fences, occasionally with a
    sentence before or after. The first fenced block wins; text without
    fences is returned trimmed.

    Args:
        text: Raw text that may contain markdown code blocks

    Returns:
        Cleaned text with markdown code blocks removed
    """
    text = text.strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```json"):
        text = text[7:]  # Unterminated fence
    elif text.startswith("```"):
        text = text[3:]
    return text.strip()
