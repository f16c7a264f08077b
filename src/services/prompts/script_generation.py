"""Script generation prompt templates.

Contains prompts for:
- SCRIPT_STYLE_INSTRUCTIONS: one-line creative brief per video style
- SCRIPT_SYSTEM_PROMPT_V1: system prompt with the exact scene timing table
- SCRIPT_USER_PROMPT_V1: user message carrying the prompt and target duration
"""

SCRIPT_STYLE_INSTRUCTIONS = {
    "cinematic": "Create a dramatic, cinematic video script with epic visuals and professional narration.",
    "anime": "Create an anime-style video script with vibrant visuals and energetic narration.",
    "vlog": "Create a casual, personal vlog-style script with authentic and conversational narration.",
    "realistic": "Create a realistic documentary-style script with natural visuals and informative narration.",
    "advertisement": "Create a compelling advertisement script with attention-grabbing visuals and persuasive narration.",
    "documentary": "Create an educational documentary script with informative visuals and authoritative narration.",
}

DEFAULT_SCRIPT_STYLE = "cinematic"

# Narration pacing passed to the model (words per second of scene duration)
MIN_WORDS_PER_SECOND = 2.5
MAX_WORDS_PER_SECOND = 3.0

# Script system prompt v1
# Template placeholders: {style_instruction}, {scene_count}, {total_duration}, {scene_table}
SCRIPT_SYSTEM_PROMPT_V1 = """You are a professional video scriptwriter. {style_instruction}

Write a script of EXACTLY {scene_count} scenes lasting {total_duration} seconds in total.
Each scene must use exactly the duration listed below, and its narration must fit that
duration when read aloud at 2.5-3 words per second:

{scene_table}

For each scene provide:
- "description": a vivid, filmable visual description used to generate the scene's image
  (no camera jargon that cannot be drawn, no text overlays)
- "narration": the voiceover spoken during the scene, within the word range above
- "duration": the scene duration in seconds, exactly as listed

Return ONLY a JSON object with this exact structure:
{{
  "title": "Short, compelling video title",
  "scenes": [
    {{
      "scene_number": 1,
      "description": "Visual description of the scene",
      "narration": "Voiceover text for the scene",
      "duration": 6
    }}
  ]
}}"""

# Template placeholders: {prompt}, {total_duration}
SCRIPT_USER_PROMPT_V1 = """Create a {total_duration}-second video about: {prompt}"""

# Template placeholders: {scene_number}, {duration}, {min_words}, {max_words}
SCRIPT_SCENE_LINE = "- Scene {scene_number}: {duration} seconds, {min_words}-{max_words} words"
