"""Image-related prompt templates.

Contains:
- STYLE_ENHANCEMENTS: descriptive suffix appended to scene descriptions per style
- ORIENTATION_INSTRUCTIONS: natural-language framing per aspect ratio, since the
  image model takes no numeric aspect-ratio parameter
- SCENE_IMAGE_PROMPT_V1: full text-to-image prompt
- PORTRAIT_CORRECTION_PROMPT_V1: image-conditioned edit forcing a vertical crop
"""

STYLE_ENHANCEMENTS = {
    "cinematic": "cinematic lighting, film grain, anamorphic lens, epic composition, professional color grading",
    "anime": "anime style, vibrant colors, manga art style, detailed linework, Studio Ghibli quality",
    "vlog": "natural lighting, casual photography, authentic moment, street photography style",
    "realistic": "photorealistic, natural lighting, high detail, professional photography",
    "advertisement": "commercial photography, perfect lighting, product showcase, professional marketing",
    "documentary": "documentary photography, natural setting, authentic moment, National Geographic style",
}

DEFAULT_IMAGE_STYLE = "realistic"

ORIENTATION_INSTRUCTIONS = {
    "16:9": "wide landscape orientation, horizontal 16:9 framing, image wider than it is tall",
    "9:16": (
        "tall vertical portrait orientation, 9:16 framing for a phone screen, "
        "image much taller than it is wide, subject centered with headroom"
    ),
    "1:1": "square 1:1 composition, subject centered, equal width and height",
    "4:3": "classic 4:3 landscape orientation, slightly wider than it is tall",
}

# Template placeholders: {description}, {enhancement}, {orientation}, {width}, {height}
SCENE_IMAGE_PROMPT_V1 = (
    "{description}, {enhancement}, {orientation}, "
    "{width}x{height} aspect ratio, 4K, high quality, detailed"
)

# Template placeholders: {width}, {height}
PORTRAIT_CORRECTION_PROMPT_V1 = (
    "Recompose this image as a vertical 9:16 portrait ({width}x{height}). "
    "Extend or crop the scene so the frame is taller than it is wide, keep the "
    "main subject centered and fully visible, and preserve the style, lighting "
    "and colors exactly. Return only the image."
)
