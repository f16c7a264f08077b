"""Script generator for the video generation pipeline.

Turns a user prompt, a style and a target duration into a structured script:
a title plus an ordered list of scenes, each with a visual description,
narration and an integer duration. Scene timing is planned here, not by the
model: N = clamp(ceil(duration / 7), 3, 8) scenes, the first N-1 lasting
floor(duration / N) seconds and the last taking the remainder, so the
durations always sum to the requested total.
"""

import json
import logging
import math

from models.project import VideoStyle
from models.script import Script, ScriptScene
from services.ai_gateway import AIGatewayClient
from services.prompts import (
    DEFAULT_SCRIPT_STYLE,
    MAX_WORDS_PER_SECOND,
    MIN_WORDS_PER_SECOND,
    PROMPT_VERSIONS,
    SCRIPT_SCENE_LINE,
    SCRIPT_STYLE_INSTRUCTIONS,
    SCRIPT_SYSTEM_PROMPT_V1,
    SCRIPT_USER_PROMPT_V1,
    strip_markdown_code_blocks,
)
from utils.errors import MalformedOutput

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_MODEL = "google/gemini-2.5-flash"
TARGET_SECONDS_PER_SCENE = 7
MIN_SCENES = 3
MAX_SCENES = 8


def plan_scene_durations(target_duration: int) -> list[int]:
    """Split a target duration into per-scene durations.

    Args:
        target_duration: Total video length in seconds (>= 1)

    Returns:
        Durations for scenes 1..N, summing exactly to ``target_duration``

    Raises:
        ValueError: If the target duration is not a positive integer
    """
    if target_duration < 1:
        raise ValueError(f"Target duration must be >= 1 second, got {target_duration}")

    scene_count = min(max(math.ceil(target_duration / TARGET_SECONDS_PER_SCENE), MIN_SCENES), MAX_SCENES)
    base = target_duration // scene_count
    return [base] * (scene_count - 1) + [target_duration - base * (scene_count - 1)]


def _word_range(duration: int) -> tuple[int, int]:
    return (
        math.floor(duration * MIN_WORDS_PER_SECOND),
        math.ceil(duration * MAX_WORDS_PER_SECOND),
    )


class ScriptGenerator:
    """Generates structured video scripts through the AI gateway.

    Each call is made once; throttling, billing and other upstream failures
    surface as RateLimited, QuotaExceeded and UpstreamError for the caller
    to handle.
    """

    def __init__(
        self,
        gateway: AIGatewayClient,
        model: str = DEFAULT_SCRIPT_MODEL,
        temperature: float = 0.7,
    ):
        """Initialize with a gateway client.

        Args:
            gateway: Configured AI gateway client
            model: Chat model used for script writing
            temperature: Sampling temperature
        """
        self.gateway = gateway
        self.model = model
        self.temperature = temperature

    def build_messages(self, prompt: str, style: "VideoStyle | str", durations: list[int]) -> list[dict]:
        """Build the chat messages for a script request."""
        style_key = style.value if isinstance(style, VideoStyle) else str(style)
        style_instruction = SCRIPT_STYLE_INSTRUCTIONS.get(
            style_key, SCRIPT_STYLE_INSTRUCTIONS[DEFAULT_SCRIPT_STYLE]
        )

        scene_lines = []
        for number, duration in enumerate(durations, start=1):
            min_words, max_words = _word_range(duration)
            scene_lines.append(
                SCRIPT_SCENE_LINE.format(
                    scene_number=number,
                    duration=duration,
                    min_words=min_words,
                    max_words=max_words,
                )
            )

        total = sum(durations)
        system_prompt = SCRIPT_SYSTEM_PROMPT_V1.format(
            style_instruction=style_instruction,
            scene_count=len(durations),
            total_duration=total,
            scene_table="\n".join(scene_lines),
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": SCRIPT_USER_PROMPT_V1.format(prompt=prompt, total_duration=total)},
        ]

    async def generate(
        self,
        prompt: str,
        style: "VideoStyle | str" = VideoStyle.CINEMATIC,
        target_duration: int = 30,
    ) -> Script:
        """Generate a structured script from a prompt.

        Args:
            prompt: What the video is about (non-empty)
            style: Video style
            target_duration: Total length in seconds

        Returns:
            Script whose scene durations sum to ``target_duration``

        Raises:
            ValueError: If the prompt is empty or the duration is not positive
            RateLimited: Upstream reported throttling (HTTP 429)
            QuotaExceeded: Upstream reported a payment problem (HTTP 402)
            UpstreamError: Any other upstream failure
            MalformedOutput: The answer could not be parsed into a script
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt is required")

        durations = plan_scene_durations(target_duration)
        logger.info(
            f"Generating script: prompt='{prompt[:60]}', style={style}, "
            f"duration={target_duration}s, scenes={len(durations)}, "
            f"prompt_version={PROMPT_VERSIONS['generate_script']}"
        )

        payload = {
            "model": self.model,
            "messages": self.build_messages(prompt, style, durations),
            "temperature": self.temperature,
        }
        response = await self.gateway.chat_completion(payload, service="Script generation")

        script = self.parse_script(self._extract_content(response), durations)
        logger.info(
            f"Script generated: '{script.title}' - "
            f"{len(script.scenes)} scenes, {script.total_duration}s total"
        )
        return script

    def _extract_content(self, response: dict) -> str:
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedOutput("Script response has no message content") from e

        # Some models answer with a list of content parts
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        if not isinstance(content, str) or not content.strip():
            raise MalformedOutput("Script response content is empty")
        return content

    def parse_script(self, content: str, durations: list[int]) -> Script:
        """Parse the model's JSON answer into a Script with planned durations.

        The model is asked for exact durations; whatever it returns, the
        planned durations are applied so the total always matches. Extra
        scenes are dropped; too few scenes is an error.

        Args:
            content: Raw model output (may be wrapped in markdown fences)
            durations: Planned per-scene durations

        Returns:
            Parsed Script

        Raises:
            MalformedOutput: If title, scenes or per-scene fields are missing
        """
        try:
            data = json.loads(strip_markdown_code_blocks(content))
        except json.JSONDecodeError as e:
            logger.error(f"JSON parsing failed for script generation: {e}")
            logger.debug(f"Raw response: {content[:500]}")
            raise MalformedOutput(f"Failed to parse script JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedOutput("Script response is not a JSON object")

        title = str(data.get("title") or "").strip()
        if not title:
            raise MalformedOutput("Script response missing 'title'")

        scenes_data = data.get("scenes")
        if not isinstance(scenes_data, list) or not scenes_data:
            raise MalformedOutput("Script response missing 'scenes' list")

        if len(scenes_data) < len(durations):
            raise MalformedOutput(
                f"Script has {len(scenes_data)} scenes, expected {len(durations)}"
            )
        if len(scenes_data) > len(durations):
            logger.warning(
                f"Script has {len(scenes_data)} scenes, keeping the first {len(durations)}"
            )

        scenes = [
            self._parse_scene(scene_data, number, duration)
            for number, (scene_data, duration) in enumerate(zip(scenes_data, durations), start=1)
        ]
        return Script(title=title, scenes=scenes)

    def _parse_scene(self, data: dict, scene_number: int, duration: int) -> ScriptScene:
        """Parse a single scene, applying its planned number and duration."""
        if not isinstance(data, dict):
            raise MalformedOutput(f"Scene {scene_number} is not an object")

        description = str(data.get("description") or "").strip()
        narration = str(data.get("narration") or "").strip()
        if not description:
            raise MalformedOutput(f"Scene {scene_number} is missing 'description'")
        if not narration:
            raise MalformedOutput(f"Scene {scene_number} is missing 'narration'")
        if "duration" not in data:
            raise MalformedOutput(f"Scene {scene_number} is missing 'duration'")

        returned = data.get("duration")
        if returned != duration:
            logger.debug(f"Scene {scene_number}: model duration {returned}, using planned {duration}s")

        return ScriptScene(
            scene_number=scene_number,
            description=description,
            narration=narration,
            duration=duration,
        )
