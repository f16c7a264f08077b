"""Scene media generator - one image and one narration clip per scene.

Within a scene the image and audio requests run concurrently; scenes are
processed one after another, so at most two generation calls are in flight
per run. Failures are per scene and never abort the run: an asset that
failed is left empty, and the scene is marked failed only when both calls
raised.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from models.media import SceneMediaResult
from models.project import AspectRatio, SceneStatus, VideoStyle
from models.script import Script, ScriptScene
from services.image_generation_service import ImageGenerationService
from services.tts_service import TTSService
from utils.errors import PipelineError

logger = logging.getLogger(__name__)

SceneDoneCallback = Callable[[int, int, SceneMediaResult], Awaitable[None]]


def _describe(error: BaseException) -> str:
    if isinstance(error, PipelineError):
        return f"{error.kind}: {error.detail}"
    return f"{type(error).__name__}: {error}"


class SceneMediaGenerator:
    """Produces image and narration assets for each scene of a script."""

    def __init__(
        self,
        image_service: ImageGenerationService,
        tts_service: TTSService,
        voice: str | None = None,
    ):
        """Initialize with the media services.

        Args:
            image_service: Generates and stores scene images
            tts_service: Generates and stores narration audio
            voice: Voice selector for narration (service default if None)
        """
        self.image_service = image_service
        self.tts_service = tts_service
        self.voice = voice

    async def generate_scene(
        self,
        scene: ScriptScene,
        style: VideoStyle,
        aspect_ratio: AspectRatio,
        key_prefix: str,
    ) -> SceneMediaResult:
        """Generate the image and narration for one scene concurrently.

        Args:
            scene: Planned scene from the script
            style: Video style (image prompt enhancement)
            aspect_ratio: Output aspect ratio (image orientation)
            key_prefix: Storage folder for this run

        Returns:
            SceneMediaResult with whichever assets succeeded
        """
        image_result, audio_result = await asyncio.gather(
            self.image_service.generate_scene_image(
                scene.description, style, aspect_ratio, key_prefix
            ),
            self.tts_service.generate_scene_audio(
                scene.narration, key_prefix, duration=scene.duration, voice=self.voice
            ),
            return_exceptions=True,
        )

        result = SceneMediaResult(scene_number=scene.scene_number)
        failures = 0

        for asset, outcome in (("image", image_result), ("audio", audio_result)):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                failures += 1
                result.errors.append(f"{asset}: {_describe(outcome)}")
                logger.warning(
                    f"Scene {scene.scene_number} {asset} generation failed: {_describe(outcome)}"
                )
            elif asset == "image":
                result.image_url = outcome
            else:
                result.audio_url = outcome

        if failures == 2:
            result.status = SceneStatus.FAILED
        return result

    async def generate_all(
        self,
        script: Script,
        style: VideoStyle,
        aspect_ratio: AspectRatio,
        key_prefix: str,
        on_scene_done: SceneDoneCallback | None = None,
    ) -> list[SceneMediaResult]:
        """Generate media for every scene, strictly in scene order.

        Args:
            script: Generated script
            style: Video style
            aspect_ratio: Output aspect ratio
            key_prefix: Storage folder for this run
            on_scene_done: Optional async callback(completed, total, result)

        Returns:
            One SceneMediaResult per script scene, in scene order
        """
        results: list[SceneMediaResult] = []
        total = len(script.scenes)

        for index, scene in enumerate(script.scenes, start=1):
            logger.info(f"Generating media for scene {scene.scene_number}/{total}")
            result = await self.generate_scene(scene, style, aspect_ratio, key_prefix)
            results.append(result)

            if on_scene_done:
                await on_scene_done(index, total, result)

        failed = [r.scene_number for r in results if r.status == SceneStatus.FAILED]
        logger.info(
            f"Media generation finished: {total - len(failed)}/{total} scenes completed"
            + (f", failed scenes: {failed}" if failed else "")
        )
        return results
