"""Models for per-scene media generation (images and narration audio)."""

from dataclasses import dataclass, field

from models.project import SceneStatus


@dataclass
class ImageGenerationRequest:
    """Request for text-to-image generation."""

    prompt: str
    width: int = 1280
    height: int = 720


@dataclass
class ImageEditRequest:
    """Request for an image-conditioned edit (image-to-image)."""

    prompt: str
    input_image_url: str  # URL or data:image/... base64


@dataclass
class GeneratedImage:
    """An image returned by the image model as an embedded payload."""

    data: bytes
    content_type: str = "image/png"

    @property
    def extension(self) -> str:
        return {
            "image/png": "png",
            "image/jpeg": "jpg",
            "image/webp": "webp",
        }.get(self.content_type, "png")


@dataclass
class SpeechRequest:
    """Request for narration audio."""

    text: str
    voice: str
    duration: int | None = None


@dataclass
class SceneMediaResult:
    """Media produced for one scene.

    ``status`` is FAILED only when both generation calls raised; a scene
    with one asset (or none, without errors) is COMPLETED.
    """

    scene_number: int
    image_url: str | None = None
    audio_url: str | None = None
    status: SceneStatus = SceneStatus.COMPLETED
    errors: list[str] = field(default_factory=list)
