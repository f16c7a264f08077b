"""Image Generation Service - scene images through the AI gateway.

The image model answers a chat completion with ``modalities=["image", "text"]``
and returns the picture inline as a base64 data URL. The service decodes it,
stores it in object storage and hands back the public URL.

The model takes no numeric aspect-ratio parameter, so framing is steered
through the prompt. Portrait (9:16) output is usually still landscape after
the first pass; a second image-conditioned edit forces the vertical crop.
"""

import base64
import binascii
import logging
import time
import uuid

import httpx

from models.media import GeneratedImage, ImageEditRequest, ImageGenerationRequest
from models.project import AspectRatio, VideoStyle, dimensions_for, parse_aspect_ratio
from services.ai_gateway import AIGatewayClient
from services.object_storage import ObjectStorage
from services.prompts import (
    DEFAULT_IMAGE_STYLE,
    ORIENTATION_INSTRUCTIONS,
    PORTRAIT_CORRECTION_PROMPT_V1,
    SCENE_IMAGE_PROMPT_V1,
    STYLE_ENHANCEMENTS,
)
from utils.errors import PipelineError, SceneMediaFailed

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"
IMAGE_BUCKET_PREFIX = "images"


class ImageGenerationServiceError(SceneMediaFailed):
    """Error from image generation service."""

    pass


def build_image_prompt(
    description: str,
    style: "VideoStyle | str",
    aspect_ratio: "AspectRatio | str",
) -> str:
    """Build the text-to-image prompt for a scene.

    Args:
        description: Scene description from the script
        style: Video style; unknown styles use the realistic enhancement
        aspect_ratio: Output aspect ratio; unknown ratios are treated as 16:9

    Returns:
        Prompt with style enhancement and orientation instruction
    """
    style_key = style.value if isinstance(style, VideoStyle) else str(style)
    enhancement = STYLE_ENHANCEMENTS.get(style_key, STYLE_ENHANCEMENTS[DEFAULT_IMAGE_STYLE])
    ratio = parse_aspect_ratio(aspect_ratio)
    width, height = dimensions_for(ratio)

    return SCENE_IMAGE_PROMPT_V1.format(
        description=description.strip(),
        enhancement=enhancement,
        orientation=ORIENTATION_INSTRUCTIONS[ratio.value],
        width=width,
        height=height,
    )


def decode_data_url(data_url: str) -> GeneratedImage:
    """Decode a ``data:<mime>;base64,<payload>`` URL into image bytes.

    Raises:
        ImageGenerationServiceError: If the URL is not a base64 data URL
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise ImageGenerationServiceError("Image payload is not a data URL")

    header, payload = data_url.split(",", 1)
    if ";base64" not in header:
        raise ImageGenerationServiceError("Image data URL is not base64 encoded")

    content_type = header[len("data:"):].split(";", 1)[0] or "image/png"
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ImageGenerationServiceError(f"Invalid base64 image payload: {e}") from e

    if not data:
        raise ImageGenerationServiceError("Image payload is empty")
    return GeneratedImage(data=data, content_type=content_type)


class ImageGenerationService:
    """Generates scene images and stores them for public access."""

    def __init__(
        self,
        gateway: AIGatewayClient,
        storage: ObjectStorage,
        model: str = DEFAULT_IMAGE_MODEL,
    ):
        """Initialize the image generation service.

        Args:
            gateway: AI gateway client (chat completions with image output)
            storage: Object storage for decoded images
            model: Image-capable model name on the gateway
        """
        self.gateway = gateway
        self.storage = storage
        self.model = model

    def _extract_image_url(self, response: dict) -> str:
        """Pull ``choices[0].message.images[0].image_url.url`` out of a response."""
        try:
            message = response["choices"][0]["message"]
            return message["images"][0]["image_url"]["url"]
        except (KeyError, IndexError, TypeError) as e:
            raise ImageGenerationServiceError("No image returned by the image model") from e

    async def _to_image(self, url: str) -> GeneratedImage:
        if url.startswith("data:"):
            return decode_data_url(url)

        # Some gateways answer with a hosted URL instead of inline data
        try:
            response = await self.gateway.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageGenerationServiceError(f"Failed to fetch generated image: {e}") from e
        content_type = response.headers.get("content-type", "image/png").split(";")[0]
        return GeneratedImage(data=response.content, content_type=content_type)

    async def generate(self, request: ImageGenerationRequest) -> GeneratedImage:
        """Generate an image from a text prompt.

        Args:
            request: The generation request

        Returns:
            Decoded image bytes

        Raises:
            ImageGenerationServiceError: If the response carries no usable image
            RateLimited, QuotaExceeded, UpstreamError: From the gateway
        """
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "modalities": ["image", "text"],
        }

        start_time = time.time()
        response = await self.gateway.chat_completion(payload, service="Image generation")
        image = await self._to_image(self._extract_image_url(response))

        generation_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Generated {request.width}x{request.height} image in {generation_time_ms}ms "
            f"({len(image.data)} bytes)"
        )
        return image

    async def edit(self, request: ImageEditRequest) -> GeneratedImage:
        """Edit an existing image with an instruction (image-to-image).

        Args:
            request: The edit request with the source image URL or data URL

        Returns:
            Decoded edited image
        """
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": request.prompt},
                        {"type": "image_url", "image_url": {"url": request.input_image_url}},
                    ],
                }
            ],
            "modalities": ["image", "text"],
        }

        response = await self.gateway.chat_completion(payload, service="Image edit")
        return await self._to_image(self._extract_image_url(response))

    async def _correct_portrait(self, image: GeneratedImage, width: int, height: int) -> GeneratedImage:
        """Run the corrective vertical-crop pass, keeping the first image if it fails."""
        encoded = base64.b64encode(image.data).decode("ascii")
        request = ImageEditRequest(
            prompt=PORTRAIT_CORRECTION_PROMPT_V1.format(width=width, height=height),
            input_image_url=f"data:{image.content_type};base64,{encoded}",
        )
        try:
            return await self.edit(request)
        except PipelineError as e:
            logger.warning(f"Portrait correction failed, keeping first-pass image: {e.detail}")
            return image

    async def generate_scene_image(
        self,
        description: str,
        style: "VideoStyle | str",
        aspect_ratio: "AspectRatio | str",
        key_prefix: str,
    ) -> str:
        """Generate, store and return the public URL of a scene image.

        Args:
            description: Scene description from the script
            style: Video style driving the prompt enhancement
            aspect_ratio: Output aspect ratio driving the orientation instruction
            key_prefix: Storage folder for this run (e.g. the project id)

        Returns:
            Public URL of the stored image
        """
        ratio = parse_aspect_ratio(aspect_ratio)
        width, height = dimensions_for(ratio)
        prompt = build_image_prompt(description, style, ratio)

        image = await self.generate(ImageGenerationRequest(prompt=prompt, width=width, height=height))

        if ratio == AspectRatio.PORTRAIT:
            image = await self._correct_portrait(image, width, height)

        key = f"{IMAGE_BUCKET_PREFIX}/{key_prefix}/image-{uuid.uuid4().hex[:12]}.{image.extension}"
        return await self.storage.upload(key, image.data, image.content_type)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.gateway.close()
