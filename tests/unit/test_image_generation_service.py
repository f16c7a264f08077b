"""Unit tests for scene image prompts, decoding and the portrait second pass."""

import json

import httpx
import pytest
from conftest import TINY_PNG_DATA_URL, image_response, mock_client
from models.project import AspectRatio, VideoStyle
from services.ai_gateway import AIGatewayClient
from services.image_generation_service import (
    ImageGenerationService,
    ImageGenerationServiceError,
    build_image_prompt,
    decode_data_url,
)


def _service(handler, storage) -> ImageGenerationService:
    gateway = AIGatewayClient(
        api_key="test-key",
        base_url="https://gateway.test/api/v1",
        timeout=120.0,
        client=mock_client(handler),
    )
    return ImageGenerationService(gateway=gateway, storage=storage, model="test/image-model")


@pytest.mark.unit
def test_build_image_prompt_cinematic_landscape():
    prompt = build_image_prompt("A fox in the snow", VideoStyle.CINEMATIC, AspectRatio.LANDSCAPE)

    assert prompt.startswith("A fox in the snow, cinematic lighting, film grain")
    assert "horizontal 16:9" in prompt
    assert prompt.endswith("1280x720 aspect ratio, 4K, high quality, detailed")


@pytest.mark.unit
def test_build_image_prompt_unknown_style_uses_realistic():
    prompt = build_image_prompt("A fox", "watercolor", "9:16")

    assert "photorealistic, natural lighting" in prompt
    assert "720x1280" in prompt


@pytest.mark.unit
def test_decode_data_url():
    image = decode_data_url(TINY_PNG_DATA_URL)

    assert image.content_type == "image/png"
    assert image.extension == "png"
    assert image.data.startswith(b"\x89PNG")


@pytest.mark.unit
def test_decode_data_url_rejects_plain_urls():
    with pytest.raises(ImageGenerationServiceError):
        decode_data_url("https://example.com/image.png")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_landscape_scene_image_is_generated_once_and_stored(mock_storage):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(200, json=image_response())

    service = _service(handler, mock_storage)
    try:
        url = await service.generate_scene_image(
            "A fox in the snow", VideoStyle.ANIME, AspectRatio.LANDSCAPE, key_prefix="project-1"
        )
    finally:
        await service.close()

    assert len(requests) == 1
    assert requests[0]["modalities"] == ["image", "text"]
    assert requests[0]["model"] == "test/image-model"
    assert "anime style" in requests[0]["messages"][0]["content"]

    key = mock_storage.upload.await_args.args[0]
    assert key.startswith("images/project-1/image-")
    assert key.endswith(".png")
    assert url == f"https://cdn.test/{key}"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_portrait_scene_image_gets_corrective_edit(mock_storage):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(200, json=image_response())

    service = _service(handler, mock_storage)
    try:
        await service.generate_scene_image(
            "A fox in the snow", VideoStyle.CINEMATIC, AspectRatio.PORTRAIT, key_prefix="p"
        )
    finally:
        await service.close()

    assert len(requests) == 2
    edit_content = requests[1]["messages"][0]["content"]
    assert edit_content[0]["type"] == "text"
    assert "9:16" in edit_content[0]["text"]
    assert edit_content[1]["image_url"]["url"].startswith("data:image/png;base64,")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_portrait_correction_keeps_first_image(mock_storage):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, json=image_response())
        return httpx.Response(500, text="edit failed")

    service = _service(handler, mock_storage)
    try:
        url = await service.generate_scene_image(
            "A fox", VideoStyle.CINEMATIC, AspectRatio.PORTRAIT, key_prefix="p"
        )
    finally:
        await service.close()

    assert len(calls) == 2
    assert url.startswith("https://cdn.test/images/p/")
    mock_storage.upload.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_response_without_image_raises(mock_storage):
    service = _service(
        lambda request: httpx.Response(
            200, json={"choices": [{"message": {"content": "I cannot draw that"}}]}
        ),
        mock_storage,
    )
    try:
        with pytest.raises(ImageGenerationServiceError):
            await service.generate_scene_image("A fox", "cinematic", "16:9", key_prefix="p")
    finally:
        await service.close()

    mock_storage.upload.assert_not_awaited()
