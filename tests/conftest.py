"""Shared pytest fixtures for reelsmith tests."""

import json
import sys
import tempfile
from pathlib import Path
from typing import Dict, Generator
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
import pytest_asyncio

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.script import Script, ScriptScene  # noqa: E402
from services.project_store import ProjectStore  # noqa: E402

# Smallest valid WAV file: RIFF header declaring 36 bytes after the size field
SILENT_WAV = (
    b"RIFF" + (36).to_bytes(4, "little") + b"WAVE"
    + b"fmt " + (16).to_bytes(4, "little")
    + (1).to_bytes(2, "little") + (1).to_bytes(2, "little")
    + (16000).to_bytes(4, "little") + (32000).to_bytes(4, "little")
    + (2).to_bytes(2, "little") + (16).to_bytes(2, "little")
    + b"data" + (0).to_bytes(4, "little")
)

# 1x1 transparent PNG
TINY_PNG_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir: Path) -> Dict:
    """Configuration dict pointing every local path into a temp directory."""
    return {
        "ai_gateway_url": "https://gateway.test/api/v1",
        "ai_gateway_api_key": "test_gateway_key",
        "script_model": "test/script-model",
        "image_model": "test/image-model",
        "speech_api_url": "https://speech.test/v1",
        "speech_api_key": "test_speech_key",
        "speech_model": "test-tts",
        "speech_voice": "alloy",
        "render_strategy": "composition",
        "composition_render_url": "https://composition.test/v2",
        "composition_render_api_key": "test_composition_key",
        "timeline_render_url": "https://timeline.test/edit/v1",
        "timeline_render_api_key": "test_timeline_key",
        "render_poll_interval_seconds": 5.0,
        "render_max_poll_attempts": 60,
        "script_timeout_seconds": 60.0,
        "image_timeout_seconds": 120.0,
        "speech_timeout_seconds": 120.0,
        "render_timeout_seconds": 60.0,
        "storage_backend": "local",
        "local_media_dir": str(temp_dir / "media"),
        "public_base_url": "http://testserver",
        "r2_account_id": "",
        "r2_access_key_id": "",
        "r2_secret_access_key": "",
        "r2_bucket": "reelsmith-media",
        "r2_public_url": None,
        "database_path": str(temp_dir / "reelsmith.db"),
        "run_retention_days": 7,
        "generation_cost_credits": 10,
        "credits_debit_policy": "on_submit",
        "api_key_pepper": "",
        "log_level": "WARNING",
        "log_json": False,
        "cors_origins": ["http://localhost:5173"],
    }


@pytest_asyncio.fixture
async def store(temp_dir: Path):
    """Connected ProjectStore on a fresh database file."""
    project_store = ProjectStore(str(temp_dir / "store.db"))
    await project_store.connect()
    try:
        yield project_store
    finally:
        await project_store.close()


@pytest.fixture
def sample_script() -> Script:
    """Three-scene, 30 second script."""
    return Script(
        title="Lighthouse Keeper",
        scenes=[
            ScriptScene(1, "A lighthouse on a cliff at dawn", "Every morning starts with the light.", 10),
            ScriptScene(2, "The keeper climbing spiral stairs", "Two hundred steps, twice a day.", 10),
            ScriptScene(3, "The lamp glowing over a stormy sea", "And every night, the sea listens.", 10),
        ],
    )


def chat_response(content) -> dict:
    """Build an OpenAI-style chat completion body."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def script_json(scene_count: int, title: str = "Test Video") -> str:
    """JSON script answer with ``scene_count`` scenes."""
    return json.dumps(
        {
            "title": title,
            "scenes": [
                {
                    "scene_number": i,
                    "description": f"Visual for scene {i}",
                    "narration": f"Narration for scene {i}.",
                    "duration": 99,
                }
                for i in range(1, scene_count + 1)
            ],
        }
    )


def image_response(url: str = TINY_PNG_DATA_URL) -> dict:
    """Chat completion body carrying one generated image."""
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": "",
                    "images": [{"type": "image_url", "image_url": {"url": url}}],
                }
            }
        ]
    }


def mock_client(handler) -> httpx.AsyncClient:
    """httpx client whose requests are answered by ``handler(request)``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def mock_storage():
    """Object storage double returning predictable public URLs."""
    storage = Mock()

    async def upload(key, data, content_type=None):
        return f"https://cdn.test/{key}"

    storage.upload = AsyncMock(side_effect=upload)
    storage.delete = AsyncMock(return_value=True)
    return storage


def default_script_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=chat_response(script_json(5, title="Lighthouse Keeper")))


def default_image_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=image_response())


def default_speech_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=SILENT_WAV, headers={"content-type": "audio/wav"})


def default_render_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200, json={"id": "render-1", "status": "succeeded", "url": "https://cdn.test/video.mp4"}
    )


async def _no_sleep(seconds: float) -> None:
    return None


def make_services(
    config: Dict,
    script_handler=default_script_handler,
    image_handler=default_image_handler,
    speech_handler=default_speech_handler,
    render_handler=default_render_handler,
):
    """Real service wiring with every outbound HTTP call answered locally."""
    from api.dependencies import ServiceContainer
    from api.job_store import JobStore
    from services.ai_gateway import AIGatewayClient
    from services.api_key_service import ApiKeyService
    from services.credits_service import CreditsService
    from services.image_generation_service import ImageGenerationService
    from services.object_storage import create_storage
    from services.render_backends import CompositionRenderBackend
    from services.tts_service import TTSService
    from video_pipeline import (
        PipelineController,
        RenderOrchestrator,
        SceneMediaGenerator,
        ScriptGenerator,
    )

    store = ProjectStore(config["database_path"])
    job_store = JobStore(str(store.db_path.with_name("runs.db")))
    storage = create_storage(config)

    script_gateway = AIGatewayClient(
        api_key="test-key", base_url=config["ai_gateway_url"], client=mock_client(script_handler)
    )
    image_service = ImageGenerationService(
        gateway=AIGatewayClient(
            api_key="test-key", base_url=config["ai_gateway_url"], client=mock_client(image_handler)
        ),
        storage=storage,
    )
    tts_service = TTSService(
        api_key="test-key",
        base_url=config["speech_api_url"],
        storage=storage,
        client=mock_client(speech_handler),
    )
    credits = CreditsService(
        store,
        generation_cost=config["generation_cost_credits"],
        debit_policy=config["credits_debit_policy"],
    )
    renderer = RenderOrchestrator(
        CompositionRenderBackend(
            api_key="test-key",
            base_url=config["composition_render_url"],
            client=mock_client(render_handler),
        ),
        store,
        sleep=_no_sleep,
    )
    controller = PipelineController(
        script_generator=ScriptGenerator(script_gateway),
        media_generator=SceneMediaGenerator(image_service, tts_service),
        credits=credits,
        store=store,
        renderer=renderer,
    )
    return ServiceContainer(
        config=config,
        store=store,
        job_store=job_store,
        storage=storage,
        credits=credits,
        api_keys=ApiKeyService(store),
        renderer=renderer,
        controller=controller,
        clients=[script_gateway, image_service, tts_service, renderer],
    )
