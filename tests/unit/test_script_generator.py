"""Unit tests for scene planning and script generation."""

import json

import httpx
import pytest
from conftest import chat_response, mock_client, script_json
from models.project import VideoStyle
from services.ai_gateway import AIGatewayClient
from utils.errors import MalformedOutput, QuotaExceeded, RateLimited, UpstreamError
from video_pipeline.script_generator import ScriptGenerator, plan_scene_durations


def _generator(handler) -> ScriptGenerator:
    gateway = AIGatewayClient(
        api_key="test-key",
        base_url="https://gateway.test/api/v1",
        client=mock_client(handler),
    )
    return ScriptGenerator(gateway, model="test/script-model")


@pytest.mark.unit
def test_plan_thirty_seconds_is_five_even_scenes():
    assert plan_scene_durations(30) == [6, 6, 6, 6, 6]


@pytest.mark.unit
def test_plan_sixty_five_seconds_clamps_to_eight_scenes():
    durations = plan_scene_durations(65)

    assert len(durations) == 8
    assert durations[:7] == [8] * 7
    assert durations[7] == 9


@pytest.mark.unit
@pytest.mark.parametrize("target", [1, 3, 7, 14, 22, 30, 49, 50, 57, 90, 120, 600])
def test_plan_scene_count_and_sum(target):
    durations = plan_scene_durations(target)

    assert 3 <= len(durations) <= 8
    assert sum(durations) == target


@pytest.mark.unit
def test_plan_rejects_non_positive_duration():
    with pytest.raises(ValueError):
        plan_scene_durations(0)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_parses_fenced_json_and_applies_planned_durations():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=chat_response(f"```json\n{script_json(5)}\n```"))

    generator = _generator(handler)
    try:
        script = await generator.generate("Volcanoes", VideoStyle.DOCUMENTARY, 30)
    finally:
        await generator.gateway.close()

    assert script.title == "Test Video"
    assert [s.scene_number for s in script.scenes] == [1, 2, 3, 4, 5]
    assert [s.duration for s in script.scenes] == [6, 6, 6, 6, 6]
    assert script.total_duration == 30

    assert len(requests) == 1
    body = json.loads(requests[0].content)
    assert body["model"] == "test/script-model"
    assert requests[0].headers["Authorization"] == "Bearer test-key"
    system_prompt = body["messages"][0]["content"]
    assert "documentary" in system_prompt.lower()
    assert "Scene 5" in system_prompt


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_truncates_extra_scenes():
    generator = _generator(lambda request: httpx.Response(200, json=chat_response(script_json(7))))
    try:
        script = await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert len(script.scenes) == 5


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_with_too_few_scenes_is_malformed():
    generator = _generator(lambda request: httpx.Response(200, json=chat_response(script_json(2))))
    try:
        with pytest.raises(MalformedOutput):
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_with_non_json_answer_is_malformed():
    generator = _generator(
        lambda request: httpx.Response(200, json=chat_response("Here is your script: a volcano!"))
    )
    try:
        with pytest.raises(MalformedOutput):
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_is_surfaced_after_exactly_one_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429, text="slow down")

    generator = _generator(handler)
    try:
        with pytest.raises(RateLimited) as exc_info:
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert len(calls) == 1
    assert exc_info.value.user_message() == "Rate limit exceeded. Please try again later."
    assert "slow down" not in exc_info.value.user_message()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_payment_required_maps_to_quota_exceeded():
    generator = _generator(lambda request: httpx.Response(402, json={"error": "no balance"}))
    try:
        with pytest.raises(QuotaExceeded) as exc_info:
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert exc_info.value.user_message() == "Payment required. Please add credits to continue."


@pytest.mark.unit
@pytest.mark.asyncio
async def test_server_error_maps_to_upstream_error():
    generator = _generator(lambda request: httpx.Response(500, text="boom"))
    try:
        with pytest.raises(UpstreamError) as exc_info:
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert exc_info.value.status_code == 500


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_prompt_is_rejected_without_a_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=chat_response(script_json(5)))

    generator = _generator(handler)
    try:
        with pytest.raises(ValueError, match="Prompt is required"):
            await generator.generate("   ", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert calls == []


@pytest.mark.unit
def test_parse_script_requires_narration():
    generator = ScriptGenerator(gateway=None)
    content = json.dumps(
        {
            "title": "T",
            "scenes": [
                {"scene_number": i, "description": "d", "narration": "" if i == 2 else "n", "duration": 5}
                for i in (1, 2, 3)
            ],
        }
    )

    with pytest.raises(MalformedOutput, match="Scene 2"):
        generator.parse_script(content, [5, 5, 5])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeout_is_upstream_error_without_retry():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    generator = _generator(handler)
    try:
        with pytest.raises(UpstreamError, match="timed out"):
            await generator.generate("Volcanoes", VideoStyle.CINEMATIC, 30)
    finally:
        await generator.gateway.close()

    assert len(calls) == 1
