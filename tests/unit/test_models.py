"""Unit tests for data models."""

import pytest
from models.account import ApiKey, CreatedApiKey, Profile
from models.pipeline import GenerationRequest, PipelineResult
from models.project import (
    AspectRatio,
    Project,
    ProjectStatus,
    Scene,
    SceneStatus,
    VideoStyle,
    dimensions_for,
    parse_aspect_ratio,
    parse_style,
)
from models.script import Script, ScriptScene


class TestProject:
    """Tests for Project and Scene models."""

    def _project(self, status=ProjectStatus.DRAFT) -> Project:
        return Project(
            id="p1",
            user_id="u1",
            title="T",
            prompt="A prompt",
            style="anime",
            aspect_ratio="9:16",
            duration=30,
            status=status,
        )

    def test_string_fields_are_coerced_to_enums(self):
        project = self._project(status="generating")

        assert project.style is VideoStyle.ANIME
        assert project.aspect_ratio is AspectRatio.PORTRAIT
        assert project.status is ProjectStatus.GENERATING
        assert project.dimensions == (720, 1280)

    def test_status_transitions(self):
        assert self._project(ProjectStatus.DRAFT).can_transition_to(ProjectStatus.GENERATING)
        assert self._project(ProjectStatus.FAILED).can_transition_to(ProjectStatus.GENERATING)
        assert not self._project(ProjectStatus.GENERATING).can_transition_to(ProjectStatus.GENERATING)
        assert not self._project(ProjectStatus.COMPLETED).can_transition_to(ProjectStatus.FAILED)

    def test_to_dict_with_and_without_scenes(self):
        project = self._project()
        project.scenes = [Scene("p1", 1, "d", "n", 5)]

        assert project.to_dict()["scenes"][0]["status"] == "completed"
        assert "scenes" not in project.to_dict(include_scenes=False)
        assert project.to_dict()["aspect_ratio"] == "9:16"

    @pytest.mark.parametrize("number,duration", [(0, 5), (1, 0)])
    def test_scene_rejects_invalid_numbers(self, number, duration):
        with pytest.raises(ValueError):
            Scene("p1", number, "d", "n", duration)

    def test_scene_asset_flags(self):
        scene = Scene("p1", 1, "d", "n", 5, audio_url="https://cdn.test/a.wav", status="failed")

        assert scene.status is SceneStatus.FAILED
        assert not scene.has_image
        assert scene.has_audio


class TestParsing:
    @pytest.mark.parametrize(
        "value,expected",
        [("16:9", (1280, 720)), ("9:16", (720, 1280)), ("1:1", (1080, 1080)), ("4:3", (1024, 768)), ("21:9", (1280, 720)), (None, (1280, 720))],
    )
    def test_dimensions_for(self, value, expected):
        assert dimensions_for(value) == expected

    def test_parse_aspect_ratio_fallback(self):
        assert parse_aspect_ratio(" 9:16 ") is AspectRatio.PORTRAIT
        assert parse_aspect_ratio("bogus") is AspectRatio.LANDSCAPE

    def test_parse_style_fallback(self):
        assert parse_style("Documentary") is VideoStyle.DOCUMENTARY
        assert parse_style("watercolor") is VideoStyle.CINEMATIC
        assert parse_style(None) is VideoStyle.CINEMATIC


class TestGenerationRequest:
    def test_defaults_and_normalization(self):
        request = GenerationRequest(prompt="  Volcanoes  ")

        assert request.prompt == "Volcanoes"
        assert request.to_dict() == {
            "prompt": "Volcanoes",
            "style": "cinematic",
            "duration": 30,
            "aspect_ratio": "16:9",
        }

    @pytest.mark.parametrize("prompt", ["", "   ", None])
    def test_prompt_is_required(self, prompt):
        with pytest.raises(ValueError, match="Prompt is required"):
            GenerationRequest(prompt=prompt)

    @pytest.mark.parametrize("duration", [2, 601])
    def test_duration_bounds(self, duration):
        with pytest.raises(ValueError, match="Duration"):
            GenerationRequest(prompt="x", duration=duration)

    def test_unknown_style_is_rejected(self):
        with pytest.raises(ValueError):
            GenerationRequest(prompt="x", style="watercolor")


class TestPipelineResult:
    def test_to_dict_names_the_project(self):
        project = Project(
            id="p1", user_id="u1", title="T", prompt="A prompt", style="anime", aspect_ratio="9:16", duration=30
        )
        result = PipelineResult(project, "https://cdn.test/video.mp4", credits_charged=10, failed_scenes=[3])

        assert result.to_dict() == {
            "project_id": "p1",
            "video_url": "https://cdn.test/video.mp4",
            "credits_charged": 10,
            "failed_scenes": [3],
        }


class TestScript:
    def test_total_duration_and_round_trip(self):
        script = Script(
            title="T",
            scenes=[ScriptScene(1, "a", "n1", 6), ScriptScene(2, "b", "n2", 9)],
        )

        assert script.total_duration == 15
        assert Script.from_dict(script.to_dict()) == script


class TestAccount:
    def test_profile_rejects_negative_credits(self):
        with pytest.raises(ValueError):
            Profile(user_id="u1", credits=-1)

    def test_api_key_dict_never_contains_digest(self):
        key = ApiKey(id="k1", user_id="u1", name="ci", key_hash="secret-digest", key_preview="sk_1...abcd")

        assert "secret-digest" not in key.to_dict().values()
        assert "key_hash" not in key.to_dict()
        assert CreatedApiKey(record=key, raw_key="sk_raw").to_dict()["key"] == "sk_raw"
