"""Tests for the command-line entry point."""

import io

import httpx
import pytest
from conftest import make_services
from main import ReelsmithApp, build_parser
from models.pipeline import GenerationRequest
from rich.console import Console


@pytest.mark.unit
def test_parser_generate_defaults():
    args = build_parser().parse_args(["generate", "Volcanoes", "--user", "alice"])

    assert args.command == "generate"
    assert args.style == "cinematic"
    assert args.duration == 30
    assert args.aspect_ratio == "16:9"


@pytest.mark.unit
def test_parser_rejects_unknown_style():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["generate", "x", "--user", "a", "--style", "watercolor"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_prints_video_url(sample_config, capsys):
    app = ReelsmithApp(sample_config)
    app.services = make_services(sample_config)
    await app.set_credits("alice", 10)

    exit_code = await app.generate("alice", GenerationRequest(prompt="Volcanoes"))

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Video:   https://cdn.test/video.mp4" in out
    assert "Credits charged: 10" in out


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_reports_pipeline_errors(sample_config, capsys):
    app = ReelsmithApp(sample_config)
    app.services = make_services(
        sample_config, script_handler=lambda request: httpx.Response(429, text="slow down")
    )
    await app.set_credits("alice", 10)

    exit_code = await app.generate("alice", GenerationRequest(prompt="Volcanoes"))

    assert exit_code == 1
    assert "Rate limit exceeded" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_refuses_invalid_config(sample_config, capsys):
    config = {**sample_config, "speech_api_key": ""}
    app = ReelsmithApp(config)

    assert await app.generate("alice", GenerationRequest(prompt="Volcanoes")) == 2
    assert "SPEECH_API_KEY" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_projects_prints_table(sample_config, monkeypatch):
    import main

    output = Console(file=io.StringIO(), width=200)
    monkeypatch.setattr(main, "console", output)
    app = ReelsmithApp(sample_config)
    app.services = make_services(sample_config)
    await app.set_credits("alice", 10)
    assert await app.generate("alice", GenerationRequest(prompt="Volcanoes")) == 0

    assert await app.list_projects("alice") == 0

    table = output.file.getvalue()
    assert "Projects for alice" in table
    assert "Lighthouse Keeper" in table
    assert "completed" in table
    assert "https://cdn.test/video.mp4" in table


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_projects_without_projects(sample_config, monkeypatch):
    import main

    output = Console(file=io.StringIO(), width=200)
    monkeypatch.setattr(main, "console", output)
    app = ReelsmithApp(sample_config)
    app.services = make_services(sample_config)

    assert await app.list_projects("nobody") == 0
    assert "No projects for nobody" in output.file.getvalue()
