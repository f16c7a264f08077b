"""Video generation routes: external API, UI submission, run status and progress."""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Body, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from api import job_store as runs
from api.dependencies import ServiceContainer, get_api_key_owner, get_current_user, get_services
from api.schemas import (
    ErrorResponse,
    GenerateVideoApiRequest,
    GenerateVideoApiResponse,
    ProjectGenerateRequest,
    RunCreatedResponse,
    RunResponse,
)
from models.account import ApiKey
from models.pipeline import GenerationRequest, ProgressEvent
from models.project import parse_aspect_ratio, parse_style
from utils.errors import RunInterrupted, user_message_for
from video_pipeline import PipelineRun

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Generation"])

EXTERNAL_API_PATH = "/generate-video-api"

# Routes whose request errors are answered as 400 {"error": ...}
ERROR_BODY_PATHS = frozenset({EXTERNAL_API_PATH})


async def start_run(
    services: ServiceContainer,
    user_id: str | None,
    request: GenerationRequest,
) -> PipelineRun:
    """Check credits, record the run and start it in the background.

    Raises:
        AuthRequired, InsufficientCredits: From the credits check; nothing
            is recorded or scheduled in that case
    """
    run_id = str(uuid.uuid4())

    async def on_progress(event: ProgressEvent) -> None:
        await services.job_store.update_run(run_id, progress=event)
        await services.ws_manager.broadcast(run_id, {"type": "progress", **event.to_dict()})

    pipeline_run = await services.controller.prepare(
        user_id, request, on_progress=on_progress, project_id=run_id
    )

    await services.job_store.create_run(run_id, pipeline_run.user_id, request.to_dict())
    await services.job_store.update_run(
        run_id, status=runs.PROCESSING, progress=pipeline_run.progress.history[-1]
    )

    task = asyncio.create_task(_execute_run(services, pipeline_run))
    services.background_tasks.add(task)
    task.add_done_callback(services.background_tasks.discard)
    return pipeline_run


async def _execute_run(services: ServiceContainer, pipeline_run: PipelineRun) -> None:
    """Run the remaining pipeline stages and record the outcome on the run."""
    run_id = pipeline_run.project_id
    try:
        result = await services.controller.execute(pipeline_run)
    except asyncio.CancelledError:
        await record_interrupted_run(services, run_id)
        raise
    except Exception as e:
        # Already logged with stage context by the controller
        message = user_message_for(e)
        await services.job_store.update_run(run_id, status=runs.FAILED, error=message)
        await services.ws_manager.broadcast(run_id, {"type": "error", "message": message})
        return

    await services.job_store.update_run(run_id, status=runs.COMPLETED, video_url=result.video_url)
    await services.ws_manager.broadcast(run_id, {"type": "complete", **result.to_dict()})


async def record_interrupted_run(services: ServiceContainer, run_id: str) -> None:
    """Fail a run cancelled by shutdown so it does not stay ``processing``."""
    message = RunInterrupted().user_message()
    logger.warning(f"Run {run_id} interrupted by shutdown")
    await services.renderer.mark_failed(run_id)
    await services.job_store.update_run(run_id, status=runs.FAILED, error=message)
    await services.ws_manager.broadcast(run_id, {"type": "error", "message": message})


@router.post(
    EXTERNAL_API_PATH,
    response_model=GenerateVideoApiResponse,
    summary="Generate a video (API key)",
    description="Start a video generation run for the owner of the presented API key. "
    "Returns immediately; poll the project for completion.",
    responses={
        400: {"model": ErrorResponse, "description": "Missing prompt or malformed body"},
        401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        500: {"model": ErrorResponse, "description": "Unexpected error"},
    },
)
async def generate_video_api(
    body: GenerateVideoApiRequest | None = Body(default=None),
    api_key: ApiKey = Depends(get_api_key_owner),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    """Start a generation run for an external caller."""
    body = body or GenerateVideoApiRequest()
    if not body.prompt or not body.prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    try:
        request = GenerationRequest(
            prompt=body.prompt,
            style=parse_style(body.style),
            duration=body.duration if body.duration is not None else 30,
            aspect_ratio=parse_aspect_ratio(body.aspect_ratio),
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    pipeline_run = await start_run(services, api_key.user_id, request)
    return JSONResponse(
        content={
            "projectId": pipeline_run.project_id,
            "status": "processing",
            "message": "Video generation started. Check project status for completion.",
        }
    )


@router.post(
    "/api/projects/generate",
    response_model=RunCreatedResponse,
    status_code=202,
    summary="Generate a video",
    description="Start a video generation run for the signed-in user. Follow progress via "
    "GET /api/runs/{run_id} or the /ws/runs/{run_id} WebSocket.",
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
    },
)
async def generate_project(
    body: ProjectGenerateRequest,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    """Start a generation run for the signed-in user. Returns 202 immediately."""
    try:
        request = GenerationRequest(
            prompt=body.prompt,
            style=body.style,
            duration=body.duration,
            aspect_ratio=body.aspect_ratio,
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    pipeline_run = await start_run(services, user_id, request)
    return JSONResponse(
        status_code=202,
        content={
            "project_id": pipeline_run.project_id,
            "run_id": pipeline_run.project_id,
            "status": runs.PROCESSING,
        },
    )


@router.get("/api/runs", summary="List runs", description="List the signed-in user's runs, newest first.")
async def list_runs(
    limit: int = 50,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, list[dict]]:
    return {"runs": await services.job_store.list_runs(user_id=user_id, limit=limit)}


@router.get(
    "/api/runs/{run_id}",
    response_model=RunResponse,
    summary="Get run status",
    responses={404: {"description": "Run not found"}},
)
async def get_run(
    run_id: str,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Get the status and latest progress of a run."""
    run = await services.job_store.get_run(run_id)
    if run is None or run["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@router.websocket("/ws/runs/{run_id}")
async def websocket_run(websocket: WebSocket, run_id: str) -> None:
    """WebSocket endpoint for real-time run progress.

    Sends the current status on connect, then ``progress`` events and a final
    ``complete`` or ``error`` event. Answers ``ping`` with ``pong``.
    """
    services: ServiceContainer = websocket.app.state.services
    run = await services.job_store.get_run(run_id)
    if run is None:
        await websocket.accept()
        await websocket.send_json({"type": "error", "message": "Run not found"})
        await websocket.close()
        return

    await services.ws_manager.connect(run_id, websocket)
    try:
        await websocket.send_json(
            {
                "type": "status",
                "run_id": run_id,
                "status": run["status"],
                "video_url": run["video_url"],
                "error": run["error"],
                **run["progress"],
            }
        )

        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    except Exception as e:
        logger.error(f"WebSocket error for run {run_id}: {e}")
    finally:
        services.ws_manager.disconnect(run_id, websocket)
