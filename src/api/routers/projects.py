"""Project routes: listing, details, deletion and render retry."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from api import job_store as runs
from api.dependencies import ServiceContainer, get_current_user, get_services
from api.routers.generation import record_interrupted_run
from api.schemas import ErrorResponse, MessageResponse
from models.pipeline import PipelineStage
from models.project import Project, ProjectStatus
from services.object_storage import ObjectStorageError
from utils.errors import InvalidStatusTransition, user_message_for
from utils.logging import clear_pipeline_context, set_pipeline_context, set_stage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Projects"])


async def _get_owned_project(services: ServiceContainer, project_id: str, user_id: str) -> Project:
    project = await services.store.get_project(project_id, include_scenes=True)
    if project is None or project.user_id != user_id:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("/api/projects", summary="List projects", description="List the signed-in user's projects, newest first.")
async def list_projects(
    limit: int = 100,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    projects = await services.store.list_projects(user_id, limit=limit)
    return {"projects": [p.to_dict(include_scenes=False) for p in projects]}


@router.get(
    "/api/projects/{project_id}",
    summary="Get project",
    description="Get a project with its scenes ordered by scene number.",
    responses={404: {"description": "Project not found"}},
)
async def get_project(
    project_id: str,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    project = await _get_owned_project(services, project_id, user_id)
    return project.to_dict(include_scenes=True)


@router.delete(
    "/api/projects/{project_id}",
    response_model=MessageResponse,
    summary="Delete project",
    description="Delete a project, its scenes and the scene media in object storage.",
    responses={404: {"description": "Project not found"}},
)
async def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    project = await _get_owned_project(services, project_id, user_id)
    deleted = await services.store.delete_project(project_id, user_id=user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Project not found")
    services.ws_manager.cleanup(project_id)

    media_urls = [url for scene in project.scenes for url in (scene.image_url, scene.audio_url)]
    try:
        removed = await services.storage.delete_urls(media_urls)
    except ObjectStorageError as e:
        # The project row is already gone
        logger.warning(f"Project {project_id} deleted but its media was not: {e}")
    else:
        logger.info(f"Deleted project {project_id} and {removed} media objects")
    return {"message": "Project deleted"}


async def _retry_render(services: ServiceContainer, project: Project) -> None:
    """Re-run only the render stage of a persisted project."""
    set_pipeline_context(project.id)
    set_stage(PipelineStage.SUBMITTING_RENDER.value)
    try:
        video_url = await services.renderer.render(project, project.scenes)
    except asyncio.CancelledError:
        await record_interrupted_run(services, project.id)
        raise
    except Exception as e:
        message = user_message_for(e)
        logger.error(f"Render retry failed for project {project.id}: {e}")
        await services.job_store.update_run(project.id, status=runs.FAILED, error=message)
        await services.ws_manager.broadcast(project.id, {"type": "error", "message": message})
        return
    finally:
        clear_pipeline_context()

    await services.job_store.update_run(project.id, status=runs.COMPLETED, video_url=video_url)
    await services.ws_manager.broadcast(
        project.id, {"type": "complete", "project_id": project.id, "video_url": video_url}
    )


@router.post(
    "/api/projects/{project_id}/render",
    status_code=202,
    summary="Retry render",
    description="Submit a failed project's persisted scenes to the render backend again. "
    "Scenes are not regenerated and no credits are charged.",
    responses={
        404: {"description": "Project not found"},
        409: {"model": ErrorResponse, "description": "Project is not in a retryable state"},
    },
)
async def retry_render(
    project_id: str,
    user_id: str = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> JSONResponse:
    project = await _get_owned_project(services, project_id, user_id)
    if not project.can_transition_to(ProjectStatus.GENERATING):
        raise InvalidStatusTransition(
            f"Project {project_id} is {project.status.value}; only failed or draft projects can be re-rendered"
        )
    # Claimed here so a second retry request gets 409 instead of a duplicate render
    project = await services.store.update_project(project_id, status=ProjectStatus.GENERATING)

    await services.job_store.update_run(project_id, status=runs.PROCESSING, error="")

    task = asyncio.create_task(_retry_render(services, project))
    services.background_tasks.add(task)
    task.add_done_callback(services.background_tasks.discard)

    return JSONResponse(
        status_code=202,
        content={"project_id": project_id, "status": ProjectStatus.GENERATING.value},
    )
