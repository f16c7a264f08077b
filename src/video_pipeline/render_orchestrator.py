"""Render orchestrator - assembles scenes into one video through a render backend.

The backend (composition-list or timeline-track) is picked by deployment
configuration. Both receive the same ordered clips and the same output
dimensions derived from the project's aspect ratio. Jobs that are not
finished on submit are polled every 5 seconds, at most 60 times.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from models.project import Project, ProjectStatus, Scene, dimensions_for
from models.render import RenderJob, RenderStatus
from services.project_store import ProjectStore
from services.render_backends import RenderBackend, build_clips
from utils.errors import PipelineError, RenderFailed, RenderTimeout

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_POLL_ATTEMPTS = 60


class RenderOrchestrator:
    """Submits render jobs, polls them and records the result on the project."""

    def __init__(
        self,
        backend: RenderBackend,
        store: ProjectStore,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            backend: Render backend selected by configuration
            store: Project store for status and video URL updates
            poll_interval: Seconds between status polls
            max_attempts: Polls before giving up with RenderTimeout
            sleep: Awaitable sleep used between polls
        """
        self.backend = backend
        self.store = store
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def submit(self, project: Project, scenes: list[Scene]) -> RenderJob:
        """Build and submit the render request for a project's scenes.

        Raises:
            RenderFailed: If no scene can be rendered or the backend rejects the job
            RateLimited, QuotaExceeded, UpstreamError: From the render API
        """
        width, height = dimensions_for(project.aspect_ratio)
        clips = build_clips(scenes)
        if not clips:
            raise RenderFailed(f"Project {project.id} has no scene with an image to render")

        job = await self.backend.submit(clips, width, height)
        if job.status == RenderStatus.FAILED:
            raise RenderFailed(f"Render rejected by {self.backend.name}: {job.error or 'unknown error'}")

        logger.info(
            f"Render submitted for project {project.id} via {self.backend.name}: "
            f"job={job.id}, status={job.status.value}, clips={len(clips)}, size={width}x{height}"
        )
        return job

    async def wait(self, job: RenderJob) -> str:
        """Poll a render job until it finishes.

        Returns:
            The final video URL

        Raises:
            RenderFailed: The backend reported a failed render
            RenderTimeout: No terminal status after ``max_attempts`` polls
        """
        if job.status == RenderStatus.SUCCEEDED and job.url:
            return job.url
        if job.id is None:
            raise RenderFailed("Render job has neither a URL nor an id to poll")

        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.poll_interval)
            job = await self.backend.get_status(job.id)

            if job.status == RenderStatus.SUCCEEDED and job.url:
                logger.info(f"Render {job.id} succeeded after {attempt} polls")
                return job.url
            if job.status == RenderStatus.FAILED:
                raise RenderFailed(f"Render {job.id} failed: {job.error or 'unknown error'}")

            # A succeeded status can arrive before its URL
            logger.debug(
                f"Render {job.id} {job.status.value}, no video yet (poll {attempt}/{self.max_attempts})"
            )

        raise RenderTimeout(
            f"Render {job.id} not finished after {self.max_attempts} polls "
            f"({self.max_attempts * self.poll_interval:.0f}s)"
        )

    async def finalize(self, project_id: str, video_url: str) -> Project:
        """Store the video URL and mark the project completed."""
        project = await self.store.update_project(
            project_id, status=ProjectStatus.COMPLETED, video_url=video_url
        )
        logger.info(f"Project {project_id} completed: {video_url}")
        return project

    async def mark_failed(self, project_id: str) -> None:
        """Mark the project failed; scenes are left as they are.

        Called while another error is propagating, so a failure here is
        logged instead of raised.
        """
        try:
            await self.store.update_project(project_id, status=ProjectStatus.FAILED)
        except PipelineError as e:
            logger.error(f"Could not mark project {project_id} failed: {e.kind}: {e.detail}")

    async def render(
        self,
        project: Project,
        scenes: list[Scene],
        on_submitted: Callable[[RenderJob], Awaitable[None]] | None = None,
    ) -> str:
        """Submit, poll and finalize in one call.

        Used to retry only the render stage of a persisted project. The
        project is moved to ``generating`` first (allowed from ``failed``).

        Args:
            project: Persisted project
            scenes: Its persisted scenes
            on_submitted: Optional async callback once the backend accepted the job

        Returns:
            The final video URL
        """
        if project.status != ProjectStatus.GENERATING:
            await self.store.update_project(project.id, status=ProjectStatus.GENERATING)

        try:
            job = await self.submit(project, scenes)
            if on_submitted:
                await on_submitted(job)
            url = await self.wait(job)
        except PipelineError as e:
            logger.error(f"Render failed for project {project.id}: {e.detail}")
            await self.mark_failed(project.id)
            raise

        await self.finalize(project.id, url)
        return url

    async def close(self) -> None:
        await self.backend.close()
