"""Base abstraction for video render backends."""

import logging
from abc import ABC, abstractmethod

import httpx

from models.project import Scene
from models.render import RenderClip, RenderJob
from services.ai_gateway import error_for_response
from utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def build_clips(scenes: list[Scene]) -> list[RenderClip]:
    """Lay scenes out on the output timeline in scene-number order.

    Clip 1 starts at 0 and clip k starts at the summed durations of clips
    1..k-1. Scenes without an image have nothing to show and are left out,
    together with their audio.

    Args:
        scenes: Persisted scenes of a project (any order)

    Returns:
        Ordered clips with absolute start offsets in seconds
    """
    clips: list[RenderClip] = []
    offset = 0
    for scene in sorted(scenes, key=lambda s: s.scene_number):
        if not scene.image_url:
            logger.warning(f"Scene {scene.scene_number} has no image, leaving it out of the render")
            continue
        clips.append(
            RenderClip(
                scene_number=scene.scene_number,
                image_url=scene.image_url,
                duration=scene.duration,
                start=offset,
                audio_url=scene.audio_url or None,
            )
        )
        offset += scene.duration
    return clips


class RenderBackend(ABC):
    """Abstract base class for render backends (composition-list, timeline-track)."""

    name = "base"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the backend.

        Args:
            api_key: Render API key
            base_url: Render API base URL
            timeout: Per-request timeout in seconds
            client: Optional preconfigured httpx client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @abstractmethod
    def build_payload(self, clips: list[RenderClip], width: int, height: int) -> dict:
        """Build the backend-specific render request body.

        Args:
            clips: Ordered clips with start offsets
            width: Output width in pixels
            height: Output height in pixels

        Returns:
            JSON-serializable request body
        """

    @abstractmethod
    def parse_job(self, data: dict) -> RenderJob:
        """Normalize a submit or status response into a RenderJob."""

    @property
    @abstractmethod
    def jobs_path(self) -> str:
        """Path (relative to base_url) for submitting and polling jobs."""

    @abstractmethod
    def auth_headers(self) -> dict:
        """Authentication headers for the render API."""

    async def _request(self, method: str, url: str, json: dict | None = None) -> dict:
        try:
            response = await self.client.request(
                method,
                url,
                json=json,
                headers={**self.auth_headers(), "Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise error_for_response(e.response, f"{self.name} renderer") from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} renderer request failed: {e}")
            raise UpstreamError(f"{self.name} renderer request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"{self.name} renderer returned a non-JSON body") from e

        # Some APIs answer a single render as a one-element list
        if isinstance(data, list):
            if not data:
                raise UpstreamError(f"{self.name} renderer returned an empty response")
            data = data[0]
        return data

    async def submit(self, clips: list[RenderClip], width: int, height: int) -> RenderJob:
        """Submit a render job.

        Returns:
            A RenderJob that is either already terminal or carries an id to poll
        """
        payload = self.build_payload(clips, width, height)
        logger.info(f"Submitting {len(clips)} clips to {self.name} renderer at {width}x{height}")
        data = await self._request("POST", f"{self.base_url}/{self.jobs_path}", json=payload)
        job = self.parse_job(data)
        if job.id is None and job.url is None:
            raise UpstreamError(f"{self.name} renderer returned neither a job id nor a URL")
        return job

    async def get_status(self, job_id: str) -> RenderJob:
        """Fetch the current status of a submitted job (GET ``/{id}``)."""
        data = await self._request("GET", f"{self.base_url}/{self.jobs_path}/{job_id}")
        job = self.parse_job(data)
        job.id = job.id or job_id
        return job

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
