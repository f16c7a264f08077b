"""Timeline-track render backend (Shotstack-style edit API).

Builds a video track of image clips with absolute start offsets and a
separate audio track for the scenes that have narration. Each audio clip
starts at its scene's offset so the voiceover stays on its picture.
Submits always return a job id that is polled at ``/render/{id}``.
"""

import logging

from models.render import RenderClip, RenderJob, RenderStatus
from services.render_backends.base import RenderBackend
from utils.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMELINE_URL = "https://api.shotstack.io/edit/v1"

_STATUS_MAP = {
    "done": RenderStatus.SUCCEEDED,
    "succeeded": RenderStatus.SUCCEEDED,
    "failed": RenderStatus.FAILED,
}


class TimelineRenderBackend(RenderBackend):
    """Multi-track timeline with absolute per-clip start offsets."""

    name = "timeline"
    jobs_path = "render"

    def auth_headers(self) -> dict:
        return {"x-api-key": self.api_key}

    def build_payload(self, clips: list[RenderClip], width: int, height: int) -> dict:
        video_clips = [
            {
                "asset": {"type": "image", "src": clip.image_url},
                "start": clip.start,
                "length": clip.duration,
                "fit": "cover",
            }
            for clip in clips
        ]
        audio_clips = [
            {
                "asset": {"type": "audio", "src": clip.audio_url},
                "start": clip.start,
                "length": clip.duration,
            }
            for clip in clips
            if clip.audio_url
        ]

        tracks = [{"clips": video_clips}]
        if audio_clips:
            tracks.append({"clips": audio_clips})

        return {
            "timeline": {"background": "#000000", "tracks": tracks},
            "output": {"format": "mp4", "size": {"width": width, "height": height}},
        }

    def parse_job(self, data: dict) -> RenderJob:
        body = data.get("response", data)
        if not isinstance(body, dict):
            body = {}
        raw_status = str(body.get("status", "")).lower()
        status = _STATUS_MAP.get(raw_status, RenderStatus.PENDING)

        return RenderJob(
            id=body.get("id"),
            status=status,
            url=body.get("url") if status == RenderStatus.SUCCEEDED else None,
            error=body.get("error"),
            backend=self.name,
        )

    async def submit(self, clips: list[RenderClip], width: int, height: int) -> RenderJob:
        job = await super().submit(clips, width, height)
        if job.id is None:
            raise UpstreamError("timeline renderer accepted the job without an id")
        # Timeline renders are always polled, whatever the submit body says
        job.status = RenderStatus.PENDING
        job.url = None
        return job
