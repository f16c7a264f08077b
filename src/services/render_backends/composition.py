"""Composition-list render backend (Creatomate-style API).

Each scene becomes one composition element on track 1 holding the scene
image and, when present, its narration with the same duration. The API
places consecutive compositions on a track one after another. A submit
may come back already finished (``url`` with status ``succeeded``) or as
a job to poll at ``/renders/{id}``.
"""

import logging

from models.render import RenderClip, RenderJob, RenderStatus
from services.render_backends.base import RenderBackend

logger = logging.getLogger(__name__)

DEFAULT_COMPOSITION_URL = "https://api.creatomate.com/v2"

_STATUS_MAP = {
    "succeeded": RenderStatus.SUCCEEDED,
    "failed": RenderStatus.FAILED,
}


class CompositionRenderBackend(RenderBackend):
    """Flat list of timed composition elements."""

    name = "composition"
    jobs_path = "renders"

    def auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def build_payload(self, clips: list[RenderClip], width: int, height: int) -> dict:
        elements = []
        for clip in clips:
            children = [
                {"type": "image", "source": clip.image_url, "duration": clip.duration},
            ]
            if clip.audio_url:
                children.append(
                    {"type": "audio", "source": clip.audio_url, "duration": clip.duration}
                )
            elements.append({"type": "composition", "track": 1, "elements": children})

        return {
            "output_format": "mp4",
            "width": width,
            "height": height,
            "elements": elements,
        }

    def parse_job(self, data: dict) -> RenderJob:
        raw_status = str(data.get("status", "")).lower()
        url = data.get("url")

        if raw_status:
            status = _STATUS_MAP.get(raw_status, RenderStatus.PENDING)
        else:
            # No status field: a URL means the render is done
            status = RenderStatus.SUCCEEDED if url else RenderStatus.PENDING

        return RenderJob(
            id=data.get("id"),
            status=status,
            url=url if status == RenderStatus.SUCCEEDED else None,
            error=data.get("error_message"),
            backend=self.name,
        )
