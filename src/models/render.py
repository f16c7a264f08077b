"""Models for render backend requests and jobs."""

from dataclasses import dataclass
from enum import Enum


class RenderStatus(str, Enum):
    """Normalized render job status across backends."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RenderStatus.SUCCEEDED, RenderStatus.FAILED)


@dataclass
class RenderClip:
    """One scene placed on the output timeline."""

    scene_number: int
    image_url: str
    duration: int
    start: int = 0
    audio_url: str | None = None


@dataclass
class RenderJob:
    """State of a submitted render.

    A backend that renders synchronously returns a job that already
    has ``status=SUCCEEDED`` and a ``url``; otherwise ``id`` is polled.
    """

    id: str | None
    status: RenderStatus
    url: str | None = None
    error: str | None = None
    backend: str = ""

    @property
    def needs_polling(self) -> bool:
        return not self.status.is_terminal
