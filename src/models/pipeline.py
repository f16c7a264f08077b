"""Models for pipeline runs: stages, progress events, requests and results."""

from dataclasses import dataclass, field
from enum import Enum

from models.project import (
    MAX_DURATION_SECONDS,
    MIN_DURATION_SECONDS,
    AspectRatio,
    Project,
    VideoStyle,
    parse_aspect_ratio,
)


class PipelineStage(str, Enum):
    """States of a single pipeline run."""

    IDLE = "idle"
    CHECKING_CREDITS = "checking_credits"
    GENERATING_SCRIPT = "generating_script"
    GENERATING_MEDIA = "generating_media"
    PERSISTING = "persisting"
    SUBMITTING_RENDER = "submitting_render"
    POLLING = "polling"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStage.COMPLETE, PipelineStage.FAILED)


# Forward transitions; FAILED is reachable from every non-terminal stage.
# SUBMITTING_RENDER may go straight to COMPLETE when the renderer answers
# synchronously.
STAGE_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.IDLE: frozenset({PipelineStage.CHECKING_CREDITS}),
    PipelineStage.CHECKING_CREDITS: frozenset({PipelineStage.GENERATING_SCRIPT}),
    PipelineStage.GENERATING_SCRIPT: frozenset({PipelineStage.GENERATING_MEDIA}),
    PipelineStage.GENERATING_MEDIA: frozenset({PipelineStage.PERSISTING}),
    PipelineStage.PERSISTING: frozenset({PipelineStage.SUBMITTING_RENDER}),
    PipelineStage.SUBMITTING_RENDER: frozenset({PipelineStage.POLLING, PipelineStage.COMPLETE}),
    PipelineStage.POLLING: frozenset({PipelineStage.COMPLETE}),
    PipelineStage.COMPLETE: frozenset(),
    PipelineStage.FAILED: frozenset(),
}


def can_transition(current: PipelineStage, target: PipelineStage) -> bool:
    """Check a pipeline stage transition against the state machine."""
    if target == PipelineStage.FAILED:
        return not current.is_terminal
    return target in STAGE_TRANSITIONS[current]


@dataclass
class ProgressEvent:
    """A named step with an approximate completion percentage."""

    stage: PipelineStage
    percent: int
    message: str
    project_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to the progress dict stored on runs and sent over WebSockets."""
        return {
            "stage": self.stage.value,
            "percent": self.percent,
            "message": self.message,
        }


@dataclass
class GenerationRequest:
    """User input for one pipeline run."""

    prompt: str
    style: VideoStyle = VideoStyle.CINEMATIC
    duration: int = 30
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE

    def __post_init__(self):
        self.prompt = (self.prompt or "").strip()
        if not self.prompt:
            raise ValueError("Prompt is required")
        self.style = VideoStyle(self.style)
        self.aspect_ratio = parse_aspect_ratio(self.aspect_ratio)
        if not MIN_DURATION_SECONDS <= int(self.duration) <= MAX_DURATION_SECONDS:
            raise ValueError(
                f"Duration must be between {MIN_DURATION_SECONDS} and "
                f"{MAX_DURATION_SECONDS} seconds"
            )
        self.duration = int(self.duration)

    def to_dict(self) -> dict:
        return {
            "prompt": self.prompt,
            "style": self.style.value,
            "duration": self.duration,
            "aspect_ratio": self.aspect_ratio.value,
        }


@dataclass
class PipelineResult:
    """Outcome of a completed pipeline run."""

    project: Project
    video_url: str
    credits_charged: int
    failed_scenes: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "project_id": self.project.id,
            "video_url": self.video_url,
            "credits_charged": self.credits_charged,
            "failed_scenes": self.failed_scenes,
        }
