"""Models for generated video projects and their scenes."""

from dataclasses import dataclass, field
from enum import Enum


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    DRAFT = "draft"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed status changes. Completed is final; failed may be retried.
PROJECT_STATUS_TRANSITIONS: dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.DRAFT: frozenset({ProjectStatus.GENERATING, ProjectStatus.FAILED}),
    ProjectStatus.GENERATING: frozenset({ProjectStatus.COMPLETED, ProjectStatus.FAILED}),
    ProjectStatus.FAILED: frozenset({ProjectStatus.GENERATING, ProjectStatus.FAILED}),
    ProjectStatus.COMPLETED: frozenset(),
}


class SceneStatus(str, Enum):
    """Outcome of a scene's media generation attempt."""

    COMPLETED = "completed"
    FAILED = "failed"


class VideoStyle(str, Enum):
    """Visual and narrative style of a generated video."""

    CINEMATIC = "cinematic"
    ANIME = "anime"
    VLOG = "vlog"
    REALISTIC = "realistic"
    ADVERTISEMENT = "advertisement"
    DOCUMENTARY = "documentary"


class AspectRatio(str, Enum):
    """Supported output aspect ratios."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"
    CLASSIC = "4:3"


# Output pixel dimensions (width, height) per aspect ratio
ASPECT_RATIO_DIMENSIONS: dict[AspectRatio, tuple[int, int]] = {
    AspectRatio.LANDSCAPE: (1280, 720),
    AspectRatio.PORTRAIT: (720, 1280),
    AspectRatio.SQUARE: (1080, 1080),
    AspectRatio.CLASSIC: (1024, 768),
}

DURATION_OPTIONS = (30, 60, 90, 120)
MIN_DURATION_SECONDS = 3
MAX_DURATION_SECONDS = 600


def parse_aspect_ratio(value: "str | AspectRatio | None") -> AspectRatio:
    """Parse an aspect ratio string, falling back to 16:9 when unrecognized."""
    if isinstance(value, AspectRatio):
        return value
    try:
        return AspectRatio(str(value).strip())
    except ValueError:
        return AspectRatio.LANDSCAPE


def parse_style(value: "str | VideoStyle | None") -> VideoStyle:
    """Parse a style string, falling back to cinematic when unrecognized."""
    if isinstance(value, VideoStyle):
        return value
    try:
        return VideoStyle(str(value).strip().lower())
    except ValueError:
        return VideoStyle.CINEMATIC


def dimensions_for(aspect_ratio: "str | AspectRatio | None") -> tuple[int, int]:
    """Map an aspect ratio to output (width, height), defaulting to 1280x720."""
    return ASPECT_RATIO_DIMENSIONS[parse_aspect_ratio(aspect_ratio)]


@dataclass
class Scene:
    """One timed segment of a project, with its own visual and narration assets."""

    project_id: str
    scene_number: int
    description: str
    narration: str
    duration: int
    image_url: str | None = None
    audio_url: str | None = None
    status: SceneStatus = SceneStatus.COMPLETED
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self):
        if self.scene_number < 1:
            raise ValueError(f"scene_number must be >= 1, got {self.scene_number}")
        if self.duration < 1:
            raise ValueError(f"Scene {self.scene_number} duration must be >= 1s, got {self.duration}")
        self.status = SceneStatus(self.status)

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_url)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "scene_number": self.scene_number,
            "description": self.description,
            "narration": self.narration,
            "duration": self.duration,
            "image_url": self.image_url,
            "audio_url": self.audio_url,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Project:
    """One user-initiated generation request and its result."""

    id: str
    user_id: str
    title: str
    prompt: str
    style: VideoStyle
    aspect_ratio: AspectRatio
    duration: int
    status: ProjectStatus = ProjectStatus.DRAFT
    script: dict | None = None
    video_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    scenes: list[Scene] = field(default_factory=list)

    def __post_init__(self):
        self.style = VideoStyle(self.style)
        self.aspect_ratio = parse_aspect_ratio(self.aspect_ratio)
        self.status = ProjectStatus(self.status)

    @property
    def dimensions(self) -> tuple[int, int]:
        return dimensions_for(self.aspect_ratio)

    def can_transition_to(self, status: ProjectStatus) -> bool:
        """Check whether the project may move to the given status."""
        return status in PROJECT_STATUS_TRANSITIONS[self.status]

    def to_dict(self, include_scenes: bool = True) -> dict:
        """Convert to dictionary for API responses."""
        result = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "prompt": self.prompt,
            "style": self.style.value,
            "aspect_ratio": self.aspect_ratio.value,
            "duration": self.duration,
            "status": self.status.value,
            "script": self.script,
            "video_url": self.video_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_scenes:
            result["scenes"] = [s.to_dict() for s in self.scenes]
        return result
