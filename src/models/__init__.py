# Data models for reelsmith
from .account import ApiKey, CreatedApiKey, Profile, SubscriptionTier
from .media import (
    GeneratedImage,
    ImageEditRequest,
    ImageGenerationRequest,
    SceneMediaResult,
    SpeechRequest,
)
from .pipeline import (
    GenerationRequest,
    PipelineResult,
    PipelineStage,
    ProgressEvent,
    can_transition,
)
from .project import (
    ASPECT_RATIO_DIMENSIONS,
    AspectRatio,
    Project,
    ProjectStatus,
    Scene,
    SceneStatus,
    VideoStyle,
    dimensions_for,
    parse_aspect_ratio,
    parse_style,
)
from .render import RenderClip, RenderJob, RenderStatus
from .script import Script, ScriptScene

__all__ = [
    # Projects and scenes
    "Project",
    "ProjectStatus",
    "Scene",
    "SceneStatus",
    "VideoStyle",
    "AspectRatio",
    "ASPECT_RATIO_DIMENSIONS",
    "dimensions_for",
    "parse_aspect_ratio",
    "parse_style",
    # Scripts
    "Script",
    "ScriptScene",
    # Media
    "ImageGenerationRequest",
    "ImageEditRequest",
    "GeneratedImage",
    "SpeechRequest",
    "SceneMediaResult",
    # Rendering
    "RenderClip",
    "RenderJob",
    "RenderStatus",
    # Pipeline
    "PipelineStage",
    "ProgressEvent",
    "GenerationRequest",
    "PipelineResult",
    "can_transition",
    # Accounts
    "Profile",
    "SubscriptionTier",
    "ApiKey",
    "CreatedApiKey",
]
