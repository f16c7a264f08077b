"""Pydantic request/response models for the reelsmith API."""

from pydantic import BaseModel, ConfigDict, Field

from models.project import MAX_DURATION_SECONDS, MIN_DURATION_SECONDS, AspectRatio, VideoStyle

# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Project deleted"}]}}


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "reelsmith API", "version": "0.1.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy"}]}}


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""

    error: str
    required: int | None = None
    available: int | None = None


class RunProgressResponse(BaseModel):
    """Latest progress of a pipeline run."""

    stage: str
    percent: int = Field(ge=0, le=100)
    message: str


class RunResponse(BaseModel):
    """Pipeline run status."""

    id: str
    status: str
    created_at: str
    updated_at: str
    progress: RunProgressResponse
    request: dict | None = None
    video_url: str | None = None
    error: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "5b0e6f0c-3f5e-4a43-9d8e-2b1d5b9a6c11",
                    "status": "processing",
                    "created_at": "2026-10-18T12:00:00+00:00",
                    "updated_at": "2026-10-18T12:00:40+00:00",
                    "progress": {"stage": "generating_media", "percent": 65, "message": "Generated scene 3 of 5"},
                }
            ]
        }
    }


class RunCreatedResponse(BaseModel):
    """Response when a run is accepted."""

    project_id: str
    run_id: str
    status: str


class GenerateVideoApiResponse(BaseModel):
    """Response of the external generation endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId")
    status: str
    message: str


class CreditsResponse(BaseModel):
    """Credits balance of the signed-in user."""

    user_id: str
    credits: int
    generation_cost: int


class ApiKeyResponse(BaseModel):
    """API key listing entry (never carries the raw key or its digest)."""

    id: str
    name: str
    key_preview: str
    is_active: bool
    usage_count: int
    last_used_at: str | None = None
    created_at: str | None = None


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Newly created key; ``key`` is shown only once."""

    key: str


class ApiKeyListResponse(BaseModel):
    keys: list[ApiKeyResponse]


# =============================================================================
# Request Models
# =============================================================================


class GenerateVideoApiRequest(BaseModel):
    """Body of ``POST /generate-video-api``.

    Every field is optional at the schema level so the endpoint can answer
    with ``{"error": ...}`` bodies instead of validation errors. Unknown
    styles and aspect ratios fall back to the defaults.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "prompt": "A day in the life of a lighthouse keeper",
                    "style": "documentary",
                    "duration": 60,
                    "aspectRatio": "9:16",
                }
            ]
        },
    )

    prompt: str | None = None
    style: str | None = VideoStyle.CINEMATIC.value
    duration: int | None = 30
    aspect_ratio: str | None = Field(default=AspectRatio.LANDSCAPE.value, alias="aspectRatio")


class ProjectGenerateRequest(BaseModel):
    """Body of ``POST /api/projects/generate`` (signed-in UI)."""

    prompt: str = Field(min_length=1, max_length=4000)
    style: VideoStyle = VideoStyle.CINEMATIC
    duration: int = Field(default=30, ge=MIN_DURATION_SECONDS, le=MAX_DURATION_SECONDS)
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE


class ApiKeyCreateRequest(BaseModel):
    """Body of ``POST /api/keys``."""

    name: str = Field(default="API key", max_length=100)
