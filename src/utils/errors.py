"""Error taxonomy for the video generation pipeline.

Every error that can end a pipeline run (or be recorded against a scene)
derives from PipelineError. Each kind carries the HTTP status the API maps
it to and a short message that is safe to show to end users; the raw
upstream detail stays in ``detail`` and only goes to the logs.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    kind = "pipeline_error"
    http_status = 500
    default_message = "Video generation failed. Please try again."

    def __init__(self, detail: str = "", *, user_message: str | None = None):
        self.detail = detail or self.default_message
        self._user_message = user_message
        super().__init__(self.detail)

    def user_message(self) -> str:
        """Human-readable message for API responses and UI progress."""
        return self._user_message or self.default_message

    def to_dict(self) -> dict:
        """Convert to the ``{"error": ...}`` body returned by the API."""
        return {"error": self.user_message()}


class AuthRequired(PipelineError):
    kind = "auth_required"
    http_status = 401
    default_message = "Authentication required."


class InsufficientCredits(PipelineError):
    """Balance is below the per-generation cost."""

    kind = "insufficient_credits"
    http_status = 402

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient credits: required={required}, available={available}")

    def user_message(self) -> str:
        return (
            f"Insufficient credits: {self.required} required, "
            f"{self.available} available."
        )

    def to_dict(self) -> dict:
        return {
            "error": "Insufficient credits",
            "required": self.required,
            "available": self.available,
        }


class RateLimited(PipelineError):
    kind = "rate_limited"
    http_status = 429
    default_message = "Rate limit exceeded. Please try again later."


class QuotaExceeded(PipelineError):
    kind = "quota_exceeded"
    http_status = 402
    default_message = "Payment required. Please add credits to continue."


class MalformedOutput(PipelineError):
    kind = "malformed_output"
    http_status = 502
    default_message = "The script generator returned an unreadable response. Please try again."


class SceneMediaFailed(PipelineError):
    """A single scene asset (image or narration) could not be produced."""

    kind = "scene_media_failed"
    http_status = 502
    default_message = "Media generation failed for a scene."


class RenderFailed(PipelineError):
    kind = "render_failed"
    http_status = 502
    default_message = "Video rendering failed. You can retry the render."


class RenderTimeout(PipelineError):
    kind = "render_timeout"
    http_status = 504
    default_message = "Video rendering timed out. You can retry the render."


class RunInterrupted(PipelineError):
    """The server stopped while the run was in progress."""

    kind = "run_interrupted"
    http_status = 503
    default_message = "Video generation was interrupted. Please try again."


class PersistenceError(PipelineError):
    kind = "persistence_error"
    http_status = 500
    default_message = "Could not save the project. Please try again."


class InvalidStatusTransition(PipelineError):
    kind = "invalid_status_transition"
    http_status = 409
    default_message = "The project cannot change to the requested status."


class UpstreamError(PipelineError):
    """Generic non-2xx (or transport) failure from an upstream service."""

    kind = "upstream_error"
    http_status = 502
    default_message = "An upstream service failed. Please try again."

    def __init__(self, detail: str = "", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(detail)


def user_message_for(error: BaseException) -> str:
    """Map any exception to the message shown to end users.

    Unknown exceptions get a generic sentence so raw error text never leaks.
    """
    if isinstance(error, PipelineError):
        return error.user_message()
    return PipelineError.default_message
