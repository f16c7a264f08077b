"""Render backends: composition-list and timeline-track."""

from services.render_backends.base import RenderBackend, build_clips
from services.render_backends.composition import (
    DEFAULT_COMPOSITION_URL,
    CompositionRenderBackend,
)
from services.render_backends.timeline import DEFAULT_TIMELINE_URL, TimelineRenderBackend

BACKENDS = {
    CompositionRenderBackend.name: CompositionRenderBackend,
    TimelineRenderBackend.name: TimelineRenderBackend,
}


def create_render_backend(config: dict) -> RenderBackend:
    """Build the render backend selected by ``RENDER_STRATEGY``.

    Raises:
        ValueError: If the strategy is unknown
    """
    strategy = config.get("render_strategy", CompositionRenderBackend.name)
    if strategy not in BACKENDS:
        raise ValueError(f"Unknown render strategy: {strategy}")

    timeout = config.get("render_timeout_seconds", 60.0)
    if strategy == TimelineRenderBackend.name:
        return TimelineRenderBackend(
            api_key=config.get("timeline_render_api_key", ""),
            base_url=config.get("timeline_render_url", DEFAULT_TIMELINE_URL),
            timeout=timeout,
        )
    return CompositionRenderBackend(
        api_key=config.get("composition_render_api_key", ""),
        base_url=config.get("composition_render_url", DEFAULT_COMPOSITION_URL),
        timeout=timeout,
    )


__all__ = [
    "RenderBackend",
    "CompositionRenderBackend",
    "TimelineRenderBackend",
    "build_clips",
    "create_render_backend",
]
