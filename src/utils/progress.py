"""Progress tracking and status reporting for pipeline runs."""

import inspect
import logging
from typing import Awaitable, Callable, Optional

from models.pipeline import PipelineStage, ProgressEvent, can_transition
from utils.logging import set_stage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], "Awaitable[None] | None"]

# Percent reported when a stage starts
STAGE_PERCENT = {
    PipelineStage.IDLE: 0,
    PipelineStage.CHECKING_CREDITS: 5,
    PipelineStage.GENERATING_SCRIPT: 10,
    PipelineStage.GENERATING_MEDIA: 40,
    PipelineStage.PERSISTING: 90,
    PipelineStage.SUBMITTING_RENDER: 92,
    PipelineStage.POLLING: 95,
    PipelineStage.COMPLETE: 100,
}

MEDIA_PERCENT_START = 40
MEDIA_PERCENT_SPAN = 50


class InvalidStageTransition(RuntimeError):
    """Raised when the pipeline attempts an undefined state change."""


class PipelineProgress:
    """Tracks the stage of one pipeline run and reports progress.

    Percentages never decrease: a report lower than the last one is
    raised to the last value. Stage changes are checked against the
    pipeline state machine.

    Example usage:
        progress = PipelineProgress(on_progress=callback)
        await progress.enter(PipelineStage.CHECKING_CREDITS, "Checking credits")
        await progress.report(55, "Generated scene 2 of 5")
        await progress.fail("Rate limit exceeded. Please try again later.")
    """

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        project_id: Optional[str] = None,
    ):
        """Initialize the tracker in the IDLE stage.

        Args:
            on_progress: Optional callback (sync or async) receiving each ProgressEvent
            project_id: Project the run belongs to, attached to emitted events
        """
        self.on_progress = on_progress
        self.project_id = project_id
        self.stage = PipelineStage.IDLE
        self.percent = 0
        self.message = ""
        self.history: list[ProgressEvent] = []

    async def enter(self, stage: PipelineStage, message: str) -> None:
        """Move to a new stage and emit its starting progress.

        Raises:
            InvalidStageTransition: If the state machine does not allow the change
        """
        if not can_transition(self.stage, stage):
            raise InvalidStageTransition(
                f"Cannot move pipeline from {self.stage.value} to {stage.value}"
            )
        logger.info(f"Stage {self.stage.value} -> {stage.value}: {message}")
        self.stage = stage
        set_stage(stage.value)
        await self._emit(STAGE_PERCENT.get(stage, self.percent), message)

    async def report(self, percent: float, message: str) -> None:
        """Emit progress within the current stage."""
        await self._emit(percent, message)

    async def report_media(self, completed: int, total: int, message: str) -> None:
        """Emit media-stage progress: 40% plus a share of 50% per finished scene."""
        share = completed / total if total else 1.0
        await self._emit(MEDIA_PERCENT_START + share * MEDIA_PERCENT_SPAN, message)

    async def fail(self, message: str) -> None:
        """Move to FAILED, keeping the last reported percentage."""
        if self.stage.is_terminal:
            return
        logger.info(f"Stage {self.stage.value} -> failed")
        self.stage = PipelineStage.FAILED
        set_stage(PipelineStage.FAILED.value)
        await self._emit(self.percent, message)

    async def _emit(self, percent: float, message: str) -> None:
        self.percent = max(self.percent, min(100, int(percent)))
        self.message = message
        event = ProgressEvent(
            stage=self.stage,
            percent=self.percent,
            message=message,
            project_id=self.project_id,
        )
        self.history.append(event)

        if self.on_progress is None:
            return
        result = self.on_progress(event)
        if inspect.isawaitable(result):
            await result
