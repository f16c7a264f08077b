"""Pipeline controller - drives one video generation run end to end.

prompt -> credits check -> script -> scene media -> persisted project -> render -> video URL

Each run walks the state machine in models.pipeline:

    idle -> checking_credits -> generating_script -> generating_media
         -> persisting -> submitting_render -> polling -> complete

with ``failed`` reachable from any non-terminal stage. Every stage change
is reported as a ProgressEvent whose percentage never decreases.

``prepare`` performs the credits check so a caller can refuse the request
(401/402) before anything is scheduled; ``execute`` runs the rest and is
safe to run as a background task.
"""

import logging
import uuid
from dataclasses import dataclass

from models.media import SceneMediaResult
from models.pipeline import GenerationRequest, PipelineResult, PipelineStage
from models.project import Project, ProjectStatus, Scene, SceneStatus
from models.script import Script
from services.credits_service import DEBIT_ON_SUBMIT, CreditCheck, CreditsService
from services.project_store import ProjectStore
from utils.errors import AuthRequired, PersistenceError, PipelineError, user_message_for
from utils.logging import clear_pipeline_context, set_pipeline_context
from utils.progress import PipelineProgress, ProgressCallback
from video_pipeline.render_orchestrator import RenderOrchestrator
from video_pipeline.scene_media import SceneMediaGenerator
from video_pipeline.script_generator import ScriptGenerator

logger = logging.getLogger(__name__)

SCRIPT_DONE_PERCENT = 30


@dataclass
class PipelineRun:
    """State carried from ``prepare`` to ``execute`` for one run."""

    project_id: str
    user_id: str
    request: GenerationRequest
    progress: PipelineProgress
    credit_check: CreditCheck

    @property
    def stage(self) -> PipelineStage:
        return self.progress.stage


class PipelineController:
    """Runs the video generation pipeline for one request at a time per call.

    Concurrent runs share no state beyond the store; each call keeps its own
    progress tracker and log context.
    """

    def __init__(
        self,
        script_generator: ScriptGenerator,
        media_generator: SceneMediaGenerator,
        credits: CreditsService,
        store: ProjectStore,
        renderer: RenderOrchestrator,
    ):
        self.script_generator = script_generator
        self.media_generator = media_generator
        self.credits = credits
        self.store = store
        self.renderer = renderer

    async def run(
        self,
        user_id: str | None,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Prepare and execute a run in one call."""
        pipeline_run = await self.prepare(user_id, request, on_progress=on_progress)
        return await self.execute(pipeline_run)

    async def prepare(
        self,
        user_id: str | None,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        project_id: str | None = None,
    ) -> PipelineRun:
        """Authenticate the caller and check credits. Nothing is persisted.

        Args:
            user_id: Identity of the caller (None when unauthenticated)
            request: Validated generation request
            on_progress: Optional progress callback (sync or async)
            project_id: Identifier to use for the project (generated if None)

        Returns:
            PipelineRun ready for ``execute``

        Raises:
            AuthRequired: No identity
            InsufficientCredits: Balance below the generation cost
        """
        if not user_id:
            raise AuthRequired("No user identity for pipeline run")

        project_id = project_id or str(uuid.uuid4())
        set_pipeline_context(project_id)
        progress = PipelineProgress(on_progress=on_progress, project_id=project_id)

        try:
            await progress.enter(PipelineStage.CHECKING_CREDITS, "Checking credits...")
            check = await self.credits.require(user_id)
        except PipelineError as e:
            logger.warning(f"Run refused: {e.detail}")
            await progress.fail(e.user_message())
            clear_pipeline_context()
            raise

        logger.info(
            f"Run {project_id} accepted for {user_id}: style={request.style.value}, "
            f"duration={request.duration}s, aspect_ratio={request.aspect_ratio.value}"
        )
        return PipelineRun(
            project_id=project_id,
            user_id=user_id,
            request=request,
            progress=progress,
            credit_check=check,
        )

    async def execute(self, pipeline_run: PipelineRun) -> PipelineResult:
        """Run script, media, persistence and render stages for a prepared run.

        Raises:
            PipelineError: Any stage failure; the run ends in ``failed``
        """
        set_pipeline_context(pipeline_run.project_id)
        try:
            return await self._execute(pipeline_run)
        except PipelineError as e:
            logger.error(f"Run failed in stage {pipeline_run.stage.value}: {e.kind}: {e.detail}")
            await pipeline_run.progress.fail(e.user_message())
            raise
        except Exception as e:
            logger.exception(f"Run failed in stage {pipeline_run.stage.value}: {e}")
            await pipeline_run.progress.fail(user_message_for(e))
            raise
        finally:
            clear_pipeline_context()

    async def _execute(self, pipeline_run: PipelineRun) -> PipelineResult:
        request = pipeline_run.request
        progress = pipeline_run.progress

        # -- Script --
        await progress.enter(PipelineStage.GENERATING_SCRIPT, "Generating script...")
        script = await self.script_generator.generate(
            request.prompt, request.style, request.duration
        )
        await progress.report(
            SCRIPT_DONE_PERCENT, f"Script ready: {script.title} ({len(script.scenes)} scenes)"
        )

        # -- Scene media (never fails as a whole) --
        await progress.enter(
            PipelineStage.GENERATING_MEDIA, f"Generating media for {len(script.scenes)} scenes..."
        )

        async def on_scene_done(completed: int, total: int, result: SceneMediaResult) -> None:
            await progress.report_media(completed, total, f"Generated scene {completed} of {total}")

        media = await self.media_generator.generate_all(
            script,
            request.style,
            request.aspect_ratio,
            key_prefix=pipeline_run.project_id,
            on_scene_done=on_scene_done,
        )

        # -- Persist project and scenes --
        await progress.enter(PipelineStage.PERSISTING, "Saving project...")
        project, scenes = await self._persist(pipeline_run, script, media)

        # -- Render --
        await progress.enter(PipelineStage.SUBMITTING_RENDER, "Submitting render...")
        credits_charged = 0
        try:
            job = await self.renderer.submit(project, scenes)
            if self.credits.debit_policy == DEBIT_ON_SUBMIT:
                await self.credits.debit(pipeline_run.user_id)
                credits_charged = self.credits.generation_cost

            if job.needs_polling:
                await progress.enter(PipelineStage.POLLING, "Rendering video...")
            video_url = await self.renderer.wait(job)

            if self.credits.debit_policy != DEBIT_ON_SUBMIT:
                await self.credits.debit(pipeline_run.user_id)
                credits_charged = self.credits.generation_cost
        except PipelineError:
            await self.renderer.mark_failed(project.id)
            raise

        project = await self.renderer.finalize(project.id, video_url)
        await progress.enter(PipelineStage.COMPLETE, "Video ready")

        return PipelineResult(
            project=project,
            video_url=video_url,
            credits_charged=credits_charged,
            failed_scenes=[r.scene_number for r in media if r.status == SceneStatus.FAILED],
        )

    async def _persist(
        self,
        pipeline_run: PipelineRun,
        script: Script,
        media: list[SceneMediaResult],
    ) -> tuple[Project, list[Scene]]:
        """Create the project row, then bulk-insert its scenes."""
        request = pipeline_run.request
        project = Project(
            id=pipeline_run.project_id,
            user_id=pipeline_run.user_id,
            title=script.title,
            prompt=request.prompt,
            style=request.style,
            aspect_ratio=request.aspect_ratio,
            duration=script.total_duration,
            status=ProjectStatus.GENERATING,
            script=script.to_dict(),
        )
        await self.store.create_project(project)

        media_by_number = {m.scene_number: m for m in media}
        scenes = []
        for planned in script.scenes:
            result = media_by_number.get(planned.scene_number, SceneMediaResult(planned.scene_number))
            scenes.append(
                Scene(
                    project_id=project.id,
                    scene_number=planned.scene_number,
                    description=planned.description,
                    narration=planned.narration,
                    duration=planned.duration,
                    image_url=result.image_url,
                    audio_url=result.audio_url,
                    status=result.status,
                )
            )

        try:
            scenes = await self.store.insert_scenes(project.id, scenes)
        except PersistenceError:
            await self.renderer.mark_failed(project.id)
            raise

        project.scenes = scenes
        return project, scenes
