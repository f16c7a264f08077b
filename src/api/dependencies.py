"""Service wiring and dependency injection for the reelsmith API."""

import logging
from dataclasses import dataclass, field

from fastapi import Header, Request

from api.job_store import JobStore
from api.websocket_manager import WebSocketManager
from models.account import ApiKey
from services.ai_gateway import AIGatewayClient
from services.api_key_service import ApiKeyService, parse_bearer_token
from services.credits_service import CreditsService
from services.image_generation_service import ImageGenerationService
from services.object_storage import ObjectStorage, create_storage
from services.project_store import ProjectStore
from services.render_backends import create_render_backend
from services.tts_service import TTSService
from utils.errors import AuthRequired, RunInterrupted
from video_pipeline import (
    PipelineController,
    RenderOrchestrator,
    SceneMediaGenerator,
    ScriptGenerator,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler or background run needs."""

    config: dict
    store: ProjectStore
    job_store: JobStore
    storage: ObjectStorage
    credits: CreditsService
    api_keys: ApiKeyService
    renderer: RenderOrchestrator
    controller: PipelineController
    ws_manager: WebSocketManager = field(default_factory=WebSocketManager)
    # Objects with an async close() released on shutdown
    clients: list = field(default_factory=list)
    background_tasks: set = field(default_factory=set)

    async def startup(self) -> None:
        """Open the database connections and drop expired runs."""
        await self.store.connect()
        await self.job_store.connect()
        await self.job_store.cleanup_old_runs(days=self.config.get("run_retention_days", 7))

    async def recover_interrupted_runs(self) -> None:
        """Fail runs and projects left in progress by a previous server process.

        Their background tasks died with that process. Failed projects can
        have their render retried.
        """
        message = RunInterrupted().user_message()
        run_ids = await self.job_store.fail_unfinished_runs(message)
        project_ids = await self.store.fail_interrupted_projects()
        if run_ids or project_ids:
            logger.warning(
                f"Marked {len(run_ids)} runs and {len(project_ids)} projects failed "
                "after an interrupted shutdown"
            )

    async def shutdown(self) -> None:
        """Close outbound clients and database connections."""
        for client in self.clients:
            await client.close()
        await self.job_store.close()
        await self.store.close()


def build_services(config: dict) -> ServiceContainer:
    """Create all services from configuration (databases not yet connected).

    Args:
        config: Configuration dict from ``load_config``

    Returns:
        ServiceContainer; call ``startup()`` before use
    """
    store = ProjectStore(config["database_path"])
    job_store = JobStore(str(store.db_path.with_name("runs.db")))
    storage = create_storage(config)

    script_gateway = AIGatewayClient(
        api_key=config["ai_gateway_api_key"],
        base_url=config["ai_gateway_url"],
        timeout=config["script_timeout_seconds"],
    )
    image_gateway = AIGatewayClient(
        api_key=config["ai_gateway_api_key"],
        base_url=config["ai_gateway_url"],
        timeout=config["image_timeout_seconds"],
    )
    image_service = ImageGenerationService(
        gateway=image_gateway,
        storage=storage,
        model=config["image_model"],
    )
    tts_service = TTSService(
        api_key=config["speech_api_key"],
        base_url=config["speech_api_url"],
        storage=storage,
        model=config["speech_model"],
        voice=config["speech_voice"],
        timeout=config["speech_timeout_seconds"],
    )

    credits = CreditsService(
        store,
        generation_cost=config["generation_cost_credits"],
        debit_policy=config["credits_debit_policy"],
    )
    renderer = RenderOrchestrator(
        backend=create_render_backend(config),
        store=store,
        poll_interval=config["render_poll_interval_seconds"],
        max_attempts=config["render_max_poll_attempts"],
    )
    controller = PipelineController(
        script_generator=ScriptGenerator(script_gateway, model=config["script_model"]),
        media_generator=SceneMediaGenerator(image_service, tts_service),
        credits=credits,
        store=store,
        renderer=renderer,
    )

    logger.info(
        f"Services built: render={config['render_strategy']}, "
        f"storage={config['storage_backend']}, debit_policy={config['credits_debit_policy']}"
    )
    return ServiceContainer(
        config=config,
        store=store,
        job_store=job_store,
        storage=storage,
        credits=credits,
        api_keys=ApiKeyService(store, pepper=config.get("api_key_pepper", "")),
        renderer=renderer,
        controller=controller,
        clients=[script_gateway, image_service, tts_service, renderer],
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.services


async def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Identity of the signed-in UI user, set by the upstream auth layer.

    Raises:
        AuthRequired: If the ``X-User-Id`` header is missing
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthRequired("Missing X-User-Id header")
    return x_user_id.strip()


async def get_api_key_owner(
    request: Request,
    authorization: str | None = Header(default=None),
) -> ApiKey:
    """Authenticate an external caller by ``Authorization: Bearer <key>``.

    Raises:
        AuthRequired: If the key is missing, unknown or inactive
    """
    raw_key = parse_bearer_token(authorization)
    if not raw_key:
        raise AuthRequired("No bearer token in request", user_message="No API key provided")

    api_key = await get_services(request).api_keys.authenticate(raw_key)
    if api_key is None:
        raise AuthRequired("API key did not match an active key", user_message="Invalid API key")
    return api_key
