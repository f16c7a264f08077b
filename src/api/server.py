#!/usr/bin/env python
"""FastAPI server for reelsmith."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.dependencies import ServiceContainer, build_services
from api.routers import account, core, generation, projects
from api.routers.core import API_VERSION
from services.object_storage import MEDIA_URL_PREFIX
from utils.config import load_config, validate_config
from utils.errors import PipelineError
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(config: dict | None = None, services: ServiceContainer | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Configuration dict (loaded from the environment if None)
        services: Prebuilt service container (built from config if None)

    Returns:
        Configured FastAPI app; services connect on startup
    """
    config = config or load_config()
    setup_logging(config.get("log_level", "INFO"), json_output=config.get("log_json", False))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for problem in validate_config(config):
            logger.warning(f"Configuration problem: {problem}")

        container = services or build_services(config)
        app.state.services = container
        await container.startup()
        # Single API process per database: anything still in progress was orphaned
        await container.recover_interrupted_runs()
        logger.info("reelsmith API started")
        try:
            yield
        finally:
            pending = list(container.background_tasks)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            await container.shutdown()
            logger.info("reelsmith API stopped")

    app = FastAPI(title="reelsmith API", version=API_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("cors_origins", []),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} -> {exc.http_status} {exc.kind}: {exc.detail}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # The API-key route answers every bad request with an {"error": ...} body
        if request.url.path not in generation.ERROR_BODY_PATHS:
            return await request_validation_exception_handler(request, exc)
        message = _describe_validation_error(exc)
        logger.warning(f"{request.method} {request.url.path} -> 400 invalid body: {message}")
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    for router_module in (core, generation, projects, account):
        app.include_router(router_module.router)

    # Locally stored media is served by the API itself
    if config.get("storage_backend", "local") == "local":
        media_dir = Path(config.get("local_media_dir", "media"))
        media_dir.mkdir(parents=True, exist_ok=True)
        app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=str(media_dir)), name="media")

    return app


def _describe_validation_error(exc: RequestValidationError) -> str:
    """First validation problem as one sentence, e.g. ``Invalid duration: ...``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid request body: malformed JSON"
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if not field:
        return f"Invalid request body: {first.get('msg', 'invalid value')}"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
