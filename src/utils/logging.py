"""Structured logging configuration for reelsmith.

Uses structlog for structured, JSON-capable logging with pipeline correlation:
every event emitted while a pipeline run is active carries the run's
project id and the stage it is in.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Context variables for pipeline correlation
current_project_id: ContextVar[str | None] = ContextVar("current_project_id", default=None)
current_stage: ContextVar[str | None] = ContextVar("current_stage", default=None)


def add_pipeline_context(_logger, _method_name, event_dict):
    """Structlog processor to inject project_id and stage into all log events."""
    project_id = current_project_id.get()
    if project_id:
        event_dict["project_id"] = project_id
    stage = current_stage.get()
    if stage:
        event_dict["stage"] = stage
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON logs (for production). If False, use colored
            console output with rich tracebacks.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_pipeline_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False),
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (logging.getLogger(__name__)) through structlog
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Suppress noisy third-party loggers
    noisy_loggers = [
        "httpx",
        "httpcore",
        "botocore",
        "boto3",
        "urllib3.connectionpool",
        "aiosqlite",
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_pipeline_context(project_id: str) -> None:
    """Set the current project ID for log correlation.

    Args:
        project_id: Project ID to include in all subsequent log messages
    """
    current_project_id.set(project_id)


def set_stage(stage: str | None) -> None:
    """Set the pipeline stage name included in subsequent log messages."""
    current_stage.set(stage)


def clear_pipeline_context() -> None:
    """Clear the current project and stage context."""
    current_project_id.set(None)
    current_stage.set(None)
