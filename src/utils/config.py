"""Configuration loading and validation for reelsmith."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

RENDER_STRATEGIES = ("composition", "timeline")
STORAGE_BACKENDS = ("local", "r2")
DEBIT_POLICIES = ("on_submit", "on_complete")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # AI gateway (OpenAI-compatible chat completions) for scripts and images
        "ai_gateway_url": os.getenv("AI_GATEWAY_URL", "https://openrouter.ai/api/v1"),
        "ai_gateway_api_key": os.getenv("AI_GATEWAY_API_KEY", ""),
        "script_model": os.getenv("SCRIPT_MODEL", "google/gemini-2.5-flash"),
        "image_model": os.getenv("IMAGE_MODEL", "google/gemini-2.5-flash-image-preview"),
        # Speech generation
        "speech_api_url": os.getenv("SPEECH_API_URL", "https://api.openai.com/v1"),
        "speech_api_key": os.getenv("SPEECH_API_KEY", ""),
        "speech_model": os.getenv("SPEECH_MODEL", "gpt-4o-mini-tts"),
        "speech_voice": os.getenv("SPEECH_VOICE", "alloy"),
        # Render backends
        "render_strategy": os.getenv("RENDER_STRATEGY", "composition").lower(),
        "composition_render_url": os.getenv(
            "COMPOSITION_RENDER_URL", "https://api.creatomate.com/v2"
        ),
        "composition_render_api_key": os.getenv("COMPOSITION_RENDER_API_KEY", ""),
        "timeline_render_url": os.getenv(
            "TIMELINE_RENDER_URL", "https://api.shotstack.io/edit/v1"
        ),
        "timeline_render_api_key": os.getenv("TIMELINE_RENDER_API_KEY", ""),
        "render_poll_interval_seconds": float(os.getenv("RENDER_POLL_INTERVAL_SECONDS", "5")),
        "render_max_poll_attempts": int(os.getenv("RENDER_MAX_POLL_ATTEMPTS", "60")),
        # Per-backend HTTP timeouts (seconds)
        "script_timeout_seconds": float(os.getenv("SCRIPT_TIMEOUT_SECONDS", "60")),
        "image_timeout_seconds": float(os.getenv("IMAGE_TIMEOUT_SECONDS", "120")),
        "speech_timeout_seconds": float(os.getenv("SPEECH_TIMEOUT_SECONDS", "120")),
        "render_timeout_seconds": float(os.getenv("RENDER_TIMEOUT_SECONDS", "60")),
        # Object storage for generated media
        "storage_backend": os.getenv("STORAGE_BACKEND", "local").lower(),
        "local_media_dir": resolve_path(os.getenv("LOCAL_MEDIA_DIR"), "media"),
        "public_base_url": os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        "r2_account_id": os.getenv("R2_ACCOUNT_ID", ""),
        "r2_access_key_id": os.getenv("R2_ACCESS_KEY_ID", ""),
        "r2_secret_access_key": os.getenv("R2_SECRET_ACCESS_KEY", ""),
        "r2_bucket": os.getenv("R2_BUCKET", "reelsmith-media"),
        "r2_public_url": os.getenv("R2_PUBLIC_URL"),
        # Persistence
        "database_path": resolve_path(os.getenv("DATABASE_PATH"), ".reelsmith/reelsmith.db"),
        "run_retention_days": int(os.getenv("RUN_RETENTION_DAYS", "7")),
        # Credits
        "generation_cost_credits": int(os.getenv("GENERATION_COST_CREDITS", "10")),
        "credits_debit_policy": os.getenv("CREDITS_DEBIT_POLICY", "on_submit").lower(),
        # API keys
        "api_key_pepper": os.getenv("API_KEY_PEPPER", ""),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        # HTTP server
        "cors_origins": [
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
            ).split(",")
            if origin.strip()
        ],
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("ai_gateway_api_key"):
        errors.append("AI_GATEWAY_API_KEY is required for script and image generation")

    if not config.get("speech_api_key"):
        errors.append("SPEECH_API_KEY is required for narration audio")

    strategy = config.get("render_strategy")
    if strategy not in RENDER_STRATEGIES:
        errors.append(
            f"RENDER_STRATEGY must be one of {', '.join(RENDER_STRATEGIES)} (got '{strategy}')"
        )
    elif not config.get(f"{strategy}_render_api_key"):
        errors.append(f"{strategy.upper()}_RENDER_API_KEY is required for the {strategy} renderer")

    if config.get("credits_debit_policy") not in DEBIT_POLICIES:
        errors.append(f"CREDITS_DEBIT_POLICY must be one of {', '.join(DEBIT_POLICIES)}")

    storage = config.get("storage_backend")
    if storage not in STORAGE_BACKENDS:
        errors.append(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")
    elif storage == "r2":
        missing = [
            name
            for name, key in (
                ("R2_ACCOUNT_ID", "r2_account_id"),
                ("R2_ACCESS_KEY_ID", "r2_access_key_id"),
                ("R2_SECRET_ACCESS_KEY", "r2_secret_access_key"),
                ("R2_PUBLIC_URL", "r2_public_url"),
            )
            if not config.get(key)
        ]
        if missing:
            errors.append(f"R2 storage requires: {', '.join(missing)}")
    else:
        try:
            Path(config["local_media_dir"]).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create local media folder: {e}")

    if config.get("generation_cost_credits", 0) < 0:
        errors.append("GENERATION_COST_CREDITS must not be negative")

    return errors
