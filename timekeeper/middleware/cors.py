from fastapi.middleware.cors import CORSMiddleware
from timekeeper.config import settings
import logging

logger = logging.getLogger(__name__)

DEV_ORIGINS = ["http://localhost:3000", "http://localhost:8080"]


def parse_origins(value: str) -> list[str]:
    return [o.strip() for o in (value or "").split(",") if o.strip()]


def setup_cors(app, origins_setting: str | None = None) -> list[str]:
    """
    Install CORSMiddleware. An empty CORS_ORIGINS falls back to the local
    frontend dev ports.
    """
    origins = parse_origins(settings.CORS_ORIGINS if origins_setting is None else origins_setting)
    if not origins:
        origins = list(DEV_ORIGINS)
        logger.info("CORS_ORIGINS not set, using development defaults")
    else:
        logger.info(f"CORS configured with origins: {origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    return origins
