"""FastAPI application entry point."""

from fastapi import FastAPI

from slidesmith.api.v1.router import api_router
from slidesmith.config import get_settings
from slidesmith.core.logging import get_logger, setup_logging
from slidesmith.core.middleware import ObservabilityMiddleware

logger = get_logger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    app = FastAPI(title="Slidesmith", version="0.1.0", debug=settings.debug)
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(api_router, prefix="/v1")

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("app_created", template_dir=settings.template_dir, output_dir=settings.output_dir)
    return app


app = create_app()
