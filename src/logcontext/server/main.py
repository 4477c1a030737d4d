from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI

from logcontext.main.config import get_settings
from logcontext.main.logging import get_logger
from logcontext.observability import live_logs_router
from logcontext.server.dependencies.lifespan import lifespan
from logcontext.server.middleware.request_context import RequestContextMiddleware

logger = get_logger(__name__)


def get_application():
    settings = get_settings()

    app = FastAPI(
        title="logcontext",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        RequestContextMiddleware,
        header_name=settings.user_id_header,
        context_key=settings.user_id_context_key,
    )

    if settings.live_logs_enabled:
        app.include_router(
            live_logs_router.router,
            prefix=settings.live_logs_path,
            tags=["observability"],
        )

    @app.get("/api/healthz")
    async def get_healthz():
        return {
            "status": "HEALTHY",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.app_version,
        }

    return app


def start():
    logger.info("Starting logcontext server")
    uvicorn.run(
        "logcontext.server.main:get_application",
        factory=True,
        host="0.0.0.0",
        port=8123,
        log_config=None,
    )


if __name__ == "__main__":
    start()
