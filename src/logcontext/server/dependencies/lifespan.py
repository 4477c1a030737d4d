from contextlib import asynccontextmanager

from fastapi import FastAPI

from logcontext.main.config import get_settings
from logcontext.main.logging import configure_logging, get_logger, reset_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    yield
    await shutdown()


async def startup():
    settings = get_settings()
    configure_logging()
    logger.info(
        "logcontext %s started (live logs %s)",
        settings.app_version,
        "enabled" if settings.live_logs_enabled else "disabled",
    )


async def shutdown():
    logger.info("logcontext shutting down")
    reset_logging()
