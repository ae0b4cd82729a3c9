from contextlib import asynccontextmanager

from fastapi import FastAPI

from feedline.main.config import get_settings
from feedline.main.container import Container, close_container, create_container
from feedline.main.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.container = await startup()
    yield
    await shutdown(app.state.container)


async def startup() -> Container:
    settings = get_settings()
    container = await create_container(settings)
    logger.info("Feedline started", extra={"version": settings.app_version})
    return container


async def shutdown(container: Container):
    await close_container(container)
