import uvicorn
from fastapi import FastAPI

from feedline.main.config import get_settings
from feedline.main.logging import get_logger
from feedline.server.dependencies.lifespan import lifespan
from feedline.server.exception_handlers import add_exception_handlers
from feedline.server.middleware.request_context import RequestContextMiddleware
from feedline.server.routers import router as api_router

logger = get_logger(__name__)


def get_application(lifespan=lifespan):
    app = FastAPI(title="feedline", version=get_settings().app_version, lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)
    app.include_router(api_router, prefix=get_settings().api_prefix)
    add_exception_handlers(app)

    return app


app = get_application()


def start():
    uvicorn.run(
        "feedline.server.main:app",
        host="0.0.0.0",
        port=8123,
        reload=get_settings().dev,
    )
