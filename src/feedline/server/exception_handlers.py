from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from feedline.main.exceptions import EXCEPTION_MAP
from feedline.main.logging import get_logger
from feedline.main.models import GeneralError

logger = get_logger(__name__)

# Status codes that must not carry a body
BODYLESS = {204, 304}


def add_exception_handlers(app: FastAPI):
    for exception, (status_code, error_message, error_code) in EXCEPTION_MAP.items():

        def handler(
            request,
            exc,
            status_code=status_code,
            error_message=error_message,
            error_code=error_code,
        ):
            message = error_message or str(exc)
            logger.info(
                f"{request.method} {request.url.path} -> {status_code}: {message}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error_code": error_code,
                },
            )

            if status_code in BODYLESS:
                return Response(status_code=status_code)

            return JSONResponse(
                status_code=status_code,
                content=GeneralError(message=message, error_code=error_code).model_dump(),
            )

        app.add_exception_handler(exception, handler)
