from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from feedline.main.request_context import clear_request_context, set_request_context

CORRELATION_HEADER = "X-Correlation-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Label every log line of a request, and of the workflows it spawns."""

    async def dispatch(self, request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        set_request_context(correlation_id=correlation_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
