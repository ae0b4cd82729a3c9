import time

import aiohttp

from feedline.main.logging import get_logger

logger = get_logger(__name__)

# Upstream answers slower than this are worth a warning
SLOW_REQUEST_MS = 5000


class AioHttpClient:
    """Process-wide aiohttp session shared by every upstream search."""

    session: aiohttp.ClientSession = None

    def __init__(self, total_timeout: float = 30.0, connect_timeout: float = 10.0):
        self._total_timeout = total_timeout
        self._connect_timeout = connect_timeout

    def _create_trace_config(self) -> aiohttp.TraceConfig:
        trace = aiohttp.TraceConfig()

        async def on_request_start(session, trace_config_ctx, params):
            trace_config_ctx.started = time.perf_counter()

        async def on_request_end(session, trace_config_ctx, params):
            duration_ms = int((time.perf_counter() - trace_config_ctx.started) * 1000)
            extra = {
                "host": params.url.host,
                "status": params.response.status,
                "duration_ms": duration_ms,
            }
            if duration_ms > SLOW_REQUEST_MS:
                logger.warning("Slow upstream request", extra=extra)
            else:
                logger.debug("Upstream request completed", extra=extra)

        trace.on_request_start.append(on_request_start)
        trace.on_request_end.append(on_request_end)
        return trace

    def start(self):
        timeout = aiohttp.ClientTimeout(
            total=self._total_timeout,
            connect=self._connect_timeout,
        )
        connector = aiohttp.TCPConnector(limit=100, limit_per_host=30, ttl_dns_cache=300)

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            trace_configs=[self._create_trace_config()],
        )

    async def stop(self):
        if self.session is None:
            return
        await self.session.close()
        self.session = None

    def __call__(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeError("AioHttpClient is not started")
        return self.session
