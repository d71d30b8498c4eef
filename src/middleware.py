import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from .logging_utils import log_request


async def log_requests_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Time each request and log it once the response is ready."""
    start = time.perf_counter()
    response = await call_next(request)
    log_request(request, response.status_code, (time.perf_counter() - start) * 1000)
    return response
