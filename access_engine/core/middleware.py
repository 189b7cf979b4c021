"""Request tracing and CORS for the admin API."""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from access_engine.core.config import settings

logger = logging.getLogger("access_engine")

REQUEST_ID_HEADER = "X-Request-Id"
DENIED_STATUSES = (401, 403)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs its outcome.

    Refused requests are logged at WARNING so denials stand out from
    ordinary traffic.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"

        level = logging.WARNING if response.status_code in DENIED_STATUSES else logging.INFO
        logger.log(
            level, "[%s] %s %s -> %d (%.2fms)",
            request_id, request.method, request.url.path, response.status_code, elapsed_ms,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(AccessLogMiddleware)
