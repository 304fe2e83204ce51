from __future__ import annotations

import re
import time
from typing import Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from loguru import logger

from ..logging_utils import set_request_id

# Echoed ids end up in log lines and response headers
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def incoming_request_id(request: Request) -> str:
    """Return the caller's X-Request-ID when it is safe to log, else a new UUID4."""
    value = request.headers.get("X-Request-ID", "")
    return value if _REQUEST_ID_RE.match(value) else str(uuid4())


def install_request_id_middleware(app: FastAPI) -> None:
    """Install an HTTP middleware that propagates X-Request-ID.

    Args:
            app: FastAPI application instance.

    Behavior:
            - Reuses a well-formed X-Request-ID header, otherwise generates a UUID4.
            - Stores the value in a ContextVar so monitor API logs carry it.
            - Logs method, path, status and duration at DEBUG.
            - Ensures the response includes X-Request-ID header.
    """
    log = logger.bind(component="http")

    @app.middleware("http")
    async def _request_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):  # type: ignore[override]
        rid = incoming_request_id(request)
        set_request_id(rid)
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.debug(
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.0f}ms"
        )
        response.headers["X-Request-ID"] = rid
        return response
