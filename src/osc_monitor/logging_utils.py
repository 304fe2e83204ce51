# -*- coding: utf-8 -*-
r"""Logging utilities for centralized structured logging.

Provides:
- ContextVar-based request_id propagation
- Stdlib logging bridge to loguru
- Truncation/hashing of raw log lines that fail to parse
- Secret masking for configuration dumps
"""

from __future__ import annotations

import hashlib
import logging
import re
from contextvars import ContextVar
from typing import Any

from loguru import logger

# Context var for request correlation
_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    """Set the current request id for logging correlation."""
    _request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    """Get the current request id for logging correlation."""
    return _request_id_ctx.get()


class InterceptHandler(logging.Handler):
    """Redirect stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = "INFO"
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1
        logger.bind(component="stdlib", src_logger=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def configure_stdlib_bridge() -> None:
    """Bridge stdlib root and common third-party loggers to loguru."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "asyncio"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False

    # httpx logs every outbound request at INFO; the backend client logs failures itself
    for name in ("httpx", "httpcore"):
        lg = logging.getLogger(name)
        lg.handlers = [InterceptHandler()]
        lg.setLevel(logging.WARNING)
        lg.propagate = False


def truncate_and_hash(text: str, limit_bytes: int = 4096) -> dict[str, Any]:
    """Return sampling metadata with truncation to limit_bytes and hash for identity."""
    encoded = str(text).encode("utf-8", errors="ignore")
    digest = hashlib.sha256(encoded).hexdigest()[:8]
    if len(encoded) <= limit_bytes:
        return {
            "input_truncated": text,
            "input_hash": digest,
            "truncated": False,
        }
    preview_text = encoded[:limit_bytes].decode("utf-8", errors="ignore")
    return {
        "input_truncated": f"{preview_text}... [truncated: {len(encoded) // 1024}KB]",
        "input_hash": digest,
        "truncated": True,
    }


_SECRET_RE = re.compile(r"(token|key|secret|authorization)[a-z0-9_\-]*", re.IGNORECASE)


def mask_secrets(data: Any) -> Any:
    r"""Mask obvious secrets in nested structures by key names.

    Replaces values for keys matching /(token|key|secret|authorization)\w*/i with '***'.
    """
    if isinstance(data, dict):
        return {
            k: ("***" if _SECRET_RE.search(str(k)) else mask_secrets(v))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [mask_secrets(v) for v in data]
    return data
