"""
OSC Monitor Server
========================
This module contains the HTTP server for OSC Monitor, which serves the event
feed and instance-count APIs over a Grafana-proxied Loki/Prometheus backend
and, when configured, the prebuilt dashboard files.
It uses FastAPI for the server and Starlette for static file serving.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles as StarletteStaticFiles

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .backend import BackendClient
from .config_manager import Config
from .events import EventAggregator
from .logging_utils import mask_secrets
from .metrics import MetricAggregator
from .middleware.request_id import install_request_id_middleware
from .routes import init_event_routes, init_instance_routes


class CORSStaticFiles(StarletteStaticFiles):
    """
    Static files handler that adds CORS headers to all responses.
    Needed because Starlette StaticFiles might bypass standard middleware.
    """

    async def get_response(self, path: str, scope):
        response = await super().get_response(path, scope)

        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "*"

        if path.endswith(".js"):
            response.headers["Content-Type"] = "application/javascript"

        return response


class MonitorServer:
    """
    API server for OSC Monitor.

    Creates and configures a FastAPI app, wires one shared backend client into
    the event and metric aggregators and registers their routes.

    Args:
        config (Config): Application configuration.
        backend_client (BackendClient, optional):
            Pre-built backend client. If omitted one is created from
            `config.backend_config` and closed when the app shuts down.
    """

    def __init__(self, config: Config, backend_client: Optional[BackendClient] = None):
        self.config = config
        self.backend_client = backend_client or BackendClient(config.backend_config)
        self.event_aggregator = EventAggregator(self.backend_client, config.feed_config)
        self.metric_aggregator = MetricAggregator(
            self.backend_client, config.metrics_config
        )

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.bind(component="server").info(
                {
                    "event": "server.startup",
                    "backend": mask_secrets(config.backend_config.model_dump()),
                    "sources": [s.name for s in self.event_aggregator.sources],
                }
            )
            yield
            await self.backend_client.aclose()

        self.app = FastAPI(title="OSC Monitor", lifespan=lifespan)

        system_config = config.system_config
        limiter = Limiter(
            key_func=get_remote_address, default_limits=[system_config.rate_limit]
        )
        self.app.state.limiter = limiter
        self.app.add_middleware(SlowAPIMiddleware)
        self.app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=system_config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        install_request_id_middleware(self.app)

        # Liveness probe
        @self.app.get("/healthz")
        async def _healthz():  # type: ignore[func-returns-value]
            return {"ok": True}

        self.app.include_router(init_event_routes(self.event_aggregator))
        self.app.include_router(init_instance_routes(self.metric_aggregator))

        # Mount the dashboard last (as catch-all)
        frontend_dir = system_config.frontend_dir
        if frontend_dir:
            if os.path.isdir(frontend_dir):
                self.app.mount(
                    "/",
                    CORSStaticFiles(directory=frontend_dir, html=True),
                    name="frontend",
                )
            else:
                logger.bind(component="server").warning(
                    f"frontend_dir {frontend_dir!r} does not exist, serving API only"
                )
