"""FastAPI application factory.

Routes:
- GET /           landing page
- GET /static/*   files from the configured static directory
- POST /run       prompt completion
- GET /health
"""
from __future__ import annotations
import logging
import time
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from promptrun.backend.ollama_client import OllamaClient
from promptrun.common.config import OllamaSettings, ServerConfig
from promptrun.common.templates import load_page
from promptrun.serve.handlers import CompletionClient, router

LOGGER = logging.getLogger("promptrun.serve.access")


class AccessLogMiddleware:
    """Log method, path, status and latency of every HTTP request.

    ``receive`` is passed through untouched so handlers still see the
    client's disconnect message.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status = 500

        async def send_with_status(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_with_status)
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            LOGGER.info(
                '"%s %s" %d %.1fms',
                scope["method"],
                scope["path"],
                status,
                latency_ms,
            )


def ollama_client_factory(settings: OllamaSettings) -> Callable[[], OllamaClient]:
    """Return a factory building a fresh ``OllamaClient`` per request."""
    def build() -> OllamaClient:
        return OllamaClient(settings)
    return build


def create_app(
    config: ServerConfig,
    settings: OllamaSettings | None = None,
    client_factory: Callable[[], CompletionClient] | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Server settings; the landing page is read from ``config.static_dir``.
        settings: Backend settings, used when ``client_factory`` is not given.
        client_factory: Callable returning a completion client per request.

    Raises:
        FileNotFoundError: If the landing page is missing.
    """
    settings = settings or OllamaSettings()
    index_html = load_page(config.static_dir)

    app = FastAPI(title="promptrun", docs_url=None, redoc_url=None)
    app.state.config = config
    app.state.model = settings.model
    app.state.client_factory = client_factory or ollama_client_factory(settings)

    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        return index_html

    app.include_router(router)
    app.add_middleware(AccessLogMiddleware)
    app.mount("/static", StaticFiles(directory=config.static_dir), name="static")
    return app
