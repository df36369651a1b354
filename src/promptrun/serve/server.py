"""Server lifecycle: bind, serve, and shut down gracefully on SIGINT/SIGTERM."""
from __future__ import annotations
import enum
import logging
import signal
import sys
from types import FrameType

import uvicorn
from fastapi import FastAPI

from promptrun.common.config import ServerConfig, load_config, load_env_file, load_ollama_settings
from promptrun.common.logging_setup import setup_logging
from promptrun.serve.app import create_app

LOGGER = logging.getLogger("promptrun.serve.server")


class ServerState(str, enum.Enum):
    STARTING = "starting"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class GracefulServer(uvicorn.Server):
    """
    uvicorn server that tracks its lifecycle state.

    On SIGINT or SIGTERM the listener is closed at once and in-flight
    requests get ``timeout_graceful_shutdown`` seconds to finish before
    they are cancelled.
    """

    def __init__(self, config: uvicorn.Config) -> None:
        super().__init__(config)
        self.state = ServerState.STARTING

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self.state = ServerState.LISTENING
            LOGGER.info("Listening on %s:%s", self.config.host, self.bound_port)

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if self.state is not ServerState.SHUTTING_DOWN:
            LOGGER.info("Shutting down server...")
            self.state = ServerState.SHUTTING_DOWN
        super().handle_exit(sig, frame)

    async def serve(self, sockets=None) -> None:
        try:
            await super().serve(sockets=sockets)
        finally:
            graceful = self.state is ServerState.SHUTTING_DOWN
            self.state = ServerState.STOPPED
            LOGGER.info("Server gracefully stopped" if graceful else "Server stopped")

    @property
    def bound_port(self) -> int | None:
        for server in getattr(self, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None


def build_server(app: FastAPI, config: ServerConfig) -> GracefulServer:
    uv_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.bind_port,
        timeout_graceful_shutdown=config.shutdown_grace,
        access_log=False,
        log_config=None,
    )
    return GracefulServer(uv_config)


def _exit_after_drain(sig: int, frame: FrameType | None) -> None:
    # uvicorn re-delivers the captured signal once connections are drained
    raise SystemExit(0)


def main() -> None:
    setup_logging()
    load_env_file()

    try:
        config = load_config()
        setup_logging(config.log_level)
        app = create_app(config, load_ollama_settings())
        server = build_server(app, config)
    except (OSError, RuntimeError, ValueError) as e:
        LOGGER.critical("Startup failed: %s", e)
        sys.exit(1)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _exit_after_drain)
    server.run()


if __name__ == "__main__":
    main()
