"""Request handlers for the prompt API.

Endpoints:
- POST /run  { "input": "..." } -> { "input": "...", "response": "..." }
- GET /health
"""
from __future__ import annotations
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import ValidationError

from promptrun.backend.errors import (
    BackendConfigError,
    BackendTimeoutError,
    BackendUnavailableError,
    InferenceError,
)
from promptrun.common.schema import PromptRequest, PromptResponse

LOGGER = logging.getLogger("promptrun.serve.handlers")

# nginx convention for "client closed request"
CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.5

T = TypeVar("T")


class CompletionClient(Protocol):
    model: str

    async def complete(self, prompt: str) -> str: ...


class ClientDisconnected(Exception):
    """The HTTP client went away before the completion finished."""


router = APIRouter()


def get_client_factory(request: Request) -> Callable[[], CompletionClient]:
    return request.app.state.client_factory


def get_max_body_bytes(request: Request) -> int:
    return request.app.state.config.max_body_bytes


async def read_body(request: Request, limit: int) -> bytes:
    """Read the request body, refusing anything larger than ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise HTTPException(status_code=413, detail=f"Request body exceeds {limit} bytes")

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise HTTPException(status_code=413, detail=f"Request body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def decode_prompt(body: bytes) -> PromptRequest:
    try:
        return PromptRequest.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def await_unless_disconnected(request: Request, work: Awaitable[T]) -> T:
    """
    Await ``work`` while watching for the client to disconnect.

    The work is cancelled if the client goes away first.

    Raises:
        ClientDisconnected: The client closed the connection.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


@router.get("/health")
def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "model": request.app.state.model}


@router.post("/run", response_model=PromptResponse)
async def run(
    request: Request,
    client_factory: Callable[[], CompletionClient] = Depends(get_client_factory),
    max_body_bytes: int = Depends(get_max_body_bytes),
) -> PromptResponse | Response:
    body = await read_body(request, max_body_bytes)
    prompt = decode_prompt(body)

    try:
        client = client_factory()
    except BackendConfigError as e:
        LOGGER.error("Failed to initialize inference client: %s", e)
        raise HTTPException(status_code=503, detail=f"Inference backend not configured: {e}")

    try:
        completion = await await_unless_disconnected(request, client.complete(prompt.input))
    except ClientDisconnected:
        LOGGER.info("Client disconnected, abandoned completion")
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except BackendUnavailableError as e:
        LOGGER.error("Inference backend unavailable: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    except BackendTimeoutError as e:
        LOGGER.error("Inference timed out: %s", e)
        raise HTTPException(status_code=504, detail=str(e))
    except InferenceError as e:
        LOGGER.error("LLM generation failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    return PromptResponse(input=prompt.input, response=completion)

