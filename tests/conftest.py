from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest


class StubClient:
    """Completion client that records prompts and answers after an optional delay."""

    model = "stub-model"

    def __init__(self, completion: str | None = "hi there", delay: float = 0.0, error: Exception | None = None) -> None:
        self.completion = completion
        self.delay = delay
        self.error = error
        self.calls: list[str] = []
        self.started = threading.Event()
        self.cancelled = threading.Event()

    async def complete(self, prompt: str) -> str:
        self.calls.append(prompt)
        self.started.set()
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled.set()
                raise
        if self.error is not None:
            raise self.error
        if self.completion is None:
            return f"echo:{prompt}"
        return self.completion


@pytest.fixture()
def static_dir(tmp_path: Path) -> Path:
    d = tmp_path / "static"
    d.mkdir()
    (d / "index.html").write_text("<html><body><h1>promptrun</h1></body></html>", encoding="utf-8")
    (d / "style.css").write_text("body { margin: 0; }", encoding="utf-8")
    return d
