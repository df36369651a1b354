"""Pydantic models for the /run request and response bodies."""
from __future__ import annotations

from pydantic import BaseModel, StrictStr


class PromptRequest(BaseModel):
    """Prompt submitted by the user."""
    input: StrictStr


class PromptResponse(BaseModel):
    """Prompt echoed back together with the model's completion."""
    input: str
    response: str
