"""Failures raised by the inference backend client."""
from __future__ import annotations


class InferenceError(Exception):
    """Base class for inference backend failures."""


class BackendConfigError(InferenceError):
    """The client could not be constructed from its settings."""


class BackendUnavailableError(InferenceError):
    """The backend could not be reached."""


class GenerationError(InferenceError):
    """The backend answered, but did not produce a completion."""


class BackendTimeoutError(InferenceError):
    """The completion did not finish before the call deadline."""
