"""
promptrun package.

Provides:
- A FastAPI front end that forwards prompts to a local Ollama server
- A uvicorn-based server lifecycle with graceful shutdown
"""

__version__ = "0.1.0"
