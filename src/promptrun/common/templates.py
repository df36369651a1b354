"""Landing page helpers."""
from __future__ import annotations
from pathlib import Path

INDEX_PAGE = "index.html"

def load_page(static_dir: str | Path, name: str = INDEX_PAGE) -> str:
    """
    Load an HTML page from the static directory.

    Args:
        static_dir: Directory holding the static assets.
        name: File name of the page.

    Raises:
        FileNotFoundError: If the page does not exist.
    """
    path = Path(static_dir) / name
    if not path.is_file():
        raise FileNotFoundError(f"Page not found at {path}")
    return path.read_text(encoding="utf-8")
