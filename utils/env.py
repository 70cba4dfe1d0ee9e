from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

"""Environment helper utilities.

Loads a `.env` file from the project root so that the Klaviyo and Shopify
credentials (``KLAVIYO_API_KEY``, ``SHOPIFY_API_TOKEN`` ...) defined there
become available to :func:`config.config.load_settings` via ``os.environ``.
"""

__all__ = ["load_project_dotenv"]


def _find_project_root(start: Path | None = None) -> Path:
    """Walk upwards until a directory containing `pyproject.toml` is found."""
    current = start or Path(__file__).resolve().parent
    for _ in range(10):  # safety break
        if (current / "pyproject.toml").exists():
            return current
        if current.parent == current:
            break
        current = current.parent
    return Path(__file__).resolve().parent


def load_project_dotenv(start: Path | None = None) -> Path | None:
    """Load the project-level `.env` if present; return its path or None.

    Variables already present in the process environment win over `.env`.
    """
    dotenv_path = _find_project_root(start) / ".env"
    if not dotenv_path.exists():
        return None
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path
