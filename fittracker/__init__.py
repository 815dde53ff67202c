"""fittracker package."""

from importlib import metadata
from typing import Any

try:
    __version__ = metadata.version("fittracker-pro")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for local edits
    __version__ = "0.0.0"

__all__ = ["app", "create_app", "__version__"]


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised indirectly
    if name == "app":
        from .cli import app

        return app
    if name == "create_app":
        from .webapp import create_app

        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
