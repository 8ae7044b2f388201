"""Coverage workflow utilities: property resolution, directory discovery and report packaging."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
