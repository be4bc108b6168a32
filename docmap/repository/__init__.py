"""Repository layer - typed handles over mappers."""

from __future__ import annotations

from docmap.repository.base import Repository

__all__ = [
    "Repository",
]
