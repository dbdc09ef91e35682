"""In-memory records for documents and stylesheets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Resource:
    """Materialized document or stylesheet.

    ``path`` is an absolute filesystem path, an absolute URL, or ``None`` for
    literal content. ``base`` is the directory (or URL directory) relative
    references inside ``contents`` resolve against. Transform stages replace
    ``contents`` in place.
    """

    contents: str
    path: Optional[str]
    base: str
    remote: bool = False

    @property
    def label(self) -> str:
        return self.path or "<inline>"
