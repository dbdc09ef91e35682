"""Error taxonomy for critical CSS generation."""

from __future__ import annotations

PAGE_UNLOADED = "PAGE_UNLOADED_DURING_EXECUTION"


class CriticalError(Exception):
    """Base class for every error surfaced by the generator."""


class InvalidInputError(CriticalError):
    """Raised when neither a source location nor literal HTML was supplied."""


class NoStylesheetsFoundError(CriticalError):
    """Raised when the document references no usable stylesheet."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No usable stylesheets found in html source. Try to specify the stylesheets manually."
        )


class ResolutionError(CriticalError):
    """Raised when a document or stylesheet cannot be read or fetched."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Unable to resolve {location}: {reason}")
        self.location = location
        self.reason = reason


class ExtractionError(CriticalError):
    """Raised when the rendering engine fails to compute critical CSS."""

    @property
    def page_unloaded(self) -> bool:
        """Whether the page unloaded before the engine finished."""

        return str(self).startswith(PAGE_UNLOADED)
