"""Exception types raised across the scan pipeline.

Every stage raises its own subclass of :class:`CoaScanError`;
:class:`~coascan.pipeline.controller.PipelineController` catches them at the
stage boundary and stores a fixed human-readable text in place of the value
the stage would have produced.
"""

from __future__ import annotations

from typing import Optional


class CoaScanError(Exception):
    """Base exception for pipeline errors."""


class FetchError(CoaScanError):
    """Retrieving the document failed (transport error or non-2xx status)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"Fetching {url} failed with HTTP {status_code}: {message}")
        else:
            super().__init__(f"Fetching {url} failed: {message}")


class ExtractionError(CoaScanError):
    """The payload could not be parsed as a paginated document."""


class TemplateLoadError(CoaScanError):
    """The prompt template resource is unavailable."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Could not load prompt template {path!r}: {message}")


class AnalysisError(CoaScanError):
    """The analysis service call failed or returned an unexpected payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidTransition(ValueError):
    """An event was delivered to a pipeline state that does not accept it."""

    def __init__(self, phase: str, event: str):
        self.phase = phase
        self.event = event
        super().__init__(f"Event {event} is not allowed while pipeline is {phase}")


class PipelineCancelled(CoaScanError):
    """The pipeline's cancellation token fired before a result was committed."""


class UnknownRecord(CoaScanError, LookupError):
    """No history record exists for the requested url."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No scan record for {url!r}")
