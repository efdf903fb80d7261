"""Cooperative cancellation for in-flight pipelines."""

from __future__ import annotations

import threading

from coascan.errors import PipelineCancelled


class CancellationToken:
    """Flag shared between a pipeline and whoever started it.

    Stages call :meth:`raise_if_cancelled` before committing a result, so a
    torn-down caller's late results are discarded instead of persisted.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("pipeline was cancelled")
