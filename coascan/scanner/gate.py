"""Duplicate-suppression gate for decoded scan values.

A visual-code scanner re-emits the same decoded value on every frame while
the code stays in view.  :class:`ScanGate` admits each distinct value once
per cooldown window and drops the repeats.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from coascan.config import settings

logger = logging.getLogger(__name__)


class ScanGate:
    """Admit a decoded value at most once per cooldown window.

    Pending values are tracked with their expiry time and pruned lazily, so
    the gate does not need a running event loop to schedule removals.

    Args:
        cooldown: Window length in seconds.  Defaults to
            ``settings.scan_cooldown`` (5 s).
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        cooldown: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown = settings.scan_cooldown if cooldown is None else cooldown
        self._clock = clock
        self._pending: dict[str, float] = {}
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        expired = [code for code, until in self._pending.items() if until <= now]
        for code in expired:
            del self._pending[code]

    def admit(self, code: str) -> bool:
        """Return ``True`` if *code* should trigger the pipeline.

        The first call for a value admits it and opens its cooldown window;
        every further call inside the window returns ``False``.
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            if code in self._pending:
                logger.debug("Suppressed repeated scan %r", code)
                return False
            self._pending[code] = now + self.cooldown
        logger.info("Admitted scan %r", code)
        return True

    def is_pending(self, code: str) -> bool:
        """Return ``True`` while *code* is inside its cooldown window."""
        with self._lock:
            self._prune(self._clock())
            return code in self._pending

    @property
    def pending(self) -> frozenset[str]:
        """Snapshot of the values currently inside their cooldown window."""
        with self._lock:
            self._prune(self._clock())
            return frozenset(self._pending)
