"""Repeating keep-alive timer."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL_S = 10.0


class KeepAliveTimer:
    """Calls ``callback`` every ``interval_s`` seconds until cancelled.

    ``cancel()`` only stops future waits; a tick already past its wait may still
    run, so the callback must check that its connection is still current.
    """

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="KeepAlive", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval_s):
            try:
                self._callback()
            except Exception:
                logger.exception("Keep-alive tick failed")
