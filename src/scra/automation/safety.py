"""Last-resort liveness guard for a run.

A :class:`SafetyTimer` is armed when a run starts and cancelled once the
run reaches the target form.  If it fires first the run is treated as an
unrecoverable hang: the ``on_expire`` hook records what it can, then the
whole process is terminated so the supervisor restarts it.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


def _terminate(code: int) -> None:
    os._exit(code)


class SafetyTimer:
    """Daemon timer that force-exits the process unless cancelled in time.

    Args:
        timeout_sec: Seconds until the timer fires.
        on_expire: Called before termination (e.g. to write an error report).
        terminate: Called with exit code 1 after *on_expire*; ``os._exit`` by default.
    """

    def __init__(
        self,
        timeout_sec: float,
        *,
        on_expire: Callable[[], None] | None = None,
        terminate: Callable[[int], None] = _terminate,
    ) -> None:
        self.timeout_sec = timeout_sec
        self._on_expire = on_expire
        self._terminate = terminate
        self._timer: threading.Timer | None = None
        self.fired = False

    def start(self) -> None:
        if self.timeout_sec <= 0:
            logger.debug("Safety timer disabled")
            return
        logger.info("Setting up safety timeout for %.0f seconds", self.timeout_sec)
        self._timer = threading.Timer(self.timeout_sec, self._fire)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug("Safety timeout cleared")

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def _fire(self) -> None:
        self.fired = True
        logger.critical(
            "SAFETY TIMEOUT TRIGGERED after %.0f seconds - process appears to be hanging", self.timeout_sec
        )
        if self._on_expire is not None:
            try:
                self._on_expire()
            except Exception:
                logger.exception("Safety timer expiry hook failed")
        self._terminate(1)

    def __enter__(self) -> SafetyTimer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()
