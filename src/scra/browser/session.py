"""Browser session manager.

Owns the Playwright browser process(es) used by automation runs.  Each slot
carries a busy flag and the time it was taken; a second acquisition while a
slot is busy is rejected with :class:`SessionBusy` instead of being queued,
unless the holder has been busy longer than the staleness threshold, in
which case the slot is presumed abandoned and force-cleared.

The staleness override keeps the service live after a crashed or hung run;
it does not guarantee mutual exclusion.  Every acquisition gets a fresh
token, so a late ``release`` from an overridden holder closes only its own
browser and leaves the slot's new owner untouched.

Usage::

    manager = BrowserSessionManager(settings.browser)
    with manager.session() as session:
        context = session.browser.new_context(...)
"""

from __future__ import annotations

import gc
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from scra.exceptions import LaunchFailed, SessionBusy

if TYPE_CHECKING:
    from scra.settings.config import BrowserSettings

logger = logging.getLogger(__name__)


def _default_playwright_factory() -> Any:
    from playwright.sync_api import sync_playwright

    return sync_playwright()


@dataclass
class _Slot:
    index: int
    busy: bool = False
    busy_since: float | None = None
    token: int = 0


@dataclass
class BrowserSession:
    """An acquired browser: the Playwright handles plus the acquisition token."""

    slot: int
    token: int
    playwright: Any = None
    browser: Any = None


class BrowserSessionManager:
    """Hand out exclusive browser sessions with forced recovery of stale holders.

    Args:
        browser: Browser settings section (engine, launch retries, staleness, pool size).
        launch_args: Keyword arguments for ``browser_type.launch()``.
        playwright_factory: Returns an object whose ``start()`` yields a
            Playwright instance (``sync_playwright`` by default).
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function used between launch attempts.
    """

    def __init__(
        self,
        browser: BrowserSettings,
        *,
        launch_args: dict[str, Any] | None = None,
        playwright_factory: Callable[[], Any] = _default_playwright_factory,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = browser.engine
        self.launch_retries = max(1, browser.launch_retries)
        self.launch_retry_delay = browser.launch_retry_delay_sec
        self.stale_after = browser.busy_stale_after_sec
        self.health_check = browser.health_check
        self.launch_args = launch_args or {"headless": browser.headless}
        self._playwright_factory = playwright_factory
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._slots = [_Slot(index=i) for i in range(max(1, browser.pool_size))]
        self._tokens = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def acquire(self) -> BrowserSession:
        """Reserve a slot and launch a healthy browser in it.

        Raises:
            SessionBusy: Every slot is held and none has gone stale.
            LaunchFailed: The browser could not be launched after all retries.
        """
        session = self._reserve_slot()
        try:
            self._launch(session)
        except LaunchFailed:
            self._free_slot(session)
            raise
        return session

    def release(self, session: BrowserSession) -> None:
        """Close the session's browser and free its slot.

        The slot is freed even if closing the browser fails.
        """
        try:
            self._close_browser(session)
        finally:
            self._free_slot(session)
            gc.collect()
            logger.debug("Released browser session slot %d", session.slot)

    @contextmanager
    def session(self) -> Iterator[BrowserSession]:
        """Scoped acquisition: the session is released on every exit path."""
        session = self.acquire()
        try:
            yield session
        finally:
            self.release(session)

    def is_busy(self) -> bool:
        """True when every slot is currently held."""
        with self._lock:
            return all(s.busy for s in self._slots)

    # ------------------------------------------------------------------
    # Slot bookkeeping
    # ------------------------------------------------------------------

    def _reserve_slot(self) -> BrowserSession:
        now = self._clock()
        with self._lock:
            chosen = next((s for s in self._slots if not s.busy), None)
            if chosen is None:
                held_for = [now - (s.busy_since if s.busy_since is not None else now) for s in self._slots]
                stale = [s for s, held in zip(self._slots, held_for) if held > self.stale_after]
                if not stale:
                    raise SessionBusy(min(held_for))
                chosen = stale[0]
                logger.warning(
                    "Browser session slot %d busy for %.1fs (> %.1fs); forcing reset",
                    chosen.index,
                    now - (chosen.busy_since or now),
                    self.stale_after,
                )
            self._tokens += 1
            chosen.busy = True
            chosen.busy_since = now
            chosen.token = self._tokens
            return BrowserSession(slot=chosen.index, token=chosen.token)

    def _free_slot(self, session: BrowserSession) -> None:
        with self._lock:
            slot = self._slots[session.slot]
            if slot.token != session.token:
                logger.info("Slot %d was reassigned after a stale override; leaving it busy", slot.index)
                return
            slot.busy = False
            slot.busy_since = None

    # ------------------------------------------------------------------
    # Launch / teardown
    # ------------------------------------------------------------------

    def _launch(self, session: BrowserSession) -> None:
        last_error: Exception | None = None
        for attempt in range(1, self.launch_retries + 1):
            try:
                logger.info("Launching %s browser (attempt %d/%d)", self.engine, attempt, self.launch_retries)
                session.playwright = self._playwright_factory().start()
                session.browser = getattr(session.playwright, self.engine).launch(**self.launch_args)
                if self.health_check:
                    self._check_health(session.browser)
                logger.info("Browser launched successfully")
                return
            except Exception as exc:
                last_error = exc
                logger.warning("Browser launch attempt %d failed: %s", attempt, exc)
                self._close_browser(session)
                if attempt < self.launch_retries:
                    self._sleep(self.launch_retry_delay)
        raise LaunchFailed(self.launch_retries, str(last_error)) from last_error

    @staticmethod
    def _check_health(browser: Any) -> None:
        """Open and close a throwaway context; raises if the browser is unusable."""
        context = browser.new_context()
        context.close()

    @staticmethod
    def _close_browser(session: BrowserSession) -> None:
        if session.browser is not None:
            try:
                session.browser.close()
            except Exception as exc:
                logger.warning("Error closing browser: %s", exc)
            session.browser = None
        if session.playwright is not None:
            try:
                session.playwright.stop()
            except Exception as exc:
                logger.warning("Error stopping Playwright: %s", exc)
            session.playwright = None
