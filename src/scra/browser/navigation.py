"""Resilient navigation to the remote form.

The SCRA site is slow, access-restricted and occasionally blocks or
times out; a single ``page.goto`` produces spurious failures that a short
backoff resolves.  :func:`retry` wraps any transient operation with
exponential backoff plus jitter, and :func:`goto_verified` is the
operation used for the primary navigation: it loads the target and checks
the content actually is the expected form.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Literal, TypeVar

from scra.exceptions import NavigationFailed

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

# Upper bound of the random jitter added to each backoff step, in seconds.
JITTER_MAX_SEC = 1.0


def next_delay(delay: float, max_delay: float, *, jitter: float) -> float:
    """Backoff step: ``min(delay * 1.5 + jitter, max_delay)``."""
    return min(delay * 1.5 + jitter, max_delay)


def retry(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    initial_delay: float = 10.0,
    max_delay: float = 60.0,
    final_error: Exception | None = None,
    sleep: Callable[[float], None] = time.sleep,
    jitter: Callable[[], float] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Run *operation*, retrying on any exception with exponential backoff.

    After a failed attempt, if retries remain, sleeps for the current delay
    and then grows it to ``min(delay * 1.5 + U(0, 1s), max_delay)``.  The
    operation runs at most ``max_retries + 1`` times.

    Args:
        operation: Zero-argument callable to attempt.
        max_retries: Retries after the first attempt.
        initial_delay: First sleep, in seconds (capped at *max_delay*).
        max_delay: Ceiling for every sleep, in seconds.
        final_error: Raised instead of the last underlying error when all
            attempts fail (chained to it).
        sleep: Sleep function, injectable for tests.
        jitter: Returns the jitter for one step; defaults to ``U(0, 1s)``.
        on_retry: Called as ``on_retry(attempt, error, delay)`` before each sleep.

    Returns:
        Whatever *operation* returns on its first successful attempt.
    """
    draw_jitter = jitter or (lambda: random.uniform(0.0, JITTER_MAX_SEC))
    delay = min(initial_delay, max_delay)
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if attempt > max_retries:
                if final_error is not None:
                    raise final_error from exc
                raise
            logger.warning(
                "Attempt %d failed, retrying in %.1fs (%d retries left): %s",
                attempt,
                delay,
                max_retries - attempt + 1,
                exc,
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            sleep(delay)
            delay = next_delay(delay, max_delay, jitter=draw_jitter())


def verify_content(content: str, *, denied_markers: Sequence[str], expected_markers: Sequence[str]) -> str | None:
    """Return a failure reason if *content* is not the expected page, else ``None``."""
    for marker in denied_markers:
        if marker in content:
            return "access_denied"
    if expected_markers and not any(marker in content for marker in expected_markers):
        return "wrong_page"
    return None


def goto_verified(
    page: Page,
    url: str,
    *,
    timeout_ms: int,
    denied_markers: Sequence[str],
    expected_markers: Sequence[str],
    wait_until: WaitUntil = "domcontentloaded",
    on_failure: Callable[[str], None] | None = None,
) -> None:
    """Navigate to *url* and check the loaded content is the target form.

    Raises:
        NavigationFailed: Navigation errored, or the content carried an
            access-denied marker or none of the expected markers.
            *on_failure* is called with a reason tag first.
    """
    try:
        page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        title = page.title()
        content = page.content()
    except Exception as exc:
        if on_failure is not None:
            on_failure("navigation_error")
        raise NavigationFailed(f"Navigation failed: {exc}") from exc

    logger.info("Page title after navigation: %s", title)
    reason = verify_content(content, denied_markers=denied_markers, expected_markers=expected_markers)
    if reason is not None:
        if on_failure is not None:
            on_failure(reason)
        if reason == "access_denied":
            raise NavigationFailed("Navigation failed: access to the site appears to be denied or blocked")
        raise NavigationFailed("Navigation failed: page content does not match the expected form")
