"""Browser launch and context profile.

Builds the keyword arguments for ``browser_type.launch()`` and
``browser.new_context()`` from settings, picking a user agent at random
from the configured pool so consecutive runs do not present an identical
fingerprint to the remote site.

Usage::

    profile = build_browser_profile(settings.browser)
    browser = pw.firefox.launch(**profile.launch_args)
    context = browser.new_context(**profile.context_args)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scra.settings.config import BrowserSettings

logger = logging.getLogger(__name__)


@dataclass
class BrowserProfile:
    """All Playwright launch + context arguments for a single session."""

    launch_args: dict[str, Any] = field(default_factory=dict)
    context_args: dict[str, Any] = field(default_factory=dict)
    user_agent: str = ""


def build_browser_profile(browser: BrowserSettings, *, rng: random.Random | None = None) -> BrowserProfile:
    """Build a ``BrowserProfile`` for the configured engine.

    Args:
        browser: Browser settings section.
        rng: Optional random source, for deterministic tests.

    Returns:
        A ``BrowserProfile`` ready for Playwright.
    """
    chooser = rng or random
    profile = BrowserProfile()

    # --- Launch args ---
    profile.launch_args["headless"] = browser.headless
    if browser.launch_args:
        profile.launch_args["args"] = list(browser.launch_args)
    if browser.engine == "firefox" and browser.firefox_user_prefs:
        profile.launch_args["firefox_user_prefs"] = dict(browser.firefox_user_prefs)

    # --- Context args ---
    ctx = profile.context_args
    ctx["viewport"] = {"width": browser.viewport_width, "height": browser.viewport_height}
    ctx["accept_downloads"] = True
    if browser.user_agents:
        ua = chooser.choice(browser.user_agents)
        ctx["user_agent"] = ua
        profile.user_agent = ua
        logger.debug("Using user agent: %s", ua)
    if browser.extra_http_headers:
        ctx["extra_http_headers"] = dict(browser.extra_http_headers)
    ctx["ignore_https_errors"] = browser.ignore_https_errors

    return profile
