"""Diagnostic screenshot checkpoints.

The orchestrator and the form sequencer call :meth:`Checkpointer.capture`
at named transitions; every capture lands in the run directory as
``NN_<tag>.png`` in sequence order.  Captures are best-effort: a page
that cannot be screenshotted must never mask the error being diagnosed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from scra.evidence.storage import RunContext

logger = logging.getLogger(__name__)


class Checkpointer:
    """Take ordered, tagged screenshots of a page into a run directory."""

    def __init__(self, run_context: RunContext, page: Page | None = None, *, full_page: bool = True) -> None:
        self.run_context = run_context
        self.page = page
        self.full_page = full_page
        self.captured: list[Path] = []

    def bind(self, page: Page) -> None:
        self.page = page

    def capture(self, tag: str) -> Path | None:
        """Screenshot the bound page under *tag*; returns the path or ``None``."""
        if self.page is None:
            logger.debug("No page bound; skipping checkpoint %s", tag)
            return None
        path = self.run_context.next_screenshot_path(tag)
        try:
            self.page.screenshot(path=str(path), full_page=self.full_page)
        except Exception as exc:
            logger.warning("Failed to capture checkpoint %s: %s", tag, exc)
            return None
        self.captured.append(path)
        logger.debug("Checkpoint %s -> %s", tag, path.name)
        return path
