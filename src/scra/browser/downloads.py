"""Saving and fingerprinting the document the form produces.

The submit click triggers a Playwright ``Download``; :func:`save_download`
stores it in the run directory and records its size and SHA-256 so the
document delivered to the callback can be matched to the file on disk.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CapturedDownload:
    """Record of the document downloaded during a run."""

    url: str
    suggested_filename: str
    saved_path: str = ""
    sha256: str = ""
    size_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "url": self.url,
            "suggested_filename": self.suggested_filename,
            "saved_path": self.saved_path,
            "sha256": self.sha256,
            "size_bytes": self.size_bytes,
        }


def save_download(download: Any, destination: Path) -> CapturedDownload:
    """Persist a Playwright ``Download`` to *destination* and fingerprint it."""
    record = CapturedDownload(url=download.url, suggested_filename=download.suggested_filename)
    destination.parent.mkdir(parents=True, exist_ok=True)
    download.save_as(str(destination))
    record.saved_path = str(destination)
    record.size_bytes = destination.stat().st_size
    record.sha256 = _compute_sha256(destination)
    logger.info(
        "Document saved: %s (SHA-256: %s, %d bytes)", destination.name, record.sha256[:16], record.size_bytes
    )
    return record


def _compute_sha256(path: Path) -> str:
    """SHA-256 of a file, read in 64 KB chunks."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(65536)
            if not chunk:
                break
            sha256.update(chunk)
    return sha256.hexdigest()
