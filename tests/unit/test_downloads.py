"""Unit tests for saving the downloaded document."""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import MagicMock

from scra.browser.downloads import save_download


def _download(content: bytes) -> MagicMock:
    download = MagicMock()
    download.url = "https://scra.example/report.pdf"
    download.suggested_filename = "report.pdf"
    download.save_as.side_effect = lambda path: Path(path).write_bytes(content)
    return download


class TestSaveDownload:
    def test_saves_and_fingerprints(self, tmp_path: Path) -> None:
        content = b"%PDF-1.7 fake"
        destination = tmp_path / "run" / "scra-result.pdf"

        record = save_download(_download(content), destination)

        assert destination.read_bytes() == content
        assert record.saved_path == str(destination)
        assert record.size_bytes == len(content)
        assert record.sha256 == hashlib.sha256(content).hexdigest()
        assert record.to_dict()["suggested_filename"] == "report.pdf"
