"""Local artifact storage for automation runs.

Every run gets its own directory under the outputs root, keyed by the
run's start timestamp (``run-2024-05-01T12-30-00-123Z``).  All screenshots,
the network log, the result summary, error reports and the retrieved
document for that run live there and are never touched by another run.

JSON files are written atomically (temporary file + ``os.replace``) so a
crash mid-write leaves the previous complete version on disk rather than a
truncated file.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scra.browser.network_log import NetworkEvent
    from scra.models.results import ErrorReport
    from scra.settings.config import Settings

logger = logging.getLogger(__name__)

RUN_DIR_PREFIX = "run-"
ERROR_LOG_NAME = "error_log.json"
NETWORK_LOG_NAME = "network_log.json"

_UNSAFE_TAG_RE = re.compile(r"[^A-Za-z0-9_-]+")

# Guards read-modify-write of the shared error log across concurrent runs.
_ERROR_LOG_LOCK = threading.Lock()


def write_json_atomic(path: Path, data: Any) -> None:
    """Serialize *data* to *path* via a sibling temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def run_id_for(moment: datetime) -> str:
    """Build the directory name for a run started at *moment*."""
    stamp = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return RUN_DIR_PREFIX + re.sub(r"[:.]", "-", stamp)


@dataclass
class RunContext:
    """Side-effect owner for one automation attempt.

    Holds the run directory, the screenshot sequence counter and the ordered
    network-event log.  Created by :meth:`ArtifactStore.create_run` and never
    reused for another attempt.
    """

    run_id: str
    artifact_dir: Path
    screenshot_seq: int = 0
    network_events: list[NetworkEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def path(self, name: str) -> Path:
        """Absolute path of an artifact file inside the run directory."""
        return self.artifact_dir / name

    def write_json(self, name: str, data: Any) -> Path:
        """Atomically write a JSON artifact and return its path."""
        target = self.path(name)
        write_json_atomic(target, data)
        return target

    def next_screenshot_path(self, tag: str) -> Path:
        """Reserve the next ordered screenshot filename for *tag*."""
        safe_tag = _UNSAFE_TAG_RE.sub("_", tag).strip("_") or "checkpoint"
        with self._lock:
            self.screenshot_seq += 1
            seq = self.screenshot_seq
        return self.path(f"{seq:02d}_{safe_tag}.png")

    def record_network_event(self, event: NetworkEvent) -> None:
        """Append an event and flush the whole log to disk.

        Events arrive from Playwright callbacks; the log on disk is always a
        complete JSON array of every event seen so far.
        """
        with self._lock:
            self.network_events.append(event)
            snapshot = [e.to_dict() for e in self.network_events]
            try:
                write_json_atomic(self.path(NETWORK_LOG_NAME), snapshot)
            except OSError as exc:
                logger.warning("Failed to flush network log for %s: %s", self.run_id, exc)

    def list_artifacts(self) -> list[str]:
        """Relative names of every file currently in the run directory."""
        return sorted(
            str(p.relative_to(self.artifact_dir)) for p in self.artifact_dir.rglob("*") if p.is_file()
        )


class ArtifactStore:
    """Create run directories and maintain the bounded central error log.

    Args:
        output_dir: Root under which ``run-*`` directories are created.
        logs_dir: Directory holding the shared ``error_log.json``.
        error_log_limit: Number of most recent error entries to keep.
    """

    def __init__(self, output_dir: Path, logs_dir: Path, *, error_log_limit: int = 100) -> None:
        self.output_dir = Path(output_dir)
        self.logs_dir = Path(logs_dir)
        self.error_log_limit = error_log_limit

    @property
    def error_log_path(self) -> Path:
        return self.logs_dir / ERROR_LOG_NAME

    def create_run(self, *, now: datetime | None = None) -> RunContext:
        """Allocate a fresh, never-before-used run directory."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        base = run_id_for(now or datetime.now(timezone.utc))

        run_id = base
        counter = 1
        while True:
            run_dir = self.output_dir / run_id
            try:
                run_dir.mkdir()
                break
            except FileExistsError:
                run_id = f"{base}-{counter}"
                counter += 1

        logger.info("Created output folder for this run: %s", run_dir)
        return RunContext(run_id=run_id, artifact_dir=run_dir)

    def append_error(self, report: ErrorReport) -> None:
        """Append *report* to the central error log, keeping the last N entries."""
        with _ERROR_LOG_LOCK:
            entries = self.read_error_log()
            entries.append(report.to_dict())
            if len(entries) > self.error_log_limit:
                entries = entries[-self.error_log_limit :]
            write_json_atomic(self.error_log_path, entries)

    def read_error_log(self) -> list[dict[str, Any]]:
        """Return the central error log, or an empty list if absent or unreadable."""
        path = self.error_log_path
        if not path.is_file():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to parse existing error log %s: %s", path, exc)
            return []
        return data if isinstance(data, list) else []


def build_artifact_store(settings: Settings | None = None) -> ArtifactStore:
    """Factory: return an :class:`ArtifactStore` using SCRA settings."""
    if settings is None:
        from scra.settings import get_settings

        settings = get_settings()
    return ArtifactStore(
        output_dir=Path(settings.artifacts.output_dir),
        logs_dir=Path(settings.artifacts.logs_dir),
        error_log_limit=settings.artifacts.error_log_limit,
    )
