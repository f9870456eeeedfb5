"""SCRA automation job.

Runs one SCRA lookup as a standalone job, suitable for execution as a
container job (``scra job run``) or a scheduled task.  The request is
read from environment variables so no personal data appears on the
command line.

Environment variables:
    SCRA_JOB__SSN:           Subject identifier (required).
    SCRA_JOB__LAST_NAME:     Subject last name (required).
    SCRA_JOB__FIRST_NAME:    Subject first name (required).
    SCRA_JOB__DOB:           Date of birth (optional).
    SCRA_JOB__USERNAME:      Remote-site username (required).
    SCRA_JOB__PASSWORD:      Remote-site password (required).
    SCRA_JOB__MATTER_ID:     Correlation id echoed to the callback.
    SCRA_JOB__CALLBACK_URL:  Callback URL; delivery is skipped when unset.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

if TYPE_CHECKING:
    from scra.settings.config import RunSettings

logger = logging.getLogger(__name__)

JOB_ENV_PREFIX = "SCRA_JOB__"

_JOB_FIELDS = {
    "ssn": "SSN",
    "lastName": "LAST_NAME",
    "firstName": "FIRST_NAME",
    "dob": "DOB",
    "scraUsername": "USERNAME",
    "scraPassword": "PASSWORD",
    "matterId": "MATTER_ID",
    "callbackUrl": "CALLBACK_URL",
}


def main() -> int:
    """Run an SCRA automation job.

    Reads the request from ``SCRA_JOB__*`` environment variables, runs
    the automation once and logs the outcome.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    from scra.settings import get_settings

    settings = get_settings()
    configure_logging(settings.run)

    from scra.models.request import AutomationRequest

    raw: dict[str, str] = {}
    for key, suffix in _JOB_FIELDS.items():
        value = os.environ.get(f"{JOB_ENV_PREFIX}{suffix}")
        if value is not None:
            raw[key] = value
    try:
        request = AutomationRequest.model_validate(raw)
    except ValidationError as exc:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        logger.error("Invalid job request, check %s* variables: %s", JOB_ENV_PREFIX, ", ".join(missing))
        return 1

    logger.info("SCRA Job starting: %s", request.log_context())
    start = time.monotonic()

    try:
        from scra.automation.orchestrator import run_automation

        result = run_automation(request, settings)
    except Exception:
        logger.exception("SCRA Job failed")
        return 1

    elapsed = time.monotonic() - start
    if not result.success:
        logger.error("Run %s failed after %.1fs (%s): %s", result.run_id, elapsed, result.error_kind, result.error)
        return 1

    determination = result.classification.determination.value if result.classification else "N/A"
    logger.info(
        "Run %s completed: determination=%s duration=%.1fs delivered=%s",
        result.run_id,
        determination,
        elapsed,
        result.delivery is not None,
    )
    if result.delivery_error:
        logger.warning("Callback delivery failed: %s", result.delivery_error)
    return 0


def configure_logging(run: RunSettings | None = None) -> None:
    """Set up logging for an entry point.

    With ``log_format = "json"`` emits one JSON object per line, compatible
    with container log severity parsing::

        {"severity": "INFO", "message": "...", "logger": "..."}

    Otherwise uses a human-readable plain-text format.
    """
    log_level = (run.log_level if run else os.environ.get("SCRA_RUN__LOG_LEVEL", "INFO")).upper()
    log_format = (run.log_format if run else os.environ.get("SCRA_RUN__LOG_FORMAT", "text")).strip().lower()
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonLogFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )

    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class JsonLogFormatter(logging.Formatter):
    """JSON formatter emitting one severity-tagged entry per record."""

    _LEVEL_MAP = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": self._LEVEL_MAP.get(record.levelname, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


if __name__ == "__main__":
    sys.exit(main())
