"""Result models for automation runs.

Lightweight data classes capturing the outcome of a run: the classification,
the callback delivery outcome, and the failure report when a run fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Determination(str, Enum):
    """Outcome derived from the retrieved document."""

    YES = "Yes"
    NO = "No"


class RunStatus(str, Enum):
    """Run lifecycle outcome."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunState(str, Enum):
    """Orchestrator states, in the order a successful run visits them."""

    INITIALIZING = "initializing"
    SESSION_ACQUIRED = "session_acquired"
    NAVIGATED = "navigated"
    AUTHENTICATED = "authenticated"
    FORM_FILLED = "form_filled"
    CONSENTED = "consented"
    SUBMITTED = "submitted"
    CLASSIFIED = "classified"
    DELIVERED = "delivered"
    FAILING = "failing"
    CLOSED = "closed"


@dataclass(frozen=True)
class ClassificationResult:
    """Determination for one retrieved document. Written once per successful run."""

    correlation_id: str
    determination: Determination
    document_name: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``result.json`` shape."""
        return {
            "correlationId": self.correlation_id,
            "determination": self.determination.value,
            "documentName": self.document_name,
            "timestamp": self.timestamp,
        }


@dataclass
class DeliveryOutcome:
    """What the callback receiver answered."""

    status_code: int
    reason_phrase: str = ""
    body: Any = None
    is_html_response: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status_code,
            "reasonPhrase": self.reason_phrase,
            "data": self.body,
            "isHtmlResponse": self.is_html_response,
        }


@dataclass
class ErrorReport:
    """Structured description of a failed run. Never contains credentials."""

    error_message: str
    error_kind: str
    masked_context: dict[str, Any] = field(default_factory=dict)
    stage: str = ""
    run_id: str = ""
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "runId": self.run_id,
            "error": {
                "message": self.error_message,
                "kind": self.error_kind,
                "stage": self.stage,
            },
            "context": self.masked_context,
        }


@dataclass
class RunResult:
    """Complete outcome of one automation run."""

    run_id: str = ""
    artifact_dir: str = ""
    status: RunStatus = RunStatus.RUNNING
    state: RunState = RunState.INITIALIZING
    classification: ClassificationResult | None = None
    document_path: str = ""
    delivery: DeliveryOutcome | None = None
    delivery_skipped: bool = False
    delivery_error: str = ""
    error: str = ""
    error_kind: str = ""
    retry_delays: list[float] = field(default_factory=list)
    network_summary: dict[str, int] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "run_id": self.run_id,
            "artifact_dir": self.artifact_dir,
            "status": self.status.value,
            "state": self.state.value,
            "classification": self.classification.to_dict() if self.classification else None,
            "document_path": self.document_path,
            "delivery": self.delivery.to_dict() if self.delivery else None,
            "delivery_skipped": self.delivery_skipped,
            "delivery_error": self.delivery_error,
            "error": self.error,
            "error_kind": self.error_kind,
            "retry_delays": self.retry_delays,
            "network_summary": self.network_summary,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
