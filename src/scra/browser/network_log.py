"""Network activity logging for a Playwright page.

Attaches to a page's ``request``, ``requestfailed`` and ``response`` events,
records each as a :class:`NetworkEvent` on the run context (which flushes
the log to ``network_log.json`` after every event) and produces a
per-kind summary for failure diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from scra.models.results import utc_now_iso

if TYPE_CHECKING:
    from playwright.sync_api import Page, Request, Response

    from scra.evidence.storage import RunContext

logger = logging.getLogger(__name__)


class NetworkEventKind(str, Enum):
    REQUEST_SENT = "request_sent"
    REQUEST_FAILED = "request_failed"
    RESPONSE_RECEIVED = "response_received"
    RESPONSE_ERROR = "response_error"


@dataclass(frozen=True)
class NetworkEvent:
    """One observed network event."""

    kind: NetworkEventKind
    url: str
    method: str = ""
    status: int | None = None
    status_text: str = ""
    failure_reason: str = ""
    resource_type: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "type": self.kind.value,
            "url": self.url,
            "method": self.method,
            "resourceType": self.resource_type,
        }
        if self.status is not None:
            data["status"] = self.status
            data["statusText"] = self.status_text
        if self.failure_reason:
            data["failureText"] = self.failure_reason
        return data


def summarize(events: list[NetworkEvent]) -> dict[str, int]:
    """Count events by kind."""
    return {
        "totalRequests": sum(1 for e in events if e.kind is NetworkEventKind.REQUEST_SENT),
        "failedRequests": sum(1 for e in events if e.kind is NetworkEventKind.REQUEST_FAILED),
        "errorResponses": sum(1 for e in events if e.kind is NetworkEventKind.RESPONSE_ERROR),
        "successfulResponses": sum(
            1
            for e in events
            if e.kind is NetworkEventKind.RESPONSE_RECEIVED and (e.status or 0) < 400
        ),
    }


class NetworkActivityLogger:
    """Record a page's network traffic into a :class:`RunContext`.

    Attach **before** the first navigation so the whole session is captured.
    """

    def __init__(self, run_context: RunContext) -> None:
        self.run_context = run_context

    def attach(self, page: Page) -> None:
        page.on("request", self._on_request)
        page.on("requestfailed", self._on_request_failed)
        page.on("response", self._on_response)
        logger.debug("Network logger attached for run %s", self.run_context.run_id)

    @property
    def events(self) -> list[NetworkEvent]:
        return list(self.run_context.network_events)

    def summary(self) -> dict[str, int]:
        """Summarize and log the traffic seen so far."""
        result = summarize(self.events)
        logger.info("Network activity summary: %s", result)
        return result

    # ------------------------------------------------------------------
    # Playwright event handlers
    # ------------------------------------------------------------------

    def _record(self, event: NetworkEvent) -> None:
        self.run_context.record_network_event(event)
        if event.kind in (NetworkEventKind.REQUEST_FAILED, NetworkEventKind.RESPONSE_ERROR):
            logger.warning(
                "Network %s: %s %s %s",
                event.kind.value,
                event.method,
                event.url,
                event.failure_reason or event.status,
            )

    def _on_request(self, request: Request) -> None:
        self._record(
            NetworkEvent(
                kind=NetworkEventKind.REQUEST_SENT,
                url=request.url,
                method=request.method,
                resource_type=request.resource_type,
                timestamp=utc_now_iso(),
            )
        )

    def _on_request_failed(self, request: Request) -> None:
        self._record(
            NetworkEvent(
                kind=NetworkEventKind.REQUEST_FAILED,
                url=request.url,
                method=request.method,
                failure_reason=request.failure or "Unknown failure",
                resource_type=request.resource_type,
                timestamp=utc_now_iso(),
            )
        )

    def _on_response(self, response: Response) -> None:
        status = response.status
        kind = NetworkEventKind.RESPONSE_ERROR if status >= 400 else NetworkEventKind.RESPONSE_RECEIVED
        request = response.request
        self._record(
            NetworkEvent(
                kind=kind,
                url=response.url,
                method=request.method,
                status=status,
                status_text=response.status_text,
                resource_type=request.resource_type,
                timestamp=utc_now_iso(),
            )
        )
