"""Delivery of run results to the caller's callback URL.

Sends one JSON POST per run::

    {"correlationId": "...", "determination": "Yes" | "No", "documentBase64": "..."}

There is no automatic retry: delivery is at most once per run.  A receiver
that answers 2xx with an HTML page (usually a site that is not configured
as a REST endpoint) is logged as a warning but counts as delivered.

Usage::

    client = CallbackClient(timeout=60.0)
    outcome = client.deliver(url, correlation_id="M-1", determination=Determination.NO,
                             document=pdf_bytes, run_context=ctx)
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import httpx

from scra.exceptions import DeliveryFailed
from scra.models.request import normalize_callback_url
from scra.models.results import DeliveryOutcome, Determination

if TYPE_CHECKING:
    from scra.evidence.storage import RunContext
    from scra.settings.config import Settings

logger = logging.getLogger(__name__)

_HTML_MARKERS = ("<!doctype html", "<html")


def build_payload(correlation_id: str, determination: Determination, document: bytes) -> dict[str, str]:
    """Build the callback JSON body."""
    return {
        "correlationId": correlation_id,
        "determination": determination.value,
        "documentBase64": base64.b64encode(document).decode("ascii"),
    }


def looks_like_html(body: Any) -> bool:
    """True if a response body is an HTML document rather than JSON."""
    if not isinstance(body, str):
        return False
    head = body.lstrip()[:512].lower()
    return any(marker in head for marker in _HTML_MARKERS)


def _preview(url: str) -> str:
    return f"{url[:30]}..." if len(url) > 30 else url


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class CallbackClient:
    """POST run results to a caller-supplied URL.

    Args:
        timeout: HTTP request timeout in seconds; the payload carries the
            whole document so this is generous by default.
        transport: Optional httpx transport (``httpx.MockTransport`` in tests).
    """

    def __init__(self, timeout: float = 60.0, *, transport: httpx.BaseTransport | None = None) -> None:
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=self.timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> CallbackClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def deliver(
        self,
        callback_url: str | None,
        *,
        correlation_id: str,
        determination: Determination,
        document: bytes,
        run_context: RunContext | None = None,
    ) -> DeliveryOutcome | None:
        """Send the result; returns ``None`` when there is no callback URL.

        Raises:
            DeliveryFailed: On any transport error or non-2xx response.
        """
        url = normalize_callback_url(callback_url)
        if not url:
            logger.info("No callback URL provided, skipping results submission")
            return None

        payload = build_payload(correlation_id, determination, document)
        logger.info(
            "Sending results to callback URL %s (payload ~%d KB)",
            _preview(url),
            len(payload["documentBase64"]) // 1024,
        )
        _write_artifact(
            run_context,
            "callback_request.json",
            {
                "correlationId": correlation_id,
                "determination": determination.value,
                "documentBase64Length": len(payload["documentBase64"]),
            },
        )

        try:
            response = self._client.post(url, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._record_error(run_context, url, f"{type(exc).__name__}: {exc}")
            raise DeliveryFailed(f"Failed to send results: {exc}") from exc

        body = _decode_body(response)
        if not response.is_success:
            message = f"Callback returned HTTP {response.status_code} {response.reason_phrase}"
            self._record_error(run_context, url, message, status_code=response.status_code, body=body)
            raise DeliveryFailed(message, status_code=response.status_code, body=body)

        outcome = DeliveryOutcome(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            body=body,
            is_html_response=looks_like_html(body),
        )
        logger.info("POST to callback succeeded: %d %s", outcome.status_code, outcome.reason_phrase)
        if outcome.is_html_response:
            logger.warning(
                "Callback receiver answered with an HTML page instead of JSON; "
                "the endpoint is probably not configured to accept API requests"
            )
        _write_artifact(run_context, "callback_response.json", outcome.to_dict())
        return outcome

    @staticmethod
    def _record_error(
        run_context: RunContext | None,
        url: str,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        logger.error("POST to callback failed: %s", message)
        _write_artifact(
            run_context,
            "callback_error.json",
            {
                "message": message,
                "response": {"status": status_code, "data": body} if status_code is not None else None,
                "endpoint": _preview(url),
            },
        )


def _write_artifact(run_context: RunContext | None, name: str, data: Any) -> None:
    """Write a delivery artifact; a failed write is logged and never blocks delivery."""
    if run_context is None:
        return
    try:
        run_context.write_json(name, data)
    except OSError as exc:
        logger.warning("Failed to write %s: %s", name, exc)


def build_callback_client(settings: Settings | None = None) -> CallbackClient:
    """Factory: return a :class:`CallbackClient` using SCRA settings."""
    if settings is None:
        from scra.settings import get_settings

        settings = get_settings()
    return CallbackClient(timeout=settings.callback.timeout_sec)
