"""Top-level automation orchestrator.

Sequences one run end to end and owns its error and cleanup handling::

    Initializing -> SessionAcquired -> Navigated -> Authenticated? -> FormFilled
      -> Consented -> Submitted -> Classified -> Delivered? -> Closed

Any failure moves the run to ``Failing``: an ``on_error`` screenshot, the
network summary, ``error_report.json`` (with masked identifiers) and an
entry in the central error log are written, then the run is ``Closed``.
The browser session is released on every path.

A failed callback delivery does not fail the run: the document was still
produced and classified.  It is reported separately on the result.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from scra.automation.safety import SafetyTimer
from scra.browser.checkpoint import Checkpointer
from scra.browser.forms import FormSequencer
from scra.browser.network_log import NetworkActivityLogger, summarize
from scra.browser.profile import build_browser_profile
from scra.browser.session import BrowserSessionManager
from scra.classification.classifier import DocumentClassifier
from scra.evidence.storage import ArtifactStore, build_artifact_store
from scra.exceptions import DeliveryFailed, ProcessHang, ScraError
from scra.integration.callback import CallbackClient, build_callback_client
from scra.models.results import ClassificationResult, ErrorReport, RunResult, RunState, RunStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from scra.browser.session import BrowserSession
    from scra.evidence.storage import RunContext
    from scra.models.request import AutomationRequest
    from scra.settings.config import Settings

logger = logging.getLogger(__name__)

DOWNLOAD_NAME = "scra-result.pdf"


class AutomationOrchestrator:
    """Run the SCRA lookup for one request at a time.

    All collaborators default to instances built from *settings*; tests and
    embedding callers can inject their own.

    Args:
        settings: Resolved settings (``get_settings()`` when omitted).
        session_manager: Shared browser session manager.
        store: Artifact store for run directories and the error log.
        callback_client: Callback delivery client.
        classifier: Document classifier.
        safety_timer_factory: Builds the hang guard from ``(timeout, on_expire)``.
        sleep: Sleep used between navigation retries.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session_manager: BrowserSessionManager | None = None,
        store: ArtifactStore | None = None,
        callback_client: CallbackClient | None = None,
        classifier: DocumentClassifier | None = None,
        safety_timer_factory: Callable[[float, Callable[[], None]], SafetyTimer] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if settings is None:
            from scra.settings import get_settings

            settings = get_settings()
        self.settings = settings
        self.session_manager = session_manager or get_session_manager(settings)
        self.store = store or build_artifact_store(settings)
        self.callback_client = callback_client or build_callback_client(settings)
        self.classifier = classifier or DocumentClassifier(settings.classifier)
        self._safety_timer_factory = safety_timer_factory or (
            lambda timeout, on_expire: SafetyTimer(timeout, on_expire=on_expire)
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, request: AutomationRequest) -> RunResult:
        """Execute one run for *request* and return its outcome.

        Never raises for run failures; inspect ``result.status`` and
        ``result.error``.
        """
        result = RunResult()
        ctx = self.store.create_run()
        result.run_id = ctx.run_id
        result.artifact_dir = str(ctx.artifact_dir)

        logger.info("Running SCRA automation with: %s", request.log_context())

        timer = self._safety_timer_factory(
            self.settings.run.safety_timeout_sec,
            lambda: self._record_hang(ctx, request),
        )
        timer.start()

        checkpointer = Checkpointer(ctx)
        network_logger = NetworkActivityLogger(ctx)
        try:
            with self.session_manager.session() as session:
                result.state = RunState.SESSION_ACQUIRED
                try:
                    self._drive(session, request, ctx, result, timer, checkpointer, network_logger)
                except Exception as exc:
                    self._fail(exc, request, ctx, result, checkpointer, network_logger)
        except Exception as exc:
            # Acquisition (SessionBusy / LaunchFailed) or release failures.
            if result.status != RunStatus.FAILED:
                self._fail(exc, request, ctx, result, checkpointer, network_logger)
        finally:
            timer.cancel()
            result.state = RunState.CLOSED
            result.network_summary = summarize(ctx.network_events)
            result.completed_at = datetime.now(timezone.utc)
            logger.info("Run %s closed with status %s", ctx.run_id, result.status.value)

        return result

    # ------------------------------------------------------------------
    # Happy path
    # ------------------------------------------------------------------

    def _drive(
        self,
        session: BrowserSession,
        request: AutomationRequest,
        ctx: RunContext,
        result: RunResult,
        timer: SafetyTimer,
        checkpointer: Checkpointer,
        network_logger: NetworkActivityLogger,
    ) -> None:
        settings = self.settings
        profile = build_browser_profile(settings.browser)
        context = session.browser.new_context(**profile.context_args)
        page = context.new_page()
        network_logger.attach(page)
        checkpointer.bind(page)

        sequencer = FormSequencer(
            page,
            context,
            navigation=settings.navigation,
            form=settings.form,
            checkpointer=checkpointer,
            network_logger=network_logger,
            sleep=self._sleep,
        )

        sequencer.probe_connectivity()
        try:
            sequencer.navigate()
        finally:
            result.retry_delays = list(sequencer.retry_delays)
        result.state = RunState.NAVIGATED
        timer.cancel()

        sequencer.dismiss_consent_modal()
        if sequencer.authenticate(request.username.get_secret_value(), request.password.get_secret_value()):
            result.state = RunState.AUTHENTICATED

        sequencer.fill_form(request)
        result.state = RunState.FORM_FILLED

        sequencer.acknowledge_consent()
        result.state = RunState.CONSENTED

        download = sequencer.submit(ctx.path(DOWNLOAD_NAME))
        result.state = RunState.SUBMITTED

        document = Path(download.saved_path).read_bytes()
        classification = self.classifier.classify(
            document,
            correlation_id=request.matter_id,
            first_name=request.first_name,
            last_name=request.last_name,
        )
        final_path = ctx.path(classification.document_name)
        os.replace(download.saved_path, final_path)
        logger.info("Document renamed to: %s", classification.document_name)
        ctx.write_json("result.json", classification.to_dict())
        result.classification = classification
        result.document_path = str(final_path)
        result.state = RunState.CLASSIFIED
        result.status = RunStatus.COMPLETED

        self._deliver(request, ctx, result, classification, document)

    def _deliver(
        self,
        request: AutomationRequest,
        ctx: RunContext,
        result: RunResult,
        classification: ClassificationResult,
        document: bytes,
    ) -> None:
        if not request.callback_url:
            logger.info("No callback URL provided, skipping delivery")
            result.delivery_skipped = True
            return
        try:
            outcome = self.callback_client.deliver(
                request.callback_url,
                correlation_id=request.matter_id,
                determination=classification.determination,
                document=document,
                run_context=ctx,
            )
        except DeliveryFailed as exc:
            result.delivery_error = str(exc)
            self._write_error_report(exc, request, ctx)
            return
        result.delivery = outcome
        result.state = RunState.DELIVERED

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------

    def _fail(
        self,
        exc: Exception,
        request: AutomationRequest,
        ctx: RunContext,
        result: RunResult,
        checkpointer: Checkpointer,
        network_logger: NetworkActivityLogger,
    ) -> None:
        result.state = RunState.FAILING
        result.status = RunStatus.FAILED
        result.error = str(exc)
        result.error_kind = exc.kind if isinstance(exc, ScraError) else type(exc).__name__
        if isinstance(exc, ScraError):
            logger.error("Error during SCRA automation (%s): %s", result.error_kind, exc)
        else:
            logger.exception("Unexpected error during SCRA automation")

        checkpointer.capture("on_error")
        try:
            ctx.write_json("network_summary.json", network_logger.summary())
        except OSError as summary_exc:
            logger.warning("Failed to write network summary: %s", summary_exc)
        self._write_error_report(exc, request, ctx, write_run_report=True)

    def _write_error_report(
        self,
        exc: Exception,
        request: AutomationRequest,
        ctx: RunContext,
        *,
        write_run_report: bool = False,
    ) -> None:
        """Persist a masked error report to the run and the central error log."""
        report = ErrorReport(
            error_message=str(exc),
            error_kind=exc.kind if isinstance(exc, ScraError) else type(exc).__name__,
            masked_context=request.log_context(),
            stage=getattr(exc, "stage", ""),
            run_id=ctx.run_id,
        )
        try:
            if write_run_report:
                ctx.write_json("error_report.json", report.to_dict())
            self.store.append_error(report)
            logger.info("Error report saved for run %s", ctx.run_id)
        except OSError as report_exc:
            logger.error("Failed to create error report: %s", report_exc)

    def _record_hang(self, ctx: RunContext, request: AutomationRequest) -> None:
        self._write_error_report(
            ProcessHang(self.settings.run.safety_timeout_sec), request, ctx, write_run_report=True
        )


_SESSION_MANAGER: BrowserSessionManager | None = None
_SESSION_MANAGER_LOCK = threading.Lock()


def get_session_manager(settings: Settings) -> BrowserSessionManager:
    """Return the process-wide session manager, creating it on first use."""
    global _SESSION_MANAGER  # noqa: PLW0603
    with _SESSION_MANAGER_LOCK:
        if _SESSION_MANAGER is None:
            profile = build_browser_profile(settings.browser)
            _SESSION_MANAGER = BrowserSessionManager(settings.browser, launch_args=profile.launch_args)
        return _SESSION_MANAGER


def run_automation(request: AutomationRequest, settings: Settings | None = None) -> RunResult:
    """Convenience entry point: run *request* with default collaborators."""
    orchestrator = AutomationOrchestrator(settings)
    try:
        return orchestrator.run(request)
    finally:
        orchestrator.callback_client.close()
