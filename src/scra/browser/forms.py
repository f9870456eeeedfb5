"""Form interaction sequencer for the SCRA single-record request.

Drives the remote page through a fixed, linear series of named stages:

1. ``probe``: warm-up navigation to a known-reliable page (best-effort)
2. ``navigation``: retried, content-verified load of the target form
3. ``consent_modal``: dismiss the Privacy Act modal if it is shown
4. ``login``: sign in if a login form is present
5. ``form_fill``: subject identifier (digits only, twice), names, optional DOB
6. ``consent``: tick the terms checkbox via an ordered list of strategies
7. ``submission``: click submit and wait for the document download

Each stage is bracketed by ``before_<stage>`` / ``after_<stage>``
checkpoints; a fatal failure captures ``<stage>_error`` and raises the
stage's :class:`~scra.exceptions.StageError` subclass.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from scra.browser.downloads import CapturedDownload, save_download
from scra.browser.navigation import goto_verified, retry
from scra.exceptions import (
    ConsentNotAcknowledged,
    FormFillFailed,
    LoginFailed,
    NavigationFailed,
    StageError,
    SubmissionFailed,
)
from scra.models.request import digits_only

if TYPE_CHECKING:
    from playwright.sync_api import BrowserContext, Page

    from scra.browser.checkpoint import Checkpointer
    from scra.browser.network_log import NetworkActivityLogger
    from scra.models.request import AutomationRequest
    from scra.settings.config import FormSettings, NavigationSettings

logger = logging.getLogger(__name__)


@dataclass
class StrategyAttempt:
    """Outcome of one consent-checkbox strategy."""

    name: str
    succeeded: bool
    error: str = ""


@dataclass
class ConsentReport:
    """Every strategy tried, in order, and which one (if any) won."""

    attempts: list[StrategyAttempt] = field(default_factory=list)

    @property
    def winner(self) -> str | None:
        return next((a.name for a in self.attempts if a.succeeded), None)


class FormSequencer:
    """Run the scripted fill/click/wait sequence against one page.

    Args:
        page: The Playwright page to drive.
        context: The page's browser context (cookies are cleared before
            each navigation attempt).
        navigation: Navigation settings section.
        form: Form selectors and timeouts.
        checkpointer: Screenshot checkpoint capability bound to *page*.
        network_logger: Optional network logger, summarized after each
            failed navigation attempt.
        sleep: Sleep used between navigation retries.
    """

    def __init__(
        self,
        page: Page,
        context: BrowserContext,
        *,
        navigation: NavigationSettings,
        form: FormSettings,
        checkpointer: Checkpointer,
        network_logger: NetworkActivityLogger | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.page = page
        self.context = context
        self.navigation = navigation
        self.form = form
        self.checkpointer = checkpointer
        self.network_logger = network_logger
        self.retry_delays: list[float] = []
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Stage bracketing
    # ------------------------------------------------------------------

    @contextmanager
    def _stage(self, name: str, error_type: type[StageError]) -> Iterator[None]:
        self.checkpointer.capture(f"before_{name}")
        try:
            yield
        except StageError as exc:
            logger.error("Stage %s failed: %s", name, exc)
            self.checkpointer.capture(f"{name}_error")
            raise
        except Exception as exc:
            logger.error("Stage %s failed: %s", name, exc)
            self.checkpointer.capture(f"{name}_error")
            raise error_type(f"{name} failed: {exc}", stage=name) from exc
        self.checkpointer.capture(f"after_{name}")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def probe_connectivity(self) -> bool:
        """Load the probe page; failure is logged and does not abort the run."""
        url = self.navigation.probe_url
        if not url:
            return False
        self.checkpointer.capture("before_probe")
        try:
            logger.info("Warm-up navigation to %s", url)
            self.page.goto(url, wait_until="domcontentloaded", timeout=self.navigation.probe_timeout_ms)
        except Exception as exc:
            logger.warning("Warm-up navigation failed, continuing: %s", exc)
            self.checkpointer.capture("probe_error")
            return False
        self.checkpointer.capture("after_probe")
        return True

    def navigate(self) -> None:
        """Reach the target form, retrying transient failures with backoff."""
        nav = self.navigation

        def attempt() -> None:
            logger.info("Navigating to target form %s", nav.target_url)
            self.context.clear_cookies()
            goto_verified(
                self.page,
                nav.target_url,
                timeout_ms=nav.timeout_ms,
                denied_markers=nav.denied_markers,
                expected_markers=nav.expected_markers,
                on_failure=self._on_navigation_failure,
            )

        retry_kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep

        with self._stage("navigation", NavigationFailed):
            retry(
                attempt,
                max_retries=nav.max_retries,
                initial_delay=nav.initial_delay_sec,
                max_delay=nav.max_delay_sec,
                on_retry=lambda _attempt, _exc, delay: self.retry_delays.append(delay),
                **retry_kwargs,
            )
        logger.info("Reached the single-record request form")

    def _on_navigation_failure(self, reason: str) -> None:
        self.checkpointer.capture(reason)
        if self.network_logger is not None:
            self.network_logger.summary()

    def dismiss_consent_modal(self) -> bool:
        """Click the modal's accept button if the modal is present."""
        with self._stage("consent_modal", StageError):
            button = self.page.query_selector(self.form.consent_modal_button)
            if button is None:
                logger.info("No privacy confirmation modal detected")
                return False
            logger.info("Privacy confirmation modal detected; accepting")
            try:
                button.click()
                self.page.wait_for_timeout(self.form.modal_settle_ms)
            except Exception as exc:
                logger.warning("Could not dismiss privacy modal: %s", exc)
                return False
        return True

    def authenticate(self, username: str, password: str) -> bool:
        """Sign in when a login form is shown. Returns True if a login happened."""
        with self._stage("login", LoginFailed):
            if self.page.query_selector(self.form.username_input) is None:
                logger.info("No login form detected, continuing")
                return False

            logger.info("Login form detected, logging in")
            self.page.fill(self.form.username_input, username)
            self.page.fill(self.form.password_input, password)
            with self.page.expect_navigation(wait_until="domcontentloaded", timeout=self.form.login_timeout_ms):
                self.page.click(self.form.login_submit)
        logger.info("Logged in successfully")
        self.page.wait_for_timeout(self.form.post_login_settle_ms)
        return True

    def fill_form(self, request: AutomationRequest) -> None:
        """Populate the subject fields; any failure is fatal."""
        form = self.form
        ssn = digits_only(request.ssn)
        with self._stage("form_fill", FormFillFailed):
            logger.info("Filling subject identifier")
            self.page.fill(form.ssn_input, ssn)
            self.page.fill(form.ssn_confirmation_input, ssn)
            logger.info("Filling last name")
            self.page.fill(form.last_name_input, request.last_name)
            logger.info("Filling first name")
            self.page.fill(form.first_name_input, request.first_name)
            if request.dob:
                logger.info("Filling date of birth")
                self.page.fill(form.dob_input, request.dob)

    def acknowledge_consent(self) -> ConsentReport:
        """Tick the terms checkbox; the first strategy that succeeds wins."""
        report = ConsentReport()
        with self._stage("consent", ConsentNotAcknowledged):
            try:
                self.page.wait_for_selector(
                    self.form.terms_checkbox, state="attached", timeout=self.form.checkbox_timeout_ms
                )
            except Exception as exc:
                logger.warning("Terms checkbox did not attach in time: %s", exc)

            for name, strategy in self._consent_strategies():
                try:
                    strategy()
                except Exception as exc:
                    logger.info("Consent strategy %s failed: %s", name, exc)
                    report.attempts.append(StrategyAttempt(name=name, succeeded=False, error=str(exc)))
                    continue
                report.attempts.append(StrategyAttempt(name=name, succeeded=True))
                logger.info("Terms acknowledged via %s", name)
                return report

            tried = ", ".join(a.name for a in report.attempts)
            raise ConsentNotAcknowledged(f"Terms checkbox not acknowledged after trying: {tried}")

    def _consent_strategies(self) -> list[tuple[str, Callable[[], None]]]:
        form = self.form
        return [
            ("terms_checkbox", lambda: self.page.check(form.terms_checkbox)),
            ("terms_label", lambda: self.page.click(form.terms_label)),
            ("any_checkbox", self._check_any_checkbox),
        ]

    def _check_any_checkbox(self) -> None:
        checkboxes = self.page.query_selector_all(self.form.any_checkbox)
        if not checkboxes:
            raise LookupError("no checkboxes on the page")
        last_error: Exception | None = None
        for checkbox in checkboxes:
            try:
                checkbox.check()
                return
            except Exception as exc:
                last_error = exc
        raise LookupError(f"none of {len(checkboxes)} checkboxes could be checked: {last_error}")

    def submit(self, destination: Path) -> CapturedDownload:
        """Click submit while waiting for the document download, then save it."""
        with self._stage("submission", SubmissionFailed):
            logger.info("Submitting the request form")
            with self.page.expect_download(timeout=self.form.download_timeout_ms) as download_info:
                self.page.click(self.form.submit_button)
            download = download_info.value
            logger.info("Download started, waiting for completion")
            captured = save_download(download, destination)
        return captured
