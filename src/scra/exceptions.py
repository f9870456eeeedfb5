"""SCRA-specific exception hierarchy."""

from __future__ import annotations


class ScraError(Exception):
    """Base exception for all SCRA runner errors."""

    @property
    def kind(self) -> str:
        """Short error-kind label written to error reports."""
        return type(self).__name__


class SessionBusy(ScraError):
    """Raised when every browser session slot is held and none is stale.

    Attributes:
        busy_for: Seconds the youngest holder has been busy.
    """

    def __init__(self, busy_for: float) -> None:
        self.busy_for = busy_for
        super().__init__(f"Browser session is busy (held for {busy_for:.1f}s). Try again later.")


class LaunchFailed(ScraError):
    """Raised when the browser could not be launched after all attempts."""

    def __init__(self, attempts: int, reason: str) -> None:
        self.attempts = attempts
        super().__init__(f"Browser launch failed after {attempts} attempt(s): {reason}")


class StageError(ScraError):
    """A fatal failure inside one named stage of the form sequence.

    Attributes:
        stage: Name of the stage that failed (used to tag the error screenshot).
    """

    stage = "unknown"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        if stage:
            self.stage = stage
        super().__init__(message)


class NavigationFailed(StageError):
    """Raised when the target form could not be reached or failed verification."""

    stage = "navigation"


class LoginFailed(StageError):
    """Raised when the remote login form could not be submitted."""

    stage = "login"


class FormFillFailed(StageError):
    """Raised when a required form field could not be filled."""

    stage = "form_fill"


class ConsentNotAcknowledged(StageError):
    """Raised when every consent-checkbox strategy failed."""

    stage = "consent"


class SubmissionFailed(StageError):
    """Raised when submitting the form did not produce a document download."""

    stage = "submission"


class DeliveryFailed(ScraError):
    """Raised when the callback POST fails at transport level or returns non-2xx.

    Attributes:
        status_code: HTTP status of the receiver response, if one arrived.
        body: Response body (decoded JSON or raw text), if one arrived.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: object = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ProcessHang(ScraError):
    """Recorded when the safety timer fires before the run reached the target form."""

    def __init__(self, timeout_sec: float) -> None:
        self.timeout_sec = timeout_sec
        super().__init__(f"Run did not reach the target form within {timeout_sec:.0f}s; process appears hung")
