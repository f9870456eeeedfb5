"""Domain models for automation requests and run outcomes."""

from scra.models.request import AutomationRequest, normalize_callback_url
from scra.models.results import (
    ClassificationResult,
    DeliveryOutcome,
    Determination,
    ErrorReport,
    RunResult,
    RunState,
    RunStatus,
)

__all__ = [
    "AutomationRequest",
    "ClassificationResult",
    "DeliveryOutcome",
    "Determination",
    "ErrorReport",
    "RunResult",
    "RunState",
    "RunStatus",
    "normalize_callback_url",
]
