"""End-to-end automation runs: orchestration and the hang guard."""

from scra.automation.orchestrator import AutomationOrchestrator, run_automation
from scra.automation.safety import SafetyTimer

__all__ = ["AutomationOrchestrator", "SafetyTimer", "run_automation"]
