"""SCRA test configuration: shared fixtures for unit tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from scra.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def make_settings(tmp_path: Path):
    """Build a ``Settings`` with artifact dirs under ``tmp_path``.

    Keyword arguments are section overrides, e.g.
    ``make_settings(navigation={"max_retries": 1})``.
    """
    from scra.settings.config import Settings

    def _factory(**sections):
        values = {
            "project_root": tmp_path,
            "artifacts": {"output_dir": str(tmp_path / "outputs"), "logs_dir": str(tmp_path / "logs")},
            "navigation": {"probe_url": "", "initial_delay_sec": 0.01, "max_delay_sec": 0.05},
        }
        for name, overrides in sections.items():
            values[name] = {**values.get(name, {}), **overrides}
        return Settings(**values)

    return _factory


@pytest.fixture()
def settings(make_settings):
    """Default test settings."""
    return make_settings()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@pytest.fixture()
def request_payload() -> dict:
    """A valid inbound request as the back office sends it."""
    return {
        "ssn": "123-45-6789",
        "dob": "01/02/1980",
        "lastName": "Doe",
        "firstName": "Jane",
        "scraUsername": "svc-user",
        "scraPassword": "s3cret",
        "matterId": "M-1",
        "callbackUrl": "https://cb.example.com/scra",
    }


@pytest.fixture()
def automation_request(request_payload):
    from scra.models.request import AutomationRequest

    return AutomationRequest.model_validate(request_payload)


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@pytest.fixture()
def artifact_store(tmp_path: Path):
    """Create a disposable ``ArtifactStore`` under ``tmp_path``."""
    from scra.evidence.storage import ArtifactStore

    return ArtifactStore(output_dir=tmp_path / "outputs", logs_dir=tmp_path / "logs")


@pytest.fixture()
def run_context(artifact_store):
    return artifact_store.create_run()


# ---------------------------------------------------------------------------
# Mock Playwright page
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_page():
    """Return a ``MagicMock`` shaped like a Playwright sync ``Page``.

    Defaults: navigation lands on the expected form, no modal or login
    form is present, and screenshots are written as empty files.
    """
    page = MagicMock()
    page.title.return_value = "SCRA Single Record Request"
    page.content.return_value = "<html><h1>SCRA Single Record Request</h1></html>"
    page.query_selector.return_value = None
    page.screenshot.side_effect = lambda path, **_kwargs: Path(path).write_bytes(b"")
    return page


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require external services or real I/O")
    config.addinivalue_line("markers", "slow: marks tests that take more than a few seconds")
