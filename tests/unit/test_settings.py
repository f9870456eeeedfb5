"""Unit tests for the layered settings loader."""

from __future__ import annotations

from pathlib import Path

from scra.settings.config import Settings, get_settings


class TestDefaults:
    def test_section_defaults(self, settings) -> None:
        assert settings.browser.engine == "firefox"
        assert settings.browser.busy_stale_after_sec == 30.0
        assert settings.navigation.timeout_ms == 90_000
        assert settings.navigation.max_retries == 3
        assert settings.classifier.table_start_marker == "Start Date"
        assert settings.classifier.placeholder_tokens == ["NA", "N/A", "No"]
        assert settings.artifacts.error_log_limit == 100
        assert settings.run.safety_timeout_sec == 300.0

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()


class TestOverrides:
    def test_env_var_overrides_nested_value(self, monkeypatch) -> None:
        monkeypatch.setenv("SCRA_NAVIGATION__MAX_RETRIES", "5")
        monkeypatch.setenv("SCRA_BROWSER__HEADLESS", "false")

        settings = Settings()

        assert settings.navigation.max_retries == 5
        assert settings.browser.headless is False

    def test_explicit_values_win_over_toml(self, make_settings) -> None:
        settings = make_settings(navigation={"max_retries": 1}, browser={"engine": "chromium"})

        assert settings.navigation.max_retries == 1
        assert settings.browser.engine == "chromium"
        assert settings.browser.launch_retries == 3

    def test_relative_artifact_paths_resolve_against_root(self, tmp_path: Path) -> None:
        settings = Settings(project_root=tmp_path, artifacts={"output_dir": "out", "logs_dir": "logs"})

        assert settings.artifacts.output_dir == str(tmp_path / "out")
        assert settings.artifacts.logs_dir == str(tmp_path / "logs")
