"""Configuration loader for the SCRA runner using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (SCRA_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("SCRA_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "SCRA_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser and session-manager settings."""

    model_config = SettingsConfigDict(env_prefix="SCRA_BROWSER__")

    engine: str = "firefox"  # firefox | chromium | webkit
    headless: bool = True
    launch_retries: int = 3
    launch_retry_delay_sec: float = 2.0
    busy_stale_after_sec: float = 30.0
    pool_size: int = 1
    health_check: bool = True
    ignore_https_errors: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
            "--window-size=1920,1080",
            "--ignore-certificate-errors",
        ]
    )
    firefox_user_prefs: dict[str, Any] = Field(
        default_factory=lambda: {
            "network.http.sendRefererHeader": 0,
            "browser.cache.disk.enable": False,
            "browser.cache.memory.enable": False,
            "browser.cache.offline.enable": False,
            "network.http.use-cache": False,
            "network.dns.disablePrefetch": True,
            "network.prefetch-next": False,
        }
    )
    user_agents: list[str] = Field(
        default_factory=lambda: [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
        ]
    )
    extra_http_headers: dict[str, str] = Field(
        default_factory=lambda: {
            "Accept-Language": "en-US,en;q=0.9",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
        }
    )


class NavigationSettings(BaseSettings):
    """Target site, connectivity probe and navigation retry settings."""

    model_config = SettingsConfigDict(env_prefix="SCRA_NAVIGATION__")

    target_url: str = "https://scra.dmdc.osd.mil/scra/#/single-record"
    probe_url: str = "https://www.google.com"
    probe_timeout_ms: int = 30_000
    timeout_ms: int = 90_000
    max_retries: int = 3
    initial_delay_sec: float = 10.0
    max_delay_sec: float = 60.0
    denied_markers: list[str] = Field(default_factory=lambda: ["Access Denied", "Forbidden"])
    expected_markers: list[str] = Field(default_factory=lambda: ["SCRA", "Single Record Request"])


class FormSettings(BaseSettings):
    """Selectors and timeouts for the single-record request form."""

    model_config = SettingsConfigDict(env_prefix="SCRA_FORM__")

    consent_modal_button: str = 'button[title="I Accept"]'
    username_input: str = "input#username"
    password_input: str = "input#password"
    login_submit: str = "button[type='submit']"
    ssn_input: str = "#ssnInput"
    ssn_confirmation_input: str = "#ssnConfirmationInput"
    last_name_input: str = "#lastNameInput"
    first_name_input: str = "#firstNameInput"
    dob_input: str = "#mat-input-2"
    terms_checkbox: str = 'input[name="termsAgree"]'
    terms_label: str = 'label[for="mat-mdc-checkbox-7-input"]'
    any_checkbox: str = 'input[type="checkbox"]'
    submit_button: str = 'button[name="SubmitButton"]'
    login_timeout_ms: int = 45_000
    checkbox_timeout_ms: int = 20_000
    download_timeout_ms: int = 45_000
    post_login_settle_ms: int = 2_000
    modal_settle_ms: int = 500


class ClassifierSettings(BaseSettings):
    """Document classification heuristic and naming conventions."""

    model_config = SettingsConfigDict(env_prefix="SCRA_CLASSIFIER__")

    table_start_marker: str = "Start Date"
    table_end_marker: str = "Service Component"
    placeholder_tokens: list[str] = Field(default_factory=lambda: ["NA", "N/A", "No"])
    negative_document_name: str = "AFFIRMATION - Affirmation of Non Military.pdf"
    positive_document_template: str = "{first_name} {last_name} - Proof of Military Service.pdf"


class CallbackSettings(BaseSettings):
    """Outbound callback delivery settings."""

    model_config = SettingsConfigDict(env_prefix="SCRA_CALLBACK__")

    timeout_sec: float = 60.0


class ArtifactSettings(BaseSettings):
    """Per-run artifact and central log storage."""

    model_config = SettingsConfigDict(env_prefix="SCRA_ARTIFACTS__")

    output_dir: str = "outputs"
    logs_dir: str = "logs"
    error_log_limit: int = 100


class RunSettings(BaseSettings):
    """Run-level liveness guard and logging."""

    model_config = SettingsConfigDict(env_prefix="SCRA_RUN__")

    safety_timeout_sec: float = 300.0
    log_level: str = "INFO"
    log_format: str = "text"  # text | json


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root SCRA runner settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="SCRA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    navigation: NavigationSettings = Field(default_factory=NavigationSettings)
    form: FormSettings = Field(default_factory=FormSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    callback: CallbackSettings = Field(default_factory=CallbackSettings)
    artifacts: ArtifactSettings = Field(default_factory=ArtifactSettings)
    run: RunSettings = Field(default_factory=RunSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative artifact paths against project_root."""
        root = self.project_root
        if not Path(self.artifacts.output_dir).is_absolute():
            self.artifacts.output_dir = str(root / self.artifacts.output_dir)
        if not Path(self.artifacts.logs_dir).is_absolute():
            self.artifacts.logs_dir = str(root / self.artifacts.logs_dir)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
