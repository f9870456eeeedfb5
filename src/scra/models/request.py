"""Inbound automation request model.

The back-office caller has sent the callback URL under several key names over
time; all of them are accepted here and normalized into ``callback_url``.
"""

from __future__ import annotations

import re
from typing import Any

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator

_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"\D")
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize_callback_url(value: str | None) -> str | None:
    """Strip all whitespace and default the scheme to ``https://``.

    Returns ``None`` for missing or blank values.
    """
    if value is None:
        return None
    cleaned = _WHITESPACE_RE.sub("", str(value))
    if not cleaned:
        return None
    if not _SCHEME_RE.match(cleaned):
        cleaned = f"https://{cleaned}"
    return cleaned


def check_callback_url(url: str) -> str:
    """Return *url* unchanged if it is an absolute http(s) URL with a host.

    Raises:
        ValueError: If the URL does not parse, has another scheme or no host.
    """
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValueError(f"callback URL is not a valid URL: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError("callback URL must be an absolute http(s) URL")
    return url


def digits_only(value: str) -> str:
    """Return only the digit characters of *value*."""
    return _NON_DIGIT_RE.sub("", value or "")


class AutomationRequest(BaseModel):
    """One request to run the SCRA single-record lookup for a subject."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    ssn: str = Field(min_length=1)
    dob: str | None = None
    last_name: str = Field(min_length=1, validation_alias=AliasChoices("lastName", "last_name"))
    first_name: str = Field(min_length=1, validation_alias=AliasChoices("firstName", "first_name"))
    username: SecretStr = Field(validation_alias=AliasChoices("scraUsername", "username"))
    password: SecretStr = Field(validation_alias=AliasChoices("scraPassword", "password"))
    matter_id: str = Field(default="", validation_alias=AliasChoices("matterId", "matter_id", "correlationId"))
    callback_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("callbackUrl", "Callback_URL__c", "endpointUrl", "callback_url"),
    )

    @field_validator("ssn")
    @classmethod
    def _require_digits(cls, v: str) -> str:
        if not digits_only(v):
            raise ValueError("ssn must contain at least one digit")
        return v

    @field_validator("dob", mode="before")
    @classmethod
    def _blank_dob_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("username", "password")
    @classmethod
    def _require_credentials(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("remote-site credentials are required")
        return v

    @field_validator("callback_url", mode="before")
    @classmethod
    def _normalize_callback(cls, v: Any) -> str | None:
        url = normalize_callback_url(v)
        return check_callback_url(url) if url else None

    # ------------------------------------------------------------------
    # Masking helpers
    # ------------------------------------------------------------------

    @property
    def ssn_digits(self) -> str:
        """The subject identifier with every non-digit stripped."""
        return digits_only(self.ssn)

    def masked_ssn(self) -> str:
        """Return the identifier reduced to its last four digits."""
        digits = self.ssn_digits
        return f"***-**-{digits[-4:]}" if digits else "MISSING"

    def callback_preview(self) -> str:
        """Return a short prefix of the callback URL, never the full value."""
        if not self.callback_url:
            return "NONE"
        return f"{self.callback_url[:15]}..."

    def log_context(self) -> dict[str, Any]:
        """Masked view of the request, safe for logs and error reports."""
        return {
            "ssn": self.masked_ssn(),
            "dob": "PROVIDED" if self.dob else "NOT PROVIDED",
            "lastName": self.last_name,
            "firstName": self.first_name,
            "matterId": self.matter_id,
            "hasCallbackUrl": bool(self.callback_url),
            "callbackUrl": self.callback_preview(),
        }
