"""Unit tests for the inbound request and result models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from scra.models.request import AutomationRequest, digits_only, normalize_callback_url
from scra.models.results import ClassificationResult, Determination, RunResult, RunStatus


class TestNormalizeCallbackUrl:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://cb.example.com/x", "https://cb.example.com/x"),
            ("http://cb.example.com", "http://cb.example.com"),
            ("cb.example.com/hook", "https://cb.example.com/hook"),
            ("httpbin.example/hook", "https://httpbin.example/hook"),
            ("ftp://host/x", "ftp://host/x"),
            (" https://cb.example.com/a b\t/c \n", "https://cb.example.com/ab/c"),
            ("", None),
            ("  \t ", None),
            (None, None),
        ],
    )
    def test_normalization(self, raw, expected) -> None:
        assert normalize_callback_url(raw) == expected


class TestAutomationRequest:
    def test_camel_case_payload(self, request_payload) -> None:
        request = AutomationRequest.model_validate(request_payload)

        assert request.last_name == "Doe"
        assert request.first_name == "Jane"
        assert request.username.get_secret_value() == "svc-user"
        assert request.matter_id == "M-1"
        assert request.callback_url == "https://cb.example.com/scra"

    @pytest.mark.parametrize("key", ["callbackUrl", "Callback_URL__c", "endpointUrl", "callback_url"])
    def test_callback_aliases(self, request_payload, key) -> None:
        payload = {k: v for k, v in request_payload.items() if k != "callbackUrl"}
        payload[key] = "cb.example.com/alias"

        assert AutomationRequest.model_validate(payload).callback_url == "https://cb.example.com/alias"

    def test_snake_case_by_name(self) -> None:
        request = AutomationRequest(
            ssn="123456789", last_name="Doe", first_name="Jane", username="u", password="p"
        )
        assert request.callback_url is None
        assert request.matter_id == ""
        assert request.dob is None

    @pytest.mark.parametrize("missing", ["ssn", "lastName", "firstName", "scraUsername", "scraPassword"])
    def test_required_fields(self, request_payload, missing) -> None:
        payload = {k: v for k, v in request_payload.items() if k != missing}
        with pytest.raises(ValidationError):
            AutomationRequest.model_validate(payload)

    def test_identifier_without_digits_rejected(self, request_payload) -> None:
        with pytest.raises(ValidationError):
            AutomationRequest.model_validate({**request_payload, "ssn": "abc-de-fghi"})

    @pytest.mark.parametrize(
        "url",
        ["ftp://host/x", "mailto://someone", "cb.example.com:notaport/x", "https:///no-host"],
    )
    def test_non_http_callback_url_rejected(self, request_payload, url) -> None:
        with pytest.raises(ValidationError, match="callback URL"):
            AutomationRequest.model_validate({**request_payload, "callbackUrl": url})

    def test_empty_password_rejected(self, request_payload) -> None:
        with pytest.raises(ValidationError):
            AutomationRequest.model_validate({**request_payload, "scraPassword": ""})

    def test_masking(self, automation_request) -> None:
        context = automation_request.log_context()

        assert automation_request.ssn_digits == "123456789"
        assert context["ssn"] == "***-**-6789"
        assert context["dob"] == "PROVIDED"
        assert context["callbackUrl"] == "https://cb.exam..."
        assert context["hasCallbackUrl"] is True
        assert "s3cret" not in repr(automation_request)
        assert "s3cret" not in str(context)

    def test_masking_without_optional_fields(self, request_payload) -> None:
        payload = {**request_payload, "dob": "", "callbackUrl": None}
        context = AutomationRequest.model_validate(payload).log_context()

        assert context["dob"] == "NOT PROVIDED"
        assert context["callbackUrl"] == "NONE"
        assert context["hasCallbackUrl"] is False


class TestDigitsOnly:
    def test_strips_separators(self) -> None:
        assert digits_only("123-45 6789") == "123456789"


class TestResults:
    def test_classification_shape(self) -> None:
        result = ClassificationResult(correlation_id="M-1", determination=Determination.YES, document_name="d.pdf")
        data = result.to_dict()
        assert set(data) == {"correlationId", "determination", "documentName", "timestamp"}
        assert data["determination"] == "Yes"

    def test_run_result_success(self) -> None:
        result = RunResult()
        assert not result.success
        result.status = RunStatus.COMPLETED
        assert result.success
        assert result.to_dict()["status"] == "completed"
