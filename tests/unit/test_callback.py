"""Unit tests for callback delivery."""

from __future__ import annotations

import base64
import json
from unittest.mock import patch

import httpx
import pytest

from scra.exceptions import DeliveryFailed
from scra.integration.callback import CallbackClient, build_payload, looks_like_html
from scra.models.results import Determination

DOCUMENT = b"%PDF-1.7 result"


def _client(handler) -> CallbackClient:
    return CallbackClient(timeout=5.0, transport=httpx.MockTransport(handler))


class TestPayload:
    def test_shape(self) -> None:
        payload = build_payload("M-1", Determination.YES, DOCUMENT)
        assert payload == {
            "correlationId": "M-1",
            "determination": "Yes",
            "documentBase64": base64.b64encode(DOCUMENT).decode("ascii"),
        }


class TestLooksLikeHtml:
    @pytest.mark.parametrize("body", ["<!DOCTYPE html><html></html>", "  \n<html lang='en'>"])
    def test_html(self, body: str) -> None:
        assert looks_like_html(body)

    @pytest.mark.parametrize("body", ['{"ok": true}', {"ok": True}, None, "accepted"])
    def test_not_html(self, body) -> None:
        assert not looks_like_html(body)


class TestDeliver:
    def test_posts_json_and_records_response(self, run_context) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"received": True})

        with _client(handler) as client:
            outcome = client.deliver(
                "https://cb.example.com/scra",
                correlation_id="M-1",
                determination=Determination.NO,
                document=DOCUMENT,
                run_context=run_context,
            )

        assert outcome.status_code == 200
        assert outcome.body == {"received": True}
        assert not outcome.is_html_response

        sent = json.loads(seen[0].content)
        assert seen[0].method == "POST"
        assert seen[0].headers["content-type"] == "application/json"
        assert sent["correlationId"] == "M-1"
        assert sent["determination"] == "No"
        assert base64.b64decode(sent["documentBase64"]) == DOCUMENT

        request_log = json.loads(run_context.path("callback_request.json").read_text())
        assert "documentBase64" not in request_log
        assert request_log["documentBase64Length"] == len(sent["documentBase64"])
        response_log = json.loads(run_context.path("callback_response.json").read_text())
        assert response_log == {"status": 200, "reasonPhrase": "OK", "data": {"received": True}, "isHtmlResponse": False}

    def test_no_url_skips_without_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
            raise AssertionError("no request expected")

        with _client(handler) as client:
            for url in (None, "", "   \t"):
                assert client.deliver(url, correlation_id="", determination=Determination.NO, document=b"") is None

    def test_url_is_normalized(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(204)

        with _client(handler) as client:
            client.deliver(" cb.example.com/\thook ", correlation_id="", determination=Determination.NO, document=b"x")

        assert seen == ["https://cb.example.com/hook"]

    def test_html_body_is_warning_only(self, run_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<!DOCTYPE html><html><body>Login</body></html>")

        with _client(handler) as client:
            outcome = client.deliver(
                "https://cb.example.com",
                correlation_id="M-1",
                determination=Determination.YES,
                document=DOCUMENT,
                run_context=run_context,
            )

        assert outcome.is_html_response
        assert json.loads(run_context.path("callback_response.json").read_text())["isHtmlResponse"] is True

    def test_non_2xx_raises_and_records_error(self, run_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "down"})

        with _client(handler) as client:
            with pytest.raises(DeliveryFailed) as excinfo:
                client.deliver(
                    "https://cb.example.com",
                    correlation_id="M-1",
                    determination=Determination.NO,
                    document=DOCUMENT,
                    run_context=run_context,
                )

        assert excinfo.value.status_code == 500
        assert excinfo.value.body == {"error": "down"}
        error_log = json.loads(run_context.path("callback_error.json").read_text())
        assert error_log["response"] == {"status": 500, "data": {"error": "down"}}
        assert not run_context.path("callback_response.json").exists()

    def test_transport_error_raises(self, run_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(DeliveryFailed, match="connection refused") as excinfo:
                client.deliver(
                    "https://cb.example.com",
                    correlation_id="M-1",
                    determination=Determination.NO,
                    document=DOCUMENT,
                    run_context=run_context,
                )

        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
        error_log = json.loads(run_context.path("callback_error.json").read_text())
        assert error_log["response"] is None
        assert "ConnectError" in error_log["message"]

    def test_invalid_url_raises_delivery_failed(self, run_context) -> None:
        handler_calls: list[httpx.Request] = []

        with _client(handler_calls.append) as client:
            with pytest.raises(DeliveryFailed) as excinfo:
                client.deliver(
                    "https://cb.example.com:notaport/x",
                    correlation_id="M-1",
                    determination=Determination.NO,
                    document=DOCUMENT,
                    run_context=run_context,
                )

        assert isinstance(excinfo.value.__cause__, httpx.InvalidURL)
        assert handler_calls == []
        error_log = json.loads(run_context.path("callback_error.json").read_text())
        assert "InvalidURL" in error_log["message"]

    def test_artifact_write_failure_does_not_block_delivery(self, run_context) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"received": True})

        with patch.object(run_context, "write_json", side_effect=OSError("disk full")):
            with _client(handler) as client:
                outcome = client.deliver(
                    "https://cb.example.com/scra",
                    correlation_id="M-1",
                    determination=Determination.YES,
                    document=DOCUMENT,
                    run_context=run_context,
                )

        assert outcome.status_code == 200
