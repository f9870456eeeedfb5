"""Unit tests for scra.browser.navigation: backoff retry and verified goto."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from scra.browser.navigation import goto_verified, next_delay, retry, verify_content
from scra.exceptions import NavigationFailed


# ---------------------------------------------------------------------------
# retry
# ---------------------------------------------------------------------------


class TestRetry:
    """Tests for the exponential-backoff retry wrapper."""

    def test_returns_first_success_without_sleeping(self) -> None:
        sleep = MagicMock()
        assert retry(lambda: "ok", sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_retries_until_success(self) -> None:
        operation = MagicMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), "done"])
        sleep = MagicMock()

        result = retry(operation, max_retries=3, initial_delay=10, max_delay=60, sleep=sleep, jitter=lambda: 0.5)

        assert result == "done"
        assert operation.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [10, 15.5]

    def test_delays_are_capped(self) -> None:
        operation = MagicMock(side_effect=[RuntimeError()] * 4 + ["ok"])
        sleep = MagicMock()

        retry(operation, max_retries=4, initial_delay=30, max_delay=40, sleep=sleep, jitter=lambda: 0.9)

        delays = [c.args[0] for c in sleep.call_args_list]
        assert delays == [30, 40, 40, 40]
        assert all(d <= 40 for d in delays)

    def test_initial_delay_is_capped_by_max_delay(self) -> None:
        sleep = MagicMock()
        operation = MagicMock(side_effect=[RuntimeError(), "ok"])

        retry(operation, initial_delay=90, max_delay=60, sleep=sleep, jitter=lambda: 0.0)

        sleep.assert_called_once_with(60)

    def test_at_most_max_retries_plus_one_attempts(self) -> None:
        operation = MagicMock(side_effect=ValueError("always"))

        with pytest.raises(ValueError, match="always"):
            retry(operation, max_retries=2, initial_delay=1, sleep=lambda _s: None)

        assert operation.call_count == 3

    def test_zero_retries_means_single_attempt(self) -> None:
        operation = MagicMock(side_effect=ValueError("once"))
        sleep = MagicMock()

        with pytest.raises(ValueError):
            retry(operation, max_retries=0, sleep=sleep)

        assert operation.call_count == 1
        sleep.assert_not_called()

    def test_final_error_replaces_and_chains_last_error(self) -> None:
        last = RuntimeError("last")
        operation = MagicMock(side_effect=[RuntimeError("first"), last])
        final = NavigationFailed("gave up")

        with pytest.raises(NavigationFailed) as excinfo:
            retry(operation, max_retries=1, initial_delay=1, final_error=final, sleep=lambda _s: None)

        assert excinfo.value is final
        assert excinfo.value.__cause__ is last

    def test_on_retry_hook_sees_each_sleep(self) -> None:
        seen: list[tuple[int, str, float]] = []
        operation = MagicMock(side_effect=[RuntimeError("a"), RuntimeError("b"), "ok"])

        retry(
            operation,
            initial_delay=2,
            max_delay=60,
            sleep=lambda _s: None,
            jitter=lambda: 0.0,
            on_retry=lambda attempt, exc, delay: seen.append((attempt, str(exc), delay)),
        )

        assert seen == [(1, "a", 2), (2, "b", 3.0)]

    def test_default_jitter_stays_within_one_second(self) -> None:
        sleep = MagicMock()
        operation = MagicMock(side_effect=[RuntimeError(), RuntimeError(), "ok"])

        retry(operation, initial_delay=10, max_delay=60, sleep=sleep)

        second = sleep.call_args_list[1].args[0]
        assert 15.0 <= second <= 16.0


class TestNextDelay:
    def test_grows_by_half_plus_jitter(self) -> None:
        assert next_delay(10, 60, jitter=0.25) == 15.25

    def test_never_exceeds_max(self) -> None:
        assert next_delay(50, 60, jitter=1.0) == 60


# ---------------------------------------------------------------------------
# verify_content / goto_verified
# ---------------------------------------------------------------------------


class TestVerifyContent:
    def test_expected_page(self) -> None:
        assert verify_content("<h1>SCRA</h1>", denied_markers=["Access Denied"], expected_markers=["SCRA"]) is None

    def test_denied_wins_over_expected(self) -> None:
        content = "SCRA - Access Denied"
        reason = verify_content(content, denied_markers=["Access Denied"], expected_markers=["SCRA"])
        assert reason == "access_denied"

    def test_wrong_page(self) -> None:
        reason = verify_content("<h1>Maintenance</h1>", denied_markers=[], expected_markers=["SCRA"])
        assert reason == "wrong_page"

    def test_no_expected_markers_accepts_anything(self) -> None:
        assert verify_content("anything", denied_markers=[], expected_markers=[]) is None


class TestGotoVerified:
    def _page(self, content: str = "<html>SCRA Single Record Request</html>") -> MagicMock:
        page = MagicMock()
        page.title.return_value = "SCRA"
        page.content.return_value = content
        return page

    def test_success(self) -> None:
        page = self._page()
        on_failure = MagicMock()

        goto_verified(
            page,
            "https://scra.example/form",
            timeout_ms=5000,
            denied_markers=["Access Denied"],
            expected_markers=["SCRA"],
            on_failure=on_failure,
        )

        page.goto.assert_called_once_with("https://scra.example/form", wait_until="domcontentloaded", timeout=5000)
        on_failure.assert_not_called()

    def test_goto_error_is_wrapped(self) -> None:
        page = self._page()
        page.goto.side_effect = RuntimeError("net::ERR_TIMED_OUT")
        on_failure = MagicMock()

        with pytest.raises(NavigationFailed, match="ERR_TIMED_OUT") as excinfo:
            goto_verified(
                page, "https://x", timeout_ms=1, denied_markers=[], expected_markers=[], on_failure=on_failure
            )

        on_failure.assert_called_once_with("navigation_error")
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert excinfo.value.stage == "navigation"

    def test_access_denied(self) -> None:
        page = self._page("<h1>Access Denied</h1>")
        on_failure = MagicMock()

        with pytest.raises(NavigationFailed, match="denied"):
            goto_verified(
                page,
                "https://x",
                timeout_ms=1,
                denied_markers=["Access Denied"],
                expected_markers=["SCRA"],
                on_failure=on_failure,
            )

        on_failure.assert_called_once_with("access_denied")

    def test_wrong_page(self) -> None:
        page = self._page("<h1>Welcome</h1>")
        on_failure = MagicMock()

        with pytest.raises(NavigationFailed, match="expected form"):
            goto_verified(
                page,
                "https://x",
                timeout_ms=1,
                denied_markers=["Access Denied"],
                expected_markers=["SCRA"],
                on_failure=on_failure,
            )

        on_failure.assert_called_once_with("wrong_page")
