from __future__ import annotations

import unittest

import requests

from blog_corpus.retry import RetryConfig, RetryEvent, call_with_retries, is_retryable_http_error


def _http_error(status: int, *, retry_after: str | None = None) -> requests.HTTPError:
    resp = requests.Response()
    resp.status_code = status
    if retry_after is not None:
        resp.headers["Retry-After"] = retry_after
    return requests.HTTPError(f"{status}", response=resp)


class TestRetryClassification(unittest.TestCase):
    def test_rate_limit_and_server_errors_retry(self) -> None:
        self.assertEqual(is_retryable_http_error(_http_error(429, retry_after="7")), (True, 7.0, "http_429"))
        self.assertEqual(is_retryable_http_error(_http_error(502)), (True, None, "http_502"))

    def test_client_errors_fail_fast(self) -> None:
        self.assertEqual(is_retryable_http_error(_http_error(404)), (False, None, "http_404"))

    def test_network_errors_retry(self) -> None:
        retryable, _, reason = is_retryable_http_error(requests.ConnectionError("boom"))
        self.assertTrue(retryable)
        self.assertEqual(reason, "network_error")

    def test_other_errors_do_not_retry(self) -> None:
        self.assertEqual(is_retryable_http_error(ValueError("x")), (False, None, None))


class TestCallWithRetries(unittest.TestCase):
    def test_succeeds_after_retries(self) -> None:
        attempts = {"n": 0}
        events: list[RetryEvent] = []
        delays: list[float] = []

        def fn() -> str:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise _http_error(503)
            return "ok"

        cfg = RetryConfig(max_attempts=4, base_delay_seconds=1.0, max_delay_seconds=10.0, jitter_ratio=0.0)
        out = call_with_retries(
            fn,
            cfg=cfg,
            operation="fetch",
            on_retry=events.append,
            sleep_fn=delays.append,
            context_url="https://example.com/a",
        )

        self.assertEqual(out, "ok")
        self.assertEqual(delays, [1.0, 2.0])
        self.assertEqual([e.failure_attempt for e in events], [1, 2])
        self.assertEqual(events[0].reason, "http_503")
        self.assertEqual(events[0].context_url, "https://example.com/a")

    def test_retry_after_raises_delay_with_cap(self) -> None:
        delays: list[float] = []
        calls = {"n": 0}

        def fn() -> str:
            calls["n"] += 1
            if calls["n"] == 1:
                raise _http_error(429, retry_after="120")
            return "ok"

        cfg = RetryConfig(max_attempts=2, base_delay_seconds=1.0, jitter_ratio=0.0, retry_after_cap_seconds=30.0)
        call_with_retries(fn, cfg=cfg, operation="fetch", sleep_fn=delays.append)
        self.assertEqual(delays, [30.0])

    def test_gives_up_after_max_attempts(self) -> None:
        calls = {"n": 0}

        def fn() -> str:
            calls["n"] += 1
            raise requests.Timeout("slow")

        cfg = RetryConfig(max_attempts=3, base_delay_seconds=0.0, jitter_ratio=0.0)
        with self.assertRaises(requests.Timeout):
            call_with_retries(fn, cfg=cfg, operation="fetch", sleep_fn=lambda _: None)
        self.assertEqual(calls["n"], 3)

    def test_invalid_config(self) -> None:
        with self.assertRaises(ValueError):
            RetryConfig(max_attempts=0)


if __name__ == "__main__":
    unittest.main()
