from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import requests

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Exponential backoff policy for HTTP fetches.

    - max_attempts counts the initial attempt (max_attempts=3 => 1 try + 2 retries).
    - base_delay_seconds is the first delay after the first failure.
    - jitter_ratio adds multiplicative jitter in [1-jitter, 1+jitter].
    - retry_after_cap_seconds caps any Retry-After override (0 disables the cap).
    """

    max_attempts: int = 4
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    jitter_ratio: float = 0.25
    retry_after_cap_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0 and 1")
        if self.retry_after_cap_seconds < 0:
            raise ValueError("retry_after_cap_seconds must be >= 0")


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    failure_attempt: int
    next_attempt: int
    max_attempts: int
    delay_seconds: float
    reason: str | None
    error_type: str
    error_message: str
    context_url: str | None


IsRetryableFn = Callable[[BaseException], tuple[bool, float | None, str | None]]
OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def _retry_after_seconds(response: requests.Response | None) -> float | None:
    if response is None:
        return None
    raw = (response.headers.get("Retry-After") or "").strip()
    if not raw:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def is_retryable_http_error(exc: BaseException) -> tuple[bool, float | None, str | None]:
    """
    Retry network failures, HTTP 429 and HTTP 5xx; everything else fails fast.
    """
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        code = response.status_code if response is not None else None
        reason = f"http_{code}" if code is not None else "http_status"
        if code == 429 or (code is not None and code >= 500):
            return True, _retry_after_seconds(response), reason
        return False, None, reason

    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True, None, "network_error"

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True, None, "network_error"

    return False, None, None


def _backoff_seconds(failure_attempt: int, cfg: RetryConfig) -> float:
    delay = cfg.base_delay_seconds * (2 ** max(0, failure_attempt - 1))
    return min(cfg.max_delay_seconds, max(0.0, delay))


def _with_jitter(delay: float, cfg: RetryConfig) -> float:
    if delay <= 0 or cfg.jitter_ratio <= 0:
        return max(0.0, delay)
    return max(0.0, delay * random.uniform(1.0 - cfg.jitter_ratio, 1.0 + cfg.jitter_ratio))


def call_with_retries(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig,
    operation: str,
    is_retryable: IsRetryableFn = is_retryable_http_error,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
    context_url: str | None = None,
) -> T:
    """
    Call fn() and retry it while is_retryable says so, up to cfg.max_attempts.

    A Retry-After hint raises the computed backoff but never lowers it.
    """
    op = (operation or "").strip() or "operation"
    sleeper = sleep_fn or time.sleep

    for attempt in range(1, cfg.max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            retryable, retry_after, reason = is_retryable(exc)
            if not retryable or attempt >= cfg.max_attempts:
                raise

            delay = _backoff_seconds(attempt, cfg)
            if retry_after is not None:
                hint = retry_after
                if cfg.retry_after_cap_seconds > 0:
                    hint = min(hint, cfg.retry_after_cap_seconds)
                delay = max(delay, hint)
            delay = _with_jitter(delay, cfg)

            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=op,
                        failure_attempt=attempt,
                        next_attempt=attempt + 1,
                        max_attempts=cfg.max_attempts,
                        delay_seconds=delay,
                        reason=reason,
                        error_type=type(exc).__name__,
                        error_message=(str(exc) or "").strip(),
                        context_url=context_url,
                    )
                )

            if delay > 0:
                sleeper(delay)

    raise RuntimeError(f"Retry loop exited unexpectedly for operation={op}")
