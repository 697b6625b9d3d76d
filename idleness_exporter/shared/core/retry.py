"""
Retry Logic with Exponential Backoff

Provides an httpx transport that transparently re-issues GCP API requests
answered with a retryable status code (503 by default), waiting an
exponentially growing, jittered delay between attempts.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt
from tenacity.wait import wait_base

from idleness_exporter.shared.core.ops_metrics import UPSTREAM_RETRIES_TOTAL

if TYPE_CHECKING:
    from idleness_exporter.shared.core.config import Settings

logger = structlog.get_logger()

DEFAULT_RETRY_STATUSES = frozenset({503})


def exp_jitter_delay(
    attempt: int,
    jitter_base: float,
    max_backoff: float,
    uniform: Callable[[float, float], float] | None = None,
) -> float:
    """
    Delay before retry number `attempt` (0-based).

    jitter_base * 2^attempt plus up to one jitter_base of random jitter,
    capped at max_backoff. Successive delays never decrease.
    """
    jitter = (uniform or random.uniform)(0, jitter_base)
    delay = jitter_base * (2**attempt) + jitter
    return min(delay, max_backoff)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration shared by every collector's API client."""

    max_retries: int = 0
    retry_statuses: frozenset[int] = DEFAULT_RETRY_STATUSES
    jitter_base: float = 1.0
    max_backoff: float = 5.0
    timeout: float | None = 10.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_retries=settings.GCP_EXPORTER_MAX_RETRIES,
            retry_statuses=settings.retry_statuses,
            jitter_base=settings.GCP_EXPORTER_BACKOFF_JITTER_BASE,
            max_backoff=settings.GCP_EXPORTER_MAX_BACKOFF_DURATION,
            timeout=settings.GCP_EXPORTER_HTTP_TIMEOUT,
        )

    def delay_for(self, attempt: int) -> float:
        return exp_jitter_delay(attempt, self.jitter_base, self.max_backoff)

    def should_retry(self, response: httpx.Response) -> bool:
        return response.status_code in self.retry_statuses


class wait_exp_jitter(wait_base):
    """Tenacity wait strategy backed by RetryPolicy.delay_for."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.policy.delay_for(retry_state.attempt_number - 1)


def _last_response(retry_state: RetryCallState) -> httpx.Response:
    # Budget exhausted: hand the final response back instead of a RetryError.
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


class RetryTransport(httpx.AsyncBaseTransport):
    """
    Wraps another async transport with status-based retries.

    Only the response status decides whether to retry; transport-level
    failures (connection errors, per-attempt timeouts) propagate
    immediately. The exporter only issues read-only list calls, so retries
    are not restricted to idempotent methods.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._transport = transport
        self.policy = policy
        self._sleep = sleep

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.policy.timeout is None:
            return await self._send_with_retries(request)

        try:
            return await asyncio.wait_for(
                self._send_with_retries(request), timeout=self.policy.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "gcp_request_timed_out",
                method=request.method,
                path=request.url.path,
                timeout_seconds=self.policy.timeout,
            )
            raise httpx.TimeoutException(
                f"request exceeded {self.policy.timeout}s including retries",
                request=request,
            ) from exc

    async def _send_with_retries(self, request: httpx.Request) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_retries + 1),
            wait=wait_exp_jitter(self.policy),
            retry=retry_if_result(self.policy.should_retry),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            retry_error_callback=_last_response,
        )
        return await retrying(self._send_once, request)

    async def _send_once(self, request: httpx.Request) -> httpx.Response:
        response = await self._transport.handle_async_request(request)
        if self.policy.should_retry(response):
            # Drain so the connection returns to the pool before the next attempt.
            await response.aread()
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        assert retry_state.outcome is not None
        response = retry_state.outcome.result()
        UPSTREAM_RETRIES_TOTAL.labels(status=str(response.status_code)).inc()
        request = retry_state.args[0] if retry_state.args else None
        logger.warning(
            "gcp_request_will_retry",
            status=response.status_code,
            attempt=retry_state.attempt_number,
            max_attempts=self.policy.max_retries + 1,
            delay_seconds=round(retry_state.next_action.sleep, 3)
            if retry_state.next_action
            else None,
            path=request.url.path if request is not None else None,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()
