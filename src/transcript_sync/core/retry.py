"""Shared tenacity retry policy for outbound HTTP calls.

3 attempts, exponential backoff 1-10s. Retries connection errors, timeouts,
429 and 5xx responses. Other 4xx responses fail immediately, and the final
exception is re-raised unchanged so callers can translate it.
"""

from __future__ import annotations

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential


def is_retryable_http_error(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return False


http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(is_retryable_http_error),
    reraise=True,
)
