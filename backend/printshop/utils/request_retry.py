"""Shared HTTP request retry utilities using tenacity."""

from dataclasses import dataclass

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)


@dataclass
class RequestRetryConfig:
    """Configuration for HTTP request retries with a fixed short delay."""

    max_attempts: int = 2
    wait: float = 0.5


def get_request_retrying(config: RequestRetryConfig | None = None) -> AsyncRetrying:
    """Get configured AsyncRetrying for httpx.RequestError (network errors and timeouts).

    HTTP error statuses are not retried: the server answered.

    Usage:
        async for attempt in get_request_retrying():
            with attempt:
                response = await client.get(url)

    Args:
        config: Optional retry configuration. Uses defaults if not provided.

    Returns:
        AsyncRetrying instance configured for httpx.RequestError retries.
    """
    cfg = config or RequestRetryConfig()
    return AsyncRetrying(
        retry=retry_if_exception_type(httpx.RequestError),
        stop=stop_after_attempt(cfg.max_attempts),
        wait=wait_fixed(cfg.wait),
        reraise=True,
    )
