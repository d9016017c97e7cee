import asyncio
import logging
import time
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from app.config import settings
from app.services.provider_rate_limiter import provider_rate_limiter

logger = logging.getLogger("betledger.http_client")

# Retryable HTTP status codes
_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class ProviderError(Exception):
    """Upstream feed failure: transport error, non-2xx status, or malformed JSON."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status_code = status_code


class CircuitBreaker:
    """Simple circuit breaker for external API calls."""

    def __init__(self, failure_threshold: int = 3, recovery_timeout: int = 300):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.is_open = False

    def record_success(self) -> None:
        self.failure_count = 0
        self.is_open = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.failure_count >= self.failure_threshold:
            self.is_open = True
            logger.warning(
                "Circuit breaker OPEN after %d failures", self.failure_count
            )

    def can_attempt(self) -> bool:
        if not self.is_open:
            return True
        # Allow retry after recovery timeout (half-open)
        if self.last_failure_time and (
            time.time() - self.last_failure_time > self.recovery_timeout
        ):
            logger.info("Circuit breaker half-open, allowing retry")
            return True
        return False


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Extract wait time from Retry-After or X-RateLimit-Retry-After headers."""
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def safe_url(url: str) -> str:
    """Strip query params (may contain API keys) for safe logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient wrapper with rate limiting, retry/backoff, and a circuit breaker."""

    def __init__(
        self,
        name: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        rate_limit_rpm: Optional[int] = None,
    ):
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS,
        )
        self._name = name
        self._max_retries = max_retries if max_retries is not None else settings.PROVIDER_MAX_RETRIES
        self._base_delay = base_delay if base_delay is not None else settings.PROVIDER_RETRY_BASE_DELAY
        self._rate_limit_rpm = rate_limit_rpm
        self.circuit = CircuitBreaker()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry/backoff on transient failures."""
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(self._max_retries + 1):
            await provider_rate_limiter.acquire(self._name, self._rate_limit_rpm)
            try:
                resp = await self._client.request(method, url, **kwargs)

                if resp.status_code not in _RETRYABLE_STATUSES:
                    return resp

                last_resp = resp
                logger.warning(
                    "[%s] Retryable status %d on %s %s (attempt %d/%d)",
                    self._name, resp.status_code, method, safe_url(url),
                    attempt + 1, self._max_retries + 1,
                )

                if attempt < self._max_retries:
                    delay = _parse_retry_after(resp)
                    if delay is None:
                        delay = self._base_delay * (2 ** attempt)
                    # Cap delay at 60s
                    delay = min(delay, 60.0)
                    await asyncio.sleep(delay)

            except (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError) as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, safe_url(url),
                    attempt + 1, self._max_retries + 1, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._base_delay * (2 ** attempt))

        if last_resp is not None:
            logger.error(
                "[%s] All %d attempts failed for %s %s (last status: %d)",
                self._name, self._max_retries + 1, method, safe_url(url),
                last_resp.status_code,
            )
            return last_resp

        logger.error(
            "[%s] All %d attempts failed for %s %s: %s",
            self._name, self._max_retries + 1, method, safe_url(url), last_exc,
        )
        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET and decode JSON, raising ProviderError for every failure mode.

        Trips the circuit breaker on failure so a dead feed is not hammered
        by every bet in a settlement pass.
        """
        if not self.circuit.can_attempt():
            raise ProviderError(self._name, f"circuit open, skipping {safe_url(url)}")

        try:
            resp = await self.get(url, params=params)
        except httpx.HTTPError as exc:
            self.circuit.record_failure()
            raise ProviderError(self._name, f"transport error on {safe_url(url)}: {exc}") from exc

        if resp.status_code >= 400:
            # 404 means "nothing for this key", not a feed outage
            if resp.status_code != 404:
                self.circuit.record_failure()
            raise ProviderError(
                self._name,
                f"HTTP {resp.status_code} on {safe_url(url)}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            self.circuit.record_failure()
            raise ProviderError(self._name, f"malformed JSON from {safe_url(url)}") from exc

        self.circuit.record_success()
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()
