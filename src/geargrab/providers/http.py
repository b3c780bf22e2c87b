"""Shared HTTP plumbing for REST screening vendors.

Wraps an ``httpx.AsyncClient`` with bearer authentication, maps transport
and status failures onto the provider error taxonomy and logs every call.
Idempotent reads and cancels go through ``request_idempotent`` which
retries transport failures with tenacity; report creation never does.
"""

import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from geargrab.config.settings import VendorEndpoint
from geargrab.core.exceptions import ProviderAPIError, ProviderUnavailableError
from geargrab.core.logging import get_logger, log_external_call

from .protocol import BaseScreeningProvider
from .types import ProviderInfo

logger = get_logger(__name__)


class VendorHTTPProvider(BaseScreeningProvider):
    """Base class for vendors reached over an authenticated REST API."""

    def __init__(
        self,
        provider_info: ProviderInfo,
        endpoint: VendorEndpoint,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(provider_info, portal_url=endpoint.portal_url)
        self._endpoint = endpoint
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._endpoint.base_url,
                timeout=self._endpoint.timeout_seconds,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        if self._endpoint.api_key is None:
            raise ProviderUnavailableError(
                f"{self.provider_info.name} API key is not configured", self.provider_id
            )
        return {
            "Authorization": f"Bearer {self._endpoint.api_key.get_secret_value()}",
            "Accept": "application/json",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Send one request and map failures onto provider errors.

        Args:
            method: HTTP method.
            path: Path relative to the vendor base URL.
            json: Optional JSON body.
            allow_status: Non-2xx statuses returned to the caller instead of raised.

        Raises:
            ProviderUnavailableError: On transport failure or 401/403.
            ProviderAPIError: On any other non-success status.
        """
        headers = self._headers()
        start = time.perf_counter()
        try:
            response = await self.client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            log_external_call(
                logger,
                service=self.provider_id,
                operation=f"{method} {path}",
                duration_ms=(time.perf_counter() - start) * 1000,
                success=False,
                error=type(e).__name__,
            )
            raise ProviderUnavailableError(
                f"{self.provider_info.name} unreachable: {type(e).__name__}",
                self.provider_id,
            ) from e

        ok = response.is_success or response.status_code in allow_status
        log_external_call(
            logger,
            service=self.provider_id,
            operation=f"{method} {path}",
            duration_ms=(time.perf_counter() - start) * 1000,
            success=ok,
            status_code=response.status_code,
        )

        if ok:
            return response
        if response.status_code in (401, 403):
            raise ProviderUnavailableError(
                f"{self.provider_info.name} rejected credentials ({response.status_code})",
                self.provider_id,
            )
        raise ProviderAPIError(
            f"{self.provider_info.name} API error: {response.status_code} "
            f"{response.reason_phrase}",
            self.provider_id,
            status_code=response.status_code,
            details={"body": _safe_body(response)},
        )

    async def request_idempotent(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Like ``request`` but retries transport failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._endpoint.retry_attempts),
            wait=wait_exponential(multiplier=1, min=self._endpoint.retry_wait_seconds, max=10),
            retry=retry_if_exception(_is_transport_failure),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.request(method, path, json=json, allow_status=allow_status)
        raise AssertionError("unreachable")  # pragma: no cover

    def json_body(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a success body that must be a JSON object.

        Raises:
            ProviderAPIError: If the body is not JSON or not an object.
        """
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderAPIError(
                f"{self.provider_info.name} returned a non-JSON body",
                self.provider_id,
                status_code=response.status_code,
                details={"body": response.text[:500]},
            ) from e
        if not isinstance(body, dict):
            raise ProviderAPIError(
                f"{self.provider_info.name} returned {type(body).__name__}, expected an object",
                self.provider_id,
                status_code=response.status_code,
            )
        return body


def _is_transport_failure(exc: BaseException) -> bool:
    return isinstance(exc, ProviderUnavailableError) and isinstance(
        exc.__cause__, httpx.TransportError
    )


def _safe_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]
