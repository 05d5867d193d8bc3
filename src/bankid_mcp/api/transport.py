"""
Mutual-TLS transport for the BankID RP API.

One call to SecureTransport.execute() is exactly one POST; retrying is
left to the caller, which knows whether the operation is idempotent.

Requires: httpx>=0.25.0
"""

from __future__ import annotations

import logging
import ssl
from enum import Enum

import httpx

from bankid_mcp.api.models import ErrorBody
from bankid_mcp.errors import ProtocolError, ServiceError, TransportError

log = logging.getLogger(__name__)

TEST_BASE_URL = "https://appapi2.test.bankid.com/rp/v5.1/"
PRODUCTION_BASE_URL = "https://appapi2.bankid.com/rp/v5.1/"

COMMON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class Endpoint(str, Enum):
    """BankID environment: a fixed base URL and CA root.

    Order references are only meaningful on the endpoint that issued
    them; never collect or cancel an order through a client configured
    for the other endpoint.
    """

    TEST = "test"
    PRODUCTION = "production"

    @property
    def base_url(self) -> str:
        return TEST_BASE_URL if self is Endpoint.TEST else PRODUCTION_BASE_URL

    @property
    def ca_filename(self) -> str:
        return "ca-test.pem" if self is Endpoint.TEST else "ca-prod.pem"


class SecureTransport:
    """Executes single JSON exchanges against one BankID endpoint."""

    def __init__(
        self,
        endpoint: Endpoint,
        ssl_context: ssl.SSLContext | None = None,
        timeout: float = 10.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the transport.

        The httpx client (connection pool and TLS material) is created
        here once and shared by all concurrent calls.

        Args:
            endpoint: Environment to talk to
            ssl_context: Mutual-TLS context from load_ssl_context()
            timeout: Default per-request deadline in seconds
            http_transport: Replacement httpx transport (tests)
        """
        if ssl_context is None and http_transport is None:
            raise ValueError("An SSL context is required for mutual TLS")
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=endpoint.base_url,
            headers=COMMON_HEADERS,
            timeout=timeout,
            verify=ssl_context if ssl_context is not None else True,
            transport=http_transport,
        )

    async def execute(
        self,
        operation: str,
        payload: dict,
        timeout: float | None = None,
    ) -> dict:
        """
        POST one request and classify the outcome.

        Args:
            operation: Path relative to the endpoint, e.g. "collect"
            payload: JSON-serializable request body
            timeout: Deadline in seconds; defaults to the transport's

        Returns:
            Parsed JSON body of a 2xx response ({} when empty)

        Raises:
            ServiceError: non-2xx response carrying an errorCode
            TransportError: no service-level response was received
            ProtocolError: 2xx response with an unparseable body
        """
        log.debug("POST %s%s", self.endpoint.base_url, operation)
        try:
            response = await self._client.post(
                operation,
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{operation} timed out: {e!r}", operation=operation) from e
        except httpx.RequestError as e:
            raise TransportError(f"{operation} failed: {e!r}", operation=operation) from e

        if response.is_success:
            if not response.content:
                return {}
            try:
                body = response.json()
            except ValueError as e:
                raise ProtocolError(f"{operation} returned invalid JSON") from e
            if not isinstance(body, dict):
                raise ProtocolError(f"{operation} returned {type(body).__name__}, expected object")
            return body

        try:
            error = ErrorBody.model_validate(response.json())
        except ValueError as e:
            # Proxies and load balancers answer without the service's error body
            raise TransportError(
                f"{operation} failed with HTTP {response.status_code}",
                operation=operation,
            ) from e
        log.debug(
            "%s rejected with HTTP %d %s", operation, response.status_code, error.errorCode
        )
        raise ServiceError(error.errorCode, error.details, response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()
