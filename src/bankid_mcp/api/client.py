"""
BankID RP API Client.

Async client for BankID's relying-party API: start auth and sign orders,
collect their status, and cancel them. Each operation kind has a fixed
retry policy, because only collect and cancel are safe to repeat; a
duplicate auth or sign would start a second order.

Requires: httpx>=0.25.0
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from bankid_mcp.api.models import (
    AuthRequest,
    CancelRequest,
    CollectRequest,
    CollectResponse,
    ErrorCode,
    OrderResponse,
    SignRequest,
)
from bankid_mcp.api.order import Order
from bankid_mcp.api.transport import SecureTransport
from bankid_mcp.config import Settings
from bankid_mcp.errors import ProtocolError, ServiceError, TransportError, ValidationError
from bankid_mcp.utils.identity import load_ssl_context
from bankid_mcp.utils.validation import mask_personal_number

log = logging.getLogger(__name__)

# Recommended collect cadence from the BankID RP guidelines
DEFAULT_POLL_INTERVAL = 2.0


class Operation(str, Enum):
    AUTH = "auth"
    SIGN = "sign"
    COLLECT = "collect"
    CANCEL = "cancel"


@dataclass(frozen=True)
class OperationPolicy:
    """How failures of one operation kind are treated."""

    retry_transport_errors: bool
    noop_error_codes: frozenset[str] = frozenset()


OPERATION_POLICIES = {
    Operation.AUTH: OperationPolicy(retry_transport_errors=False),
    Operation.SIGN: OperationPolicy(retry_transport_errors=False),
    Operation.COLLECT: OperationPolicy(retry_transport_errors=True),
    Operation.CANCEL: OperationPolicy(
        retry_transport_errors=True,
        noop_error_codes=frozenset({ErrorCode.NOT_FOUND.value, ErrorCode.CANCELED.value}),
    ),
}


class BankIDClient:
    """Async client for the BankID RP API."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize BankID API client.

        Args:
            settings: Client configuration; defaults to the test endpoint
            http_transport: Replacement httpx transport. When given, no
                RP certificate is loaded (used by tests).
        """
        self.settings = settings or Settings()
        ssl_context = None
        if http_transport is None:
            if self.settings.certificate_path is None:
                raise ValidationError("An RP certificate is required (certificate_path)")
            ssl_context = load_ssl_context(
                self.settings.ca_path,
                self.settings.certificate_path,
                self.settings.certificate_password,
            )
        self._transport = SecureTransport(
            self.settings.endpoint,
            ssl_context=ssl_context,
            timeout=self.settings.request_timeout,
            http_transport=http_transport,
        )

    async def __aenter__(self) -> BankIDClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def auth(self, request: AuthRequest) -> OrderResponse:
        """
        Start an authentication order.

        POST /auth (never retried)

        Args:
            request: AuthRequest; personalNumber may be omitted

        Returns:
            OrderResponse with orderRef and the start tokens.
            Use Order.from_response() to begin tracking it.
        """
        request.check_fields()
        log.info(
            "Starting auth order for %s", mask_personal_number(request.personalNumber)
        )
        body = await self._call(Operation.AUTH, request.payload())
        response = _parse(OrderResponse, body, Operation.AUTH)
        log.info("Auth order %s created", response.orderRef)
        return response

    async def sign(self, request: SignRequest) -> OrderResponse:
        """
        Start a signing order.

        POST /sign (never retried)

        Args:
            request: SignRequest with base64 userVisibleData

        Returns:
            OrderResponse with orderRef and the start tokens
        """
        request.check_fields(
            self.settings.max_user_visible_data,
            self.settings.max_user_non_visible_data,
        )
        log.info(
            "Starting sign order for %s", mask_personal_number(request.personalNumber)
        )
        body = await self._call(Operation.SIGN, request.payload())
        response = _parse(OrderResponse, body, Operation.SIGN)
        log.info("Sign order %s created", response.orderRef)
        return response

    async def collect(self, order: str | Order) -> Order:
        """
        Fetch the current state of an order.

        POST /collect (transport errors retried per settings.retry_policy)

        Args:
            order: orderRef, or the last Order snapshot for it

        Returns:
            New Order snapshot reflecting the service's reported status
        """
        current = order if isinstance(order, Order) else Order.created(order)
        request = CollectRequest(orderRef=current.order_ref)
        request.check_fields()
        body = await self._call(Operation.COLLECT, request.payload())
        updated = current.apply(_parse(CollectResponse, body, Operation.COLLECT))
        if updated.is_terminal:
            log.info(
                "Order %s finished: %s %s",
                updated.order_ref,
                updated.status.value,
                updated.hint_code or "",
            )
        return updated

    async def cancel(self, order: str | Order) -> None:
        """
        Cancel an outstanding order.

        POST /cancel. Cancelling an order the service no longer knows
        about is treated as success, so cancel() can safely be repeated.

        Args:
            order: orderRef, or the last Order snapshot for it

        Raises:
            InvalidStateError: the given Order is already complete
        """
        if isinstance(order, Order):
            order.ensure_cancellable()
            order_ref = order.order_ref
        else:
            order_ref = order
        request = CancelRequest(orderRef=order_ref)
        request.check_fields()
        await self._call(Operation.CANCEL, request.payload())
        log.info("Order %s cancelled", order_ref)

    async def wait_for_completion(
        self,
        order: str | Order,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Order:
        """
        Collect repeatedly until the order is complete or failed.

        Args:
            order: orderRef or Order to poll
            interval: Seconds between collect calls

        Returns:
            The terminal Order snapshot
        """
        current = await self.collect(order)
        while not current.is_terminal:
            await asyncio.sleep(interval)
            current = await self.collect(current)
        return current

    async def _call(self, operation: Operation, payload: dict) -> dict:
        """Execute an operation under its policy from OPERATION_POLICIES."""
        policy = OPERATION_POLICIES[operation]
        retry = self.settings.retry_policy
        max_attempts = retry.max_attempts if policy.retry_transport_errors else 1
        attempt = 1
        while True:
            try:
                return await self._transport.execute(
                    operation.value, payload, self.settings.request_timeout
                )
            except TransportError as exc:
                if attempt >= max_attempts:
                    raise
                delay = random.uniform(0, retry.delay(attempt))
                log.warning(
                    "%s attempt %d/%d failed: %s; retrying in %.2fs",
                    operation.value,
                    attempt,
                    max_attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
            except ServiceError as exc:
                if exc.code in policy.noop_error_codes:
                    log.info("%s: %s treated as already done", operation.value, exc.code)
                    return {}
                raise


def _parse(model: type[BaseModel], body: dict, operation: Operation):
    try:
        return model.model_validate(body)
    except ModelValidationError as e:
        raise ProtocolError(f"Unexpected {operation.value} response: {e}") from e
