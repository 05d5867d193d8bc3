"""
Order lifecycle for BankID auth and sign orders.

An order is created by /auth or /sign and afterwards only changes when a
/collect snapshot is applied. The status is always the one the service
reported; nothing here runs timers or infers transitions.

    created ──collect──> pending ──collect──> complete
                            │
                            └────collect──> failed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from bankid_mcp.api.models import (
    CollectResponse,
    CollectStatus,
    CompletionData,
    HintCode,
    OrderResponse,
)
from bankid_mcp.errors import InvalidStateError, ProtocolError

log = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"
    FAILED = "failed"
    COMPLETE = "complete"


TERMINAL_STATUSES = frozenset({OrderStatus.FAILED, OrderStatus.COMPLETE})


class HintCategory(str, Enum):
    """Coarse classification of a hint code."""

    WAITING_FOR_USER = "waiting_for_user"
    IN_PROGRESS = "in_progress"
    USER_ABORTED = "user_aborted"
    EXPIRED = "expired"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


HINT_CATEGORIES = {
    HintCode.OUTSTANDING_TRANSACTION: HintCategory.WAITING_FOR_USER,
    HintCode.NO_CLIENT: HintCategory.WAITING_FOR_USER,
    HintCode.STARTED: HintCategory.IN_PROGRESS,
    HintCode.USER_MRTD: HintCategory.IN_PROGRESS,
    HintCode.USER_CALL_CONFIRM: HintCategory.IN_PROGRESS,
    HintCode.USER_SIGN: HintCategory.IN_PROGRESS,
    HintCode.USER_CANCEL: HintCategory.USER_ABORTED,
    HintCode.USER_DECLINED_CALL: HintCategory.USER_ABORTED,
    HintCode.CANCELLED: HintCategory.USER_ABORTED,
    HintCode.EXPIRED_TRANSACTION: HintCategory.EXPIRED,
    HintCode.START_FAILED: HintCategory.EXPIRED,
    HintCode.CERTIFICATE_ERR: HintCategory.REJECTED,
}


def hint_category(hint_code: str | None) -> HintCategory:
    """Classify a hint code; unrecognised codes map to UNKNOWN."""
    try:
        return HINT_CATEGORIES[HintCode(hint_code)]
    except ValueError:
        return HintCategory.UNKNOWN


@dataclass(frozen=True)
class Order:
    """Caller-owned snapshot of one auth or sign order."""

    order_ref: str
    status: OrderStatus = OrderStatus.CREATED
    hint_code: str | None = None
    completion_data: CompletionData | None = None

    @classmethod
    def created(cls, order_ref: str) -> Order:
        return cls(order_ref=order_ref)

    @classmethod
    def from_response(cls, response: OrderResponse) -> Order:
        """Start tracking the order created by an auth or sign call."""
        return cls.created(response.orderRef)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def hint_category(self) -> HintCategory:
        return hint_category(self.hint_code)

    def apply(self, response: CollectResponse) -> Order:
        """
        Apply a /collect snapshot, returning the updated order.

        The order itself is never modified; a new snapshot is returned so
        a failed collect leaves the caller's copy untouched.

        Raises:
            ProtocolError: if the snapshot names another order
        """
        if response.orderRef is not None and response.orderRef != self.order_ref:
            raise ProtocolError(
                f"Collect response for {response.orderRef} applied to order {self.order_ref}"
            )
        status = OrderStatus(response.status.value)
        if self.is_terminal and status is not self.status:
            # The service is the source of truth; just make it visible
            log.warning(
                "Order %s reported %s after terminal %s",
                self.order_ref,
                status.value,
                self.status.value,
            )
        return replace(
            self,
            status=status,
            hint_code=(
                response.hintCode if response.status is not CollectStatus.COMPLETE else None
            ),
            completion_data=response.completionData,
        )

    def ensure_cancellable(self) -> None:
        """Raise InvalidStateError if cancelling this order is a logic error."""
        if self.status is OrderStatus.COMPLETE:
            raise InvalidStateError(f"Order {self.order_ref} is already complete")
