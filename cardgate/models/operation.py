"""Operation entity with state machine guards.

An operation is a single monetary action (authorize, purchase, capture,
credit, void) as reported by a gateway. It is immutable: capture, refund and
void return an OperationResult wrapping a fresh Operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union

from cardgate.models.enums import OperationStatus, OperationType
from cardgate.models.exceptions import InvalidActionError

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from cardgate.integrations.payment_gateways.base import PaymentGateway
    from cardgate.models.instrument import PaymentInstrument
    from cardgate.models.result import OperationResult


CAPTURABLE_STATUSES = frozenset({OperationStatus.AUTHORIZED})
REFUNDABLE_STATUSES = frozenset({OperationStatus.SETTLED})
VOIDABLE_STATUSES = frozenset({OperationStatus.AUTHORIZED, OperationStatus.SETTLING})


@dataclass(frozen=True, eq=False)
class Operation:
    """Operation entity with state machine behavior.

    State machine:
        - authorized → capture
        - authorized, settling → void
        - settled → refund (full or partial)
        - voided, refunded, gateway_rejected are terminal

    The guards run before the provider is called, so a rejected action
    never reaches the network. They are point-in-time checks against the
    status this instance was built with, not a lock.

    Two operations are equal when they have the same type and id.
    """

    provider: PaymentGateway = field(repr=False)
    id: str
    status: Optional[OperationStatus]
    type: Optional[OperationType] = None
    amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    instrument: Optional[PaymentInstrument] = field(default=None, repr=False)
    raw: Any = field(default=None, repr=False)

    @property
    def is_authorized(self) -> bool:
        return self.status == OperationStatus.AUTHORIZED

    @property
    def is_settling(self) -> bool:
        return self.status == OperationStatus.SETTLING

    @property
    def is_settled(self) -> bool:
        return self.status == OperationStatus.SETTLED

    @property
    def can_capture(self) -> bool:
        return self.status in CAPTURABLE_STATUSES

    @property
    def can_refund(self) -> bool:
        return self.status in REFUNDABLE_STATUSES

    @property
    def can_void(self) -> bool:
        return self.status in VOIDABLE_STATUSES

    def capture(self) -> OperationResult:
        """Capture the authorized amount.

        Raises:
            InvalidActionError: If not in AUTHORIZED status.
        """
        if not self.can_capture:
            raise InvalidActionError(self.id, "capture", self.status)
        return self.provider.capture_operation(self)

    def refund(self) -> OperationResult:
        """Refund the full settled amount.

        Raises:
            InvalidActionError: If not in SETTLED status.
        """
        if not self.can_refund:
            raise InvalidActionError(self.id, "refund", self.status)
        return self.provider.refund_operation(self)

    def partially_refund(self, amount: Union[Decimal, int, str]) -> OperationResult:
        """Refund part of the settled amount.

        Raises:
            InvalidActionError: If not in SETTLED status.
        """
        if not self.can_refund:
            raise InvalidActionError(self.id, "partial_refund", self.status)
        return self.provider.partially_refund_operation(self, amount)

    def void(self) -> OperationResult:
        """Cancel the operation before it settles.

        Raises:
            InvalidActionError: If not in AUTHORIZED or SETTLING status.
        """
        if not self.can_void:
            raise InvalidActionError(self.id, "void", self.status)
        return self.provider.void_operation(self)

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.id == self.id  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.id))
