"""Domain exceptions for cardgate.

Exception hierarchy:
    CardgateError (base)
    ├── InvalidActionError
    ├── InvalidInstrumentError
    ├── MissingValueError
    └── PaymentError (gateway layer, see integrations.payment_gateways.base)

Submission validation problems (bad card number, expired card, ...) are not
exceptions. They are returned as SubmissionError entries on a failed
OperationResult.
"""

from __future__ import annotations

from typing import Any, Optional


class CardgateError(Exception):
    """Base exception for all cardgate errors.

    Vendor SDK and transport errors are not wrapped in it.
    """


class InvalidActionError(CardgateError):
    """Raised when an operation's status forbids the requested action.

    Valid transitions:
        - authorized → capture
        - authorized, settling → void
        - settled → refund / partial refund

    voided, refunded and gateway_rejected are terminal.
    """

    def __init__(self, operation_id: str, action: str, status: Optional[Any]) -> None:
        self.operation_id = operation_id
        self.action = action
        self.status = status
        status_value = getattr(status, "value", status)
        super().__init__(
            f"Cannot perform the action '{action}' for operation '{operation_id}' "
            f"while in status '{status_value}'"
        )


class InvalidInstrumentError(CardgateError):
    """Raised when charging or crediting an invalid or expired instrument."""

    def __init__(self, instrument_id: str, action: str) -> None:
        self.instrument_id = instrument_id
        self.action = action
        super().__init__(
            f"Cannot perform the action '{action}' with instrument '{instrument_id}'; "
            "it is invalid or expired"
        )


class MissingValueError(CardgateError):
    """Raised when reading a field the gateway never populated.

    Some gateways do not report validity or expiry. Returning None would be
    falsy and indistinguishable from a genuine False, so the read fails.
    """

    def __init__(self, field: str, record: Any) -> None:
        self.field = field
        self.record_type = type(record).__name__
        super().__init__(f"The field {field} is missing for {self.record_type}")
