"""Canonical vocabulary shared by every gateway adapter."""

from enum import Enum


class OperationType(str, Enum):
    """Kinds of monetary action."""

    PURCHASE = "purchase"
    AUTHORIZE = "authorize"
    CAPTURE = "capture"
    CREDIT = "credit"
    VOID = "void"


class OperationStatus(str, Enum):
    """Lifecycle states of an operation."""

    AUTHORIZED = "authorized"
    SETTLING = "settling"
    SETTLED = "settled"
    VOIDED = "voided"
    REFUNDED = "refunded"
    GATEWAY_REJECTED = "gateway_rejected"


class ErrorTarget(str, Enum):
    """The part of a submission an error applies to."""

    CREDIT_CARD = "credit_card"
    TRANSACTION = "transaction"
    UNKNOWN = "unknown"


class ErrorKind(str, Enum):
    """Canonical error categories."""

    INVALID = "invalid"
    REQUIRED = "required"
    EXPIRED = "expired"
    TOO_SHORT = "too_short"
    TYPE_NOT_ACCEPTED = "type_not_accepted"
    CANNOT_CAPTURE = "cannot_capture"
    CANNOT_REFUND = "cannot_refund"
    CANNOT_VOID = "cannot_void"
    UNKNOWN = "unknown"


class SubmissionField(str, Enum):
    """Logical field names, used for form mappings and error grouping."""

    NAME = "name"
    NUMBER = "number"
    EXPIRATION_MONTH = "expiration_month"
    EXPIRATION_YEAR = "expiration_year"
    CVV = "cvv"
    CARD_TYPE = "card_type"
    TRANSACTION = "transaction"
    UNKNOWN = "unknown"


FORM_FIELDS = (
    SubmissionField.NAME,
    SubmissionField.NUMBER,
    SubmissionField.EXPIRATION_MONTH,
    SubmissionField.EXPIRATION_YEAR,
    SubmissionField.CVV,
)
