from cardgate.models.enums import (
    ErrorKind,
    ErrorTarget,
    OperationStatus,
    OperationType,
    SubmissionField,
)
from cardgate.models.exceptions import (
    CardgateError,
    InvalidActionError,
    InvalidInstrumentError,
    MissingValueError,
)
from cardgate.models.instrument import MISSING, PaymentInstrument, derive_expired, mask_number
from cardgate.models.operation import Operation
from cardgate.models.result import OperationResult, PreparedSubmission, SubmissionError

__all__ = [
    "CardgateError",
    "ErrorKind",
    "ErrorTarget",
    "InvalidActionError",
    "InvalidInstrumentError",
    "MISSING",
    "MissingValueError",
    "Operation",
    "OperationResult",
    "OperationStatus",
    "OperationType",
    "PaymentInstrument",
    "PreparedSubmission",
    "SubmissionError",
    "SubmissionField",
    "derive_expired",
    "mask_number",
]
