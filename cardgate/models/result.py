"""Outcome types returned by every provider call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Union

from cardgate.models.enums import ErrorKind, ErrorTarget, SubmissionField

if TYPE_CHECKING:
    from cardgate.models.instrument import PaymentInstrument
    from cardgate.models.operation import Operation


@dataclass(frozen=True)
class SubmissionError:
    """A single vendor error, classified into the canonical taxonomy.

    Codes an adapter does not recognise are still reported, classified as
    unknown/unknown/unknown, with the vendor payload kept in `raw`.
    """

    target: ErrorTarget
    kind: ErrorKind
    field: SubmissionField
    raw: Any = field(default=None, compare=False)

    @classmethod
    def unknown(cls, raw: Any) -> "SubmissionError":
        return cls(ErrorTarget.UNKNOWN, ErrorKind.UNKNOWN, SubmissionField.UNKNOWN, raw)

    @property
    def is_unknown(self) -> bool:
        return self.target == ErrorTarget.UNKNOWN


@dataclass(frozen=True)
class OperationResult:
    """Result of a single provider call.

    Depending on the call, any of `operation`, `instrument` and `raw` may be
    None. A successful result never carries errors.
    """

    successful: bool
    operation: Optional[Operation] = None
    instrument: Optional[PaymentInstrument] = None
    errors: Sequence[SubmissionError] = ()
    raw: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        if self.successful and self.errors:
            raise ValueError("A successful OperationResult cannot carry errors")

    @property
    def failure(self) -> bool:
        return not self.successful

    @property
    def has_operation(self) -> bool:
        return self.operation is not None

    @property
    def has_instrument(self) -> bool:
        return self.instrument is not None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def errors_for(self, target: Union[ErrorTarget, str]) -> Dict[SubmissionField, List[SubmissionError]]:
        """Group the errors for one target by field, keeping their order."""
        grouped: Dict[SubmissionField, List[SubmissionError]] = {}
        for error in self.errors:
            if error.target == target:
                grouped.setdefault(error.field, []).append(error)
        return grouped

    def errors_for_field(
        self,
        target: Union[ErrorTarget, str],
        field_name: Union[SubmissionField, str],
    ) -> List[SubmissionError]:
        return [e for e in self.errors if e.target == target and e.field == field_name]


@dataclass(frozen=True)
class PreparedSubmission:
    """Everything a caller needs to render a hosted card form.

    `url` is the form action, `hidden_fields` are embedded as-is and
    `field_names` maps canonical fields (number, cvv, ...) to the input
    names the gateway expects.
    """

    url: str
    hidden_fields: Mapping[str, str]
    field_names: Mapping[SubmissionField, str]
