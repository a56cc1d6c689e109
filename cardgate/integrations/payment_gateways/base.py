"""
Payment Gateway Base Classes and Interfaces

Defines the contract every gateway adapter satisfies, the default
"unsupported" behavior for capabilities an adapter leaves out, and the
gateway-layer exceptions.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Union

from cardgate.models.exceptions import CardgateError
from cardgate.models.instrument import PaymentInstrument
from cardgate.models.operation import Operation
from cardgate.models.result import OperationResult, PreparedSubmission

InstrumentRef = Union[PaymentInstrument, str]
OperationRef = Union[Operation, str]
Amount = Union[Decimal, int, str]


class PaymentGatewayType(str, Enum):
    """Supported payment gateway types."""
    BRAINTREE = "braintree"
    SPREEDLY = "spreedly"


class Environment(str, Enum):
    """Deployment environment an adapter talks to."""
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"

    @property
    def sandbox(self) -> bool:
        return self is not Environment.PRODUCTION


class SubmissionAction(str, Enum):
    """What confirm_submission does with the stored card."""
    AUTHORIZE = "authorize"
    PURCHASE = "purchase"
    STORE = "store"


class PaymentError(CardgateError):
    """Payment gateway specific errors."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.error_message = message
        self.provider = provider


class NotSupportedError(PaymentError):
    """The gateway legitimately cannot perform this action."""

    def __init__(self, action: str, provider: Optional[str] = None):
        super().__init__(f"The action '{action}' is not supported by this provider.", provider)
        self.action = action


class UnimplementedError(PaymentError, NotImplementedError):
    """The adapter claims support for an action but provides no implementation.

    This is a defect in the adapter, never an expected runtime outcome.
    """

    def __init__(self, action: str, provider: Optional[str] = None):
        super().__init__(
            f"The provider reports support for '{action}' but does not implement it.", provider
        )
        self.action = action


class InvalidOptionsError(PaymentError):
    """Options passed to a gateway method are missing or invalid."""

    def __init__(self, errors: List[str], provider: Optional[str] = None):
        super().__init__(f"You have missed, or provided invalid options: {'; '.join(errors)}", provider)
        self.errors = errors


class PaymentGateway(ABC):
    """Abstract base class for payment gateway adapters.

    Lookups and the hosted-form submission flow must be implemented by every
    adapter. Money-moving capabilities have a default implementation that
    consults the matching `supports_*` predicate:

    - predicate true: raise UnimplementedError (the adapter is incomplete)
    - predicate false: raise NotSupportedError (the gateway cannot do it)

    Every id-typed parameter accepts either the domain entity or its id.
    Domain entities are the intended callers (`card.authorize(10)`,
    `operation.capture()`); they run the state checks first.
    """

    # Canonical field → hosted form input name. Overridden per gateway.
    FORM_FIELD_NAMES: Mapping = MappingProxyType({})

    def __init__(self, environment: Union[Environment, str], **config):
        """Initialize the payment gateway with configuration."""
        self.environment = Environment(environment)
        self.config = config
        self.gateway_type = self._get_gateway_type()

    @abstractmethod
    def _get_gateway_type(self) -> PaymentGatewayType:
        """Return the gateway type identifier."""
        pass

    @abstractmethod
    def lookup_instrument(self, instrument_id: InstrumentRef) -> Optional[PaymentInstrument]:
        """
        Retrieve a stored card from the gateway's vault.

        Returns:
            The instrument, or None if the gateway does not know the id
        """
        pass

    def lookup_instrument_from_operation(self, operation: OperationRef) -> Optional[PaymentInstrument]:
        """
        Retrieve the card an operation was made against.

        Raises:
            NotSupportedError: If the gateway cannot do this
        """
        raise NotSupportedError("lookup_instrument_from_operation", self.gateway_type.value)

    @abstractmethod
    def lookup_operation(self, operation_id: OperationRef) -> Optional[Operation]:
        """
        Retrieve an operation from the gateway.

        Returns:
            The operation, or None if the gateway does not know the id
        """
        pass

    @abstractmethod
    def prepare_submission(self, redirect_url: str, options: Optional[Mapping[str, Any]] = None) -> PreparedSubmission:
        """
        Build what a caller needs to render a hosted card form.

        Args:
            redirect_url: Where the gateway sends the browser afterwards
            options: Gateway specific; `amount`, `type` and `vault` are
                recognised by every gateway

        Returns:
            PreparedSubmission with form URL, hidden fields and field names
        """
        pass

    @abstractmethod
    def confirm_submission(self, callback_query: str, options: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """
        Exchange the gateway's callback for a stored card, then act on it.

        Args:
            callback_query: URL-encoded query string of the redirect
            options: `execute` (authorize, purchase or store) and, for
                authorize/purchase, `amount`

        Returns:
            OperationResult; validation problems come back as errors

        Raises:
            InvalidOptionsError: If `execute` or `amount` is missing or invalid
        """
        pass

    def capture_operation(self, operation: OperationRef) -> OperationResult:
        """Capture funds that have been authorized."""
        self._check_support("capture")

    def refund_operation(self, operation: OperationRef) -> OperationResult:
        """Refund the full amount of a settled operation."""
        self._check_support("refund")

    def partially_refund_operation(self, operation: OperationRef, amount: Amount) -> OperationResult:
        """Refund part of a settled operation."""
        self._check_support("partial_refund")

    def void_operation(self, operation: OperationRef) -> OperationResult:
        """Void an operation that has not settled yet."""
        self._check_support("void")

    def authorize_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        """Authorize a payment against a stored card."""
        self._check_support("authorize")

    def purchase_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        """Authorize and settle a payment against a stored card."""
        self._check_support("purchase")

    def credit_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        """Send funds to a stored card."""
        self._check_support("credit")

    def delete_instrument(self, instrument: InstrumentRef) -> OperationResult:
        """Remove a card from the gateway's vault."""
        self._check_support("delete")

    def retain_instrument(self, instrument: InstrumentRef) -> OperationResult:
        """Keep a card in the gateway's vault."""
        self._check_support("retain")

    @property
    def supports_purchase(self) -> bool:
        return True

    @property
    def supports_void(self) -> bool:
        return True

    @property
    def supports_credit(self) -> bool:
        return True

    @property
    def supports_refund(self) -> bool:
        return True

    @property
    def supports_partial_refund(self) -> bool:
        return True

    @property
    def supports_capture(self) -> bool:
        return True

    @property
    def supports_authorize(self) -> bool:
        return True

    @property
    def supports_delete(self) -> bool:
        return True

    @property
    def supports_retain(self) -> bool:
        return True

    def _check_support(self, action: str) -> None:
        if getattr(self, f"supports_{action}"):
            raise UnimplementedError(action, self.gateway_type.value)
        raise NotSupportedError(action, self.gateway_type.value)

    @staticmethod
    def _instrument_id(instrument: InstrumentRef) -> str:
        if isinstance(instrument, PaymentInstrument):
            return instrument.id
        return instrument

    @staticmethod
    def _operation_id(operation: OperationRef) -> str:
        if isinstance(operation, Operation):
            return operation.id
        return operation

    @staticmethod
    def _to_decimal(amount: Amount) -> Decimal:
        return Decimal(str(amount)).quantize(Decimal("0.01"))

    def _require_submission_options(self, options: Mapping[str, Any]) -> SubmissionAction:
        """Validate the options of confirm_submission and return the action."""
        errors = []
        action = None

        execute = options.get("execute")
        try:
            action = SubmissionAction(getattr(execute, "value", execute))
        except ValueError:
            errors.append(f"execute must be one of {[a.value for a in SubmissionAction]}, got {execute!r}")

        if action in (SubmissionAction.AUTHORIZE, SubmissionAction.PURCHASE):
            amount = options.get("amount")
            if amount is None:
                errors.append(f"amount is required to {action.value}")
            else:
                try:
                    if self._to_decimal(amount) <= 0:
                        errors.append(f"amount must be greater than 0, got {amount}")
                except ArithmeticError:
                    errors.append(f"amount is not a number: {amount!r}")

        if errors:
            raise InvalidOptionsError(errors, self.gateway_type.value)
        return action
