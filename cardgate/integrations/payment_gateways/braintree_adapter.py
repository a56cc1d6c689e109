"""
Braintree Payment Gateway Adapter

Provides integration with the Braintree payment platform through the
official SDK. Card entry uses Braintree hosted fields: the caller renders a
form with a client token, Braintree tokenizes the card in the browser and
the redirect back carries a payment method nonce. Field names handed to
the caller are hosted fields keys, not HTML input names, so raw card data
never reaches the caller's server.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Union
from urllib.parse import parse_qs

import braintree
from braintree.exceptions import NotFoundError

from cardgate.core.logging import get_logger
from cardgate.models.enums import (
    ErrorKind,
    ErrorTarget,
    OperationStatus,
    OperationType,
    SubmissionField,
)
from cardgate.models.instrument import MISSING, PaymentInstrument, derive_expired
from cardgate.models.operation import Operation
from cardgate.models.result import OperationResult, PreparedSubmission, SubmissionError

from .base import (
    Amount,
    Environment,
    InstrumentRef,
    OperationRef,
    PaymentError,
    PaymentGateway,
    PaymentGatewayType,
    SubmissionAction,
)

logger = get_logger(__name__)


class BraintreeAdapter(PaymentGateway):
    """Braintree payment gateway adapter."""

    # Hosted fields keys; the card inputs live in Braintree iframes.
    FORM_FIELD_NAMES = MappingProxyType({
        SubmissionField.NAME: "cardholderName",
        SubmissionField.NUMBER: "number",
        SubmissionField.EXPIRATION_MONTH: "expirationMonth",
        SubmissionField.EXPIRATION_YEAR: "expirationYear",
        SubmissionField.CVV: "cvv",
    })

    # Braintree validation code → (target, kind, field).
    ERROR_CODE_MAPPING = MappingProxyType({
        "81715": (ErrorTarget.CREDIT_CARD, ErrorKind.INVALID, SubmissionField.NUMBER),
        "81725": (ErrorTarget.CREDIT_CARD, ErrorKind.REQUIRED, SubmissionField.NUMBER),
        "81703": (ErrorTarget.CREDIT_CARD, ErrorKind.TYPE_NOT_ACCEPTED, SubmissionField.CARD_TYPE),
        "81716": (ErrorTarget.CREDIT_CARD, ErrorKind.TOO_SHORT, SubmissionField.NUMBER),
        "81712": (ErrorTarget.CREDIT_CARD, ErrorKind.INVALID, SubmissionField.EXPIRATION_MONTH),
        "81713": (ErrorTarget.CREDIT_CARD, ErrorKind.INVALID, SubmissionField.EXPIRATION_YEAR),
        "81706": (ErrorTarget.CREDIT_CARD, ErrorKind.REQUIRED, SubmissionField.CVV),
        "81707": (ErrorTarget.CREDIT_CARD, ErrorKind.INVALID, SubmissionField.CVV),
        "81736": (ErrorTarget.CREDIT_CARD, ErrorKind.INVALID, SubmissionField.CVV),
        "91507": (ErrorTarget.TRANSACTION, ErrorKind.CANNOT_CAPTURE, SubmissionField.TRANSACTION),
        "91505": (ErrorTarget.TRANSACTION, ErrorKind.CANNOT_REFUND, SubmissionField.TRANSACTION),
        "91506": (ErrorTarget.TRANSACTION, ErrorKind.CANNOT_REFUND, SubmissionField.TRANSACTION),
        "91504": (ErrorTarget.TRANSACTION, ErrorKind.CANNOT_VOID, SubmissionField.TRANSACTION),
    })

    STATUS_MAPPING = MappingProxyType({
        "authorized": OperationStatus.AUTHORIZED,
        "submitted_for_settlement": OperationStatus.SETTLING,
        "settlement_pending": OperationStatus.SETTLING,
        "settlement_confirmed": OperationStatus.SETTLING,
        "settling": OperationStatus.SETTLING,
        "settled": OperationStatus.SETTLED,
        "voided": OperationStatus.VOIDED,
        "gateway_rejected": OperationStatus.GATEWAY_REJECTED,
        "processor_declined": OperationStatus.GATEWAY_REJECTED,
        "settlement_declined": OperationStatus.GATEWAY_REJECTED,
        "failed": OperationStatus.GATEWAY_REJECTED,
    })

    def __init__(
        self,
        environment: Union[Environment, str],
        merchant_id: str,
        public_key: str,
        private_key: str,
        gateway: Optional[braintree.BraintreeGateway] = None,
        **config
    ):
        """
        Initialize Braintree adapter.

        Each adapter owns its own BraintreeGateway, so several merchant
        accounts can be used side by side without touching the SDK's
        module-level configuration.

        Args:
            environment: production, development or test (the latter two use the sandbox)
            merchant_id: Braintree merchant ID
            public_key: Braintree public key
            private_key: Braintree private key
            gateway: Pre-built gateway, mainly for tests
            **config: Additional configuration
        """
        super().__init__(environment, merchant_id=merchant_id, public_key=public_key, **config)
        self.merchant_id = merchant_id
        self.gateway = gateway or braintree.BraintreeGateway(
            braintree.Configuration(
                environment=braintree.Environment.Sandbox if self.environment.sandbox else braintree.Environment.Production,
                merchant_id=merchant_id,
                public_key=public_key,
                private_key=private_key,
            )
        )

    def _get_gateway_type(self) -> PaymentGatewayType:
        """Return the gateway type identifier."""
        return PaymentGatewayType.BRAINTREE

    @property
    def supports_retain(self) -> bool:
        # Cards are vaulted when stored; there is no separate retention step.
        return False

    def lookup_instrument(self, instrument_id: InstrumentRef) -> Optional[PaymentInstrument]:
        token = self._instrument_id(instrument_id)
        try:
            card = self.gateway.credit_card.find(token)
        except NotFoundError:
            logger.info("braintree.instrument.not_found", instrument_id=token)
            return None
        return self._coerce_instrument(card)

    def lookup_instrument_from_operation(self, operation: OperationRef) -> Optional[PaymentInstrument]:
        transaction = self._find_transaction(self._operation_id(operation))
        if transaction is None:
            return None
        return self._coerce_instrument(transaction.credit_card_details)

    def lookup_operation(self, operation_id: OperationRef) -> Optional[Operation]:
        transaction = self._find_transaction(self._operation_id(operation_id))
        if transaction is None:
            return None
        return self._coerce_operation(transaction)

    def prepare_submission(self, redirect_url: str, options: Optional[Mapping[str, Any]] = None) -> PreparedSubmission:
        """
        Prepare a hosted fields form.

        Braintree tokenizes the card in the browser, so the form posts back
        to the caller's own redirect URL with a payment method nonce.

        Args:
            redirect_url: Form action; receives the nonce
            options: `amount`, `type` (purchase, authorize or store) and
                `vault` are echoed as hidden fields for the client script

        Returns:
            PreparedSubmission with the client token as a hidden field and
            hosted fields keys as field names
        """
        options = dict(options or {})
        hidden_fields = {"client_token": self.gateway.client_token.generate()}

        if options.get("amount") is not None:
            hidden_fields["amount"] = str(self._to_decimal(options["amount"]))
        if options.get("type") is not None:
            hidden_fields["type"] = SubmissionAction(getattr(options["type"], "value", options["type"])).value
        if options.get("vault"):
            hidden_fields["vault"] = "true"

        return PreparedSubmission(url=redirect_url, hidden_fields=hidden_fields, field_names=self.FORM_FIELD_NAMES)

    def confirm_submission(self, callback_query: str, options: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """
        Turn the hosted fields nonce into a stored card and act on it.

        Authorize and purchase run a sale with the nonce (vaulting the card
        unless `vault` is false). Store creates a customer holding the card,
        with card verification.
        """
        options = dict(options or {})
        action = self._require_submission_options(options)
        nonce = self._extract_nonce(callback_query)

        if action is SubmissionAction.STORE:
            result = self.gateway.customer.create({
                "payment_method_nonce": nonce,
                "credit_card": {"options": {"verify_card": True}},
            })
            logger.info("braintree.submission.store", success=result.is_success)
            return self._store_result(result)

        payload = {
            "amount": str(self._to_decimal(options["amount"])),
            "payment_method_nonce": nonce,
            "options": {
                "submit_for_settlement": action is SubmissionAction.PURCHASE,
                "store_in_vault_on_success": bool(options.get("vault", True)),
            },
        }
        result = self.gateway.transaction.sale(payload)
        logger.info("braintree.submission.sale", action=action.value, success=result.is_success)
        operation_type = OperationType.PURCHASE if action is SubmissionAction.PURCHASE else OperationType.AUTHORIZE
        return self._transaction_result(result, operation_type)

    def capture_operation(self, operation: OperationRef) -> OperationResult:
        operation_id = self._operation_id(operation)
        result = self.gateway.transaction.submit_for_settlement(operation_id)
        logger.info("braintree.capture", operation_id=operation_id, success=result.is_success)
        return self._transaction_result(result, OperationType.CAPTURE)

    def refund_operation(self, operation: OperationRef) -> OperationResult:
        operation_id = self._operation_id(operation)
        result = self.gateway.transaction.refund(operation_id)
        logger.info("braintree.refund", operation_id=operation_id, success=result.is_success)
        return self._transaction_result(result, OperationType.CREDIT)

    def partially_refund_operation(self, operation: OperationRef, amount: Amount) -> OperationResult:
        operation_id = self._operation_id(operation)
        result = self.gateway.transaction.refund(operation_id, str(self._to_decimal(amount)))
        logger.info("braintree.partial_refund", operation_id=operation_id, success=result.is_success)
        return self._transaction_result(result, OperationType.CREDIT)

    def void_operation(self, operation: OperationRef) -> OperationResult:
        operation_id = self._operation_id(operation)
        result = self.gateway.transaction.void(operation_id)
        logger.info("braintree.void", operation_id=operation_id, success=result.is_success)
        return self._transaction_result(result, OperationType.VOID)

    def authorize_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        result = self.gateway.transaction.sale({
            "amount": str(self._to_decimal(amount)),
            "payment_method_token": self._instrument_id(instrument),
        })
        logger.info("braintree.authorize", success=result.is_success)
        return self._transaction_result(result, OperationType.AUTHORIZE)

    def purchase_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        result = self.gateway.transaction.sale({
            "amount": str(self._to_decimal(amount)),
            "payment_method_token": self._instrument_id(instrument),
            "options": {"submit_for_settlement": True},
        })
        logger.info("braintree.purchase", success=result.is_success)
        return self._transaction_result(result, OperationType.PURCHASE)

    def credit_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        result = self.gateway.transaction.credit({
            "amount": str(self._to_decimal(amount)),
            "payment_method_token": self._instrument_id(instrument),
        })
        logger.info("braintree.credit", success=result.is_success)
        return self._transaction_result(result, OperationType.CREDIT)

    def delete_instrument(self, instrument: InstrumentRef) -> OperationResult:
        token = self._instrument_id(instrument)
        result = self.gateway.credit_card.delete(token)
        logger.info("braintree.delete", instrument_id=token, success=result.is_success)
        if result.is_success:
            return OperationResult(True, raw=result)
        return OperationResult(False, errors=self._extract_errors(result), raw=result)

    def _find_transaction(self, operation_id: str) -> Optional[Any]:
        try:
            return self.gateway.transaction.find(operation_id)
        except NotFoundError:
            logger.info("braintree.operation.not_found", operation_id=operation_id)
            return None

    @staticmethod
    def _extract_nonce(callback_query: str) -> str:
        query = callback_query.split("?", 1)[1] if "?" in callback_query else callback_query
        values = parse_qs(query).get("payment_method_nonce")
        if not values:
            raise PaymentError("Callback query carries no payment_method_nonce", PaymentGatewayType.BRAINTREE.value)
        return values[0]

    def _transaction_result(self, result: Any, operation_type: OperationType) -> OperationResult:
        """Build an OperationResult from a transaction call's result."""
        if result.is_success:
            operation = self._coerce_operation(result.transaction, operation_type)
            return OperationResult(True, operation=operation, instrument=operation.instrument, raw=result)

        # Processor declines come back as an error result that still carries
        # the rejected transaction.
        transaction = getattr(result, "transaction", None)
        operation = self._coerce_operation(transaction, operation_type) if transaction is not None else None
        if operation is not None:
            instrument = operation.instrument
        else:
            instrument = self._instrument_from_params(getattr(result, "params", None))

        return OperationResult(
            False,
            operation=operation,
            instrument=instrument,
            errors=self._extract_errors(result),
            raw=result,
        )

    def _store_result(self, result: Any) -> OperationResult:
        if result.is_success:
            cards = getattr(result.customer, "credit_cards", None) or []
            instrument = self._coerce_instrument(cards[0]) if cards else None
            return OperationResult(True, instrument=instrument, raw=result)
        return OperationResult(
            False,
            instrument=self._instrument_from_params(getattr(result, "params", None)),
            errors=self._extract_errors(result),
            raw=result,
        )

    def _extract_errors(self, result: Any) -> List[SubmissionError]:
        """Classify every validation error of an error result.

        A failure without validation errors (a processor decline, a failed
        verification) is still reported as one unknown error carrying the
        result message.
        """
        errors = []
        for error in result.errors.deep_errors:
            mapping = self.ERROR_CODE_MAPPING.get(str(error.code))
            if mapping:
                errors.append(SubmissionError(*mapping, raw=error))
            else:
                errors.append(SubmissionError.unknown(error))

        if not errors:
            errors.append(SubmissionError.unknown(getattr(result, "message", None)))
        return errors

    def _coerce_instrument(self, card: Any) -> PaymentInstrument:
        """Build an instrument from either a mapping or an SDK object."""
        if isinstance(card, Mapping):
            return self._instrument_from_mapping(card)
        return self._instrument_from_object(card)

    def _instrument_from_object(self, card: Any) -> PaymentInstrument:
        # CreditCard reports expiry itself; Transaction.CreditCardDetails does not.
        expired = getattr(card, "expired", None)
        if expired is None:
            expired = derive_expired(getattr(card, "expiration_month", None), getattr(card, "expiration_year", None))

        return PaymentInstrument(
            self,
            getattr(card, "token", None),
            number=getattr(card, "last_4", None),
            expiration_month=getattr(card, "expiration_month", None),
            expiration_year=getattr(card, "expiration_year", None),
            card_type=getattr(card, "card_type", None),
            holder_name=getattr(card, "cardholder_name", None),
            # Braintree does not report validity for cards it returns
            valid=True,
            expired=MISSING if expired is None else bool(expired),
            raw=card,
        )

    def _instrument_from_mapping(self, card: Mapping[str, Any]) -> PaymentInstrument:
        expired = card.get("expired")
        if expired is None:
            expired = derive_expired(card.get("expiration_month"), card.get("expiration_year"))

        return PaymentInstrument(
            self,
            card.get("token"),
            number=card.get("last_4") or card.get("number"),
            expiration_month=card.get("expiration_month"),
            expiration_year=card.get("expiration_year"),
            card_type=card.get("card_type"),
            holder_name=card.get("cardholder_name"),
            valid=True,
            expired=MISSING if expired is None else bool(expired),
            raw=card,
        )

    def _instrument_from_params(self, params: Optional[Mapping[str, Any]]) -> Optional[PaymentInstrument]:
        """Recover the submitted card from the params echoed by an error result."""
        if not params:
            return None
        card = (params.get("transaction") or {}).get("credit_card") or params.get("credit_card")
        if not card:
            return None
        return self._coerce_instrument(card)

    def _coerce_operation(self, transaction: Any, operation_type: Optional[OperationType] = None) -> Operation:
        """Build an operation from either a mapping or an SDK Transaction."""
        if isinstance(transaction, Mapping):
            fields = transaction
        else:
            fields = {
                name: getattr(transaction, name, None)
                for name in ("id", "status", "type", "amount", "created_at", "credit_card_details")
            }

        status = self._coerce_status(fields.get("status"))
        card = fields.get("credit_card_details") or fields.get("credit_card")
        amount = fields.get("amount")

        return Operation(
            provider=self,
            id=fields.get("id"),
            status=status,
            type=operation_type or self._infer_type(fields.get("type"), status),
            amount=Decimal(str(amount)) if amount is not None else None,
            created_at=fields.get("created_at"),
            instrument=self._coerce_instrument(card) if card else None,
            raw=transaction,
        )

    def _coerce_status(self, status: Optional[str]) -> Optional[OperationStatus]:
        if status is None:
            return None
        mapped = self.STATUS_MAPPING.get(str(status))
        if mapped is None:
            logger.warning("braintree.status.unmapped", status=status)
        return mapped

    @staticmethod
    def _infer_type(vendor_type: Optional[str], status: Optional[OperationStatus]) -> Optional[OperationType]:
        if vendor_type == "credit":
            return OperationType.CREDIT
        if vendor_type == "sale":
            return OperationType.AUTHORIZE if status is OperationStatus.AUTHORIZED else OperationType.PURCHASE
        return None
