"""
Spreedly Payment Gateway Adapter

Provides integration with Spreedly Core. Cards are collected through
Spreedly's transparent redirect and kept in its vault; transactions run
against a single gateway configured in Spreedly, identified by its token.
"""

from datetime import datetime
from decimal import Decimal
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union
from urllib.parse import parse_qs

import httpx

from cardgate.core.logging import get_logger
from cardgate.models.enums import (
    ErrorKind,
    ErrorTarget,
    OperationStatus,
    OperationType,
    SubmissionField,
)
from cardgate.models.instrument import PaymentInstrument
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
from .spreedly_client import DEFAULT_BASE_URL, SpreedlyClient

logger = get_logger(__name__)


class SpreedlyAdapter(PaymentGateway):
    """Spreedly Core payment gateway adapter."""

    FORM_FIELD_NAMES = MappingProxyType({
        SubmissionField.NAME: "credit_card[full_name]",
        SubmissionField.NUMBER: "credit_card[number]",
        SubmissionField.EXPIRATION_MONTH: "credit_card[month]",
        SubmissionField.EXPIRATION_YEAR: "credit_card[year]",
        SubmissionField.CVV: "credit_card[verification_value]",
    })

    # Spreedly attribute → canonical field
    CARD_FIELDS = MappingProxyType({
        "full_name": SubmissionField.NAME,
        "number": SubmissionField.NUMBER,
        "month": SubmissionField.EXPIRATION_MONTH,
        "year": SubmissionField.EXPIRATION_YEAR,
        "verification_value": SubmissionField.CVV,
        "card_type": SubmissionField.CARD_TYPE,
    })

    ERROR_KEYS = MappingProxyType({
        "errors.invalid": ErrorKind.INVALID,
        "errors.blank": ErrorKind.REQUIRED,
        "errors.expired": ErrorKind.EXPIRED,
    })

    TRANSACTION_TYPES = MappingProxyType({
        "Authorization": (OperationType.AUTHORIZE, OperationStatus.AUTHORIZED),
        "Purchase": (OperationType.PURCHASE, OperationStatus.SETTLED),
        "Capture": (OperationType.CAPTURE, OperationStatus.SETTLED),
        "Credit": (OperationType.CREDIT, OperationStatus.REFUNDED),
        "Void": (OperationType.VOID, OperationStatus.VOIDED),
    })

    # Capability → name of the gateway characteristic that reports it
    CHARACTERISTICS = MappingProxyType({
        "purchase": "purchase",
        "authorize": "authorize",
        "capture": "capture",
        "void": "void",
        "refund": "credit",
        "partial_refund": "partial_credit",
    })

    def __init__(
        self,
        environment: Union[Environment, str],
        environment_key: str,
        access_secret: str,
        gateway_token: str,
        currency_code: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: Optional[SpreedlyClient] = None,
        **config
    ):
        """
        Initialize Spreedly adapter.

        Args:
            environment: production, development or test. Spreedly selects
                sandbox or live through the gateway token, not the host.
            environment_key: Spreedly environment key
            access_secret: Spreedly access secret
            gateway_token: Token of the gateway transactions run against
            currency_code: ISO currency sent with authorize/purchase; when
                None, the gateway's own default applies
            base_url: API root
            timeout: HTTP timeout in seconds
            client: Pre-built client, mainly for tests
            **config: Additional configuration
        """
        super().__init__(environment, gateway_token=gateway_token, currency_code=currency_code, **config)
        self.gateway_token = gateway_token
        self.currency_code = currency_code
        self._owns_client = client is None
        self.client = client or SpreedlyClient(environment_key, access_secret, base_url=base_url, timeout=timeout)

    def _get_gateway_type(self) -> PaymentGatewayType:
        """Return the gateway type identifier."""
        return PaymentGatewayType.SPREEDLY

    def close(self) -> None:
        """Close the HTTP client, unless it was passed in by the caller."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "SpreedlyAdapter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @cached_property
    def characteristics(self) -> FrozenSet[str]:
        """Capabilities of the configured gateway, fetched once per adapter.

        Spreedly has reported these both as a list of names and as a map of
        `supports_*` flags; both are understood.
        """
        gateway = self.client.find_gateway(self.gateway_token).get("gateway") or {}
        reported = gateway.get("characteristics") or []

        if isinstance(reported, Mapping):
            names = {
                key[len("supports_"):] if key.startswith("supports_") else key
                for key, value in reported.items()
                if value is True or str(value).lower() == "true"
            }
        else:
            names = set(reported)

        logger.info("spreedly.gateway.characteristics", gateway_token=self.gateway_token, characteristics=sorted(names))
        return frozenset(names)

    def _supports(self, capability: str) -> bool:
        return self.CHARACTERISTICS[capability] in self.characteristics

    @property
    def supports_purchase(self) -> bool:
        return self._supports("purchase")

    @property
    def supports_authorize(self) -> bool:
        return self._supports("authorize")

    @property
    def supports_capture(self) -> bool:
        return self._supports("capture")

    @property
    def supports_void(self) -> bool:
        return self._supports("void")

    @property
    def supports_refund(self) -> bool:
        return self._supports("refund")

    @property
    def supports_partial_refund(self) -> bool:
        return self._supports("partial_refund")

    @property
    def supports_credit(self) -> bool:
        return False

    @property
    def supports_delete(self) -> bool:
        # Redaction is a vault feature, independent of the gateway.
        return True

    @property
    def supports_retain(self) -> bool:
        return True

    def lookup_instrument(self, instrument_id: InstrumentRef) -> Optional[PaymentInstrument]:
        payload = self._find(self.client.find_payment_method, self._instrument_id(instrument_id))
        if payload is None:
            return None
        return self._instrument_from_lookup(payload)

    def lookup_instrument_from_operation(self, operation: OperationRef) -> Optional[PaymentInstrument]:
        payload = self._find(self.client.find_transaction, self._operation_id(operation))
        if payload is None:
            return None
        return self._instrument_from_transaction(payload["transaction"])

    def lookup_operation(self, operation_id: OperationRef) -> Optional[Operation]:
        payload = self._find(self.client.find_transaction, self._operation_id(operation_id))
        if payload is None:
            return None
        return self._operation_from_transaction(payload["transaction"])

    def prepare_submission(self, redirect_url: str, options: Optional[Mapping[str, Any]] = None) -> PreparedSubmission:
        """
        Prepare a transparent redirect form.

        Args:
            redirect_url: Where Spreedly sends the browser with the new token
            options: `token` updates an existing payment method instead of
                creating one. Spreedly has no use for `amount`, `type` or
                `vault` at this stage.

        Returns:
            PreparedSubmission targeting Spreedly's payment_methods endpoint
        """
        options = dict(options or {})
        hidden_fields = {
            "redirect_url": redirect_url,
            "environment_key": self.client.environment_key,
        }
        if options.get("token"):
            hidden_fields["payment_method_token"] = options["token"]

        return PreparedSubmission(
            url=self.client.transparent_redirect_form_action,
            hidden_fields=hidden_fields,
            field_names=self.FORM_FIELD_NAMES,
        )

    def confirm_submission(self, callback_query: str, options: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """
        Look up the card Spreedly stored and act on it.

        An invalid card is returned as a failed result carrying its field
        errors; nothing is charged. With `vault` set, the card is retained
        before the requested action runs.
        """
        options = dict(options or {})
        action = self._require_submission_options(options)
        token = self._extract_token(callback_query)

        instrument = self.lookup_instrument(token)
        if instrument is None:
            raise PaymentError(f"Payment method '{token}' was not found", self.gateway_type.value)

        if not instrument.valid:
            logger.info("spreedly.submission.invalid", instrument_id=token)
            return OperationResult(
                False,
                instrument=instrument,
                errors=self._card_errors(instrument.raw),
                raw=instrument.raw,
            )

        if options.get("vault"):
            retained = self.retain_instrument(instrument)
            if not retained.successful:
                return retained

        if action is SubmissionAction.AUTHORIZE:
            return instrument.authorize(options["amount"])
        if action is SubmissionAction.PURCHASE:
            return instrument.purchase(options["amount"])
        return OperationResult(True, instrument=instrument, raw=instrument.raw)

    def capture_operation(self, operation: OperationRef) -> OperationResult:
        return self._transaction_result(self.client.capture_transaction(self._operation_id(operation)))

    def refund_operation(self, operation: OperationRef) -> OperationResult:
        return self._transaction_result(self.client.refund_transaction(self._operation_id(operation)))

    def partially_refund_operation(self, operation: OperationRef, amount: Amount) -> OperationResult:
        payload = self.client.refund_transaction(self._operation_id(operation), self._to_cents(amount))
        return self._transaction_result(payload)

    def void_operation(self, operation: OperationRef) -> OperationResult:
        return self._transaction_result(self.client.void_transaction(self._operation_id(operation)))

    def authorize_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        payload = self.client.authorize_on_gateway(
            self.gateway_token, self._instrument_id(instrument), self._to_cents(amount), self.currency_code
        )
        return self._transaction_result(payload)

    def purchase_via_instrument(self, instrument: InstrumentRef, amount: Amount) -> OperationResult:
        payload = self.client.purchase_on_gateway(
            self.gateway_token, self._instrument_id(instrument), self._to_cents(amount), self.currency_code
        )
        return self._transaction_result(payload)

    def delete_instrument(self, instrument: InstrumentRef) -> OperationResult:
        return self._vault_result(self.client.redact_payment_method(self._instrument_id(instrument)))

    def retain_instrument(self, instrument: InstrumentRef) -> OperationResult:
        return self._vault_result(self.client.retain_payment_method(self._instrument_id(instrument)))

    def _find(self, finder, token: str) -> Optional[Dict[str, Any]]:
        try:
            return finder(token)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info("spreedly.not_found", token=token)
                return None
            raise

    @staticmethod
    def _extract_token(callback_query: str) -> str:
        query = callback_query.split("?", 1)[1] if "?" in callback_query else callback_query
        values = parse_qs(query).get("token")
        if not values:
            raise PaymentError("Callback query carries no token", PaymentGatewayType.SPREEDLY.value)
        return values[0]

    def _to_cents(self, amount: Amount) -> int:
        return int(self._to_decimal(amount) * 100)

    def _transaction_result(self, payload: Mapping[str, Any]) -> OperationResult:
        """Build an OperationResult from a transaction endpoint's payload."""
        transaction = payload.get("transaction")
        if transaction is None:
            # A 422 that was rejected before a transaction was created
            errors = [SubmissionError.unknown(error) for error in payload.get("errors") or []]
            return OperationResult(False, errors=errors or [SubmissionError.unknown(payload)], raw=payload)

        operation = self._operation_from_transaction(transaction)
        instrument = self._instrument_from_transaction(transaction)
        if transaction.get("succeeded"):
            return OperationResult(True, operation=operation, instrument=instrument, raw=payload)

        return OperationResult(
            False,
            operation=operation,
            instrument=instrument,
            errors=self._transaction_errors(transaction),
            raw=payload,
        )

    def _vault_result(self, payload: Mapping[str, Any]) -> OperationResult:
        """Build an OperationResult for redact and retain, which touch only the vault."""
        transaction = payload.get("transaction") or {}
        instrument = self._instrument_from_transaction(transaction)
        if transaction.get("succeeded"):
            return OperationResult(True, instrument=instrument, raw=payload)

        errors = [SubmissionError.unknown(error) for error in payload.get("errors") or []]
        if not errors:
            errors = self._transaction_errors(transaction)
        return OperationResult(False, instrument=instrument, errors=errors, raw=payload)

    def _transaction_errors(self, transaction: Mapping[str, Any]) -> List[SubmissionError]:
        errors = self._card_errors(transaction.get("payment_method") or {})
        if not errors:
            errors.append(SubmissionError.unknown(transaction.get("message")))
        return errors

    def _card_errors(self, payment_method: Mapping[str, Any]) -> List[SubmissionError]:
        """Map the errors of a payment method onto canonical fields.

        Spreedly accepts a single full_name but reports name errors against
        first_name and last_name. A first_name error becomes a name error,
        and a last_name error with the same key as a first_name one is
        dropped as its duplicate.
        """
        raw_errors = payment_method.get("errors") or []
        first_name_keys = {e.get("key") for e in raw_errors if e.get("attribute") == "first_name"}

        errors = []
        for error in raw_errors:
            attribute = error.get("attribute")
            if attribute == "last_name" and error.get("key") in first_name_keys:
                continue
            if attribute in ("first_name", "last_name"):
                attribute = "full_name"

            field = self.CARD_FIELDS.get(attribute)
            kind = self.ERROR_KEYS.get(error.get("key"))
            if field and kind:
                errors.append(SubmissionError(ErrorTarget.CREDIT_CARD, kind, field, raw=error))
            else:
                errors.append(SubmissionError.unknown(error))
        return errors

    def _instrument_from_lookup(self, payload: Mapping[str, Any]) -> PaymentInstrument:
        return self._instrument_from_payment_method(payload["payment_method"])

    def _instrument_from_transaction(self, transaction: Mapping[str, Any]) -> Optional[PaymentInstrument]:
        payment_method = transaction.get("payment_method")
        if not payment_method:
            return None
        return self._instrument_from_payment_method(payment_method)

    def _instrument_from_payment_method(self, payment_method: Mapping[str, Any]) -> PaymentInstrument:
        errors = payment_method.get("errors") or []
        holder_name = payment_method.get("full_name") or " ".join(
            part for part in (payment_method.get("first_name"), payment_method.get("last_name")) if part
        )

        return PaymentInstrument(
            self,
            payment_method.get("token"),
            number=payment_method.get("number") or payment_method.get("last_four_digits"),
            expiration_month=payment_method.get("month"),
            expiration_year=payment_method.get("year"),
            cvv=payment_method.get("verification_value") or None,
            card_type=payment_method.get("card_type"),
            holder_name=holder_name or None,
            valid=not errors,
            expired=any(e.get("key") == "errors.expired" for e in errors),
            raw=payment_method,
        )

    def _operation_from_transaction(self, transaction: Mapping[str, Any]) -> Operation:
        operation_type, status = self.TRANSACTION_TYPES.get(transaction.get("transaction_type"), (None, None))
        if not transaction.get("succeeded"):
            status = OperationStatus.GATEWAY_REJECTED

        amount = transaction.get("amount")
        return Operation(
            provider=self,
            id=transaction.get("token"),
            status=status,
            type=operation_type,
            amount=(Decimal(amount) / 100).quantize(Decimal("0.01")) if amount is not None else None,
            created_at=_parse_timestamp(transaction.get("created_at")),
            instrument=self._instrument_from_transaction(transaction),
            raw=transaction,
        )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
