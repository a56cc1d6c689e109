"""
Payment gateway contract tests

Default behavior of the PaymentGateway base class: the unimplemented versus
unsupported policy, id resolution and submission option validation.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from cardgate.integrations.payment_gateways import (
    BraintreeAdapter,
    Environment,
    InvalidOptionsError,
    NotSupportedError,
    PaymentError,
    PaymentGateway,
    SpreedlyAdapter,
    UnimplementedError,
)
from cardgate.models import CardgateError, ErrorKind, OperationStatus, SubmissionField
from cardgate.models.enums import FORM_FIELDS

CAPABILITY_CALLS = [
    ("capture_operation", ("txn_1",), "capture"),
    ("refund_operation", ("txn_1",), "refund"),
    ("partially_refund_operation", ("txn_1", 10), "partial_refund"),
    ("void_operation", ("txn_1",), "void"),
    ("authorize_via_instrument", ("card_1", 10), "authorize"),
    ("purchase_via_instrument", ("card_1", 10), "purchase"),
    ("credit_via_instrument", ("card_1", 10), "credit"),
    ("delete_instrument", ("card_1",), "delete"),
    ("retain_instrument", ("card_1",), "retain"),
]


class TestPaymentGatewayContract:
    """Contract tests for all payment gateway implementations."""

    def test_payment_gateway_interface_compliance(self):
        """Both adapters implement every contract method."""
        required_methods = [
            "lookup_instrument",
            "lookup_instrument_from_operation",
            "lookup_operation",
            "prepare_submission",
            "confirm_submission",
        ] + [name for name, _, _ in CAPABILITY_CALLS]

        for gateway_class in [BraintreeAdapter, SpreedlyAdapter]:
            assert issubclass(gateway_class, PaymentGateway)
            for method_name in required_methods:
                assert callable(getattr(gateway_class, method_name)), f"{gateway_class.__name__}.{method_name}"

    @pytest.mark.parametrize("gateway_class", [BraintreeAdapter, SpreedlyAdapter])
    def test_form_field_names_cover_every_form_field(self, gateway_class):
        assert set(gateway_class.FORM_FIELD_NAMES) == set(FORM_FIELDS)

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            PaymentGateway("test")

    def test_supports_everything_by_default(self, stub_gateway):
        assert stub_gateway.supports_purchase
        assert stub_gateway.supports_void
        assert stub_gateway.supports_credit
        assert stub_gateway.supports_refund
        assert stub_gateway.supports_partial_refund
        assert stub_gateway.supports_capture
        assert stub_gateway.supports_authorize
        assert stub_gateway.supports_delete
        assert stub_gateway.supports_retain


class TestDefaultCapabilityPolicy:
    """Test the difference between an adapter bug and a gateway limitation."""

    @pytest.mark.parametrize("method,args,action", CAPABILITY_CALLS)
    def test_claimed_but_missing_is_unimplemented(self, stub_gateway, method, args, action):
        with pytest.raises(UnimplementedError) as exc_info:
            getattr(stub_gateway, method)(*args)

        assert exc_info.value.action == action
        assert exc_info.value.provider == "braintree"
        assert isinstance(exc_info.value, NotImplementedError)

    def test_unsupported_is_not_supported(self, creditless_gateway):
        with pytest.raises(NotSupportedError) as exc_info:
            creditless_gateway.credit_via_instrument("card_1", 10)

        assert exc_info.value.action == "credit"
        assert not isinstance(exc_info.value, NotImplementedError)

    def test_retain_unsupported(self, creditless_gateway):
        with pytest.raises(NotSupportedError):
            creditless_gateway.retain_instrument("card_1")

    def test_lookup_from_operation_not_supported_by_default(self, stub_gateway):
        with pytest.raises(NotSupportedError):
            stub_gateway.lookup_instrument_from_operation("txn_1")

    def test_errors_share_a_base_class(self):
        assert issubclass(NotSupportedError, PaymentError)
        assert issubclass(UnimplementedError, PaymentError)
        assert issubclass(InvalidOptionsError, PaymentError)
        assert issubclass(PaymentError, CardgateError)

    def test_entities_reach_defaults_through_guards(self, stub_gateway, make_operation, make_instrument):
        operation = make_operation(OperationStatus.AUTHORIZED, provider=stub_gateway)
        instrument = make_instrument(provider=stub_gateway)

        with pytest.raises(UnimplementedError):
            operation.capture()
        with pytest.raises(UnimplementedError):
            instrument.authorize(10)


class TestGatewayHelpers:
    """Test environment handling and reference resolution."""

    @pytest.mark.parametrize(
        "environment,sandbox",
        [("production", False), ("development", True), ("test", True)],
    )
    def test_sandbox_mapping(self, environment, sandbox):
        assert Environment(environment).sandbox is sandbox

    def test_unknown_environment(self):
        with pytest.raises(ValueError):
            Environment("staging")

    def test_resolves_entities_and_ids(self, stub_gateway, make_operation, make_instrument):
        assert stub_gateway._operation_id(make_operation(id="txn_9")) == "txn_9"
        assert stub_gateway._operation_id("txn_9") == "txn_9"
        assert stub_gateway._instrument_id(make_instrument(id="card_9")) == "card_9"
        assert stub_gateway._instrument_id("card_9") == "card_9"

    @pytest.mark.parametrize(
        "amount,expected",
        [(100, Decimal("100.00")), ("12.5", Decimal("12.50")), (Decimal("0.015"), Decimal("0.02"))],
    )
    def test_to_decimal(self, amount, expected):
        assert PaymentGateway._to_decimal(amount) == expected


class TestSubmissionOptions:
    """Test validation of confirm_submission options."""

    @pytest.mark.parametrize(
        "options",
        [
            {"execute": "authorize", "amount": 10},
            {"execute": "purchase", "amount": "99.99"},
            {"execute": "store"},
        ],
    )
    def test_valid_options(self, stub_gateway, options):
        assert stub_gateway.confirm_submission("token=abc", options).successful

    @pytest.mark.parametrize(
        "options,fragment",
        [
            ({}, "execute"),
            ({"execute": "refund", "amount": 10}, "execute"),
            ({"execute": "authorize"}, "amount is required"),
            ({"execute": "purchase", "amount": 0}, "greater than 0"),
            ({"execute": "purchase", "amount": "-5"}, "greater than 0"),
            ({"execute": "authorize", "amount": "ten"}, "not a number"),
        ],
    )
    def test_invalid_options(self, stub_gateway, options, fragment):
        with pytest.raises(InvalidOptionsError) as exc_info:
            stub_gateway.confirm_submission("token=abc", options)

        assert any(fragment in error for error in exc_info.value.errors)


class TestErrorNormalization:
    """The same card problem classifies the same way on every gateway."""

    @pytest.mark.parametrize(
        "braintree_code,spreedly_payload,kind,field",
        [
            ("81725", {"attribute": "number", "key": "errors.blank"}, ErrorKind.REQUIRED, SubmissionField.NUMBER),
            ("81706", {"attribute": "verification_value", "key": "errors.blank"}, ErrorKind.REQUIRED, SubmissionField.CVV),
            ("81715", {"attribute": "number", "key": "errors.invalid"}, ErrorKind.INVALID, SubmissionField.NUMBER),
        ],
    )
    def test_missing_and_invalid_fields_match_across_gateways(self, braintree_code, spreedly_payload, kind, field):
        braintree_adapter = BraintreeAdapter("test", merchant_id="m", public_key="pub", private_key="priv", gateway=Mock())
        spreedly_adapter = SpreedlyAdapter(
            "test", environment_key="env_key", access_secret="secret", gateway_token="gw_1", client=Mock()
        )
        braintree_result = SimpleNamespace(
            message="Validation failed",
            errors=SimpleNamespace(deep_errors=[SimpleNamespace(code=braintree_code, attribute="x", message="error")]),
        )

        [braintree_error] = braintree_adapter._extract_errors(braintree_result)
        [spreedly_error] = spreedly_adapter._card_errors({"errors": [spreedly_payload]})

        assert (braintree_error.kind, braintree_error.field) == (kind, field)
        assert (spreedly_error.kind, spreedly_error.field) == (kind, field)

    def test_taxonomy_has_a_single_missing_value_kind(self):
        assert "blank" not in {kind.value for kind in ErrorKind}
