"""
Shared test configuration and fixtures for the cardgate test suite.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional
from unittest.mock import Mock

import pytest

from cardgate.core.config import clear_settings_cache
from cardgate.integrations.payment_gateways.base import PaymentGateway, PaymentGatewayType
from cardgate.models import (
    Operation,
    OperationResult,
    OperationStatus,
    OperationType,
    PaymentInstrument,
    PreparedSubmission,
)

SUPPORT_PREDICATES = (
    "supports_purchase",
    "supports_void",
    "supports_credit",
    "supports_refund",
    "supports_partial_refund",
    "supports_capture",
    "supports_authorize",
    "supports_delete",
    "supports_retain",
)


class StubGateway(PaymentGateway):
    """Gateway implementing only the abstract members.

    Every capability method falls through to the base class defaults.
    """

    def _get_gateway_type(self) -> PaymentGatewayType:
        return PaymentGatewayType.BRAINTREE

    def lookup_instrument(self, instrument_id):
        return None

    def lookup_operation(self, operation_id):
        return None

    def prepare_submission(self, redirect_url: str, options: Optional[Mapping[str, Any]] = None) -> PreparedSubmission:
        return PreparedSubmission(url=redirect_url, hidden_fields={}, field_names={})

    def confirm_submission(self, callback_query: str, options: Optional[Mapping[str, Any]] = None) -> OperationResult:
        self._require_submission_options(dict(options or {}))
        return OperationResult(True)


class CreditlessGateway(StubGateway):
    """Gateway that cannot credit cards or retain them."""

    @property
    def supports_credit(self) -> bool:
        return False

    @property
    def supports_retain(self) -> bool:
        return False


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Start and finish every test with an empty settings cache."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def provider():
    """A spy provider reporting support for every capability."""
    spy = Mock(spec=PaymentGateway)
    for predicate in SUPPORT_PREDICATES:
        setattr(spy, predicate, True)
    return spy


@pytest.fixture
def stub_gateway():
    return StubGateway("test")


@pytest.fixture
def creditless_gateway():
    return CreditlessGateway("test")


@pytest.fixture
def make_instrument(provider):
    """Build instruments bound to the spy provider."""

    def _make(**overrides) -> PaymentInstrument:
        fields = {
            "id": "card_123",
            "number": "4111111111111111",
            "expiration_month": 12,
            "expiration_year": 2030,
            "card_type": "visa",
            "holder_name": "Jane Doe",
            "valid": True,
            "expired": False,
        }
        fields.update(overrides)
        owner = fields.pop("provider", provider)
        instrument_id = fields.pop("id")
        return PaymentInstrument(owner, instrument_id, **fields)

    return _make


@pytest.fixture
def make_operation(provider):
    """Build operations bound to the spy provider."""

    def _make(status: Optional[OperationStatus] = OperationStatus.AUTHORIZED, **overrides) -> Operation:
        fields = {
            "provider": provider,
            "id": "txn_123",
            "status": status,
            "type": OperationType.AUTHORIZE,
            "amount": Decimal("100.00"),
        }
        fields.update(overrides)
        return Operation(**fields)

    return _make
