"""
Payment gateway integration modules

Provides adapters for card payment gateways with a consistent interface
and error handling.
"""

from .base import (
    Environment,
    InvalidOptionsError,
    NotSupportedError,
    PaymentError,
    PaymentGateway,
    PaymentGatewayType,
    SubmissionAction,
    UnimplementedError,
)
from .braintree_adapter import BraintreeAdapter
from .factory import PaymentGatewayFactory, create_gateway, gateway_from_settings
from .spreedly_adapter import SpreedlyAdapter
from .spreedly_client import SpreedlyClient

__all__ = [
    "BraintreeAdapter",
    "Environment",
    "InvalidOptionsError",
    "NotSupportedError",
    "PaymentError",
    "PaymentGateway",
    "PaymentGatewayFactory",
    "PaymentGatewayType",
    "SpreedlyAdapter",
    "SpreedlyClient",
    "SubmissionAction",
    "UnimplementedError",
    "create_gateway",
    "gateway_from_settings",
]
