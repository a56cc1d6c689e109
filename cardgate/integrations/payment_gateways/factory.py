"""
Payment gateway factory

Builds adapters by gateway type, either from explicit credentials or from
the application settings.
"""

from types import MappingProxyType
from typing import List, Optional, Union

from cardgate.core.config import Settings, get_settings
from cardgate.core.logging import get_logger

from .base import Environment, PaymentGateway, PaymentGatewayType
from .braintree_adapter import BraintreeAdapter
from .spreedly_adapter import SpreedlyAdapter

logger = get_logger(__name__)


class PaymentGatewayFactory:
    """Factory for creating payment gateway instances."""

    _gateways = MappingProxyType({
        PaymentGatewayType.BRAINTREE: BraintreeAdapter,
        PaymentGatewayType.SPREEDLY: SpreedlyAdapter,
    })

    @classmethod
    def create_gateway(
        cls,
        gateway_type: Union[PaymentGatewayType, str],
        environment: Union[Environment, str],
        **config
    ) -> PaymentGateway:
        """Create a payment gateway instance."""
        try:
            gateway_class = cls._gateways[PaymentGatewayType(gateway_type)]
        except ValueError:
            raise ValueError(f"Unsupported gateway type: {gateway_type}") from None

        return gateway_class(environment, **config)

    @classmethod
    def get_supported_gateways(cls) -> List[PaymentGatewayType]:
        """Get list of registered gateway types."""
        return list(cls._gateways.keys())


def create_gateway(
    gateway_type: Union[PaymentGatewayType, str],
    environment: Union[Environment, str],
    **config
) -> PaymentGateway:
    return PaymentGatewayFactory.create_gateway(gateway_type, environment, **config)


def gateway_from_settings(settings: Optional[Settings] = None) -> PaymentGateway:
    """
    Build the gateway selected by `payment_gateway` in the settings.

    Args:
        settings: Settings to use; defaults to get_settings()

    Returns:
        A configured adapter

    Raises:
        ValueError: If no payment gateway is configured
    """
    settings = settings or get_settings()
    if settings.payment_gateway is None:
        raise ValueError("No payment_gateway is configured")

    gateway_type = PaymentGatewayType(settings.payment_gateway)
    if gateway_type is PaymentGatewayType.BRAINTREE:
        config = {
            "merchant_id": settings.braintree_merchant_id,
            "public_key": settings.braintree_public_key,
            "private_key": settings.braintree_private_key,
        }
    else:
        config = {
            "environment_key": settings.spreedly_environment_key,
            "access_secret": settings.spreedly_access_secret,
            "gateway_token": settings.spreedly_gateway_token,
            "currency_code": settings.spreedly_currency_code,
            "base_url": settings.spreedly_base_url,
            "timeout": settings.http_timeout_seconds,
        }

    logger.info("gateway.created", gateway_type=gateway_type.value, environment=settings.environment)
    return create_gateway(gateway_type, settings.environment, **config)
