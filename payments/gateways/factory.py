"""
Payment gateway factory.

Builds adapters from PaymentSettings and provides the process-wide router.
Each adapter configuration is built once, so stateful adapters (the PhonePe
OAuth token cache) are shared by every request in the process.
"""

import threading
from typing import Dict, List, Optional, Type

from .base import BasePaymentGateway, Gateway, UnsupportedGatewayError
from .cashfree_gateway import CashfreeGateway
from .phonepe_gateway import PhonePeOAuthGateway, PhonePeSaltGateway
from .razorpay_gateway import RazorpayGateway
from .router import GatewayRouter
from ..conf import PHONEPE_AUTH_OAUTH, PaymentSettings, load_payment_settings


# PhonePe is resolved per deployment from PHONEPE_AUTH_MODE
PHONEPE_VARIANTS: Dict[str, Type[BasePaymentGateway]] = {
    'salt': PhonePeSaltGateway,
    PHONEPE_AUTH_OAUTH: PhonePeOAuthGateway,
}

_router: Optional[GatewayRouter] = None
_router_lock = threading.Lock()


def build_gateway(gateway_name: str, payment_settings: PaymentSettings) -> BasePaymentGateway:
    """
    Build one configured adapter.

    Raises:
        UnsupportedGatewayError: If the gateway or PhonePe auth mode is unknown
    """
    try:
        gateway = Gateway(gateway_name.lower().strip())
    except ValueError:
        supported = ', '.join(list_available_gateways())
        raise UnsupportedGatewayError(
            message=f"Unsupported payment gateway: {gateway_name}. Supported gateways: {supported}"
        )

    if gateway == Gateway.RAZORPAY:
        return RazorpayGateway(payment_settings.razorpay)

    if gateway == Gateway.PHONEPE:
        auth_mode = payment_settings.phonepe.auth_mode
        if auth_mode not in PHONEPE_VARIANTS:
            raise UnsupportedGatewayError(
                message=f"Unsupported PhonePe auth mode: {auth_mode}",
                error_code='unsupported_auth_mode'
            )
        return PHONEPE_VARIANTS[auth_mode](payment_settings)

    return CashfreeGateway(payment_settings)


def build_router(payment_settings: Optional[PaymentSettings] = None) -> GatewayRouter:
    payment_settings = payment_settings or load_payment_settings()
    gateways = {
        gateway: build_gateway(gateway.value, payment_settings)
        for gateway in Gateway
    }
    return GatewayRouter(gateways, currency=payment_settings.currency)


def get_router() -> GatewayRouter:
    """Return the process-wide router, building it on first use."""
    global _router
    if _router is None:
        with _router_lock:
            if _router is None:
                _router = build_router()
    return _router


def reset_router() -> None:
    """Drop the process-wide router (tests, settings reloads)."""
    global _router
    with _router_lock:
        _router = None


def list_available_gateways() -> List[str]:
    """
    List all supported payment gateways.

    Returns:
        List of gateway names
    """
    return [gateway.value for gateway in Gateway]
