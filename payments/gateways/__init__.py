"""
Payment gateway abstraction layer.

Provides a unified interface for interacting with different payment providers.
"""

from .base import (
    BasePaymentGateway,
    ConfigurationError,
    Customer,
    Gateway,
    GatewayException,
    PaymentOrder,
    PaymentOrderRequest,
    PaymentStatus,
    RefundResult,
    SignatureMismatchError,
    UnsupportedGatewayError,
    UpstreamError,
    ValidationError,
    VerificationRequest,
    VerificationResult,
    WebhookResult,
    to_minor_units,
)
from .razorpay_gateway import RazorpayGateway
from .phonepe_gateway import PhonePeSaltGateway, PhonePeOAuthGateway
from .cashfree_gateway import CashfreeGateway
from .router import GatewayRouter
from .token_cache import OAuthToken, OAuthTokenCache
from .factory import build_gateway, build_router, get_router, reset_router, list_available_gateways

__all__ = [
    'BasePaymentGateway',
    'ConfigurationError',
    'Customer',
    'Gateway',
    'GatewayException',
    'PaymentOrder',
    'PaymentOrderRequest',
    'PaymentStatus',
    'RefundResult',
    'SignatureMismatchError',
    'UnsupportedGatewayError',
    'UpstreamError',
    'ValidationError',
    'VerificationRequest',
    'VerificationResult',
    'WebhookResult',
    'to_minor_units',
    'RazorpayGateway',
    'PhonePeSaltGateway',
    'PhonePeOAuthGateway',
    'CashfreeGateway',
    'GatewayRouter',
    'OAuthToken',
    'OAuthTokenCache',
    'build_gateway',
    'build_router',
    'get_router',
    'reset_router',
    'list_available_gateways',
]
