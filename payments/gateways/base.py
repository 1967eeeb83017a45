"""
Base classes for payment gateway abstraction.

This module defines the interface that all payment gateways must implement,
the normalized envelopes every gateway returns, and the error taxonomy shared
by the gateway layer and the HTTP layer (Razorpay, PhonePe, Cashfree).
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Dict, Any, Mapping, Union

logger = logging.getLogger(__name__)


class Gateway(str, Enum):
    """Supported payment gateways (the router discriminator)."""
    RAZORPAY = 'razorpay'
    PHONEPE = 'phonepe'
    CASHFREE = 'cashfree'


class PaymentStatus(str, Enum):
    """Standard payment status across all gateways"""
    CREATED = 'created'
    INITIATED = 'initiated'
    CAPTURED = 'captured'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


# Errors

class GatewayException(Exception):
    """
    Custom exception for payment gateway errors.

    Raised when gateway operations fail, containing details about the failure.
    """
    default_error_code = 'gateway_error'

    def __init__(self, message: str, error_code: Optional[str] = None, gateway_response: Optional[Dict] = None):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.gateway_response = gateway_response
        super().__init__(self.message)


class ValidationError(GatewayException):
    """Malformed or missing request fields. Caller's fault, never retried."""
    default_error_code = 'validation_error'


class UnsupportedGatewayError(GatewayException):
    """Unknown gateway discriminator."""
    default_error_code = 'unsupported_gateway'


class UpstreamError(GatewayException):
    """The third-party API call failed, timed out or returned a failure envelope."""
    default_error_code = 'upstream_error'


class SignatureMismatchError(GatewayException):
    """Authentication or signature check failed. Never transient."""
    default_error_code = 'signature_mismatch'


class ConfigurationError(GatewayException):
    """A credential required by the requested operation is not configured."""
    default_error_code = 'gateway_config_missing'


# Amounts and time

def to_minor_units(amount: Union[Decimal, int, float, str]) -> int:
    """
    Convert a major-unit amount (rupees) into minor units (paise).

    Rounds half up, so ``to_minor_units(19.999) == 2000``.
    """
    try:
        value = Decimal(str(amount))
    except (ArithmeticError, ValueError) as e:
        raise ValidationError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def sanitize_user_id(email: str) -> str:
    """Gateway-safe customer id: the email with non-alphanumerics stripped."""
    return re.sub(r'[^A-Za-z0-9]', '', email or '')


def from_minor_units(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / 100).quantize(Decimal('0.01'))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def epoch_millis() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def epoch_to_iso(epoch_seconds: Optional[int]) -> Optional[str]:
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(int(epoch_seconds), tz=timezone.utc).isoformat()


# Envelopes

class _Serializable:

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
            elif isinstance(value, Decimal):
                data[key] = str(value)
        return data


@dataclass
class Customer(_Serializable):
    name: str
    email: str
    phone: str


@dataclass
class PaymentOrderRequest(_Serializable):
    """Generic create-order request routed by its ``gateway`` field."""
    gateway: str
    amount: Decimal
    customer: Customer
    currency: str = 'INR'
    description: Optional[str] = None


@dataclass
class PaymentOrder(_Serializable):
    """
    Standardized order envelope returned by every gateway.

    Attributes:
        order_id: Gateway-issued order/transaction identifier
        amount: Amount in minor units (paise)
        checkout_key: Publishable key for client-side checkout (Razorpay)
        redirect_url: Hosted payment page to send the customer to (PhonePe)
        payment_session_id: Session handle for the checkout SDK (Cashfree)
        gateway_response: Raw gateway response for debugging
    """
    gateway: str
    order_id: str
    amount: int
    currency: str
    status: PaymentStatus
    checkout_key: Optional[str] = None
    redirect_url: Optional[str] = None
    payment_session_id: Optional[str] = None
    merchant_id: Optional[str] = None
    created_at: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None


@dataclass
class VerificationRequest(_Serializable):
    """
    Gateway-specific proof of payment.

    Razorpay needs order_id, payment_id and signature; PhonePe needs
    transaction_id (or order_id); Cashfree needs order_id.
    """
    gateway: str
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass
class VerificationResult(_Serializable):
    success: bool
    status: PaymentStatus
    amount: Optional[int] = None
    timestamp: str = field(default_factory=now_iso)
    gateway: Optional[str] = None
    reference_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None


@dataclass
class WebhookResult(_Serializable):
    """Normalized outcome of an inbound webhook. Never persisted."""
    valid: bool
    processed: bool = False
    event_type: Optional[str] = None
    related_id: Optional[str] = None
    status: Optional[PaymentStatus] = None
    success: Optional[bool] = None
    amount: Optional[int] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    timestamp: Optional[str] = None
    data: Optional[Any] = None


@dataclass
class RefundResult(_Serializable):
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[int] = None
    status: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateway implementations.

    All payment gateways must implement these methods to ensure consistent
    behavior across different providers. This enables the application to
    switch between gateways without changing business logic.

    Methods:
        - create_order: open a payment with the provider
        - verify_payment: confirm a completed payment from client-side proof
        - check_status: poll the provider for the current state
        - refund: return money for a payment
        - handle_webhook: authenticate and normalize an inbound callback
    """

    gateway: Gateway

    @abstractmethod
    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        """
        Create an order/transaction with the gateway.

        Args:
            request: Validated order request (amount in major units)

        Returns:
            PaymentOrder with amount in minor units and the follow-up action
        """
        pass

    @abstractmethod
    def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        """
        Verify a completed payment.

        Raises:
            ValidationError: If the gateway-specific proof is incomplete
            SignatureMismatchError: If the supplied proof does not verify
        """
        pass

    @abstractmethod
    def check_status(self, reference: str) -> VerificationResult:
        """Poll the gateway for the status of an order or transaction."""
        pass

    @abstractmethod
    def refund(self, reference: str, amount: Union[Decimal, int, float], reason: Optional[str] = None) -> RefundResult:
        """Refund ``amount`` (major units) of the payment identified by ``reference``."""
        pass

    @abstractmethod
    def _handle_webhook(self, raw_body: bytes, headers: Dict[str, str]) -> WebhookResult:
        """Gateway-specific webhook verification and parsing. May raise."""
        pass

    def handle_webhook(self, raw_body: Union[bytes, str, None], headers: Optional[Mapping[str, str]]) -> WebhookResult:
        """
        Authenticate and normalize an inbound webhook.

        Never raises: internal failures are logged and absorbed into a
        negative result so the endpoint can always acknowledge with 200.
        """
        try:
            if raw_body is None:
                raw_body = b''
            elif isinstance(raw_body, str):
                raw_body = raw_body.encode('utf-8')
            normalized = {str(k).lower(): v for k, v in (headers or {}).items()}
            return self._handle_webhook(raw_body, normalized)
        except Exception as e:
            logger.error(
                "Webhook processing failed",
                extra={'gateway': self.gateway.value, 'error': str(e)},
                exc_info=True
            )
            return WebhookResult(valid=False, processed=False, message=str(e))

    @staticmethod
    def parse_json_body(raw_body: bytes) -> Dict[str, Any]:
        """Decode a webhook body into a JSON object or raise ValidationError."""
        if not raw_body:
            raise ValidationError("Empty webhook body")
        try:
            payload = json.loads(raw_body.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid JSON in webhook body: {e}") from e
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object")
        return payload

    @staticmethod
    def require(**values) -> None:
        """Raise ConfigurationError naming every missing credential."""
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                message=f"Missing configuration: {', '.join(missing)}"
            )
