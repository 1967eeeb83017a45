"""
Razorpay payment gateway implementation.

Implements the BasePaymentGateway interface for Razorpay,
handling orders, payment signature verification and webhooks.
"""

import razorpay
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, Union

from .base import (
    BasePaymentGateway,
    Gateway,
    GatewayException,
    PaymentOrder,
    PaymentOrderRequest,
    PaymentStatus,
    RefundResult,
    SignatureMismatchError,
    UpstreamError,
    ValidationError,
    VerificationRequest,
    VerificationResult,
    WebhookResult,
    epoch_millis,
    epoch_to_iso,
    now_iso,
    to_minor_units,
)
from .signatures import (
    razorpay_webhook_signature,
    secure_compare,
    verify_razorpay_payment_signature,
)
from ..conf import RazorpayConfig

logger = logging.getLogger(__name__)

UPSTREAM_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.ServerError,
    razorpay.errors.GatewayError,
)

# Razorpay payment/order states -> normalized status
PAYMENT_STATUS_MAP = {
    'created': PaymentStatus.CREATED,
    'attempted': PaymentStatus.INITIATED,
    'authorized': PaymentStatus.COMPLETED,
    'captured': PaymentStatus.CAPTURED,
    'paid': PaymentStatus.COMPLETED,
    'failed': PaymentStatus.FAILED,
    'refunded': PaymentStatus.REFUNDED,
}

SUCCESS_STATUSES = (PaymentStatus.CAPTURED, PaymentStatus.COMPLETED)


class RazorpayGateway(BasePaymentGateway):
    """
    Razorpay gateway implementation.

    Orders are created server-side; the customer pays in Razorpay's
    client-side checkout widget using the returned ``checkout_key``.
    """

    gateway = Gateway.RAZORPAY

    def __init__(self, config: RazorpayConfig, client: Optional[razorpay.Client] = None):
        """
        Initialize Razorpay client.

        Args:
            config: Key id (starts with rzp_test_ or rzp_live_), key secret and
                optional webhook secret
            client: Preconfigured SDK client (tests)
        """
        self.config = config
        self.client = client or razorpay.Client(auth=(config.key_id, config.key_secret))

    @property
    def webhook_secret(self) -> Optional[str]:
        # Falls back to the key secret when no dedicated webhook secret is set
        return self.config.webhook_secret or self.config.key_secret

    def _require_credentials(self):
        self.require(RAZORPAY_KEY_ID=self.config.key_id, RAZORPAY_KEY_SECRET=self.config.key_secret)

    # Orders

    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        self._require_credentials()

        customer = request.customer
        order_amount = to_minor_units(request.amount)

        logger.info(
            "Creating Razorpay order",
            extra={'amount': order_amount, 'customer': customer.email}
        )

        order_data = {
            'amount': order_amount,
            'currency': request.currency,
            'receipt': f"receipt_{epoch_millis()}",
            'notes': {
                'customer_email': customer.email,
                'customer_phone': customer.phone,
                'customer_name': customer.name,
                'description': request.description or 'Payment for courses',
            },
        }

        try:
            order = self.client.order.create(data=order_data)
        except UPSTREAM_ERRORS as e:
            logger.warning("Failed to create Razorpay order", extra={'error': str(e)})
            raise UpstreamError(
                message=f"Failed to create Razorpay order: {str(e)}",
                gateway_response=e.args[0] if e.args and isinstance(e.args[0], dict) else None
            )
        except Exception as e:
            logger.error(
                "Unexpected error creating Razorpay order",
                extra={'error': str(e)},
                exc_info=True
            )
            raise UpstreamError(message=f"Unexpected error creating Razorpay order: {str(e)}")

        logger.info("Razorpay order created successfully", extra={'order_id': order['id']})

        return PaymentOrder(
            gateway=self.gateway.value,
            order_id=order['id'],
            amount=order['amount'],
            currency=order['currency'],
            status=PAYMENT_STATUS_MAP.get(order.get('status'), PaymentStatus.CREATED),
            checkout_key=self.config.key_id,
            created_at=epoch_to_iso(order.get('created_at')),
            gateway_response=order
        )

    # Verification

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Verify the checkout signature: HMAC-SHA256 of ``order_id|payment_id``.

        Comparison is constant-time.
        """
        self.require(RAZORPAY_KEY_SECRET=self.config.key_secret)

        is_valid = verify_razorpay_payment_signature(
            order_id, payment_id, signature or '', self.config.key_secret
        )

        if is_valid:
            logger.info("Razorpay signature verified", extra={'order_id': order_id, 'payment_id': payment_id})
        else:
            logger.warning(
                "Razorpay signature verification failed",
                extra={'order_id': order_id, 'payment_id': payment_id}
            )
        return is_valid

    def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        if not (request.order_id and request.payment_id and request.signature):
            raise ValidationError("Razorpay verification requires order_id, payment_id and signature")

        if not self.verify_signature(request.order_id, request.payment_id, request.signature):
            raise SignatureMismatchError("Invalid Razorpay payment signature")

        payment = self.fetch_payment_details(request.payment_id)
        return self._payment_result(payment)

    def fetch_payment_details(self, payment_id: str) -> Dict[str, Any]:
        """Read-only payment lookup."""
        self._require_credentials()
        try:
            return self.client.payment.fetch(payment_id)
        except UPSTREAM_ERRORS as e:
            logger.warning(
                "Failed to fetch Razorpay payment details",
                extra={'payment_id': payment_id, 'error': str(e)}
            )
            raise UpstreamError(
                message=f"Payment not found: {str(e)}",
                error_code='payment_not_found'
            )

    def check_status(self, reference: str) -> VerificationResult:
        if not reference:
            raise ValidationError("Razorpay status lookup requires an order or payment id")

        if not reference.startswith('order_'):
            return self._payment_result(self.fetch_payment_details(reference))

        self._require_credentials()
        try:
            order = self.client.order.fetch(reference)
        except UPSTREAM_ERRORS as e:
            raise UpstreamError(
                message=f"Order not found: {str(e)}",
                error_code='order_not_found'
            )

        status = PAYMENT_STATUS_MAP.get(order.get('status'), PaymentStatus.CREATED)
        return VerificationResult(
            success=status in SUCCESS_STATUSES,
            status=status,
            amount=order.get('amount_paid') or order.get('amount'),
            timestamp=epoch_to_iso(order.get('created_at')) or now_iso(),
            gateway=self.gateway.value,
            reference_id=order.get('id', reference),
            gateway_response=order
        )

    def _payment_result(self, payment: Dict[str, Any]) -> VerificationResult:
        status = PAYMENT_STATUS_MAP.get(payment.get('status'), PaymentStatus.INITIATED)
        return VerificationResult(
            success=status in SUCCESS_STATUSES,
            status=status,
            amount=payment.get('amount'),
            timestamp=epoch_to_iso(payment.get('created_at')) or now_iso(),
            gateway=self.gateway.value,
            reference_id=payment.get('id'),
            gateway_response=payment
        )

    def refund(self, reference: str, amount: Union[Decimal, int, float], reason: Optional[str] = None) -> RefundResult:
        raise GatewayException(
            message="Refunds are not supported for Razorpay",
            error_code='refund_not_supported'
        )

    # Webhooks

    def verify_webhook_signature(self, body: Dict[str, Any], signature: Optional[str]) -> bool:
        """
        Verify Razorpay webhook signature.

        HMAC-SHA256 over the canonical JSON serialization of the full body.
        """
        self.require(RAZORPAY_WEBHOOK_SECRET=self.webhook_secret)
        expected = razorpay_webhook_signature(body, self.webhook_secret)
        return secure_compare(expected, signature)

    def _handle_webhook(self, raw_body: bytes, headers: Dict[str, str]) -> WebhookResult:
        signature = headers.get('x-razorpay-signature')
        if not signature:
            logger.warning("Missing Razorpay webhook signature")
            return WebhookResult(valid=False, message='Missing signature')

        webhook_data = self.parse_json_body(raw_body)
        event = webhook_data.get('event')
        logger.info("Handling Razorpay webhook", extra={'event': event})

        if not self.verify_webhook_signature(webhook_data, signature):
            logger.warning("Razorpay webhook signature mismatch")
            return WebhookResult(valid=False, message='Invalid signature')

        payload = webhook_data.get('payload') or {}
        payment = (payload.get('payment') or {}).get('entity') or {}
        refund = (payload.get('refund') or {}).get('entity') or {}

        if event == 'payment.authorized':
            logger.info("Payment authorized", extra={'payment_id': payment.get('id')})
            return self._event_result(event, payment, PaymentStatus.COMPLETED)

        if event == 'payment.failed':
            reason = payment.get('error_description')
            logger.warning("Payment failed", extra={'payment_id': payment.get('id'), 'reason': reason})
            result = self._event_result(event, payment, PaymentStatus.FAILED)
            result.reason = reason
            return result

        if event == 'payment.captured':
            logger.info("Payment captured", extra={'payment_id': payment.get('id')})
            return self._event_result(event, payment, PaymentStatus.CAPTURED)

        if event == 'refund.created':
            logger.info(
                "Refund created",
                extra={'refund_id': refund.get('id'), 'payment_id': refund.get('payment_id')}
            )
            return WebhookResult(
                valid=True,
                processed=True,
                event_type=event,
                related_id=refund.get('id'),
                status=PaymentStatus.REFUNDED,
                success=True,
                amount=refund.get('amount'),
                timestamp=epoch_to_iso(refund.get('created_at')),
                data={'payment_id': refund.get('payment_id')}
            )

        logger.debug("Unknown Razorpay event", extra={'event': event})
        return WebhookResult(valid=True, processed=False, event_type=event)

    def _event_result(self, event: str, payment: Dict[str, Any], status: PaymentStatus) -> WebhookResult:
        return WebhookResult(
            valid=True,
            processed=True,
            event_type=event,
            related_id=payment.get('id'),
            status=status,
            success=status in SUCCESS_STATUSES,
            amount=payment.get('amount'),
            timestamp=epoch_to_iso(payment.get('created_at')),
            data={'order_id': payment.get('order_id')}
        )
