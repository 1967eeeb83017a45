"""
Cashfree Payment Gateway Implementation
Implements the BasePaymentGateway for Cashfree Payments
API Version: 2023-08-01
"""

import logging
from decimal import Decimal
from typing import Optional, Dict, Any, Union

import requests

from .base import (
    BasePaymentGateway,
    Gateway,
    PaymentOrder,
    PaymentOrderRequest,
    PaymentStatus,
    RefundResult,
    ValidationError,
    VerificationRequest,
    VerificationResult,
    WebhookResult,
    epoch_millis,
    from_minor_units,
    now_iso,
    sanitize_user_id,
    to_minor_units,
)
from .http import request_json
from .signatures import cashfree_webhook_signature, secure_compare
from ..conf import PaymentSettings

logger = logging.getLogger(__name__)

SANDBOX_URL = 'https://sandbox.cashfree.com/pg'
PRODUCTION_URL = 'https://api.cashfree.com/pg'

ORDER_STATUS_MAP = {
    'ACTIVE': PaymentStatus.INITIATED,
    'PAID': PaymentStatus.COMPLETED,
    'EXPIRED': PaymentStatus.FAILED,
    'TERMINATED': PaymentStatus.FAILED,
    'TERMINATION_REQUESTED': PaymentStatus.FAILED,
}

PAYMENT_STATUS_MAP = {
    'SUCCESS': PaymentStatus.COMPLETED,
    'PENDING': PaymentStatus.INITIATED,
    'NOT_ATTEMPTED': PaymentStatus.INITIATED,
    'FAILED': PaymentStatus.FAILED,
    'USER_DROPPED': PaymentStatus.FAILED,
    'CANCELLED': PaymentStatus.FAILED,
    'VOID': PaymentStatus.FAILED,
}

WEBHOOK_STATUS_MAP = {
    'PAYMENT_SUCCESS_WEBHOOK': PaymentStatus.COMPLETED,
    'PAYMENT_FAILED_WEBHOOK': PaymentStatus.FAILED,
    'PAYMENT_USER_DROPPED_WEBHOOK': PaymentStatus.FAILED,
    'REFUND_STATUS_WEBHOOK': PaymentStatus.REFUNDED,
    'AUTO_REFUND_STATUS_WEBHOOK': PaymentStatus.REFUNDED,
}


def _major_to_minor(amount: Any) -> Optional[int]:
    return to_minor_units(amount) if amount is not None else None


class CashfreeGateway(BasePaymentGateway):
    """
    Cashfree Payment Gateway Implementation

    Features:
    - Order creation for the hosted checkout SDK (payment_session_id)
    - Webhook signature verification (HMAC-SHA256 over timestamp + body)
    - Payment status polling
    - Refund support

    Cashfree expects amounts in major units; envelopes report minor units.
    """

    gateway = Gateway.CASHFREE

    def __init__(self, settings: PaymentSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.config = settings.cashfree
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return SANDBOX_URL if self.config.is_sandbox else PRODUCTION_URL

    def _require_credentials(self):
        self.require(CASHFREE_APP_ID=self.config.app_id, CASHFREE_SECRET_KEY=self.config.secret_key)

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for Cashfree API requests"""
        return {
            'x-client-id': self.config.app_id,
            'x-client-secret': self.config.secret_key,
            'x-api-version': self.config.api_version,
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._require_credentials()
        _, data = request_json(
            self.session,
            method,
            f"{self.base_url}/{path.lstrip('/')}",
            headers=self._get_headers(),
            json_body=payload,
            timeout=self.settings.http_timeout
        )
        return data

    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        customer = request.customer
        order_id = f"ORDER_{epoch_millis()}"
        amount = to_minor_units(request.amount)

        logger.info("Creating Cashfree order", extra={'order_id': order_id, 'amount': amount})

        payload = {
            'order_id': order_id,
            'order_amount': float(from_minor_units(amount)),
            'order_currency': request.currency,
            'customer_details': {
                'customer_id': sanitize_user_id(customer.email) or f"cust_{order_id}",
                'customer_name': customer.name,
                'customer_email': customer.email,
                'customer_phone': customer.phone,
            },
            'order_meta': {
                'return_url': f"{self.settings.frontend_path('payment-success')}?order_id={order_id}",
                'notify_url': self.settings.webhook_url(self.gateway.value),
            },
        }
        if request.description:
            payload['order_note'] = request.description

        data = self._call('POST', '/orders', payload)

        logger.info("Cashfree order created successfully", extra={'order_id': order_id})

        return PaymentOrder(
            gateway=self.gateway.value,
            order_id=data.get('order_id') or order_id,
            amount=amount,
            currency=data.get('order_currency') or request.currency,
            status=ORDER_STATUS_MAP.get(data.get('order_status'), PaymentStatus.CREATED),
            payment_session_id=data.get('payment_session_id'),
            created_at=data.get('created_at') or now_iso(),
            gateway_response=data
        )

    def get_order_details(self, order_id: str) -> Dict[str, Any]:
        """Read-only order lookup."""
        return self._call('GET', f"/orders/{order_id}")

    def check_status(self, reference: str) -> VerificationResult:
        if not reference:
            raise ValidationError("Cashfree status lookup requires an order id")

        logger.info("Checking Cashfree order status", extra={'order_id': reference})

        data = self.get_order_details(reference)
        order_status = data.get('order_status')
        status = ORDER_STATUS_MAP.get(order_status, PaymentStatus.INITIATED)

        return VerificationResult(
            success=order_status == 'PAID',
            status=status,
            amount=_major_to_minor(data.get('order_amount')),
            gateway=self.gateway.value,
            reference_id=data.get('order_id') or reference,
            gateway_response=data
        )

    def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        if not request.order_id:
            raise ValidationError("Cashfree verification requires order_id")
        return self.check_status(request.order_id)

    def refund(self, reference: str, amount: Union[Decimal, int, float], reason: Optional[str] = None) -> RefundResult:
        refund_id = f"REFUND_{epoch_millis()}"
        amount_minor = to_minor_units(amount)

        logger.info(
            "Initiating Cashfree refund",
            extra={'order_id': reference, 'refund_id': refund_id, 'amount': amount_minor}
        )

        payload = {
            'refund_id': refund_id,
            'refund_amount': float(from_minor_units(amount_minor)),
        }
        if reason:
            payload['refund_note'] = reason

        data = self._call('POST', f"/orders/{reference}/refunds", payload)

        return RefundResult(
            success=data.get('refund_status') != 'CANCELLED',
            refund_id=data.get('refund_id') or refund_id,
            amount=_major_to_minor(data.get('refund_amount')) or amount_minor,
            status=data.get('refund_status'),
            gateway_response=data
        )

    # Webhooks

    def verify_webhook_signature(self, raw_body: bytes, timestamp: Optional[str], signature: Optional[str]) -> bool:
        self.require(CASHFREE_SECRET_KEY=self.config.secret_key)
        if not timestamp or not signature:
            return False
        expected = cashfree_webhook_signature(timestamp, raw_body, self.config.secret_key)
        return secure_compare(expected, signature)

    def _handle_webhook(self, raw_body: bytes, headers: Dict[str, str]) -> WebhookResult:
        timestamp = headers.get('x-webhook-timestamp')
        signature = headers.get('x-webhook-signature')

        if not signature:
            logger.warning("Missing Cashfree webhook signature")
            return WebhookResult(valid=False, message='Missing signature')

        if not self.verify_webhook_signature(raw_body, timestamp, signature):
            logger.warning("Cashfree webhook signature mismatch")
            return WebhookResult(valid=False, message='Invalid signature')

        webhook_data = self.parse_json_body(raw_body)
        webhook_type = webhook_data.get('type')
        data = webhook_data.get('data') or {}
        order = data.get('order') or {}
        payment = data.get('payment') or {}
        refund = data.get('refund') or {}

        logger.info("Received Cashfree webhook", extra={'type': webhook_type})

        status = WEBHOOK_STATUS_MAP.get(webhook_type)
        if status is None and payment.get('payment_status'):
            status = PAYMENT_STATUS_MAP.get(payment['payment_status'])
        if status is None:
            logger.debug("Unknown Cashfree webhook type", extra={'type': webhook_type})
            return WebhookResult(valid=True, processed=False, event_type=webhook_type)

        if status == PaymentStatus.REFUNDED:
            related_id = refund.get('order_id') or order.get('order_id')
            amount = _major_to_minor(refund.get('refund_amount'))
        else:
            related_id = order.get('order_id')
            amount = _major_to_minor(payment.get('payment_amount', order.get('order_amount')))

        return WebhookResult(
            valid=True,
            processed=True,
            event_type=webhook_type,
            related_id=related_id,
            status=status,
            success=status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED),
            amount=amount,
            reason=payment.get('payment_message'),
            timestamp=webhook_data.get('event_time') or now_iso(),
            data=data
        )
