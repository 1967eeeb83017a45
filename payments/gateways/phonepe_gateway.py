"""
PhonePe payment gateway implementations.

Two authentication schemes are supported, selected per deployment by
PHONEPE_AUTH_MODE:

- ``salt``: every request is signed with
  ``X-VERIFY = SHA256(payload + saltKey) + '###' + saltIndex``
- ``oauth``: client-credentials access token sent as a bearer credential,
  cached in an OAuthTokenCache owned by the adapter instance
"""

import binascii
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, Tuple, Union

import requests

from .base import (
    BasePaymentGateway,
    Gateway,
    PaymentOrder,
    PaymentOrderRequest,
    PaymentStatus,
    RefundResult,
    UpstreamError,
    ValidationError,
    VerificationRequest,
    VerificationResult,
    WebhookResult,
    epoch_millis,
    now_iso,
    sanitize_user_id,
    to_minor_units,
)
from .http import raise_for_upstream_status, request_json, upstream_message
from .signatures import (
    basic_auth_token,
    canonical_json,
    decode_payload,
    encode_payload,
    phonepe_x_verify,
    secure_compare,
    sha256_hex,
)
from .token_cache import OAuthTokenCache
from ..conf import PaymentSettings

logger = logging.getLogger(__name__)

PAY_PATH = '/pg/v1/pay'
REFUND_PATH = '/pg/v1/refund'

STATE_MAP = {
    'COMPLETED': PaymentStatus.COMPLETED,
    'SUCCESS': PaymentStatus.COMPLETED,
    'PAYMENT_SUCCESS': PaymentStatus.COMPLETED,
    'PENDING': PaymentStatus.INITIATED,
    'PAYMENT_PENDING': PaymentStatus.INITIATED,
    'FAILED': PaymentStatus.FAILED,
    'PAYMENT_ERROR': PaymentStatus.FAILED,
    'PAYMENT_DECLINED': PaymentStatus.FAILED,
}


def map_state(state: Optional[str]) -> PaymentStatus:
    return STATE_MAP.get((state or '').upper(), PaymentStatus.INITIATED)


def _redirect_info_url(data: Dict[str, Any]) -> Optional[str]:
    body = data.get('data') or {}
    instrument = body.get('instrumentResponse') or {}
    redirect_info = instrument.get('redirectInfo') or {}
    return redirect_info.get('url') or body.get('redirectUrl') or data.get('redirectUrl')


class _PhonePeGateway(BasePaymentGateway):

    gateway = Gateway.PHONEPE

    def __init__(self, settings: PaymentSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.config = settings.phonepe
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        reference = request.transaction_id or request.order_id
        if not reference:
            raise ValidationError("PhonePe verification requires transaction_id or order_id")
        return self.check_status(reference)

    def _status_result(self, reference: str, data: Dict[str, Any]) -> VerificationResult:
        body = data.get('data') if isinstance(data.get('data'), dict) else data
        status = map_state(body.get('state'))
        return VerificationResult(
            success=status == PaymentStatus.COMPLETED,
            status=status,
            amount=body.get('amount'),
            gateway=self.gateway.value,
            reference_id=body.get('merchantTransactionId') or body.get('merchantOrderId') or reference,
            gateway_response=data
        )


class PhonePeSaltGateway(_PhonePeGateway):
    """
    PhonePe salt-key (X-VERIFY) integration.

    Webhooks are authenticated twice: a Basic-Auth header configured in the
    PhonePe dashboard, then the X-VERIFY signature over the body.
    """

    def _require_credentials(self):
        self.require(
            PHONEPE_MERCHANT_ID=self.config.merchant_id,
            PHONEPE_SALT_KEY=self.config.salt_key
        )

    def generate_signature(self, payload: str) -> str:
        return phonepe_x_verify(payload, self.config.salt_key, self.config.salt_index)

    def _signed_request(self, method: str, path: str, payload: Dict[str, Any], raise_for_status: bool = True) -> Dict[str, Any]:
        encoded = encode_payload(payload)
        headers = {
            'Content-Type': 'application/json',
            'X-VERIFY': self.generate_signature(encoded),
            'X-MERCHANT-ID': self.config.merchant_id,
        }
        _, data = request_json(
            self.session,
            method,
            self.url(path),
            headers=headers,
            json_body={'request': encoded} if method.upper() == 'POST' else None,
            timeout=self.settings.http_timeout,
            raise_for_status=raise_for_status
        )
        return data

    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        self._require_credentials()

        merchant_id = self.config.merchant_id
        transaction_id = f"TXN_{merchant_id}_{epoch_millis()}"
        amount = to_minor_units(request.amount)
        redirect_url = f"{self.settings.frontend_path('payment-success')}?transactionId={transaction_id}"

        logger.info(
            "Creating PhonePe order",
            extra={'transaction_id': transaction_id, 'amount': amount}
        )

        payload = {
            'merchantId': merchant_id,
            'merchantTransactionId': transaction_id,
            'merchantUserId': sanitize_user_id(request.customer.email),
            'amount': amount,
            'redirectUrl': redirect_url,
            'redirectMode': 'REDIRECT',
            'callbackUrl': self.settings.webhook_url(self.gateway.value),
            'mobileNumber': request.customer.phone,
            'paymentInstrument': {'type': 'PAY_PAGE'},
        }

        data = self._signed_request('POST', PAY_PATH, payload, raise_for_status=False)
        succeeded = bool(data.get('success'))

        if succeeded:
            logger.info("PhonePe order created successfully", extra={'transaction_id': transaction_id})
        else:
            logger.warning(
                "PhonePe order creation failed",
                extra={'transaction_id': transaction_id, 'code': data.get('code')}
            )

        return PaymentOrder(
            gateway=self.gateway.value,
            order_id=transaction_id,
            amount=amount,
            currency=request.currency,
            status=PaymentStatus.INITIATED if succeeded else PaymentStatus.FAILED,
            redirect_url=_redirect_info_url(data) if succeeded else None,
            merchant_id=merchant_id,
            created_at=now_iso(),
            gateway_response=data
        )

    def check_status(self, reference: str) -> VerificationResult:
        if not reference:
            raise ValidationError("PhonePe status lookup requires a transaction id")
        self._require_credentials()

        logger.info("Checking PhonePe transaction status", extra={'transaction_id': reference})

        payload = {
            'merchantId': self.config.merchant_id,
            'merchantTransactionId': reference,
        }
        data = self._signed_request('GET', f"/pg/v1/status/{self.config.merchant_id}/{reference}", payload)
        return self._status_result(reference, data)

    def refund(self, reference: str, amount: Union[Decimal, int, float], reason: Optional[str] = None) -> RefundResult:
        self._require_credentials()

        refund_id = f"REFUND_{epoch_millis()}"
        amount_minor = to_minor_units(amount)

        logger.info(
            "Initiating PhonePe refund",
            extra={'transaction_id': reference, 'refund_id': refund_id, 'amount': amount_minor}
        )

        payload = {
            'merchantId': self.config.merchant_id,
            'merchantUserId': self.config.merchant_id,
            'originalTransactionId': reference,
            'merchantTransactionId': refund_id,
            'amount': amount_minor,
            'callbackUrl': self.settings.webhook_url(self.gateway.value),
        }
        data = self._signed_request('POST', REFUND_PATH, payload)
        body = data.get('data') or {}

        return RefundResult(
            success=bool(data.get('success')),
            refund_id=refund_id,
            amount=body.get('amount', amount_minor),
            status=body.get('state') or data.get('code'),
            gateway_response=data
        )

    # Webhooks

    def verify_basic_auth(self, authorization: Optional[str]) -> bool:
        self.require(
            PHONEPE_WEBHOOK_USERNAME=self.config.webhook_username,
            PHONEPE_WEBHOOK_PASSWORD=self.config.webhook_password
        )
        if not authorization:
            return False
        expected = basic_auth_token(self.config.webhook_username, self.config.webhook_password)
        provided = authorization.strip()
        if provided.lower().startswith('basic '):
            provided = provided[6:].strip()
        return secure_compare(expected, provided)

    def _handle_webhook(self, raw_body: bytes, headers: Dict[str, str]) -> WebhookResult:
        if not self.verify_basic_auth(headers.get('authorization')):
            logger.warning("PhonePe webhook authorization failed")
            return WebhookResult(valid=False, message='Invalid authorization')

        self.require(PHONEPE_SALT_KEY=self.config.salt_key)
        webhook_data = self.parse_json_body(raw_body)
        expected = self.generate_signature(canonical_json(webhook_data))
        if not secure_compare(expected, headers.get('x-verify')):
            logger.warning("PhonePe webhook signature mismatch")
            return WebhookResult(valid=False, message='Invalid signature')

        decoded = self._decode_response(webhook_data)
        envelope = decoded if isinstance(decoded, dict) else {}
        details = envelope.get('data') if isinstance(envelope.get('data'), dict) else envelope

        transaction_id = details.get('merchantTransactionId') or details.get('transactionId')
        state = details.get('state')
        status = map_state(state) if state else None

        logger.info(
            "PhonePe webhook processed",
            extra={'transaction_id': transaction_id, 'state': state}
        )

        return WebhookResult(
            valid=True,
            processed=bool(details),
            event_type=envelope.get('code') or webhook_data.get('event'),
            related_id=transaction_id,
            status=status,
            success=state == 'COMPLETED',
            amount=details.get('amount'),
            reason=details.get('responseCode'),
            timestamp=details.get('timestamp') or envelope.get('timestamp') or now_iso(),
            data=decoded
        )

    @staticmethod
    def _decode_response(webhook_data: Dict[str, Any]) -> Any:
        data = webhook_data.get('data')
        encoded = data.get('response') if isinstance(data, dict) else None
        if encoded is None:
            encoded = webhook_data.get('response')
        if not isinstance(encoded, str):
            return encoded
        try:
            return decode_payload(encoded)
        except (binascii.Error, ValueError, UnicodeDecodeError):
            logger.debug("PhonePe webhook response is not base64 JSON; using raw value")
            return encoded


class PhonePeOAuthGateway(_PhonePeGateway):
    """
    PhonePe OAuth client-credentials integration.

    Every call first obtains an access token from the adapter's token cache,
    which refreshes at most once per expiry window.
    """

    def __init__(
        self,
        settings: PaymentSettings,
        session: Optional[requests.Session] = None,
        token_cache: Optional[OAuthTokenCache] = None
    ):
        super().__init__(settings, session)
        self.token_cache = token_cache or OAuthTokenCache(self._fetch_access_token)

    def _fetch_access_token(self) -> Tuple[str, int]:
        self.require(
            PHONEPE_CLIENT_ID=self.config.client_id,
            PHONEPE_CLIENT_SECRET=self.config.client_secret
        )
        logger.info("Generating new PhonePe OAuth access token")

        _, data = request_json(
            self.session,
            'POST',
            self.config.token_url,
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            form_body={
                'client_id': self.config.client_id,
                'client_secret': self.config.client_secret,
                'client_version': self.config.client_version,
                'grant_type': 'client_credentials',
            },
            timeout=self.settings.http_timeout
        )

        access_token = data.get('access_token')
        if not access_token:
            raise UpstreamError(
                message="Failed to authenticate with PhonePe: no access token in response",
                error_code='token_missing'
            )
        try:
            expires_in = int(data.get('expires_in') or 0)
        except (TypeError, ValueError):
            expires_in = 0
        return access_token, expires_in

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.token_cache.get_token()}",
            'X-Client-Version': self.config.client_version,
            'Content-Type': 'application/json',
        }

    def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self.url(path)
        status_code, data = request_json(
            self.session,
            method,
            url,
            headers=self._headers(),
            json_body=payload,
            timeout=self.settings.http_timeout,
            raise_for_status=False
        )
        if status_code == 401:
            # Token rejected upstream
            self.token_cache.clear()
        raise_for_upstream_status(method, url, status_code, data)
        return data

    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        merchant_order_id = f"ORDER_{epoch_millis()}"
        amount = to_minor_units(request.amount)

        logger.info("Creating PhonePe order", extra={'order_id': merchant_order_id, 'amount': amount})

        payload = {
            'merchantOrderId': merchant_order_id,
            'amount': amount,
            'currency': request.currency,
            'redirectUrl': self.settings.frontend_path('payment-success'),
        }
        data = self._call('POST', PAY_PATH, payload)

        succeeded = bool(data.get('success', data.get('orderId')))
        if not succeeded:
            logger.warning(
                "PhonePe order creation failed",
                extra={'order_id': merchant_order_id, 'upstream_message': upstream_message(data)}
            )

        return PaymentOrder(
            gateway=self.gateway.value,
            order_id=merchant_order_id,
            amount=amount,
            currency=request.currency,
            status=PaymentStatus.INITIATED if succeeded else PaymentStatus.FAILED,
            redirect_url=_redirect_info_url(data) if succeeded else None,
            created_at=now_iso(),
            gateway_response=data
        )

    def check_status(self, reference: str) -> VerificationResult:
        if not reference:
            raise ValidationError("PhonePe status lookup requires an order id")

        logger.info("Checking PhonePe transaction status", extra={'order_id': reference})

        data = self._call('GET', f"/pg/v1/status/{reference}")
        return self._status_result(reference, data)

    def refund(self, reference: str, amount: Union[Decimal, int, float], reason: Optional[str] = None) -> RefundResult:
        refund_id = f"REFUND_{epoch_millis()}"
        amount_minor = to_minor_units(amount)

        logger.info(
            "Initiating PhonePe refund",
            extra={'transaction_id': reference, 'refund_id': refund_id, 'amount': amount_minor}
        )

        payload = {
            'transactionId': reference,
            'amount': amount_minor,
            'refundId': refund_id,
        }
        data = self._call('POST', REFUND_PATH, payload)
        body = data.get('data') if isinstance(data.get('data'), dict) else data

        return RefundResult(
            success=bool(data.get('success', body.get('state') != 'FAILED')),
            refund_id=refund_id,
            amount=body.get('amount', amount_minor),
            status=body.get('state'),
            gateway_response=data
        )

    # Webhooks

    def verify_authorization(self, authorization: Optional[str]) -> bool:
        """
        Check ``Authorization == SHA256(username:password)`` when webhook
        credentials are configured. Without credentials every call passes.
        """
        username, password = self.config.webhook_username, self.config.webhook_password
        if not (username and password):
            logger.warning("PhonePe webhook credentials not configured; payload accepted unauthenticated")
            return True
        return secure_compare(sha256_hex(f"{username}:{password}"), (authorization or '').strip())

    def _handle_webhook(self, raw_body: bytes, headers: Dict[str, str]) -> WebhookResult:
        if not self.verify_authorization(headers.get('authorization')):
            logger.warning("PhonePe webhook authorization failed")
            return WebhookResult(valid=False, message='Invalid authorization')

        webhook_data = self.parse_json_body(raw_body)
        data = webhook_data.get('data') if isinstance(webhook_data.get('data'), dict) else None
        if data is None:
            logger.warning("PhonePe webhook missing data field")
            return WebhookResult(valid=False, processed=False, message='Invalid webhook format')

        state = data.get('state')
        logger.info(
            "PhonePe webhook processed",
            extra={'order_id': data.get('merchantOrderId'), 'state': state}
        )

        return WebhookResult(
            valid=True,
            processed=True,
            event_type=webhook_data.get('event') or webhook_data.get('type'),
            related_id=data.get('merchantOrderId'),
            status=map_state(state) if state else None,
            success=webhook_data.get('success', state == 'COMPLETED'),
            amount=data.get('amount'),
            timestamp=now_iso(),
            data=data
        )
