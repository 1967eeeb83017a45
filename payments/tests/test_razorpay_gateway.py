"""
Tests for Razorpay payment gateway implementation.

All tests use a mocked Razorpay SDK client so no request leaves the process.
"""

import hashlib
import hmac
import json
from decimal import Decimal

import pytest
import razorpay
from unittest.mock import patch

from payments.conf import RazorpayConfig
from payments.gateways.base import (
    ConfigurationError,
    Customer,
    GatewayException,
    PaymentOrderRequest,
    PaymentStatus,
    SignatureMismatchError,
    UpstreamError,
    ValidationError,
    VerificationRequest,
)
from payments.gateways.razorpay_gateway import RazorpayGateway


@pytest.fixture
def mock_razorpay_client():
    """Fixture for mocked Razorpay client"""
    with patch('payments.gateways.razorpay_gateway.razorpay.Client') as mock_client:
        yield mock_client


@pytest.fixture
def razorpay_gateway(mock_razorpay_client, payment_settings):
    """Fixture for Razorpay gateway instance with mocked client"""
    return RazorpayGateway(payment_settings.razorpay)


@pytest.fixture
def order_request():
    return PaymentOrderRequest(
        gateway='razorpay',
        amount=Decimal('499'),
        customer=Customer(name='Asha Rao', email='asha@example.com', phone='9876543210'),
    )


def sign(order_id, payment_id, secret='s3cr3t'):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def webhook_signature(body, secret='s3cr3t'):
    message = json.dumps(body, separators=(',', ':')).encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class TestCreateOrder:
    """Tests for order creation"""

    def test_create_order_success(self, razorpay_gateway, mock_razorpay_client, order_request):
        mock_order = {
            'id': 'order_test123',
            'amount': 49900,
            'currency': 'INR',
            'status': 'created',
            'created_at': 1700000000,
        }
        mock_razorpay_client.return_value.order.create.return_value = mock_order

        order = razorpay_gateway.create_order(order_request)

        assert order.order_id == 'order_test123'
        assert order.amount == 49900
        assert order.status == PaymentStatus.CREATED
        assert order.checkout_key == 'rzp_test_dummy_key'
        assert order.gateway_response == mock_order

        sent = mock_razorpay_client.return_value.order.create.call_args.kwargs['data']
        assert sent['amount'] == 49900
        assert sent['currency'] == 'INR'
        assert sent['receipt'].startswith('receipt_')
        assert sent['notes']['customer_email'] == 'asha@example.com'

    def test_create_order_rounds_half_up(self, razorpay_gateway, mock_razorpay_client, order_request):
        mock_razorpay_client.return_value.order.create.return_value = {
            'id': 'order_x', 'amount': 2000, 'currency': 'INR', 'status': 'created'
        }
        order_request.amount = Decimal('19.999')

        razorpay_gateway.create_order(order_request)

        sent = mock_razorpay_client.return_value.order.create.call_args.kwargs['data']
        assert sent['amount'] == 2000

    def test_create_order_api_error(self, razorpay_gateway, mock_razorpay_client, order_request):
        mock_razorpay_client.return_value.order.create.side_effect = razorpay.errors.BadRequestError(
            'Authentication failed'
        )

        with pytest.raises(UpstreamError) as exc_info:
            razorpay_gateway.create_order(order_request)

        assert 'Authentication failed' in str(exc_info.value)

    def test_create_order_missing_credentials(self, mock_razorpay_client, order_request):
        gateway = RazorpayGateway(RazorpayConfig())

        with pytest.raises(ConfigurationError) as exc_info:
            gateway.create_order(order_request)

        assert exc_info.value.error_code == 'gateway_config_missing'
        mock_razorpay_client.return_value.order.create.assert_not_called()


class TestVerifyPayment:
    """Tests for checkout signature verification"""

    def test_verify_payment_success(self, razorpay_gateway, mock_razorpay_client):
        mock_razorpay_client.return_value.payment.fetch.return_value = {
            'id': 'pay_xyz',
            'order_id': 'order_abc',
            'amount': 49900,
            'status': 'captured',
            'created_at': 1700000000,
        }
        request = VerificationRequest(
            gateway='razorpay',
            order_id='order_abc',
            payment_id='pay_xyz',
            signature=sign('order_abc', 'pay_xyz'),
        )

        result = razorpay_gateway.verify_payment(request)

        assert result.success is True
        assert result.status == PaymentStatus.CAPTURED
        assert result.amount == 49900
        assert result.reference_id == 'pay_xyz'
        mock_razorpay_client.return_value.payment.fetch.assert_called_once_with('pay_xyz')

    def test_verify_payment_bad_signature(self, razorpay_gateway, mock_razorpay_client):
        request = VerificationRequest(
            gateway='razorpay', order_id='order_abc', payment_id='pay_xyz', signature='0000'
        )

        with pytest.raises(SignatureMismatchError):
            razorpay_gateway.verify_payment(request)

        mock_razorpay_client.return_value.payment.fetch.assert_not_called()

    @pytest.mark.parametrize('missing', ['order_id', 'payment_id', 'signature'])
    def test_verify_payment_missing_field(self, razorpay_gateway, missing):
        fields = {'order_id': 'order_abc', 'payment_id': 'pay_xyz', 'signature': sign('order_abc', 'pay_xyz')}
        fields[missing] = None

        with pytest.raises(ValidationError):
            razorpay_gateway.verify_payment(VerificationRequest(gateway='razorpay', **fields))

    def test_verify_payment_not_found(self, razorpay_gateway, mock_razorpay_client):
        mock_razorpay_client.return_value.payment.fetch.side_effect = razorpay.errors.BadRequestError(
            'The id provided does not exist'
        )
        request = VerificationRequest(
            gateway='razorpay', order_id='order_abc', payment_id='pay_xyz', signature=sign('order_abc', 'pay_xyz')
        )

        with pytest.raises(UpstreamError) as exc_info:
            razorpay_gateway.verify_payment(request)

        assert exc_info.value.error_code == 'payment_not_found'

    def test_verify_signature_without_secret(self, mock_razorpay_client):
        gateway = RazorpayGateway(RazorpayConfig(key_id='rzp_test_dummy_key'))

        with pytest.raises(ConfigurationError):
            gateway.verify_signature('order_abc', 'pay_xyz', 'sig')


class TestCheckStatus:

    def test_order_reference_fetches_order(self, razorpay_gateway, mock_razorpay_client):
        mock_razorpay_client.return_value.order.fetch.return_value = {
            'id': 'order_abc', 'amount': 49900, 'amount_paid': 49900, 'status': 'paid', 'created_at': 1700000000
        }

        result = razorpay_gateway.check_status('order_abc')

        assert result.success is True
        assert result.status == PaymentStatus.COMPLETED
        assert result.reference_id == 'order_abc'
        mock_razorpay_client.return_value.order.fetch.assert_called_once_with('order_abc')

    def test_payment_reference_fetches_payment(self, razorpay_gateway, mock_razorpay_client):
        mock_razorpay_client.return_value.payment.fetch.return_value = {
            'id': 'pay_xyz', 'amount': 49900, 'status': 'failed'
        }

        result = razorpay_gateway.check_status('pay_xyz')

        assert result.success is False
        assert result.status == PaymentStatus.FAILED

    def test_refund_not_supported(self, razorpay_gateway):
        with pytest.raises(GatewayException) as exc_info:
            razorpay_gateway.refund('pay_xyz', Decimal('10'))

        assert exc_info.value.error_code == 'refund_not_supported'


class TestWebhooks:
    """Tests for webhook verification and event mapping"""

    def _deliver(self, gateway, body, signature=None):
        raw_body = json.dumps(body).encode()
        headers = {'X-Razorpay-Signature': signature if signature is not None else webhook_signature(body)}
        return gateway.handle_webhook(raw_body, headers)

    def test_payment_captured(self, razorpay_gateway):
        body = {
            'event': 'payment.captured',
            'payload': {'payment': {'entity': {
                'id': 'pay_xyz', 'order_id': 'order_abc', 'amount': 49900, 'created_at': 1700000000
            }}},
        }

        result = self._deliver(razorpay_gateway, body)

        assert result.valid is True
        assert result.processed is True
        assert result.status == PaymentStatus.CAPTURED
        assert result.related_id == 'pay_xyz'
        assert result.amount == 49900
        assert result.data == {'order_id': 'order_abc'}

    def test_payment_authorized_is_completed(self, razorpay_gateway):
        body = {'event': 'payment.authorized', 'payload': {'payment': {'entity': {'id': 'pay_xyz'}}}}

        result = self._deliver(razorpay_gateway, body)

        assert result.status == PaymentStatus.COMPLETED
        assert result.success is True

    def test_payment_failed_carries_reason(self, razorpay_gateway):
        body = {
            'event': 'payment.failed',
            'payload': {'payment': {'entity': {'id': 'pay_xyz', 'error_description': 'Card declined'}}},
        }

        result = self._deliver(razorpay_gateway, body)

        assert result.status == PaymentStatus.FAILED
        assert result.success is False
        assert result.reason == 'Card declined'

    def test_refund_created(self, razorpay_gateway):
        body = {
            'event': 'refund.created',
            'payload': {'refund': {'entity': {'id': 'rfnd_1', 'payment_id': 'pay_xyz', 'amount': 1000}}},
        }

        result = self._deliver(razorpay_gateway, body)

        assert result.status == PaymentStatus.REFUNDED
        assert result.related_id == 'rfnd_1'
        assert result.data == {'payment_id': 'pay_xyz'}

    def test_unknown_event_not_processed(self, razorpay_gateway):
        result = self._deliver(razorpay_gateway, {'event': 'order.paid', 'payload': {}})

        assert result.valid is True
        assert result.processed is False

    def test_invalid_signature(self, razorpay_gateway):
        result = self._deliver(razorpay_gateway, {'event': 'payment.captured'}, signature='bad')

        assert result.valid is False
        assert result.processed is False

    def test_missing_signature(self, razorpay_gateway):
        result = razorpay_gateway.handle_webhook(b'{"event": "payment.captured"}', {})

        assert result.valid is False
        assert result.message == 'Missing signature'

    def test_malformed_body_never_raises(self, razorpay_gateway):
        result = razorpay_gateway.handle_webhook(b'not json', {'X-Razorpay-Signature': 'abc'})

        assert result.valid is False
        assert 'Invalid JSON' in result.message

    def test_dedicated_webhook_secret(self, mock_razorpay_client):
        gateway = RazorpayGateway(RazorpayConfig(
            key_id='rzp_test_dummy_key', key_secret='s3cr3t', webhook_secret='whsec_test_secret'
        ))
        body = {'event': 'payment.captured', 'payload': {'payment': {'entity': {'id': 'pay_xyz'}}}}

        assert self._deliver(gateway, body, webhook_signature(body, 'whsec_test_secret')).valid is True
        assert self._deliver(gateway, body, webhook_signature(body, 's3cr3t')).valid is False
