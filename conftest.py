"""
Shared pytest fixtures.

Gateways are built from explicit PaymentSettings; upstream HTTP calls go to
a MagicMock session so no test touches the network.
"""

import json
from unittest.mock import MagicMock

import pytest

from payments.conf import CashfreeConfig, PaymentSettings, PhonePeConfig, RazorpayConfig
from payments.gateways.factory import reset_router


@pytest.fixture
def payment_settings():
    return PaymentSettings(
        public_base_url='https://pay.example.com',
        frontend_url='https://shop.example.com',
        http_timeout=5.0,
        razorpay=RazorpayConfig(
            key_id='rzp_test_dummy_key',
            key_secret='s3cr3t',
        ),
        phonepe=PhonePeConfig(
            merchant_id='MERCHANT1',
            salt_key='SALT1',
            salt_index='1',
            webhook_username='hookuser',
            webhook_password='hookpass',
            client_id='client_123',
            client_secret='client_secret_456',
            client_version='1',
        ),
        cashfree=CashfreeConfig(
            app_id='cf_app_id',
            secret_key='cf_secret',
        ),
    )


def make_response(data, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(data, Exception):
        response.json.side_effect = data
    else:
        response.json.return_value = data
    response.text = json.dumps(data) if not isinstance(data, Exception) else 'not json'
    return response


@pytest.fixture
def mock_session():
    """requests.Session stand-in; set ``request.return_value`` per test."""
    session = MagicMock()
    session.request.return_value = make_response({})
    return session


@pytest.fixture(autouse=True)
def fresh_router():
    reset_router()
    yield
    reset_router()


@pytest.fixture
def json_response():
    """Factory for mocked ``requests`` responses."""
    return make_response
