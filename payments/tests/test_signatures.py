"""
Tests for signature and encoding primitives.

Expected values are computed independently with hashlib/hmac so the
primitives are checked against the gateway formulas, not against themselves.
"""

import base64
import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from payments.gateways.base import ValidationError, to_minor_units
from payments.gateways.signatures import (
    basic_auth_token,
    canonical_json,
    cashfree_webhook_signature,
    decode_payload,
    encode_payload,
    phonepe_x_verify,
    razorpay_payment_signature,
    razorpay_webhook_signature,
    secure_compare,
    verify_razorpay_payment_signature,
)


class TestRazorpaySignature:
    """Tests for the checkout signature"""

    def test_known_vector(self):
        expected = hmac.new(b's3cr3t', b'order_abc|pay_xyz', hashlib.sha256).hexdigest()

        assert razorpay_payment_signature('order_abc', 'pay_xyz', 's3cr3t') == expected
        assert verify_razorpay_payment_signature('order_abc', 'pay_xyz', expected, 's3cr3t') is True

    def test_rejects_wrong_signature(self):
        assert verify_razorpay_payment_signature('order_abc', 'pay_xyz', '0000', 's3cr3t') is False

    @pytest.mark.parametrize('position', [0, 17, 63])
    def test_rejects_single_character_mutation(self, position):
        signature = razorpay_payment_signature('order_abc', 'pay_xyz', 's3cr3t')
        mutated_char = '0' if signature[position] != '0' else '1'
        mutated = signature[:position] + mutated_char + signature[position + 1:]

        assert verify_razorpay_payment_signature('order_abc', 'pay_xyz', mutated, 's3cr3t') is False

    def test_rejects_wrong_secret(self):
        signature = razorpay_payment_signature('order_abc', 'pay_xyz', 's3cr3t')

        assert verify_razorpay_payment_signature('order_abc', 'pay_xyz', signature, 'other') is False

    def test_webhook_signature_uses_compact_json(self):
        body = {'event': 'payment.captured', 'payload': {'amount': 100}}
        message = b'{"event":"payment.captured","payload":{"amount":100}}'
        expected = hmac.new(b's3cr3t', message, hashlib.sha256).hexdigest()

        assert razorpay_webhook_signature(body, 's3cr3t') == expected


class TestPhonePeSignature:
    """Tests for the X-VERIFY checksum"""

    def test_known_vector(self):
        expected = hashlib.sha256(b'eyJhIjoxfQ==SALT1').hexdigest() + '###1'

        assert phonepe_x_verify('eyJhIjoxfQ==', 'SALT1', '1') == expected

    def test_deterministic(self):
        assert phonepe_x_verify('payload', 'SALT1', '1') == phonepe_x_verify('payload', 'SALT1', '1')

    def test_any_input_change_changes_signature(self):
        base = phonepe_x_verify('eyJhIjoxfQ==', 'SALT1', '1')

        assert phonepe_x_verify('eyJhIjoyfQ==', 'SALT1', '1') != base
        assert phonepe_x_verify('eyJhIjoxfQ==', 'SALT2', '1') != base
        assert phonepe_x_verify('eyJhIjoxfQ==', 'SALT1', '2') != base

    def test_encode_payload(self):
        assert encode_payload({'a': 1}) == 'eyJhIjoxfQ=='
        assert decode_payload('eyJhIjoxfQ==') == {'a': 1}

    def test_decode_payload_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_payload('not base64!!')

    def test_basic_auth_token(self):
        assert basic_auth_token('user', 'pass') == base64.b64encode(b'user:pass').decode()


class TestCashfreeSignature:

    def test_timestamp_and_body(self):
        raw_body = '{"type":"PAYMENT_SUCCESS_WEBHOOK"}'
        digest = hmac.new(b'cf_secret', b'1700000000' + raw_body.encode(), hashlib.sha256).digest()

        assert cashfree_webhook_signature('1700000000', raw_body, 'cf_secret') == base64.b64encode(digest).decode()

    def test_bytes_and_str_body_agree(self):
        raw_body = '{"a":1}'

        assert cashfree_webhook_signature('1', raw_body, 'k') == cashfree_webhook_signature('1', raw_body.encode(), 'k')


class TestHelpers:

    def test_canonical_json_matches_compact_serialization(self):
        body = {'b': 1, 'a': [1, 2], 'name': 'Zoë'}

        assert canonical_json(body) == '{"b":1,"a":[1,2],"name":"Zoë"}'
        assert json.loads(canonical_json(body)) == body

    def test_secure_compare(self):
        assert secure_compare('abc', 'abc') is True
        assert secure_compare('abc', 'abd') is False
        assert secure_compare('abc', None) is False
        assert secure_compare(None, None) is False


class TestMinorUnits:
    """Tests for rupee -> paise conversion"""

    @pytest.mark.parametrize('amount, expected', [
        (499, 49900),
        (19.999, 2000),
        (Decimal('10.005'), 1001),
        ('1.5', 150),
        (0, 0),
    ])
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(amount) == expected

    def test_invalid_amount(self):
        with pytest.raises(ValidationError):
            to_minor_units('abc')
