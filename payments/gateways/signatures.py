"""
Signature and encoding primitives for the supported gateways.

Pure functions only: no configuration, no I/O. Each adapter supplies its own
secrets. Outputs must match the gateways byte for byte.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Union


def canonical_json(obj: Any) -> str:
    """Compact JSON in insertion order, without ASCII escaping."""
    return json.dumps(obj, separators=(',', ':'), ensure_ascii=False)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode('utf-8')


def secure_compare(expected: Union[str, bytes, None], received: Union[str, bytes, None]) -> bool:
    """Constant-time equality; a missing value never matches."""
    if expected is None or received is None:
        return False
    return hmac.compare_digest(_to_bytes(expected), _to_bytes(received))


def sha256_hex(value: Union[str, bytes]) -> str:
    return hashlib.sha256(_to_bytes(value)).hexdigest()


def hmac_sha256_hex(message: Union[str, bytes], secret: str) -> str:
    return hmac.new(
        key=_to_bytes(secret),
        msg=_to_bytes(message),
        digestmod=hashlib.sha256
    ).hexdigest()


# Razorpay

def razorpay_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    return hmac_sha256_hex(f"{order_id}|{payment_id}", secret)


def verify_razorpay_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = razorpay_payment_signature(order_id, payment_id, secret)
    return secure_compare(expected, signature)


def razorpay_webhook_signature(body: Any, secret: str) -> str:
    return hmac_sha256_hex(canonical_json(body), secret)


# PhonePe

def encode_payload(payload: Any) -> str:
    """Base64 of the canonical JSON serialization."""
    return base64.b64encode(canonical_json(payload).encode('utf-8')).decode('ascii')


def decode_payload(encoded: str) -> Any:
    """
    Inverse of encode_payload.

    Raises:
        ValueError: If the input is not base64-encoded UTF-8 JSON
    """
    raw = base64.b64decode(_to_bytes(encoded), validate=True)
    return json.loads(raw.decode('utf-8'))


def phonepe_x_verify(payload: str, salt_key: str, salt_index: Union[str, int]) -> str:
    """X-VERIFY = SHA256(payload + saltKey) + '###' + saltIndex"""
    return f"{sha256_hex(payload + salt_key)}###{salt_index}"


def basic_auth_token(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode('utf-8')).decode('ascii')


# Cashfree

def cashfree_webhook_signature(timestamp: str, raw_body: Union[str, bytes], secret: str) -> str:
    """Base64 HMAC-SHA256 over timestamp + raw body (API version 2023-08-01)."""
    message = _to_bytes(timestamp) + _to_bytes(raw_body)
    digest = hmac.new(_to_bytes(secret), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')
