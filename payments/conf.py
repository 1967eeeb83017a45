"""
Payment configuration assembled once from Django settings.

Adapters receive these objects through their constructors and never read
settings or the environment themselves.
"""

from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings as django_settings


PHONEPE_AUTH_SALT = 'salt'
PHONEPE_AUTH_OAUTH = 'oauth'

PHONEPE_PRODUCTION_URL = 'https://api.phonepe.com/apis/hermes'
PHONEPE_SANDBOX_URL = 'https://api-preprod.phonepe.com/apis/pg-sandbox'
PHONEPE_TOKEN_URL = 'https://api.phonepe.com/apis/identity-manager/v1/oauth/token'


@dataclass(frozen=True)
class RazorpayConfig:
    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None


@dataclass(frozen=True)
class PhonePeConfig:
    auth_mode: str = PHONEPE_AUTH_SALT
    merchant_id: Optional[str] = None
    salt_key: Optional[str] = None
    salt_index: str = '1'
    webhook_username: Optional[str] = None
    webhook_password: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    client_version: str = '1'
    base_url: str = PHONEPE_PRODUCTION_URL
    token_url: str = PHONEPE_TOKEN_URL


@dataclass(frozen=True)
class CashfreeConfig:
    app_id: Optional[str] = None
    secret_key: Optional[str] = None
    api_version: str = '2023-08-01'
    is_sandbox: bool = True


@dataclass(frozen=True)
class PaymentSettings:
    public_base_url: str = 'http://localhost:8000'
    frontend_url: str = 'http://localhost:3000'
    currency: str = 'INR'
    http_timeout: float = 30.0
    razorpay: RazorpayConfig = field(default_factory=RazorpayConfig)
    phonepe: PhonePeConfig = field(default_factory=PhonePeConfig)
    cashfree: CashfreeConfig = field(default_factory=CashfreeConfig)

    def webhook_url(self, gateway: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/api/webhook/{gateway}/"

    def frontend_path(self, path: str) -> str:
        return f"{self.frontend_url.rstrip('/')}/{path.lstrip('/')}"


def load_payment_settings(settings=None) -> PaymentSettings:
    """
    Build PaymentSettings from Django settings.

    Missing credentials are left as None; the operation that needs them
    raises ConfigurationError instead of failing at startup.
    """
    settings = settings or django_settings

    def get(name, default=None):
        return getattr(settings, name, default)

    auth_mode = (get('PHONEPE_AUTH_MODE') or PHONEPE_AUTH_SALT).lower().strip()

    return PaymentSettings(
        public_base_url=get('PUBLIC_BASE_URL', 'http://localhost:8000'),
        frontend_url=get('FRONTEND_URL', 'http://localhost:3000'),
        currency=get('PAYMENT_CURRENCY', 'INR'),
        http_timeout=float(get('PAYMENT_HTTP_TIMEOUT', 30.0)),
        razorpay=RazorpayConfig(
            key_id=get('RAZORPAY_KEY_ID'),
            key_secret=get('RAZORPAY_KEY_SECRET'),
            webhook_secret=get('RAZORPAY_WEBHOOK_SECRET'),
        ),
        phonepe=PhonePeConfig(
            auth_mode=auth_mode,
            merchant_id=get('PHONEPE_MERCHANT_ID'),
            salt_key=get('PHONEPE_SALT_KEY'),
            salt_index=str(get('PHONEPE_SALT_INDEX') or '1'),
            webhook_username=get('PHONEPE_WEBHOOK_USERNAME'),
            webhook_password=get('PHONEPE_WEBHOOK_PASSWORD'),
            client_id=get('PHONEPE_CLIENT_ID'),
            client_secret=get('PHONEPE_CLIENT_SECRET'),
            client_version=str(get('PHONEPE_CLIENT_VERSION') or '1'),
            base_url=get('PHONEPE_BASE_URL') or PHONEPE_PRODUCTION_URL,
            token_url=get('PHONEPE_TOKEN_URL') or PHONEPE_TOKEN_URL,
        ),
        cashfree=CashfreeConfig(
            app_id=get('CASHFREE_APP_ID'),
            secret_key=get('CASHFREE_SECRET_KEY'),
            api_version=get('CASHFREE_API_VERSION') or '2023-08-01',
            is_sandbox=bool(get('CASHFREE_SANDBOX', True)),
        ),
    )
