import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    name = "payments"

    def ready(self):
        """
        Warn about gateways whose credentials are missing.
        Operations on those gateways fail individually with ConfigurationError.
        """
        from .conf import PHONEPE_AUTH_OAUTH, load_payment_settings

        payment_settings = load_payment_settings()
        phonepe = payment_settings.phonepe

        required = {
            'razorpay': (payment_settings.razorpay.key_id, payment_settings.razorpay.key_secret),
            'cashfree': (payment_settings.cashfree.app_id, payment_settings.cashfree.secret_key),
            'phonepe': (
                (phonepe.client_id, phonepe.client_secret)
                if phonepe.auth_mode == PHONEPE_AUTH_OAUTH
                else (phonepe.merchant_id, phonepe.salt_key)
            ),
        }
        for gateway, credentials in required.items():
            if not all(credentials):
                logger.warning(f"{gateway} credentials not configured; {gateway} operations will fail")
