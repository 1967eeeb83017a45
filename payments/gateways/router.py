"""
Gateway router.

Dispatches generic requests to the adapter named by their ``gateway`` field.
The router owns no state beyond the adapter table and validates the
discriminator before any adapter is called.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Union

from .base import (
    BasePaymentGateway,
    Gateway,
    PaymentOrder,
    PaymentOrderRequest,
    RefundResult,
    UnsupportedGatewayError,
    ValidationError,
    VerificationRequest,
    VerificationResult,
    WebhookResult,
)

logger = logging.getLogger(__name__)


def _positive_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be a positive number")
    return amount


class GatewayRouter:
    """
    Uniform entry point used by the HTTP layer.

    Args:
        gateways: Adapter per gateway
        currency: The single currency orders may be created in
    """

    def __init__(self, gateways: Mapping[Gateway, BasePaymentGateway], currency: str = 'INR'):
        self._gateways: Dict[Gateway, BasePaymentGateway] = dict(gateways)
        self.currency = currency

    def available_gateways(self) -> List[str]:
        return [gateway.value for gateway in self._gateways]

    def resolve(self, gateway_name: Optional[Union[str, Gateway]]) -> BasePaymentGateway:
        """
        Map a gateway name to its adapter.

        Raises:
            UnsupportedGatewayError: If the name is empty, unknown or not configured
        """
        if isinstance(gateway_name, Gateway):
            key = gateway_name
        else:
            normalized = str(gateway_name or '').lower().strip()
            try:
                key = Gateway(normalized)
            except ValueError:
                key = None

        if key is None or key not in self._gateways:
            supported = ', '.join(self.available_gateways())
            raise UnsupportedGatewayError(
                message=f"Unsupported payment gateway: {gateway_name}. Supported gateways: {supported}"
            )
        return self._gateways[key]

    def create_order(self, request: PaymentOrderRequest) -> PaymentOrder:
        gateway = self.resolve(request.gateway)

        amount = _positive_amount(request.amount)

        currency = (request.currency or self.currency).upper()
        if currency != self.currency:
            raise ValidationError(f"Unsupported currency: {currency}. Only {self.currency} is accepted")

        request.amount = amount
        request.currency = currency
        return gateway.create_order(request)

    def verify_payment(self, request: VerificationRequest) -> VerificationResult:
        return self.resolve(request.gateway).verify_payment(request)

    def get_status(self, gateway_name: str, reference: str) -> VerificationResult:
        return self.resolve(gateway_name).check_status(reference)

    def refund(
        self,
        gateway_name: str,
        reference: str,
        amount: Union[Decimal, int, float],
        reason: Optional[str] = None
    ) -> RefundResult:
        gateway = self.resolve(gateway_name)
        if not reference:
            raise ValidationError("Refund requires a payment reference")
        return gateway.refund(reference, _positive_amount(amount), reason)

    def handle_webhook(self, gateway_name: str, raw_body, headers) -> WebhookResult:
        """Never raises; unknown gateways yield an invalid result."""
        try:
            gateway = self.resolve(gateway_name)
        except UnsupportedGatewayError as e:
            logger.warning("Webhook for unsupported gateway", extra={'gateway': gateway_name})
            return WebhookResult(valid=False, message=e.message)
        return gateway.handle_webhook(raw_body, headers)
