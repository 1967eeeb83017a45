from decimal import Decimal

from rest_framework import serializers

from .gateways.base import Customer, PaymentOrderRequest, VerificationRequest


EMAIL_REGEX = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
PHONE_REGEX = r'^[6-9]\d{9}$'


class CustomerSerializer(serializers.Serializer):
    """
    Customer details attached to an order.
    Phone must be a 10 digit Indian mobile number.
    """
    name = serializers.CharField(max_length=255, trim_whitespace=True)
    email = serializers.RegexField(
        EMAIL_REGEX,
        max_length=254,
        error_messages={'invalid': 'Invalid email format'}
    )
    phone = serializers.RegexField(
        PHONE_REGEX,
        error_messages={'invalid': 'Invalid phone number (must be 10 digits starting with 6-9)'}
    )


class CreateOrderSerializer(serializers.Serializer):
    """
    Serializer for creating a payment order.

    The gateway name is validated by the router, not here, so an unknown
    gateway is reported as unsupported rather than as a field error.
    """
    gateway = serializers.CharField(max_length=32)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=3,
        min_value=Decimal('1'),
        error_messages={'min_value': 'Minimum amount is 1'}
    )
    currency = serializers.CharField(max_length=3, required=False, default='INR')
    customer = CustomerSerializer()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)

    def to_order_request(self) -> PaymentOrderRequest:
        data = self.validated_data
        return PaymentOrderRequest(
            gateway=data['gateway'],
            amount=data['amount'],
            currency=data.get('currency') or 'INR',
            customer=Customer(**data['customer']),
            description=data.get('description') or None,
        )


class VerifyPaymentSerializer(serializers.Serializer):
    """
    Gateway-specific payment proof.
    Which fields are required depends on the gateway and is checked by the adapter.
    """
    gateway = serializers.CharField(max_length=32)
    order_id = serializers.CharField(max_length=128, required=False)
    payment_id = serializers.CharField(max_length=128, required=False)
    signature = serializers.CharField(max_length=256, required=False)
    transaction_id = serializers.CharField(max_length=128, required=False)

    def to_verification_request(self) -> VerificationRequest:
        return VerificationRequest(**self.validated_data)


class RefundSerializer(serializers.Serializer):
    """Serializer for refunding a payment"""
    gateway = serializers.CharField(max_length=32)
    reference = serializers.CharField(max_length=128)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
