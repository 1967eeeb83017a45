import logging

from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .gateways.base import (
    ConfigurationError,
    GatewayException,
    PaymentStatus,
    SignatureMismatchError,
    UnsupportedGatewayError,
    UpstreamError,
    ValidationError,
)
from .gateways.factory import get_router, list_available_gateways
from .serializers import CreateOrderSerializer, RefundSerializer, VerifyPaymentSerializer

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnsupportedGatewayError, status.HTTP_400_BAD_REQUEST),
    (SignatureMismatchError, status.HTTP_400_BAD_REQUEST),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def gateway_error_response(exc: GatewayException) -> Response:
    """Map a gateway error onto an HTTP status, keeping the upstream message."""
    http_status = status.HTTP_400_BAD_REQUEST
    for error_class, mapped_status in ERROR_STATUS:
        if isinstance(exc, error_class):
            http_status = mapped_status
            break

    if http_status >= 500:
        logger.error("Payment operation failed", extra={'error_code': exc.error_code, 'error': exc.message})
    else:
        logger.warning("Payment request rejected", extra={'error_code': exc.error_code, 'error': exc.message})

    return Response(
        {'success': False, 'error': str(exc), 'error_code': exc.error_code},
        status=http_status
    )


class CreateOrderView(views.APIView):
    """
    Create a payment order with the requested gateway.

    POST /api/payment/create-order/
    Request body:
        - gateway (str): razorpay, phonepe or cashfree
        - amount (decimal): Amount in rupees
        - customer (object): name, email, phone
        - description (str, optional)

    Response:
        - data: PaymentOrder (amount in paise) with the gateway's follow-up
          action (checkout_key, redirect_url or payment_session_id)
        - 502 with success=False when the gateway rejected the order
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = get_router().create_order(serializer.to_order_request())
        except GatewayException as e:
            return gateway_error_response(e)

        if order.status == PaymentStatus.FAILED:
            logger.warning("Order creation failed upstream", extra={'gateway': order.gateway, 'order_id': order.order_id})
            return Response({'success': False, 'data': order.to_dict()}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({'success': True, 'data': order.to_dict()}, status=status.HTTP_201_CREATED)


class VerifyPaymentView(views.APIView):
    """
    Verify a completed payment.

    POST /api/payment/verify/
    Request body:
        - gateway (str)
        - order_id, payment_id, signature (Razorpay)
        - transaction_id or order_id (PhonePe)
        - order_id (Cashfree)
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = get_router().verify_payment(serializer.to_verification_request())
        except GatewayException as e:
            return gateway_error_response(e)

        return Response({'success': result.success, 'data': result.to_dict()}, status=status.HTTP_200_OK)


class PaymentStatusView(views.APIView):
    """
    Poll the gateway for the status of an order or transaction.

    GET /api/payment/status/<gateway>/<reference>/
    """
    permission_classes = [AllowAny]

    def get(self, request, gateway, reference):
        try:
            result = get_router().get_status(gateway, reference)
        except GatewayException as e:
            return gateway_error_response(e)

        return Response({'success': result.success, 'data': result.to_dict()}, status=status.HTTP_200_OK)


class RefundView(views.APIView):
    """
    Refund a payment.

    POST /api/payment/refund/
    Request body:
        - gateway (str)
        - reference (str): Transaction id (PhonePe) or order id (Cashfree)
        - amount (decimal): Amount in rupees
        - reason (str, optional)
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = get_router().refund(
                data['gateway'],
                data['reference'],
                data['amount'],
                reason=data.get('reason') or None
            )
        except GatewayException as e:
            return gateway_error_response(e)

        return Response({'success': result.success, 'data': result.to_dict()}, status=status.HTTP_200_OK)


class HealthView(views.APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            'status': 'ok',
            'message': 'Payment gateway backend is running',
            'gateways': list_available_gateways(),
        })
