"""
URL configuration for payments app.

Defines API endpoints for:
- Order creation
- Payment verification
- Status polling
- Refunds
- Gateway webhooks
"""

from django.urls import path
from .views import (
    CreateOrderView,
    VerifyPaymentView,
    PaymentStatusView,
    RefundView,
)
from .webhooks import handle_gateway_webhook


urlpatterns = [
    path(
        'payment/create-order/',
        CreateOrderView.as_view(),
        name='payment-create-order'
    ),
    path(
        'payment/verify/',
        VerifyPaymentView.as_view(),
        name='payment-verify'
    ),
    path(
        'payment/status/<str:gateway>/<str:reference>/',
        PaymentStatusView.as_view(),
        name='payment-status'
    ),
    path(
        'payment/refund/',
        RefundView.as_view(),
        name='payment-refund'
    ),

    # Webhook endpoints
    path(
        'webhook/<str:gateway_name>/',
        handle_gateway_webhook,
        name='payment-webhook'
    ),
]
