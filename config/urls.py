"""
URL configuration for the payment gateway backend.
"""
from django.urls import include, path

from payments.views import HealthView

urlpatterns = [
    path('health/', HealthView.as_view(), name='health'),
    path('api/', include('payments.urls')),
]
