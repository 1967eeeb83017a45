import logging
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .gateways.factory import get_router

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["POST"])
def handle_gateway_webhook(request, gateway_name):
    """
    Handle webhooks from any supported gateway.

    URL: /api/webhook/<gateway_name>/

    Signature headers by gateway:
    - razorpay: X-Razorpay-Signature
    - phonepe: Authorization (+ X-VERIFY in salt mode)
    - cashfree: X-Webhook-Signature, X-Webhook-Timestamp

    Always answers 200 so the gateway does not retry; the outcome is in the
    body. Signature checks happen inside the router before any status data
    is trusted.
    """
    try:
        result = get_router().handle_webhook(gateway_name, request.body, dict(request.headers))
    except Exception as e:
        logger.error(f"Error processing {gateway_name} webhook: {str(e)}", exc_info=True)
        return JsonResponse({'success': False, 'error': 'Internal error'}, status=200)

    if not result.valid:
        logger.warning(f"Rejected {gateway_name} webhook: {result.message}")
    else:
        # Persisting the outcome belongs to the caller of this app
        logger.info(
            f"Received {gateway_name} webhook: {result.event_type}",
            extra={'related_id': result.related_id, 'status': result.status.value if result.status else None}
        )

    return JsonResponse(
        {
            'success': result.valid and result.processed,
            'message': 'Webhook received' if result.valid else result.message,
            'data': result.to_dict(),
        },
        status=200
    )
