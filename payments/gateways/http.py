"""
Outbound JSON-over-HTTP helper shared by the REST-based gateways.

No retries: a failed call surfaces to the caller as UpstreamError.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import requests
from requests.exceptions import RequestException, Timeout

from .base import UpstreamError

logger = logging.getLogger(__name__)


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    json_body: Optional[Dict[str, Any]] = None,
    form_body: Optional[Dict[str, Any]] = None,
    timeout: float = 30.0,
    raise_for_status: bool = True
) -> Tuple[int, Dict[str, Any]]:
    """
    Perform a request and decode the JSON reply.

    Returns:
        ``(status_code, data)``

    Raises:
        UpstreamError: On timeout, transport failure, a non-JSON reply, or a
            non-2xx status when ``raise_for_status`` is set
    """
    try:
        response = session.request(
            method.upper(),
            url,
            headers=headers,
            json=json_body,
            data=form_body,
            timeout=timeout
        )
    except Timeout as e:
        logger.error("Gateway request timed out", extra={'method': method, 'url': url})
        raise UpstreamError(message=f"Request to {url} timed out", error_code='upstream_timeout') from e
    except RequestException as e:
        logger.error("Gateway request failed", extra={'method': method, 'url': url, 'error': str(e)})
        raise UpstreamError(message=f"Request to {url} failed: {e}") from e

    try:
        data = response.json()
    except ValueError as e:
        logger.error(
            "Invalid JSON from gateway",
            extra={'method': method, 'url': url, 'status_code': response.status_code}
        )
        raise UpstreamError(
            message=f"Invalid response from gateway (HTTP {response.status_code})"
        ) from e

    if not isinstance(data, dict):
        data = {'data': data}

    if raise_for_status:
        raise_for_upstream_status(method, url, response.status_code, data)

    return response.status_code, data


def raise_for_upstream_status(method: str, url: str, status_code: int, data: Dict[str, Any]) -> None:
    """Raise UpstreamError for a non-2xx reply, keeping the upstream message."""
    if 200 <= status_code < 300:
        return
    message = upstream_message(data) or f"HTTP {status_code}"
    logger.warning(
        "Gateway returned an error status",
        extra={'method': method, 'url': url, 'status_code': status_code, 'upstream_message': message}
    )
    raise UpstreamError(message=message, gateway_response=data)


def upstream_message(data: Dict[str, Any]) -> Optional[str]:
    """Extract a human-readable message from a gateway error payload."""
    error = data.get('error')
    if isinstance(error, dict):
        return error.get('description') or error.get('message')
    return data.get('message') or (error if isinstance(error, str) else None) or data.get('code')
