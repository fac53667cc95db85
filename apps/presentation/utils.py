from typing import Dict, Optional
from rest_framework.response import Response
from rest_framework import status
import logging
from apps.domain.exceptions import SigningError

logger = logging.getLogger('apps')


def error_response(
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: dict = None,
    state: Optional[str] = None
) -> Response:
    response_data = {
        'error': message,
        'status_code': status_code
    }

    if state:
        response_data['status'] = state

    if details:
        response_data['details'] = details

    if status_code >= 500:
        logger.error(f'Error response: {message} - {details}')
    else:
        logger.warning(f'Error response: {message} - {details}')

    return Response(response_data, status=status_code)


def signing_error_response(exc: SigningError) -> Response:
    return error_response(exc.message, exc.http_status, exc.details, exc.state)


def success_response(data: dict, status_code: int = status.HTTP_200_OK) -> Response:
    response_data = {
        'data': data,
        'status': status_code
    }

    return Response(response_data, status=status_code)


def get_client_info(request) -> Dict[str, str]:
    """
    Client address and agent for the audit trail.

    Behind a proxy the first hop of X-Forwarded-For is the client.
    """
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded_for and forwarded_for.split(',')[0].strip():
        ip = forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR') or 'unknown'

    client_info = {
        'ip': ip,
        'user_agent': request.META.get('HTTP_USER_AGENT') or 'unknown',
    }

    fingerprint = request.META.get('HTTP_X_BROWSER_FINGERPRINT')
    if fingerprint:
        client_info['fingerprint'] = fingerprint

    return client_info
