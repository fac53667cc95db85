import logging
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes
from apps.domain.exceptions import SigningError
from apps.application.services.signing_service import SigningService
from apps.presentation.serializers import (
    PublicSigningRequestSerializer, SignSubmissionSerializer, DeclineSerializer,
    SignedDocumentSummarySerializer
)
from apps.presentation.utils import error_response, signing_error_response, get_client_info

logger = logging.getLogger('apps')

STATE_ERROR_SCHEMA = {
    'type': 'object',
    'properties': {
        'error': {'type': 'string', 'example': 'This document has already been signed'},
        'status_code': {'type': 'integer', 'example': 400},
        'status': {'type': 'string', 'example': 'signed', 'description': 'signed, expired, voided or declined'},
    }
}


def _request_body(request) -> dict:
    return request.data if isinstance(request.data, dict) else {}


def _view_document(request, token):
    service = SigningService()
    signing_request = service.access_by_token(token, client_info=get_client_info(request))
    return Response({
        'request': PublicSigningRequestSerializer(signing_request).data,
    }, status=status.HTTP_200_OK)


def _submit_signature(request, token):
    body = _request_body(request)
    service = SigningService()
    signed_document = service.complete_signing(
        token,
        body.get('signature'),
        signature_type=body.get('signature_type') or 'drawn',
        client_info=get_client_info(request),
    )
    return Response({
        'success': True,
        'message': 'Document signed successfully',
        'signed_document': SignedDocumentSummarySerializer(signed_document).data,
    }, status=status.HTTP_200_OK)


@extend_schema(
    summary='Open or sign a document through a signing link',
    description=(
        'Public endpoint used by the recipient. GET returns the document to sign and records the view; '
        'POST submits the signature. The token in the URL is the only credential.'
    ),
    tags=['Public Signing'],
    request=SignSubmissionSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: STATE_ERROR_SCHEMA,
        404: {'type': 'object', 'properties': {'error': {'type': 'string', 'example': 'Invalid or expired signing link'}}},
    },
    examples=[
        OpenApiExample(
            'Typed signature',
            value={'signature': 'Jane Citizen', 'signature_type': 'typed'},
            request_only=True
        ),
    ],
)
@api_view(['GET', 'POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_signing(request, token):
    try:
        if request.method == 'POST':
            return _submit_signature(request, token)
        return _view_document(request, token)
    except SigningError as e:
        return signing_error_response(e)
    except Exception as e:
        logger.error(f'Error in public signing endpoint ({request.method}): {str(e)}')
        return error_response('Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)


@extend_schema(
    summary='Decline to sign',
    description='The recipient refuses to sign. The request is closed and the optional reason is kept in the audit trail.',
    tags=['Public Signing'],
    request=DeclineSerializer,
    responses={
        200: {'type': 'object', 'properties': {'status': {'type': 'string', 'example': 'declined'}}},
        400: STATE_ERROR_SCHEMA,
        404: OpenApiTypes.OBJECT,
    },
)
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def decline_signing(request, token):
    reason = _request_body(request).get('reason')
    if reason is not None and not isinstance(reason, str):
        return error_response('reason must be a string', status.HTTP_400_BAD_REQUEST)

    try:
        service = SigningService()
        signing_request = service.decline_request(
            token,
            reason=reason.strip() if reason else None,
            client_info=get_client_info(request),
        )
        return Response({'status': signing_request.status}, status=status.HTTP_200_OK)
    except SigningError as e:
        return signing_error_response(e)
    except Exception as e:
        logger.error(f'Error declining signing request: {str(e)}')
        return error_response('Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)
