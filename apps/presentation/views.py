import logging
from django.contrib.auth import authenticate
from django.db.models import Q
from django.utils.dateparse import parse_datetime
from rest_framework import viewsets, mixins, status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes
from apps.domain.exceptions import SigningError
from apps.domain.models import AuditEventType, DocumentTemplate, SigningRequest, SignedDocument
from apps.presentation.serializers import (
    DocumentTemplateSerializer, SigningRequestSerializer, SigningRequestCreateSerializer,
    VoidRequestSerializer, SignedDocumentSerializer, AuditLogEntrySerializer
)
from apps.presentation.permissions import IsAdminRole, IsAdminOrReadOnly, is_admin
from apps.application.services.audit_service import AuditLogService
from apps.application.services.signed_document_recorder import SignedDocumentRecorder
from apps.application.services.signing_service import SigningService
from apps.application.services.template_service import TemplateService
from apps.infrastructure.services.artifact_storage import SignatureArtifactStorage
from apps.presentation.alerts import get_signing_alerts, get_signing_metrics
from apps.presentation.utils import error_response, signing_error_response, get_client_info

logger = logging.getLogger('apps')


def _parse_date_param(request, name):
    value = request.query_params.get(name)
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise SigningError(f'Invalid {name}, expected an ISO 8601 datetime')
    return parsed


def _invalid_id_param(request, names):
    for name in names:
        value = request.query_params.get(name)
        if value and not value.isdigit():
            return error_response(f'{name} must be a positive integer', status.HTTP_400_BAD_REQUEST)
    return None


@extend_schema(
    summary='Obtain an authentication token',
    description='Authenticates a user with username and password and returns a token. Send it as "Authorization: Token <token>" on the other endpoints.',
    tags=['Authentication'],
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'username': {'type': 'string', 'example': 'coordinator'},
                'password': {'type': 'string', 'format': 'password', 'example': 'secret123'}
            },
            'required': ['username', 'password']
        }
    },
    responses={
        200: {
            'type': 'object',
            'properties': {
                'token': {'type': 'string', 'example': '9944b09199c62bcf9418ad846dd0e4bbdfc6ee4b'}
            }
        },
        400: {'type': 'object', 'description': 'Missing fields or invalid credentials'}
    },
)
@api_view(['POST'])
@permission_classes([AllowAny])
def custom_obtain_auth_token(request):
    username = request.data.get('username')
    password = request.data.get('password')

    if username is None or password is None:
        return error_response('Please provide username and password', status.HTTP_400_BAD_REQUEST)

    user = authenticate(username=username, password=password)

    if not user:
        return error_response('Invalid credentials', status.HTTP_400_BAD_REQUEST)

    token, created = Token.objects.get_or_create(user=user)
    return Response({'token': token.key}, status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(
        summary='List document templates',
        description='Active templates ordered by sort order. Admins can pass include_inactive=true.',
        tags=['Templates'],
        parameters=[
            OpenApiParameter('category', OpenApiTypes.STR, description='Only templates in this category'),
            OpenApiParameter('include_inactive', OpenApiTypes.BOOL, description='Include deactivated templates (admin only)'),
        ],
    ),
    create=extend_schema(summary='Create a template', tags=['Templates']),
    retrieve=extend_schema(summary='Get a template', tags=['Templates']),
    update=extend_schema(summary='Update a template', tags=['Templates']),
    partial_update=extend_schema(summary='Update template metadata', tags=['Templates']),
    destroy=extend_schema(
        summary='Deactivate a template',
        description='Templates are never deleted; this hides the template from new signing requests.',
        tags=['Templates'],
        responses={200: DocumentTemplateSerializer},
    ),
)
class TemplateViewSet(viewsets.ModelViewSet):
    serializer_class = DocumentTemplateSerializer
    permission_classes = [IsAuthenticated, IsAdminOrReadOnly]

    def get_queryset(self):
        include_inactive = (
            self.action != 'list'
            or (self.request.query_params.get('include_inactive') == 'true' and is_admin(self.request.user))
        )
        queryset = DocumentTemplate.objects.all().order_by('sort_order', 'name')
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        return queryset

    def perform_create(self, serializer):
        service = TemplateService()
        serializer.instance = service.create_template(serializer.validated_data, created_by=self.request.user)

    def update(self, request, *args, **kwargs):
        try:
            return super().update(request, *args, **kwargs)
        except SigningError as e:
            return signing_error_response(e)

    def perform_update(self, serializer):
        service = TemplateService()
        serializer.instance = service.update_template(serializer.instance, serializer.validated_data)

    def destroy(self, request, *args, **kwargs):
        service = TemplateService()
        template = service.deactivate_template(self.get_object())
        return Response(DocumentTemplateSerializer(template).data, status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(
        summary='List signing requests',
        description='Admins see every request and can filter; other users only see requests addressed to them.',
        tags=['Signing Requests'],
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, description='pending, sent, viewed, signed, declined, expired or voided'),
            OpenApiParameter('recipient_email', OpenApiTypes.STR),
            OpenApiParameter('recipient_user_id', OpenApiTypes.INT),
        ],
    ),
    retrieve=extend_schema(summary='Get a signing request', tags=['Signing Requests']),
)
class SigningRequestViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = SigningRequestSerializer
    permission_classes = [IsAuthenticated]
    admin_actions = (
        'create', 'send', 'remind', 'void', 'audit_log', 'certificate',
        'expire_overdue', 'metrics', 'alerts',
    )

    def get_permissions(self):
        if self.action in self.admin_actions:
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def get_queryset(self):
        user = self.request.user
        queryset = SigningRequest.objects.select_related('template').order_by('-created_at')

        if not is_admin(user):
            own = Q(recipient_user=user)
            if user.email:
                # Email only matches requests not linked to another account
                own |= Q(recipient_user__isnull=True, recipient_email__iexact=user.email)
            return queryset.filter(own)

        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('recipient_email'):
            queryset = queryset.filter(recipient_email__iexact=params['recipient_email'])
        if params.get('recipient_user_id'):
            queryset = queryset.filter(recipient_user_id=params['recipient_user_id'])
        return queryset

    def list(self, request, *args, **kwargs):
        invalid = _invalid_id_param(request, ['recipient_user_id'])
        if invalid:
            return invalid
        return super().list(request, *args, **kwargs)

    @extend_schema(
        summary='Create a signing request',
        description='Mints an access token for the recipient. expiry_days defaults to 30; null means the link never expires. With send_email the link is emailed straight away.',
        tags=['Signing Requests'],
        request=SigningRequestCreateSerializer,
        responses={201: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Service agreement',
                value={
                    'template_id': 1,
                    'recipient_email': 'jane.citizen@example.com.au',
                    'recipient_name': 'Jane Citizen',
                    'access_method': 'email_link',
                    'expiry_days': 14,
                    'send_email': True
                }
            ),
        ],
    )
    def create(self, request, *args, **kwargs):
        serializer = SigningRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        service = SigningService()
        try:
            signing_request = service.create_signing_request(
                sent_by=request.user,
                client_info=get_client_info(request),
                **serializer.validated_data
            )
        except SigningError as e:
            return signing_error_response(e)
        except Exception as e:
            logger.error(f'Error creating signing request: {str(e)}')
            return error_response('Failed to create signing request', status.HTTP_500_INTERNAL_SERVER_ERROR, {'detail': str(e)})

        return Response({
            'request': SigningRequestSerializer(signing_request).data,
            'signing_link': service.generate_signing_link(signing_request.access_token),
        }, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary='Send the signing link',
        description='Emails the signing link to the recipient and moves the request from pending to sent. A delivery failure leaves it pending.',
        tags=['Signing Requests'],
        request=None,
        responses={200: SigningRequestSerializer, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT, 502: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=['post'])
    def send(self, request, pk=None):
        signing_request = self.get_object()
        try:
            service = SigningService()
            signing_request = service.send_request(signing_request, sent_by=request.user, client_info=get_client_info(request))
            return Response(SigningRequestSerializer(signing_request).data, status=status.HTTP_200_OK)
        except SigningError as e:
            return signing_error_response(e)
        except Exception as e:
            logger.error(f'Error sending signing request {signing_request.id}: {str(e)}')
            return error_response('Failed to send signing request', status.HTTP_500_INTERNAL_SERVER_ERROR, {'detail': str(e)})

    @extend_schema(
        summary='Send a reminder',
        description='Re-sends the signing link for an open request and bumps its reminder count.',
        tags=['Signing Requests'],
        request=None,
        responses={200: SigningRequestSerializer, 400: OpenApiTypes.OBJECT, 502: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=['post'])
    def remind(self, request, pk=None):
        signing_request = self.get_object()
        try:
            service = SigningService()
            signing_request = service.send_reminder(signing_request, client_info=get_client_info(request))
            return Response(SigningRequestSerializer(signing_request).data, status=status.HTTP_200_OK)
        except SigningError as e:
            return signing_error_response(e)
        except Exception as e:
            logger.error(f'Error sending reminder for signing request {signing_request.id}: {str(e)}')
            return error_response('Failed to send reminder', status.HTTP_500_INTERNAL_SERVER_ERROR, {'detail': str(e)})

    @extend_schema(
        summary='Void a signing request',
        description='Cancels an open request. The reason is kept on the request and in the audit trail.',
        tags=['Signing Requests'],
        request=VoidRequestSerializer,
        responses={200: SigningRequestSerializer, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=['post'])
    def void(self, request, pk=None):
        signing_request = self.get_object()
        serializer = VoidRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            service = SigningService()
            signing_request = service.void_request(
                signing_request,
                voided_by=request.user,
                reason=serializer.validated_data['reason'],
                client_info=get_client_info(request),
            )
            return Response(SigningRequestSerializer(signing_request).data, status=status.HTTP_200_OK)
        except SigningError as e:
            return signing_error_response(e)

    @extend_schema(
        summary='Audit trail of a signing request',
        description='Every recorded event for the request in chronological order.',
        tags=['Audit'],
        responses={200: AuditLogEntrySerializer(many=True)},
    )
    @action(detail=True, methods=['get'], url_path='audit-log')
    def audit_log(self, request, pk=None):
        signing_request = self.get_object()
        entries = AuditLogService().get_audit_log(signing_request.id)
        return Response({
            'signing_request_id': signing_request.id,
            'events': AuditLogEntrySerializer(entries, many=True).data,
        }, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Completion certificate data',
        description='Timeline summary built from the audit trail, plus the integrity details of the signed document when there is one.',
        tags=['Audit'],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=['get'])
    def certificate(self, request, pk=None):
        signing_request = self.get_object()
        certificate = AuditLogService().generate_certificate_data(signing_request.id)

        signed_document = SignedDocument.objects.filter(signing_request=signing_request).first()
        if signed_document:
            certificate['integrity'] = {
                'documentHash': signed_document.document_hash,
                'hashMethod': signed_document.hash_method,
                'weakIntegrity': signed_document.is_weak_integrity,
                'validUntil': signed_document.valid_until.isoformat() if signed_document.valid_until else None,
            }

        return Response(certificate, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Expire overdue requests',
        description='Moves every open request whose expiry date has passed to expired. Access through the signing link does this lazily as well.',
        tags=['Signing Requests'],
        request=None,
        responses={200: {'type': 'object', 'properties': {'expired': {'type': 'integer'}}}},
    )
    @action(detail=False, methods=['post'], url_path='expire-overdue')
    def expire_overdue(self, request):
        expired = SigningService().expire_overdue_requests()
        return Response({'expired': expired}, status=status.HTTP_200_OK)

    @extend_schema(
        summary='My open signing requests',
        description='Requests still waiting for the current user to sign.',
        tags=['Signing Requests'],
        responses={200: SigningRequestSerializer(many=True)},
    )
    @action(detail=False, methods=['get'])
    def pending(self, request):
        requests = SigningService().get_pending_requests_for_user(request.user)
        return Response(SigningRequestSerializer(requests, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Signing request alerts',
        description='Open requests past their expiry date, about to expire, or untouched for a week.',
        tags=['Signing Requests'],
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'alerts': {'type': 'array'},
                    'count': {'type': 'integer'},
                },
            },
        },
    )
    @action(detail=False, methods=['get'])
    def alerts(self, request):
        alerts = get_signing_alerts()
        return Response({'alerts': alerts, 'count': len(alerts)}, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Signing request metrics',
        description='Status breakdown, signature rate, average time to sign and how many open requests expire soon.',
        tags=['Signing Requests'],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=['get'])
    def metrics(self, request):
        return Response(get_signing_metrics(), status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(
        summary='List signed documents',
        tags=['Signed Documents'],
        parameters=[
            OpenApiParameter('signer_user_id', OpenApiTypes.INT),
            OpenApiParameter('template_id', OpenApiTypes.INT),
        ],
    ),
    retrieve=extend_schema(summary='Get a signed document', tags=['Signed Documents']),
)
class SignedDocumentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SignedDocumentSerializer
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action == 'verify':
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def get_queryset(self):
        user = self.request.user
        queryset = SignedDocument.objects.select_related('template').order_by('-signed_at')

        if not is_admin(user):
            own = Q(signer_user=user)
            if user.email:
                own |= Q(signer_user__isnull=True, signer_email__iexact=user.email)
            return queryset.filter(own)

        params = self.request.query_params
        if params.get('signer_user_id'):
            queryset = queryset.filter(signer_user_id=params['signer_user_id'])
        if params.get('template_id'):
            queryset = queryset.filter(template_id=params['template_id'])
        return queryset

    def list(self, request, *args, **kwargs):
        invalid = _invalid_id_param(request, ['signer_user_id', 'template_id'])
        if invalid:
            return invalid
        return super().list(request, *args, **kwargs)

    @extend_schema(
        summary='Verify document integrity',
        description='Recomputes the document hash from the stored signature artifact and compares it with the recorded one.',
        tags=['Signed Documents'],
        request=None,
        responses={200: OpenApiTypes.OBJECT, 500: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=['get'])
    def verify(self, request, pk=None):
        signed_document = self.get_object()
        artifact = None
        if signed_document.hash_method == SignedDocument.HASH_ARTIFACT:
            try:
                artifact = SignatureArtifactStorage().read(signed_document.signed_document_path)
            except OSError as e:
                logger.error(f'Error reading artifact for signed document {signed_document.id}: {str(e)}')
                return error_response('Signature artifact could not be read', status.HTTP_500_INTERNAL_SERVER_ERROR, {'detail': str(e)})

        valid = SignedDocumentRecorder().verify_document_hash(signed_document, artifact)
        if not valid:
            logger.warning(f'Integrity check failed for signed document {signed_document.id}')

        return Response({
            'id': signed_document.id,
            'document_hash': signed_document.document_hash,
            'hash_method': signed_document.hash_method,
            'weak_integrity': signed_document.is_weak_integrity,
            'valid': valid,
        }, status=status.HTTP_200_OK)


class AuditViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, IsAdminRole]

    @extend_schema(
        summary='Audit statistics',
        description='Total events, counts per event type and the most recent activity.',
        tags=['Audit'],
        parameters=[
            OpenApiParameter('start_date', OpenApiTypes.DATETIME),
            OpenApiParameter('end_date', OpenApiTypes.DATETIME),
        ],
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=['get'])
    def statistics(self, request):
        try:
            stats = AuditLogService().get_statistics(
                start_date=_parse_date_param(request, 'start_date'),
                end_date=_parse_date_param(request, 'end_date'),
            )
        except SigningError as e:
            return signing_error_response(e)

        stats['recent_activity'] = AuditLogEntrySerializer(stats['recent_activity'], many=True).data
        return Response(stats, status=status.HTTP_200_OK)

    @extend_schema(
        summary='Audit events by type',
        description='Most recent first.',
        tags=['Audit'],
        parameters=[
            OpenApiParameter('event_type', OpenApiTypes.STR, required=True),
            OpenApiParameter('start_date', OpenApiTypes.DATETIME),
            OpenApiParameter('end_date', OpenApiTypes.DATETIME),
            OpenApiParameter('limit', OpenApiTypes.INT),
        ],
        responses={200: AuditLogEntrySerializer(many=True), 400: OpenApiTypes.OBJECT},
    )
    @action(detail=False, methods=['get'])
    def events(self, request):
        event_type = request.query_params.get('event_type')
        if event_type not in AuditEventType.values:
            return error_response('A valid event_type is required', status.HTTP_400_BAD_REQUEST, {'allowed': AuditEventType.values})

        limit = request.query_params.get('limit')
        if limit is not None and (not limit.isdigit() or int(limit) == 0):
            return error_response('limit must be a positive integer', status.HTTP_400_BAD_REQUEST)

        try:
            entries = AuditLogService().get_audit_logs_by_type(
                event_type,
                start_date=_parse_date_param(request, 'start_date'),
                end_date=_parse_date_param(request, 'end_date'),
                limit=int(limit) if limit else None,
            )
        except SigningError as e:
            return signing_error_response(e)

        return Response(AuditLogEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)
