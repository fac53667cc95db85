import logging
from typing import Dict, Optional
from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db.models import F, Q, QuerySet
from django.utils import timezone
from apps.domain.exceptions import (
    AlreadySigned, Expired, InvalidTransition, NotFound, SigningError, SigningValidationError,
    error_for_status,
)
from apps.domain.models import AuditEventType, SignedDocument, SigningRequest
from apps.domain.state_machine import (
    OPEN_STATUSES, SigningStatus, can_transition, ensure_transition, is_terminal, sources_for,
)
from apps.application.facades.notification_facade import NotificationFacade
from apps.application.services.audit_service import AuditLogService
from apps.application.services.hashing import HashingService
from apps.application.services.signed_document_recorder import SignedDocumentRecorder
from apps.application.services.template_service import TemplateService
from apps.application.services.token_service import TokenService
from apps.infrastructure.services.artifact_storage import SignatureArtifactStorage

logger = logging.getLogger('apps')

SIGNATURE_TYPES = ('drawn', 'typed', 'uploaded')


class SigningService:
    """
    Lifecycle of signing requests: creation, delivery, viewing, signing,
    declining, voiding and expiry.

    Every status change is a conditional update filtered on the statuses the
    transition graph allows as sources, so a decision made on a stale read can
    never overwrite a newer status.
    """

    def __init__(
        self,
        audit_service: Optional[AuditLogService] = None,
        notifications: Optional[NotificationFacade] = None,
        token_service: Optional[TokenService] = None,
        recorder: Optional[SignedDocumentRecorder] = None,
        artifact_storage: Optional[SignatureArtifactStorage] = None,
        template_service: Optional[TemplateService] = None,
    ):
        self.audit_service = audit_service or AuditLogService()
        self.notifications = notifications or NotificationFacade()
        self.token_service = token_service or TokenService()
        self.recorder = recorder or SignedDocumentRecorder(self.audit_service)
        self.artifact_storage = artifact_storage or SignatureArtifactStorage()
        self.template_service = template_service or TemplateService()

    # Creation and lookup

    def create_signing_request(
        self,
        template_id: int,
        recipient_email: str,
        recipient_name: str,
        recipient_phone: Optional[str] = None,
        recipient_user: Optional[User] = None,
        access_method: str = 'email_link',
        expiry_days: Optional[int] = None,
        sent_by: Optional[User] = None,
        send_email: bool = False,
        client_info: Optional[Dict] = None,
    ) -> SigningRequest:
        template = self.template_service.get_active_template(template_id)
        expires_at = self.token_service.calculate_expiry(expiry_days)

        def build(token: str) -> SigningRequest:
            signing_request = SigningRequest(
                template=template,
                recipient_email=(recipient_email or '').strip(),
                recipient_name=(recipient_name or '').strip(),
                recipient_phone=recipient_phone or None,
                recipient_user=recipient_user,
                access_token=token,
                access_method=access_method,
                expires_at=expires_at,
                sent_by=sent_by,
                status=SigningStatus.PENDING,
            )
            try:
                signing_request.clean_fields(exclude=['template', 'recipient_user', 'sent_by', 'voided_by'])
                signing_request.clean()
            except ValidationError as e:
                raise SigningValidationError('Invalid signing request data', details=e.message_dict)
            signing_request.save(force_insert=True)
            return signing_request

        signing_request = self.token_service.create_with_unique_token(
            build,
            token_exists=lambda token: SigningRequest.objects.filter(access_token=token).exists(),
        )
        logger.info(f'Signing request {signing_request.id} created for template {template.id} ({signing_request.recipient_email})')

        self.audit_service.log(
            signing_request.id,
            AuditEventType.REQUEST_CREATED,
            client_info=client_info,
            metadata={
                'template_id': template.id,
                'recipient_email': signing_request.recipient_email,
                'access_method': access_method,
            },
        )

        if send_email:
            self.send_request(signing_request, sent_by=sent_by, client_info=client_info)

        return signing_request

    def get_request(self, request_id: int) -> SigningRequest:
        try:
            return SigningRequest.objects.select_related('template').get(pk=request_id)
        except SigningRequest.DoesNotExist:
            raise NotFound('Signing request not found')

    def get_request_by_token(self, token: str) -> SigningRequest:
        if not token:
            raise NotFound()
        try:
            return SigningRequest.objects.select_related('template').get(access_token=token)
        except SigningRequest.DoesNotExist:
            raise NotFound()

    def list_requests(
        self,
        status: Optional[str] = None,
        recipient_email: Optional[str] = None,
        recipient_user: Optional[User] = None,
        sent_by: Optional[User] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> QuerySet:
        queryset = SigningRequest.objects.select_related('template').order_by('-created_at')

        if status:
            queryset = queryset.filter(status=status)
        if recipient_email:
            queryset = queryset.filter(recipient_email__iexact=recipient_email)
        if recipient_user is not None:
            queryset = queryset.filter(recipient_user=recipient_user)
        if sent_by is not None:
            queryset = queryset.filter(sent_by=sent_by)

        if limit:
            return queryset[offset:offset + limit]
        if offset:
            return queryset[offset:]
        return queryset

    def get_pending_requests_for_user(self, user: User) -> QuerySet:
        """Requests the user still has to act on, linked by account or by email address."""
        condition = Q(recipient_user=user)
        if user.email:
            condition |= Q(recipient_user__isnull=True, recipient_email__iexact=user.email)
        return SigningRequest.objects.select_related('template').filter(
            condition,
            status__in=OPEN_STATUSES,
        ).order_by('-created_at')

    def generate_signing_link(self, access_token: str) -> str:
        base_url = getattr(settings, 'SIGNING_LINK_BASE_URL', '').rstrip('/')
        return f'{base_url}/sign/{access_token}'

    def is_request_expired(self, signing_request: SigningRequest, now=None) -> bool:
        return self.token_service.is_expired(signing_request.expires_at, now)

    # Delivery

    def send_request(self, signing_request: SigningRequest, sent_by: Optional[User] = None, client_info: Optional[Dict] = None) -> SigningRequest:
        """
        Email the signing link and move the request to ``sent``.

        Delivery happens before the status change, so a failed send leaves the
        request pending.
        """
        self._ensure_open(signing_request, client_info)
        ensure_transition(signing_request.status, SigningStatus.SENT)

        self.notifications.send_signing_link(
            recipient_email=signing_request.recipient_email,
            recipient_name=signing_request.recipient_name,
            document_name=signing_request.template.name,
            signing_link=self.generate_signing_link(signing_request.access_token),
            expires_at=signing_request.expires_at,
        )

        now = timezone.now()
        fields = {'sent_at': now}
        if sent_by is not None:
            fields['sent_by'] = sent_by
        if not self._transition(signing_request, SigningStatus.SENT, **fields):
            self._raise_for_current_status(signing_request, SigningStatus.SENT)

        logger.info(f'Signing request {signing_request.id} sent to {signing_request.recipient_email}')
        self.audit_service.log(
            signing_request.id,
            AuditEventType.EMAIL_SENT,
            client_info=client_info,
            metadata={'recipient_email': signing_request.recipient_email},
        )
        return signing_request

    def send_reminder(self, signing_request: SigningRequest, client_info: Optional[Dict] = None) -> SigningRequest:
        self._ensure_open(signing_request, client_info)

        reminder_count = signing_request.reminder_count + 1
        self.notifications.send_reminder(
            recipient_email=signing_request.recipient_email,
            recipient_name=signing_request.recipient_name,
            document_name=signing_request.template.name,
            signing_link=self.generate_signing_link(signing_request.access_token),
            reminder_count=reminder_count,
        )

        now = timezone.now()
        updated = SigningRequest.objects.filter(
            pk=signing_request.pk,
            status__in=OPEN_STATUSES,
        ).update(reminder_count=F('reminder_count') + 1, last_reminder_at=now, updated_at=now)
        if not updated:
            self._raise_for_current_status(signing_request, signing_request.status)
        signing_request.refresh_from_db(fields=['reminder_count', 'last_reminder_at', 'updated_at'])

        logger.info(f'Reminder {signing_request.reminder_count} sent for signing request {signing_request.id}')
        self.audit_service.log(
            signing_request.id,
            AuditEventType.REMINDER_SENT,
            client_info=client_info,
            metadata={'reminder_count': signing_request.reminder_count},
        )
        return signing_request

    # Recipient actions

    def access_by_token(self, token: str, client_info: Optional[Dict] = None) -> SigningRequest:
        """
        Resolve a signing link for the recipient.

        The first access moves the request to ``viewed``; later accesses only
        add a ``link_accessed`` entry.
        """
        signing_request = self.get_request_by_token(token)
        self._ensure_open(signing_request, client_info)

        self.audit_service.log(signing_request.id, AuditEventType.LINK_ACCESSED, client_info=client_info)

        if can_transition(signing_request.status, SigningStatus.VIEWED):
            if self._transition(signing_request, SigningStatus.VIEWED, viewed_at=timezone.now()):
                logger.info(f'Signing request {signing_request.id} viewed')
                self.audit_service.log(signing_request.id, AuditEventType.DOCUMENT_VIEWED, client_info=client_info)
            else:
                # Changed since it was read; it may have been closed meanwhile
                signing_request.refresh_from_db()
                self._ensure_open(signing_request, client_info)

        return signing_request

    def complete_signing(
        self,
        token: str,
        signature: Optional[str],
        signature_type: str = 'drawn',
        client_info: Optional[Dict] = None,
    ) -> SignedDocument:
        signing_request = self.get_request_by_token(token)
        self._ensure_open(signing_request, client_info)

        if not isinstance(signature, str) or not signature.strip():
            raise SigningValidationError('Signature is required')
        if signature_type not in SIGNATURE_TYPES:
            raise SigningValidationError(f'Unsupported signature type: {signature_type}')

        artifact, extension = self.artifact_storage.decode_payload(signature, signature_type)
        signed_at = timezone.now()
        path = self.artifact_storage.save(signing_request.id, signed_at, artifact, extension)

        try:
            return self.recorder.record(
                signing_request,
                path,
                client_info=client_info,
                artifact=artifact,
                signature_data={
                    'type': signature_type,
                    'hash': HashingService.compute_bytes_sha256(artifact),
                },
                signed_at=signed_at,
            )
        except SigningError:
            self.artifact_storage.delete(path)
            raise

    def decline_request(self, token: str, reason: Optional[str] = None, client_info: Optional[Dict] = None) -> SigningRequest:
        signing_request = self.get_request_by_token(token)
        self._ensure_open(signing_request, client_info)

        if not self._transition(signing_request, SigningStatus.DECLINED):
            self._raise_for_current_status(signing_request, SigningStatus.DECLINED)

        logger.info(f'Signing request {signing_request.id} declined by recipient')
        self.audit_service.log(
            signing_request.id,
            AuditEventType.DECLINED,
            client_info=client_info,
            metadata={'reason': reason} if reason else None,
        )
        return signing_request

    # Operator actions

    def void_request(
        self,
        signing_request: SigningRequest,
        voided_by: Optional[User],
        reason: str,
        client_info: Optional[Dict] = None,
    ) -> SigningRequest:
        if not reason or not reason.strip():
            raise SigningValidationError('A reason is required to void a signing request')

        fields = {
            'voided_at': timezone.now(),
            'voided_by': voided_by,
            'void_reason': reason.strip(),
        }
        if not self._transition(signing_request, SigningStatus.VOIDED, **fields):
            self._raise_for_current_status(signing_request, SigningStatus.VOIDED)

        logger.info(f'Signing request {signing_request.id} voided')
        self.audit_service.log(
            signing_request.id,
            AuditEventType.VOIDED,
            client_info=client_info,
            metadata={
                'reason': reason.strip(),
                'voided_by': voided_by.id if voided_by else None,
            },
        )
        return signing_request

    def expire_overdue_requests(self, now=None, queryset: Optional[QuerySet] = None) -> int:
        """
        Move every overdue open request to ``expired``.

        Access-time expiry does the same lazily; this pass only tidies up
        requests nobody has opened since their deadline.
        """
        now = now or timezone.now()
        queryset = queryset if queryset is not None else SigningRequest.objects.all()
        overdue = queryset.filter(status__in=OPEN_STATUSES, expires_at__lt=now)

        expired = 0
        for signing_request in overdue.iterator():
            if self._expire(signing_request, metadata={'source': 'reconciliation'}):
                expired += 1

        if expired:
            logger.info(f'Expired {expired} overdue signing request(s)')
        return expired

    # Internals

    def _ensure_open(self, signing_request: SigningRequest, client_info: Optional[Dict] = None) -> None:
        """
        Reject access to a request that can no longer be acted on.

        Signed wins over expiry; expiry wins over voided and declined. An
        overdue open request is moved to ``expired`` before rejecting it.
        """
        if signing_request.status == SigningStatus.SIGNED:
            logger.warning(f'Access to already signed request {signing_request.id}')
            raise AlreadySigned()

        if self.is_request_expired(signing_request):
            if not is_terminal(signing_request.status):
                self._expire(signing_request, client_info)
            logger.warning(f'Access to expired signing request {signing_request.id}')
            raise Expired()

        error = error_for_status(signing_request.status)
        if error is not None:
            logger.warning(f'Access to {signing_request.status} signing request {signing_request.id}')
            raise error

    def _expire(self, signing_request: SigningRequest, client_info: Optional[Dict] = None, metadata: Optional[Dict] = None) -> bool:
        if not self._transition(signing_request, SigningStatus.EXPIRED):
            return False
        logger.info(f'Signing request {signing_request.id} expired')
        self.audit_service.log(
            signing_request.id,
            AuditEventType.EXPIRED,
            client_info=client_info,
            metadata=metadata or {'expires_at': signing_request.expires_at.isoformat()},
        )
        return True

    def _transition(self, signing_request: SigningRequest, target: str, **fields) -> bool:
        """
        Conditional status update. Returns False when the stored status no
        longer allows ``target``; the in-memory instance is only updated on
        success.
        """
        ensure_transition(signing_request.status, target)
        now = timezone.now()
        updated = SigningRequest.objects.filter(
            pk=signing_request.pk,
            status__in=sources_for(target),
        ).update(status=target, updated_at=now, **fields)

        if not updated:
            return False

        signing_request.status = target
        signing_request.updated_at = now
        for field, value in fields.items():
            setattr(signing_request, field, value)
        return True

    def _raise_for_current_status(self, signing_request: SigningRequest, target: str) -> None:
        signing_request.refresh_from_db()
        logger.warning(f'Signing request {signing_request.id} changed to {signing_request.status} before {target} could apply')
        error = error_for_status(signing_request.status)
        if error is not None:
            raise error
        raise InvalidTransition(signing_request.status, target)
