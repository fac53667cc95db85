"""
Signed document recorder.

Turns an open signing request into a signed one. The status flip and the
SignedDocument insert happen in one transaction; the flip is a conditional
update guarded by the current status so two concurrent submissions cannot
both win.
"""

import logging
from typing import Dict, Optional
from django.db import DatabaseError, transaction
from django.utils import timezone
from apps.domain.exceptions import AlreadySigned, StorageFailure, error_for_status
from apps.domain.models import AuditEventType, SignedDocument, SigningRequest
from apps.domain.state_machine import SigningStatus, sources_for
from apps.application.services.audit_service import AuditLogService
from apps.application.services.hashing import HashingService, add_months

logger = logging.getLogger('apps')


class SignedDocumentRecorder:
    def __init__(self, audit_service: Optional[AuditLogService] = None):
        self.audit_service = audit_service or AuditLogService()

    def record(
        self,
        signing_request: SigningRequest,
        signed_document_path: str,
        client_info: Optional[Dict] = None,
        artifact: Optional[bytes] = None,
        signature_data: Optional[Dict] = None,
        signed_at=None,
    ) -> SignedDocument:
        client_info = client_info or {}
        signed_at = signed_at or timezone.now()
        template = signing_request.template

        document_hash, hash_method = HashingService.compute_document_hash(
            signing_request.id,
            signed_at,
            artifact=artifact,
            signer_ip=client_info.get('ip'),
        )
        if hash_method == HashingService.COMPOSITE:
            logger.warning(f'Signing request {signing_request.id} recorded without artifact bytes, hash has weak integrity')

        valid_until = add_months(signed_at, template.expiry_months) if template.expiry_months else None

        certificate_data = self.audit_service.generate_certificate_data(signing_request.id)
        certificate_data['signer'] = {
            'name': signing_request.recipient_name,
            'email': signing_request.recipient_email,
            'ip': client_info.get('ip'),
            'userAgent': client_info.get('user_agent'),
            'signedAt': signed_at.isoformat(),
        }
        certificate_data['integrity'] = {
            'documentHash': document_hash,
            'hashMethod': hash_method,
            'weakIntegrity': hash_method == HashingService.COMPOSITE,
        }

        try:
            with transaction.atomic():
                updated = SigningRequest.objects.filter(
                    pk=signing_request.pk,
                    status__in=sources_for(SigningStatus.SIGNED),
                ).update(status=SigningStatus.SIGNED, signed_at=signed_at, updated_at=signed_at)

                if updated == 0:
                    current = SigningRequest.objects.filter(pk=signing_request.pk).values_list('status', flat=True).first()
                    logger.warning(f'Signing request {signing_request.id} could not be signed, current status is {current}')
                    raise error_for_status(current) or AlreadySigned()

                signed_document = SignedDocument.objects.create(
                    signing_request=signing_request,
                    template=template,
                    signer_user=signing_request.recipient_user,
                    signer_email=signing_request.recipient_email,
                    signer_name=signing_request.recipient_name,
                    signed_document_path=signed_document_path,
                    signed_at=signed_at,
                    signature_ip=client_info.get('ip'),
                    signature_user_agent=client_info.get('user_agent'),
                    document_hash=document_hash,
                    hash_method=hash_method,
                    valid_until=valid_until,
                    certificate_data=certificate_data,
                )
        except DatabaseError as e:
            logger.error(f'Error recording signed document for request {signing_request.id}: {str(e)}')
            raise StorageFailure('Failed to record the signed document') from e

        signing_request.status = SigningStatus.SIGNED
        signing_request.signed_at = signed_at
        logger.info(f'Signing request {signing_request.id} signed, document {signed_document.id} ({hash_method})')

        self.audit_service.log(
            signing_request.id,
            AuditEventType.SIGNATURE_APPLIED,
            client_info=client_info,
            signature_data=signature_data or {},
            metadata={
                'document_hash': document_hash,
                'hash_method': hash_method,
                'signed_document_id': signed_document.id,
            },
        )
        self.audit_service.log(
            signing_request.id,
            AuditEventType.COMPLETED,
            client_info=client_info,
            metadata={
                'signed_document_id': signed_document.id,
                'document_hash': document_hash,
            },
        )

        return signed_document

    def verify_document_hash(self, signed_document: SignedDocument, artifact: Optional[bytes] = None) -> bool:
        """Recompute the stored hash; artifact bytes are required for artifact-method documents."""
        if signed_document.hash_method == SignedDocument.HASH_ARTIFACT and artifact is None:
            return False

        expected, _ = HashingService.compute_document_hash(
            signed_document.signing_request_id,
            signed_document.signed_at,
            artifact=artifact if signed_document.hash_method == SignedDocument.HASH_ARTIFACT else None,
            signer_ip=signed_document.signature_ip,
        )
        return expected == signed_document.document_hash
