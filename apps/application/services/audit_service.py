import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from django.db import DatabaseError, transaction
from django.db.models import Count
from django.utils import timezone
from apps.domain.models import AuditLogEntry, AuditEventType

logger = logging.getLogger('apps')


@dataclass
class AuditResult:
    ok: bool
    entry: Optional[AuditLogEntry] = None
    error: Optional[str] = None


class AuditLogService:
    """
    Append-only audit trail for signing requests.

    Writes never raise into the caller: a failed insert is logged and reported
    through ``AuditResult`` so the signing workflow carries on. Reads raise
    normally.
    """

    def log(
        self,
        signing_request_id: int,
        event_type: str,
        client_info: Optional[Dict] = None,
        geolocation: Optional[Dict] = None,
        metadata: Optional[Dict] = None,
        signature_data: Optional[Dict] = None,
    ) -> AuditResult:
        client_info = client_info or {}
        try:
            # Savepoint so a failed insert leaves the caller's transaction usable
            with transaction.atomic():
                entry = AuditLogEntry.objects.create(
                    signing_request_id=signing_request_id,
                    event_type=event_type,
                    event_timestamp=timezone.now(),
                    ip_address=client_info.get('ip') or None,
                    user_agent=client_info.get('user_agent') or None,
                    browser_fingerprint=client_info.get('fingerprint') or None,
                    geolocation=geolocation or None,
                    metadata=metadata or None,
                    signature_data=signature_data or None,
                )
        except DatabaseError as e:
            logger.error(f'Failed to log audit event {event_type} for signing request {signing_request_id}: {str(e)}')
            return AuditResult(ok=False, error=str(e))

        return AuditResult(ok=True, entry=entry)

    def get_audit_log(self, signing_request_id: int) -> List[AuditLogEntry]:
        return list(
            AuditLogEntry.objects.filter(signing_request_id=signing_request_id).order_by('event_timestamp', 'id')
        )

    def get_audit_logs_by_type(
        self,
        event_type: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLogEntry]:
        queryset = self._in_range(
            AuditLogEntry.objects.filter(event_type=event_type), start_date, end_date
        ).order_by('-event_timestamp', '-id')

        if limit:
            queryset = queryset[:limit]

        return list(queryset)

    def get_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        recent_limit: int = 10,
    ) -> Dict:
        queryset = self._in_range(AuditLogEntry.objects.all(), start_date, end_date)

        by_event_type = {
            row['event_type']: row['total']
            for row in queryset.values('event_type').annotate(total=Count('id')).order_by()
        }

        return {
            'total_events': sum(by_event_type.values()),
            'by_event_type': by_event_type,
            'recent_activity': list(queryset.order_by('-event_timestamp', '-id')[:recent_limit]),
        }

    def generate_certificate_data(self, signing_request_id: int) -> Dict:
        """
        Build the completion certificate snapshot from the audit trail.

        Signer IP and location come from the ``signature_applied`` event, not
        from the last event that happened to carry an address.
        """
        audit_log = self.get_audit_log(signing_request_id)

        events = []
        for entry in audit_log:
            event = {
                'type': entry.event_type,
                'timestamp': entry.event_timestamp.isoformat(),
            }
            if entry.ip_address:
                event['ip'] = entry.ip_address
            if entry.user_agent:
                event['userAgent'] = entry.user_agent
            if entry.location:
                event['location'] = entry.location
            events.append(event)

        created = self._first_of(audit_log, AuditEventType.REQUEST_CREATED)
        completed = self._first_of(audit_log, AuditEventType.COMPLETED)
        signature = self._first_of(audit_log, AuditEventType.SIGNATURE_APPLIED)

        summary = {
            'createdAt': (created.event_timestamp if created else timezone.now()).isoformat(),
            'totalEvents': len(events),
        }
        if completed:
            summary['completedAt'] = completed.event_timestamp.isoformat()
        if signature and signature.ip_address:
            summary['signerIp'] = signature.ip_address
        if signature and signature.location:
            summary['signerLocation'] = signature.location

        return {
            'signingRequestId': signing_request_id,
            'events': events,
            'summary': summary,
        }

    @staticmethod
    def _first_of(entries: List[AuditLogEntry], event_type: str) -> Optional[AuditLogEntry]:
        return next((entry for entry in entries if entry.event_type == event_type), None)

    @staticmethod
    def _in_range(queryset, start_date: Optional[datetime], end_date: Optional[datetime]):
        if start_date:
            queryset = queryset.filter(event_timestamp__gte=start_date)
        if end_date:
            queryset = queryset.filter(event_timestamp__lte=end_date)
        return queryset
