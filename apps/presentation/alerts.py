from datetime import timedelta
from django.conf import settings
from django.db.models import QuerySet
from django.utils import timezone
from apps.domain.models import SigningRequest
from apps.domain.state_machine import OPEN_STATUSES, SigningStatus

STAGNANT_AFTER_DAYS = 7


def _expiring_soon_days() -> int:
    return getattr(settings, 'SIGNING_EXPIRING_SOON_DAYS', 3)


def get_signing_alerts(requests: QuerySet = None):
    requests = requests if requests is not None else SigningRequest.objects.all()
    now = timezone.now()
    alerts = []

    for signing_request in requests.filter(status__in=OPEN_STATUSES).select_related('template'):
        alert = None
        name = signing_request.template.name

        # Past the deadline but nobody has opened the link since
        if signing_request.expires_at and signing_request.expires_at < now:
            alert = {
                'id': signing_request.id,
                'signing_request_id': signing_request.id,
                'document_name': name,
                'recipient_email': signing_request.recipient_email,
                'type': 'expired',
                'message': f'"{name}" for {signing_request.recipient_name} is past its expiry date',
                'severity': 'error',
                'created_at': signing_request.expires_at.isoformat(),
            }

        elif signing_request.expires_at:
            days_until_expiry = (signing_request.expires_at - now).days
            if 0 <= days_until_expiry <= _expiring_soon_days():
                alert = {
                    'id': signing_request.id,
                    'signing_request_id': signing_request.id,
                    'document_name': name,
                    'recipient_email': signing_request.recipient_email,
                    'type': 'expiring_soon',
                    'message': f'"{name}" for {signing_request.recipient_name} expires in {days_until_expiry} day(s)',
                    'severity': 'warning',
                    'created_at': signing_request.expires_at.isoformat(),
                }

        if alert is None:
            days_since_update = (now - signing_request.updated_at).days
            if days_since_update >= STAGNANT_AFTER_DAYS:
                alert = {
                    'id': signing_request.id,
                    'signing_request_id': signing_request.id,
                    'document_name': name,
                    'recipient_email': signing_request.recipient_email,
                    'type': 'stagnant',
                    'message': f'"{name}" for {signing_request.recipient_name} has been {signing_request.status} for {days_since_update} days',
                    'severity': 'info',
                    'created_at': signing_request.updated_at.isoformat(),
                }

        if alert:
            alerts.append(alert)

    severity_order = {'error': 0, 'warning': 1, 'info': 2}
    alerts.sort(key=lambda x: (severity_order.get(x.get('severity', 'info'), 2), x.get('created_at', '')))

    return alerts


def get_signing_metrics(requests: QuerySet = None):
    requests = requests if requests is not None else SigningRequest.objects.all()
    total = requests.count()

    status_counts = {}
    for value, _ in SigningStatus.choices:
        status_counts[value] = requests.filter(status=value).count()

    signed_count = status_counts.get(SigningStatus.SIGNED, 0)
    signature_rate = (signed_count / total * 100) if total > 0 else 0

    times = []
    for created_at, signed_at in requests.filter(
        status=SigningStatus.SIGNED,
        signed_at__isnull=False,
    ).values_list('created_at', 'signed_at'):
        times.append((signed_at - created_at).total_seconds() / 3600)
    avg_signature_time = sum(times) / len(times) if times else None

    now = timezone.now()
    expiring_soon = requests.filter(
        status__in=OPEN_STATUSES,
        expires_at__lte=now + timedelta(days=_expiring_soon_days()),
        expires_at__gte=now,
    ).count()

    return {
        'total_requests': total,
        'status_breakdown': status_counts,
        'signature_rate': round(signature_rate, 2),
        'average_signature_time_hours': round(avg_signature_time, 2) if avg_signature_time is not None else None,
        'expiring_soon_count': expiring_soon,
    }
