from django.db import models
from django.utils import timezone
from .signing_request import SigningRequest


class AuditEventType(models.TextChoices):
    REQUEST_CREATED = 'request_created', 'Request Created'
    EMAIL_SENT = 'email_sent', 'Email Sent'
    REMINDER_SENT = 'reminder_sent', 'Reminder Sent'
    LINK_ACCESSED = 'link_accessed', 'Link Accessed'
    DOCUMENT_VIEWED = 'document_viewed', 'Document Viewed'
    SIGNATURE_APPLIED = 'signature_applied', 'Signature Applied'
    COMPLETED = 'completed', 'Completed'
    DECLINED = 'declined', 'Declined'
    VOIDED = 'voided', 'Voided'
    EXPIRED = 'expired', 'Expired'


class ImmutableRecordError(Exception):
    pass


class AuditLogEntry(models.Model):
    """
    Append-only audit trail entry. The ascending sequence for one signing
    request is the legal record of what happened to it.
    """

    signing_request = models.ForeignKey(SigningRequest, on_delete=models.CASCADE, related_name='audit_entries')
    event_type = models.CharField(max_length=30, choices=AuditEventType.choices)
    event_timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    ip_address = models.CharField(max_length=64, blank=True, null=True)
    user_agent = models.TextField(blank=True, null=True)
    browser_fingerprint = models.CharField(max_length=255, blank=True, null=True)
    geolocation = models.JSONField(blank=True, null=True)
    metadata = models.JSONField(blank=True, null=True)
    signature_data = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'signing_audit_log'
        ordering = ['event_timestamp', 'id']
        verbose_name_plural = 'audit log entries'
        indexes = [
            models.Index(fields=['signing_request', 'event_timestamp'], name='audit_request_time_idx'),
            models.Index(fields=['event_type', 'event_timestamp'], name='audit_type_time_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} @ {self.event_timestamp.isoformat()} (request {self.signing_request_id})"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ImmutableRecordError('Audit log entries cannot be modified')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError('Audit log entries cannot be deleted')

    @property
    def location(self):
        if not self.geolocation:
            return None
        parts = [self.geolocation.get(key) for key in ('city', 'region', 'country')]
        return ', '.join(part for part in parts if part) or None
