from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator, validate_email
from django.utils import timezone
from apps.domain.state_machine import SigningStatus, is_terminal
from .document_template import DocumentTemplate

access_token_validator = RegexValidator(
    regex=r'^[A-Za-z0-9_-]{32,128}$',
    message='Access token must be 32-128 URL-safe characters'
)


class SigningRequest(models.Model):
    ACCESS_METHOD_CHOICES = [
        ('email_link', 'Email Link'),
        ('portal', 'Portal'),
    ]

    template = models.ForeignKey(DocumentTemplate, on_delete=models.PROTECT, related_name='signing_requests')
    recipient_email = models.EmailField()
    recipient_name = models.CharField(max_length=255)
    recipient_phone = models.CharField(max_length=30, blank=True, null=True)
    recipient_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='signing_requests'
    )
    access_token = models.CharField(
        max_length=128,
        unique=True,
        db_index=True,
        validators=[access_token_validator]
    )
    access_method = models.CharField(max_length=20, choices=ACCESS_METHOD_CHOICES, default='email_link')
    status = models.CharField(max_length=20, choices=SigningStatus.choices, default=SigningStatus.PENDING)
    expires_at = models.DateTimeField(blank=True, null=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    viewed_at = models.DateTimeField(blank=True, null=True)
    signed_at = models.DateTimeField(blank=True, null=True)
    sent_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reminder_count = models.PositiveIntegerField(default=0)
    last_reminder_at = models.DateTimeField(blank=True, null=True)
    voided_at = models.DateTimeField(blank=True, null=True)
    voided_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    void_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'signing_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='signreq_status_expiry_idx'),
            models.Index(fields=['recipient_email'], name='signreq_recipient_email_idx'),
        ]

    def __str__(self):
        return f"{self.template.name} for {self.recipient_name} ({self.status})"

    def clean(self):
        errors = {}
        if not self.recipient_name or not self.recipient_name.strip():
            errors['recipient_name'] = 'Recipient name is required'
        if not self.recipient_email or not self.recipient_email.strip():
            errors['recipient_email'] = 'Recipient email is required'
        else:
            try:
                validate_email(self.recipient_email)
            except ValidationError:
                errors['recipient_email'] = 'Enter a valid email address'
        if errors:
            raise ValidationError(errors)

    @property
    def is_terminal(self):
        return is_terminal(self.status)

    def is_past_expiry(self, now=None):
        if self.expires_at is None:
            return False
        return self.expires_at < (now or timezone.now())
