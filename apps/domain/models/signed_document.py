from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone
from .document_template import DocumentTemplate
from .signing_request import SigningRequest
from .audit_log_entry import ImmutableRecordError


class SignedDocument(models.Model):
    HASH_ARTIFACT = 'sha256-artifact'
    HASH_COMPOSITE = 'sha256-composite'
    HASH_METHOD_CHOICES = [
        (HASH_ARTIFACT, 'SHA-256 over the signed artifact'),
        (HASH_COMPOSITE, 'SHA-256 over request id, time and IP (weak integrity)'),
    ]

    signing_request = models.OneToOneField(
        SigningRequest,
        on_delete=models.PROTECT,
        related_name='signed_document'
    )
    template = models.ForeignKey(DocumentTemplate, on_delete=models.PROTECT, related_name='signed_documents')
    signer_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='signed_documents'
    )
    signer_email = models.EmailField()
    signer_name = models.CharField(max_length=255)
    signed_document_path = models.CharField(max_length=500)
    signed_at = models.DateTimeField()
    signature_ip = models.CharField(max_length=64, blank=True, null=True)
    signature_user_agent = models.TextField(blank=True, null=True)
    document_hash = models.CharField(max_length=64)
    hash_method = models.CharField(max_length=20, choices=HASH_METHOD_CHOICES)
    valid_until = models.DateTimeField(blank=True, null=True)
    certificate_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'signed_documents'
        ordering = ['-signed_at']

    def __str__(self):
        return f"{self.template.name} signed by {self.signer_name}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ImmutableRecordError('Signed documents cannot be modified')
        super().save(*args, **kwargs)

    @property
    def is_weak_integrity(self):
        return self.hash_method == self.HASH_COMPOSITE

    def is_valid(self, now=None):
        if self.valid_until is None:
            return True
        return self.valid_until > (now or timezone.now())
