from django.conf import settings
from django.contrib.auth.models import User
from rest_framework import serializers
from apps.domain.models import DocumentTemplate, SigningRequest, SignedDocument, AuditLogEntry
from apps.domain.state_machine import SigningStatus
from apps.application.services.signing_service import SIGNATURE_TYPES


class DocumentTemplateSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(read_only=True, help_text='Template id')
    name = serializers.CharField(max_length=255, help_text='Template name shown to recipients')
    template_type = serializers.ChoiceField(
        choices=DocumentTemplate.TYPE_CHOICES,
        help_text='pdf or online_form'
    )
    form_schema = serializers.JSONField(required=False, allow_null=True, help_text='Field definitions for online forms')
    expiry_months = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=1,
        help_text='Months a signed copy stays valid; empty means it never lapses'
    )
    created_by = serializers.PrimaryKeyRelatedField(read_only=True, help_text='User who created the template')
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)

    class Meta:
        model = DocumentTemplate
        fields = [
            'id', 'name', 'description', 'category', 'template_type', 'file_path',
            'form_schema', 'requires_witness', 'is_active', 'expiry_months', 'sort_order',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Template name cannot be empty')
        return value.strip()


class SigningRequestSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='template.name', read_only=True)
    status = serializers.ChoiceField(choices=SigningStatus.choices, read_only=True)
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = SigningRequest
        fields = [
            'id', 'template', 'template_name', 'recipient_email', 'recipient_name',
            'recipient_phone', 'recipient_user', 'access_method', 'status', 'is_expired',
            'expires_at', 'sent_at', 'viewed_at', 'signed_at', 'sent_by',
            'reminder_count', 'last_reminder_at', 'voided_at', 'voided_by', 'void_reason',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_is_expired(self, obj) -> bool:
        return obj.is_past_expiry()


class SigningRequestCreateSerializer(serializers.Serializer):
    template_id = serializers.IntegerField(help_text='Active template to sign')
    recipient_email = serializers.EmailField(help_text='Where the signing link is sent')
    recipient_name = serializers.CharField(max_length=255)
    recipient_phone = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)
    recipient_user_id = serializers.IntegerField(required=False, allow_null=True, help_text='Portal user the request belongs to')
    access_method = serializers.ChoiceField(choices=SigningRequest.ACCESS_METHOD_CHOICES, default='email_link')
    expiry_days = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=0,
        help_text='Days until the link expires. Omit for the default, null or 0 for no expiry'
    )
    send_email = serializers.BooleanField(default=False, help_text='Email the signing link straight away')

    def validate_recipient_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Recipient name is required')
        return value.strip()

    def validate_recipient_user_id(self, value):
        if value is None:
            return None
        try:
            return User.objects.get(pk=value)
        except User.DoesNotExist:
            raise serializers.ValidationError('User not found')

    def validate(self, data):
        data['recipient_user'] = data.pop('recipient_user_id', None)
        if 'expiry_days' not in self.initial_data:
            data['expiry_days'] = settings.SIGNING_DEFAULT_EXPIRY_DAYS
        return data


class VoidRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(help_text='Why the request is being cancelled')

    def validate_reason(self, value):
        if not value.strip():
            raise serializers.ValidationError('A reason is required')
        return value.strip()


class PublicTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentTemplate
        fields = ['name', 'description', 'category', 'template_type', 'file_path', 'form_schema']
        read_only_fields = fields


class PublicSigningRequestSerializer(serializers.ModelSerializer):
    """What the recipient sees through the signing link; no internal ids."""

    template = PublicTemplateSerializer(read_only=True)

    class Meta:
        model = SigningRequest
        fields = ['recipient_name', 'recipient_email', 'status', 'expires_at', 'template']
        read_only_fields = fields


class SignSubmissionSerializer(serializers.Serializer):
    """Request body of the public signing endpoint; the signing service validates it."""

    signature = serializers.CharField(
        trim_whitespace=True,
        error_messages={'blank': 'Signature is required', 'required': 'Signature is required'},
        help_text='Base64 data URL for drawn or uploaded signatures, plain text for typed ones'
    )
    signature_type = serializers.ChoiceField(choices=SIGNATURE_TYPES, default='drawn')


class DeclineSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)


class SignedDocumentSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='template.name', read_only=True)
    is_valid = serializers.SerializerMethodField()
    weak_integrity = serializers.BooleanField(source='is_weak_integrity', read_only=True)

    class Meta:
        model = SignedDocument
        fields = [
            'id', 'signing_request', 'template', 'template_name', 'signer_user', 'signer_email',
            'signer_name', 'signed_document_path', 'signed_at', 'signature_ip',
            'signature_user_agent', 'document_hash', 'hash_method', 'weak_integrity',
            'valid_until', 'is_valid', 'certificate_data', 'created_at'
        ]
        read_only_fields = fields

    def get_is_valid(self, obj) -> bool:
        return obj.is_valid()


class SignedDocumentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = SignedDocument
        fields = ['id', 'signed_at', 'valid_until']
        read_only_fields = fields


class AuditLogEntrySerializer(serializers.ModelSerializer):
    location = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = AuditLogEntry
        fields = [
            'id', 'signing_request', 'event_type', 'event_timestamp', 'ip_address',
            'user_agent', 'browser_fingerprint', 'geolocation', 'location', 'metadata',
            'signature_data'
        ]
        read_only_fields = fields
