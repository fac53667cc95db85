from django.contrib import admin, messages
from apps.application.services.signing_service import SigningService
from .models import Profile, DocumentTemplate, SigningRequest, AuditLogEntry, SignedDocument


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'phone', 'created_at']
    list_filter = ['role']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(DocumentTemplate)
class DocumentTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'template_type', 'is_active', 'expiry_months', 'sort_order']
    list_filter = ['is_active', 'template_type', 'category']
    search_fields = ['name', 'description']
    readonly_fields = ['created_by', 'created_at', 'updated_at']
    fieldsets = (
        ('Template', {
            'fields': ('name', 'description', 'category', 'template_type', 'sort_order', 'is_active')
        }),
        ('Content', {
            'fields': ('file_path', 'form_schema', 'requires_witness', 'expiry_months')
        }),
        ('Dates', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False


class AuditLogEntryInline(admin.TabularInline):
    model = AuditLogEntry
    extra = 0
    can_delete = False
    fields = ['event_type', 'event_timestamp', 'ip_address', 'user_agent', 'metadata']
    readonly_fields = fields
    ordering = ['event_timestamp', 'id']

    def has_add_permission(self, request, obj=None):
        return False


@admin.action(description='Expire selected requests that are past their expiry date')
def expire_overdue(modeladmin, request, queryset):
    expired = SigningService().expire_overdue_requests(queryset=queryset)
    modeladmin.message_user(request, f'{expired} signing request(s) expired', messages.SUCCESS)


@admin.register(SigningRequest)
class SigningRequestAdmin(admin.ModelAdmin):
    list_display = ['template', 'recipient_name', 'recipient_email', 'status', 'expires_at', 'created_at']
    list_filter = ['status', 'access_method', 'template', 'created_at']
    search_fields = ['recipient_name', 'recipient_email']
    actions = [expire_overdue]
    inlines = [AuditLogEntryInline]
    readonly_fields = [
        'access_token', 'status', 'sent_at', 'viewed_at', 'signed_at', 'sent_by',
        'reminder_count', 'last_reminder_at', 'voided_at', 'voided_by', 'void_reason',
        'created_at', 'updated_at'
    ]
    fieldsets = (
        ('Recipient', {
            'fields': ('template', 'recipient_name', 'recipient_email', 'recipient_phone', 'recipient_user')
        }),
        ('Access', {
            'fields': ('access_method', 'access_token', 'expires_at')
        }),
        ('Lifecycle', {
            'fields': ('status', 'sent_at', 'sent_by', 'viewed_at', 'signed_at', 'reminder_count', 'last_reminder_at')
        }),
        ('Voiding', {
            'fields': ('voided_at', 'voided_by', 'void_reason'),
            'classes': ('collapse',)
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False

    # Status and recipient only change through SigningService transitions
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ['signing_request', 'event_type', 'event_timestamp', 'ip_address']
    list_filter = ['event_type', 'event_timestamp']
    search_fields = ['signing_request__recipient_email', 'ip_address']

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SignedDocument)
class SignedDocumentAdmin(admin.ModelAdmin):
    list_display = ['template', 'signer_name', 'signer_email', 'signed_at', 'hash_method', 'valid_until']
    list_filter = ['hash_method', 'template', 'signed_at']
    search_fields = ['signer_name', 'signer_email', 'document_hash']

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
