from django.conf import settings
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DocumentTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('category', models.CharField(blank=True, max_length=100, null=True)),
                ('template_type', models.CharField(choices=[('pdf', 'PDF'), ('online_form', 'Online Form')], default='pdf', max_length=20)),
                ('file_path', models.CharField(blank=True, max_length=500, null=True)),
                ('form_schema', models.JSONField(blank=True, null=True)),
                ('requires_witness', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('expiry_months', models.PositiveIntegerField(blank=True, help_text='Months a signed copy stays valid; empty means it never lapses', null=True)),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'document_templates',
                'ordering': ['sort_order', 'name'],
            },
        ),
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('worker', 'Worker'), ('client', 'Client')], default='client', max_length=20)),
                ('phone', models.CharField(blank=True, max_length=30, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'profiles',
            },
        ),
        migrations.CreateModel(
            name='SigningRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient_email', models.EmailField(max_length=254)),
                ('recipient_name', models.CharField(max_length=255)),
                ('recipient_phone', models.CharField(blank=True, max_length=30, null=True)),
                ('access_token', models.CharField(db_index=True, max_length=128, unique=True, validators=[django.core.validators.RegexValidator(message='Access token must be 32-128 URL-safe characters', regex='^[A-Za-z0-9_-]{32,128}$')])),
                ('access_method', models.CharField(choices=[('email_link', 'Email Link'), ('portal', 'Portal')], default='email_link', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('viewed', 'Viewed'), ('signed', 'Signed'), ('declined', 'Declined'), ('expired', 'Expired'), ('voided', 'Voided')], default='pending', max_length=20)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('viewed_at', models.DateTimeField(blank=True, null=True)),
                ('signed_at', models.DateTimeField(blank=True, null=True)),
                ('reminder_count', models.PositiveIntegerField(default=0)),
                ('last_reminder_at', models.DateTimeField(blank=True, null=True)),
                ('voided_at', models.DateTimeField(blank=True, null=True)),
                ('void_reason', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recipient_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='signing_requests', to=settings.AUTH_USER_MODEL)),
                ('sent_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='signing_requests', to='domain.documenttemplate')),
                ('voided_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'signing_requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'expires_at'], name='signreq_status_expiry_idx'),
                    models.Index(fields=['recipient_email'], name='signreq_recipient_email_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLogEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('request_created', 'Request Created'), ('email_sent', 'Email Sent'), ('reminder_sent', 'Reminder Sent'), ('link_accessed', 'Link Accessed'), ('document_viewed', 'Document Viewed'), ('signature_applied', 'Signature Applied'), ('completed', 'Completed'), ('declined', 'Declined'), ('voided', 'Voided'), ('expired', 'Expired')], max_length=30)),
                ('event_timestamp', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('ip_address', models.CharField(blank=True, max_length=64, null=True)),
                ('user_agent', models.TextField(blank=True, null=True)),
                ('browser_fingerprint', models.CharField(blank=True, max_length=255, null=True)),
                ('geolocation', models.JSONField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('signature_data', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('signing_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_entries', to='domain.signingrequest')),
            ],
            options={
                'db_table': 'signing_audit_log',
                'ordering': ['event_timestamp', 'id'],
                'verbose_name_plural': 'audit log entries',
                'indexes': [
                    models.Index(fields=['signing_request', 'event_timestamp'], name='audit_request_time_idx'),
                    models.Index(fields=['event_type', 'event_timestamp'], name='audit_type_time_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SignedDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('signer_email', models.EmailField(max_length=254)),
                ('signer_name', models.CharField(max_length=255)),
                ('signed_document_path', models.CharField(max_length=500)),
                ('signed_at', models.DateTimeField()),
                ('signature_ip', models.CharField(blank=True, max_length=64, null=True)),
                ('signature_user_agent', models.TextField(blank=True, null=True)),
                ('document_hash', models.CharField(max_length=64)),
                ('hash_method', models.CharField(choices=[('sha256-artifact', 'SHA-256 over the signed artifact'), ('sha256-composite', 'SHA-256 over request id, time and IP (weak integrity)')], max_length=20)),
                ('valid_until', models.DateTimeField(blank=True, null=True)),
                ('certificate_data', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('signer_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='signed_documents', to=settings.AUTH_USER_MODEL)),
                ('signing_request', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='signed_document', to='domain.signingrequest')),
                ('template', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='signed_documents', to='domain.documenttemplate')),
            ],
            options={
                'db_table': 'signed_documents',
                'ordering': ['-signed_at'],
            },
        ),
    ]
