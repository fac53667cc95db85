import pytest
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import Mock, patch
from django.utils import timezone
from apps.domain.exceptions import DeliveryFailure, NotFound, SigningValidationError, StorageFailure
from apps.domain.models import SigningRequest
from apps.application.facades.notification_facade import NotificationFacade
from apps.application.services.hashing import HashingService, add_months
from apps.application.services.template_service import TemplateService
from apps.application.services.token_service import TokenService


class TestTokenService:
    def test_tokens_are_url_safe_and_long(self):
        token = TokenService().generate_secure_token()
        assert len(token) >= 43
        assert all(c.isalnum() or c in '-_' for c in token)

    def test_tokens_are_unique(self):
        service = TokenService()
        tokens = {service.generate_secure_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_calculate_expiry(self):
        now = timezone.now()
        assert TokenService.calculate_expiry(7, now=now) == now + timedelta(days=7)
        assert TokenService.calculate_expiry(None) is None
        assert TokenService.calculate_expiry(0) is None

    def test_is_expired(self):
        now = timezone.now()
        assert TokenService.is_expired(None) is False
        assert TokenService.is_expired(now - timedelta(seconds=1), now=now) is True
        assert TokenService.is_expired(now + timedelta(seconds=1), now=now) is False


@pytest.mark.django_db
class TestUniqueTokenCreation:
    def _create(self, template):
        def create(token):
            return SigningRequest.objects.create(
                template=template,
                recipient_email='jane@example.com.au',
                recipient_name='Jane Citizen',
                access_token=token
            )
        return create

    def _exists(self, token):
        return SigningRequest.objects.filter(access_token=token).exists()

    def test_retries_on_collision(self, signing_request, template):
        service = TokenService()
        fresh = 'f' * 43
        with patch.object(service, 'generate_secure_token', side_effect=[signing_request.access_token, fresh]):
            created = service.create_with_unique_token(self._create(template), self._exists)

        assert created.access_token == fresh
        assert SigningRequest.objects.count() == 2

    def test_gives_up_after_max_attempts(self, signing_request, template):
        service = TokenService(max_attempts=3)
        with patch.object(service, 'generate_secure_token', return_value=signing_request.access_token):
            with pytest.raises(StorageFailure):
                service.create_with_unique_token(self._create(template), self._exists)

        assert SigningRequest.objects.count() == 1


class TestHashingService:
    signed_at = datetime(2026, 3, 1, 9, 30, tzinfo=dt_timezone.utc)

    def test_artifact_hash(self):
        digest, method = HashingService.compute_document_hash(1, self.signed_at, artifact=b'signature-bytes')
        assert method == 'sha256-artifact'
        assert len(digest) == 64

    def test_composite_hash_without_artifact(self):
        digest, method = HashingService.compute_document_hash(1, self.signed_at, signer_ip='203.0.113.7')
        assert method == 'sha256-composite'
        assert len(digest) == 64

    def test_deterministic(self):
        first = HashingService.compute_document_hash(1, self.signed_at, artifact=b'abc')
        second = HashingService.compute_document_hash(1, self.signed_at, artifact=b'abc')
        assert first == second

    def test_same_signature_different_request_gives_different_hash(self):
        first, _ = HashingService.compute_document_hash(1, self.signed_at, artifact=b'abc')
        second, _ = HashingService.compute_document_hash(2, self.signed_at, artifact=b'abc')
        assert first != second

    def test_artifact_content_changes_hash(self):
        first, _ = HashingService.compute_document_hash(1, self.signed_at, artifact=b'abc')
        second, _ = HashingService.compute_document_hash(1, self.signed_at, artifact=b'abd')
        assert first != second

    def test_json_hash_ignores_key_order(self):
        assert HashingService.compute_json_sha256({'a': 1, 'b': 2}) == HashingService.compute_json_sha256({'b': 2, 'a': 1})


class TestAddMonths:
    def test_twelve_months_is_one_year(self):
        value = datetime(2026, 3, 15, 10, 0, tzinfo=dt_timezone.utc)
        assert add_months(value, 12) == datetime(2027, 3, 15, 10, 0, tzinfo=dt_timezone.utc)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
        assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)

    def test_crosses_year_boundary(self):
        assert add_months(datetime(2026, 11, 30), 3) == datetime(2027, 2, 28)


@pytest.mark.django_db
class TestTemplateService:
    def test_list_only_active_by_default(self, template):
        inactive = TemplateService().create_template({'name': 'Old Form', 'template_type': 'pdf', 'is_active': False})

        active = TemplateService().list_templates()
        everything = TemplateService().list_templates(include_inactive=True)

        assert template in active
        assert inactive not in active
        assert inactive in everything

    def test_list_by_category(self, template):
        TemplateService().create_template({'name': 'Induction', 'template_type': 'pdf', 'category': 'induction'})
        assert [t.name for t in TemplateService().list_templates(category='induction')] == ['Induction']

    def test_create_requires_name_and_type(self):
        with pytest.raises(SigningValidationError):
            TemplateService().create_template({'name': 'No type'})

    def test_update_and_deactivate(self, template):
        service = TemplateService()
        service.update_template(template, {'description': 'Updated', 'expiry_months': 24})
        template.refresh_from_db()
        assert template.description == 'Updated'
        assert template.expiry_months == 24

        service.deactivate_template(template)
        template.refresh_from_db()
        assert template.is_active is False

    def test_content_locked_once_referenced(self, signing_request, template):
        with pytest.raises(SigningValidationError) as exc:
            TemplateService().update_template(template, {
                'file_path': 'templates/other.pdf',
                'template_type': 'online_form',
                'form_schema': {'x': 1},
            })

        assert set(exc.value.details['locked_fields']) == {'file_path', 'template_type', 'form_schema'}
        template.refresh_from_db()
        assert template.file_path == 'templates/service-agreement.pdf'
        assert template.template_type == 'pdf'

    def test_metadata_editable_once_referenced(self, signing_request, template):
        TemplateService().update_template(template, {
            'name': 'Service Agreement 2026',
            'sort_order': 3,
            'file_path': template.file_path,
            'template_type': template.template_type,
        })

        template.refresh_from_db()
        assert template.name == 'Service Agreement 2026'
        assert template.sort_order == 3

    def test_content_editable_before_first_request(self, template):
        TemplateService().update_template(template, {'file_path': 'templates/v2.pdf'})
        template.refresh_from_db()
        assert template.file_path == 'templates/v2.pdf'

    def test_get_missing_template(self):
        with pytest.raises(NotFound):
            TemplateService().get_template(999999)

    def test_inactive_template_cannot_be_used(self, template):
        TemplateService().deactivate_template(template)
        with pytest.raises(SigningValidationError):
            TemplateService().get_active_template(template.id)


class TestNotificationFacade:
    def test_retries_then_succeeds(self, settings):
        settings.EMAIL_RETRY_MAX_RETRIES = 3
        sender = Mock()
        sender.send_signing_link.side_effect = [Exception('timeout'), {'id': 'email_1'}]

        facade = NotificationFacade(sender=sender)
        result = facade.send_signing_link('jane@example.com.au', 'Jane', 'Service Agreement', 'https://x/sign/t')

        assert result == {'id': 'email_1'}
        assert sender.send_signing_link.call_count == 2

    def test_raises_delivery_failure_after_retries(self, settings):
        settings.EMAIL_RETRY_MAX_RETRIES = 2
        sender = Mock()
        sender.send_reminder.side_effect = Exception('provider down')

        facade = NotificationFacade(sender=sender)
        with pytest.raises(DeliveryFailure) as exc:
            facade.send_reminder('jane@example.com.au', 'Jane', 'Service Agreement', 'https://x/sign/t', reminder_count=1)

        assert exc.value.http_status == 502
        assert sender.send_reminder.call_count == 2

    def test_uses_default_sender_from_factory(self):
        factory = Mock()
        factory.get_default_sender.return_value.send_signing_link.return_value = {'id': None}

        NotificationFacade(sender_factory=factory).send_signing_link('a@b.com', 'A', 'Doc', 'link')

        factory.get_default_sender.assert_called_once()
