import pytest
from datetime import timedelta
from unittest.mock import patch
from django.utils import timezone
from apps.domain.models import AuditLogEntry, SignedDocument, SigningRequest
from apps.application.services.hashing import add_months
from apps.application.services.signing_service import SigningService
from tests.conftest import SIGNATURE_PNG


def sign_url(signing_request):
    return f'/api/sign/{signing_request.access_token}/'


@pytest.mark.django_db
class TestPublicView:
    def test_get_marks_viewed(self, api_client, signing_request):
        response = api_client.get(sign_url(signing_request), HTTP_USER_AGENT='Mozilla/5.0 (iPad)')

        assert response.status_code == 200
        assert response.data['request']['status'] == 'viewed'
        assert response.data['request']['recipient_name'] == 'Jane Citizen'
        assert response.data['request']['template']['name'] == 'Service Agreement'
        viewed = AuditLogEntry.objects.get(signing_request=signing_request, event_type='document_viewed')
        assert viewed.user_agent == 'Mozilla/5.0 (iPad)'

    def test_no_internal_ids_exposed(self, api_client, signing_request):
        response = api_client.get(sign_url(signing_request))

        body = response.data['request']
        assert 'id' not in body
        assert 'access_token' not in body
        assert 'recipient_user' not in body
        assert 'id' not in body['template']

    def test_authorization_header_ignored(self, api_client, signing_request):
        api_client.credentials(HTTP_AUTHORIZATION='Token not-a-real-token')
        assert api_client.get(sign_url(signing_request)).status_code == 200

    def test_unknown_token(self, api_client):
        response = api_client.get('/api/sign/does-not-exist/')

        assert response.status_code == 404
        assert response.data == {'error': 'Invalid or expired signing link', 'status_code': 404}

    def test_first_forwarded_hop_is_recorded(self, api_client, signing_request):
        api_client.get(
            sign_url(signing_request),
            HTTP_X_FORWARDED_FOR='198.51.100.20, 10.0.0.1',
            REMOTE_ADDR='10.0.0.1'
        )

        entry = AuditLogEntry.objects.get(signing_request=signing_request, event_type='link_accessed')
        assert entry.ip_address == '198.51.100.20'

    def test_browser_fingerprint_recorded(self, api_client, signing_request):
        api_client.get(sign_url(signing_request), HTTP_X_BROWSER_FINGERPRINT='fp-123')

        entry = AuditLogEntry.objects.get(signing_request=signing_request, event_type='link_accessed')
        assert entry.browser_fingerprint == 'fp-123'

    def test_link_signed_during_view_is_rejected(self, api_client, signing_request):
        SigningService().send_request(signing_request)
        stale = SigningRequest.objects.select_related('template').get(pk=signing_request.pk)
        SigningService().complete_signing(signing_request.access_token, SIGNATURE_PNG, 'drawn')

        with patch.object(SigningService, 'get_request_by_token', return_value=stale):
            response = api_client.get(sign_url(signing_request))

        assert response.status_code == 400
        assert response.data['status'] == 'signed'

    def test_expired_link(self, api_client, signing_request):
        signing_request.expires_at = timezone.now() - timedelta(minutes=1)
        signing_request.save()

        response = api_client.get(sign_url(signing_request))

        assert response.status_code == 400
        assert response.data == {
            'error': 'This signing link has expired',
            'status_code': 400,
            'status': 'expired',
        }
        assert SigningRequest.objects.get(pk=signing_request.pk).status == 'expired'


@pytest.mark.django_db
class TestPublicSubmit:
    def test_sign(self, api_client, signing_request):
        api_client.get(sign_url(signing_request))

        response = api_client.post(
            sign_url(signing_request),
            {'signature': SIGNATURE_PNG, 'signature_type': 'drawn'},
            format='json',
            REMOTE_ADDR='203.0.113.7'
        )

        assert response.status_code == 200
        assert response.data['success'] is True
        assert response.data['message'] == 'Document signed successfully'
        document = SignedDocument.objects.get(signing_request=signing_request)
        assert response.data['signed_document']['id'] == document.id
        assert document.signature_ip == '203.0.113.7'

    def test_signature_type_defaults_to_drawn(self, api_client, signing_request):
        response = api_client.post(sign_url(signing_request), {'signature': SIGNATURE_PNG}, format='json')

        assert response.status_code == 200
        applied = AuditLogEntry.objects.get(signing_request=signing_request, event_type='signature_applied')
        assert applied.signature_data['type'] == 'drawn'

    def test_typed_signature(self, api_client, signing_request):
        response = api_client.post(
            sign_url(signing_request),
            {'signature': 'Jane Citizen', 'signature_type': 'typed'},
            format='json'
        )

        assert response.status_code == 200
        document = SignedDocument.objects.get(signing_request=signing_request)
        assert document.signed_document_path.endswith('.txt')

    def test_missing_signature(self, api_client, signing_request):
        response = api_client.post(sign_url(signing_request), {}, format='json')

        assert response.status_code == 400
        assert response.data['error'] == 'Signature is required'
        assert SigningRequest.objects.get(pk=signing_request.pk).status == 'pending'

    def test_state_is_checked_before_payload(self, api_client, signing_request):
        SigningService().complete_signing(signing_request.access_token, SIGNATURE_PNG, 'drawn')

        response = api_client.post(sign_url(signing_request), {}, format='json')

        assert response.status_code == 400
        assert response.data['status'] == 'signed'

    def test_unknown_token_checked_first(self, api_client):
        response = api_client.post('/api/sign/does-not-exist/', {}, format='json')
        assert response.status_code == 404

    def test_storage_failure_is_500(self, api_client, signing_request):
        with patch(
            'apps.infrastructure.services.artifact_storage.SignatureArtifactStorage.save',
            side_effect=OSError('disk full')
        ):
            response = api_client.post(sign_url(signing_request), {'signature': SIGNATURE_PNG}, format='json')

        assert response.status_code == 500
        assert response.data['error'] == 'Internal server error'
        assert SigningRequest.objects.get(pk=signing_request.pk).status == 'pending'


@pytest.mark.django_db
class TestPublicDecline:
    def test_decline(self, api_client, signing_request):
        response = api_client.post(
            f'{sign_url(signing_request)}decline/',
            {'reason': ' Not my plan manager '},
            format='json'
        )

        assert response.status_code == 200
        assert response.data == {'status': 'declined'}
        entry = AuditLogEntry.objects.get(signing_request=signing_request, event_type='declined')
        assert entry.metadata == {'reason': 'Not my plan manager'}

    def test_decline_without_reason(self, api_client, signing_request):
        response = api_client.post(f'{sign_url(signing_request)}decline/', {}, format='json')

        assert response.status_code == 200
        assert AuditLogEntry.objects.get(signing_request=signing_request, event_type='declined').metadata is None

    def test_reason_must_be_text(self, api_client, signing_request):
        response = api_client.post(f'{sign_url(signing_request)}decline/', {'reason': 42}, format='json')
        assert response.status_code == 400

    def test_declined_link_rejected(self, api_client, signing_request):
        api_client.post(f'{sign_url(signing_request)}decline/', {}, format='json')

        response = api_client.get(sign_url(signing_request))

        assert response.status_code == 400
        assert response.data['status'] == 'declined'


@pytest.mark.django_db
class TestSigningJourneys:
    def test_view_sign_then_resubmit(self, api_client, coordinator_client, template):
        created = coordinator_client.post('/api/signing-requests/', {
            'template_id': template.id,
            'recipient_email': 'jane@example.com.au',
            'recipient_name': 'Jane Citizen',
            'expiry_days': 7,
        }, format='json')
        token = created.data['signing_link'].rsplit('/', 1)[-1]

        viewed = api_client.get(f'/api/sign/{token}/')
        assert viewed.data['request']['status'] == 'viewed'

        signed = api_client.post(f'/api/sign/{token}/', {'signature': SIGNATURE_PNG}, format='json')
        assert signed.status_code == 200
        document = SignedDocument.objects.get(pk=signed.data['signed_document']['id'])
        assert document.valid_until == add_months(document.signed_at, 12)
        assert document.valid_until.year == document.signed_at.year + 1

        again = api_client.post(f'/api/sign/{token}/', {'signature': SIGNATURE_PNG}, format='json')
        assert again.status_code == 400
        assert again.data['status'] == 'signed'
        assert SignedDocument.objects.count() == 1

    def test_never_expiring_link_after_400_days(self, api_client, coordinator_client, template):
        created = coordinator_client.post('/api/signing-requests/', {
            'template_id': template.id,
            'recipient_email': 'jane@example.com.au',
            'recipient_name': 'Jane Citizen',
            'expiry_days': None,
        }, format='json')
        token = created.data['signing_link'].rsplit('/', 1)[-1]

        with patch('django.utils.timezone.now', return_value=timezone.now() + timedelta(days=400)):
            response = api_client.get(f'/api/sign/{token}/')

        assert response.status_code == 200
        assert response.data['request']['status'] == 'viewed'

    def test_void_sent_request(self, api_client, coordinator_client, signing_request):
        coordinator_client.post(f'/api/signing-requests/{signing_request.id}/send/')
        coordinator_client.post(
            f'/api/signing-requests/{signing_request.id}/void/',
            {'reason': 'duplicate'},
            format='json'
        )

        response = api_client.get(sign_url(signing_request))

        assert response.status_code == 400
        assert response.data['status'] == 'voided'
        voided = AuditLogEntry.objects.get(signing_request=signing_request, event_type='voided')
        assert voided.metadata['reason'] == 'duplicate'
