import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient
from rest_framework.authtoken.models import Token
from apps.domain.models import Profile, DocumentTemplate, SigningRequest
from apps.application.services.token_service import TokenService
from apps.infrastructure.notifications.factory import NotificationSenderFactory

SIGNATURE_PNG = 'data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=='


@pytest.fixture(autouse=True)
def signing_settings(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    settings.SIGNING_LINK_BASE_URL = 'https://portal.example.com.au'
    settings.EMAIL_PROVIDER = 'logging'
    settings.EMAIL_RETRY_MAX_RETRIES = 2
    settings.EMAIL_RETRY_DELAY = 0
    NotificationSenderFactory().clear_cache()
    yield settings
    NotificationSenderFactory().clear_cache()


@pytest.fixture
def user():
    user = User.objects.create_user(
        username='client',
        email='client@example.com.au',
        password='testpass123'
    )
    Profile.objects.create(user=user, role=Profile.ROLE_CLIENT)
    return user


@pytest.fixture
def coordinator():
    user = User.objects.create_user(
        username='coordinator',
        email='coordinator@example.com.au',
        password='testpass123'
    )
    Profile.objects.create(user=user, role=Profile.ROLE_ADMIN)
    return user


@pytest.fixture
def worker():
    user = User.objects.create_user(
        username='worker',
        email='worker@example.com.au',
        password='testpass123'
    )
    Profile.objects.create(user=user, role=Profile.ROLE_WORKER)
    return user


@pytest.fixture
def template(coordinator):
    return DocumentTemplate.objects.create(
        name='Service Agreement',
        description='NDIS service agreement',
        category='agreements',
        template_type='pdf',
        file_path='templates/service-agreement.pdf',
        expiry_months=12,
        created_by=coordinator
    )


@pytest.fixture
def signing_request(template, user, coordinator):
    return SigningRequest.objects.create(
        template=template,
        recipient_email=user.email,
        recipient_name='Jane Citizen',
        recipient_user=user,
        access_token=TokenService().generate_secure_token(),
        sent_by=coordinator
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def coordinator_client(coordinator):
    client = APIClient()
    token = Token.objects.create(user=coordinator)
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    return client


@pytest.fixture
def client_api(user):
    client = APIClient()
    token = Token.objects.create(user=user)
    client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
    return client
