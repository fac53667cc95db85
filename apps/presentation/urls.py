from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    custom_obtain_auth_token, TemplateViewSet, SigningRequestViewSet,
    SignedDocumentViewSet, AuditViewSet
)
from .public_views import public_signing, decline_signing

router = DefaultRouter()
router.register(r'templates', TemplateViewSet, basename='template')
router.register(r'signing-requests', SigningRequestViewSet, basename='signing-request')
router.register(r'signed-documents', SignedDocumentViewSet, basename='signed-document')
router.register(r'audit', AuditViewSet, basename='audit')

urlpatterns = [
    path('api-token-auth/', custom_obtain_auth_token, name='api-token-auth'),
    path('sign/<str:token>/', public_signing, name='public-signing'),
    path('sign/<str:token>/decline/', decline_signing, name='public-signing-decline'),
    path('', include(router.urls)),
]
