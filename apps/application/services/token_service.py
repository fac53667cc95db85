"""
Access token utilities for signing links.

Tokens come from ``secrets`` and carry no information about the request they
unlock. The unique constraint on ``SigningRequest.access_token`` is what
guarantees uniqueness; ``create_with_unique_token`` retries on a collision.
"""

import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional, TypeVar
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from apps.domain.exceptions import StorageFailure

logger = logging.getLogger('apps')

T = TypeVar('T')


class TokenService:
    def __init__(self, token_bytes: int = 32, max_attempts: Optional[int] = None):
        self.token_bytes = token_bytes
        self.max_attempts = max_attempts or getattr(settings, 'SIGNING_TOKEN_MAX_ATTEMPTS', 3)

    def generate_secure_token(self) -> str:
        """
        Generate a URL-safe random token (~43 characters for 32 bytes).
        """
        return secrets.token_urlsafe(self.token_bytes)

    def create_with_unique_token(self, create: Callable[[str], T], token_exists: Callable[[str], bool]) -> T:
        """
        Call ``create`` with fresh tokens until one is accepted by the store.

        Args:
            create: persists a record using the given token
            token_exists: tells whether a token is already taken, used to tell a
                collision apart from other integrity errors

        Raises:
            StorageFailure: after ``max_attempts`` collisions, or on any other
                integrity error
        """
        for attempt in range(1, self.max_attempts + 1):
            token = self.generate_secure_token()
            try:
                with transaction.atomic():
                    return create(token)
            except IntegrityError as e:
                if not token_exists(token):
                    logger.error(f'Integrity error while creating record with new token: {str(e)}')
                    raise StorageFailure('Failed to create signing request') from e
                logger.warning(f'Access token collision on attempt {attempt}/{self.max_attempts}, regenerating')

        raise StorageFailure('Could not generate a unique access token')

    @staticmethod
    def calculate_expiry(days: Optional[int] = None, now=None):
        """
        None or 0 days means the link never expires.
        """
        if days is None or days <= 0:
            return None
        return (now or timezone.now()) + timedelta(days=days)

    @staticmethod
    def is_expired(expires_at, now=None) -> bool:
        if expires_at is None:
            return False
        return expires_at < (now or timezone.now())
