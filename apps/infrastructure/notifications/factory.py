import threading
import logging
from typing import Dict, Optional
from django.conf import settings
from apps.domain.interfaces.notification_sender_strategy import NotificationSenderStrategy
from .logging_strategy import LoggingEmailStrategy
from .resend_strategy import ResendEmailStrategy

logger = logging.getLogger('apps')


class NotificationSenderFactory:
    _instance = None
    _lock = threading.Lock()
    _senders_cache: Dict[str, NotificationSenderStrategy] = {}

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(NotificationSenderFactory, cls).__new__(cls)
        return cls._instance

    def get_sender(self, provider_code: str, api_key: Optional[str] = None, base_url: Optional[str] = None) -> NotificationSenderStrategy:
        cache_key = f'{provider_code}:{api_key or ""}:{base_url or ""}'

        if cache_key not in self._senders_cache:
            with self._lock:
                if cache_key not in self._senders_cache:
                    sender = self._create_sender(provider_code, api_key, base_url)
                    self._senders_cache[cache_key] = sender

        return self._senders_cache[cache_key]

    def get_default_sender(self) -> NotificationSenderStrategy:
        return self.get_sender(
            settings.EMAIL_PROVIDER,
            settings.EMAIL_API_KEY,
            settings.EMAIL_API_URL,
        )

    def _create_sender(self, provider_code: str, api_key: Optional[str] = None, base_url: Optional[str] = None) -> NotificationSenderStrategy:
        code = provider_code.lower()
        if code == 'logging':
            return LoggingEmailStrategy()
        if code == 'resend':
            if not api_key:
                raise ValueError('EMAIL_API_KEY is required for the resend email provider')
            return ResendEmailStrategy(api_key, settings.EMAIL_FROM, base_url, settings.EMAIL_TIMEOUT)
        raise ValueError(f'Unknown email provider: {provider_code}')

    def clear_cache(self):
        with self._lock:
            self._senders_cache.clear()
