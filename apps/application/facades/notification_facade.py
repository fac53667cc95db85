import time
import logging
from typing import Dict, Optional
from django.conf import settings
from apps.domain.exceptions import DeliveryFailure
from apps.domain.interfaces.notification_sender_strategy import NotificationSenderStrategy
from apps.infrastructure.notifications.factory import NotificationSenderFactory

logger = logging.getLogger('apps')


class NotificationFacade:
    def __init__(self, sender_factory: Optional[NotificationSenderFactory] = None, sender: Optional[NotificationSenderStrategy] = None):
        self.sender_factory = sender_factory or NotificationSenderFactory()
        self._sender = sender

    def _get_strategy(self) -> NotificationSenderStrategy:
        if self._sender is not None:
            return self._sender
        return self.sender_factory.get_default_sender()

    def _retry_config(self) -> Dict:
        return {
            'max_retries': getattr(settings, 'EMAIL_RETRY_MAX_RETRIES', 3),
            'delay': getattr(settings, 'EMAIL_RETRY_DELAY', 1.0),
        }

    def _retry_operation(self, operation, max_retries: int = 3, delay: float = 1.0, **kwargs):
        retry_config = kwargs.pop('retry_config', {})
        max_retries = max(1, retry_config.get('max_retries', max_retries))
        delay = retry_config.get('delay', delay)

        for attempt in range(max_retries):
            try:
                return operation(**kwargs)
            except Exception as e:
                if attempt == max_retries - 1:
                    logger.error(f'Email delivery failed after {max_retries} attempt(s): {str(e)}')
                    raise DeliveryFailure(details={'reason': str(e)}) from e
                logger.warning(f'Retry attempt {attempt + 1}/{max_retries} failed: {str(e)}')
                time.sleep(delay * (attempt + 1))

    def send_signing_link(self, recipient_email: str, recipient_name: str, document_name: str, signing_link: str, **kwargs) -> Dict:
        strategy = self._get_strategy()

        return self._retry_operation(
            strategy.send_signing_link,
            retry_config=self._retry_config(),
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            document_name=document_name,
            signing_link=signing_link,
            **kwargs
        )

    def send_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        reminder_count: int,
        **kwargs
    ) -> Dict:
        strategy = self._get_strategy()

        return self._retry_operation(
            strategy.send_reminder,
            retry_config=self._retry_config(),
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            document_name=document_name,
            signing_link=signing_link,
            reminder_count=reminder_count,
            **kwargs
        )
