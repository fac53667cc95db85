import logging
from typing import Dict
from apps.domain.interfaces.notification_sender_strategy import NotificationSenderStrategy

logger = logging.getLogger('apps')


class LoggingEmailStrategy(NotificationSenderStrategy):
    """Development sender: writes the email to the log instead of delivering it."""

    def send_signing_link(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        **kwargs
    ) -> Dict:
        logger.info(f'[email] signing link for "{document_name}" to {recipient_name} <{recipient_email}>: {signing_link}')
        return {'id': None, 'delivered': False, 'provider': 'logging'}

    def send_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        reminder_count: int,
        **kwargs
    ) -> Dict:
        logger.info(f'[email] reminder #{reminder_count} for "{document_name}" to {recipient_email}: {signing_link}')
        return {'id': None, 'delivered': False, 'provider': 'logging'}
