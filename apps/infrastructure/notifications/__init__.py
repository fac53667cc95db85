from .logging_strategy import LoggingEmailStrategy
from .resend_strategy import ResendEmailStrategy
from .factory import NotificationSenderFactory

__all__ = ['LoggingEmailStrategy', 'ResendEmailStrategy', 'NotificationSenderFactory']
