from abc import ABC, abstractmethod
from typing import Dict


class NotificationSenderStrategy(ABC):
    @abstractmethod
    def send_signing_link(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        **kwargs
    ) -> Dict:
        pass

    @abstractmethod
    def send_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        reminder_count: int,
        **kwargs
    ) -> Dict:
        pass
