import requests
import logging
from typing import Dict, List, Optional
from apps.domain.interfaces.notification_sender_strategy import NotificationSenderStrategy

logger = logging.getLogger('apps')


class ResendEmailStrategy(NotificationSenderStrategy):
    def __init__(self, api_key: str, sender: str, base_url: str = None, timeout: int = 30):
        self.api_key = api_key
        self.sender = sender
        self.base_url = (base_url or 'https://api.resend.com').rstrip('/')
        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json'
        }

    def _build_payload(self, to: List[str], subject: str, html: str, tags: Optional[Dict] = None) -> Dict:
        payload = {
            'from': self.sender,
            'to': to,
            'subject': subject,
            'html': html,
        }
        if tags:
            payload['tags'] = [{'name': key, 'value': str(value)} for key, value in tags.items()]
        return payload

    def _send(self, payload: Dict) -> Dict:
        url = f'{self.base_url}/emails'
        response = None
        try:
            response = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.text else {}
        except requests.exceptions.HTTPError as e:
            error_detail = response.text[:500] if response is not None and response.text else str(e)
            logger.error(f'Error sending email: {e.response.status_code} - {error_detail}')
            raise Exception(f'Failed to send email: {e.response.status_code} - {error_detail}')
        except requests.exceptions.RequestException as e:
            logger.error(f'Error sending email: {str(e)}')
            raise Exception(f'Failed to send email: {str(e)}')

    def send_signing_link(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        **kwargs
    ) -> Dict:
        html = (
            f'<p>Hi {recipient_name},</p>'
            f'<p>You have been asked to sign <strong>{document_name}</strong>.</p>'
            f'<p><a href="{signing_link}">Review and sign the document</a></p>'
        )
        expires_at = kwargs.get('expires_at')
        if expires_at:
            html += f'<p>This link expires on {expires_at.strftime("%d %B %Y")}.</p>'

        payload = self._build_payload(
            [recipient_email],
            f'Please sign: {document_name}',
            html,
            tags={'category': 'signing_request'}
        )
        return self._send(payload)

    def send_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        document_name: str,
        signing_link: str,
        reminder_count: int,
        **kwargs
    ) -> Dict:
        html = (
            f'<p>Hi {recipient_name},</p>'
            f'<p>This is a reminder that <strong>{document_name}</strong> is still waiting for your signature.</p>'
            f'<p><a href="{signing_link}">Review and sign the document</a></p>'
        )
        payload = self._build_payload(
            [recipient_email],
            f'Reminder: please sign {document_name}',
            html,
            tags={'category': 'signing_reminder', 'reminder': reminder_count}
        )
        return self._send(payload)
