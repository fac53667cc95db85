import base64
import binascii
import logging
import re
from typing import Optional, Tuple
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage
from apps.domain.exceptions import SigningValidationError, StorageFailure

logger = logging.getLogger('apps')

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$', re.DOTALL)

MIME_EXTENSIONS = {
    'image/png': 'png',
    'image/jpeg': 'jpg',
    'image/svg+xml': 'svg',
    'application/pdf': 'pdf',
}


class SignatureArtifactStorage:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or default_storage

    def decode_payload(self, signature: str, signature_type: str = 'drawn') -> Tuple[bytes, str]:
        """
        Turns the submitted signature into bytes to keep.

        Drawn and uploaded signatures arrive as base64 data URLs; typed ones
        are stored as UTF-8 text.
        """
        match = DATA_URL_PATTERN.match(signature.strip())
        if match:
            try:
                content = base64.b64decode(match.group('data'), validate=True)
            except (binascii.Error, ValueError):
                raise SigningValidationError('Signature image is not valid base64 data')
            if not content:
                raise SigningValidationError('Signature is required')
            extension = MIME_EXTENSIONS.get(match.group('mime').lower(), 'bin')
            return content, extension

        if signature_type in ('drawn', 'uploaded'):
            raise SigningValidationError('Drawn signatures must be sent as a base64 data URL')

        return signature.strip().encode('utf-8'), 'txt'

    def build_path(self, signing_request_id: int, signed_at, extension: str) -> str:
        prefix = getattr(settings, 'SIGNING_ARTIFACT_PREFIX', 'signed')
        return f'{prefix}/{signed_at.year}/{signing_request_id}_signature.{extension}'

    def save(self, signing_request_id: int, signed_at, content: bytes, extension: str) -> str:
        path = self.build_path(signing_request_id, signed_at, extension)
        try:
            stored_path = self.storage.save(path, ContentFile(content))
        except OSError as e:
            logger.error(f'Error storing signature artifact for request {signing_request_id}: {str(e)}')
            raise StorageFailure('Failed to store the signature artifact')
        logger.info(f'Stored signature artifact for request {signing_request_id} at {stored_path}')
        return stored_path

    def read(self, path: str) -> bytes:
        with self.storage.open(path, 'rb') as artifact:
            return artifact.read()

    def delete(self, path: str) -> None:
        if self.storage.exists(path):
            self.storage.delete(path)
