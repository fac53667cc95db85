"""
Integrity hashes for signed documents.

A document hash is always SHA-256 over a stable JSON serialization so the
same inputs give the same digest when the record is verified later.
"""

import calendar
import hashlib
import json
from datetime import datetime
from typing import Optional, Tuple


class HashingService:
    ARTIFACT = 'sha256-artifact'
    COMPOSITE = 'sha256-composite'

    @staticmethod
    def compute_bytes_sha256(content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()

    @staticmethod
    def compute_json_sha256(data_dict: dict) -> str:
        json_str = json.dumps(data_dict, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_str.encode()).hexdigest()

    @classmethod
    def compute_document_hash(
        cls,
        signing_request_id: int,
        signed_at: datetime,
        artifact: Optional[bytes] = None,
        signer_ip: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Returns ``(hash, method)``.

        With the artifact bytes the digest binds the stored artifact to the
        request and signing time. Without them only request id, time and IP
        are hashed, which proves nothing about the content and is reported as
        the composite method.
        """
        if artifact is not None:
            hash_input = {
                'artifact_sha256': cls.compute_bytes_sha256(artifact),
                'signed_at': signed_at.isoformat(),
                'signing_request_id': signing_request_id,
            }
            return cls.compute_json_sha256(hash_input), cls.ARTIFACT

        hash_input = {
            'signed_at': signed_at.isoformat(),
            'signer_ip': signer_ip or 'unknown',
            'signing_request_id': signing_request_id,
        }
        return cls.compute_json_sha256(hash_input), cls.COMPOSITE


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the end of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
