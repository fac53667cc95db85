from .profile import Profile
from .document_template import DocumentTemplate
from .signing_request import SigningRequest
from .audit_log_entry import AuditLogEntry, AuditEventType, ImmutableRecordError
from .signed_document import SignedDocument

__all__ = [
    'Profile',
    'DocumentTemplate',
    'SigningRequest',
    'AuditLogEntry',
    'AuditEventType',
    'ImmutableRecordError',
    'SignedDocument',
]
