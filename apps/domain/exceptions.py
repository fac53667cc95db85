from typing import Optional


class SigningError(Exception):
    """Base error for the signing workflow, carries the HTTP mapping used by the API."""

    http_status = 400
    state: Optional[str] = None
    default_message = 'Signing request error'

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFound(SigningError):
    http_status = 404
    default_message = 'Invalid or expired signing link'


class AlreadySigned(SigningError):
    state = 'signed'
    default_message = 'This document has already been signed'


class Expired(SigningError):
    state = 'expired'
    default_message = 'This signing link has expired'


class Voided(SigningError):
    state = 'voided'
    default_message = 'This signing request has been cancelled'


class Declined(SigningError):
    state = 'declined'
    default_message = 'This signing request was declined'


class SigningValidationError(SigningError):
    default_message = 'Invalid signing request data'


class InvalidTransition(SigningError):
    http_status = 409
    default_message = 'Status transition not allowed'

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f'Cannot move signing request from {current} to {target}',
            {'current_status': current, 'target_status': target},
        )


class DeliveryFailure(SigningError):
    http_status = 502
    default_message = 'Failed to deliver the signing link'


class StorageFailure(SigningError):
    http_status = 500
    default_message = 'Failed to persist signing data'


_STATE_ERRORS = {
    'signed': AlreadySigned,
    'expired': Expired,
    'voided': Voided,
    'declined': Declined,
}


def error_for_status(status: str) -> Optional[SigningError]:
    """Rejection raised when a request in ``status`` is accessed or acted on; None if it is still open."""
    error_class = _STATE_ERRORS.get(str(status))
    return error_class() if error_class else None
