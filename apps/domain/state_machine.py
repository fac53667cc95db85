"""
Lifecycle of a signing request.

The transition graph below is the only place that decides which status
changes are legal; services and views call ``ensure_transition`` instead of
comparing status strings.
"""

from typing import FrozenSet, List
from django.db import models
from apps.domain.exceptions import InvalidTransition


class SigningStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SENT = 'sent', 'Sent'
    VIEWED = 'viewed', 'Viewed'
    SIGNED = 'signed', 'Signed'
    DECLINED = 'declined', 'Declined'
    EXPIRED = 'expired', 'Expired'
    VOIDED = 'voided', 'Voided'


TERMINAL_STATUSES: FrozenSet[str] = frozenset({
    SigningStatus.SIGNED,
    SigningStatus.DECLINED,
    SigningStatus.EXPIRED,
    SigningStatus.VOIDED,
})

# Statuses a recipient can still act on
OPEN_STATUSES: List[str] = [str(status) for status in SigningStatus if status not in TERMINAL_STATUSES]

_CLOSING = {SigningStatus.DECLINED, SigningStatus.EXPIRED, SigningStatus.VOIDED}

ALLOWED_TRANSITIONS = {
    SigningStatus.PENDING: {SigningStatus.SENT, SigningStatus.VIEWED, SigningStatus.SIGNED} | _CLOSING,
    SigningStatus.SENT: {SigningStatus.VIEWED, SigningStatus.SIGNED} | _CLOSING,
    SigningStatus.VIEWED: {SigningStatus.SIGNED} | _CLOSING,
    SigningStatus.SIGNED: set(),
    SigningStatus.DECLINED: set(),
    SigningStatus.EXPIRED: set(),
    SigningStatus.VOIDED: set(),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(str(current), str(target))


def sources_for(target: str) -> List[str]:
    """Statuses from which ``target`` can be reached; used to guard conditional updates."""
    return [str(source) for source, targets in ALLOWED_TRANSITIONS.items() if target in targets]
