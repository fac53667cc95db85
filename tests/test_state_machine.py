import pytest
from apps.domain.exceptions import InvalidTransition
from apps.domain.state_machine import (
    SigningStatus, TERMINAL_STATUSES, OPEN_STATUSES, ALLOWED_TRANSITIONS, is_terminal, can_transition,
    ensure_transition, sources_for
)


class TestTransitionGraph:
    def test_happy_path(self):
        assert can_transition(SigningStatus.PENDING, SigningStatus.SENT)
        assert can_transition(SigningStatus.SENT, SigningStatus.VIEWED)
        assert can_transition(SigningStatus.VIEWED, SigningStatus.SIGNED)

    def test_signing_allowed_from_any_open_status(self):
        assert sorted(sources_for(SigningStatus.SIGNED)) == ['pending', 'sent', 'viewed']

    def test_viewed_only_from_pending_or_sent(self):
        assert sorted(sources_for(SigningStatus.VIEWED)) == ['pending', 'sent']

    @pytest.mark.parametrize('target', ['declined', 'expired', 'voided'])
    def test_closing_statuses_reachable_from_every_open_status(self, target):
        assert sorted(sources_for(target)) == ['pending', 'sent', 'viewed']

    @pytest.mark.parametrize('status', sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_exits(self, status):
        assert is_terminal(status)
        assert ALLOWED_TRANSITIONS[status] == set()
        for target in SigningStatus.values:
            assert not can_transition(status, target)

    def test_open_statuses_are_the_non_terminal_ones(self):
        assert OPEN_STATUSES == ['pending', 'sent', 'viewed']
        assert not any(is_terminal(status) for status in OPEN_STATUSES)

    def test_no_going_back(self):
        assert not can_transition(SigningStatus.VIEWED, SigningStatus.SENT)
        assert not can_transition(SigningStatus.SENT, SigningStatus.PENDING)

    def test_ensure_transition_raises(self):
        with pytest.raises(InvalidTransition) as exc:
            ensure_transition(SigningStatus.SIGNED, SigningStatus.VOIDED)
        assert exc.value.http_status == 409
        assert exc.value.details == {'current_status': 'signed', 'target_status': 'voided'}

    def test_ensure_transition_allows_legal_move(self):
        ensure_transition(SigningStatus.PENDING, SigningStatus.SENT)
