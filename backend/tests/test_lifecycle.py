import pytest

from tokopos.errors import InvalidTransition
from tokopos.services import lifecycle_service as lc


class TestPaymentLifecycle:

    @pytest.mark.parametrize("payment,total,expected", [
        (50000, 50000, lc.PAID),
        (60000, 50000, lc.PAID),
        (20000, 50000, lc.PARTIALLY_PAID),
        (0, 50000, lc.UNPAID),
    ])
    def test_submission(self, payment, total, expected):
        assert lc.transition(lc.DRAFT, lc.submission_event(payment, total)) == expected

    def test_partial_then_settle(self):
        status = lc.transition(lc.UNPAID, lc.payment_event(10000, 50000))
        assert status == lc.PARTIALLY_PAID
        status = lc.transition(status, lc.payment_event(30000, 50000))
        assert status == lc.PARTIALLY_PAID
        assert lc.transition(status, lc.payment_event(50000, 50000)) == lc.PAID

    def test_paid_is_terminal(self):
        for event in (lc.PARTIAL_PAYMENT, lc.SETTLE, lc.SUBMIT_PAID):
            assert not lc.can_transition(lc.PAID, event)
            with pytest.raises(InvalidTransition) as exc:
                lc.transition(lc.PAID, event)
            assert exc.value.details == {"current": lc.PAID, "event": event}

    def test_draft_cannot_take_payments(self):
        with pytest.raises(InvalidTransition):
            lc.transition(lc.DRAFT, lc.SETTLE)


class TestDistributionLifecycle:

    def test_accept_and_reject(self):
        assert lc.transition(lc.PENDING_ACCEPTANCE, lc.ACCEPT) == lc.ACCEPTED
        assert lc.transition(lc.PENDING_ACCEPTANCE, lc.REJECT) == lc.REJECTED

    @pytest.mark.parametrize("status", [lc.ACCEPTED, lc.REJECTED])
    def test_terminal(self, status):
        with pytest.raises(InvalidTransition):
            lc.transition(status, lc.ACCEPT)
        with pytest.raises(InvalidTransition):
            lc.transition(status, lc.REJECT)
        with pytest.raises(InvalidTransition):
            lc.transition(status, lc.CANCEL)

    def test_only_pending_lines_cancel(self):
        assert lc.transition(lc.PENDING_ACCEPTANCE, lc.CANCEL) == lc.CANCELLED
        assert not lc.can_transition(lc.CANCELLED, lc.ACCEPT)
