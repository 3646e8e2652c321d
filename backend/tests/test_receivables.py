# Overview: Pytest coverage for receivable payments.

import pytest

from tokopos.errors import InvalidTransition, NotFoundError, OverpaymentError, ValidationError
from tokopos.models import AuditLog, Member, ReceivablePayment, Sale
from tokopos.services import audit_service, lifecycle_service, receivable_service, sales_service


@pytest.fixture
def debt_sale(db_session, store, cashier, attendant, make_product):
    """Factory: a debt sale of `total` Rupiah with `down_payment` paid up front."""
    member = Member(store_id=store.id, name="Pak Joko", discount_percent=0)
    db_session.add(member)
    db_session.commit()
    product = make_product(store, "P", stock=1000, tiers=[(1, 1000)])

    def _make(total, down_payment=0):
        return sales_service.record_sale(
            store_id=store.id,
            cashier_id=cashier.id,
            attendant_id=attendant.id,
            member_id=member.id,
            items=[{"product_id": product.id, "quantity": total // 1000}],
            payment=down_payment,
            status="DEBT",
        )

    return _make


class TestApplyPayment:

    def test_overpayment_rejected(self, db_session, debt_sale):
        receivable = debt_sale(80000, down_payment=30000).receivable

        with pytest.raises(OverpaymentError) as exc:
            receivable_service.apply_payment(receivable.id, 70000)

        assert exc.value.max_allowed == 50000
        assert exc.value.to_dict()["details"] == {"max_allowed": 50000}
        assert receivable_service.get_receivable(receivable.id).amount_paid == 30000

    def test_partial_then_settle(self, db_session, debt_sale):
        sale = debt_sale(50000, down_payment=20000)
        receivable_id = sale.receivable.id

        receivable = receivable_service.apply_payment(receivable_id, 10000)
        assert receivable.amount_paid == 30000
        assert receivable.status == lifecycle_service.PARTIALLY_PAID
        assert db_session.get(Sale, sale.id).status == lifecycle_service.PARTIALLY_PAID

        receivable = receivable_service.apply_payment(receivable_id, 20000, "TRANSFER", "TRF-77")
        assert receivable.amount_paid == 50000
        assert receivable.remaining == 0
        assert receivable.status == lifecycle_service.PAID
        assert db_session.get(Sale, sale.id).status == lifecycle_service.PAID

        amounts = [p.amount for p in db_session.query(ReceivablePayment).order_by(ReceivablePayment.id)]
        assert amounts == [20000, 10000, 20000]

    def test_paid_iff_fully_paid(self, db_session, debt_sale):
        receivable_id = debt_sale(10000).receivable.id
        paid_so_far = 0

        for amount in (1000, 2500, 500, 4000, 2000):
            before = paid_so_far
            receivable = receivable_service.apply_payment(receivable_id, amount)
            paid_so_far = receivable.amount_paid
            assert paid_so_far >= before
            assert paid_so_far <= receivable.amount_due
            assert (receivable.status == lifecycle_service.PAID) == (paid_so_far == receivable.amount_due)

        assert paid_so_far == 10000

    def test_settled_receivable_rejects_more(self, db_session, debt_sale):
        receivable_id = debt_sale(5000).receivable.id
        receivable_service.apply_payment(receivable_id, 5000)

        with pytest.raises(OverpaymentError) as exc:
            receivable_service.apply_payment(receivable_id, 1)
        assert exc.value.max_allowed == 0

    @pytest.mark.parametrize("amount", [0, -500, 2.5, True])
    def test_invalid_amount(self, db_session, debt_sale, amount):
        receivable_id = debt_sale(5000).receivable.id
        with pytest.raises(ValidationError):
            receivable_service.apply_payment(receivable_id, amount)

    def test_non_cash_requires_reference(self, db_session, debt_sale):
        receivable_id = debt_sale(5000).receivable.id
        with pytest.raises(ValidationError):
            receivable_service.apply_payment(receivable_id, 1000, "QRIS")
        with pytest.raises(ValidationError):
            receivable_service.apply_payment(receivable_id, 1000, "GIRO")

    def test_unknown_receivable(self, db_session):
        with pytest.raises(NotFoundError):
            receivable_service.apply_payment(404, 1000)

    def test_idempotency_key(self, db_session, debt_sale):
        receivable_id = debt_sale(50000).receivable.id

        receivable_service.apply_payment(receivable_id, 10000, idempotency_key="pay-1")
        receivable = receivable_service.apply_payment(receivable_id, 10000, idempotency_key="pay-1")

        assert receivable.amount_paid == 10000
        assert db_session.query(ReceivablePayment).filter_by(receivable_id=receivable_id).count() == 1

    def test_audit_entry(self, db_session, cashier, debt_sale):
        receivable_id = debt_sale(5000).receivable.id
        receivable_service.apply_payment(receivable_id, 2000, actor_id=cashier.id)

        entry = db_session.query(AuditLog).filter_by(action=audit_service.ACTION_RECEIVABLE_PAYMENT).one()
        assert entry.user_id == cashier.id
        assert entry.to_dict()["new_value"]["amount_paid"] == 2000


class TestListReceivables:

    def test_outstanding_by_default(self, db_session, store, debt_sale):
        open_one = debt_sale(5000).receivable
        settled = debt_sale(3000).receivable
        receivable_service.apply_payment(settled.id, 3000)

        result = receivable_service.list_receivables(store_id=store.id)
        assert [r["id"] for r in result["items"]] == [open_one.id]
        assert result["items"][0]["remaining_amount"] == 5000

        paid = receivable_service.list_receivables(status="paid")
        assert [r["id"] for r in paid["items"]] == [settled.id]

    def test_search_by_member_or_invoice(self, db_session, debt_sale):
        sale = debt_sale(4000)

        assert receivable_service.list_receivables(search="joko")["pagination"]["total"] == 1
        assert receivable_service.list_receivables(search=sale.invoice_number)["pagination"]["total"] == 1
        assert receivable_service.list_receivables(search="tidak ada")["pagination"]["total"] == 0


def test_transition_guard_is_shared():
    with pytest.raises(InvalidTransition):
        lifecycle_service.transition(lifecycle_service.PAID, lifecycle_service.PARTIAL_PAYMENT)
