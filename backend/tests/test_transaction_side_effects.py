"""
Settlement side effect and direct transaction rules.

Verifies:
- One (order, owner, expense) transaction per settled order, completed
- An existing pending record is completed rather than duplicated
- A failing side effect (raised or a real database error) is logged and
  never blocks the order update
- Transactions linked to settled orders are forced to completed, whatever
  status an admin asks for
- Re-posting an existing (order, owner, type) row follows the write rule
- Unlinked transactions are created completed
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from teranga.extensions import db
from teranga.models import Order, Transaction
from teranga.services import order_service, transaction_service
from teranga.services.access_service import AccessDeniedError
from teranga.services.transaction_service import SideEffectError
from teranga.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def open_order(db_session, customer, product):
    return order_service.create_order(customer, {"items": [{"product_id": product.id, "quantity": 1}]})


@pytest.fixture
def blocked_transaction_inserts(db_session):
    """SQLite trigger that makes every INSERT into transactions fail."""
    db.session.execute(text(
        "CREATE TRIGGER block_transactions BEFORE INSERT ON transactions "
        "BEGIN SELECT RAISE(ABORT, 'transactions are read-only'); END"
    ))
    db.session.commit()
    yield
    db.session.rollback()
    db.session.execute(text("DROP TRIGGER IF EXISTS block_transactions"))
    db.session.commit()


class TestSettlementSideEffect:

    @pytest.mark.parametrize("status", ["paid", "fulfilled", "delivered"])
    def test_settled_status_creates_expense(self, open_order, admin, status):
        order = order_service.update_order(open_order.id, admin, {"status": status, "payment_method": "wave"})

        trx = db.session.query(Transaction).filter_by(order_id=order.id).one()
        assert trx.type == "expense"
        assert trx.status == "completed"
        assert trx.amount == Decimal("2000.00")
        assert trx.payment_method == "wave"
        assert trx.description == f"Payment for order {order.code}"

    @pytest.mark.parametrize("status", ["processing", "shipped", "cancelled", "refunded"])
    def test_other_statuses_create_nothing(self, open_order, admin, status):
        order_service.update_order(open_order.id, admin, {"status": status})
        assert db.session.query(Transaction).count() == 0

    def test_unknown_payment_method_placeholder(self, open_order, admin):
        order_service.update_order(open_order.id, admin, {"status": "paid"})
        trx = db.session.query(Transaction).one()
        assert trx.payment_method == "unknown"

    def test_existing_pending_record_is_completed(self, open_order, admin, customer):
        trx, created = transaction_service.create_transaction(
            customer,
            {"type": "expense", "amount": Decimal("2000"), "order_id": open_order.id},
        )
        assert created
        assert trx.status == "pending"

        order_service.update_order(open_order.id, admin, {"status": "delivered"})

        rows = db.session.query(Transaction).filter_by(order_id=open_order.id).all()
        assert len(rows) == 1
        assert rows[0].id == trx.id
        assert rows[0].status == "completed"

    def test_repeated_settlement_keeps_single_record(self, open_order, admin):
        for status in ("paid", "fulfilled", "delivered", "delivered"):
            order_service.update_order(open_order.id, admin, {"status": status})
        assert db.session.query(Transaction).filter_by(order_id=open_order.id).count() == 1

    def test_settlement_completes_every_linked_row(self, open_order, admin, customer):
        revenue, _ = transaction_service.create_transaction(
            customer, {"type": "revenue", "amount": Decimal("500"), "order_id": open_order.id}
        )
        commission, _ = transaction_service.create_transaction(
            admin, {"type": "commission", "amount": Decimal("40"), "order_id": open_order.id, "status": "cancelled"}
        )
        assert revenue.status == "pending"
        assert commission.status == "cancelled"

        order_service.update_order(open_order.id, admin, {"status": "paid"})

        db.session.expire_all()
        rows = db.session.query(Transaction).filter_by(order_id=open_order.id).all()
        assert {row.type for row in rows} == {"revenue", "commission", "expense"}
        assert {row.status for row in rows} == {"completed"}

    def test_failure_does_not_block_order_update(self, open_order, admin, monkeypatch, caplog):
        def _boom(order):
            raise SideEffectError("disk full")

        monkeypatch.setattr(transaction_service, "_upsert_settlement_transaction", _boom)

        order = order_service.update_order(open_order.id, admin, {"status": "delivered"})

        db.session.expire_all()
        stored = db.session.get(Order, order.id)
        assert stored.status == "delivered"
        assert stored.payment_status == "paid"
        assert db.session.query(Transaction).count() == 0
        assert "Automatic transaction failed" in caplog.text

    def test_database_failure_does_not_block_order_update(
        self, open_order, admin, blocked_transaction_inserts, caplog
    ):
        order = order_service.update_order(open_order.id, admin, {"status": "delivered"})

        db.session.expire_all()
        stored = db.session.get(Order, order.id)
        assert stored.status == "delivered"
        assert stored.payment_status == "paid"
        assert stored.total == Decimal("2000.00")
        assert db.session.query(Transaction).count() == 0
        assert "Automatic transaction failed" in caplog.text

    def test_side_effect_recovers_on_next_mutation(self, open_order, admin, monkeypatch):
        monkeypatch.setattr(
            transaction_service,
            "_upsert_settlement_transaction",
            lambda order: (_ for _ in ()).throw(SideEffectError("down")),
        )
        order_service.update_order(open_order.id, admin, {"status": "delivered"})
        monkeypatch.undo()

        order_service.update_order(open_order.id, admin, {"notes": "retry"})
        assert db.session.query(Transaction).filter_by(order_id=open_order.id).count() == 1


class TestDirectTransactions:

    def test_unlinked_transaction_is_completed(self, db_session, customer):
        trx, created = transaction_service.create_transaction(
            customer, {"type": "revenue", "amount": Decimal("150"), "currency": "eur"}
        )
        assert created
        assert trx.status == "completed"
        assert trx.user_id == customer.id
        assert trx.currency == "EUR"

    def test_linked_transaction_on_open_order_is_pending(self, open_order, customer):
        trx, _ = transaction_service.create_transaction(
            customer, {"type": "expense", "amount": Decimal("10"), "order_id": open_order.id}
        )
        assert trx.status == "pending"
        assert trx.currency == open_order.currency

    def test_linked_transaction_owner_is_order_owner(self, open_order, admin, customer):
        trx, _ = transaction_service.create_transaction(
            admin, {"type": "commission", "amount": Decimal("10"), "order_id": open_order.id}
        )
        assert trx.user_id == customer.id

    def test_same_triple_updates_existing(self, open_order, admin, customer):
        first, created = transaction_service.create_transaction(
            customer, {"type": "expense", "amount": Decimal("10"), "order_id": open_order.id}
        )
        second, created_again = transaction_service.create_transaction(
            admin, {"type": "expense", "amount": Decimal("25"), "order_id": open_order.id}
        )
        assert created and not created_again
        assert second.id == first.id
        assert second.amount == Decimal("25.00")

    def test_owner_resubmit_keeps_amount(self, open_order, customer):
        first, _ = transaction_service.create_transaction(
            customer, {"type": "expense", "amount": Decimal("10"), "order_id": open_order.id}
        )
        again, created = transaction_service.create_transaction(
            customer, {"type": "expense", "amount": Decimal("10.00"), "order_id": open_order.id, "description": "x"}
        )
        assert not created
        assert again.id == first.id

        with pytest.raises(AccessDeniedError):
            transaction_service.create_transaction(
                customer, {"type": "expense", "amount": Decimal("1"), "order_id": open_order.id}
            )
        db.session.expire_all()
        assert db.session.get(Transaction, first.id).amount == Decimal("10.00")

    def test_agent_cannot_rewrite_settlement_expense(self, open_order, admin, agent):
        order_service.update_order(open_order.id, admin, {"status": "paid"})

        with pytest.raises(AccessDeniedError):
            transaction_service.create_transaction(
                agent, {"type": "expense", "amount": Decimal("1"), "order_id": open_order.id}
            )
        db.session.expire_all()
        trx = db.session.query(Transaction).filter_by(order_id=open_order.id).one()
        assert trx.amount == Decimal("2000.00")
        assert trx.status == "completed"

    def test_owner_cannot_rewrite_completed_row(self, open_order, admin, customer):
        order_service.update_order(open_order.id, admin, {"status": "delivered"})

        with pytest.raises(AccessDeniedError):
            transaction_service.create_transaction(
                customer, {"type": "expense", "amount": Decimal("2000"), "order_id": open_order.id}
            )

    def test_admin_status_cannot_reopen_settled_order_row(self, open_order, admin):
        order_service.update_order(open_order.id, admin, {"status": "paid"})

        trx, created = transaction_service.create_transaction(
            admin,
            {"type": "commission", "amount": Decimal("50"), "order_id": open_order.id, "status": "cancelled"},
        )
        assert created
        assert trx.status == "completed"

    def test_update_on_settled_order_forces_completed(self, open_order, admin, customer):
        trx, _ = transaction_service.create_transaction(
            customer, {"type": "adjustment", "amount": Decimal("5"), "order_id": open_order.id}
        )
        order_service.update_order(open_order.id, admin, {"status": "paid"})

        trx = transaction_service.update_transaction(trx.id, admin, {"status": "pending"})
        assert trx.status == "completed"

    def test_missing_type_or_amount(self, db_session, customer):
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(customer, {"amount": Decimal("1")})
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(customer, {"type": "bribe", "amount": Decimal("1")})
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(customer, {"type": "revenue", "amount": None})

    def test_unknown_order(self, db_session, customer):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(
                customer, {"type": "revenue", "amount": Decimal("1"), "order_id": 999}
            )

    def test_client_cannot_link_foreign_order(self, open_order, other_customer):
        with pytest.raises(AccessDeniedError):
            transaction_service.create_transaction(
                other_customer, {"type": "expense", "amount": Decimal("1"), "order_id": open_order.id}
            )

    def test_owner_cannot_change_admin_fields(self, open_order, customer):
        trx, _ = transaction_service.create_transaction(
            customer, {"type": "expense", "amount": Decimal("10"), "order_id": open_order.id}
        )
        with pytest.raises(AccessDeniedError):
            transaction_service.update_transaction(trx.id, customer, {"amount": Decimal("1")})

        trx = transaction_service.update_transaction(trx.id, customer, {"description": "Acompte"})
        assert trx.description == "Acompte"

    def test_owner_cannot_touch_completed_transaction(self, db_session, customer):
        trx, _ = transaction_service.create_transaction(customer, {"type": "revenue", "amount": Decimal("1")})
        with pytest.raises(AccessDeniedError):
            transaction_service.update_transaction(trx.id, customer, {"description": "late"})
        with pytest.raises(AccessDeniedError):
            transaction_service.delete_transaction(trx.id, customer)

    def test_relinking_copies_order_owner(self, open_order, admin, client_user):
        trx, _ = transaction_service.create_transaction(admin, {"type": "revenue", "amount": Decimal("3")})
        assert trx.user_id == admin.id

        trx = transaction_service.update_transaction(trx.id, admin, {"order_id": open_order.id})
        assert trx.order_id == open_order.id
        assert trx.user_id == client_user.id

    def test_relinking_onto_taken_triple_conflicts(self, open_order, admin, customer):
        transaction_service.create_transaction(
            customer, {"type": "revenue", "amount": Decimal("3"), "order_id": open_order.id}
        )
        loose, _ = transaction_service.create_transaction(customer, {"type": "revenue", "amount": Decimal("4")})

        with pytest.raises(ConflictError):
            transaction_service.update_transaction(loose.id, admin, {"order_id": open_order.id})

    def test_invalid_status_leaves_row_untouched(self, db_session, admin):
        trx, _ = transaction_service.create_transaction(admin, {"type": "revenue", "amount": Decimal("3")})
        with pytest.raises(ValidationError):
            transaction_service.update_transaction(trx.id, admin, {"description": "x", "status": "lost"})
        db.session.expire_all()
        assert db.session.get(Transaction, trx.id).description is None


class TestAggregates:

    def test_summary_balance(self, db_session, admin):
        for tx_type, amount in [("revenue", "1000"), ("expense", "300"), ("commission", "50"), ("adjustment", "20")]:
            transaction_service.create_transaction(admin, {"type": tx_type, "amount": Decimal(amount)})

        summary = transaction_service.financial_summary()
        assert summary["revenues"] == Decimal("1000.00")
        assert summary["expenses"] == Decimal("300.00")
        assert summary["balance"] == Decimal("670.00")

    def test_period_report(self, db_session, admin):
        transaction_service.create_transaction(admin, {"type": "revenue", "amount": Decimal("12.5")})
        report = transaction_service.period_report()
        assert report["count"] == 1
        assert report["totals"]["revenue"] == Decimal("12.50")
        assert {row["type"] for row in report["totals_with_labels"]} == {"revenue", "expense", "commission", "adjustment"}

    def test_period_report_rejects_inverted_range(self, db_session):
        from datetime import datetime
        with pytest.raises(ValidationError):
            transaction_service.period_report(datetime(2025, 2, 1), datetime(2025, 1, 1))
