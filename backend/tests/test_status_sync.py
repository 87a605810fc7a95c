"""
Order status -> payment status rule.
"""

from types import SimpleNamespace

import pytest

from teranga.services import order_service
from teranga.services.status_sync import (
    ORDER_STATUSES,
    SETTLED_ORDER_STATUSES,
    forced_payment_status,
    is_settled,
    sync_payment_status,
)


class TestForcedPaymentStatus:

    @pytest.mark.parametrize("status,expected", [
        ("paid", "paid"),
        ("fulfilled", "paid"),
        ("delivered", "paid"),
        ("cancelled", "refunded"),
        ("refunded", "refunded"),
    ])
    def test_implied_statuses(self, status, expected):
        assert forced_payment_status(status) == expected
        order = SimpleNamespace(status=status, payment_status="unpaid")
        assert sync_payment_status(order).payment_status == expected

    @pytest.mark.parametrize("status", ["created", "processing", "shipped", None, "unknown"])
    def test_caller_controlled_statuses(self, status):
        assert forced_payment_status(status) is None
        order = SimpleNamespace(status=status, payment_status="partial")
        assert sync_payment_status(order).payment_status == "partial"

    def test_settled_set(self):
        assert SETTLED_ORDER_STATUSES == {"paid", "fulfilled", "delivered"}
        assert SETTLED_ORDER_STATUSES <= set(ORDER_STATUSES)
        assert not is_settled("shipped")


class TestPaymentStatusOnUpdate:

    def test_explicit_payment_status_is_overridden(self, db_session, admin, customer):
        order = order_service.create_order(customer, {})
        order = order_service.update_order(order.id, admin, {"status": "cancelled", "payment_status": "paid"})
        assert order.status == "cancelled"
        assert order.payment_status == "refunded"

    def test_payment_status_kept_for_open_statuses(self, db_session, admin, customer):
        order = order_service.create_order(customer, {})
        order = order_service.update_order(order.id, admin, {"status": "shipped", "payment_status": "partial"})
        assert order.payment_status == "partial"

    def test_client_cannot_choose_initial_status(self, db_session, customer):
        order = order_service.create_order(customer, {"status": "paid", "payment_status": "paid"})
        assert order.status == "created"
        assert order.payment_status == "unpaid"

    def test_admin_initial_status_applies_rules(self, db_session, admin, client_user):
        order = order_service.create_order(admin, {"user_id": client_user.id, "status": "paid"})
        assert order.user_id == client_user.id
        assert order.payment_status == "paid"
        assert len(order.transactions) == 1
