from __future__ import annotations

from ..extensions import db
from ..labels import (
    TRANSACTION_TYPE_LABELS,
    TRANSACTION_STATUS_LABELS,
    CURRENCY_LABELS,
    get_label,
)
from ..money import to_json_amount
from teranga.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Financial ledger entry (revenue, expense, commission, adjustment).

    WHY: Money movements are recorded per owner. A transaction may point at
    one business context: an order (FK) or a service/task of the property
    module (plain ids, those tables live outside this backend).

    The automatic record of a settled order is the row keyed by
    (order_id, user_id, type='expense'); the unique constraint keeps it
    single.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("order_id", "user_id", "type", name="uq_transactions_order_user_type"),
        db.Index("ix_transactions_type", "type"),
        db.Index("ix_transactions_status", "status"),
        db.Index("ix_transactions_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Owner: the order's customer when linked to an order, else the creator
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    service_id = db.Column(db.Integer, nullable=True, index=True)
    task_id = db.Column(db.Integer, nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="XOF")
    payment_method = db.Column(db.String(50), nullable=True)

    # pending, completed, cancelled
    status = db.Column(db.String(16), nullable=False, default="pending")

    description = db.Column(db.Text, nullable=True)

    # {"path", "original_name", "size", "mime_type"}
    proof_file = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("transactions", lazy=True, passive_deletes=True))
    order = db.relationship("Order", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "service_id": self.service_id,
            "task_id": self.task_id,
            "type": self.type,
            "type_label": get_label(self.type, TRANSACTION_TYPE_LABELS),
            "amount": to_json_amount(self.amount),
            "currency": self.currency,
            "currency_label": get_label(self.currency, CURRENCY_LABELS),
            "payment_method": self.payment_method,
            "status": self.status,
            "status_label": get_label(self.status, TRANSACTION_STATUS_LABELS),
            "description": self.description,
            "proof_file": self.proof_file,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if self.order is not None:
            data["order"] = {
                "id": self.order.id,
                "code": self.order.code,
                "status": self.order.status,
                "user_id": self.order.user_id,
            }
        return data
