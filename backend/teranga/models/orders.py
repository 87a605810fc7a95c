from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ..labels import (
    ORDER_STATUS_LABELS,
    PAYMENT_STATUS_LABELS,
    ORDER_ITEM_STATUS_LABELS,
    get_label,
    format_currency,
)
from ..money import to_json_amount
from ..validation import ConflictError
from teranga.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order (shop module).

    WHY: Totals are derived, never trusted from input:
    - subtotal = sum(item.line_total)
    - total = subtotal + tax + shipping

    Payment status follows the lifecycle status for the statuses listed in
    services/status_sync.py.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status", "status"),
        db.Index("ix_orders_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Human-readable code (e.g., "CMD-20251108-1234"), immutable once assigned
    code = db.Column(db.String(40), nullable=False, unique=True)

    # Amounts (2 decimals)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="XOF")

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default="created")
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")

    payment_method = db.Column(db.String(50), nullable=True)
    payment_ref = db.Column(db.String(120), nullable=True)

    shipping_address = db.Column(db.JSON, nullable=True)
    billing_address = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("User", backref=db.backref("orders", lazy=True, passive_deletes=True))
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @validates("code")
    def _validate_code(self, key, value):
        if self.code and value != self.code:
            raise ConflictError("Order code cannot be changed once assigned")
        return value

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "code": self.code,
            "subtotal": to_json_amount(self.subtotal),
            "tax": to_json_amount(self.tax),
            "shipping": to_json_amount(self.shipping),
            "total": to_json_amount(self.total),
            "currency": self.currency,
            "currency_label": format_currency(self.currency),
            "status": self.status,
            "status_label": get_label(self.status, ORDER_STATUS_LABELS),
            "payment_status": self.payment_status,
            "payment_status_label": get_label(self.payment_status, PAYMENT_STATUS_LABELS),
            "payment_method": self.payment_method,
            "payment_ref": self.payment_ref,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
        if self.customer is not None:
            data["customer"] = {
                "id": self.customer.id,
                "email": self.customer.email,
                "first_name": self.customer.first_name,
                "last_name": self.customer.last_name,
            }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line item of an order. name/sku are snapshots kept if the product goes away."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    name = db.Column(db.String(180), nullable=False)
    sku = db.Column(db.String(80), nullable=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    # Always computed server-side from quantity * unit_price
    line_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Free-form item lifecycle (pending, prepared, fulfilled, ...)
    status = db.Column(db.String(32), nullable=False, default="pending")
    meta = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "unit_price": to_json_amount(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_json_amount(self.line_total),
            "status": self.status,
            "status_label": get_label(self.status, ORDER_ITEM_STATUS_LABELS),
            "meta": self.meta,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
