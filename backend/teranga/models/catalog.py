from __future__ import annotations

from ..extensions import db
from ..money import to_json_amount
from teranga.time_utils import to_utc_z


class Product(db.Model):
    """Catalog product. Order items copy name/sku/price from it at creation."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False)
    sku = db.Column(db.String(80), nullable=True, unique=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price": to_json_amount(self.price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
