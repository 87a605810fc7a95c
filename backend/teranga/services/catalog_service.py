# Overview: Product snapshot lookup used to prefill order items.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..money import clamp_non_negative, round2
from ..validation import ConflictError


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    sku: str | None
    price: Decimal


def get_product_snapshot(product_id: int | None) -> ProductSnapshot | None:
    """
    Return the product's current name/sku/price, or None if it does not exist.

    A missing product is not an error: the item keeps caller-supplied values.
    """
    if not product_id:
        return None
    product = db.session.get(Product, product_id)
    if product is None:
        return None
    return ProductSnapshot(
        id=product.id,
        name=product.name,
        sku=product.sku,
        price=round2(product.price),
    )


def create_product(name: str, price, sku: str | None = None) -> Product:
    """Raises ConflictError when the SKU is already used."""
    product = Product(name=name, sku=sku, price=round2(clamp_non_negative(price)))
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU already exists: {sku}")
    return product
