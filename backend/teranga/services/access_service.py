# Overview: Role/ownership predicates consulted before every order, item and transaction operation.

"""
Access Control Gate

Every predicate returns a bool; callers translate False into
AccessDeniedError (HTTP 403). Roles:

- admin: full access to everything
- agent: reads any order and its items, never writes them
- client: reads its own orders; writes them only while the order is still
  created or processing

Transactions: admin always; the owner reads always and writes only while
the transaction is pending; anyone else is denied.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_AGENT = "agent"
ROLE_CLIENT = "client"

ROLES = (ROLE_CLIENT, ROLE_AGENT, ROLE_ADMIN)

# Past these statuses a client can no longer modify or delete its order
CLIENT_MUTABLE_ORDER_STATUSES = frozenset({"created", "processing"})

# An order holding an item in one of these statuses cannot be deleted
DELIVERED_ITEM_STATUSES = frozenset({"delivered", "fulfilled", "done"})

TRANSACTION_STATUS_PENDING = "pending"


class AccessDeniedError(Exception):
    """Raised when the gate rejects an operation."""
    pass


@dataclass(frozen=True)
class Caller:
    """Identity attached to every incoming operation."""
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user) -> "Caller":
        return cls(id=user.id, role=user.role)


def ensure(allowed: bool, message: str = "Access denied") -> None:
    if not allowed:
        raise AccessDeniedError(message)


# =============================================================================
# ORDERS
# =============================================================================

def can_read_order(caller: Caller | None, order) -> bool:
    if caller is None or order is None:
        return False
    if caller.role in (ROLE_ADMIN, ROLE_AGENT):
        return True
    if caller.role == ROLE_CLIENT:
        return order.user_id == caller.id
    return False


def can_write_order(caller: Caller | None, order=None) -> bool:
    """
    Create (order=None), update and delete rule.

    Clients create for themselves, and modify only their own orders while
    the status is created/processing.
    """
    if caller is None:
        return False
    if caller.role == ROLE_ADMIN:
        return True
    if caller.role == ROLE_CLIENT:
        if order is None:
            return True
        return order.user_id == caller.id and order.status in CLIENT_MUTABLE_ORDER_STATUSES
    return False


# =============================================================================
# ORDER ITEMS (inherit the parent order rules)
# =============================================================================

def can_read_order_item(caller: Caller | None, order) -> bool:
    return order is not None and can_read_order(caller, order)


def can_write_order_item(caller: Caller | None, order) -> bool:
    return order is not None and can_write_order(caller, order)


def order_has_delivered_items(order) -> bool:
    return any(item.status in DELIVERED_ITEM_STATUSES for item in order.items)


# =============================================================================
# TRANSACTIONS
# =============================================================================

def can_read_transaction(caller: Caller | None, trx) -> bool:
    if caller is None or trx is None:
        return False
    if caller.role == ROLE_ADMIN:
        return True
    return trx.user_id == caller.id


def can_write_transaction(caller: Caller | None, trx) -> bool:
    if caller is None or trx is None:
        return False
    if caller.role == ROLE_ADMIN:
        return True
    return trx.user_id == caller.id and trx.status == TRANSACTION_STATUS_PENDING


def can_delete_transaction(caller: Caller | None, trx) -> bool:
    return can_write_transaction(caller, trx)
