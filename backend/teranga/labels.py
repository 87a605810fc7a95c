# Overview: Read-only display labels for stored enum values.

"""
Display labels (French, as shown in the Teranga UI).

Keys are the technical values stored in the database. Tables are wrapped in
MappingProxyType so no caller can mutate them at runtime.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

ROLE_LABELS = MappingProxyType({
    "client": "Client",
    "agent": "Agent",
    "admin": "Administrateur",
})

ORDER_STATUS_LABELS = MappingProxyType({
    "created": "Créée",
    "processing": "En traitement",
    "paid": "Payée",
    "shipped": "Expédiée",
    "fulfilled": "Livrée",
    "delivered": "Livraison validée",
    "cancelled": "Annulée",
    "refunded": "Remboursée",
})

PAYMENT_STATUS_LABELS = MappingProxyType({
    "unpaid": "Non payée",
    "partial": "Paiement partiel",
    "paid": "Payée",
    "refunded": "Remboursée",
})

ORDER_ITEM_STATUS_LABELS = MappingProxyType({
    "pending": "En attente",
    "prepared": "Préparé",
    "fulfilled": "Livré",
    "backordered": "En rupture",
    "delivered": "Livré",
    "done": "Terminé",
    "returned": "Retourné",
    "cancelled": "Annulé",
})

TRANSACTION_TYPE_LABELS = MappingProxyType({
    "revenue": "Revenu",
    "expense": "Dépense",
    "commission": "Commission",
    "adjustment": "Ajustement",
})

TRANSACTION_STATUS_LABELS = MappingProxyType({
    "pending": "En attente",
    "completed": "Effectuée",
    "cancelled": "Annulée",
})

CURRENCY_LABELS = MappingProxyType({
    "XOF": "Franc CFA (XOF)",
    "EUR": "Euro (€)",
    "USD": "Dollar US ($)",
    "GBP": "Livre sterling (£)",
})

CURRENCY_SYMBOLS = MappingProxyType({
    "XOF": "CFA",
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
})


def get_label(key: str | None, table: Mapping[str, str]) -> str:
    """Label for a technical key, falling back to the key itself."""
    if not key:
        return ""
    return table.get(key, key)


def format_currency(code: str | None = "XOF") -> str:
    """Readable symbol for a currency code ("XOF" -> "CFA")."""
    c = str(code or "").upper().strip()
    return CURRENCY_SYMBOLS.get(c, c or "XOF")
