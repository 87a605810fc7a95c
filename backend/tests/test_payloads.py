"""
Request normalization: aliases, coercion and enum validation.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from werkzeug.datastructures import MultiDict

from teranga.payloads import (
    MAX_AMOUNT,
    MAX_INTEGER,
    normalize_item_payload,
    normalize_order_payload,
    normalize_transaction_payload,
    order_filters,
    transaction_filters,
)
from teranga.validation import ValidationError, get_pagination, require_choice


class TestOrderPayload:

    def test_aliases_map_to_canonical_keys(self):
        out = normalize_order_payload({
            "orderStatus": "processing",
            "paymentStatus": "partial",
            "paymentMethod": " wave ",
            "customerNote": "Livrer le matin",
            "userId": "7",
            "shippingAddress": {"city": "Dakar"},
        })
        assert out["status"] == "processing"
        assert out["payment_status"] == "partial"
        assert out["payment_method"] == "wave"
        assert out["notes"] == "Livrer le matin"
        assert out["user_id"] == 7
        assert out["shipping_address"] == {"city": "Dakar"}
        assert out["items"] == []

    def test_canonical_name_wins_over_alias(self):
        out = normalize_order_payload({"status": "paid", "orderStatus": "created"}, partial=True)
        assert out["status"] == "paid"

    def test_partial_only_returns_present_keys(self):
        assert normalize_order_payload({"note": "x"}, partial=True) == {"notes": "x"}

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            normalize_order_payload({"status": "lost"})
        with pytest.raises(ValidationError):
            normalize_order_payload({"payment_status": "maybe"})

    def test_blank_status_is_ignored(self):
        assert "status" not in normalize_order_payload({"status": ""}, partial=True)

    def test_amounts_are_coerced_not_rejected(self):
        out = normalize_order_payload({"tax": "12.5", "shipping": "abc"}, partial=True)
        assert out["tax"] == Decimal("12.5")
        assert out["shipping"] is None

    def test_out_of_range_tax_rejected(self):
        with pytest.raises(ValidationError, match="tax is out of range"):
            normalize_order_payload({"tax": "1e30"}, partial=True)

    def test_items_are_normalized(self):
        out = normalize_order_payload({"items": [{"productId": "3", "qty": "2", "price": "10"}]})
        assert out["items"] == [{"product_id": 3, "quantity": 2, "unit_price": Decimal("10")}]

    @pytest.mark.parametrize("body", [[], "text", 12])
    def test_body_must_be_object(self, body):
        with pytest.raises(ValidationError):
            normalize_order_payload(body)

    def test_items_must_be_list(self):
        with pytest.raises(ValidationError):
            normalize_order_payload({"items": {"name": "x"}})

    def test_address_must_be_object(self):
        with pytest.raises(ValidationError):
            normalize_order_payload({"billing_address": "12 rue"}, partial=True)


class TestItemPayload:

    def test_meta_must_be_object(self):
        with pytest.raises(ValidationError):
            normalize_item_payload({"meta": ["a"]})

    def test_status_length_limit(self):
        assert normalize_item_payload({"itemStatus": " ready "})["status"] == "ready"
        with pytest.raises(ValidationError):
            normalize_item_payload({"status": "x" * 33})

    def test_bad_numbers_become_none(self):
        out = normalize_item_payload({"quantity": "many", "unitPrice": "cheap"})
        assert out == {"quantity": None, "unit_price": None}

    @pytest.mark.parametrize("body", [
        {"unit_price": "1e30"},
        {"price": -1e12},
        {"quantity": "1e30"},
        {"qty": 2_147_483_648},
        {"product_id": "99999999999"},
    ])
    def test_out_of_range_numbers_rejected(self, body):
        with pytest.raises(ValidationError, match="out of range"):
            normalize_item_payload(body)

    def test_column_limits_are_accepted(self):
        out = normalize_item_payload({"unit_price": str(MAX_AMOUNT), "quantity": MAX_INTEGER})
        assert out == {"unit_price": MAX_AMOUNT, "quantity": MAX_INTEGER}


class TestTransactionPayload:

    def test_form_strings(self):
        form = MultiDict({"type": "expense", "amount": "1500", "orderId": "4", "paymentMethod": "orange money"})
        out = normalize_transaction_payload(form)
        assert out["type"] == "expense"
        assert out["amount"] == Decimal("1500")
        assert out["order_id"] == 4
        assert out["payment_method"] == "orange money"

    def test_unparseable_amount(self):
        assert normalize_transaction_payload({"amount": "n/a"})["amount"] is None

    def test_out_of_range_amount_rejected(self):
        with pytest.raises(ValidationError, match="amount is out of range"):
            normalize_transaction_payload({"amount": "10000000000"})


class TestFilters:

    def test_order_filters(self):
        filters = order_filters({"q": " CMD ", "paymentStatus": "paid", "userId": "5"})
        assert filters == {"q": "CMD", "status": None, "payment_status": "paid", "user_id": 5}

    def test_transaction_filters(self):
        filters = transaction_filters({
            "currency": "eur",
            "minAmount": "10",
            "start_date": "2025-01-01",
            "end": "2025-01-31T23:59:59Z",
        })
        assert filters["currency"] == "EUR"
        assert filters["min_amount"] == Decimal("10")
        assert filters["start"] == datetime(2025, 1, 1)
        assert filters["end"] == datetime(2025, 1, 31, 23, 59, 59)

    def test_bad_date(self):
        with pytest.raises(ValidationError):
            transaction_filters({"start": "yesterday"})

    def test_out_of_range_filters_rejected(self):
        with pytest.raises(ValidationError):
            order_filters({"user_id": "1e30"})
        with pytest.raises(ValidationError):
            transaction_filters({"max_amount": "1e30"})


class TestValidationHelpers:

    def test_require_choice_trims(self):
        assert require_choice("status", " paid ", ("paid",)) == "paid"
        with pytest.raises(ValidationError):
            require_choice("status", None, ("paid",))

    @pytest.mark.parametrize("args,expected", [
        ({}, (50, 0, 1)),
        ({"limit": "10", "page": "3"}, (10, 20, 3)),
        ({"limit": "10", "offset": "30"}, (10, 30, 4)),
        ({"limit": "0"}, (1, 0, 1)),
        ({"limit": "5000"}, (200, 0, 1)),
        ({"page": "-2"}, (50, 0, 1)),
    ])
    def test_pagination(self, args, expected):
        assert get_pagination(args) == expected
