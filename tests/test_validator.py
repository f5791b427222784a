"""
Tests for order request validation (no database access).
"""

from decimal import Decimal

import pytest

from order_service.errors import ValidationError
from order_service.validator import check_order_request, parse_order_request


def _request(**overrides):
    payload = {
        "buyer_id": 1,
        "lines": [{"product_id": 7, "quantity": 2, "unit_price": 5.0}],
        "total_amount": 10.0,
    }
    payload.update(overrides)
    return payload


class TestCheckOrderRequest:

    def test_accepts_valid_request(self):
        assert check_order_request(_request()) is None

    def test_rejects_non_mapping(self):
        assert check_order_request(["not", "an", "object"]) is not None

    @pytest.mark.parametrize("missing", ["buyer_id", "lines", "total_amount"])
    def test_rejects_missing_field(self, missing):
        payload = _request()
        del payload[missing]
        assert "required" in check_order_request(payload)

    def test_rejects_empty_lines(self):
        assert check_order_request(_request(lines=[])) == "lines must be a non-empty list"

    @pytest.mark.parametrize("buyer_id", [0, -3, "abc", True, 1.5, "²"])
    def test_rejects_bad_buyer_id(self, buyer_id):
        assert check_order_request(_request(buyer_id=buyer_id)) == "buyer_id must be a positive integer"

    @pytest.mark.parametrize("total", [0, -1, "ten", False])
    def test_rejects_bad_total(self, total):
        assert check_order_request(_request(total_amount=total)) == "total_amount must be a positive number"

    def test_buyer_checked_before_total(self):
        reason = check_order_request(_request(buyer_id=-1, total_amount=-1))
        assert reason == "buyer_id must be a positive integer"

    def test_rejects_bad_product_id(self):
        reason = check_order_request(_request(lines=[{"product_id": 0, "quantity": 1}]))
        assert reason == "Line 0 has an invalid product id"

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, "many", None, "²"])
    def test_rejects_bad_quantity(self, quantity):
        reason = check_order_request(_request(lines=[{"product_id": 1, "quantity": quantity}]))
        assert reason == "Line 0 has an invalid quantity"

    def test_rejects_non_numeric_price(self):
        reason = check_order_request(
            _request(lines=[{"product_id": 1, "quantity": 1, "unit_price": "cheap"}])
        )
        assert reason == "Line 0 has an invalid unit price"

    @pytest.mark.parametrize("price", ["1.005", 0.125, "19.999"])
    def test_rejects_sub_cent_price(self, price):
        reason = check_order_request(
            _request(lines=[{"product_id": 1, "quantity": 1, "unit_price": price}])
        )
        assert reason == "Line 0 unit price has more than 2 decimal places"

    @pytest.mark.parametrize("price", ["19.99", "1.000", 3])
    def test_accepts_whole_cent_price(self, price):
        line = {"product_id": 1, "quantity": 1, "unit_price": price}
        assert check_order_request(_request(lines=[line])) is None

    def test_reports_first_bad_line(self):
        lines = [
            {"product_id": 1, "quantity": 1},
            {"product_id": 2, "quantity": 0},
        ]
        assert check_order_request(_request(lines=lines)) == "Line 1 has an invalid quantity"

    @pytest.mark.parametrize("price", [None, 0, -4.5, "-0.001"])
    def test_missing_or_non_positive_price_is_accepted(self, price):
        line = {"product_id": 1, "quantity": 1}
        if price is not None:
            line["unit_price"] = price
        assert check_order_request(_request(lines=[line])) is None


class TestParseOrderRequest:

    def test_builds_typed_request(self):
        request = parse_order_request(_request())
        assert request.buyer_id == 1
        assert request.total_amount == Decimal("10.0")
        assert request.lines[0].product_id == 7
        assert request.lines[0].quantity == 2
        assert request.lines[0].unit_price == Decimal("5.0")

    def test_non_positive_price_marked_for_substitution(self):
        request = parse_order_request(
            _request(lines=[{"product_id": 1, "quantity": 1, "unit_price": 0}])
        )
        assert request.lines[0].unit_price is None

    def test_accepts_legacy_camel_case_keys(self):
        request = parse_order_request({
            "userId": "4",
            "items": [{"productId": "9", "quantity": "3", "price": "2.50"}],
            "totalAmount": "7.50",
        })
        assert request.buyer_id == 4
        assert request.lines[0].product_id == 9
        assert request.lines[0].quantity == 3
        assert request.lines[0].unit_price == Decimal("2.50")
        assert request.total_amount == Decimal("7.50")

    def test_float_money_keeps_its_decimal_text(self):
        request = parse_order_request(_request(total_amount=0.1))
        assert request.total_amount == Decimal("0.1")

    def test_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_order_request(_request(lines=[]))
        assert exc_info.value.kind == "ValidationError"
        assert exc_info.value.message == "lines must be a non-empty list"
