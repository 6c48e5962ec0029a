"""
Checkout tests.

Verifies:
- Line pricing per selected unit and stock removal in base units
- Discount clamping, tax and the total invariant
- Paid/due split and the credit rule
- A failed checkout leaves stock, sales and balances untouched
"""

from decimal import Decimal

import pytest

from pasal.extensions import db
from pasal.models import Customer, Payment, Product, Sale
from pasal.services import checkout_service, products_service
from pasal.services.checkout_service import compute_totals, price_line, split_payment
from pasal.validation import (
    CustomerNotFound,
    CustomerRequiredForCredit,
    EmptyCart,
    InsufficientStock,
    InvalidAmount,
    InvalidQuantity,
    ProductNotFound,
)


def stock_of(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).quantity


# =============================================================================
# PRICING
# =============================================================================


class TestPricing:

    def test_pack_line(self, product):
        line = price_line(product, 1, 1)
        assert line.base_quantity == Decimal("10")
        assert line.unit_price == Decimal("18")
        assert line.price_per_base_unit == Decimal("1.8")
        assert line.subtotal == Decimal("18")
        assert line.unit_label == "pack"
        assert line.base_unit_label == "pc"

    def test_derived_price_for_unit_without_price(self, rice):
        line = price_line(rice, 2, 1)
        assert line.unit_price == Decimal("125")
        assert line.subtotal == Decimal("250")
        assert line.base_quantity == Decimal("50")

    def test_missing_level_falls_back_to_base(self, product):
        line = price_line(product, 3, 9)
        assert line.unit_level == 0
        assert line.base_quantity == Decimal("3")

    def test_zero_quantity_rejected(self, product):
        with pytest.raises(InvalidQuantity):
            price_line(product, 0, 0)

    @pytest.mark.parametrize("quantity", ["0.00001", 1e30])
    def test_quantity_outside_stock_precision_rejected(self, product, quantity):
        with pytest.raises(InvalidQuantity):
            price_line(product, quantity, 0)


class TestTotals:

    @pytest.mark.parametrize("discount", [-5, 0, "3.33", 17.999, 1000, "abc", None])
    def test_total_invariant(self, product, discount):
        lines = [price_line(product, 1, 1), price_line(product, 3, 0)]
        totals = compute_totals(lines, discount, Decimal("0.07"))
        assert totals.subtotal == Decimal("24")
        assert Decimal("0") <= totals.discount <= totals.subtotal
        assert totals.total == totals.subtotal - totals.discount + totals.tax

    def test_discount_capped_at_subtotal(self, product):
        totals = compute_totals([price_line(product, 25, 0)], 1000, Decimal("0.07"))
        assert totals.subtotal == Decimal("50")
        assert totals.discount == Decimal("50")
        assert totals.tax == 0
        assert totals.total == 0

    def test_huge_discount_capped_at_subtotal(self, product):
        totals = compute_totals([price_line(product, 1, 1)], 1e30, Decimal("0.07"))
        assert totals.discount == Decimal("18")
        assert totals.tax == 0
        assert totals.total == 0

    def test_tax_rounded_half_up_to_cents(self, product):
        totals = compute_totals([price_line(product, 1, 0)], 0, Decimal("0.0725"))
        assert totals.tax == Decimal("0.15")
        assert totals.total == Decimal("2.15")

    def test_split_defaults_to_paid_in_full(self):
        split = split_payment(Decimal("19.26"), None)
        assert (split.paid, split.due, split.status) == (Decimal("19.26"), 0, "paid")

    def test_split_partial_and_unpaid(self):
        assert split_payment(Decimal("50"), 20).status == "partial"
        assert split_payment(Decimal("50"), 0).status == "unpaid"
        assert split_payment(Decimal("50"), -10).due == Decimal("50")

    def test_split_caps_overpayment(self):
        split = split_payment(Decimal("10"), 25)
        assert split.paid == Decimal("10")
        assert split.due == 0

    def test_split_caps_huge_amount_received(self):
        split = split_payment(Decimal("19.26"), 1e30)
        assert (split.paid, split.due, split.status) == (Decimal("19.26"), 0, "paid")

    def test_split_rejects_non_numeric(self):
        with pytest.raises(InvalidAmount):
            split_payment(Decimal("10"), "ten")


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckout:

    def test_pack_sale_removes_base_units(self, product):
        sale = checkout_service.checkout([{"product_id": product.id, "quantity": 1, "unit_level": 1}])
        item = sale.items[0]
        assert item.quantity == Decimal("10")
        assert item.unit_price == Decimal("18")
        assert item.subtotal == Decimal("18")
        assert sale.tax == Decimal("1.26")
        assert sale.total == Decimal("19.26")
        assert stock_of(product.id) == Decimal("15")

    def test_insufficient_stock_changes_nothing(self, product):
        with pytest.raises(InsufficientStock) as exc_info:
            checkout_service.checkout([{"product_id": product.id, "quantity": 30, "unit_level": 0}])
        assert "Biscuits" in str(exc_info.value)
        assert stock_of(product.id) == Decimal("25")
        assert db.session.query(Sale).count() == 0

    def test_stock_check_aggregates_lines_for_same_product(self, product):
        items = [
            {"product_id": product.id, "quantity": 2, "unit_level": 1},
            {"product_id": product.id, "quantity": 6, "unit_level": 0},
        ]
        with pytest.raises(InsufficientStock):
            checkout_service.checkout(items)
        assert stock_of(product.id) == Decimal("25")

    def test_failing_line_rolls_back_earlier_lines(self, product, rice):
        items = [
            {"product_id": rice.id, "quantity": 1, "unit_level": 1},
            {"product_id": 9999, "quantity": 1},
        ]
        with pytest.raises(ProductNotFound):
            checkout_service.checkout(items)
        assert stock_of(rice.id) == Decimal("100")
        assert db.session.query(Sale).count() == 0

    def test_discount_larger_than_subtotal(self, product):
        sale = checkout_service.checkout(
            [{"product_id": product.id, "quantity": 25, "unit_level": 0}],
            discount_amount=1000,
        )
        assert sale.subtotal == Decimal("50")
        assert sale.discount_amount == Decimal("50")
        assert sale.tax == 0
        assert sale.total == 0
        assert sale.status == "paid"

    def test_no_amount_received_is_paid_in_full(self, product):
        sale = checkout_service.checkout([{"product_id": product.id, "quantity": 1}])
        assert sale.customer_id is None
        assert sale.paid_amount == sale.total
        assert sale.due_amount == 0
        assert sale.status == "paid"

    def test_credit_requires_customer(self, product):
        with pytest.raises(CustomerRequiredForCredit):
            checkout_service.checkout(
                [{"product_id": product.id, "quantity": 1}],
                amount_received=0,
            )
        assert stock_of(product.id) == Decimal("25")

    def test_unknown_customer(self, product):
        with pytest.raises(CustomerNotFound):
            checkout_service.checkout([{"product_id": product.id, "quantity": 1}], customer_id=9999)

    def test_empty_cart(self):
        with pytest.raises(EmptyCart):
            checkout_service.checkout([])

    def test_sub_step_quantity_creates_no_sale(self, product):
        with pytest.raises(InvalidQuantity):
            checkout_service.checkout([{"product_id": product.id, "quantity": "0.00001"}])
        assert db.session.query(Sale).count() == 0
        assert stock_of(product.id) == Decimal("25")

    def test_huge_quantity_rejected(self, product):
        with pytest.raises(InvalidQuantity):
            checkout_service.checkout([{"product_id": product.id, "quantity": 1e30}])
        assert stock_of(product.id) == Decimal("25")

    def test_large_in_range_quantity_is_insufficient_stock(self, product):
        with pytest.raises(InsufficientStock):
            checkout_service.checkout([{"product_id": product.id, "quantity": "9999999999", "unit_level": 0}])
        assert stock_of(product.id) == Decimal("25")

    def test_partial_payment_charges_customer(self, product, customer, no_tax):
        sale = checkout_service.checkout(
            [{"product_id": product.id, "quantity": 2, "unit_level": 1}],
            customer_id=customer.id,
            amount_received=10,
            payment_method="card",
            due_note="pay friday",
        )
        assert sale.total == Decimal("36")
        assert sale.paid_amount == Decimal("10")
        assert sale.due_amount == Decimal("26")
        assert sale.status == "partial"
        assert sale.customer_name == "Asha"

        db.session.expire_all()
        assert db.session.get(Customer, customer.id).balance == Decimal("26")
        entries = {p.type: p.amount for p in db.session.query(Payment).filter_by(sale_id=sale.id)}
        assert entries == {"payment": Decimal("10"), "charge": Decimal("26")}

    def test_item_snapshot_survives_product_edit(self, product):
        sale = checkout_service.checkout([{"product_id": product.id, "quantity": 1, "unit_level": 1}])
        products_service.update_product(product.id, {"name": "Cookies", "price": 5})
        db.session.expire_all()
        item = db.session.get(Sale, sale.id).items[0]
        assert item.name == "Biscuits"
        assert item.unit_price == Decimal("18")


class TestCheckoutRoute:

    def test_checkout_returns_201(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 1, "unit_level": 1}],
            "customer_name": "Walk-in",
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["total"] == 19.26
        assert data["items"][0]["unit_label"] == "pack"
        assert data["customer_name"] == "Walk-in"

    def test_insufficient_stock_is_400(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 3, "unit_level": 1}],
        })
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "insufficient_stock"
        assert body["details"]["product_id"] == product.id

    def test_missing_product_is_404(self, client, staff_headers):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": 9999, "quantity": 1}],
        })
        assert resp.status_code == 404

    def test_bad_customer_id_is_400(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 1}],
            "customer_id": "abc",
        })
        assert resp.status_code == 400

    def test_huge_discount_is_capped(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 1, "unit_level": 1}],
            "discount_amount": 1e30,
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["discount_amount"] == 18
        assert body["total"] == 0

    def test_huge_amount_received_is_capped(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 1, "unit_level": 1}],
            "amount_received": 1e30,
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["paid_amount"] == body["total"] == 19.26
        assert body["due_amount"] == 0

    def test_huge_quantity_is_400(self, client, staff_headers, product):
        resp = client.post("/api/sales/checkout", headers=staff_headers, json={
            "items": [{"product_id": product.id, "quantity": 1e30}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_quantity"
