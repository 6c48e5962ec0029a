"""
Catalog tests.

Verifies:
- Product creation normalizes units, price and initial stock
- Partial updates keep price and base unit price in step
- Purchases add base units; explicit quantity updates replace stock
- Listing filters and the product API surface
"""

from decimal import Decimal

import pytest

from pasal.extensions import db
from pasal.models import Product, ProductUnit
from pasal.services import products_service
from pasal.services.concurrency import increment_quantity
from pasal.validation import InvalidQuantity, MissingBasePrice, ProductNotFound, ValidationError


def base_unit_price(product):
    return next(u.price for u in product.units if u.level == 0)


# =============================================================================
# SERVICE
# =============================================================================


class TestCreateProduct:

    def test_create_sets_price_from_base_unit(self, product):
        assert product.price == Decimal("2")
        assert product.quantity == Decimal("25")
        assert [u.name for u in product.units] == ["pc", "pack"]

    def test_initial_stock_entered_in_higher_unit(self, rice):
        # 4 sacks of 25 kg
        assert rice.quantity == Decimal("100")
        assert rice.price == Decimal("5")

    def test_flat_price_fills_missing_base_price(self):
        product = products_service.create_product({
            "name": "Soap",
            "category": "Household",
            "price": "1.20",
            "units": [{"name": "bar"}],
            "quantity": 0,
        })
        assert product.price == Decimal("1.20")
        assert base_unit_price(product) == Decimal("1.20")
        assert product.quantity == 0

    def test_missing_base_price(self):
        with pytest.raises(MissingBasePrice):
            products_service.create_product({
                "name": "Soap",
                "category": "Household",
                "units": [{"name": "bar"}],
                "quantity": 1,
            })

    def test_huge_initial_stock_rejected(self):
        with pytest.raises(InvalidQuantity):
            products_service.create_product({
                "name": "Soap",
                "category": "Household",
                "units": [{"name": "bar", "price": 1}],
                "quantity": 1e30,
            })
        assert db.session.query(Product).count() == 0

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            products_service.create_product({"units": [{"name": "pc", "price": 1}]})
        assert str(exc_info.value) == "Missing required fields: name, category, quantity"


class TestUpdateProduct:

    def test_price_only_updates_base_unit(self, product):
        updated = products_service.update_product(product.id, {"price": "2.50"})
        assert updated.price == Decimal("2.50")
        assert base_unit_price(updated) == Decimal("2.50")
        # Other units keep their explicit prices
        assert next(u.price for u in updated.units if u.level == 1) == Decimal("18")

    def test_units_replacement_rederives_price(self, product):
        updated = products_service.update_product(product.id, {
            "units": [
                {"name": "piece", "price": 3},
                {"name": "box", "multiplier": 12},
            ],
        })
        assert updated.price == Decimal("3")
        assert [(u.level, u.name) for u in updated.units] == [(0, "piece"), (1, "box")]
        assert db.session.query(ProductUnit).filter_by(product_id=product.id).count() == 2

    def test_quantity_replaces_stock_in_selected_unit(self, product):
        updated = products_service.update_product(product.id, {"quantity": 3, "quantity_unit_level": 1})
        assert updated.quantity == Decimal("30")

    def test_quantity_zero_rejected_on_update(self, product):
        with pytest.raises(InvalidQuantity):
            products_service.update_product(product.id, {"quantity": 0})
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == Decimal("25")

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            products_service.update_product(9999, {"name": "x"})


class TestStock:

    def test_purchase_adds_base_units(self, product):
        updated = products_service.record_purchase(product.id, 2, 1)
        assert updated.quantity == Decimal("45")

    def test_purchase_rejects_zero(self, product):
        with pytest.raises(InvalidQuantity):
            products_service.record_purchase(product.id, 0, 0)

    @pytest.mark.parametrize("quantity", ["0.00001", 1e30])
    def test_purchase_rejects_out_of_range_quantity(self, product, quantity):
        with pytest.raises(InvalidQuantity):
            products_service.record_purchase(product.id, quantity)
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == Decimal("25")

    def test_purchase_requires_quantity(self, product):
        with pytest.raises(ValidationError):
            products_service.record_purchase(product.id, None)

    def test_adjust_stock_unknown_product(self):
        with pytest.raises(ProductNotFound):
            products_service.adjust_stock(9999, Decimal("1"))

    def test_conditional_decrement(self, product):
        assert increment_quantity(product.id, Decimal("-30"), minimum=Decimal("30")) is False
        assert increment_quantity(product.id, Decimal("-20"), minimum=Decimal("20")) is True
        db.session.commit()
        assert db.session.get(Product, product.id).quantity == Decimal("5")


class TestListProducts:

    def test_filters(self, product, rice):
        assert [p.name for p in products_service.list_products(search="bisc")] == ["Biscuits"]
        assert [p.name for p in products_service.list_products(category="grain")] == ["Rice"]
        assert [p.name for p in products_service.list_products(min_price=3)] == ["Rice"]
        assert [p.name for p in products_service.list_products(max_price=3)] == ["Biscuits"]

    def test_sorting(self, product, rice):
        assert [p.name for p in products_service.list_products(sort="priceDesc")] == ["Rice", "Biscuits"]
        assert [p.name for p in products_service.list_products(sort="stock")] == ["Biscuits", "Rice"]

    def test_stock_status(self, product, rice):
        products_service.update_product(product.id, {"quantity": 2})
        assert [p.name for p in products_service.list_products(stock_status="low")] == ["Biscuits"]
        assert products_service.list_products(stock_status="out") == []
        assert len(products_service.list_products(stock_status="in")) == 2


# =============================================================================
# API
# =============================================================================


class TestProductRoutes:

    def test_create_with_json_string_units(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "name": "Eggs",
            "category": "Dairy",
            "units": '[{"name": "egg", "price": 0.3}, {"name": "tray", "multiplier": 30, "price": 8}]',
            "quantity": 2,
            "stock_input_unit_level": 1,
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["quantity"] == 60
        assert data["price"] == 0.3
        assert data["base_unit_name"] == "egg"
        assert data["stock_breakdown"] == [{"name": "tray", "quantity": 2}, {"name": "egg", "quantity": 0}]

    def test_invalid_units_return_400(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "name": "Eggs",
            "category": "Dairy",
            "units": [{"name": "tray", "multiplier": 30, "price": 8}],
            "quantity": 1,
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Base unit must have multiplier 1"

    def test_missing_base_price_code(self, client, admin_headers):
        resp = client.post("/api/products", headers=admin_headers, json={
            "name": "Eggs", "category": "Dairy", "units": [{"name": "egg"}], "quantity": 1,
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "missing_base_price"

    def test_update_and_purchase(self, client, admin_headers, product):
        resp = client.put(f"/api/products/{product.id}", headers=admin_headers, json={"price": 2.2})
        assert resp.status_code == 200
        assert resp.get_json()["units"][0]["price"] == 2.2

        resp = client.post(f"/api/products/{product.id}/purchase", headers=admin_headers,
                           json={"quantity": 1, "unit_level": 1})
        assert resp.status_code == 200
        assert resp.get_json()["quantity"] == 35

    def test_get_and_delete(self, client, admin_headers, product):
        assert client.get(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        resp = client.get(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "product_not_found"

    def test_list(self, client, staff_headers, product, rice):
        resp = client.get("/api/products?sort=priceAsc", headers=staff_headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.get_json()["items"]] == ["Biscuits", "Rice"]
