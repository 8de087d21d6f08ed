"""
Admin console API tests.

Verifies:
- Every admin endpoint requires a session (401) and a permission (403)
- Product CRUD with validation, SKU conflicts and soft delete
- Variant and image management endpoints
- Order status/payment updates and statistics
- Store settings read/update
"""

import pytest

from storefront.services import catalog_service, order_service

from conftest import VALID_SHIPPING


NEW_PRODUCT = {
    "sku": "EJ-NEC-010",
    "name": "Polki Necklace",
    "price_paise": 550000,
    "sale_price_paise": 500000,
    "stock_quantity": 4,
    "category": "Necklaces",
    "images": [{"url": "https://cdn.test/polki-1.jpg"}],
    "specifications": [{"spec_name": "Metal", "spec_value": "Gold plated"}],
}


def _order(owner):
    return order_service.create_order(
        {"user_id": owner.id, "status": "confirmed", "payment_method": "cod",
         "subtotal_paise": 160000, "total_paise": 160000},
        [{"product_id": 1, "product_name": "Jhumka Earrings", "quantity": 1,
          "unit_price_paise": 160000, "total_price_paise": 160000}],
        VALID_SHIPPING,
        actor=owner,
    )


# =============================================================================
# ACCESS CONTROL
# =============================================================================


class TestAccess:
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/admin/products"),
        ("post", "/api/admin/products"),
        ("get", "/api/admin/orders"),
        ("get", "/api/admin/orders/stats"),
        ("get", "/api/admin/users"),
        ("get", "/api/admin/settings"),
        ("put", "/api/admin/settings"),
    ])
    def test_anonymous_gets_401(self, client, db_session, method, path):
        assert getattr(client, method)(path, json={}).status_code == 401

    @pytest.mark.parametrize("method,path", [
        ("post", "/api/admin/products"),
        ("get", "/api/admin/orders"),
        ("get", "/api/admin/users"),
        ("put", "/api/admin/settings"),
    ])
    def test_customer_gets_403(self, client, customer_headers, method, path):
        resp = getattr(client, method)(path, json={}, headers=customer_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "Permission denied"


# =============================================================================
# PRODUCTS
# =============================================================================


class TestAdminProducts:
    def test_create_product(self, client, admin_headers):
        resp = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin_headers)
        assert resp.status_code == 201, resp.json
        data = resp.json
        assert data["category"] == "Necklaces"
        assert data["product_images"][0]["is_primary"] is True
        assert data["product_specifications"][0]["spec_name"] == "Metal"

    def test_create_validation(self, client, admin_headers):
        missing = {k: v for k, v in NEW_PRODUCT.items() if k != "price_paise"}
        resp = client.post("/api/admin/products", json=missing, headers=admin_headers)
        assert resp.status_code == 400
        assert "price_paise" in resp.json["error"]

        resp = client.post("/api/admin/products", json=dict(NEW_PRODUCT, sale_price_paise=600000),
                           headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post("/api/admin/products", json=dict(NEW_PRODUCT, price_paise="12.5"), headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post("/api/admin/products", json=dict(NEW_PRODUCT, password_hash="x"), headers=admin_headers)
        assert resp.status_code == 400
        assert "Field not allowed" in resp.json["error"]

    def test_duplicate_sku(self, client, admin_headers, simple_product):
        resp = client.post("/api/admin/products", json=dict(NEW_PRODUCT, sku=simple_product.sku),
                           headers=admin_headers)
        assert resp.status_code == 409

    def test_update_and_soft_delete(self, client, admin_headers, simple_product):
        url = f"/api/admin/products/{simple_product.id}"
        resp = client.put(url, json={"name": "Jhumka Earrings (Gold)", "sale_price_paise": None},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["name"] == "Jhumka Earrings (Gold)"
        assert resp.json["sale_price_paise"] is None

        resp = client.put(url, json={"sale_price_paise": 999999}, headers=admin_headers)
        assert resp.status_code == 400

        assert client.delete(url, headers=admin_headers).json == {"ok": True}
        assert client.get(url, headers=admin_headers).json["is_active"] is False
        assert client.delete("/api/admin/products/424242", headers=admin_headers).status_code == 404

    def test_listing_includes_inactive(self, client, admin_headers, simple_product):
        client.delete(f"/api/admin/products/{simple_product.id}", headers=admin_headers)
        assert client.get("/api/admin/products", headers=admin_headers).json["pagination"]["total"] == 1
        active_only = client.get("/api/admin/products?include_inactive=false", headers=admin_headers).json
        assert active_only["pagination"]["total"] == 0


# =============================================================================
# VARIANTS AND IMAGES
# =============================================================================


class TestAdminVariants:
    def test_detail_includes_variants(self, client, admin_headers, ring_product):
        data = client.get(f"/api/admin/products/{ring_product.id}", headers=admin_headers).json
        assert {v["name"] for v in data["variants"]["variants"]} == {"Standard", "Red / M", "Green / S"}

    def test_create_on_product_without_variants(self, client, admin_headers, simple_product):
        resp = client.post(f"/api/admin/products/{simple_product.id}/variants", headers=admin_headers, json={
            "options": [{"name": "finish", "values": [{"value": "Gold"}, {"value": "Silver"}]}],
            "variants": [
                {"name": "Gold", "price_paise": 170000, "stock_quantity": 2,
                 "option_values": [{"option_name": "finish", "value": "Gold"}]},
            ],
        })
        assert resp.status_code == 201
        assert resp.json["variants"][0]["sku"] == "EJ-EAR-001-G"

    def test_duplicate_combination_conflicts(self, client, admin_headers, ring_product):
        resp = client.post(f"/api/admin/products/{ring_product.id}/variants", headers=admin_headers, json={
            "variants": [{"name": "Dup", "option_values": [
                {"option_name": "size", "value": "M"}, {"option_name": "color", "value": "Red"},
            ]}],
        })
        assert resp.status_code == 409

    def test_replace_and_delete(self, client, admin_headers, ring_product):
        url = f"/api/admin/products/{ring_product.id}/variants"
        resp = client.put(url, headers=admin_headers, json={
            "options": [{"name": "size", "values": [{"value": "L"}]}],
            "variants": [{"name": "L", "option_values": [{"option_name": "size", "value": "L"}]}],
        })
        assert resp.status_code == 200
        assert [v["name"] for v in resp.json["variants"]] == ["L"]

        assert client.delete(url, headers=admin_headers).json == {"ok": True}
        assert client.get(f"/api/products/{ring_product.id}/variants").json["variants"] == []
        assert client.delete("/api/admin/products/424242/variants", headers=admin_headers).status_code == 404

    def test_numeric_option_value_accepted(self, client, admin_headers, simple_product):
        resp = client.post(f"/api/admin/products/{simple_product.id}/variants", headers=admin_headers, json={
            "options": [{"name": "ring size", "values": [{"value": 7}]}],
        })
        assert resp.status_code == 201
        assert resp.json["options"][0]["values"][0]["value"] == "7"

    def test_bare_string_values_are_400(self, client, admin_headers, simple_product):
        resp = client.post(f"/api/admin/products/{simple_product.id}/variants", headers=admin_headers, json={
            "options": [{"name": "size", "values": ["S", "M"]}],
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "Each option value must be an object"

    def test_rejected_replace_leaves_variants(self, client, admin_headers, ring_product):
        url = f"/api/admin/products/{ring_product.id}/variants"
        resp = client.put(url, headers=admin_headers, json={
            "options": [{"name": "size", "values": [{"value": "S"}]}],
            "variants": [
                {"name": "S", "option_values": [{"option_name": "size", "value": "S"}]},
                {"name": "S again", "option_values": [{"option_name": "size", "value": "S"}]},
            ],
        })
        assert resp.status_code == 409
        names = [v["name"] for v in client.get(f"/api/products/{ring_product.id}/variants").json["variants"]]
        assert names == ["Standard", "Red / M", "Green / S"]

    def test_unexpected_failure_is_logged_500(self, client, admin_headers, ring_product, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(catalog_service, "update_product_variants", boom)
        resp = client.put(f"/api/admin/products/{ring_product.id}/variants", headers=admin_headers, json={})
        assert resp.status_code == 500
        assert resp.json == {"error": "Internal server error"}

    def test_bad_variant_payload(self, client, admin_headers, ring_product):
        resp = client.post(f"/api/admin/products/{ring_product.id}/variants", headers=admin_headers,
                           json={"variants": "nope"})
        assert resp.status_code == 400


class TestAdminImages:
    def test_add_set_primary_remove(self, client, admin_headers, simple_product):
        url = f"/api/admin/products/{simple_product.id}/images"
        resp = client.post(url, json={"url": "https://cdn.test/jhumka-2.jpg"}, headers=admin_headers)
        assert resp.status_code == 201
        image = resp.json
        assert image["is_primary"] is False
        assert image["sort_order"] == 1

        assert client.post(f"/api/admin/images/{image['id']}/primary", headers=admin_headers).json["is_primary"]
        assert client.delete(f"/api/admin/images/{image['id']}", headers=admin_headers).json == {"ok": True}

        images = client.get(f"/api/products/{simple_product.id}").json["product_images"]
        assert [img["is_primary"] for img in images] == [True]

    def test_bad_image_requests(self, client, admin_headers, simple_product):
        url = f"/api/admin/products/{simple_product.id}/images"
        assert client.post(url, json={}, headers=admin_headers).status_code == 400
        assert client.post(url, json={"url": "x", "media_type": "gif"}, headers=admin_headers).status_code == 400
        assert client.post("/api/admin/products/424242/images", json={"url": "x"},
                           headers=admin_headers).status_code == 404
        assert client.delete("/api/admin/images/424242", headers=admin_headers).status_code == 404
        assert client.post("/api/admin/images/424242/primary", headers=admin_headers).status_code == 404


# =============================================================================
# ORDERS, USERS, SETTINGS
# =============================================================================


class TestAdminOrders:
    def test_list_and_stats(self, client, admin_headers, customer):
        _order(customer)
        listing = client.get("/api/admin/orders", headers=admin_headers).json
        assert listing["total"] == 1
        assert listing["orders"][0]["profile"]["email"] == customer.email

        stats = client.get("/api/admin/orders/stats", headers=admin_headers).json
        assert stats["total_orders"] == 1
        assert stats["total_revenue_paise"] == 0

        assert client.get("/api/admin/orders?status=lost", headers=admin_headers).status_code == 400

    def test_status_updates(self, client, admin_headers, customer):
        order = _order(customer)
        url = f"/api/admin/orders/{order.id}/status"

        assert client.patch(url, json={"status": "shipped"}, headers=admin_headers).json["status"] == "shipped"

        resp = client.patch(url, json={"status": "confirmed"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["details"]["allowed"] == ["cancelled", "delivered"]

        assert client.patch(url, json={"status": "lost"}, headers=admin_headers).status_code == 400
        assert client.patch("/api/admin/orders/424242/status", json={"status": "shipped"},
                            headers=admin_headers).status_code == 404

    def test_payment_update(self, client, admin_headers, customer):
        order = _order(customer)
        url = f"/api/admin/orders/{order.id}/payment"
        assert client.patch(url, json={"payment_status": "paid"}, headers=admin_headers).json["payment_status"] == "paid"
        assert client.get("/api/admin/orders/stats", headers=admin_headers).json["total_revenue_paise"] == 160000
        assert client.patch(url, json={"payment_status": "later"}, headers=admin_headers).status_code == 400

    def test_get_order(self, client, admin_headers, customer):
        order = _order(customer)
        assert client.get(f"/api/admin/orders/{order.id}", headers=admin_headers).json["id"] == order.id
        assert client.get("/api/admin/orders/424242", headers=admin_headers).status_code == 404


class TestAdminUsers:
    def test_guests_hidden_by_default(self, client, admin_headers, make_user):
        make_user("guest_abc@ehsaasjewellery.com", is_guest=True)
        emails = {u["email"] for u in client.get("/api/admin/users", headers=admin_headers).json["users"]}
        assert "guest_abc@ehsaasjewellery.com" not in emails

        resp = client.get("/api/admin/users?include_guests=true&account_type=customer", headers=admin_headers)
        assert {u["email"] for u in resp.json["users"]} == {"guest_abc@ehsaasjewellery.com"}


class TestAdminSettings:
    def test_read_and_update(self, client, admin_headers):
        assert client.get("/api/admin/settings", headers=admin_headers).json["currency"] == "INR"

        resp = client.put("/api/admin/settings", json={"smtpPort": 2525}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["smtpPort"] == 2525

        resp = client.put("/api/admin/settings", json={"googleAnalyticsId": "UA-1"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "googleAnalyticsId" in resp.json["fields"]
