"""
Wishlist tests: service rules and the signed-in API.
"""

import pytest

from storefront.services import wishlist_service
from storefront.validation import AuthorizationError, ConflictError, NotFoundError


class TestWishlistService:
    def test_add_contains_count(self, customer, simple_product):
        wishlist_service.add(customer, simple_product.id)
        assert wishlist_service.contains(customer, simple_product.id)
        assert wishlist_service.count(customer) == 1

    def test_duplicate_add_conflicts(self, customer, simple_product):
        wishlist_service.add(customer, simple_product.id)
        with pytest.raises(ConflictError):
            wishlist_service.add(customer, simple_product.id)

    def test_unknown_product(self, customer):
        with pytest.raises(NotFoundError):
            wishlist_service.add(customer, 424242)

    def test_toggle(self, customer, simple_product):
        assert wishlist_service.toggle(customer, simple_product.id) is True
        assert wishlist_service.toggle(customer, simple_product.id) is False
        assert wishlist_service.count(customer) == 0

    def test_anonymous_reads_are_empty_writes_refused(self, simple_product):
        assert wishlist_service.list_items(None) == []
        assert wishlist_service.count(None) == 0
        assert wishlist_service.contains(None, simple_product.id) is False
        with pytest.raises(AuthorizationError, match="authenticated"):
            wishlist_service.add(None, simple_product.id)
        with pytest.raises(AuthorizationError):
            wishlist_service.remove(None, simple_product.id)

    def test_lists_are_per_user(self, customer, make_user, simple_product):
        other = make_user("other@example.com")
        wishlist_service.add(other, simple_product.id)
        assert wishlist_service.list_items(customer) == []
        assert wishlist_service.list_items(other)[0]["product"]["sku"] == "EJ-EAR-001"


class TestWishlistApi:
    def test_requires_auth(self, client, db_session):
        assert client.get("/api/wishlist").status_code == 401
        assert client.post("/api/wishlist/1").status_code == 401

    def test_add_list_remove(self, client, customer_headers, simple_product):
        pid = simple_product.id

        resp = client.post(f"/api/wishlist/{pid}", headers=customer_headers)
        assert resp.status_code == 201
        assert client.post(f"/api/wishlist/{pid}", headers=customer_headers).status_code == 409

        listing = client.get("/api/wishlist", headers=customer_headers).json
        assert listing["count"] == 1
        assert listing["items"][0]["product"]["name"] == "Jhumka Earrings"

        assert client.get(f"/api/wishlist/{pid}", headers=customer_headers).json["in_wishlist"] is True
        assert client.get("/api/wishlist/count", headers=customer_headers).json == {"count": 1}

        assert client.delete(f"/api/wishlist/{pid}", headers=customer_headers).status_code == 200
        assert client.delete(f"/api/wishlist/{pid}", headers=customer_headers).status_code == 404

    def test_toggle_and_missing_product(self, client, customer_headers, simple_product):
        resp = client.post(f"/api/wishlist/{simple_product.id}/toggle", headers=customer_headers)
        assert resp.json["in_wishlist"] is True
        assert client.post("/api/wishlist/424242", headers=customer_headers).status_code == 404
        assert client.post("/api/wishlist/424242/toggle", headers=customer_headers).status_code == 404
