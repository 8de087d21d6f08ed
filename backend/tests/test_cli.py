"""
Flask CLI command tests (flask system / users / catalog).
"""

import pytest

from storefront.models import Product, User
from storefront.services import catalog_service, session_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:
    def test_init_creates_super_admin_once(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--email", "Root@Example.com", "--password", "Password123!"])
        assert "PASS Created super admin: root@example.com" in result.output
        assert db_session.query(User).filter_by(email="root@example.com").one().account_type == "super_admin"

        again = runner.invoke(args=["system", "init", "--email", "root@example.com", "--password", "Password123!"])
        assert "already exists" in again.output

    def test_init_rejects_weak_password(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--password", "weak"])
        assert "FAIL Password validation failed" in result.output

    def test_reset_requires_confirmation(self, runner, simple_product):
        result = runner.invoke(args=["system", "reset-db"])
        assert "Refusing" in result.output
        assert catalog_service.get_product(simple_product.id)


class TestUserCommands:
    def test_create_and_list(self, runner, db_session):
        result = runner.invoke(args=[
            "users", "create", "--email", "staff@example.com", "--password", "Password123!", "--role", "admin",
        ])
        assert "with role 'admin'" in result.output

        listing = runner.invoke(args=["users", "list", "--role", "admin"])
        assert "staff@example.com" in listing.output

    def test_set_role_revokes_sessions(self, runner, customer):
        _, token = session_service.create_session(customer.id)
        result = runner.invoke(args=["users", "set-role", "--email", customer.email, "--role", "admin"])
        assert "(1 sessions revoked)" in result.output
        assert session_service.validate_session(token) is None

    def test_set_role_unknown_user(self, runner, db_session):
        result = runner.invoke(args=["users", "set-role", "--email", "ghost@example.com", "--role", "admin"])
        assert "not found" in result.output


class TestCatalogCommands:
    def test_seed_demo_is_idempotent(self, runner, db_session):
        first = runner.invoke(args=["catalog", "seed-demo"])
        assert "with 3 variants" in first.output
        second = runner.invoke(args=["catalog", "seed-demo"])
        assert "already exists" in second.output
        assert db_session.query(Product).count() == 1

    def test_list_shows_price_and_variants(self, runner, ring_product):
        result = runner.invoke(args=["catalog", "list"])
        assert "EJ-RING-042" in result.output
        assert "₹1,600.00" in result.output
        assert "variants=3" in result.output
