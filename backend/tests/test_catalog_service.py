"""
Catalog service tests: products, gallery images and the variant option space.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from storefront.extensions import db
from storefront.models import Product, ProductImage, Variant, VariantImage
from storefront.services import catalog_service
from storefront.validation import ConflictError, NotFoundError, ValidationError


def _product(sku="EJ-NEC-001", **overrides):
    patch = {"sku": sku, "name": "Temple Necklace", "price_paise": 450000, "stock_quantity": 5}
    patch.update(overrides)
    return catalog_service.create_product(patch=patch)


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:
    def test_create_product_with_category_and_specs(self, db_session):
        product = catalog_service.create_product(
            patch={"sku": "EJ-BNG-001", "name": "Bangle", "price_paise": 120000, "category": "Bangles"},
            specifications=[{"spec_name": "Metal", "spec_value": "925 Silver"}],
        )
        data = product.to_dict(include_details=True)
        assert data["category"] == "Bangles"
        assert data["product_specifications"][0]["spec_value"] == "925 Silver"

    def test_duplicate_sku_conflicts(self, db_session):
        _product()
        with pytest.raises(ConflictError):
            _product()

    def test_update_product_and_sku_uniqueness(self, db_session):
        first = _product("EJ-A")
        second = _product("EJ-B")
        with pytest.raises(ConflictError):
            catalog_service.update_product(second.id, patch={"sku": "EJ-A"})

        updated = catalog_service.update_product(first.id, patch={"name": "Renamed", "category": "Sets"})
        assert updated.name == "Renamed"
        assert updated.category.name == "Sets"

    def test_get_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.get_product(999)

    def test_soft_delete(self, db_session):
        product = _product()
        assert catalog_service.delete_product(product.id) is True
        assert db_session.get(Product, product.id).is_active is False
        assert catalog_service.delete_product(999) is False


class TestListings:
    def test_inactive_products_hidden_when_active_exist(self, db_session):
        _product("EJ-ON")
        _product("EJ-OFF", is_active=False)
        result = catalog_service.list_products()
        assert [p["sku"] for p in result["items"]] == ["EJ-ON"]
        assert result["pagination"]["total"] == 1

    def test_falls_back_to_all_products_when_none_active(self, db_session):
        _product("EJ-OFF-1", is_active=False)
        _product("EJ-OFF-2", is_active=False)
        result = catalog_service.list_products()
        assert result["pagination"]["total"] == 2

    def test_pagination(self, db_session):
        for i in range(5):
            _product(f"EJ-P{i}")
        result = catalog_service.list_products(page=2, per_page=2)
        assert result["count"] == 2
        assert result["pagination"]["total_pages"] == 3
        assert result["pagination"]["has_prev"] is True

    def test_featured_and_related(self, db_session):
        a = _product("EJ-R1", category="Rings", featured=True)
        b = _product("EJ-R2", category="Rings")
        _product("EJ-E1", category="Earrings")

        assert [p.id for p in catalog_service.featured_products()] == [a.id]
        assert [p.id for p in catalog_service.related_products(a.id)] == [b.id]
        assert catalog_service.related_products(999) == []


# =============================================================================
# IMAGES
# =============================================================================


class TestImages:
    def test_first_image_becomes_primary(self, db_session):
        product = _product()
        image = catalog_service.add_product_image(product.id, "https://cdn.test/a.jpg")
        assert image.is_primary is True
        assert image.sort_order == 0

    def test_ninth_image_rejected(self, db_session):
        product = _product()
        for i in range(8):
            catalog_service.add_product_image(product.id, f"https://cdn.test/{i}.jpg")
        with pytest.raises(ValidationError, match="at most 8"):
            catalog_service.add_product_image(product.id, "https://cdn.test/9.jpg")

    def test_removed_slot_is_backfilled(self, db_session):
        product = _product()
        images = [catalog_service.add_product_image(product.id, f"https://cdn.test/{i}.jpg") for i in range(3)]
        catalog_service.remove_product_image(images[1].id)

        replacement = catalog_service.add_product_image(product.id, "https://cdn.test/new.jpg")
        assert replacement.sort_order == 1

    def test_removing_primary_promotes_next(self, db_session):
        product = _product()
        first = catalog_service.add_product_image(product.id, "https://cdn.test/0.jpg")
        second = catalog_service.add_product_image(product.id, "https://cdn.test/1.jpg")
        catalog_service.remove_product_image(first.id)
        assert db_session.get(ProductImage, second.id).is_primary is True

    def test_video_becomes_primary(self, db_session):
        product = _product()
        image = catalog_service.add_product_image(product.id, "https://cdn.test/0.jpg")
        video = catalog_service.add_product_image(product.id, "https://cdn.test/v.mp4", media_type="video")
        assert video.is_primary is True
        assert db_session.get(ProductImage, image.id).is_primary is False

    def test_set_primary(self, db_session):
        product = _product()
        first = catalog_service.add_product_image(product.id, "https://cdn.test/0.jpg")
        second = catalog_service.add_product_image(product.id, "https://cdn.test/1.jpg")
        catalog_service.set_primary_image(second.id)
        assert db_session.get(ProductImage, first.id).is_primary is False
        assert db_session.get(ProductImage, second.id).is_primary is True

    def test_replace_images_honours_explicit_primary(self, db_session):
        product = _product()
        catalog_service.update_product(product.id, patch={}, images=[
            {"url": "https://cdn.test/0.jpg"},
            {"url": "https://cdn.test/1.jpg", "is_primary": True},
        ])
        assert [img.is_primary for img in product.images] == [False, True]


# =============================================================================
# VARIANTS
# =============================================================================


class TestVariants:
    def test_catalog_loads_options_and_variants(self, ring_product):
        catalog = catalog_service.load_variant_catalog(ring_product.id)

        assert [o["name"] for o in catalog.options] == ["size", "color"]
        assert [v["value"] for v in catalog.options[0]["values"]] == ["S", "M"]
        assert [v.name for v in catalog.variants] == ["Standard", "Red / M", "Green / S"]

        red_m = catalog.variants[1]
        assert dict(red_m.options) == {"size": "M", "color": "Red"}
        assert red_m.images[0].url == "https://cdn.test/ring-2.jpg"
        assert red_m.images[0].is_primary is True

    def test_generated_skus(self, ring_product):
        catalog = catalog_service.load_variant_catalog(ring_product.id)
        skus = {v.name: v.sku for v in catalog.variants}
        assert skus["Standard"] == "EJ-RING-042"
        assert skus["Red / M"] == "EJ-RING-042-RM"

    def test_duplicate_combination_rejected(self, ring_product):
        with pytest.raises(ConflictError, match="Duplicate variant combination"):
            catalog_service.create_product_variants(ring_product.id, [], [{
                "name": "Again",
                "option_values": [{"option_name": "size", "value": "M"}, {"option_name": "color", "value": "Red"}],
            }])

    def test_second_base_variant_rejected(self, ring_product):
        with pytest.raises(ConflictError, match="base variant"):
            catalog_service.create_product_variants(ring_product.id, [], [{"name": "Base 2", "option_values": []}])

    def test_duplicate_option_rejected(self, ring_product):
        with pytest.raises(ConflictError):
            catalog_service.create_product_variants(
                ring_product.id, [{"name": "size", "values": [{"value": "L"}]}], []
            )

    def test_unknown_option_value_rejected_and_rolled_back(self, db_session):
        product = _product()
        with pytest.raises(ValidationError):
            catalog_service.create_product_variants(
                product.id,
                [{"name": "size", "values": [{"value": "S"}]}],
                [{"name": "XL", "option_values": [{"option_name": "size", "value": "XL"}]}],
            )
        assert catalog_service.load_variant_catalog(product.id).is_empty

    def test_invalid_image_ids_skipped(self, db_session):
        product = _product()
        catalog_service.create_product_variants(
            product.id,
            [{"name": "size", "values": [{"value": "S"}]}],
            [{"name": "S", "option_values": [{"option_name": "size", "value": "S"}], "image_ids": [424242]}],
        )
        assert db_session.query(VariantImage).count() == 0
        assert len(catalog_service.load_variant_catalog(product.id).variants) == 1

    def test_update_replaces_everything(self, ring_product):
        catalog_service.update_product_variants(
            ring_product.id,
            [{"name": "metal", "values": [{"value": "Gold"}, {"value": "Silver"}]}],
            [{"name": "Gold", "price_paise": 300000, "stock_quantity": 2,
              "option_values": [{"option_name": "metal", "value": "Gold"}]}],
        )
        catalog = catalog_service.load_variant_catalog(ring_product.id)
        assert [o["name"] for o in catalog.options] == ["metal"]
        assert [v.name for v in catalog.variants] == ["Gold"]

    def test_rejected_replace_keeps_existing_catalog(self, ring_product):
        with pytest.raises(ConflictError):
            catalog_service.update_product_variants(
                ring_product.id,
                [{"name": "size", "values": [{"value": "S"}]}],
                [
                    {"name": "S", "option_values": [{"option_name": "size", "value": "S"}]},
                    {"name": "S again", "option_values": [{"option_name": "size", "value": "S"}]},
                ],
            )
        catalog = catalog_service.load_variant_catalog(ring_product.id)
        assert [o["name"] for o in catalog.options] == ["size", "color"]
        assert [v.name for v in catalog.variants] == ["Standard", "Red / M", "Green / S"]

    def test_replace_with_unknown_option_keeps_existing_catalog(self, ring_product):
        with pytest.raises(ValidationError):
            catalog_service.update_product_variants(
                ring_product.id, [], [{"name": "XL", "option_values": [{"option_name": "size", "value": "XL"}]}]
            )
        assert len(catalog_service.load_variant_catalog(ring_product.id).variants) == 3

    def test_numeric_option_values_are_text(self, db_session):
        product = _product()
        catalog_service.create_product_variants(
            product.id,
            [{"name": "ring size", "values": [{"value": 7}, {"value": 8}]}],
            [{"name": "Size 7", "option_values": [{"option_name": "ring size", "value": 7}]}],
        )
        catalog = catalog_service.load_variant_catalog(product.id)
        assert [v["value"] for v in catalog.options[0]["values"]] == ["7", "8"]
        assert dict(catalog.variants[0].options) == {"ring size": "7"}

    @pytest.mark.parametrize("options", [
        [{"name": "size", "values": ["S", "M"]}],
        [{"name": "size", "values": [{"value": ["S"]}]}],
        [{"name": {"en": "size"}, "values": []}],
        ["size"],
    ])
    def test_malformed_options_rejected(self, db_session, options):
        product = _product()
        with pytest.raises(ValidationError):
            catalog_service.create_product_variants(product.id, options, [])
        assert catalog_service.load_variant_catalog(product.id).is_empty

    @pytest.mark.parametrize("options", [
        [{"name": "size|color", "values": [{"value": "S"}]}],
        [{"name": "size", "values": [{"value": "S=M"}]}],
    ])
    def test_key_separators_rejected(self, db_session, options):
        product = _product()
        with pytest.raises(ValidationError, match="may not contain"):
            catalog_service.create_product_variants(product.id, options, [])

    def test_delete_variants(self, ring_product):
        catalog_service.delete_product_variants(ring_product.id)
        assert catalog_service.load_variant_catalog(ring_product.id).is_empty
        assert db_session_count(Variant) == 0

    def test_negative_variant_stock_rejected(self, db_session):
        product = _product()
        with pytest.raises(ValidationError):
            catalog_service.create_product_variants(product.id, [], [{"name": "Base", "stock_quantity": -1}])

    def test_load_failure_returns_empty_catalog(self, ring_product, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        fake_db = SimpleNamespace(session=SimpleNamespace(query=boom, rollback=lambda: None))
        monkeypatch.setattr(catalog_service, "db", fake_db)

        catalog = catalog_service.load_variant_catalog(ring_product.id)
        assert catalog.is_empty
        assert catalog.options == []


def db_session_count(model) -> int:
    return db.session.query(model).count()
