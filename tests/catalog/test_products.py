"""Tests for the product service."""

import asyncio
import math

import pytest

from catalog_service.catalog.products import validate_product_fields
from catalog_service.catalog.service import CatalogService
from catalog_service.domain import (
    CatalogValidationError,
    EntityType,
    ErrorCode,
    HistoryAction,
)

ACTOR = "admin-1"


def product_data(category_id: int, **overrides) -> dict:
    data = {"name": "Widget", "price": "19.99", "category_id": category_id}
    data.update(overrides)
    return data


# ============================================================================
# Validation
# ============================================================================


class TestValidateProductFields:
    """Tests for validate_product_fields."""

    def test_create_defaults(self) -> None:
        """Create fills stock and optional fields."""
        fields = validate_product_fields({"name": " Lamp ", "price": "12.5", "category_id": "3"})

        assert fields == {
            "name": "Lamp",
            "price": 12.5,
            "category_id": 3,
            "stock_quantity": -1,
            "sku": None,
            "description": None,
            "image_url": None,
        }

    def test_blank_sku_becomes_none(self) -> None:
        """Whitespace-only SKU is treated as absent."""
        fields = validate_product_fields({"name": "Lamp", "price": 1, "category_id": 1, "sku": "  "})

        assert fields["sku"] is None

    @pytest.mark.parametrize("price", [-1, "abc", math.nan, math.inf, True, None])
    def test_invalid_price(self, price) -> None:
        """Price must be a finite number >= 0."""
        with pytest.raises(CatalogValidationError):
            validate_product_fields({"name": "Lamp", "price": price, "category_id": 1})

    @pytest.mark.parametrize("stock", [-2, "many", 1.5])
    def test_invalid_stock(self, stock) -> None:
        """Stock is -1 or a non-negative integer."""
        with pytest.raises(CatalogValidationError):
            validate_product_fields(
                {"name": "Lamp", "price": 1, "category_id": 1, "stock_quantity": stock}
            )

    def test_missing_category(self) -> None:
        """Category is required on create."""
        with pytest.raises(CatalogValidationError):
            validate_product_fields({"name": "Lamp", "price": 1})

    def test_long_name_and_sku(self) -> None:
        """Name and SKU lengths are bounded."""
        with pytest.raises(CatalogValidationError):
            validate_product_fields({"name": "x" * 201, "price": 1, "category_id": 1})
        with pytest.raises(CatalogValidationError):
            validate_product_fields({"name": "Lamp", "price": 1, "category_id": 1, "sku": "s" * 51})

    def test_partial_only_touches_given_fields(self) -> None:
        """Partial validation returns only the fields present."""
        assert validate_product_fields({"price": "3"}, partial=True) == {"price": 3.0}


# ============================================================================
# Creation
# ============================================================================


class TestAddProduct:
    """Tests for add_product."""

    @pytest.mark.asyncio
    async def test_leaf_rule(self, catalog: CatalogService, tree) -> None:
        """Products go to leaf categories only."""
        rejected = await catalog.products.add_product(
            product_data(tree["electronics"]["id"]), ACTOR
        )
        accepted = await catalog.products.add_product(
            product_data(tree["phones"]["id"], price="99.00"), ACTOR
        )

        assert rejected.error.code == ErrorCode.NOT_LEAF
        assert accepted.ok
        assert accepted.value["price"] == 99.0
        assert accepted.value["category_name"] == "Phones"
        stats = (await catalog.stats.get_stats()).unwrap()
        assert stats.active_products == 1

    @pytest.mark.asyncio
    async def test_archived_category_rejected(self, catalog: CatalogService, tree) -> None:
        """Archived categories cannot receive products."""
        await catalog.categories.delete_category(tree["books"]["id"], ACTOR)

        result = await catalog.products.add_product(product_data(tree["books"]["id"]), ACTOR)

        assert result.error.code == ErrorCode.ARCHIVED

    @pytest.mark.asyncio
    async def test_missing_category(self, catalog: CatalogService, tree) -> None:
        """Unknown category is NOT_FOUND."""
        result = await catalog.products.add_product(product_data(999), ACTOR)

        assert result.error.code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_duplicate_sku_rejected(self, catalog: CatalogService, tree, phone) -> None:
        """Another non-archived product cannot reuse a SKU."""
        result = await catalog.products.add_product(
            product_data(tree["books"]["id"], sku="ABC-1"), ACTOR
        )

        assert result.error.code == ErrorCode.DUPLICATE_SKU

    @pytest.mark.asyncio
    async def test_concurrent_adds_with_same_sku(self, catalog: CatalogService, tree) -> None:
        """Two tasks adding the same SKU produce one product."""
        results = await asyncio.gather(
            catalog.products.add_product(product_data(tree["books"]["id"], sku="S1"), ACTOR),
            catalog.products.add_product(product_data(tree["phones"]["id"], sku="S1"), ACTOR),
        )

        assert sorted(result.ok for result in results) == [False, True]
        failed = next(result for result in results if not result.ok)
        assert failed.error.code == ErrorCode.DUPLICATE_SKU
        page = (await catalog.products.search_products(query="S1")).unwrap()
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_archiving_releases_sku(self, catalog: CatalogService, tree, phone) -> None:
        """An archived product's SKU can be reused."""
        await catalog.products.delete_product(phone["id"], ACTOR)

        result = await catalog.products.add_product(
            product_data(tree["books"]["id"], sku="ABC-1"), ACTOR
        )

        assert result.ok

    @pytest.mark.asyncio
    async def test_create_history(self, catalog: CatalogService, phone) -> None:
        """Create records a full snapshot."""
        history = (
            await catalog.history.get_entity_history(EntityType.PRODUCT, phone["id"])
        ).unwrap()

        assert len(history) == 1
        assert history[0].action == HistoryAction.CREATE
        assert history[0].new_data["sku"] == "ABC-1"
        assert history[0].batch_id is None


# ============================================================================
# Update
# ============================================================================


class TestUpdateProduct:
    """Tests for update_product."""

    @pytest.mark.asyncio
    async def test_update_records_snapshots(self, catalog: CatalogService, phone) -> None:
        """Update changes fields and records old/new snapshots."""
        result = await catalog.products.update_product(phone["id"], {"price": 15}, ACTOR)

        assert result.value["price"] == 15.0
        history = (
            await catalog.history.get_entity_history(EntityType.PRODUCT, phone["id"])
        ).unwrap()
        assert history[0].action == HistoryAction.UPDATE
        assert history[0].old_data["price"] == 10.0
        assert history[0].new_data["price"] == 15.0
        assert history[0].old_data["id"] == phone["id"]

    @pytest.mark.asyncio
    async def test_unknown_keys_ignored(self, catalog: CatalogService, phone) -> None:
        """Only allow-listed fields are applied."""
        result = await catalog.products.update_product(
            phone["id"], {"id": 777, "created_by": "mallory", "name": "Pixel 2"}, ACTOR
        )

        assert result.value["id"] == phone["id"]
        assert result.value["created_by"] == ACTOR
        assert result.value["name"] == "Pixel 2"

    @pytest.mark.asyncio
    async def test_no_changes(self, catalog: CatalogService, phone) -> None:
        """An update without allow-listed fields is a validation error."""
        result = await catalog.products.update_product(phone["id"], {"bogus": 1}, ACTOR)

        assert result.error.code == ErrorCode.VALIDATION
        assert result.error.message == "No changes provided"

    @pytest.mark.asyncio
    async def test_archived_product_rejected(self, catalog: CatalogService, phone) -> None:
        """Archived products must be restored before editing."""
        await catalog.products.delete_product(phone["id"], ACTOR)

        result = await catalog.products.update_product(phone["id"], {"price": 1}, ACTOR)

        assert result.error.code == ErrorCode.ARCHIVED

    @pytest.mark.asyncio
    async def test_move_to_non_leaf_rejected(self, catalog: CatalogService, tree, phone) -> None:
        """Moving requires a leaf target."""
        result = await catalog.products.update_product(
            phone["id"], {"category_id": tree["electronics"]["id"]}, ACTOR
        )

        assert result.error.code == ErrorCode.NOT_LEAF

    @pytest.mark.asyncio
    async def test_move_to_leaf(self, catalog: CatalogService, tree, phone) -> None:
        """Moving to another leaf works."""
        result = await catalog.products.update_product(
            phone["id"], {"category_id": tree["books"]["id"]}, ACTOR
        )

        assert result.value["category_id"] == tree["books"]["id"]
        assert result.value["category_name"] == "Books"

    @pytest.mark.asyncio
    async def test_sku_collision_rejected(self, catalog: CatalogService, tree, phone) -> None:
        """Changing to a taken SKU is rejected."""
        other = (
            await catalog.products.add_product(product_data(tree["phones"]["id"], sku="XYZ"), ACTOR)
        ).unwrap()

        result = await catalog.products.update_product(other["id"], {"sku": "ABC-1"}, ACTOR)

        assert result.error.code == ErrorCode.DUPLICATE_SKU

    @pytest.mark.asyncio
    async def test_keeping_own_sku(self, catalog: CatalogService, phone) -> None:
        """Sending the current SKU is not a collision."""
        result = await catalog.products.update_product(
            phone["id"], {"sku": "ABC-1", "stock_quantity": 0}, ACTOR
        )

        assert result.value["stock_quantity"] == 0


# ============================================================================
# Delete and Restore
# ============================================================================


class TestDeleteRestoreProduct:
    """Tests for delete_product and restore_product."""

    @pytest.mark.asyncio
    async def test_delete_archives(self, catalog: CatalogService, phone) -> None:
        """Delete flips status and records history."""
        result = await catalog.products.delete_product(phone["id"], ACTOR)

        assert result.value["status"] == "archived"
        history = (
            await catalog.history.get_entity_history(EntityType.PRODUCT, phone["id"])
        ).unwrap()
        assert history[0].action == HistoryAction.DELETE

    @pytest.mark.asyncio
    async def test_delete_twice_conflicts(self, catalog: CatalogService, phone) -> None:
        """Deleting an archived product is a state conflict."""
        await catalog.products.delete_product(phone["id"], ACTOR)

        result = await catalog.products.delete_product(phone["id"], ACTOR)

        assert result.error.code == ErrorCode.STATE_CONFLICT

    @pytest.mark.asyncio
    async def test_restore(self, catalog: CatalogService, phone) -> None:
        """Archived product can be restored."""
        await catalog.products.delete_product(phone["id"], ACTOR)

        result = await catalog.products.restore_product(phone["id"], ACTOR)

        assert result.value["status"] == "active"

    @pytest.mark.asyncio
    async def test_restore_active_conflicts(self, catalog: CatalogService, phone) -> None:
        """Restoring an active product is a state conflict."""
        result = await catalog.products.restore_product(phone["id"], ACTOR)

        assert result.error.code == ErrorCode.STATE_CONFLICT

    @pytest.mark.asyncio
    async def test_restore_under_archived_category(self, catalog: CatalogService, tree, phone) -> None:
        """The category has to be restored first."""
        await catalog.categories.delete_category(tree["electronics"]["id"], ACTOR)

        result = await catalog.products.restore_product(phone["id"], ACTOR)

        assert result.error.code == ErrorCode.ARCHIVED

    @pytest.mark.asyncio
    async def test_restore_when_sku_taken(self, catalog: CatalogService, tree, phone) -> None:
        """Restore refuses when the SKU was reused meanwhile."""
        await catalog.products.delete_product(phone["id"], ACTOR)
        await catalog.products.add_product(product_data(tree["books"]["id"], sku="ABC-1"), ACTOR)

        result = await catalog.products.restore_product(phone["id"], ACTOR)

        assert result.error.code == ErrorCode.DUPLICATE_SKU


# ============================================================================
# Search
# ============================================================================


class TestSearchProducts:
    """Tests for search_products."""

    @pytest.mark.asyncio
    async def test_text_search_is_case_insensitive(self, catalog: CatalogService, tree, phone) -> None:
        """Query matches name, SKU and description."""
        by_name = (await catalog.products.search_products(query="pix")).unwrap()
        by_sku = (await catalog.products.search_products(query="abc")).unwrap()
        by_description = (await catalog.products.search_products(query="ANDROID")).unwrap()
        nothing = (await catalog.products.search_products(query="toaster")).unwrap()

        assert by_name.total == by_sku.total == by_description.total == 1
        assert nothing.total == 0
        assert nothing.page == 1
        assert nothing.total_pages == 1

    @pytest.mark.asyncio
    async def test_archived_excluded_by_default(self, catalog: CatalogService, phone) -> None:
        """Default search hides archived products."""
        await catalog.products.delete_product(phone["id"], ACTOR)

        default = (await catalog.products.search_products()).unwrap()
        archived = (await catalog.products.search_products(status="archived")).unwrap()

        assert default.total == 0
        assert [p["id"] for p in archived.products] == [phone["id"]]

    @pytest.mark.asyncio
    async def test_category_filter(self, catalog: CatalogService, tree, phone) -> None:
        """category_id narrows results."""
        await catalog.products.add_product(product_data(tree["books"]["id"]), ACTOR)

        page = (await catalog.products.search_products(category_id=tree["books"]["id"])).unwrap()

        assert [p["name"] for p in page.products] == ["Widget"]

    @pytest.mark.asyncio
    async def test_pagination_is_clamped_and_complete(self, catalog: CatalogService, tree) -> None:
        """Pages cover every product exactly once; out-of-range pages clamp."""
        for index in range(7):
            await catalog.products.add_product(
                product_data(tree["phones"]["id"], name=f"Phone {index}"), ACTOR
            )

        pages = [
            (await catalog.products.search_products(page=n, page_size=3)).unwrap()
            for n in (1, 2, 3)
        ]
        beyond = (await catalog.products.search_products(page=99, page_size=3)).unwrap()
        before = (await catalog.products.search_products(page=-5, page_size=3)).unwrap()

        assert pages[0].total == 7
        assert pages[0].total_pages == 3
        assert sum(len(page.products) for page in pages) == 7
        assert [p["name"] for p in pages[0].products] == ["Phone 0", "Phone 1", "Phone 2"]
        assert beyond.page == 3
        assert before.page == 1
        assert set(pages[1].to_dict()) == {"products", "total", "page", "total_pages", "page_size"}

    @pytest.mark.asyncio
    async def test_ties_ordered_newest_first(self, catalog: CatalogService, tree) -> None:
        """Equal sort_order falls back to id descending."""
        first = (
            await catalog.products.add_product(product_data(tree["phones"]["id"], name="A"), ACTOR)
        ).unwrap()
        second = (
            await catalog.products.add_product(product_data(tree["books"]["id"], name="B"), ACTOR)
        ).unwrap()

        page = (await catalog.products.search_products()).unwrap()

        assert first["sort_order"] == second["sort_order"] == 1
        assert [p["id"] for p in page.products] == [second["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_invalid_status(self, catalog: CatalogService) -> None:
        """Unknown status filter is a validation error."""
        result = await catalog.products.search_products(status="deleted")

        assert result.error.code == ErrorCode.VALIDATION

    @pytest.mark.asyncio
    async def test_get_product_not_found(self, catalog: CatalogService) -> None:
        """Unknown id is NOT_FOUND."""
        result = await catalog.products.get_product(12345)

        assert result.error.code == ErrorCode.NOT_FOUND
