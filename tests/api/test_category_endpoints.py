"""Tests for category API endpoints."""

from fastapi.testclient import TestClient


class TestCreateCategory:
    """Tests for POST /categories endpoint."""

    def test_create_root_and_child(self, actor_client: TestClient) -> None:
        """Should create categories and record the actor."""
        response = actor_client.post("/categories", json={"name": "  Electronics "})
        assert response.status_code == 201
        root = response.json()
        assert root["name"] == "Electronics"
        assert root["parent_id"] is None
        assert root["status"] == "active"
        assert root["created_by"] == "admin-1"

        child = actor_client.post(
            "/categories", json={"name": "Phones", "parent_id": root["id"]}
        ).json()
        assert child["parent_id"] == root["id"]

    def test_create_requires_actor(self, client: TestClient) -> None:
        """Should reject requests without X-Actor-ID."""
        response = client.post("/categories", json={"name": "Books"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION"

    def test_create_duplicate_name(self, actor_client: TestClient) -> None:
        """Should return 409 for a sibling with the same name."""
        actor_client.post("/categories", json={"name": "Books"})

        response = actor_client.post("/categories", json={"name": "BOOKS"})
        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "DUPLICATE_NAME"
        assert "request_id" in data

    def test_create_missing_parent(self, actor_client: TestClient) -> None:
        """Should return 404 for an unknown parent."""
        response = actor_client.post("/categories", json={"name": "Orphan", "parent_id": 999})
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_create_blank_name(self, actor_client: TestClient) -> None:
        """Should return 422 for a blank name."""
        response = actor_client.post("/categories", json={"name": "   "})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION"

    def test_create_malformed_body(self, actor_client: TestClient) -> None:
        """Should report schema errors as VALIDATION."""
        response = actor_client.post("/categories", json={})
        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "VALIDATION"
        assert data["details"]["errors"][0]["field"] == "body.name"


class TestReadCategories:
    """Tests for category read endpoints."""

    def test_tree(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should list roots before subcategories, each level by sort order."""
        response = actor_client.get("/categories/tree")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [(c["name"], c["depth"]) for c in data["categories"]] == [
            ("Electronics", 0),
            ("Books", 0),
            ("Phones", 1),
        ]
        assert data["categories"][0]["child_count"] == 1
        assert data["categories"][2]["product_count"] == 1

    def test_roots_and_children(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should list roots and direct children."""
        roots = actor_client.get("/categories/roots").json()
        children = actor_client.get(f"/categories/{seeded['electronics']}/children").json()

        assert [c["name"] for c in roots["categories"]] == ["Electronics", "Books"]
        assert [c["name"] for c in children["categories"]] == ["Phones"]

    def test_get_not_found(self, actor_client: TestClient) -> None:
        """Should return 404 for an unknown category."""
        response = actor_client.get("/categories/999")
        assert response.status_code == 404
        assert response.json()["message"] == "Category 999 not found"

    def test_delete_impact(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should count what a delete would archive."""
        response = actor_client.get(f"/categories/{seeded['electronics']}/delete-impact")
        assert response.status_code == 200
        data = response.json()
        assert data["subcat_count"] == 1
        assert data["product_count"] == 0
        assert data["all_descendant_products"] == 1


class TestMutateCategories:
    """Tests for rename, delete and restore endpoints."""

    def test_rename(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should rename a category."""
        response = actor_client.patch(f"/categories/{seeded['books']}", json={"name": "Literature"})
        assert response.status_code == 200
        assert response.json()["name"] == "Literature"

    def test_delete_and_restore(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should archive a subtree as a batch and allow restoring the root."""
        response = actor_client.delete(f"/categories/{seeded['electronics']}")
        assert response.status_code == 200
        batch_id = response.json()["batch_id"]

        operation = actor_client.get(f"/bulk/{batch_id}").json()
        assert operation["type"] == "category_delete"
        assert operation["status"] == "committed"
        assert operation["total_items"] == 3

        product = actor_client.get(f"/products/{seeded['phone']}").json()
        assert product["status"] == "archived"

        restored = actor_client.post(f"/categories/{seeded['electronics']}/restore")
        assert restored.status_code == 200
        assert restored.json()["status"] == "active"

    def test_delete_twice(self, actor_client: TestClient, seeded: dict[str, int]) -> None:
        """Should return 409 for an already archived category."""
        actor_client.delete(f"/categories/{seeded['books']}")

        response = actor_client.delete(f"/categories/{seeded['books']}")
        assert response.status_code == 409
