"""Integration tests for the page API: trees, menu, CRUD, lifecycle and batch."""

from arbor.models import Page, PageStatus
from tests.conftest import make_settings


def _ids(nodes):
    return [node["id"] for node in nodes]


class TestPageTree:

    def test_tree_nested_and_sorted(self, client, services_tree):
        resp = client.get("/api/pages/tree")
        assert resp.status_code == 200
        tree = resp.json()
        assert _ids(tree) == ["services", "contact"]
        assert _ids(tree[0]["children"]) == ["waste", "planning"]
        assert tree[0]["children"][0]["path"] == "/services/waste"
        assert tree[0]["kind"] == "page"
        assert tree[0]["status"] == "published"

    def test_subtree(self, client, services_tree):
        resp = client.get("/api/pages/tree", params={"root_id": "services"})
        assert _ids(resp.json()) == ["services"]

    def test_unknown_root(self, client, services_tree):
        resp = client.get("/api/pages/tree", params={"root_id": "nope"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "NODE_NOT_FOUND"

    def test_empty_tree(self, client):
        resp = client.get("/api/pages/tree")
        assert resp.status_code == 200
        assert resp.json() == []


class TestPublicMenu:

    def test_menu_uses_menu_title(self, client, factory, services_tree):
        factory.page("news", order=2, status=PageStatus.PUBLISHED,
                     title="Latest News and Announcements", menu_title="News")
        menu = client.get("/api/pages/menu").json()
        assert _ids(menu) == ["services", "contact", "news"]
        assert menu[2]["label"] == "News"
        assert menu[2]["name"] == "Latest News and Announcements"

    def test_menu_hides_unpublished_and_hidden(self, client, factory, services_tree):
        factory.page("draft", parent=services_tree["services"], order=5)
        factory.page("hidden", status=PageStatus.PUBLISHED, visible=False, order=9)
        menu = client.get("/api/pages/menu").json()
        assert _ids(menu) == ["services", "contact"]
        assert _ids(menu[0]["children"]) == ["waste", "planning"]

    def test_by_slug(self, client, factory, services_tree):
        factory.page("draft")
        assert client.get("/api/pages/by-slug/waste").json()["id"] == "waste"
        assert client.get("/api/pages/by-slug/draft").status_code == 404


class TestPageCrud:

    def test_create_and_get(self, client, services_tree):
        resp = client.post("/api/pages", json={
            "title": "Bin Collection",
            "parent_id": "waste",
            "order": 1,
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["slug"] == "bin-collection"
        assert data["path"] == f"/services/waste/{data['id']}"
        assert data["status"] == "draft"
        assert data["is_public"] is False

        fetched = client.get(f"/api/pages/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Bin Collection"

    def test_create_rejects_slash_in_id(self, client):
        resp = client.post("/api/pages", json={"id": "a/b", "title": "Bad"})
        assert resp.status_code == 422

    def test_create_slug_conflict(self, client, services_tree):
        resp = client.post("/api/pages", json={"title": "Other", "slug": "waste"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "SLUG_CONFLICT"

    def test_get_missing(self, client):
        resp = client.get("/api/pages/nope")
        assert resp.status_code == 404

    def test_update_fields_and_move(self, client, services_tree):
        resp = client.put("/api/pages/contact", json={
            "title": "Contact the Council",
            "parent_id": "services",
            "order": 2,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["title"] == "Contact the Council"
        assert data["path"] == "/services/contact"

    def test_update_cycle(self, client, services_tree):
        resp = client.put("/api/pages/services", json={"parent_id": "waste"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "CYCLE_DETECTED"

    def test_delete_moves_children_up(self, client, db, services_tree):
        resp = client.delete("/api/pages/services")
        assert resp.status_code == 200
        assert resp.json() == {"deleted": "services", "paths_updated": ["planning", "waste"]}
        db.expire_all()
        assert db.get(Page, "waste").parent_id is None

    def test_breadcrumbs(self, client, services_tree):
        resp = client.get("/api/pages/planning/path")
        assert resp.status_code == 200
        assert _ids(resp.json()) == ["services", "planning"]


class TestLifecycle:

    def test_publish_then_visible_in_menu(self, client, services_tree):
        page_id = client.post("/api/pages", json={"title": "Events", "order": 3}).json()["id"]
        assert page_id not in _ids(client.get("/api/pages/menu").json())

        resp = client.post(f"/api/pages/{page_id}/publish")
        assert resp.status_code == 200
        assert resp.json()["published_at"] is not None
        assert page_id in _ids(client.get("/api/pages/menu").json())

    def test_archive_removes_from_menu(self, client, services_tree):
        client.post("/api/pages/contact/archive")
        assert _ids(client.get("/api/pages/menu").json()) == ["services"]

    def test_unpublish(self, client, services_tree):
        resp = client.post("/api/pages/planning/unpublish")
        assert resp.json()["status"] == "draft"


class TestPageBatch:

    def test_reparent(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "contact", "order": 2, "parent_id": "services"},
        ]})
        assert resp.status_code == 200
        assert resp.json() == {"status": "applied", "changed": 1, "paths_updated": ["contact"]}

    def test_omitted_parent_keeps_parent(self, client, db, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "order": 1},
            {"id": "planning", "order": 0},
        ]})
        assert resp.json()["changed"] == 2
        db.expire_all()
        assert db.get(Page, "waste").parent_id == "services"

    def test_null_parent_moves_to_root(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "parent_id": None},
        ]})
        assert resp.json()["paths_updated"] == ["waste"]

    def test_cycle_rejected_with_body(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "services", "parent_id": "waste"},
        ]})
        assert resp.status_code == 400
        body = resp.json()
        assert body["status"] == "rejected"
        assert body["error"] == "CYCLE_DETECTED"
        assert body["details"]["offending_id"] == "services"

    def test_unknown_id_rejected(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "order": 3},
            {"id": "ghost", "order": 4},
        ]})
        assert resp.status_code == 404
        assert resp.json()["details"]["node_id"] == "ghost"
        assert client.get("/api/pages/waste").json()["order"] == 0

    def test_duplicate_rejected(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "order": 3},
            {"id": "waste", "order": 4},
        ]})
        assert resp.status_code == 400
        assert resp.json()["error"] == "DUPLICATE_IN_BATCH"

    def test_empty_batch(self, client):
        resp = client.put("/api/pages/batch", json={"operations": []})
        assert resp.status_code == 200
        assert resp.json()["changed"] == 0

    def test_oversized_batch_rejected_before_loading(self, app, client, services_tree):
        app.state.settings = make_settings(max_batch_operations=1)
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "order": 3},
            {"id": "ghost", "order": 4},
        ]})
        assert resp.status_code == 400
        assert resp.json()["details"]["field"] == "operations"

    def test_order_outside_column_range(self, client, services_tree):
        resp = client.put("/api/pages/batch", json={"operations": [
            {"id": "waste", "order": 2**31},
        ]})
        assert resp.status_code == 422
        assert client.get("/api/pages/waste").json()["order"] == 0

    def test_create_with_order_below_range(self, client):
        resp = client.post("/api/pages", json={"title": "Low", "order": -2**31 - 1})
        assert resp.status_code == 422


class TestPageList:

    def test_paginated_body(self, client, services_tree):
        resp = client.get("/api/pages", params={"sort_by": "title", "sort_order": "asc", "limit": 3})
        assert resp.status_code == 200
        body = resp.json()
        assert _ids(body["items"]) == ["contact", "planning", "services"]
        assert body["pagination"] == {"page": 1, "limit": 3, "total": 4, "total_pages": 2}

    def test_filters(self, client, factory, services_tree):
        factory.page("draft-news", owner_id="anonymous")
        resp = client.get("/api/pages", params={"status": "draft", "q": "news"})
        assert _ids(resp.json()["items"]) == ["draft-news"]

    def test_unknown_sort_column(self, client):
        assert client.get("/api/pages", params={"sort_by": "body"}).status_code == 422

    def test_limit_capped(self, client):
        assert client.get("/api/pages", params={"limit": 101}).status_code == 422
