"""Tests for materialized path maintenance."""

from arbor.models import NodeKind, Page
from arbor.repositories import NodeStore
from arbor.services.path_maintainer import PathMaintainer, build_path, path_ids


class TestPathHelpers:

    def test_root_path(self):
        assert build_path(None, "services") == "/services"

    def test_child_path(self):
        assert build_path("/services", "waste") == "/services/waste"

    def test_path_ids_root_first(self):
        assert path_ids("/services/waste/bins") == ["services", "waste", "bins"]


class TestRecomputePaths:

    def test_moved_subtree_rewritten(self, db, factory, services_tree):
        factory.page("bins", parent=services_tree["waste"])
        store = NodeStore(db)
        services = store.get(NodeKind.PAGE, "services")
        services.parent_id = "contact"
        db.flush()

        changed = PathMaintainer(store, NodeKind.PAGE).recompute_paths("services")
        db.commit()

        assert changed == {"services", "waste", "planning", "bins"}
        assert store.get(NodeKind.PAGE, "bins").path == "/contact/services/waste/bins"

    def test_siblings_and_ancestors_untouched(self, db, services_tree):
        store = NodeStore(db)
        waste = store.get(NodeKind.PAGE, "waste")
        waste.parent_id = None
        db.flush()

        changed = PathMaintainer(store, NodeKind.PAGE).recompute_paths("waste")

        assert changed == {"waste"}
        assert waste.path == "/waste"
        assert store.get(NodeKind.PAGE, "planning").path == "/services/planning"
        assert store.get(NodeKind.PAGE, "services").path == "/services"

    def test_unchanged_paths_not_reported(self, db, services_tree):
        store = NodeStore(db)
        assert PathMaintainer(store, NodeKind.PAGE).recompute_paths("services") == set()

    def test_recompute_many_walks_nested_moves_once(self, db, factory, services_tree):
        factory.page("bins", parent=services_tree["waste"])
        store = NodeStore(db)
        store.get(NodeKind.PAGE, "services").parent_id = "contact"
        store.get(NodeKind.PAGE, "bins").parent_id = "planning"
        db.flush()

        changed = PathMaintainer(store, NodeKind.PAGE).recompute_many(["services", "bins"])

        assert changed == {"services", "waste", "planning", "bins"}
        assert store.get(NodeKind.PAGE, "bins").path == "/contact/services/planning/bins"

    def test_path_invariant_holds_everywhere(self, db, factory, services_tree):
        factory.page("bins", parent=services_tree["waste"])
        store = NodeStore(db)
        store.get(NodeKind.PAGE, "waste").parent_id = "contact"
        db.flush()
        PathMaintainer(store, NodeKind.PAGE).recompute_paths("waste")
        db.commit()

        pages = {p.id: p for p in db.query(Page).all()}
        for page in pages.values():
            parent_path = pages[page.parent_id].path if page.parent_id else None
            assert page.path == build_path(parent_path, page.id)
