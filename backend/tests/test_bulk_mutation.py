"""Tests for the batch coordinator: validation, atomicity and derived state."""

from sqlalchemy import update
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from arbor.exceptions import (
    ConcurrentModificationError,
    CycleDetectedError,
    DuplicateInBatchError,
    NodeKindMismatchError,
    NodeNotFoundError,
    PermissionDeniedError,
    SlugConflictError,
    ValidationError,
)
from arbor.models import Folder, NodeKind, Page
from arbor.repositories import DocumentRepository, NodeStore
from arbor.services.bulk_mutation import (
    BatchStatus,
    BulkMutationCoordinator,
    PlacementOp,
    placement_ops,
)
from arbor.services.stats_aggregator import Stats, StatsAggregator
from tests.conftest import ADMIN, EDITOR, READER, tree_snapshot


def _apply(db, kind, ops, actor=ADMIN):
    return BulkMutationCoordinator(NodeStore(db)).apply_batch(kind, ops, actor)


def _page(db, page_id) -> Page:
    db.expire_all()
    return db.get(Page, page_id)


class TestScenarios:

    def test_reparent_root_page_into_services(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("contact", order=2, parent_id="services", reparent=True),
        ])

        assert outcome.status == BatchStatus.APPLIED
        assert outcome.changed == 1
        assert outcome.paths_updated == {"contact"}
        contact = _page(db, "contact")
        assert contact.parent_id == "services"
        assert contact.order == 2
        assert contact.path == _page(db, "services").path + "/contact"

    def test_move_under_own_child_rejected(self, db, services_tree):
        before = tree_snapshot(db, Page)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("services", parent_id="waste", reparent=True),
        ])

        assert outcome.status == BatchStatus.REJECTED
        assert isinstance(outcome.error, CycleDetectedError)
        assert outcome.error.offending_id == "services"
        assert tree_snapshot(db, Page) == before

    def test_unknown_id_rejects_whole_batch(self, db, services_tree):
        before = tree_snapshot(db, Page)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("services", order=5),
            PlacementOp("waste", order=4),
            PlacementOp("ghost", order=3),
            PlacementOp("planning", order=2),
            PlacementOp("contact", order=1, visible=False),
        ])

        assert outcome.status == BatchStatus.REJECTED
        assert isinstance(outcome.error, NodeNotFoundError)
        assert outcome.error.details["node_id"] == "ghost"
        assert tree_snapshot(db, Page) == before

    def test_swapped_parents_rejected(self, db, services_tree):
        before = tree_snapshot(db, Page)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("contact", parent_id="services", reparent=True),
            PlacementOp("services", parent_id="contact", reparent=True),
        ])

        assert outcome.status == BatchStatus.REJECTED
        assert isinstance(outcome.error, CycleDetectedError)
        assert outcome.error.offending_id == "contact"
        assert tree_snapshot(db, Page) == before


class TestValidation:

    def test_empty_batch_is_a_successful_no_op(self, db):
        outcome = _apply(db, NodeKind.PAGE, [])
        assert outcome.status == BatchStatus.APPLIED
        assert outcome.changed == 0
        assert outcome.to_dict() == {"status": "applied", "changed": 0, "paths_updated": []}

    def test_duplicate_id_rejected(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("waste", order=1),
            PlacementOp("waste", order=2),
        ])
        assert isinstance(outcome.error, DuplicateInBatchError)

    def test_other_kind_rejected(self, db, factory, services_tree):
        factory.folder("reports")
        outcome = _apply(db, NodeKind.PAGE, [PlacementOp("reports", order=1)])
        assert isinstance(outcome.error, NodeKindMismatchError)
        assert outcome.error.details["actual"] == "folder"

    def test_unknown_new_parent_rejected(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("contact", parent_id="nowhere", reparent=True),
        ])
        assert isinstance(outcome.error, NodeNotFoundError)

    def test_self_parenting_rejected(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("contact", parent_id="contact", reparent=True),
        ])
        assert outcome.error.offending_id == "contact"

    def test_permission_checked_before_any_write(self, db, services_tree):
        before = tree_snapshot(db, Page)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("planning", order=0),
            PlacementOp("waste", order=1),
        ], actor=READER)

        assert outcome.status == BatchStatus.REJECTED
        assert isinstance(outcome.error, PermissionDeniedError)
        assert outcome.error.details["node_id"] == "planning"
        assert outcome.status_code == 403
        assert tree_snapshot(db, Page) == before

    def test_write_on_new_parent_required(self, db, factory):
        mine = factory.folder("mine", owner_id="editor")
        factory.folder("theirs", owner_id="owner")

        outcome = _apply(db, NodeKind.FOLDER, [
            PlacementOp("mine", parent_id="theirs", reparent=True),
        ], actor=EDITOR)

        assert isinstance(outcome.error, PermissionDeniedError)
        assert outcome.error.details["node_id"] == "theirs"

    def test_rejection_body_names_failed_check(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("services", parent_id="planning", reparent=True),
        ])
        body = outcome.to_dict()
        assert body["status"] == "rejected"
        assert body["error"] == "CYCLE_DETECTED"
        assert body["details"]["offending_id"] == "services"


class TestApplied:

    def test_reorder_without_reparent_keeps_parent(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("waste", order=1),
            PlacementOp("planning", order=0),
        ])
        assert outcome.changed == 2
        assert outcome.paths_updated == set()
        assert _page(db, "waste").parent_id == "services"

    def test_unchanged_rows_not_counted(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("waste", order=0),
            PlacementOp("planning", order=7),
        ])
        assert outcome.changed == 1

    def test_visibility_toggle(self, db, services_tree):
        _apply(db, NodeKind.PAGE, [PlacementOp("planning", visible=False)])
        assert _page(db, "planning").visible is False

    def test_move_to_root(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [PlacementOp("waste", parent_id=None, reparent=True)])
        assert outcome.paths_updated == {"waste"}
        waste = _page(db, "waste")
        assert waste.parent_id is None
        assert waste.path == "/waste"

    def test_descendant_paths_follow_moved_node(self, db, factory, services_tree):
        factory.page("bins", parent=services_tree["waste"])

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("services", parent_id="contact", reparent=True),
        ])

        assert outcome.paths_updated == {"services", "waste", "planning", "bins"}
        assert _page(db, "bins").path == "/contact/services/waste/bins"
        assert _page(db, "contact").path == "/contact"

    def test_editor_may_reorder_pages(self, db, services_tree):
        outcome = _apply(db, NodeKind.PAGE, [PlacementOp("planning", order=0)], actor=EDITOR)
        assert outcome.applied

    def test_folder_move_refreshes_both_ancestor_chains(self, db, factory):
        left = factory.folder("left")
        right = factory.folder("right")
        child = factory.folder("child", parent=left)
        factory.document("kept", left, size=100)
        factory.document("moving", child, size=50)

        outcome = _apply(db, NodeKind.FOLDER, [
            PlacementOp("child", parent_id="right", reparent=True),
        ])

        assert outcome.applied
        db.expire_all()
        stats = StatsAggregator(NodeStore(db), DocumentRepository(db))
        assert stats.get_stats("left") == Stats(1, 100)
        assert stats.get_stats("right") == Stats(1, 50)
        assert db.get(Folder, "child").path == "/right/child"


class TestAtomicity:

    def test_failed_write_rolls_back_earlier_rows(self, db, services_tree, monkeypatch):
        before = tree_snapshot(db, Page)
        original = BulkMutationCoordinator._write

        def flaky_write(self, node, op):
            if op.id == "planning":
                raise SQLAlchemyError("disk I/O error")
            return original(self, node, op)

        monkeypatch.setattr(BulkMutationCoordinator, "_write", flaky_write)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("contact", order=9, parent_id="services", reparent=True),
            PlacementOp("waste", order=8, visible=False),
            PlacementOp("planning", order=7),
        ])

        assert outcome.status == BatchStatus.ROLLED_BACK
        assert isinstance(outcome.error, ConcurrentModificationError)
        assert outcome.error.retryable is True
        assert outcome.to_dict()["status"] == "rolled_back"
        assert tree_snapshot(db, Page) == before

    def test_lock_timeout_is_retryable(self, db, services_tree, monkeypatch):
        def timed_out(self, kind, root_ids):
            raise OperationalError("SELECT pg_advisory_xact_lock(...)", {}, Exception("lock timeout"))

        monkeypatch.setattr(NodeStore, "lock_trees", timed_out)

        outcome = _apply(db, NodeKind.PAGE, [PlacementOp("waste", order=3)])

        assert outcome.status == BatchStatus.ROLLED_BACK
        assert outcome.error.details["retryable"] is True
        assert outcome.status_code == 409
        assert _page(db, "waste").order == 0

    def test_root_moved_while_waiting_for_lock_is_retryable(self, db, services_tree, monkeypatch):
        before = tree_snapshot(db, Page)

        def moved_meanwhile(self, kind, root_ids):
            # Another writer put "services" under "contact" before the lock was granted.
            self.db.execute(
                update(Page).where(Page.id == "services").values(parent_id="contact", path="/contact/services")
            )
            self.db.execute(update(Page).where(Page.id == "waste").values(path="/contact/services/waste"))

        monkeypatch.setattr(NodeStore, "lock_trees", moved_meanwhile)

        outcome = _apply(db, NodeKind.PAGE, [PlacementOp("waste", order=3)])

        assert outcome.status == BatchStatus.ROLLED_BACK
        assert isinstance(outcome.error, ConcurrentModificationError)
        assert outcome.status_code == 409
        assert outcome.error.details["retryable"] is True
        assert tree_snapshot(db, Page) == before

    def test_order_beyond_column_range_rejected_without_writes(self, db, services_tree):
        before = tree_snapshot(db, Page)

        outcome = _apply(db, NodeKind.PAGE, [
            PlacementOp("planning", order=4),
            PlacementOp("waste", order=2**63),
        ])

        assert outcome.status == BatchStatus.REJECTED
        assert isinstance(outcome.error, ValidationError)
        assert outcome.error.details["field"] == "order"
        assert tree_snapshot(db, Page) == before

    def test_failing_follow_up_rolls_back_placement(self, db, services_tree):
        before = tree_snapshot(db, Page)

        def follow_up():
            raise SlugConflictError("waste")

        outcome = BulkMutationCoordinator(NodeStore(db)).apply_batch(
            NodeKind.PAGE,
            [PlacementOp("contact", order=5, parent_id="services", reparent=True)],
            ADMIN,
            then=follow_up,
        )

        assert outcome.status == BatchStatus.REJECTED
        assert outcome.status_code == 409
        assert tree_snapshot(db, Page) == before


class TestPlacementOps:

    def test_absent_parent_key_keeps_parent(self):
        op, = placement_ops([{"id": "waste", "order": 1}])
        assert op.reparent is False

    def test_explicit_null_parent_moves_to_root(self):
        op, = placement_ops([{"id": "waste", "parent_id": None}])
        assert op.reparent is True
        assert op.parent_id is None
