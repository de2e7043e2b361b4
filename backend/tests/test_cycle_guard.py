"""Tests for cycle detection over the combined effective parent graph."""

import pytest

from arbor.exceptions import CycleDetectedError
from arbor.services.cycle_guard import find_cycle, validate_moves

# services -> {waste, planning}; waste -> bins; contact is a root
PARENTS = {
    "services": None,
    "waste": "services",
    "planning": "services",
    "bins": "waste",
    "contact": None,
}


class TestFindCycle:

    def test_harmless_move_passes(self):
        assert find_cycle(PARENTS, [("contact", "services")]) is None

    def test_move_to_root_passes(self):
        assert find_cycle(PARENTS, [("bins", None)]) is None

    def test_self_parenting_rejected(self):
        assert find_cycle(PARENTS, [("contact", "contact")]) == "contact"

    def test_move_under_own_child_rejected(self):
        assert find_cycle(PARENTS, [("services", "waste")]) == "services"

    def test_move_under_deep_descendant_rejected(self):
        assert find_cycle(PARENTS, [("services", "bins")]) == "services"

    def test_swap_between_roots_rejected(self):
        # Each move alone is fine; together they close a loop.
        assert find_cycle(PARENTS, [("contact", "services")]) is None
        assert find_cycle(PARENTS, [("services", "contact")]) is None
        assert find_cycle(PARENTS, [("contact", "services"), ("services", "contact")]) == "contact"

    def test_batch_that_untangles_first_passes(self):
        # bins leaves waste before waste moves under bins.
        moves = [("bins", None), ("waste", "bins")]
        assert find_cycle(PARENTS, moves) is None

    def test_unknown_parent_treated_as_root(self):
        assert find_cycle(PARENTS, [("contact", "elsewhere")]) is None

    def test_damaged_graph_does_not_loop_forever(self):
        damaged = dict(PARENTS, x="y", y="x")
        assert find_cycle(damaged, [("contact", "x")]) is None


class TestValidateMoves:

    def test_raises_with_offending_id(self):
        with pytest.raises(CycleDetectedError) as exc_info:
            validate_moves(PARENTS, [("waste", "bins")])
        assert exc_info.value.offending_id == "waste"
        assert exc_info.value.details == {"offending_id": "waste"}
        assert exc_info.value.status_code == 400

    def test_passes_silently(self):
        validate_moves(PARENTS, [("planning", "waste")])
