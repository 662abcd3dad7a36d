import pytest
from unlocks import (
    build_reverse_prereq_map,
    compute_chain_depths,
    get_direct_unlocks,
    get_newly_eligible,
)


@pytest.fixture
def expressions():
    return {
        "CS100": "NONE",
        "CS101": "CS100",
        "CS102": "CS100 AND (CS101 OR MATH100)",
        "CS201": "CS101 OR CS102",
        "CS301": "CS201",
        "MATH100": "",
    }


class TestBuildReversePrereqMap:
    def test_cs100_unlocks(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert reverse["CS100"] == ["CS101", "CS102"]

    def test_alternatives_count_as_references(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert reverse["MATH100"] == ["CS102"]
        assert reverse["CS101"] == ["CS102", "CS201"]

    def test_leaf_not_in_map(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert "CS301" not in reverse


class TestChainDepths:
    def test_depths(self, expressions):
        depths = compute_chain_depths(build_reverse_prereq_map(expressions))
        # CS100 -> CS101 -> CS102 -> CS201 -> CS301
        assert depths["CS100"] == 4
        assert depths["CS201"] == 1


class TestGetDirectUnlocks:
    def test_limit_applied(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert get_direct_unlocks("CS100", reverse, limit=1) == ["CS101"]

    def test_course_not_in_map(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert get_direct_unlocks("ART100", reverse) == []


class TestGetNewlyEligible:
    def test_completing_course_unlocks(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        assert get_newly_eligible("CS100", reverse, expressions, set()) == ["CS101"]

    def test_already_satisfied_not_listed(self, expressions):
        reverse = build_reverse_prereq_map(expressions)
        # CS201 is already reachable through CS102
        assert get_newly_eligible("CS101", reverse, expressions, {"CS100", "CS102"}) == []
