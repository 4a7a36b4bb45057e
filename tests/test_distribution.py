"""Tests for the proportional distributor."""
from collections import Counter

import pytest

from plate_randomizer.errors import ExpectedMinimumError, InfeasibleCapacityError
from plate_randomizer.models import ContainerKind, OverflowPrioritization, Sample
from plate_randomizer.solver.containers import Container, fill_round_robin
from plate_randomizer.solver.distribution import (
    calculate_expected_minimums, distribute_to_containers, prioritize_containers,
    round_half_up, validate_distribution
)
from plate_randomizer.solver.grouping import build_covariate_groups, key_function


def _groups(**sizes):
    return {
        key: [Sample(name=f"{key}-{i}", metadata={"Group": key}) for i in range(size)]
        for key, size in sizes.items()
    }


def _counts(samples):
    return Counter(s.metadata["Group"] for s in samples)


@pytest.fixture
def forty_samples():
    """One group of 8 and eight groups of 4."""
    return _groups(G0=8, **{f"G{i}": 4 for i in range(1, 9)})


class TestExpectedMinimums:
    """Test cases for calculate_expected_minimums."""
    
    def test_proportional_shares(self, forty_samples, observer):
        """Equal plates get floor(size / plates) of each group."""
        minimums = calculate_expected_minimums([20, 20], forty_samples, 20, observer=observer)
        
        assert minimums[0]["G0"] == 4
        assert minimums[1]["G3"] == 2
    
    def test_partial_container_scaled(self, observer):
        """A partial container's share scales with its capacity."""
        minimums = calculate_expected_minimums([12, 6], _groups(A=10), 12, ContainerKind.ROW, observer)
        
        assert minimums[0]["A"] == 5
        assert minimums[1]["A"] == 3  # round(5 * 0.5)
    
    def test_single_container_ratio_is_one(self, observer):
        """With one container the whole group is expected there."""
        minimums = calculate_expected_minimums([5], _groups(A=5), 12, ContainerKind.ROW, observer)
        
        assert minimums[0]["A"] == 5
    
    def test_total_over_capacity(self, observer):
        """More samples than capacity is fatal."""
        with pytest.raises(InfeasibleCapacityError, match="exceed available capacity by 2"):
            calculate_expected_minimums([5, 5], _groups(A=12), 5, observer=observer)
    
    def test_container_minimums_over_capacity(self, observer):
        """Minimums above a container's capacity are fatal."""
        with pytest.raises(ExpectedMinimumError):
            calculate_expected_minimums([6, 6], _groups(A=12), 4, observer=observer)
    
    def test_round_half_up(self):
        """Halves round up."""
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.49) == 2


class TestDistributeToContainers:
    """Test cases for distribute_to_containers."""
    
    def test_forty_sample_scenario(self, forty_samples, rng, observer):
        """Forty samples split exactly in half across two plates."""
        minimums = calculate_expected_minimums([20, 20], forty_samples, 20, observer=observer)
        result = distribute_to_containers(
            forty_samples, [20, 20], 20, OverflowPrioritization.BY_CAPACITY,
            expected_minimums=minimums, rng=rng, observer=observer
        )
        
        for plate in (0, 1):
            counts = _counts(result[plate])
            assert len(result[plate]) == 20
            assert counts["G0"] == 4
            assert all(counts[f"G{i}"] == 2 for i in range(1, 9))
    
    def test_unplaced_groups_go_to_most_room(self, rng, observer):
        """Groups smaller than the container count are spread by room left."""
        groups = _groups(A=4, B=1, C=1)
        result = distribute_to_containers(
            groups, [3, 3], 3, OverflowPrioritization.NONE, rng=rng, observer=observer
        )
        
        assert sorted(len(s) for s in result.values()) == [3, 3]
        assert _counts(result[0])["A"] == 2
        assert _counts(result[1])["A"] == 2
        assert _counts(result[0])["B"] + _counts(result[0])["C"] == 1
    
    def test_overflow_is_placed(self, rng, observer):
        """Leftovers after seeding still find a container."""
        result = distribute_to_containers(
            _groups(A=5), [3, 3], 3, OverflowPrioritization.BY_GROUP_BALANCE, rng=rng, observer=observer
        )
        
        assert sorted(len(s) for s in result.values()) == [2, 3]
    
    @pytest.mark.parametrize("mode", list(OverflowPrioritization))
    def test_conservation_and_capacity(self, mode, rng, observer):
        """Every sample placed once, no container over capacity."""
        groups = _groups(A=17, B=9, C=5, D=2, E=1)
        capacities = [12, 12, 10]
        result = distribute_to_containers(groups, capacities, 12, mode, rng=rng, observer=observer)
        
        placed = [s.name for samples in result.values() for s in samples]
        assert sorted(placed) == sorted(s.name for g in groups.values() for s in g)
        for index, capacity in enumerate(capacities):
            assert len(result[index]) <= capacity
    
    def test_row_level_balance(self, rng, observer):
        """Rows of a balanced plate get equal shares."""
        groups = _groups(A=48, B=48)
        capacities = [12] * 8
        minimums = calculate_expected_minimums(capacities, groups, 12, ContainerKind.ROW, observer)
        result = distribute_to_containers(
            groups, capacities, 12, OverflowPrioritization.BY_GROUP_BALANCE,
            ContainerKind.ROW, minimums, rng, observer
        )
        
        for samples in result.values():
            assert _counts(samples) == {"A": 6, "B": 6}


class TestPrioritization:
    """Test cases for overflow container ordering."""
    
    def test_by_capacity_prefers_full(self, rng):
        """Full-size containers come before partial ones."""
        containers = [Container(0, 10), Container(1, 20), Container(2, 20)]
        ordered = prioritize_containers(containers, "A", OverflowPrioritization.BY_CAPACITY, 20, rng)
        
        assert {c.index for c in ordered[:2]} == {1, 2}
        assert ordered[2].index == 0
    
    def test_by_group_balance(self, rng):
        """Containers holding fewest of the group come first."""
        containers = [Container(i, 12, ContainerKind.ROW) for i in range(3)]
        containers[0].add(Sample(name="a1"), "A")
        containers[0].add(Sample(name="a2"), "A")
        containers[1].add(Sample(name="a3"), "A")
        containers[2].add(Sample(name="b1"), "B")
        ordered = prioritize_containers(containers, "A", OverflowPrioritization.BY_GROUP_BALANCE, 12, rng)
        
        assert [c.index for c in ordered] == [2, 1, 0]
    
    def test_round_robin_skips_full(self):
        """A full container leaves the rotation."""
        containers = [Container(0, 1), Container(1, 3)]
        samples = [Sample(name=f"s{i}") for i in range(4)]
        
        assert fill_round_robin(samples, "A", containers) == 4
        assert containers[0].count == 1
        assert containers[1].count == 3
    
    def test_round_robin_reports_shortfall(self):
        """Samples beyond total capacity are left over."""
        containers = [Container(0, 1), Container(1, 1)]
        samples = [Sample(name=f"s{i}") for i in range(3)]
        
        assert fill_round_robin(samples, "A", containers) == 2


class TestValidateDistribution:
    """Test cases for post-distribution validation."""
    
    def test_shortfall_reported(self, observer):
        """A container under its minimum is flagged, not raised."""
        groups = _groups(A=2)
        assignments = {0: groups["A"], 1: []}
        minimums = {0: {"A": 1}, 1: {"A": 1}}
        violations = validate_distribution(
            assignments, key_function(["Group"]), minimums, ContainerKind.PLATE, observer
        )
        
        assert len(violations) == 1
        assert violations[0].severity == "warning"
        assert "Plate 2" in violations[0].description
        assert observer.by_level("error")
    
    def test_balanced_passes(self, observer):
        """No violations when every minimum is met."""
        samples = _groups(A=2)["A"]
        key_of = key_function(["Group"])
        groups = build_covariate_groups(samples, key_of)
        minimums = calculate_expected_minimums([1, 1], groups, 1, observer=observer)
        
        assert validate_distribution({0: samples[:1], 1: samples[1:]}, key_of, minimums) == []
