"""Tests for the layout service."""
import random
from collections import Counter

import pytest

from plate_randomizer.models import (
    RandomizationAlgorithm, RandomizationConfig, RandomizationResult, Sample,
    SolveStatus, WellPosition
)
from plate_randomizer.services import LayoutService


@pytest.fixture
def service():
    """Seeded layout service."""
    return LayoutService(seed=42)


@pytest.fixture
def config():
    """Treatment-only parameters."""
    return RandomizationConfig(covariates=["Treatment"])


@pytest.fixture
def samples(make_samples):
    """150 samples over three treatments, two plates."""
    return make_samples(
        (60, {"Treatment": "A"}),
        (50, {"Treatment": "B"}),
        (40, {"Treatment": "C"}),
    )


@pytest.fixture
def layout(service, samples, config):
    """A generated layout."""
    return service.generate_layout(samples, config).result


def _grid_names(result):
    return [[[s.name if s else None for s in row] for row in plate] for plate in result.plates]


class TestGenerateLayout:
    """Test cases for generate_layout."""
    
    def test_success(self, service, samples, config):
        """A feasible request succeeds."""
        solved = service.generate_layout(samples, config)
        
        assert solved.status == SolveStatus.SUCCESS
        assert solved.result.num_plates == 2
        assert not any(v.severity == "error" for v in solved.violations)
    
    def test_no_samples(self, service, config):
        """An empty request fails."""
        solved = service.generate_layout([], config)
        
        assert solved.status == SolveStatus.FAILED
        assert solved.result is None
    
    def test_fatal_error_reported(self, service, make_samples):
        """Fatal errors become a failed result with a message."""
        samples = make_samples((7, {"Subject": "P1", "Treatment": "A"}))
        config = RandomizationConfig(
            covariates=["Treatment"], num_rows=2, num_columns=3, repeated_measures_variable="Subject"
        )
        solved = service.generate_layout(samples, config)
        
        assert solved.status == SolveStatus.FAILED
        assert "P1" in solved.message
    
    def test_seeded_service_repeats(self, samples, config):
        """The same seed gives the same layout."""
        first = LayoutService(seed=3).generate_layout(samples, config).result
        second = LayoutService(seed=3).generate_layout(samples, config).result
        
        assert _grid_names(first) == _grid_names(second)


class TestSwapWells:
    """Test cases for swap_wells."""
    
    def test_swap_within_plate(self, service, layout):
        """Two wells trade samples."""
        a = WellPosition(plate=0, row=0, col=0)
        b = WellPosition(plate=0, row=1, col=5)
        updated = service.swap_wells(layout, a, b)
        
        assert updated.plates[0][0][0].name == layout.plates[0][1][5].name
        assert updated.plates[0][1][5].name == layout.plates[0][0][0].name
        assert _grid_names(layout) != _grid_names(updated)
    
    def test_swap_across_plates(self, service, layout):
        """Plate assignments follow a cross-plate swap."""
        a = WellPosition(plate=0, row=0, col=0)
        b = WellPosition(plate=1, row=0, col=0)
        moving = layout.plates[0][0][0].name
        target = layout.plates[1][0][0].name
        updated = service.swap_wells(layout, a, b)
        
        assert moving in {s.name for s in updated.plate_assignments[1]}
        assert target in {s.name for s in updated.plate_assignments[0]}
        assert moving not in {s.name for s in updated.plate_assignments[0]}
        assert len(updated.plate_assignments[0]) == len(layout.plate_assignments[0])
    
    def test_swap_with_empty_well(self, service, layout):
        """A sample can move into an empty well."""
        empty = WellPosition(plate=1, row=7, col=11)
        assert layout.plates[1][7][11] is None
        a = WellPosition(plate=0, row=0, col=0)
        moving = layout.plates[0][0][0].name
        updated = service.swap_wells(layout, a, empty)
        
        assert updated.plates[0][0][0] is None
        assert updated.plates[1][7][11].name == moving
        assert len(updated.plate_assignments[0]) == len(layout.plate_assignments[0]) - 1
        assert len(updated.plate_assignments[1]) == len(layout.plate_assignments[1]) + 1
    
    def test_out_of_range(self, service, layout):
        """Wells outside the plates are rejected."""
        with pytest.raises(ValueError):
            service.swap_wells(layout, WellPosition(plate=0, row=0, col=0), WellPosition(plate=5, row=0, col=0))
        with pytest.raises(ValueError):
            service.swap_wells(layout, WellPosition(plate=0, row=8, col=0), WellPosition(plate=0, row=0, col=0))


class TestRerandomizePlate:
    """Test cases for rerandomize_plate."""
    
    def test_rows_keep_their_samples(self, service, layout):
        """Rows keep their samples and occupied wells."""
        updated = service.rerandomize_plate(layout, 1, rng=random.Random(5))
        
        for before, after in zip(layout.plates[1], updated.plates[1]):
            assert Counter(s.name for s in before if s) == Counter(s.name for s in after if s)
            assert [s is None for s in before] == [s is None for s in after]
        assert _grid_names(updated)[0] == _grid_names(layout)[0]
    
    def test_greedy_shuffles_whole_plate(self, service, samples):
        """Greedy layouts are reshuffled over the whole plate from the first well."""
        config = RandomizationConfig(covariates=["Treatment"], algorithm="greedy")
        layout = service.generate_layout(samples, config).result
        updated = service.rerandomize_plate(
            layout, 1, rng=random.Random(5), algorithm=RandomizationAlgorithm.GREEDY
        )
        
        before = sorted(s.name for row in layout.plates[1] for s in row if s)
        wells = [s for row in updated.plates[1] for s in row]
        assert sorted(s.name for s in wells if s) == before
        assert all(s is not None for s in wells[:len(before)])
        assert all(s is None for s in wells[len(before):])
        assert _grid_names(updated)[0] == _grid_names(layout)[0]
    
    def test_missing_plate(self, service, layout):
        """Unknown plates are rejected."""
        with pytest.raises(ValueError):
            service.rerandomize_plate(layout, 9)


class TestValidateLayout:
    """Test cases for validate_layout."""
    
    def test_clean_layout(self, service, layout, config):
        """A generated layout has no errors."""
        violations = service.validate_layout(layout, config)
        
        assert all(v.severity == "warning" for v in violations)
    
    def test_duplicate_sample(self, service, config):
        """A sample in two wells is an error."""
        sample = Sample(name="S1", metadata={"Treatment": "A"})
        result = RandomizationResult(plates=[[[sample, None, sample]]], plate_assignments={0: [sample]})
        violations = service.validate_layout(result, config)
        
        duplicates = [v for v in violations if v.constraint_name == "conservation"]
        assert len(duplicates) == 1
        assert duplicates[0].severity == "error"
        assert duplicates[0].affected_wells == ["P1:A01", "P1:A03"]
    
    def test_missing_sample(self, service, config):
        """An assigned sample without a well is an error."""
        sample = Sample(name="S1", metadata={"Treatment": "A"})
        result = RandomizationResult(plates=[[[None, None]]], plate_assignments={0: [sample]})
        violations = service.validate_layout(result, config)
        
        assert [v.constraint_name for v in violations] == ["conservation"]
    
    def test_split_subject(self, service):
        """A subject on two plates is an error."""
        config = RandomizationConfig(covariates=["Treatment"], repeated_measures_variable="Subject")
        a = Sample(name="S1", metadata={"Treatment": "A", "Subject": "P1"})
        b = Sample(name="S2", metadata={"Treatment": "B", "Subject": "P1"})
        result = RandomizationResult(plates=[[[a]], [[b]]], plate_assignments={0: [a], 1: [b]})
        violations = service.validate_layout(result, config)
        
        split = [v for v in violations if v.constraint_name == "atomic_grouping"]
        assert len(split) == 1
        assert "P1" in split[0].description
    
    def test_adjacent_pair_warning(self, service, config):
        """Neighbouring wells of one group are a warning."""
        a = Sample(name="S1", metadata={"Treatment": "A"})
        b = Sample(name="S2", metadata={"Treatment": "A"})
        result = RandomizationResult(plates=[[[a, b]]], plate_assignments={0: [a, b]})
        violations = service.validate_layout(result, config)
        
        assert len(violations) == 1
        assert violations[0].severity == "warning"
        assert violations[0].affected_wells == ["P1:A01", "P1:A02"]
    
    def test_row_wrap_pair_warning(self, service, config):
        """The last well of a row and the first of the next are neighbours."""
        a = Sample(name="S1", metadata={"Treatment": "A"})
        b = Sample(name="S2", metadata={"Treatment": "B"})
        c = Sample(name="S3", metadata={"Treatment": "A"})
        result = RandomizationResult(plates=[[[b, a], [c, None]]], plate_assignments={0: [a, b, c]})
        violations = service.validate_layout(result, config)
        
        assert [v.affected_wells for v in violations] == [["P1:A02", "P1:B01"]]
