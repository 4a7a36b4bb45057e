"""Layout generation service."""
import logging
import random
import time
from collections import Counter
from typing import List, Optional

from plate_randomizer.config import settings
from plate_randomizer.errors import RandomizationError
from plate_randomizer.models import (
    ConstraintViolation, RandomizationAlgorithm, RandomizationConfig, RandomizationResult,
    Sample, SolveResult, SolveStatus, WellPosition, format_position
)
from plate_randomizer.solver import CollectingObserver, LoggingObserver, PlateRandomizer
from plate_randomizer.solver.constraints import severity_for
from plate_randomizer.solver.grouping import has_subject_id, key_function

logger = logging.getLogger(__name__)


class LayoutService:
    """Service for generating and editing randomized plate layouts."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed if seed is not None else settings.random_seed

    def _rng(self) -> random.Random:
        return random.Random(self.seed)

    def generate_layout(
        self,
        samples: List[Sample],
        config: RandomizationConfig
    ) -> SolveResult:
        """
        Generate a randomized plate layout.

        Args:
            samples: Samples to place
            config: Randomization parameters

        Returns:
            SolveResult with the layout, or the reason it failed
        """
        start_time = time.time()
        observer = CollectingObserver(forward=LoggingObserver(logger))

        if not samples:
            return SolveResult(
                status=SolveStatus.FAILED,
                message="No samples to randomize"
            )

        try:
            result = PlateRandomizer(config, self._rng(), observer).randomize(samples)
        except RandomizationError as e:
            logger.error(f"Randomization failed: {e}")
            return SolveResult(
                status=SolveStatus.FAILED,
                solve_time_ms=int((time.time() - start_time) * 1000),
                message=str(e)
            )

        for message in observer.by_level("warning"):
            if message not in result.warnings:
                result.warnings.append(message)

        solve_time = int((time.time() - start_time) * 1000)
        violations = result.violations + self.validate_layout(result, config)

        if any(v.severity == "error" for v in violations):
            return SolveResult(
                status=SolveStatus.PARTIAL,
                result=result,
                violations=violations,
                solve_time_ms=solve_time,
                message="Layout generated with constraint violations"
            )

        return SolveResult(
            status=SolveStatus.SUCCESS,
            result=result,
            violations=violations,
            solve_time_ms=solve_time,
            message=f"Placed {len(samples)} samples on {result.num_plates} plates"
        )

    def swap_wells(
        self,
        result: RandomizationResult,
        from_position: WellPosition,
        to_position: WellPosition
    ) -> RandomizationResult:
        """
        Swap the contents of two wells, within or across plates.

        Either well may be empty. The input result is left untouched.

        Args:
            result: Current layout
            from_position: First well
            to_position: Second well

        Returns:
            Updated layout

        Raises:
            ValueError: A position is outside the plates
        """
        self._check_position(result, from_position)
        self._check_position(result, to_position)

        updated = result.model_copy(deep=True)
        plates = updated.plates
        moving = plates[from_position.plate][from_position.row][from_position.col]
        target = plates[to_position.plate][to_position.row][to_position.col]

        plates[from_position.plate][from_position.row][from_position.col] = target
        plates[to_position.plate][to_position.row][to_position.col] = moving

        if from_position.plate != to_position.plate:
            self._move_assignment(updated, moving, from_position.plate, to_position.plate)
            self._move_assignment(updated, target, to_position.plate, from_position.plate)

        logger.info(f"Swapped {from_position.label()} and {to_position.label()}")
        return updated

    def rerandomize_plate(
        self,
        result: RandomizationResult,
        plate_index: int,
        rng: Optional[random.Random] = None,
        algorithm: RandomizationAlgorithm = RandomizationAlgorithm.BALANCED
    ) -> RandomizationResult:
        """
        Shuffle the samples of one plate.

        For balanced layouts each row keeps its samples and its occupied
        wells; only the order of samples over those wells changes. Greedy
        layouts have no row balance to keep, so the whole plate is shuffled
        and refilled from the first well on.
        """
        if not 0 <= plate_index < result.num_plates:
            raise ValueError(f"Plate {plate_index + 1} does not exist ({result.num_plates} plates)")

        rng = rng or self._rng()
        updated = result.model_copy(deep=True)

        if algorithm == RandomizationAlgorithm.GREEDY:
            plate = updated.plates[plate_index]
            samples = [s for row in plate for s in row if s is not None]
            rng.shuffle(samples)
            wells = iter(samples)
            updated.plates[plate_index] = [[next(wells, None) for _ in row] for row in plate]
            logger.info(f"Re-randomized plate {plate_index + 1} by whole-plate shuffle")
            return updated

        for row in updated.plates[plate_index]:
            occupied = [c for c, sample in enumerate(row) if sample is not None]
            samples = [row[c] for c in occupied]
            rng.shuffle(samples)
            for col, sample in zip(occupied, samples):
                row[col] = sample

        logger.info(f"Re-randomized plate {plate_index + 1}")
        return updated

    def validate_layout(
        self,
        result: RandomizationResult,
        config: RandomizationConfig
    ) -> List[ConstraintViolation]:
        """
        Validate a layout against the randomization constraints.

        Args:
            result: Layout to validate
            config: Parameters the layout was generated with

        Returns:
            List of violations: duplicates, missing samples and split
            subjects as errors, adjacent same-group wells as warnings
        """
        violations = []
        wells = {}

        for p, plate in enumerate(result.plates):
            for r, row in enumerate(plate):
                for c, sample in enumerate(row):
                    if sample is not None:
                        wells.setdefault(sample.name, []).append(WellPosition(plate=p, row=r, col=c))

        # Duplicate samples
        for name, positions in wells.items():
            if len(positions) > 1:
                violations.append(ConstraintViolation(
                    constraint_name="conservation",
                    description=f"Sample {name} appears in {len(positions)} wells",
                    severity=severity_for("conservation"),
                    affected_wells=[pos.label() for pos in positions]
                ))

        # Missing samples
        assigned = Counter(s.name for samples in result.plate_assignments.values() for s in samples)
        missing = sorted(name for name in assigned if name not in wells)
        if missing:
            violations.append(ConstraintViolation(
                constraint_name="conservation",
                description=f"{len(missing)} assigned samples are not in any well: {', '.join(missing[:10])}",
                severity=severity_for("conservation")
            ))

        if config.repeated_measures:
            violations.extend(self._check_subjects(result, config.repeated_measures_variable))

        violations.extend(self._check_adjacency(result, config))
        return violations

    def _check_subjects(self, result: RandomizationResult, attribute: str) -> List[ConstraintViolation]:
        subject_plates = {}
        for p, plate in enumerate(result.plates):
            for row in plate:
                for sample in row:
                    if sample is not None and has_subject_id(sample.get(attribute)):
                        subject_plates.setdefault(sample.get(attribute), set()).add(p)

        return [
            ConstraintViolation(
                constraint_name="atomic_grouping",
                description=(
                    f"Repeated-measures group '{subject}' is split across plates "
                    f"{', '.join(str(p + 1) for p in sorted(plates))}"
                ),
                severity=severity_for("atomic_grouping")
            )
            for subject, plates in subject_plates.items()
            if len(plates) > 1
        ]

    def _check_adjacency(
        self,
        result: RandomizationResult,
        config: RandomizationConfig
    ) -> List[ConstraintViolation]:
        key_of = key_function(config.covariates, config.qc_column, config.qc_values)
        violations = []

        for p, plate in enumerate(result.plates):
            for r, row in enumerate(plate):
                for c, sample in enumerate(row):
                    if sample is None:
                        continue
                    key = key_of(sample)
                    neighbours = [(r, c + 1), (r + 1, c)]
                    if c == len(row) - 1:
                        neighbours.append((r + 1, 0))
                    for nr, nc in neighbours:
                        if nr < len(plate) and nc < len(row):
                            other = plate[nr][nc]
                            if other is not None and key_of(other) == key:
                                violations.append(ConstraintViolation(
                                    constraint_name="spatial_declustering",
                                    description=f"Adjacent wells share group {key}",
                                    severity=severity_for("spatial_declustering"),
                                    affected_wells=[
                                        f"P{p + 1}:{format_position(r, c)}",
                                        f"P{p + 1}:{format_position(nr, nc)}"
                                    ]
                                ))

        return violations

    def _check_position(self, result: RandomizationResult, position: WellPosition) -> None:
        if not 0 <= position.plate < result.num_plates:
            raise ValueError(f"Plate {position.plate + 1} does not exist ({result.num_plates} plates)")
        plate = result.plates[position.plate]
        if not (0 <= position.row < len(plate) and 0 <= position.col < len(plate[position.row])):
            raise ValueError(f"Well {position.label()} is outside the plate")

    def _move_assignment(
        self,
        result: RandomizationResult,
        sample: Optional[Sample],
        from_plate: int,
        to_plate: int
    ) -> None:
        if sample is None:
            return
        source = result.plate_assignments.setdefault(from_plate, [])
        for i, assigned in enumerate(source):
            if assigned.name == sample.name:
                del source[i]
                break
        result.plate_assignments.setdefault(to_plate, []).append(sample)
